# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import os
import re
import time
from collections.abc import Callable
from urllib.parse import urlsplit

from ._http import URI
from .exceptions import MissingExpectedParameterError
from .interfaces.http import HTTPClient
from .interfaces.identity import CredentialsResolver
from .interfaces.retries import RetryBackoffStrategy, RetryPolicy

DEFAULT_MAX_RETRIES = 3

_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


class Config:
    """Settings shared by every call a :py:class:`ServiceClient` makes.

    Values not passed to the constructor fall back to the environment:

    * ``region``: ``AWS_REGION``, then ``AWS_DEFAULT_REGION``
    * ``endpoint_url``: ``AWS_ENDPOINT_URL``
    * ``max_retries``: ``AWS_MAX_ATTEMPTS`` minus the initial attempt
    """

    def __init__(
        self,
        *,
        region: str | None = None,
        endpoint_url: str | None = None,
        disable_ssl: bool = False,
        credentials_resolver: CredentialsResolver | None = None,
        http_client: HTTPClient | None = None,
        max_retries: int | None = None,
        retry_policy: RetryPolicy | None = None,
        retry_backoff_strategy: RetryBackoffStrategy | None = None,
        user_agent_extra: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        :param region: The region requests are sent to and signed for.
        :param endpoint_url: A fixed endpoint to use in place of the regional one.
        :param disable_ssl: Use ``http`` for endpoints without an explicit scheme.
        :param credentials_resolver: Source of signing credentials. Defaults to the
            environment, shared profile and EC2 instance metadata chain.
        :param http_client: The transport. Defaults to
            :py:class:`aws_sdk_core.crt.AWSCRTHTTPClient`.
        :param max_retries: Retries allowed after the initial attempt.
        :param retry_policy: Decides which errors are retryable.
        :param retry_backoff_strategy: Computes the wait before each retry.
        :param user_agent_extra: Appended to the ``User-Agent`` header.
        :param sleep: Called with the retry delay in seconds before each retry.
        """
        self.region = region or _getenv("AWS_REGION") or _getenv("AWS_DEFAULT_REGION")
        self.endpoint_url = endpoint_url or _getenv("AWS_ENDPOINT_URL")
        self.disable_ssl = disable_ssl
        self.credentials_resolver = credentials_resolver
        self.http_client = http_client
        if max_retries is None:
            max_retries = _max_retries_from_env()
        if max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {max_retries}")
        self.max_retries = max_retries
        self.retry_policy = retry_policy
        self.retry_backoff_strategy = retry_backoff_strategy
        self.user_agent_extra = user_agent_extra
        self.sleep = sleep

    def resolve_endpoint(self, endpoint_prefix: str) -> URI:
        """Resolve the base URI requests are sent to.

        :raises MissingExpectedParameterError: If neither an endpoint nor a region is
            configured.
        """
        endpoint = self.endpoint_url
        if not endpoint:
            if not self.region:
                raise MissingExpectedParameterError(
                    "A region or an endpoint_url must be configured."
                )
            endpoint = f"{endpoint_prefix}.{self.region}.amazonaws.com"
        if not _SCHEME_PATTERN.match(endpoint):
            scheme = "http" if self.disable_ssl else "https"
            endpoint = f"{scheme}://{endpoint}"

        parsed = urlsplit(endpoint)
        if not parsed.hostname:
            raise MissingExpectedParameterError(f"Invalid endpoint: {endpoint!r}")
        return URI(
            scheme=parsed.scheme,
            host=parsed.hostname,
            port=parsed.port,
            path=parsed.path or None,
            query=parsed.query or None,
        )


def _getenv(name: str) -> str | None:
    return os.environ.get(name) or None


def _max_retries_from_env() -> int:
    value = _getenv("AWS_MAX_ATTEMPTS")
    if value is None:
        return DEFAULT_MAX_RETRIES
    try:
        attempts = int(value)
    except ValueError as e:
        raise ValueError(f"AWS_MAX_ATTEMPTS must be an integer, got {value!r}") from e
    if attempts < 1:
        raise ValueError(f"AWS_MAX_ATTEMPTS must be at least 1, got {attempts}")
    return attempts - 1
