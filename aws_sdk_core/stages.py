# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""The default stages installed into a client's pipeline."""

import logging
import time
from collections.abc import Callable, Iterable
from io import BytesIO
from typing import Final

from . import __version__
from ._http import URI, AWSRequest, Fields
from .exceptions import (
    APIError,
    AWSSDKError,
    RetryError,
    SerializationError,
    TransportError,
)
from .interfaces.http import Field, HTTPClient
from .interfaces.identity import CredentialsResolver
from .interfaces.io import ByteStream, Seekable
from .interfaces.retries import RetryBackoffStrategy, RetryPolicy, RetryStrategy
from .pipeline import RequestContext
from .protocols import ClientProtocol
from .signers import SigV4Signer, SigV4SigningProperties

logger: Final = logging.getLogger(__name__)

USER_AGENT: Final = f"aws-sdk-core/{__version__}"

_REDACTED_FIELDS: Final = frozenset(["authorization", "x-amz-security-token"])


class NewRequestStage:
    """Creates a fresh HTTP request for the operation on every attempt."""

    name = "new_request"

    def __init__(self, endpoint: URI) -> None:
        self._endpoint = endpoint

    def __call__(self, context: RequestContext) -> None:
        operation = context.operation
        base = (self._endpoint.path or "").rstrip("/")
        path = base + (operation.http_path or "")
        context.http_request = AWSRequest(
            destination=URI(
                scheme=self._endpoint.scheme,
                host=self._endpoint.host,
                port=self._endpoint.port,
                path=path or "/",
                query=self._endpoint.query,
            ),
            method=operation.http_method or "POST",
            fields=Fields(),
        )


class BuildStage:
    name = "codec_build"

    def __init__(self, protocol: ClientProtocol) -> None:
        self._protocol = protocol

    def __call__(self, context: RequestContext) -> None:
        self._protocol.build(context)


class UserAgentStage:
    name = "user_agent"

    def __init__(self, extra: str | None = None) -> None:
        self._user_agent = f"{USER_AGENT} {extra}" if extra else USER_AGENT

    def __call__(self, context: RequestContext) -> None:
        context.request.fields.set_value("User-Agent", self._user_agent)


class ContentLengthStage:
    """Sets ``Content-Length`` from the body unless it is already present.

    Streams that cannot report their length are buffered into memory.
    """

    name = "content_length"

    def __call__(self, context: RequestContext) -> None:
        request = context.request
        if "Content-Length" in request.fields:
            return
        request.fields.set_value("Content-Length", str(self._body_length(request)))

    def _body_length(self, request: AWSRequest) -> int:
        body = request.body
        try:
            match body:
                case None:
                    return 0
                case bytes() | bytearray():
                    return len(body)
                case Seekable():
                    position = body.tell()
                    end = body.seek(0, 2)
                    body.seek(position)
                    return end - position
                case ByteStream():
                    data = body.read()
                case _:
                    data = b"".join(body)
        except OSError as e:
            raise SerializationError("Unable to determine the body length.") from e
        request.body = BytesIO(data)
        return len(data)


class SignStage:
    """Resolves credentials and signs the request with SigV4.

    A credential resolution failure aborts the call without retrying.
    """

    name = "sigv4_sign"

    def __init__(
        self,
        *,
        credentials_resolver: CredentialsResolver,
        properties: SigV4SigningProperties,
        signer: SigV4Signer | None = None,
    ) -> None:
        self._credentials_resolver = credentials_resolver
        self._properties = properties
        self._signer = signer or SigV4Signer()

    def __call__(self, context: RequestContext) -> None:
        identity = self._credentials_resolver.get_identity()
        self._signer.sign(
            request=context.request, identity=identity, properties=self._properties
        )


class SendStage:
    name = "send"

    def __init__(self, http_client: HTTPClient) -> None:
        self._http_client = http_client

    def __call__(self, context: RequestContext) -> None:
        request = context.request
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Sending request %s %s with headers %s",
                request.method,
                request.destination.build(),
                _loggable_fields(request.fields),
            )
        try:
            response = self._http_client.send(request)
        except AWSSDKError:
            raise
        except Exception as e:
            raise TransportError(f"Failed to send request: {e}") from e
        context.http_response = response
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Received response %s with headers %s and %s body bytes",
                response.status,
                _loggable_fields(response.fields),
                len(response.body),
            )


def _loggable_fields(fields: Iterable[Field]) -> dict[str, str]:
    return {
        field.name: (
            "<redacted>"
            if field.name.lower() in _REDACTED_FIELDS
            else field.as_string()
        )
        for field in fields
    }


class ValidateResponseStage:
    """Turns non-success responses into an :py:class:`APIError`.

    The error is annotated with whether it may be retried and how long to wait.
    """

    name = "validate_response"

    def __init__(
        self,
        *,
        protocol: ClientProtocol,
        retry_policy: RetryPolicy,
        backoff_strategy: RetryBackoffStrategy,
    ) -> None:
        self._protocol = protocol
        self._retry_policy = retry_policy
        self._backoff_strategy = backoff_strategy

    def __call__(self, context: RequestContext) -> None:
        response = context.response
        if 0 < response.status < 400:
            return
        error = self._protocol.unmarshal_error(context)
        error.status_code = response.status
        error.retryable = self._retry_policy.is_retryable(
            status_code=response.status, error_code=error.code
        )
        error.retry_delay = self._backoff_strategy.compute_next_backoff_delay(
            context.retry_count + 1
        )
        error.retry_count = context.retry_count
        if error.request_id:
            context.request_id = error.request_id
        context.error = error


class RetryStage:
    """Decides whether a failed attempt is made again.

    Clearing ``context.error`` restarts the call from the build phase.
    """

    name = "retry"

    def __init__(
        self, strategy: RetryStrategy, sleep: Callable[[float], None] = time.sleep
    ) -> None:
        self._strategy = strategy
        self._sleep = sleep

    def __call__(self, context: RequestContext) -> None:
        error = context.error
        if not isinstance(error, APIError):
            return
        token = context.retry_token or self._strategy.acquire_initial_retry_token()
        try:
            token = self._strategy.refresh_retry_token_for_retry(
                token_to_renew=token, error_info=error
            )
        except RetryError as e:
            logger.debug("Not retrying request: %s", e)
            return

        context.retry_token = token
        context.retry_count = token.retry_count
        context.error = None
        logger.debug(
            "Retry needed. Attempting request #%s in %.4f seconds.",
            token.retry_count + 1,
            token.retry_delay,
        )
        self._sleep(token.retry_delay)


class UnmarshalStage:
    name = "codec_unmarshal"

    def __init__(self, protocol: ClientProtocol) -> None:
        self._protocol = protocol

    def __call__(self, context: RequestContext) -> None:
        self._protocol.unmarshal(context)
