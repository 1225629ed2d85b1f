# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import logging
from copy import copy
from dataclasses import dataclass
from typing import Any, Final

from .config import Config
from .credentials_resolvers import create_default_chain
from .exceptions import MissingExpectedParameterError
from .interfaces.http import HTTPClient
from .pipeline import Pipeline, RequestContext
from .protocols import ClientProtocol
from .retries import (
    ExponentialRetryBackoffStrategy,
    SimpleRetryStrategy,
    StandardRetryPolicy,
)
from .schemas import OperationDescriptor
from .signers import SigV4SigningProperties
from .stages import (
    BuildStage,
    ContentLengthStage,
    NewRequestStage,
    RetryStage,
    SendStage,
    SignStage,
    UnmarshalStage,
    UserAgentStage,
    ValidateResponseStage,
)

logger: Final = logging.getLogger(__name__)


@dataclass(kw_only=True, frozen=True)
class ServiceMetadata:
    """Static facts about a service that a client is built for."""

    signing_name: str
    """The service name used in the SigV4 credential scope."""

    endpoint_prefix: str | None = None
    """The first label of the regional hostname. Defaults to ``signing_name``."""


class ServiceClient:
    """Invokes operations of a single service.

    Each client owns a :py:class:`Pipeline` populated with the default stages. The
    pipeline may be changed through :py:attr:`pipeline` before calls are made.
    """

    def __init__(
        self,
        *,
        metadata: ServiceMetadata,
        protocol: ClientProtocol,
        config: Config | None = None,
    ) -> None:
        self.metadata = metadata
        self.protocol = protocol
        self.config = config or Config()
        if not self.config.region:
            raise MissingExpectedParameterError("A region must be configured.")

        self.endpoint = self.config.resolve_endpoint(
            metadata.endpoint_prefix or metadata.signing_name
        )
        self.http_client = self.config.http_client or self._default_http_client()
        self.credentials_resolver = (
            self.config.credentials_resolver or create_default_chain(self.http_client)
        )
        self.pipeline = self._default_pipeline()

    def _default_http_client(self) -> HTTPClient:
        from .crt import AWSCRTHTTPClient

        return AWSCRTHTTPClient()

    def _default_pipeline(self) -> Pipeline:
        config = self.config
        backoff_strategy = (
            config.retry_backoff_strategy or ExponentialRetryBackoffStrategy()
        )
        retry_strategy = SimpleRetryStrategy(
            backoff_strategy=backoff_strategy, max_attempts=config.max_retries + 1
        )
        signing_properties: SigV4SigningProperties = {
            "region": config.region or "",
            "service": self.metadata.signing_name,
        }

        pipeline = Pipeline()
        pipeline.build.append(NewRequestStage(self.endpoint))
        pipeline.build.append(BuildStage(self.protocol))
        pipeline.build.append(UserAgentStage(config.user_agent_extra))
        pipeline.build.append(ContentLengthStage())
        pipeline.sign.append(
            SignStage(
                credentials_resolver=self.credentials_resolver,
                properties=signing_properties,
            )
        )
        pipeline.send.append(SendStage(self.http_client))
        pipeline.validate_response.append(
            ValidateResponseStage(
                protocol=self.protocol,
                retry_policy=config.retry_policy or StandardRetryPolicy(),
                backoff_strategy=backoff_strategy,
            )
        )
        pipeline.after_retry.append(RetryStage(retry_strategy, config.sleep))
        pipeline.unmarshal.append(UnmarshalStage(self.protocol))
        return pipeline

    def invoke(
        self,
        operation: OperationDescriptor,
        params: Any = None,
        *,
        pipeline: Pipeline | None = None,
    ) -> Any:
        """Call ``operation`` with ``params`` and return its typed output.

        :param pipeline: Overrides :py:attr:`pipeline` for this call only. Use
            ``copy(client.pipeline)`` to start from the client's stages.
        :raises APIError: If the service returned an error.
        :raises AWSSDKError: For any other failure.
        """
        context = RequestContext(operation=operation, params=params)
        logger.debug("Invoking %s.%s", self.metadata.signing_name, operation.name)
        return (pipeline or self.pipeline).execute(context)

    def copy_pipeline(self) -> Pipeline:
        """Return an independent copy of this client's pipeline."""
        return copy(self.pipeline)
