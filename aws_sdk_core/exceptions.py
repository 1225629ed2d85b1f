# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from dataclasses import dataclass, field


class AWSSDKError(Exception):
    """Base exception type for all exceptions raised by aws-sdk-core."""


class MissingExpectedParameterError(AWSSDKError, ValueError):
    """Some APIs require specific signing properties to be present."""


class CredentialsUnavailableError(AWSSDKError):
    """No usable credentials could be produced by a credentials resolver."""


class ProfileIncompleteError(CredentialsUnavailableError):
    """A profile in a shared credentials file is missing a required key."""

    def __init__(self, *, key: str, profile: str, filename: str) -> None:
        self.key = key
        self.profile = profile
        self.filename = filename
        super().__init__(
            f"profile {profile!r} in {filename} is missing required key {key!r}"
        )


class NoDefaultCredentialsError(CredentialsUnavailableError):
    """The instance metadata service did not report an active IAM role."""


class TransportError(AWSSDKError):
    """The HTTP client failed to deliver a request or receive its response."""


class SigningError(AWSSDKError):
    """A request could not be signed, for example because its body was unreadable."""


class SerializationError(AWSSDKError):
    """Base exception type for exceptions raised while encoding a request."""


class PayloadTypeError(SerializationError):
    """The member bound to the request payload has a type that cannot be a body."""


class DeserializationError(AWSSDKError):
    """Base exception type for exceptions raised while decoding a response."""


class RetryError(AWSSDKError):
    """Base exception type for all exceptions raised in retry strategies."""


@dataclass(kw_only=True)
class APIError(AWSSDKError):
    """An error response returned by a service.

    Implements :py:class:`.interfaces.retries.ErrorRetryInfo`.
    """

    message: str = field(default="", kw_only=False)
    """The message of the error."""

    code: str = ""
    """The short error code, for example ``Throttling``."""

    type: str = ""
    """The error type as reported by the service, which may be fully qualified."""

    request_id: str | None = None
    """The id the service assigned to the failed request."""

    status_code: int = 0
    """The HTTP status code of the response, or 0 if none was received."""

    retryable: bool = False
    """Whether the retry policy classified this error as transient."""

    retry_delay: float | None = None
    """Seconds to wait before the next attempt if the error is retried."""

    retry_count: int = 0
    """The number of retries that had been made when this error was produced."""

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        code = self.code or self.type or f"HTTP {self.status_code}"
        return f"{code}: {self.message}" if self.message else code
