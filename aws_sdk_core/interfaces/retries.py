# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class ErrorRetryInfo(Protocol):
    """A protocol for errors that have retry information embedded."""

    retryable: bool
    """Whether the error was classified as transient by the retry policy."""

    retry_delay: float | None
    """The amount of time, in seconds, that should pass before a retry.

    If None, the retry strategy computes one.
    """


class RetryPolicy(Protocol):
    """Decides whether a failed response is worth retrying."""

    def is_retryable(self, *, status_code: int, error_code: str) -> bool:
        """Classify an error response.

        :param status_code: The HTTP status of the response, 0 if none was received.
        :param error_code: The service error code, or the empty string.
        """
        ...


class RetryBackoffStrategy(Protocol):
    """Stateless strategy for computing retry delays based on retry attempt account."""

    def compute_next_backoff_delay(self, retry_attempt: int) -> float:
        """Calculate timespan in seconds to delay before next retry.

        :param retry_attempt: The index of the retry attempt that is about to be made
        after the delay. The initial attempt, before any retries, is index ``0``, the
        first retry attempt after the initial attempt failed is index ``1``, and so on.
        """
        ...


@dataclass(kw_only=True)
class RetryToken(Protocol):
    """Token issued by a :py:class:`RetryStrategy` for the next attempt."""

    retry_count: int
    """Retry count is the total number of attempts minus the initial attempt."""

    retry_delay: float
    """Delay in seconds to wait before the retry attempt."""


class RetryStrategy(Protocol):
    """Issuer of :py:class:`RetryToken`s."""

    backoff_strategy: RetryBackoffStrategy
    """The strategy used by returned tokens to compute delay duration values."""

    max_attempts: int
    """Upper limit on total attempt count (initial attempt plus retries)."""

    def acquire_initial_retry_token(self) -> RetryToken:
        """Called before the first attempt at the operation."""
        ...

    def refresh_retry_token_for_retry(
        self, *, token_to_renew: RetryToken, error_info: ErrorRetryInfo
    ) -> RetryToken:
        """Replace an existing retry token from a failed attempt with a new token.

        :param token_to_renew: The token used for the previous failed attempt.
        :param error_info: The retry information of the error that failed the attempt.
        :raises RetryError: If no further retry attempts are allowed.
        """
        ...
