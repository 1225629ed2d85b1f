# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from .exceptions import RetryError
from .interfaces import retries as retries_interface

RETRYABLE_STATUS_CODES = frozenset((429, 500, 502, 503, 504, 509))

RETRYABLE_ERROR_CODES = frozenset(
    (
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "RequestThrottled",
        "RequestThrottledException",
        "RequestLimitExceeded",
        "TooManyRequestsException",
        "ProvisionedThroughputExceededException",
        "BandwidthLimitExceeded",
        "SlowDown",
        "PriorRequestNotComplete",
        "EC2ThrottledException",
        "RequestTimeout",
        "RequestTimeoutException",
        "InternalError",
        "InternalFailure",
        "ServiceUnavailable",
    )
)


class StandardRetryPolicy(retries_interface.RetryPolicy):
    def __init__(
        self,
        *,
        status_codes: Iterable[int] = RETRYABLE_STATUS_CODES,
        error_codes: Iterable[str] = RETRYABLE_ERROR_CODES,
    ) -> None:
        """Retry policy backed by fixed sets of transient status and error codes.

        :param status_codes: HTTP statuses that are always retried.
        :param error_codes: Service error codes that are retried regardless of status.
        """
        self._status_codes = frozenset(status_codes)
        self._error_codes = frozenset(error_codes)

    def is_retryable(self, *, status_code: int, error_code: str) -> bool:
        return status_code in self._status_codes or error_code in self._error_codes


class ExponentialBackoffJitterType(Enum):
    """Jitter mode for exponential backoff.

    For use with :py:class:`ExponentialRetryBackoffStrategy`.
    """

    DEFAULT = 1
    """Truncated binary exponential backoff delay with equal jitter:

    .. code-block:: python

        capped = min(max_backoff, backoff_scale_value * 2 ** (retry_attempt - 1))
        (capped / 2) + random_between(0, capped / 2)
    """

    NONE = 2
    """Truncated binary exponential backoff delay without jitter:

    .. code-block:: python

        min(max_backoff, backoff_scale_value * 2 ** (retry_attempt - 1))
    """

    FULL = 3
    """Truncated binary exponential backoff delay with full jitter:

    .. code-block:: python

        random_between(0, min(max_backoff, backoff_scale_value * 2 ** (retry_attempt - 1)))
    """


class ExponentialRetryBackoffStrategy(retries_interface.RetryBackoffStrategy):
    def __init__(
        self,
        *,
        backoff_scale_value: float = 0.03,
        max_backoff: float = 20,
        jitter_type: ExponentialBackoffJitterType = ExponentialBackoffJitterType.DEFAULT,
        random: Callable[[], float] = random.random,
    ):
        """Exponential backoff with optional jitter.

        .. seealso:: https://aws.amazon.com/blogs/architecture/exponential-backoff-and-jitter/

        :param backoff_scale_value: Delay in seconds before the first retry, before
        jitter is applied. Each later retry doubles it.

        :param max_backoff: Upper limit for backoff delay values returned, in seconds.

        :param jitter_type: Determines the formula used to apply jitter to the backoff
        delay.

        :param random: A callable that returns random numbers between ``0`` and ``1``.
        """
        self._backoff_scale_value = backoff_scale_value
        self._max_backoff = max_backoff
        self._jitter_type = jitter_type
        self._random = random

    def compute_next_backoff_delay(self, retry_attempt: int) -> float:
        """Calculate timespan in seconds to delay before next retry.

        :param retry_attempt: The index of the retry attempt that is about to be made
        after the delay. The initial attempt is index ``0`` and returns a delay of
        ``0``.
        """
        if retry_attempt == 0:
            return 0

        capped = min(
            self._backoff_scale_value * (2.0 ** (retry_attempt - 1)), self._max_backoff
        )
        match self._jitter_type:
            case ExponentialBackoffJitterType.NONE:
                return capped
            case ExponentialBackoffJitterType.DEFAULT:
                return (self._random() * 0.5 + 0.5) * capped
            case ExponentialBackoffJitterType.FULL:
                return self._random() * capped


@dataclass(kw_only=True)
class SimpleRetryToken:
    """Basic retry token that stores only the attempt count and backoff delay.

    Retry tokens should always be obtained from an implementation of
    :py:class:`retries_interface.RetryStrategy`.
    """

    retry_count: int
    """Retry count is the total number of attempts minus the initial attempt."""

    retry_delay: float
    """Delay in seconds to wait before the retry attempt."""

    @property
    def attempt_count(self) -> int:
        """The total number of attempts including the initial attempt and retries."""
        return self.retry_count + 1


class SimpleRetryStrategy(retries_interface.RetryStrategy):
    def __init__(
        self,
        *,
        backoff_strategy: retries_interface.RetryBackoffStrategy | None = None,
        max_attempts: int = 4,
    ):
        """Retry strategy that allows retries of retryable errors up to a ceiling.

        :param backoff_strategy: Computes the retry delay when the error does not carry
        one. Defaults to :py:class:`ExponentialRetryBackoffStrategy`.

        :param max_attempts: Upper limit on total number of attempts made, including
        initial attempt and retries.
        """
        self.backoff_strategy = backoff_strategy or ExponentialRetryBackoffStrategy()
        self.max_attempts = max_attempts

    def acquire_initial_retry_token(self) -> SimpleRetryToken:
        return SimpleRetryToken(retry_count=0, retry_delay=0)

    def refresh_retry_token_for_retry(
        self,
        *,
        token_to_renew: retries_interface.RetryToken,
        error_info: retries_interface.ErrorRetryInfo,
    ) -> SimpleRetryToken:
        """Replace an existing retry token from a failed attempt with a new token.

        The delay already computed for the error is reused so that the wait matches
        what the error reports.

        :raises RetryError: If the error is not retryable or no further retry attempts
        are allowed.
        """
        if not error_info.retryable:
            raise RetryError(f"Error is not retryable: {error_info}")
        retry_count = token_to_renew.retry_count + 1
        if retry_count >= self.max_attempts:
            raise RetryError(
                f"Reached maximum number of allowed attempts: {self.max_attempts}"
            )
        retry_delay = error_info.retry_delay
        if retry_delay is None:
            retry_delay = self.backoff_strategy.compute_next_backoff_delay(retry_count)
        return SimpleRetryToken(retry_count=retry_count, retry_delay=retry_delay)
