# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""The staged request pipeline.

Every call runs ``BUILD -> SIGN -> SEND -> VALIDATE_RESPONSE -> UNMARSHAL``. Each
phase holds an ordered list of named stages. A stage reports failure by raising or by
setting :py:attr:`RequestContext.error`, which stops the rest of its phase. Errors from
``SEND`` and ``VALIDATE_RESPONSE`` are offered to the ``AFTER_RETRY`` stages, which may
clear the error to restart the call from ``BUILD``.
"""

import logging
import time
from collections.abc import Callable, Iterator
from copy import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Final, Protocol

from ._http import AWSRequest, AWSResponse
from .exceptions import AWSSDKError
from .interfaces.retries import RetryToken
from .schemas import OperationDescriptor

logger: Final = logging.getLogger(__name__)


class Phase(Enum):
    BUILD = "build"
    SIGN = "sign"
    SEND = "send"
    VALIDATE_RESPONSE = "validate_response"
    AFTER_RETRY = "after_retry"
    UNMARSHAL = "unmarshal"


@dataclass(kw_only=True)
class RequestContext:
    """Mutable state of a single call as it moves through the pipeline."""

    operation: OperationDescriptor
    params: Any = None

    http_request: AWSRequest | None = None
    """The outgoing request. Rebuilt from scratch on every attempt."""

    http_response: AWSResponse | None = None
    result: Any = None
    error: Exception | None = None

    retry_count: int = 0
    """Number of retries made so far. The first attempt has a count of 0."""

    retry_token: RetryToken | None = None
    request_id: str | None = None

    created: datetime = field(default_factory=lambda: datetime.now(UTC))
    """When the call was started."""

    properties: dict[str, Any] = field(default_factory=dict)
    """Free-form storage for custom stages."""

    _started: float = field(default_factory=time.monotonic, repr=False)

    @property
    def attempt(self) -> int:
        """The current attempt number, starting at 1."""
        return self.retry_count + 1

    @property
    def elapsed(self) -> float:
        """Seconds since the call was started."""
        return time.monotonic() - self._started

    @property
    def request(self) -> AWSRequest:
        if self.http_request is None:
            raise AWSSDKError("No HTTP request has been created for this call.")
        return self.http_request

    @property
    def response(self) -> AWSResponse:
        if self.http_response is None:
            raise AWSSDKError("No HTTP response has been received for this call.")
        return self.http_response


class Stage(Protocol):
    """A named step of a pipeline phase."""

    name: str

    def __call__(self, context: RequestContext) -> None: ...


@dataclass(frozen=True)
class NamedStage:
    """Adapts a plain function into a :py:class:`Stage`."""

    name: str
    handler: Callable[[RequestContext], None]

    def __call__(self, context: RequestContext) -> None:
        self.handler(context)


class StageList:
    """An ordered list of stages for one phase.

    Stages are positioned relative to each other by name.
    """

    def __init__(self, stages: list[Stage] | None = None) -> None:
        self._stages: list[Stage] = list(stages or [])

    @property
    def names(self) -> list[str]:
        return [stage.name for stage in self._stages]

    def _resolve_position(self, name: str | None, default_pos: int) -> int:
        for n, stage in enumerate(self._stages):
            if stage.name == name:
                return n
        return default_pos

    def add_before(self, stage: Stage, name: str | None = None) -> None:
        """Insert ``stage`` before the stage called ``name``, or first."""
        self._check_unique(stage)
        position = self._resolve_position(name, 0)
        self._stages.insert(position, stage)

    def add_after(self, stage: Stage, name: str | None = None) -> None:
        """Insert ``stage`` after the stage called ``name``, or last."""
        self._check_unique(stage)
        position = self._resolve_position(name, len(self._stages) - 1)
        self._stages.insert(position + 1, stage)

    def append(self, stage: Stage) -> None:
        self.add_after(stage)

    def remove(self, name: str) -> None:
        """Remove the stage called ``name``.

        :raises KeyError: If there is no such stage.
        """
        self._stages.pop(self._resolve_position_strict(name))

    def replace(self, stage: Stage) -> None:
        """Replace the stage with the same name as ``stage``.

        :raises KeyError: If there is no such stage.
        """
        self._stages[self._resolve_position_strict(stage.name)] = stage

    def _resolve_position_strict(self, name: str) -> int:
        position = self._resolve_position(name, -1)
        if position < 0:
            raise KeyError(name)
        return position

    def _check_unique(self, stage: Stage) -> None:
        if stage.name in self.names:
            raise ValueError(f"A stage named {stage.name!r} is already registered.")

    def run(self, context: RequestContext, *, stop_on_error: bool = True) -> None:
        """Run each stage in order.

        Exceptions raised by a stage are stored on ``context.error``. With
        ``stop_on_error``, the first error stops the remaining stages.
        """
        for stage in self._stages:
            try:
                stage(context)
            except Exception as e:
                context.error = e
            if stop_on_error and context.error is not None:
                logger.debug("Stage %s failed: %r", stage.name, context.error)
                return

    def __iter__(self) -> Iterator[Stage]:
        return iter(list(self._stages))

    def __len__(self) -> int:
        return len(self._stages)

    def __copy__(self) -> "StageList":
        return StageList(self._stages)

    def __repr__(self) -> str:
        return f"StageList({self.names})"


class Pipeline:
    """Ordered stage lists for every :py:class:`Phase` of a call."""

    def __init__(self) -> None:
        self.build = StageList()
        self.sign = StageList()
        self.send = StageList()
        self.validate_response = StageList()
        self.after_retry = StageList()
        self.unmarshal = StageList()

    def phase(self, phase: Phase) -> StageList:
        """Get the stage list of ``phase``."""
        return getattr(self, phase.value)

    def __copy__(self) -> "Pipeline":
        pipeline = Pipeline()
        for phase in Phase:
            setattr(pipeline, phase.value, copy(self.phase(phase)))
        return pipeline

    def execute(self, context: RequestContext) -> Any:
        """Run the call described by ``context`` to completion.

        :returns: The typed result placed on the context by the unmarshal phase.
        :raises AWSSDKError: The terminal error of the call.
        """
        while True:
            context.error = None
            context.http_response = None
            logger.debug(
                "Starting attempt #%s of %s.", context.attempt, context.operation.name
            )

            self._run_phase(Phase.BUILD, context)
            if context.error is None:
                self._run_phase(Phase.SIGN, context)
            if context.error is not None:
                self._raise(context)

            self._run_phase(Phase.SEND, context)
            if context.error is None:
                self._run_phase(Phase.VALIDATE_RESPONSE, context)
            if context.error is not None:
                self.after_retry.run(context, stop_on_error=False)
                if context.error is None:
                    continue
                self._raise(context)

            self._run_phase(Phase.UNMARSHAL, context)
            if context.error is not None:
                self._raise(context)
            return context.result

    def _run_phase(self, phase: Phase, context: RequestContext) -> None:
        logger.debug("Running %s phase.", phase.value)
        self.phase(phase).run(context)

    def _raise(self, context: RequestContext) -> None:
        error = context.error
        if isinstance(error, AWSSDKError):
            raise error
        raise AWSSDKError(str(error)) from error
