"""Deferred operations gated on render-target readiness.

Many operations on a render target only make sense once it reached a
certain lifecycle state (style loaded, first idle frame, ...).  Call
sites hand such work to :meth:`OperationQueue.add` together with a
condition; the owning model calls :meth:`OperationQueue.flush` on every
lifecycle transition.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pymaplayers.models.status import MapStatus

if TYPE_CHECKING:
    from pymaplayers.model import MapModel
    from pymaplayers.target import RenderTarget

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OperationContext:
    """What a condition callback gets to look at."""

    model: MapModel
    target: RenderTarget
    args: tuple[Any, ...]


OperationCondition = MapStatus | Callable[[OperationContext], bool]
OperationFunction = Callable[..., Any]


@dataclass(slots=True)
class Operation:
    condition: OperationCondition
    fn: OperationFunction
    args: tuple[Any, ...] = ()


class OperationQueue:
    """FIFO queue of operations waiting for their precondition.

    No priority reordering happens: operations that are still blocked
    keep their relative insertion order, which preserves causal ordering
    of operations sharing a precondition.
    """

    def __init__(self, model: MapModel) -> None:
        self._model = model
        self._operations: list[Operation] = []
        self._disposed = False

    @property
    def pending(self) -> int:
        return len(self._operations)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def add(self, condition: OperationCondition, fn: OperationFunction, args: tuple[Any, ...] = ()) -> None:
        """Run ``fn(*args)`` now if ``condition`` holds, otherwise queue it."""
        if self._disposed:
            _logger.debug("Dropping %s: queue disposed", _describe(fn))
            return

        operation = Operation(condition, fn, tuple(args))
        if self._condition_matches(operation):
            fn(*operation.args)
        else:
            _logger.debug("Deferring %s until %s", _describe(fn), _describe(condition))
            self._operations.append(operation)

    def flush(self) -> None:
        """Run every queued operation whose condition now holds."""
        if self._disposed or self._model.target_or_none is None:
            return

        # Operations enqueued while flushing land in self._operations and
        # are appended after the survivors below.
        remaining = deque(self._operations)
        self._operations = []
        survivors: list[Operation] = []
        try:
            while remaining and not self._disposed:
                operation = remaining.popleft()
                if self._condition_matches(operation):
                    operation.fn(*operation.args)
                else:
                    survivors.append(operation)
        finally:
            # A raising operation is consumed; everything behind it stays queued.
            if not self._disposed:
                self._operations = [*survivors, *remaining, *self._operations]

    def dispose(self) -> None:
        self._operations.clear()
        self._disposed = True

    def _condition_matches(self, operation: Operation) -> bool:
        target = self._model.target_or_none
        if target is None:
            return False

        condition = operation.condition
        if isinstance(condition, MapStatus):
            return self._model.status.reached(condition)
        try:
            return bool(condition(OperationContext(model=self._model, target=target, args=operation.args)))
        except Exception:
            _logger.debug("Operation condition %s raised; treating as not ready", _describe(condition), exc_info=True)
            return False


def _describe(value: Any) -> str:
    if isinstance(value, MapStatus):
        return f"status>={value.value}"
    return getattr(value, "__qualname__", None) or repr(value)
