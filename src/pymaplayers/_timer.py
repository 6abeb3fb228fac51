"""asyncio-backed debounce timer."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from pymaplayers.exceptions import MapLayersError


class Debouncer:
    """Runs the most recently scheduled callback once the delay elapses.

    Every call to :meth:`debounce` restarts the delay and replaces the
    pending callback, so a burst of calls produces a single invocation
    of the last callback.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._callback: Callable[[], None] | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def require_loop(self) -> asyncio.AbstractEventLoop:
        """The loop timers run on; raises when there is none to schedule on."""
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError as exc:
            raise MapLayersError("Debounced work needs a running event loop or an explicit loop") from exc

    def debounce(self, callback: Callable[[], None], delay: float) -> None:
        loop = self.require_loop()
        self.cancel()
        self._callback = callback
        self._handle = loop.call_later(delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._callback = None

    def flush(self) -> None:
        """Run the pending callback now, if any."""
        if self._handle is None:
            return
        self._handle.cancel()
        self._fire()

    def _fire(self) -> None:
        callback = self._callback
        self._handle = None
        self._callback = None
        if callback is not None:
            callback()
