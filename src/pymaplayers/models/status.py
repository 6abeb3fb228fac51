"""Render-target lifecycle status."""

from __future__ import annotations

from enum import StrEnum


class MapStatus(StrEnum):
    """Lifecycle of the attached render target.

    ``UNINITIALIZED -> LOADED -> IDLE``; ``ERROR`` is reachable from any
    state before ``IDLE`` (errors after idle are only logged).
    """

    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    IDLE = "idle"
    ERROR = "error"

    def reached(self, required: MapStatus) -> bool:
        """Whether this status satisfies a ``required`` precondition.

        ``ERROR`` only satisfies itself and never satisfies a readiness
        precondition.
        """
        if required == MapStatus.ERROR or self == MapStatus.ERROR:
            return self == required
        return _RANK[self] >= _RANK[required]


_RANK: dict[MapStatus, int] = {
    MapStatus.UNINITIALIZED: 0,
    MapStatus.LOADED: 1,
    MapStatus.IDLE: 2,
}
