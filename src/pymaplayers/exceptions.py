"""Custom exception hierarchy for pymaplayers."""

from __future__ import annotations


class MapLayersError(Exception):
    """Base exception for all pymaplayers errors."""


class MapLayersConfigError(MapLayersError):
    """Invalid or missing configuration."""


class CircularGroupReferenceError(MapLayersConfigError):
    """Layer groups reference each other in a loop.

    Raised while resolving group bounds, e.g. ``A`` is ordered above
    ``group:B`` while ``B`` is ordered above ``group:A``.  This is a
    programming mistake and is never retried.
    """

    def __init__(self, chain: tuple[str, ...]) -> None:
        self.chain = chain
        super().__init__(f"Circular layer group reference: {' -> '.join(chain)}")


class RenderTargetError(MapLayersError):
    """A render target rejected a mutation (add/remove layer or source)."""

    def __init__(
        self,
        message: str,
        *,
        layer_id: str | None = None,
        source_id: str | None = None,
    ) -> None:
        self.layer_id = layer_id
        self.source_id = source_id
        super().__init__(message)


class MapNotAttachedError(MapLayersError):
    """An operation needed a render target but none is attached."""
