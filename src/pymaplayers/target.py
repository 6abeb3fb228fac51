"""Structural interface of the render target the engine drives.

The engine never imports a mapping SDK.  Anything that implements
:class:`RenderTarget` (a thin adapter over a MapLibre/MapTiler map, a
headless style document, a test double) can be attached to a
:class:`~pymaplayers.model.MapModel`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from pymaplayers.models.feature import FeatureIdentifier

BackingLayer = dict[str, Any]
"""Render-target layer description; must carry a stable ``id``."""

SourceSpec = dict[str, Any]
"""Render-target source description."""

EventHandler = Callable[..., None]
BackgroundLayerResolver = Callable[[Any], "str | None"]

#: Style identifier of the OpenStreetMap default reference style.
OPENSTREETMAP_DEFAULT_STYLE = "openstreetmap"


class MapEvent(StrEnum):
    """Events the engine subscribes to on the render target."""

    LOAD = "load"
    IDLE = "idle"
    SOURCE_DATA = "sourcedata"
    STYLE_DATA = "styledata"
    ERROR = "error"
    CLICK = "click"
    MOUSE_ENTER = "mouseenter"
    MOUSE_LEAVE = "mouseleave"


@runtime_checkable
class RenderSource(Protocol):
    """A source object as exposed by the render target.

    Implementations may additionally provide ``set_tiles(urls)`` (tiled
    sources that support swapping their URL in place) and
    ``set_data(data)`` (GeoJSON sources).
    """

    def loaded(self) -> bool:
        ...


class RenderTarget(Protocol):
    """Capability set consumed from the render target.

    All mutations are synchronous from the engine's point of view and
    may raise; the engine logs and continues.
    """

    def layer_ids(self) -> list[str]:
        """Full layer id sequence, bottom-most first."""
        ...

    def source_ids(self) -> set[str]:
        ...

    def get_layer(self, layer_id: str) -> Mapping[str, Any] | None:
        ...

    def add_layer(self, layer: BackingLayer, before: str | None = None) -> None:
        ...

    def remove_layer(self, layer_id: str) -> None:
        ...

    def get_source(self, source_id: str) -> RenderSource | None:
        ...

    def add_source(self, source_id: str, spec: SourceSpec) -> None:
        ...

    def remove_source(self, source_id: str) -> None:
        ...

    def layer_dependents(self, source_id: str) -> list[str]:
        """Ids of layers reading from ``source_id``, in layer order."""
        ...

    def is_source_loaded(self, source_id: str) -> bool:
        ...

    def get_feature_state(self, feature: FeatureIdentifier) -> dict[str, Any] | None:
        ...

    def set_feature_state(self, feature: FeatureIdentifier, state: dict[str, Any]) -> None:
        ...

    def set_layout_property(self, layer_id: str, name: str, value: Any) -> None:
        ...

    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None:
        ...

    def set_style(self, style: Any) -> None:
        ...

    def set_cursor(self, cursor: str) -> None:
        ...

    def on(self, event: str, handler: EventHandler, layer_id: str | None = None) -> None:
        ...

    def off(self, event: str, handler: EventHandler, layer_id: str | None = None) -> None:
        ...


def supports_tile_patching(source: Any) -> bool:
    """Whether ``source`` can swap its tile URLs without being re-added."""
    return source is not None and callable(getattr(source, "set_tiles", None))


def supports_data_patching(source: Any) -> bool:
    return source is not None and callable(getattr(source, "set_data", None))


def default_background_layer(style: Any) -> str | None:
    """Top-most layer considered 'background' in a reference map style.

    The OpenStreetMap style draws disputed borders last; the other
    reference styles end their background block with country borders.
    """
    if style is None:
        return None
    if style == OPENSTREETMAP_DEFAULT_STYLE:
        return "Disputed border"
    return "Country border"
