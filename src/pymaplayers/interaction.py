"""Pointer interaction on backing layers.

Owns:
- the click listener registry (one listener per backing layer id)
- binding/unbinding of click and hover handlers on the render target
- cycling through overlapping features on repeated clicks
- hover feature-state and cursor feedback
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pymaplayers.models.feature import FeatureIdentifier, RenderedFeature
from pymaplayers.target import MapEvent, RenderTarget

_logger = logging.getLogger(__name__)

POINTER_CURSOR = "pointer"
DEFAULT_CURSOR = ""


@dataclass(slots=True)
class LayerMouseEvent:
    """A pointer event scoped to a layer, as delivered by the render target.

    ``features`` are the candidate features under the pointer, top-most
    first.
    """

    layer_id: str | None = None
    features: list[RenderedFeature] = field(default_factory=list)
    point: tuple[float, float] | None = None
    original: Any = None


LayerClickListener = Callable[[LayerMouseEvent, RenderedFeature | None], None]


class LayerInteraction:
    def __init__(
        self,
        *,
        get_target: Callable[[], RenderTarget | None],
        set_feature_state: Callable[[FeatureIdentifier, dict[str, Any]], None],
    ) -> None:
        self._get_target = get_target
        self._set_feature_state = set_feature_state

        self._listeners: dict[str, LayerClickListener] = {}
        self._bound: set[str] = set()
        # Key of the feature picked by the previous click, used for cycling.
        self._previous_click_key: str | None = None
        self._hovered: FeatureIdentifier | None = None

    # ------------------------------------------------------------------
    # Listener registry
    # ------------------------------------------------------------------

    def set_listener(self, layer_id: str, listener: LayerClickListener) -> None:
        self._listeners[layer_id] = listener

    def remove_listener(self, layer_id: str) -> None:
        self.unbind(layer_id)
        self._listeners.pop(layer_id, None)

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    def bind(self, layer_id: str) -> None:
        """(Re-)bind handlers for ``layer_id``.

        Layers without a click listener stay unbound: there is no use in
        listening, and they must not show a pointer cursor.
        """
        target = self._get_target()
        if target is None:
            return

        self.unbind(layer_id)
        if layer_id not in self._listeners:
            return
        if target.get_layer(layer_id) is None:
            return

        _logger.debug("Binding interaction handlers for layer %s", layer_id)
        target.on(MapEvent.CLICK, self.on_click, layer_id)
        target.on(MapEvent.MOUSE_ENTER, self.on_mouse_enter, layer_id)
        target.on(MapEvent.MOUSE_LEAVE, self.on_mouse_leave, layer_id)
        self._bound.add(layer_id)

    def unbind(self, layer_id: str) -> None:
        target = self._get_target()
        if target is None or layer_id not in self._bound:
            return

        target.off(MapEvent.CLICK, self.on_click, layer_id)
        target.off(MapEvent.MOUSE_ENTER, self.on_mouse_enter, layer_id)
        target.off(MapEvent.MOUSE_LEAVE, self.on_mouse_leave, layer_id)
        self._bound.discard(layer_id)

    def unbind_all(self) -> None:
        for layer_id in list(self._bound):
            self.unbind(layer_id)

    def reset(self) -> None:
        """Forget bindings and pointer state (render target went away)."""
        self._bound.clear()
        self._previous_click_key = None
        self._hovered = None

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_click(self, event: LayerMouseEvent) -> None:
        features = event.features
        if not features:
            return

        listener = self._listeners.get(features[0].layer_id)

        if len(features) < 2:
            picked = features[0]
            self._previous_click_key = None
        else:
            # Overlapping features: each click at the same spot picks the next one.
            keys = [feature.cycle_key for feature in features]
            previous = keys.index(self._previous_click_key) if self._previous_click_key in keys else -1
            index = (previous + 1) % len(keys)
            picked = features[index]
            self._previous_click_key = keys[index]

        if listener is None:
            return
        try:
            listener(event, picked)
        except Exception:
            _logger.warning("Click listener for layer %s failed", picked.layer_id, exc_info=True)

    def on_mouse_enter(self, event: LayerMouseEvent) -> None:
        target = self._get_target()
        if target is None or not event.features:
            return

        identifier = event.features[0].identifier()
        if identifier is None:
            return

        if self._hovered is not None and self._hovered != identifier:
            self._set_feature_state(self._hovered, {"hover": False})

        target.set_cursor(POINTER_CURSOR)
        self._set_feature_state(identifier, {"hover": True})
        self._hovered = identifier

    def on_mouse_leave(self, event: LayerMouseEvent | None = None) -> None:
        target = self._get_target()
        if target is None or self._hovered is None:
            return

        self._set_feature_state(self._hovered, {"hover": False})
        target.set_cursor(DEFAULT_CURSOR)
        self._hovered = None
