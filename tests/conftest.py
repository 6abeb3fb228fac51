from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from pymaplayers.config import MapLayersConfig
from pymaplayers.exceptions import RenderTargetError
from pymaplayers.model import MapModel
from pymaplayers.models.feature import FeatureIdentifier


class FakeSource:
    def __init__(self, spec: dict[str, Any], *, patchable: bool = False) -> None:
        self.spec = spec
        self.is_loaded = True
        self.tiles: list[str] | None = None
        self.data: Any = None
        if patchable:
            self.set_tiles = self._set_tiles
        if spec.get("type") == "geojson":
            self.set_data = self._set_data

    def loaded(self) -> bool:
        return self.is_loaded

    def _set_tiles(self, urls: list[str]) -> None:
        self.tiles = list(urls)

    def _set_data(self, data: Any) -> None:
        self.data = data


class FakeRenderTarget:
    """In-memory render target recording every mutation in ``calls``."""

    def __init__(
        self,
        layers: list[str] | None = None,
        sources: list[str] | None = None,
        *,
        patchable_sources: bool = False,
    ) -> None:
        self.layers: list[dict[str, Any]] = [{"id": layer_id} for layer_id in layers or []]
        self.sources: dict[str, FakeSource] = {source_id: FakeSource({}) for source_id in sources or []}
        self.patchable_sources = patchable_sources
        self.calls: list[tuple[Any, ...]] = []
        self.handlers: dict[tuple[str, str | None], list[Callable[..., None]]] = {}
        self.feature_states: dict[str, dict[str, Any]] = {}
        self.cursor = ""
        self.style: Any = None
        self.fail_add_layer: set[str] = set()
        self.fail_add_source: set[str] = set()

    # -- layers ---------------------------------------------------------

    def layer_ids(self) -> list[str]:
        return [layer["id"] for layer in self.layers]

    def get_layer(self, layer_id: str) -> dict[str, Any] | None:
        return next((layer for layer in self.layers if layer["id"] == layer_id), None)

    def add_layer(self, layer: dict[str, Any], before: str | None = None) -> None:
        self.calls.append(("add_layer", layer["id"], before))
        if layer["id"] in self.fail_add_layer:
            raise RenderTargetError("rejected", layer_id=layer["id"])
        if self.get_layer(layer["id"]) is not None:
            raise RenderTargetError("duplicate layer", layer_id=layer["id"])
        ids = self.layer_ids()
        index = ids.index(before) if before in ids else len(ids)
        self.layers.insert(index, dict(layer))

    def remove_layer(self, layer_id: str) -> None:
        self.calls.append(("remove_layer", layer_id))
        self.layers = [layer for layer in self.layers if layer["id"] != layer_id]

    def layer_dependents(self, source_id: str) -> list[str]:
        return [layer["id"] for layer in self.layers if layer.get("source") == source_id]

    # -- sources --------------------------------------------------------

    def source_ids(self) -> set[str]:
        return set(self.sources)

    def get_source(self, source_id: str) -> FakeSource | None:
        return self.sources.get(source_id)

    def add_source(self, source_id: str, spec: dict[str, Any]) -> None:
        self.calls.append(("add_source", source_id))
        if source_id in self.fail_add_source:
            raise RenderTargetError("rejected", source_id=source_id)
        self.sources[source_id] = FakeSource(spec, patchable=self.patchable_sources)

    def remove_source(self, source_id: str) -> None:
        self.calls.append(("remove_source", source_id))
        if self.layer_dependents(source_id):
            raise RenderTargetError("source in use", source_id=source_id)
        self.sources.pop(source_id, None)

    def is_source_loaded(self, source_id: str) -> bool:
        source = self.sources.get(source_id)
        return source is not None and source.loaded()

    # -- feature state --------------------------------------------------

    def get_feature_state(self, feature: FeatureIdentifier) -> dict[str, Any] | None:
        return self.feature_states.get(feature.key)

    def set_feature_state(self, feature: FeatureIdentifier, state: dict[str, Any]) -> None:
        self.calls.append(("set_feature_state", feature.key, dict(state)))
        self.feature_states.setdefault(feature.key, {}).update(state)

    # -- properties -----------------------------------------------------

    def set_layout_property(self, layer_id: str, name: str, value: Any) -> None:
        self.calls.append(("set_layout_property", layer_id, name, value))
        layer = self.get_layer(layer_id)
        if layer is not None:
            layer.setdefault("layout", {})[name] = value

    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None:
        self.calls.append(("set_paint_property", layer_id, name, value))
        layer = self.get_layer(layer_id)
        if layer is not None:
            layer.setdefault("paint", {})[name] = value

    def set_style(self, style: Any) -> None:
        self.calls.append(("set_style", style))
        self.style = style

    def set_cursor(self, cursor: str) -> None:
        self.cursor = cursor

    # -- events ---------------------------------------------------------

    def on(self, event: str, handler: Callable[..., None], layer_id: str | None = None) -> None:
        self.handlers.setdefault((str(event), layer_id), []).append(handler)

    def off(self, event: str, handler: Callable[..., None], layer_id: str | None = None) -> None:
        handlers = self.handlers.get((str(event), layer_id), [])
        if handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event: str, layer_id: str | None = None) -> int:
        return len(self.handlers.get((event, layer_id), []))

    def emit(self, event: str, *args: Any, layer_id: str | None = None) -> None:
        for handler in list(self.handlers.get((event, layer_id), [])):
            handler(*args)

    # -- helpers --------------------------------------------------------

    def mutations(self) -> list[tuple[Any, ...]]:
        """Layer/source mutations only, in call order."""
        kinds = {"add_layer", "remove_layer", "add_source", "remove_source"}
        return [call for call in self.calls if call[0] in kinds]

    def replace_style(self, layers: list[str], sources: list[str] | None = None) -> None:
        """Simulate a style swap: every layer and source is replaced."""
        self.layers = [{"id": layer_id} for layer_id in layers]
        self.sources = {source_id: FakeSource({}) for source_id in sources or []}


@pytest.fixture
def target() -> FakeRenderTarget:
    return FakeRenderTarget(layers=["Water", "Roads", "Country border", "Place labels"], sources=["basemap"])


@pytest.fixture
def make_target() -> Callable[..., FakeRenderTarget]:
    return FakeRenderTarget


@pytest.fixture
def ready_model() -> Callable[..., MapModel]:
    """Attach a fresh model to ``target``, drive it to loaded (and idle), forget the calls."""

    def _make(
        target: FakeRenderTarget,
        *,
        config: MapLayersConfig | None = None,
        style: Any = "streets",
        idle: bool = True,
    ) -> MapModel:
        model = MapModel(config or MapLayersConfig(update_debounce=0, style_debounce=0))
        model.attach(target, style=style)
        target.emit("load")
        if idle:
            target.emit("idle")
        target.calls.clear()
        return model

    return _make
