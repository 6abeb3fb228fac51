"""Declarative layer model that reconciles a render target."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pymaplayers._timer import Debouncer
from pymaplayers.config import MapLayersConfig
from pymaplayers.exceptions import MapLayersError, MapNotAttachedError
from pymaplayers.feature_state import FeatureState, FeatureStateStore, FeatureStateUpdater
from pymaplayers.interaction import LayerClickListener, LayerInteraction
from pymaplayers.models.feature import FeatureIdentifier
from pymaplayers.models.ordering import LayerGroupOrdering
from pymaplayers.models.polygon import PolygonConfig
from pymaplayers.models.status import MapStatus
from pymaplayers.operation_queue import OperationContext, OperationQueue
from pymaplayers.ordering import MapLayersOrdering
from pymaplayers.polygons import (
    build_polygon_feature,
    build_polygon_fill_layer,
    build_polygon_outline_layer,
    build_polygon_source,
    fill_layer_id,
    outline_layer_id,
)
from pymaplayers.target import (
    BackgroundLayerResolver,
    BackingLayer,
    MapEvent,
    RenderTarget,
    SourceSpec,
    default_background_layer,
    supports_data_patching,
    supports_tile_patching,
)

_logger = logging.getLogger(__name__)

Disposer = Callable[[], None]


def _noop() -> None:
    return None


def _when_loaded(context: OperationContext) -> bool:
    return context.model.loaded


def _when_idle(context: OperationContext) -> bool:
    return context.model.idle


@dataclass(frozen=True, slots=True)
class _DeclaredLayer:
    parent_name: str
    layer: BackingLayer
    group: str | None


class MapModel:
    """Keeps a render target in sync with declared layers, sources and groups.

    Usage::

        model = MapModel(MapLayersConfig())
        model.attach(target, style="streets")
        model.register_group("overlays", LayerGroupOrdering(above="$background"))
        model.ensure_source("parcels", "https://tiles.example/{z}/{x}/{y}.pbf", {"type": "vector"})
        model.ensure_layer("parcels", {"id": "parcels-fill", "source": "parcels", ...}, group="overlays")

    Every mutation schedules one debounced reconciliation pass (see
    :attr:`MapLayersConfig.update_debounce`), so debounced work needs a
    running event loop (or one passed as ``loop``).  Without one, mutators
    raise :class:`MapLayersError` before changing any declared state.
    Work that needs the render target to be loaded or idle is deferred
    through :attr:`operation_queue` and replayed on the matching
    lifecycle event.
    """

    def __init__(
        self,
        config: MapLayersConfig | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        background_layer: BackgroundLayerResolver = default_background_layer,
    ) -> None:
        self._config = config or MapLayersConfig()
        self._target: RenderTarget | None = None
        self._disposed = False

        self._loaded = False
        self._idle = False
        self._initialization_errors: list[BaseException] = []

        self._style: Any = None
        self._current_style: Any = None
        self._awaiting_style = False

        self.operation_queue = OperationQueue(self)
        self._queued: set[str] = set()
        self._sync_timer = Debouncer(loop)
        self._style_timer = Debouncer(loop)
        self._sync_passes = 0

        self._sources: dict[str, tuple[str, SourceSpec]] = {}
        self._layers: dict[str, _DeclaredLayer] = {}
        self._polygons: dict[str, tuple[PolygonConfig, str | None]] = {}
        self._applied_polygons: dict[str, PolygonConfig] = {}
        self._backing_layers: dict[str, tuple[str, BackingLayer]] = {}
        self._unmanaged_layer_ids: set[str] = set()
        self._unmanaged_source_ids: set[str] = set()
        self._labels_visible = True

        self._feature_states = FeatureStateStore()
        self._interaction = LayerInteraction(
            get_target=lambda: self._target,
            set_feature_state=self.set_feature_state,
        )
        self._ordering = MapLayersOrdering(
            get_style=lambda: self._current_style,
            get_layers=self._target_layer_ids,
            add_map_layer=self._add_map_layer,
            remove_map_layer=self._remove_map_layer,
            background_layer=background_layer,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def config(self) -> MapLayersConfig:
        return self._config

    @property
    def target(self) -> RenderTarget:
        if self._target is None:
            raise MapNotAttachedError("No render target attached. Call MapModel.attach() first.")
        return self._target

    @property
    def target_or_none(self) -> RenderTarget | None:
        return self._target

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def idle(self) -> bool:
        return self._idle

    @property
    def initialization_errors(self) -> list[BaseException]:
        return list(self._initialization_errors)

    @property
    def status(self) -> MapStatus:
        if self._initialization_errors:
            return MapStatus.ERROR
        if self._idle:
            return MapStatus.IDLE
        if self._loaded:
            return MapStatus.LOADED
        return MapStatus.UNINITIALIZED

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def sync_passes(self) -> int:
        """Number of reconciliation passes run so far."""
        return self._sync_passes

    @property
    def backing_layer_ids(self) -> list[str]:
        """Ids of render-target layers this model added and still owns."""
        return list(self._backing_layers)

    @property
    def labels_visible(self) -> bool:
        return self._labels_visible

    @property
    def ordering(self) -> MapLayersOrdering:
        return self._ordering

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self, target: RenderTarget, style: Any = None) -> Disposer:
        """Start driving ``target``; returns a disposer that detaches again.

        ``style`` is the style the target was created with, used to
        resolve ``$background`` anchors.
        """
        if self._disposed:
            raise MapLayersError("MapModel has been disposed")
        if target is self._target:
            return self.detach
        if self._target is not None:
            self.detach()

        self._target = target
        if style is not None:
            self._style = style
            self._current_style = style

        target.on(MapEvent.LOAD, self._on_load)
        target.on(MapEvent.IDLE, self._on_idle)
        target.on(MapEvent.SOURCE_DATA, self._on_source_data)
        target.on(MapEvent.STYLE_DATA, self._on_style_data)
        target.on(MapEvent.ERROR, self._on_error)
        return self.detach

    def detach(self) -> None:
        """Stop driving the current target; declared state is kept."""
        target = self._target
        if target is None:
            return

        self._interaction.unbind_all()
        target.off(MapEvent.LOAD, self._on_load)
        target.off(MapEvent.IDLE, self._on_idle)
        target.off(MapEvent.SOURCE_DATA, self._on_source_data)
        target.off(MapEvent.STYLE_DATA, self._on_style_data)
        target.off(MapEvent.ERROR, self._on_error)

        self._interaction.reset()
        self._backing_layers.clear()
        self._applied_polygons.clear()
        self._loaded = False
        self._idle = False
        self._awaiting_style = False
        self._target = None

    def dispose(self) -> None:
        """Tear down for good: cancel timers, discard deferred work, detach."""
        if self._disposed:
            return
        self._sync_timer.cancel()
        self._style_timer.cancel()
        self.operation_queue.dispose()
        self.detach()
        self._disposed = True

    def flush(self) -> None:
        """Run pending debounced work now and replay ready operations."""
        self._style_timer.flush()
        self._sync_timer.flush()
        self.operation_queue.flush()

    def _on_load(self, *_: Any) -> None:
        if self._loaded:
            return
        self._loaded = True
        _logger.debug("Render target loaded")

        self._derive_unmanaged_ids()
        self.sync_feature_states()
        self.sync_backing_layers()
        self.sync_label_visibility()
        self.operation_queue.flush()

    def _on_idle(self, *_: Any) -> None:
        if self._idle:
            return
        self._idle = True
        _logger.debug("Render target idle")
        self.operation_queue.flush()

    def _on_source_data(self, *_: Any) -> None:
        self.sync_feature_states()

    def _on_style_data(self, *_: Any) -> None:
        if not self._awaiting_style:
            return
        self._awaiting_style = False
        _logger.debug("Style replaced; re-deriving unmanaged layers")

        # The new style dropped every layer we added.
        self._backing_layers.clear()
        self._applied_polygons.clear()
        self._derive_unmanaged_ids()
        self.sync_backing_layers()
        self.sync_label_visibility()

    def _on_error(self, error: BaseException | None = None, *_: Any) -> None:
        if not self._idle:
            self._initialization_errors.append(error or MapLayersError("Render target failed to initialize"))
            return
        _logger.error("Render target error: %s", error)

    def _derive_unmanaged_ids(self) -> None:
        target = self._target
        if target is None:
            return
        self._unmanaged_layer_ids = set(target.layer_ids())
        self._unmanaged_source_ids = set(target.source_ids())

    def _queue_once(self, key: str, condition: Callable[[OperationContext], bool], fn: Callable[[], None]) -> None:
        """Queue ``fn`` unless an identical deferred call is already waiting."""
        if key in self._queued:
            return
        self._queued.add(key)
        self.operation_queue.add(condition, self._run_queued, (key, fn))

    def _run_queued(self, key: str, fn: Callable[[], None]) -> None:
        self._queued.discard(key)
        fn()

    # ------------------------------------------------------------------
    # Style
    # ------------------------------------------------------------------

    def set_map_style(self, style: Any) -> None:
        if style == self._style:
            return
        self._require_loop()
        self._style = style
        self._style_timer.debounce(self._sync_map_style, self._config.style_debounce)

    def _sync_map_style(self) -> None:
        self._queue_once("style", _when_loaded, self._apply_map_style)

    def _apply_map_style(self) -> None:
        target = self._target
        if target is None or self._style == self._current_style:
            return

        self._current_style = self._style
        self._awaiting_style = True
        target.set_style(self._style)

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def ensure_source(self, source_id: str, url: str, spec: Mapping[str, Any]) -> Disposer:
        """Declare a tiled source; returns a disposer removing it again.

        An unchanged URL is a no-op.  A changed URL is patched in place
        when the render target's source supports it, otherwise the source
        and its dependent layers are reloaded.
        """
        previous = self._sources.get(source_id)
        if previous is not None and previous[0] == url:
            return lambda: self.remove_source(source_id)

        self._require_loop()
        existing = self._target.get_source(source_id) if self._target is not None else None
        self._sources[source_id] = (url, dict(spec))

        if previous is None:
            self.schedule_sync()
        elif not self._patch_tiles(source_id, existing, url):
            self._reload_source(source_id)

        return lambda: self.remove_source(source_id)

    def remove_source(self, source_id: str) -> None:
        if source_id not in self._sources:
            return
        self._require_loop()
        del self._sources[source_id]
        self.schedule_sync()

    def reload_source(self, source_id: str, url: str | None = None) -> None:
        """Reload a declared source, optionally switching to ``url``."""
        entry = self._sources.get(source_id)
        if entry is None:
            return
        self._require_loop()
        if url is not None:
            self._sources[source_id] = (url, entry[1])

        existing = self._target.get_source(source_id) if self._target is not None else None
        if self._patch_tiles(source_id, existing, self._sources[source_id][0]):
            return
        self._reload_source(source_id)

    def _patch_tiles(self, source_id: str, source: Any, url: str) -> bool:
        if not supports_tile_patching(source):
            return False
        _logger.debug("PATCH tiles %s (url=%s)", source_id, url)
        return self._guarded("patch tiles of", source_id, source.set_tiles, [url])

    def _reload_source(self, source_id: str) -> None:
        target = self._target
        if target is not None and target.get_source(source_id) is not None:
            _logger.debug("RELOAD source %s", source_id)
            # Layers reading from the source block its removal.
            for layer_id in target.layer_dependents(source_id):
                if layer_id in self._unmanaged_layer_ids:
                    continue
                self._interaction.unbind(layer_id)
                self._backing_layers.pop(layer_id, None)
                self._guarded("remove layer", layer_id, self._ordering.remove_layer, layer_id)
            self._guarded("remove source", source_id, target.remove_source, source_id)

        self.schedule_sync()

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def ensure_layer(self, parent_name: str, layer: Mapping[str, Any], *, group: str | None = None) -> Disposer:
        """Declare a backing layer; returns a disposer removing it again.

        Idempotent: an id that is already declared is left untouched and
        the returned disposer does nothing.
        """
        layer_id = layer.get("id")
        if not layer_id:
            raise ValueError("backing layer must have an 'id'")

        if layer_id in self._layers:
            # Owned by whoever declared it first.
            return _noop

        self._require_loop()
        self._layers[layer_id] = _DeclaredLayer(parent_name=parent_name, layer=dict(layer), group=group)
        self.schedule_sync()
        return lambda: self.remove_layer(layer_id)

    def remove_layer(self, layer_id: str) -> None:
        if layer_id not in self._layers:
            return
        self._require_loop()
        del self._layers[layer_id]
        # A layer that never reached the target must not be re-inserted with its group.
        self._ordering.forget(layer_id)
        self.schedule_sync()

    def update_layer_paint(self, layer_id: str, paint: Mapping[str, Any]) -> None:
        target = self._target
        if target is None or target.get_layer(layer_id) is None:
            return
        for name, value in paint.items():
            self._guarded("set paint on", layer_id, target.set_paint_property, layer_id, name, value)

    # ------------------------------------------------------------------
    # Polygons
    # ------------------------------------------------------------------

    def add_polygon(self, polygon_id: str, polygon: PolygonConfig, *, group: str | None = None) -> Disposer:
        self._require_loop()
        self._polygons[polygon_id] = (polygon, group)
        self.schedule_sync()
        return lambda: self.remove_polygon(polygon_id)

    def remove_polygon(self, polygon_id: str) -> None:
        if polygon_id not in self._polygons:
            return
        self._require_loop()
        del self._polygons[polygon_id]
        self._applied_polygons.pop(polygon_id, None)
        self._ordering.forget(fill_layer_id(polygon_id, self._config))
        self._ordering.forget(outline_layer_id(polygon_id, self._config))
        self.schedule_sync()

    # ------------------------------------------------------------------
    # Layer groups
    # ------------------------------------------------------------------

    def register_group(self, name: str, ordering: LayerGroupOrdering | Mapping[str, str]) -> Disposer:
        if not isinstance(ordering, LayerGroupOrdering):
            ordering = LayerGroupOrdering.model_validate(dict(ordering))
        self._require_loop()
        self._ordering.add_group(name, ordering)
        self.schedule_sync()
        return lambda: self.unregister_group(name)

    def unregister_group(self, name: str) -> None:
        if not self._ordering.has_group(name):
            return
        self._require_loop()
        self._ordering.remove_group(name)
        self.schedule_sync()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _require_loop(self) -> None:
        """Fail before touching desired state when debounced work cannot be scheduled."""
        if not self._disposed:
            self._sync_timer.require_loop()

    def schedule_sync(self) -> None:
        """Coalesce mutations into one debounced reconciliation pass."""
        if self._disposed:
            return
        self._sync_timer.debounce(self.sync_backing_layers, self._config.update_debounce)

    def sync_backing_layers(self) -> None:
        """Reconcile now, or as soon as the render target is loaded."""
        self._queue_once("sync", _when_loaded, self._sync_backing_layers)

    def _sync_backing_layers(self) -> None:
        target = self._target
        if target is None:
            return

        self._sync_passes += 1
        _logger.debug("SYNC pass=%d", self._sync_passes)

        # Ordered sets: removals follow render-target order.
        remaining_sources = dict.fromkeys(sorted(i for i in target.source_ids() if i not in self._unmanaged_source_ids))
        remaining_layers = dict.fromkeys(i for i in target.layer_ids() if i not in self._unmanaged_layer_ids)

        self._ensure_tile_sources(target, remaining_sources)
        self._ensure_tile_layers(remaining_layers)
        self._ensure_polygon_sources(target, remaining_sources)
        self._ensure_polygon_layers(remaining_layers)
        self._remove_remaining_layers(remaining_layers)
        self._remove_remaining_sources(target, remaining_sources)

    def _ensure_tile_sources(self, target: RenderTarget, remaining: dict[str, None]) -> None:
        for source_id, (url, spec) in list(self._sources.items()):
            if source_id in remaining:
                remaining.pop(source_id)
                continue
            _logger.debug("  ADD source %s (url=%s)", source_id, url)
            self._guarded("add source", source_id, target.add_source, source_id, {**spec, "tiles": [url]})

    def _ensure_tile_layers(self, remaining: dict[str, None]) -> None:
        for declared in list(self._layers.values()):
            self._ensure_backing_layer(declared.parent_name, declared.layer, declared.group, remaining)

    def _ensure_polygon_sources(self, target: RenderTarget, remaining: dict[str, None]) -> None:
        for polygon_id, (polygon, _group) in list(self._polygons.items()):
            if polygon_id not in remaining:
                _logger.debug("  ADD polygon source %s", polygon_id)
                self._guarded("add source", polygon_id, target.add_source, polygon_id, build_polygon_source(polygon))
                continue

            remaining.pop(polygon_id)
            applied = self._applied_polygons.get(polygon_id)
            if applied is None or applied == polygon:
                continue
            source = target.get_source(polygon_id)
            if supports_data_patching(source):
                self._guarded("patch data of", polygon_id, source.set_data, build_polygon_feature(polygon))

    def _ensure_polygon_layers(self, remaining: dict[str, None]) -> None:
        for polygon_id, (polygon, group) in list(self._polygons.items()):
            changed = self._applied_polygons.get(polygon_id) not in (None, polygon)
            for layer in (
                build_polygon_fill_layer(polygon_id, polygon, self._config),
                build_polygon_outline_layer(polygon_id, polygon, self._config),
            ):
                if changed and layer["id"] in remaining:
                    self.update_layer_paint(layer["id"], layer["paint"])
                self._ensure_backing_layer(polygon_id, layer, group, remaining)
            self._applied_polygons[polygon_id] = polygon

    def _ensure_backing_layer(
        self,
        parent_name: str,
        layer: BackingLayer,
        group: str | None,
        remaining: dict[str, None],
    ) -> None:
        layer_id = layer["id"]
        if layer_id in remaining:
            remaining.pop(layer_id)
            self._backing_layers.setdefault(layer_id, (parent_name, layer))
            return

        _logger.debug("  ADD layer %s (source=%s)", layer_id, layer.get("source"))
        # Group resolution errors are configuration bugs and propagate.
        if not self._ordering.add_layer(layer, group):
            return
        self._backing_layers[layer_id] = (parent_name, layer)
        self._bind_interaction(layer_id)

    def _remove_remaining_layers(self, remaining: dict[str, None]) -> None:
        for layer_id in remaining:
            _logger.debug("  REMOVE layer %s", layer_id)
            self._interaction.unbind(layer_id)
            self._backing_layers.pop(layer_id, None)
            self._guarded("remove layer", layer_id, self._ordering.remove_layer, layer_id)

    def _remove_remaining_sources(self, target: RenderTarget, remaining: dict[str, None]) -> None:
        for source_id in remaining:
            _logger.debug("  REMOVE source %s", source_id)
            self._guarded("remove source", source_id, target.remove_source, source_id)

    def _guarded(self, action: str, subject: str, fn: Callable[..., Any], *args: Any) -> bool:
        """Run one render-target mutation; log and continue on failure."""
        try:
            fn(*args)
        except Exception:
            _logger.warning("Failed to %s %s", action, subject, exc_info=True)
            return False
        return True

    def _target_layer_ids(self) -> list[str]:
        if self._target is None:
            return []
        return self._target.layer_ids()

    def _add_map_layer(self, layer: BackingLayer, before: str | None) -> None:
        self.target.add_layer(layer, before)

    def _remove_map_layer(self, layer_id: str) -> None:
        self.target.remove_layer(layer_id)

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    def add_layer_click_listener(self, layer_id: str, listener: LayerClickListener) -> Disposer:
        """Call ``listener(event, feature)`` when a feature of ``layer_id`` is clicked."""
        self._interaction.unbind(layer_id)
        self._interaction.set_listener(layer_id, listener)
        self._bind_interaction(layer_id)
        return lambda: self._interaction.remove_listener(layer_id)

    def add_polygon_click_listener(self, polygon_id: str, listener: LayerClickListener) -> Disposer:
        return self.add_layer_click_listener(fill_layer_id(polygon_id, self._config), listener)

    def _bind_interaction(self, layer_id: str) -> None:
        self.operation_queue.add(_when_idle, self._interaction.bind, (layer_id,))

    # ------------------------------------------------------------------
    # Feature state
    # ------------------------------------------------------------------

    def set_feature_state(
        self,
        feature: FeatureIdentifier | Mapping[str, Any],
        state: Mapping[str, Any] | FeatureStateUpdater,
    ) -> None:
        """Record desired feature state and apply it once the source is loaded.

        The state survives source reloads: it is re-applied every time
        the render target reports source data.
        """
        if not isinstance(feature, FeatureIdentifier):
            feature = FeatureIdentifier.from_mapping(dict(feature))
        self._feature_states.set(feature, state)
        self.sync_feature_states()

    def get_feature_state(self, feature: FeatureIdentifier) -> FeatureState | None:
        """Desired state recorded for ``feature`` (not what the target reports)."""
        return self._feature_states.get(feature)

    def sync_feature_states(self) -> None:
        self._queue_once("feature_states", _when_loaded, self._sync_feature_states)

    def _sync_feature_states(self) -> None:
        target = self._target
        if target is None:
            return
        if self._feature_states.sync(target):
            self._force_repaint(target)

    def _force_repaint(self, target: RenderTarget) -> None:
        # Toggle visibility so paint depending on feature-state is re-evaluated.
        for layer_id in list(self._backing_layers):
            self._guarded("hide", layer_id, target.set_layout_property, layer_id, "visibility", "none")
            self._guarded("show", layer_id, target.set_layout_property, layer_id, "visibility", "visible")

    # ------------------------------------------------------------------
    # Label visibility
    # ------------------------------------------------------------------

    def set_labels_visible(self, visible: bool) -> None:
        self._labels_visible = visible
        self.sync_label_visibility()

    def sync_label_visibility(self) -> None:
        self._queue_once("labels", _when_loaded, self._sync_label_visibility)

    def _sync_label_visibility(self) -> None:
        target = self._target
        if target is None:
            return
        visibility = "visible" if self._labels_visible else "none"
        for layer_id in target.layer_ids():
            if layer_id.endswith(self._config.label_layer_suffix):
                self._guarded("set visibility on", layer_id, target.set_layout_property, layer_id, "visibility", visibility)
