"""Layer group ordering.

Groups are named buckets of backing layers positioned ``above`` or
``below`` an anchor: another group, the top/bottom of the stack, the
style's background, or a literal layer id.  This module turns such a
rule into a concrete "insert before <layer id>" for each new layer.

Layers of a group that already has members on the render target are
always appended right after the group's current top-most member, so
group members are never interleaved with other groups.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from pymaplayers.exceptions import CircularGroupReferenceError
from pymaplayers.models.ordering import BACKGROUND, UNASSIGNED_GROUP, WILDCARD, LayerGroupOrdering
from pymaplayers.target import BackgroundLayerResolver, BackingLayer, default_background_layer

_logger = logging.getLogger(__name__)


class GroupBounds(NamedTuple):
    """Half-open index range ``[start, end)`` a group occupies."""

    start: int
    end: int


@dataclass(frozen=True, slots=True)
class CircularReference:
    chain: tuple[str, ...]


BoundsResult = GroupBounds | CircularReference


@dataclass
class LayerGroup:
    name: str
    ordering: LayerGroupOrdering
    layers: list[BackingLayer] = field(default_factory=list)

    def layer_ids(self) -> list[str]:
        return [layer["id"] for layer in self.layers]


@dataclass
class _ResolutionPass:
    """Snapshot of the layer order plus the bounds memo for one pass."""

    layers: list[str]
    cache: dict[str, GroupBounds] = field(default_factory=dict)

    def index_of(self, layer_id: str) -> int:
        try:
            return self.layers.index(layer_id)
        except ValueError:
            return -1


class MapLayersOrdering:
    """Registry of layer groups and resolver of insertion points."""

    def __init__(
        self,
        get_style: Callable[[], Any],
        get_layers: Callable[[], list[str]],
        add_map_layer: Callable[[BackingLayer, str | None], None],
        remove_map_layer: Callable[[str], None],
        *,
        background_layer: BackgroundLayerResolver = default_background_layer,
    ) -> None:
        self._get_style = get_style
        self._get_layers = get_layers
        self._add_map_layer = add_map_layer
        self._remove_map_layer = remove_map_layer
        self._background_layer = background_layer

        self._groups: dict[str, LayerGroup] = {}
        self._unassigned = LayerGroup(name=UNASSIGNED_GROUP, ordering=LayerGroupOrdering.top())

    # ------------------------------------------------------------------
    # Group registry
    # ------------------------------------------------------------------

    def add_group(self, name: str, ordering: LayerGroupOrdering) -> None:
        if name == UNASSIGNED_GROUP:
            raise ValueError(f"{UNASSIGNED_GROUP!r} is reserved")
        existing = self._groups.get(name)
        layers = existing.layers if existing is not None else []
        self._groups[name] = LayerGroup(name=name, ordering=ordering, layers=layers)

    def remove_group(self, name: str) -> None:
        self._groups.pop(name, None)

    def has_group(self, name: str) -> bool:
        return name in self._groups

    def get_group(self, name: str | None) -> LayerGroup:
        """Look up a group; unknown names fall back to the unassigned group."""
        if name is None or name == UNASSIGNED_GROUP:
            return self._unassigned
        group = self._groups.get(name)
        if group is not None:
            return group
        _logger.debug("Layer group %r not registered; using %s", name, UNASSIGNED_GROUP)
        return self._unassigned

    def group_of(self, layer_id: str) -> LayerGroup | None:
        for group in self._all_groups():
            if layer_id in group.layer_ids():
                return group
        return None

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def add_layer(self, layer: BackingLayer, group: str | None = None) -> bool:
        """Declare ``layer`` in ``group`` and insert missing group layers.

        Returns whether ``layer`` is present on the render target
        afterwards.  A rejected insert is logged and does not prevent
        the remaining group members from being inserted.

        Raises
        ------
        CircularGroupReferenceError
            When the group's ordering references itself through a chain
            of groups.
        """
        target_group = self.get_group(group)
        target_group.layers = [it for it in target_group.layers if it["id"] != layer["id"]]
        target_group.layers.append(layer)

        resolution = _ResolutionPass(layers=list(self._get_layers()))
        bounds = self._bounds_or_raise(target_group, resolution)

        # New layers always go to the top of the group, wherever the group sits.
        insert_before = resolution.layers[bounds.end] if bounds.end < len(resolution.layers) else None

        present = False
        for member in target_group.layers:
            if member["id"] in resolution.layers:
                present = present or member["id"] == layer["id"]
                continue
            try:
                self._add_map_layer(member, insert_before)
            except Exception:
                _logger.warning("Failed to add layer %s", member["id"], exc_info=True)
                continue
            present = present or member["id"] == layer["id"]
        return present

    def forget(self, layer_id: str) -> None:
        """Drop ``layer_id`` from its group without touching the render target."""
        for group in self._all_groups():
            if layer_id in group.layer_ids():
                group.layers = [it for it in group.layers if it["id"] != layer_id]
                break

    def remove_layer(self, layer_id: str) -> None:
        """Forget ``layer_id`` and remove it from the render target if present."""
        self.forget(layer_id)
        if layer_id not in self._get_layers():
            return
        self._remove_map_layer(layer_id)

    # ------------------------------------------------------------------
    # Bounds resolution
    # ------------------------------------------------------------------

    def get_group_bounds(self, name: str) -> GroupBounds:
        """Bounds of ``name`` against the render target's current layer order."""
        resolution = _ResolutionPass(layers=list(self._get_layers()))
        return self._bounds_or_raise(self.get_group(name), resolution)

    def _bounds_or_raise(self, group: LayerGroup, resolution: _ResolutionPass) -> GroupBounds:
        result = self._resolve_bounds(group, (), resolution)
        if isinstance(result, CircularReference):
            raise CircularGroupReferenceError(result.chain)
        return result

    def _resolve_bounds(self, group: LayerGroup, chain: tuple[str, ...], resolution: _ResolutionPass) -> BoundsResult:
        cached = resolution.cache.get(group.name)
        if cached is not None:
            return cached
        if group.name in chain:
            return CircularReference((*chain, group.name))
        chain = (*chain, group.name)

        indexes = [index for index in map(resolution.index_of, group.layer_ids()) if index != -1]
        if indexes:
            bounds = GroupBounds(min(indexes), max(indexes) + 1)
            resolution.cache[group.name] = bounds
            return bounds

        # First layer of this group; resolve where the group starts.
        result = self._resolve_insertion_index(group, chain, resolution)
        if isinstance(result, CircularReference):
            return result
        bounds = GroupBounds(result, result)
        resolution.cache[group.name] = bounds
        return bounds

    def _resolve_insertion_index(
        self,
        group: LayerGroup,
        chain: tuple[str, ...],
        resolution: _ResolutionPass,
    ) -> int | CircularReference:
        ordering = group.ordering
        above = ordering.direction == "above"
        reference = ordering.reference

        if reference == WILDCARD:
            return len(resolution.layers) if above else 0

        referenced_group = ordering.group_reference
        if referenced_group is not None:
            result = self._resolve_bounds(self.get_group(referenced_group), chain, resolution)
            if isinstance(result, CircularReference):
                return result
            return result.end if above else result.start

        layer_id = reference
        if reference == BACKGROUND:
            layer_id = self._background_layer(self._get_style()) or reference

        index = resolution.index_of(layer_id)
        if index != -1:
            return index + 1 if above else index

        _logger.debug(
            "Anchor layer %r for group %r not present; placing group %s",
            layer_id,
            group.name,
            "on top" if above else "at the bottom",
        )
        return len(resolution.layers) if above else 0

    def _all_groups(self) -> list[LayerGroup]:
        return [*self._groups.values(), self._unassigned]
