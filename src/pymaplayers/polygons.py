"""Synthesis of backing layers for declarative polygons."""

from __future__ import annotations

from typing import Any

from pymaplayers import expressions
from pymaplayers.config import MapLayersConfig
from pymaplayers.models.polygon import LineStyle, PolygonConfig
from pymaplayers.target import BackingLayer, SourceSpec

_DASHED: list[float] = [0.2, 2]
_SOLID: list[float] = [1, 0]


def fill_layer_id(polygon_id: str, config: MapLayersConfig) -> str:
    return f"{polygon_id}{config.polygon_fill_suffix}"


def outline_layer_id(polygon_id: str, config: MapLayersConfig) -> str:
    return f"{polygon_id}{config.polygon_outline_suffix}"


def build_polygon_source(polygon: PolygonConfig) -> SourceSpec:
    # Feature id 0 so hover feature-state can address the polygon.
    return {
        "type": "geojson",
        "data": build_polygon_feature(polygon),
    }


def build_polygon_feature(polygon: PolygonConfig) -> dict[str, Any]:
    return {
        "id": 0,
        "type": "Feature",
        "geometry": polygon.geometry,
        "properties": {},
    }


def fill_paint(polygon: PolygonConfig, config: MapLayersConfig) -> dict[str, Any]:
    opacity = polygon.fill_opacity if polygon.fill_opacity is not None else config.polygon_fill_opacity
    fill_opacity: Any = opacity
    if polygon.hover:
        hover_opacity = min(1.0, opacity + config.polygon_hover_opacity_delta)
        fill_opacity = expressions.hover_switch(hover_opacity, opacity)
    return {
        "fill-color": polygon.color,
        "fill-opacity": fill_opacity,
        "fill-antialias": True,
    }


def outline_paint(polygon: PolygonConfig) -> dict[str, Any]:
    return {
        "line-color": polygon.line_color or polygon.color,
        "line-opacity": polygon.line_opacity,
        "line-width": polygon.line_width,
        "line-dasharray": list(_DASHED if polygon.line_style == LineStyle.DASHED else _SOLID),
    }


def build_polygon_fill_layer(polygon_id: str, polygon: PolygonConfig, config: MapLayersConfig) -> BackingLayer:
    return {
        "id": fill_layer_id(polygon_id, config),
        "source": polygon_id,
        "type": "fill",
        "paint": fill_paint(polygon, config),
    }


def build_polygon_outline_layer(polygon_id: str, polygon: PolygonConfig, config: MapLayersConfig) -> BackingLayer:
    return {
        "id": outline_layer_id(polygon_id, config),
        "source": polygon_id,
        "type": "line",
        "layout": {"line-cap": "round", "line-join": "round"},
        "paint": outline_paint(polygon),
    }
