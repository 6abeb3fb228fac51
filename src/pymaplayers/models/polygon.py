"""Declarative polygon shapes."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator

from pymaplayers.models._base import MapBaseModel


class LineStyle(StrEnum):
    SOLID = "solid"
    DASHED = "dashed"


class PolygonConfig(MapBaseModel):
    """A GeoJSON polygon materialized as a fill + outline layer pair.

    ``fill_opacity`` falls back to the engine configuration when unset.
    ``line_color`` falls back to ``color``.
    """

    geometry: dict[str, Any]
    color: str = "#3b82f6"
    fill_opacity: float | None = Field(default=None, ge=0.0, le=1.0)
    line_color: str | None = None
    line_opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    line_width: float = Field(default=1.0, ge=0.0)
    line_style: LineStyle = LineStyle.SOLID
    hover: bool = False

    @field_validator("geometry")
    @classmethod
    def _require_geometry_type(cls, value: dict[str, Any]) -> dict[str, Any]:
        if "type" not in value:
            raise ValueError("geometry must be a GeoJSON geometry with a 'type'")
        return value
