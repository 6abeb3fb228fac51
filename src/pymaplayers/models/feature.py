"""Feature identifiers and rendered features."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from pymaplayers.models._base import MapBaseModel

FeatureId = str | int


class FeatureIdentifier(MapBaseModel):
    """Addresses one feature of a source for feature-state purposes.

    GeoJSON sources have no ``source_layer``; vector tile sources need
    one.
    """

    source: str
    source_layer: str | None = None
    id: FeatureId

    @field_validator("source")
    @classmethod
    def _normalize_source(cls, value: str) -> str:
        source = value.strip()
        if not source:
            raise ValueError("source must be non-empty")
        return source

    @property
    def key(self) -> str:
        """Cache key ``source:source_layer:id``."""
        return f"{self.source}:{self.source_layer or ''}:{self.id}"


class RenderedFeature(MapBaseModel):
    """A feature reported by the render target with a pointer event."""

    id: FeatureId | None = None
    layer_id: str
    source: str | None = None
    source_layer: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)

    @property
    def cycle_key(self) -> str:
        """Key used to cycle through overlapping features on repeated clicks."""
        return f"{self.layer_id}::{self.id}"

    def identifier(self) -> FeatureIdentifier | None:
        """Feature-state address, or ``None`` when the feature has no id/source."""
        if self.source is None or self.id is None:
            return None
        return FeatureIdentifier(source=self.source, source_layer=self.source_layer, id=self.id)
