"""Value types used by the reconciliation engine."""

from pymaplayers.models._base import MapBaseModel
from pymaplayers.models.feature import FeatureId, FeatureIdentifier, RenderedFeature
from pymaplayers.models.ordering import (
    BACKGROUND,
    GROUP_PREFIX,
    UNASSIGNED_GROUP,
    WILDCARD,
    LayerGroupOrdering,
)
from pymaplayers.models.polygon import LineStyle, PolygonConfig
from pymaplayers.models.status import MapStatus

__all__ = [
    "BACKGROUND",
    "GROUP_PREFIX",
    "UNASSIGNED_GROUP",
    "WILDCARD",
    "FeatureId",
    "FeatureIdentifier",
    "LayerGroupOrdering",
    "LineStyle",
    "MapBaseModel",
    "MapStatus",
    "PolygonConfig",
    "RenderedFeature",
]
