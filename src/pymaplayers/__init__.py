"""pymaplayers - Declarative layer ordering and reconciliation for map render targets."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pymaplayers")
except PackageNotFoundError:
    __version__ = "0+local"
from pymaplayers.config import MapLayersConfig
from pymaplayers.exceptions import (
    CircularGroupReferenceError,
    MapLayersConfigError,
    MapLayersError,
    MapNotAttachedError,
    RenderTargetError,
)
from pymaplayers.interaction import LayerClickListener, LayerMouseEvent
from pymaplayers.model import MapModel
from pymaplayers.models import (
    FeatureIdentifier,
    LayerGroupOrdering,
    LineStyle,
    MapStatus,
    PolygonConfig,
    RenderedFeature,
)
from pymaplayers.operation_queue import OperationContext, OperationQueue
from pymaplayers.ordering import GroupBounds, LayerGroup, MapLayersOrdering
from pymaplayers.target import MapEvent, RenderSource, RenderTarget, default_background_layer

__all__ = [
    "__version__",
    "CircularGroupReferenceError",
    "FeatureIdentifier",
    "GroupBounds",
    "LayerClickListener",
    "LayerGroup",
    "LayerGroupOrdering",
    "LayerMouseEvent",
    "LineStyle",
    "MapEvent",
    "MapLayersConfig",
    "MapLayersConfigError",
    "MapLayersError",
    "MapLayersOrdering",
    "MapModel",
    "MapNotAttachedError",
    "MapStatus",
    "OperationContext",
    "OperationQueue",
    "PolygonConfig",
    "RenderSource",
    "RenderTarget",
    "RenderedFeature",
    "RenderTargetError",
    "default_background_layer",
]
