"""Engine configuration for pymaplayers."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pymaplayers.exceptions import MapLayersConfigError


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    value = env.get(key)
    if value is None:
        return None
    try:
        return float(value.strip())
    except ValueError as exc:
        raise MapLayersConfigError(f"{key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class MapLayersConfig:
    """Engine configuration.

    Parameters
    ----------
    update_debounce : float
        Seconds to wait after the last layer/source/group mutation before
        running a single reconciliation pass.
    style_debounce : float
        Seconds to wait after the last ``set_map_style`` call before the
        style is pushed to the render target.
    polygon_fill_opacity : float
        Default fill opacity for polygons that do not set one.
    polygon_hover_opacity_delta : float
        Added to the fill opacity while a polygon with ``hover=True`` is
        hovered.
    label_layer_suffix : str
        Render-target layers whose id ends with this suffix are treated
        as label layers by ``set_labels_visible``.
    polygon_fill_suffix : str
        Suffix appended to a polygon id to form its fill layer id.
    polygon_outline_suffix : str
        Suffix appended to a polygon id to form its outline layer id.
    """

    update_debounce: float = 0.016
    style_debounce: float = 0.016
    polygon_fill_opacity: float = 0.6
    polygon_hover_opacity_delta: float = 0.1
    label_layer_suffix: str = " labels"
    polygon_fill_suffix: str = ":fill"
    polygon_outline_suffix: str = ":outline"

    def __post_init__(self) -> None:
        if self.update_debounce < 0:
            raise MapLayersConfigError("update_debounce must be >= 0")
        if self.style_debounce < 0:
            raise MapLayersConfigError("style_debounce must be >= 0")
        if self.polygon_fill_suffix == self.polygon_outline_suffix:
            raise MapLayersConfigError("polygon fill and outline suffixes must differ")

    @classmethod
    def from_env(cls, **overrides: Any) -> MapLayersConfig:
        """Create configuration from environment variables.

        Reads ``MAPLAYERS_UPDATE_DEBOUNCE``, ``MAPLAYERS_STYLE_DEBOUNCE``,
        ``MAPLAYERS_POLYGON_FILL_OPACITY``,
        ``MAPLAYERS_POLYGON_HOVER_OPACITY_DELTA`` and
        ``MAPLAYERS_LABEL_LAYER_SUFFIX``. Explicit keyword arguments
        override environment values.

        Returns
        -------
        MapLayersConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_FLOAT_MAP = {
            "MAPLAYERS_UPDATE_DEBOUNCE": "update_debounce",
            "MAPLAYERS_STYLE_DEBOUNCE": "style_debounce",
            "MAPLAYERS_POLYGON_FILL_OPACITY": "polygon_fill_opacity",
            "MAPLAYERS_POLYGON_HOVER_OPACITY_DELTA": "polygon_hover_opacity_delta",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            if field_name in overrides:
                continue
            val = _env_float(env, env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # Suffix is used verbatim; leading whitespace is significant.
        suffix = env.get("MAPLAYERS_LABEL_LAYER_SUFFIX")
        if suffix is not None and "label_layer_suffix" not in overrides:
            config_kwargs["label_layer_suffix"] = suffix

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
