"""Base model for pymaplayers value types.

Every declarative value handed to the engine (orderings, feature
identifiers, polygon configs, rendered features) inherits from
:class:`MapBaseModel` which provides:

* ``frozen=True`` so values can be compared and cached safely; the
  engine relies on equality to detect "nothing changed".
* ``extra="forbid"`` so typos in keyword arguments fail loudly instead
  of silently falling back to defaults.
* ``alias_generator=to_camel`` with ``populate_by_name`` so both
  snake_case field names and camelCase keys (``sourceLayer``) validate.
"""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Style-spec key spellings that are neither snake_case nor camelCase.
COMMON_KEY_ALIASES: dict[str, str] = {
    "source-layer": "source_layer",
}


class MapBaseModel(BaseModel):
    """Base for immutable engine value types."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @classmethod
    def from_mapping(cls, values: dict[str, Any]) -> Self:
        """Build an instance from a style-spec mapping.

        Applies :data:`COMMON_KEY_ALIASES` before validation so
        kebab-case keys as used in layer definitions (``source-layer``)
        validate too.
        """
        working = dict(values)
        for old_key, new_key in COMMON_KEY_ALIASES.items():
            if old_key in working and new_key not in working:
                working[new_key] = working.pop(old_key)
        return cls.model_validate(working)
