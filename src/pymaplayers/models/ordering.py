"""Layer group ordering rules."""

from __future__ import annotations

from typing import Literal

from pydantic import model_validator

from pymaplayers.models._base import MapBaseModel

#: Prefix marking a specifier as a reference to another layer group.
GROUP_PREFIX = "group:"
#: Absolute top (``above``) or bottom (``below``) of the layer stack.
WILDCARD = "*"
#: Symbolic anchor resolved through the background-layer hook.
BACKGROUND = "$background"
#: Name of the implicit group that collects layers without a group.
UNASSIGNED_GROUP = "$unassigned"


class LayerGroupOrdering(MapBaseModel):
    """Where a layer group sits in the render target's layer stack.

    Exactly one of ``above`` / ``below`` must be given.  The value is a
    specifier: ``group:<name>``, ``*``, ``$background`` or a literal
    render-target layer id.
    """

    above: str | None = None
    below: str | None = None

    @model_validator(mode="after")
    def _exactly_one_direction(self) -> LayerGroupOrdering:
        if (self.above is None) == (self.below is None):
            raise ValueError("exactly one of 'above' or 'below' must be set")
        specifier = self.above if self.above is not None else self.below
        if not specifier:
            raise ValueError("ordering specifier must be non-empty")
        if specifier.startswith(GROUP_PREFIX) and len(specifier) == len(GROUP_PREFIX):
            raise ValueError("group specifier must name a group")
        return self

    @property
    def direction(self) -> Literal["above", "below"]:
        return "above" if self.above is not None else "below"

    @property
    def reference(self) -> str:
        if self.above is not None:
            return self.above
        if self.below is not None:
            return self.below
        raise ValueError("ordering has neither 'above' nor 'below'")

    @property
    def group_reference(self) -> str | None:
        """Referenced group name for ``group:<name>`` specifiers."""
        if self.reference.startswith(GROUP_PREFIX):
            return self.reference[len(GROUP_PREFIX) :]
        return None

    @classmethod
    def top(cls) -> LayerGroupOrdering:
        return cls(above=WILDCARD)

    @classmethod
    def bottom(cls) -> LayerGroupOrdering:
        return cls(below=WILDCARD)

    @classmethod
    def above_group(cls, name: str) -> LayerGroupOrdering:
        return cls(above=f"{GROUP_PREFIX}{name}")

    @classmethod
    def below_group(cls, name: str) -> LayerGroupOrdering:
        return cls(below=f"{GROUP_PREFIX}{name}")
