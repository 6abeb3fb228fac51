"""Feature-state directive store.

Render targets bind feature state to sources: reloading a source drops
every state set on its features.  This store keeps the desired state
per feature, independent of the render target, and re-applies it
whenever the source is (re)loaded.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pymaplayers.models.feature import FeatureIdentifier
from pymaplayers.target import RenderTarget

_logger = logging.getLogger(__name__)

FeatureState = dict[str, Any]
FeatureStateUpdater = Callable[[FeatureState | None], Mapping[str, Any]]

_MISSING = object()


def _state_diff(current: Mapping[str, Any], desired: Mapping[str, Any]) -> FeatureState:
    """Keys of ``desired`` whose value differs from ``current``."""
    return {key: copy.deepcopy(value) for key, value in desired.items() if current.get(key, _MISSING) != value}


@dataclass
class FeatureStateDirective:
    feature: FeatureIdentifier
    state: FeatureState


class FeatureStateStore:
    """In-memory map of ``feature key -> desired state``.

    Given the same sequence of :meth:`set` calls the store always holds
    the same directives; :meth:`sync` only ever sends what the render
    target does not already report.
    """

    def __init__(self) -> None:
        self._directives: dict[str, FeatureStateDirective] = {}

    def __len__(self) -> int:
        return len(self._directives)

    def set(self, feature: FeatureIdentifier, state: Mapping[str, Any] | FeatureStateUpdater) -> FeatureState:
        """Record desired state for ``feature`` and return the merged result.

        A mapping is merged over the existing directive (keys in the
        patch overwrite).  A callable receives a copy of the previous
        state (``None`` for a new feature) and its result replaces it.
        """
        existing = self._directives.get(feature.key)
        previous = copy.deepcopy(existing.state) if existing is not None else None

        if callable(state):
            next_state = dict(state(previous))
        elif previous is not None:
            next_state = {**previous, **copy.deepcopy(dict(state))}
        else:
            next_state = copy.deepcopy(dict(state))

        if existing is not None:
            existing.state = next_state
        else:
            self._directives[feature.key] = FeatureStateDirective(feature=feature, state=next_state)
        return copy.deepcopy(next_state)

    def get(self, feature: FeatureIdentifier) -> FeatureState | None:
        directive = self._directives.get(feature.key)
        if directive is None:
            return None
        return copy.deepcopy(directive.state)

    def sync(self, target: RenderTarget) -> bool:
        """Apply directives whose source is loaded; return whether anything changed.

        A failing ``set_feature_state`` is logged and skipped.
        """
        modified = False
        for directive in list(self._directives.values()):
            if not target.is_source_loaded(directive.feature.source):
                continue

            current = target.get_feature_state(directive.feature) or {}
            diff = _state_diff(current, directive.state)
            if not diff:
                continue

            try:
                target.set_feature_state(directive.feature, diff)
            except Exception:
                _logger.warning("Failed to set feature state for %s", directive.feature.key, exc_info=True)
                continue
            modified = True
        return modified
