from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pymaplayers.feature_state import FeatureStateStore
from pymaplayers.models.feature import FeatureIdentifier

_FEATURE = FeatureIdentifier(source="basemap", source_layer="parcels", id=1)


def test_set_merges_mapping_into_existing_state() -> None:
    store = FeatureStateStore()

    assert store.set(_FEATURE, {"selected": True}) == {"selected": True}
    assert store.set(_FEATURE, {"hover": True}) == {"selected": True, "hover": True}
    assert store.set(_FEATURE, {"selected": False}) == {"selected": False, "hover": True}
    assert len(store) == 1


def test_set_with_updater_replaces_state() -> None:
    store = FeatureStateStore()
    seen: list[Any] = []

    def updater(previous: dict[str, Any] | None) -> dict[str, Any]:
        seen.append(previous)
        return {"count": (previous or {}).get("count", 0) + 1}

    store.set(_FEATURE, updater)
    store.set(_FEATURE, updater)

    assert seen == [None, {"count": 1}]
    assert store.get(_FEATURE) == {"count": 2}


def test_get_returns_copy() -> None:
    store = FeatureStateStore()
    store.set(_FEATURE, {"tags": ["a"]})

    state = store.get(_FEATURE)
    assert state is not None
    state["tags"].append("b")

    assert store.get(_FEATURE) == {"tags": ["a"]}
    assert store.get(FeatureIdentifier(source="other", id=1)) is None


def test_sync_sends_diff_once(make_target: Callable[..., Any]) -> None:
    target = make_target(sources=["basemap"])
    store = FeatureStateStore()
    store.set(_FEATURE, {"selected": True, "hover": False})

    assert store.sync(target) is True
    assert store.sync(target) is False

    feature_calls = [call for call in target.calls if call[0] == "set_feature_state"]
    assert feature_calls == [("set_feature_state", "basemap:parcels:1", {"selected": True, "hover": False})]


def test_sync_only_sends_changed_keys(make_target: Callable[..., Any]) -> None:
    target = make_target(sources=["basemap"])
    target.feature_states[_FEATURE.key] = {"selected": True}
    store = FeatureStateStore()
    store.set(_FEATURE, {"selected": True, "hover": True})

    store.sync(target)

    assert target.calls == [("set_feature_state", "basemap:parcels:1", {"hover": True})]


def test_sync_skips_unloaded_sources(make_target: Callable[..., Any]) -> None:
    target = make_target(sources=["basemap"])
    target.sources["basemap"].is_loaded = False
    store = FeatureStateStore()
    store.set(_FEATURE, {"selected": True})
    store.set(FeatureIdentifier(source="missing", id=2), {"selected": True})

    assert store.sync(target) is False
    assert target.calls == []

    target.sources["basemap"].is_loaded = True
    assert store.sync(target) is True


def test_sync_survives_target_failure(make_target: Callable[..., Any]) -> None:
    target = make_target(sources=["basemap", "other"])
    other = FeatureIdentifier(source="other", id=9)

    def failing_set(feature: FeatureIdentifier, state: dict[str, Any]) -> None:
        if feature.source == "basemap":
            raise RuntimeError("boom")
        target.calls.append(("set_feature_state", feature.key, state))

    target.set_feature_state = failing_set
    store = FeatureStateStore()
    store.set(_FEATURE, {"selected": True})
    store.set(other, {"selected": True})

    assert store.sync(target) is True
    assert target.calls == [("set_feature_state", "other::9", {"selected": True})]
