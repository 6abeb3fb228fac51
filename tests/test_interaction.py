from __future__ import annotations

import pytest

from pymaplayers.interaction import LayerMouseEvent
from pymaplayers.models.feature import FeatureIdentifier, RenderedFeature
from pymaplayers.models.polygon import PolygonConfig

LAYER = "parcels-fill"
_SQUARE = {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]]}


def _feature(feature_id: int, layer_id: str = LAYER) -> RenderedFeature:
    return RenderedFeature(id=feature_id, layer_id=layer_id, source="parcels", source_layer="lots")


def _declare(model) -> None:
    model.ensure_source("parcels", "https://tiles.example/{z}/{x}/{y}.pbf", {"type": "vector"})
    model.ensure_layer("parcels", {"id": LAYER, "type": "fill", "source": "parcels"})
    model.flush()


@pytest.mark.asyncio
async def test_layer_without_listener_is_not_bound(target, ready_model) -> None:
    model = ready_model(target)
    _declare(model)

    assert target.handler_count("click", LAYER) == 0
    assert target.handler_count("mouseenter", LAYER) == 0


@pytest.mark.asyncio
async def test_listener_binds_and_disposer_unbinds(target, ready_model) -> None:
    model = ready_model(target)
    _declare(model)

    dispose = model.add_layer_click_listener(LAYER, lambda event, feature: None)
    assert target.handler_count("click", LAYER) == 1
    assert target.handler_count("mouseleave", LAYER) == 1

    # Registering again replaces the binding instead of stacking it.
    model.add_layer_click_listener(LAYER, lambda event, feature: None)
    assert target.handler_count("click", LAYER) == 1

    dispose()
    assert target.handler_count("click", LAYER) == 0


@pytest.mark.asyncio
async def test_binding_waits_for_idle(target, ready_model) -> None:
    model = ready_model(target, idle=False)
    _declare(model)
    model.add_layer_click_listener(LAYER, lambda event, feature: None)
    assert target.handler_count("click", LAYER) == 0

    target.emit("idle")

    assert target.handler_count("click", LAYER) == 1


@pytest.mark.asyncio
async def test_removed_layer_is_unbound(target, ready_model) -> None:
    model = ready_model(target)
    _declare(model)
    model.add_layer_click_listener(LAYER, lambda event, feature: None)

    model.remove_layer(LAYER)
    model.flush()

    assert target.handler_count("click", LAYER) == 0


@pytest.mark.asyncio
async def test_repeated_clicks_cycle_overlapping_features(target, ready_model) -> None:
    model = ready_model(target)
    _declare(model)
    picked: list[int | str | None] = []
    model.add_layer_click_listener(LAYER, lambda event, feature: picked.append(feature.id))
    event = LayerMouseEvent(layer_id=LAYER, features=[_feature(1), _feature(2), _feature(3)])

    for _ in range(4):
        target.emit("click", event, layer_id=LAYER)

    assert picked == [1, 2, 3, 1]


@pytest.mark.asyncio
async def test_cycle_restarts_for_new_candidates(target, ready_model) -> None:
    model = ready_model(target)
    _declare(model)
    picked: list[int | str | None] = []
    model.add_layer_click_listener(LAYER, lambda event, feature: picked.append(feature.id))

    target.emit("click", LayerMouseEvent(features=[_feature(1), _feature(2)]), layer_id=LAYER)
    target.emit("click", LayerMouseEvent(features=[_feature(1), _feature(2)]), layer_id=LAYER)
    target.emit("click", LayerMouseEvent(features=[_feature(5), _feature(6)]), layer_id=LAYER)
    target.emit("click", LayerMouseEvent(features=[_feature(7)]), layer_id=LAYER)
    target.emit("click", LayerMouseEvent(features=[_feature(5), _feature(6)]), layer_id=LAYER)

    assert picked == [1, 2, 5, 7, 5]


@pytest.mark.asyncio
async def test_failing_listener_is_contained(target, ready_model) -> None:
    model = ready_model(target)
    _declare(model)

    def listener(event: LayerMouseEvent, feature: RenderedFeature | None) -> None:
        raise RuntimeError("boom")

    model.add_layer_click_listener(LAYER, listener)

    target.emit("click", LayerMouseEvent(features=[_feature(1)]), layer_id=LAYER)


@pytest.mark.asyncio
async def test_hover_sets_feature_state_and_cursor(target, ready_model) -> None:
    model = ready_model(target)
    _declare(model)
    model.add_layer_click_listener(LAYER, lambda event, feature: None)
    first = FeatureIdentifier(source="parcels", source_layer="lots", id=1)
    second = FeatureIdentifier(source="parcels", source_layer="lots", id=2)

    target.emit("mouseenter", LayerMouseEvent(features=[_feature(1)]), layer_id=LAYER)
    assert target.cursor == "pointer"
    assert model.get_feature_state(first) == {"hover": True}

    target.emit("mouseenter", LayerMouseEvent(features=[_feature(2)]), layer_id=LAYER)
    assert model.get_feature_state(first) == {"hover": False}
    assert model.get_feature_state(second) == {"hover": True}

    target.emit("mouseleave", LayerMouseEvent(), layer_id=LAYER)
    assert target.cursor == ""
    assert model.get_feature_state(second) == {"hover": False}
    assert target.feature_states[second.key] == {"hover": False}


@pytest.mark.asyncio
async def test_polygon_click_listener_binds_fill_layer(target, ready_model) -> None:
    model = ready_model(target)
    model.add_polygon("zone", PolygonConfig(geometry=_SQUARE, hover=True))
    model.flush()

    model.add_polygon_click_listener("zone", lambda event, feature: None)

    assert target.handler_count("click", "zone:fill") == 1
    assert target.handler_count("click", "zone:outline") == 0


@pytest.mark.asyncio
async def test_detach_unbinds_everything(target, ready_model) -> None:
    model = ready_model(target)
    _declare(model)
    model.add_layer_click_listener(LAYER, lambda event, feature: None)

    model.detach()

    assert all(not handlers for handlers in target.handlers.values())
