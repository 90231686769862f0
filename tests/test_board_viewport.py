from __future__ import annotations

import pytest

from hexboard.board.viewport import MAX_ZOOM, MIN_ZOOM, Viewport


def test_screen_world_round_trip() -> None:
    view = Viewport(zoom=2.0, pan_x=100.0, pan_y=-40.0)
    assert view.screen_to_world(300, 60) == pytest.approx((100.0, 50.0))
    assert view.world_to_screen(100.0, 50.0) == pytest.approx((300.0, 60.0))


def test_anchored_zoom_keeps_anchor_on_screen() -> None:
    view = Viewport(width=1000, height=600, zoom=1.0, pan_x=120.0, pan_y=80.0)
    anchor = (200.0, 150.0)
    before = view.world_to_screen(*anchor)
    view.set_zoom_anchored(2.5, anchor)
    assert view.zoom == pytest.approx(2.5)
    assert view.world_to_screen(*anchor) == pytest.approx(before)


def test_zoom_without_anchor_keeps_screen_centre() -> None:
    view = Viewport(width=800, height=600, pan_x=30.0, pan_y=10.0)
    centre_world = view.screen_to_world(400, 300)
    view.zoom_in()
    assert view.zoom == pytest.approx(1.25)
    assert view.screen_to_world(400, 300) == pytest.approx(centre_world)


def test_zoom_is_clamped() -> None:
    view = Viewport()
    assert view.set_zoom_anchored(100) == MAX_ZOOM
    assert view.set_zoom_anchored(0.01) == MIN_ZOOM


def test_encode_restore_prefers_centre_across_resize() -> None:
    view = Viewport(width=1000, height=800, zoom=2.0, pan_x=-300.0, pan_y=50.0)
    saved = view.encode()
    centre = saved["center"]
    assert (centre["x"], centre["y"]) == pytest.approx(view.screen_to_world(500, 400))

    wider = Viewport(width=1600, height=900)
    assert wider.restore(saved) == "center"
    assert wider.zoom == pytest.approx(2.0)
    assert wider.screen_to_world(800, 450) == pytest.approx((centre["x"], centre["y"]))


def test_restore_falls_back_to_pan_then_origin() -> None:
    view = Viewport(width=1000, height=800)
    assert view.restore({"pan": {"x": 12, "y": 34}, "zoom": 1.5}) == "pan"
    assert view.pan == (12.0, 34.0)
    assert view.zoom == pytest.approx(1.5)

    assert view.restore({}) == "default"
    assert view.pan == (500.0, 400.0)
    assert view.zoom == 1.0

    assert view.restore(None) == "default"
