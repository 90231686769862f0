from __future__ import annotations

"""Camera state: zoom, pan and the screen <-> world transform."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .geometry import Point

MIN_ZOOM = 0.2
MAX_ZOOM = 6.25
ZOOM_STEP = 1.25


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _coerce_point(raw: Any) -> Optional[Point]:
    if not isinstance(raw, dict):
        return None
    try:
        return (float(raw["x"]), float(raw["y"]))
    except (KeyError, TypeError, ValueError):
        return None


@dataclass
class Viewport:
    width: float = 1280.0
    height: float = 800.0
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    min_zoom: float = MIN_ZOOM
    max_zoom: float = MAX_ZOOM

    @property
    def pan(self) -> Point:
        return (self.pan_x, self.pan_y)

    @property
    def screen_center(self) -> Point:
        return (self.width / 2, self.height / 2)

    # Transforms ---------------------------------------------------------------
    def screen_to_world(self, sx: float, sy: float) -> Point:
        return ((sx - self.pan_x) / self.zoom, (sy - self.pan_y) / self.zoom)

    def world_to_screen(self, wx: float, wy: float) -> Point:
        return (wx * self.zoom + self.pan_x, wy * self.zoom + self.pan_y)

    # Camera moves -------------------------------------------------------------
    def set_zoom_anchored(self, new_zoom: float, anchor_world: Optional[Point] = None) -> float:
        """Change zoom while keeping ``anchor_world`` at the same screen spot.

        Without an anchor the world point under the screen centre is kept.
        """
        target = _clamp(float(new_zoom), self.min_zoom, self.max_zoom)
        if anchor_world is None:
            screen_anchor = self.screen_center
            anchor_world = self.screen_to_world(*screen_anchor)
        else:
            screen_anchor = self.world_to_screen(*anchor_world)
        self.pan_x = screen_anchor[0] - anchor_world[0] * target
        self.pan_y = screen_anchor[1] - anchor_world[1] * target
        self.zoom = target
        return target

    def zoom_in(self, anchor_world: Optional[Point] = None) -> float:
        return self.set_zoom_anchored(self.zoom * ZOOM_STEP, anchor_world)

    def zoom_out(self, anchor_world: Optional[Point] = None) -> float:
        return self.set_zoom_anchored(self.zoom / ZOOM_STEP, anchor_world)

    def center_origin(self) -> None:
        self.pan_x, self.pan_y = self.screen_center

    # Persistence --------------------------------------------------------------
    def encode(self) -> Dict[str, Any]:
        center = self.screen_to_world(*self.screen_center)
        return {
            "center": {"x": center[0], "y": center[1]},
            "pan": {"x": self.pan_x, "y": self.pan_y},
            "zoom": self.zoom,
        }

    def restore(self, saved: Optional[Dict[str, Any]]) -> str:
        """Apply a saved camera; returns which encoding was used.

        The world centre wins so the same spot stays centred even when the
        canvas size changed since the save; raw pan is the fallback and an
        empty record centres the world origin.
        """
        saved = saved if isinstance(saved, dict) else {}
        try:
            zoom = float(saved.get("zoom") or 1.0)
        except (TypeError, ValueError):
            zoom = 1.0
        self.zoom = _clamp(zoom, self.min_zoom, self.max_zoom)

        center = _coerce_point(saved.get("center"))
        if center is not None:
            screen_x, screen_y = self.screen_center
            self.pan_x = screen_x - center[0] * self.zoom
            self.pan_y = screen_y - center[1] * self.zoom
            return "center"
        pan = _coerce_point(saved.get("pan"))
        if pan is not None:
            self.pan_x, self.pan_y = pan
            return "pan"
        self.center_origin()
        return "default"


__all__ = ["MAX_ZOOM", "MIN_ZOOM", "Viewport", "ZOOM_STEP"]
