from __future__ import annotations

"""
Pointer interaction engine for the board canvas.

Turns screen-space pointer events into board mutations: selection
(click, shift-click, marquee), rigid group drags of a selection or a
connected component, flick-to-detach and snap-to-neighbour on drop, and
canvas panning. Pointer moves mutate the live board only; a history entry
is recorded once per completed drag.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .geometry import Point, angle_between, distance, distance_sq, point_at, rect_contains, rect_from_points
from .history import HistoryManager
from .model import HEX_RADIUS, SNAP_RATIO, BoardData, snap_distance
from .preferences import DEFAULT_DISCONNECT_VELOCITY
from .viewport import Viewport

LOGGER = logging.getLogger(__name__)

FLICK_WINDOW = 0.2
GRID_STEP = 1.0

ChangeListener = Callable[[BoardData, bool], None]


@dataclass
class DragState:
    primary_id: str
    ids: List[str]
    origin: Point
    starts: Dict[str, Point]
    started_at: float
    last_point: Point
    last_time: float
    break_connections: bool = False


@dataclass
class Marquee:
    start: Point
    end: Point

    def rect(self) -> Tuple[float, float, float, float]:
        return rect_from_points(self.start, self.end)


@dataclass
class PanState:
    screen_origin: Point
    pan_origin: Point


@dataclass
class InteractionEngine:
    board: BoardData
    viewport: Viewport = field(default_factory=Viewport)
    history: Optional[HistoryManager] = None
    on_change: Optional[ChangeListener] = None
    disconnect_velocity_threshold: float = DEFAULT_DISCONNECT_VELOCITY
    radius: float = HEX_RADIUS
    snap_ratio: float = SNAP_RATIO
    grid_step: float = GRID_STEP
    read_only: bool = False
    clock: Callable[[], float] = time.monotonic

    selection: List[str] = field(default_factory=list)
    last_selected: Optional[str] = None
    drag: Optional[DragState] = None
    marquee: Optional[Marquee] = None
    panning: Optional[PanState] = None

    def __post_init__(self) -> None:
        if self.history is None:
            self.history = HistoryManager(self.board)

    @property
    def snap_distance(self) -> float:
        return snap_distance(self.radius, self.snap_ratio)

    def set_board(self, board: BoardData) -> None:
        """Swap in a new board (undo, remote update) and drop stale state."""
        self.board = board
        self.drag = None
        self.selection = [hex_id for hex_id in self.selection if board.get(hex_id)]
        if self.last_selected and board.get(self.last_selected) is None:
            self.last_selected = None

    # Pointer events -----------------------------------------------------------
    def pointer_down(
        self, sx: float, sy: float, *, shift: bool = False, timestamp: Optional[float] = None
    ) -> str:
        now = self.clock() if timestamp is None else timestamp
        world = self.viewport.screen_to_world(sx, sy)
        hit = self.board.hit_test(world, self.radius)

        if hit is None:
            if shift:
                self.marquee = Marquee(start=world, end=world)
                return "marquee"
            self.clear_selection()
            self.panning = PanState(screen_origin=(sx, sy), pan_origin=self.viewport.pan)
            return "pan"

        hex_id = hit.id
        if shift:
            if hex_id in self.selection:
                self.selection.remove(hex_id)
                if self.last_selected == hex_id:
                    self.last_selected = self.selection[-1] if self.selection else None
                return "select"
            self.selection.append(hex_id)
        elif not (hex_id in self.selection and len(self.selection) > 1):
            self.selection = [hex_id]
        self.last_selected = hex_id

        if self.read_only:
            return "select"

        if len(self.selection) > 1:
            ids = list(self.selection)
        else:
            ids = self.board.connected_component(hex_id)
        self.drag = DragState(
            primary_id=hex_id,
            ids=ids,
            origin=world,
            starts=self.board.positions(ids),
            started_at=now,
            last_point=world,
            last_time=now,
        )
        return "drag"

    def pointer_move(self, sx: float, sy: float, *, timestamp: Optional[float] = None) -> str:
        now = self.clock() if timestamp is None else timestamp
        if self.panning:
            self.viewport.pan_x = self.panning.pan_origin[0] + (sx - self.panning.screen_origin[0])
            self.viewport.pan_y = self.panning.pan_origin[1] + (sy - self.panning.screen_origin[1])
            return "pan"

        world = self.viewport.screen_to_world(sx, sy)
        if self.marquee:
            self.marquee.end = world
            self.selection = self.select_in_rect(self.marquee.rect())
            return "marquee"

        drag = self.drag
        if drag is None:
            return "idle"

        elapsed_ms = (now - drag.last_time) * 1000.0
        if (
            not drag.break_connections
            and elapsed_ms > 0
            and now - drag.started_at <= FLICK_WINDOW
        ):
            speed = distance(drag.last_point, world) / elapsed_ms
            if speed * 1000.0 > self.disconnect_velocity_threshold:
                self._detach(drag, world)
        drag.last_point = world
        drag.last_time = now

        dx = self._round(world[0] - drag.origin[0])
        dy = self._round(world[1] - drag.origin[1])
        for hex_id, (start_x, start_y) in drag.starts.items():
            hexagon = self.board.get(hex_id)
            if hexagon is None:
                continue
            hexagon.x = start_x + dx
            hexagon.y = start_y + dy
        self._notify(committed=False)
        return "drag"

    def pointer_up(
        self,
        sx: Optional[float] = None,
        sy: Optional[float] = None,
        *,
        timestamp: Optional[float] = None,
    ) -> str:
        if sx is not None and sy is not None and (self.drag or self.marquee):
            self.pointer_move(sx, sy, timestamp=timestamp)

        if self.panning:
            self.panning = None
            return "pan"
        if self.marquee:
            self.selection = self.select_in_rect(self.marquee.rect())
            self.last_selected = self.selection[-1] if self.selection else None
            self.marquee = None
            return "marquee"

        drag = self.drag
        if drag is None:
            return "idle"
        self.drag = None
        if not drag.break_connections:
            self.snap(drag.primary_id, exclude=drag.ids)
        self.commit()
        return "drop"

    # Drag helpers -------------------------------------------------------------
    def _round(self, value: float) -> float:
        if self.grid_step <= 0:
            return value
        return round(value / self.grid_step) * self.grid_step

    def _detach(self, drag: DragState, world: Point) -> None:
        removed = self.board.clear_connections(drag.primary_id)
        LOGGER.debug("Flick detached %s from %s", drag.primary_id, removed)
        drag.break_connections = True
        drag.ids = [drag.primary_id]
        drag.starts = self.board.positions(drag.ids)
        drag.origin = world

    def snap(self, hex_id: str, *, exclude: Optional[List[str]] = None) -> Optional[str]:
        """Attach ``hex_id`` to its nearest neighbour within snap distance."""
        moving = self.board.get(hex_id)
        if moving is None:
            return None
        skip = set(exclude or ())
        skip.add(hex_id)
        gap = self.snap_distance
        limit = gap * gap
        best_id: Optional[str] = None
        best = math.inf
        for other in self.board.hexagons:
            if other.id in skip:
                continue
            dist = distance_sq(moving.center, other.center)
            if dist <= limit and dist < best:
                best = dist
                best_id = other.id
        if best_id is None:
            return None
        anchor = self.board.require(best_id)
        if moving.center == anchor.center:
            angle = 0.0
        else:
            angle = angle_between(anchor.center, moving.center)
        moving.x, moving.y = point_at(anchor.center, angle, gap)
        self.board.connect(hex_id, best_id)
        return best_id

    def commit(self) -> bool:
        """Record the live board as one history step if it changed."""
        assert self.history is not None
        if self.history.is_current(self.board):
            return False
        self.history.commit(self.board)
        self._notify(committed=True)
        return True

    def _notify(self, *, committed: bool) -> None:
        if self.on_change is not None:
            self.on_change(self.board, committed)

    # Selection ----------------------------------------------------------------
    def select_in_rect(self, rect: Tuple[float, float, float, float]) -> List[str]:
        return [h.id for h in self.board.hexagons if rect_contains(rect, h.center)]

    def clear_selection(self) -> None:
        self.selection = []
        self.last_selected = None

    # Zoom ---------------------------------------------------------------------
    def zoom_anchor(self) -> Optional[Point]:
        if self.last_selected and self.last_selected in self.selection:
            hexagon = self.board.get(self.last_selected)
            if hexagon is not None:
                return hexagon.center
        return None

    def set_zoom(self, new_zoom: float) -> float:
        return self.viewport.set_zoom_anchored(new_zoom, self.zoom_anchor())

    def zoom_in(self) -> float:
        return self.viewport.zoom_in(self.zoom_anchor())

    def zoom_out(self) -> float:
        return self.viewport.zoom_out(self.zoom_anchor())


__all__ = [
    "DragState",
    "FLICK_WINDOW",
    "GRID_STEP",
    "InteractionEngine",
    "Marquee",
]
