from __future__ import annotations

"""
Board document model.

A board's ``data`` payload is a list of hexagons (render order only), the
last saved camera and a flat list of guest comments. Connections are kept
symmetric by every structural helper on :class:`BoardData`.
"""

import copy
import json
import math
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .geometry import Point, distance_sq, hexagon_vertices, point_at, point_in_polygon

HEX_RADIUS = 60.0
SNAP_RATIO = 0.9
DEFAULT_FILL = "#14b8a6"
CONTENT_TYPES = frozenset(
    {"image", "video", "audio", "pdf", "file", "text", "hypertext"}
)
_KNOWN_KEYS = frozenset({"hexagons", "viewport", "comments", "nextNumber"})


def snap_distance(radius: float = HEX_RADIUS, ratio: float = SNAP_RATIO) -> float:
    return radius * 2 * ratio


def new_hexagon_id() -> str:
    return f"hex-{uuid.uuid4().hex[:12]}"


@dataclass
class HexContent:
    type: str
    src: str = ""
    name: Optional[str] = None
    value: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type, "src": self.src}
        if self.name is not None:
            payload["name"] = self.name
        if self.value is not None:
            payload["value"] = self.value
        return payload

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["HexContent"]:
        if not isinstance(raw, dict):
            return None
        kind = str(raw.get("type") or "").strip().lower()
        if kind not in CONTENT_TYPES:
            return None
        name = raw.get("name")
        value = raw.get("value")
        return cls(
            type=kind,
            src=str(raw.get("src") or ""),
            name=str(name) if name is not None else None,
            value=str(value) if value is not None else None,
        )


@dataclass
class Hexagon:
    id: str
    number: int
    x: float
    y: float
    text: str = ""
    fill_color: str = DEFAULT_FILL
    content: Optional[HexContent] = None
    connections: List[str] = field(default_factory=list)

    @property
    def center(self) -> Point:
        return (self.x, self.y)

    def is_connected(self, other_id: str) -> bool:
        return other_id in self.connections

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "x": self.x,
            "y": self.y,
            "text": self.text,
            "fillColor": self.fill_color,
            "content": self.content.as_dict() if self.content else None,
            "connections": list(self.connections),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Hexagon":
        connections: List[str] = []
        for item in raw.get("connections") or []:
            value = str(item)
            if value not in connections:
                connections.append(value)
        try:
            number = int(raw.get("number") or 0)
        except (TypeError, ValueError):
            number = 0
        return cls(
            id=str(raw.get("id") or new_hexagon_id()),
            number=number,
            x=float(raw.get("x") or 0.0),
            y=float(raw.get("y") or 0.0),
            text=str(raw.get("text") or ""),
            fill_color=str(raw.get("fillColor") or DEFAULT_FILL),
            content=HexContent.from_dict(raw.get("content")),
            connections=connections,
        )


@dataclass
class BoardData:
    hexagons: List[Hexagon] = field(default_factory=list)
    viewport: Dict[str, Any] = field(default_factory=dict)
    comments: List[Dict[str, Any]] = field(default_factory=list)
    next_number: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    # Serialisation ------------------------------------------------------------
    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = copy.deepcopy(self.extra)
        payload["hexagons"] = [hexagon.as_dict() for hexagon in self.hexagons]
        payload["viewport"] = copy.deepcopy(self.viewport)
        payload["comments"] = copy.deepcopy(self.comments)
        payload["nextNumber"] = self.peek_next_number()
        return payload

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, raw: Any) -> "BoardData":
        if not isinstance(raw, dict):
            raw = {}
        hexagons = [
            Hexagon.from_dict(item)
            for item in raw.get("hexagons") or []
            if isinstance(item, dict)
        ]
        viewport = raw.get("viewport")
        comments = raw.get("comments")
        next_number = raw.get("nextNumber")
        try:
            next_number = int(next_number) if next_number is not None else None
        except (TypeError, ValueError):
            next_number = None
        extra = {
            key: copy.deepcopy(value)
            for key, value in raw.items()
            if key not in _KNOWN_KEYS
        }
        return cls(
            hexagons=hexagons,
            viewport=copy.deepcopy(viewport) if isinstance(viewport, dict) else {},
            comments=[
                copy.deepcopy(item) for item in comments or [] if isinstance(item, dict)
            ]
            if isinstance(comments, list)
            else [],
            next_number=next_number,
            extra=extra,
        )

    @classmethod
    def from_json(cls, text: str) -> "BoardData":
        return cls.from_dict(json.loads(text))

    def clone(self) -> "BoardData":
        return BoardData.from_dict(self.as_dict())

    # Lookup -------------------------------------------------------------------
    def get(self, hex_id: str) -> Optional[Hexagon]:
        for hexagon in self.hexagons:
            if hexagon.id == hex_id:
                return hexagon
        return None

    def require(self, hex_id: str) -> Hexagon:
        hexagon = self.get(hex_id)
        if hexagon is None:
            raise KeyError(hex_id)
        return hexagon

    def ids(self) -> List[str]:
        return [hexagon.id for hexagon in self.hexagons]

    def hit_test(self, point: Point, radius: float = HEX_RADIUS) -> Optional[Hexagon]:
        """Topmost hexagon whose outline contains ``point``."""
        outline = hexagon_vertices(radius)
        for hexagon in reversed(self.hexagons):
            local = (point[0] - hexagon.x, point[1] - hexagon.y)
            if point_in_polygon(local, outline):
                return hexagon
        return None

    def connected_component(self, start_id: str) -> List[str]:
        if self.get(start_id) is None:
            return []
        visited: set[str] = {start_id}
        order: List[str] = [start_id]
        stack = [start_id]
        while stack:
            current = self.get(stack.pop())
            if current is None:
                continue
            for neighbour_id in current.connections:
                if neighbour_id in visited or self.get(neighbour_id) is None:
                    continue
                visited.add(neighbour_id)
                order.append(neighbour_id)
                stack.append(neighbour_id)
        return order

    # Numbering ----------------------------------------------------------------
    def peek_next_number(self) -> int:
        highest = max((hexagon.number for hexagon in self.hexagons), default=0)
        if self.next_number is None:
            return highest + 1
        return max(self.next_number, highest + 1)

    def _take_number(self) -> int:
        number = self.peek_next_number()
        self.next_number = number + 1
        return number

    # Structural edits ---------------------------------------------------------
    def add_hexagon(
        self,
        x: float,
        y: float,
        *,
        text: str = "",
        fill_color: str = DEFAULT_FILL,
        content: Optional[HexContent] = None,
        hex_id: Optional[str] = None,
    ) -> Hexagon:
        hexagon = Hexagon(
            id=hex_id or new_hexagon_id(),
            number=self._take_number(),
            x=float(x),
            y=float(y),
            text=text,
            fill_color=fill_color,
            content=content,
        )
        self.hexagons.append(hexagon)
        return hexagon

    def spawn_connected(
        self, anchor_id: str, *, spacing: Optional[float] = None, **kwargs: Any
    ) -> Hexagon:
        """Add a hexagon next to ``anchor_id`` and connect the two."""
        anchor = self.require(anchor_id)
        gap = spacing if spacing is not None else snap_distance()
        # a direction is free when nothing sits within half a gap of the slot
        limit = (gap / 2) ** 2
        target = point_at(anchor.center, 0.0, gap)
        for step in range(6):
            candidate = point_at(anchor.center, math.radians(60 * step), gap)
            if all(distance_sq(candidate, other.center) > limit for other in self.hexagons):
                target = candidate
                break
        hexagon = self.add_hexagon(target[0], target[1], **kwargs)
        self.connect(anchor.id, hexagon.id)
        return hexagon

    def connect(self, first_id: str, second_id: str) -> bool:
        if first_id == second_id:
            return False
        first = self.get(first_id)
        second = self.get(second_id)
        if first is None or second is None:
            return False
        changed = False
        if second_id not in first.connections:
            first.connections.append(second_id)
            changed = True
        if first_id not in second.connections:
            second.connections.append(first_id)
            changed = True
        return changed

    def disconnect(self, first_id: str, second_id: str) -> bool:
        changed = False
        first = self.get(first_id)
        second = self.get(second_id)
        if first is not None and second_id in first.connections:
            first.connections.remove(second_id)
            changed = True
        if second is not None and first_id in second.connections:
            second.connections.remove(first_id)
            changed = True
        return changed

    def clear_connections(self, hex_id: str) -> List[str]:
        hexagon = self.get(hex_id)
        if hexagon is None:
            return []
        removed = list(hexagon.connections)
        for other_id in removed:
            self.disconnect(hex_id, other_id)
        hexagon.connections.clear()
        return removed

    def delete_hexagons(self, hex_ids: Iterable[str]) -> List[str]:
        doomed = {hex_id for hex_id in hex_ids if self.get(hex_id) is not None}
        if not doomed:
            return []
        self.hexagons = [h for h in self.hexagons if h.id not in doomed]
        for hexagon in self.hexagons:
            hexagon.connections = [c for c in hexagon.connections if c not in doomed]
        return sorted(doomed)

    def update_hexagon(
        self,
        hex_id: str,
        *,
        text: Optional[str] = None,
        fill_color: Optional[str] = None,
        content: Any = ...,
    ) -> Hexagon:
        hexagon = self.require(hex_id)
        if text is not None:
            hexagon.text = text
        if fill_color is not None:
            hexagon.fill_color = fill_color
        if content is not ...:
            if content is None or isinstance(content, HexContent):
                hexagon.content = content
            else:
                hexagon.content = HexContent.from_dict(content)
        return hexagon

    def repair_symmetry(self) -> int:
        """Add missing reverse edges and drop self-loops; returns fixes made."""
        fixes = 0
        for hexagon in self.hexagons:
            cleaned: List[str] = []
            for other_id in hexagon.connections:
                if other_id == hexagon.id or other_id in cleaned:
                    fixes += 1
                    continue
                cleaned.append(other_id)
            hexagon.connections = cleaned
        for hexagon in self.hexagons:
            for other_id in hexagon.connections:
                other = self.get(other_id)
                if other is not None and hexagon.id not in other.connections:
                    other.connections.append(hexagon.id)
                    fixes += 1
        return fixes

    def is_symmetric(self) -> bool:
        for hexagon in self.hexagons:
            if hexagon.id in hexagon.connections:
                return False
            for other_id in hexagon.connections:
                other = self.get(other_id)
                if other is not None and hexagon.id not in other.connections:
                    return False
        return True

    def positions(self, hex_ids: Sequence[str]) -> Dict[str, Point]:
        out: Dict[str, Point] = {}
        for hex_id in hex_ids:
            hexagon = self.get(hex_id)
            if hexagon is not None:
                out[hex_id] = hexagon.center
        return out

    # Comments -----------------------------------------------------------------
    def add_comment(
        self, author: str, text: str, *, hexagon_id: Optional[str] = None
    ) -> Dict[str, Any]:
        comment: Dict[str, Any] = {
            "id": f"comment-{uuid.uuid4().hex[:12]}",
            "author": author,
            "text": text,
            "createdAt": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        if hexagon_id:
            comment["hexagonId"] = hexagon_id
        self.comments.append(comment)
        return comment


__all__ = [
    "BoardData",
    "CONTENT_TYPES",
    "DEFAULT_FILL",
    "HEX_RADIUS",
    "HexContent",
    "Hexagon",
    "SNAP_RATIO",
    "new_hexagon_id",
    "snap_distance",
]
