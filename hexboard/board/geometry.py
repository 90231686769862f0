from __future__ import annotations

"""Pure geometry helpers for hexagon boards."""

import math
from typing import Any, Dict, Iterable, List, Mapping, Tuple

Point = Tuple[float, float]


def hexagon_vertices(radius: float) -> List[Point]:
    """Return the six vertices of a hexagon centred on the origin.

    Vertex ``i`` sits at ``60 * i - 30`` degrees.
    """
    points: List[Point] = []
    for index in range(6):
        angle = math.radians(60 * index - 30)
        points.append((radius * math.cos(angle), radius * math.sin(angle)))
    return points


def distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def distance_sq(a: Point, b: Point) -> float:
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    return dx * dx + dy * dy


def angle_between(origin: Point, target: Point) -> float:
    """Direction from ``origin`` to ``target`` in radians."""
    return math.atan2(target[1] - origin[1], target[0] - origin[0])


def point_at(origin: Point, angle: float, length: float) -> Point:
    return (origin[0] + math.cos(angle) * length, origin[1] + math.sin(angle) * length)


def point_in_polygon(point: Point, polygon: Iterable[Point]) -> bool:
    vertices = list(polygon)
    x, y = point
    inside = False
    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = vertices[i]
        xj, yj = vertices[j]
        if (yi > y) != (yj > y):
            cross_x = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < cross_x:
                inside = not inside
        j = i
    return inside


def rect_from_points(a: Point, b: Point) -> Tuple[float, float, float, float]:
    """Normalise two corners into ``(min_x, min_y, max_x, max_y)``."""
    return (min(a[0], b[0]), min(a[1], b[1]), max(a[0], b[0]), max(a[1], b[1]))


def rect_contains(rect: Tuple[float, float, float, float], point: Point) -> bool:
    min_x, min_y, max_x, max_y = rect
    return min_x <= point[0] <= max_x and min_y <= point[1] <= max_y


def build_connection_lines(hexagons: Iterable[Any]) -> List[Dict[str, Any]]:
    """Collapse per-hexagon connection lists into unique undirected edges.

    Accepts ``Hexagon`` objects or their serialised dicts. Edges pointing at
    a hexagon that is not present are dropped.
    """
    items = list(hexagons)
    by_id: Dict[str, Any] = {}
    for item in items:
        by_id[_field(item, "id")] = item

    seen: set[Tuple[str, str]] = set()
    lines: List[Dict[str, Any]] = []
    for item in items:
        source_id = _field(item, "id")
        for target_id in _field(item, "connections") or ():
            target = by_id.get(target_id)
            if target is None or target_id == source_id:
                continue
            key = tuple(sorted((source_id, target_id)))
            if key in seen:
                continue
            seen.add(key)  # type: ignore[arg-type]
            lines.append({"from": item, "to": target})
    return lines


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


__all__ = [
    "Point",
    "angle_between",
    "build_connection_lines",
    "distance",
    "distance_sq",
    "hexagon_vertices",
    "point_at",
    "point_in_polygon",
    "rect_contains",
    "rect_from_points",
]
