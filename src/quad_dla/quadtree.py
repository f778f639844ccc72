"""
Depth-bounded region quadtree over an axis-aligned rectangle.

Nodes live in a flat arena addressed by integer index: node rectangles,
depths and child links are numpy arrays, buckets are plain lists of entry ids.
Children are allocated lazily, the first time an insertion routes into them.
Subdivision is bounded by depth only; `bucket_capacity` is advisory and only
shows up in `stats()`.

Each inserted item carries a footprint, either a point ``(x, y)`` or a
rectangle ``(x, y, w, h)``. Routing tries the four child quadrants of a node in
a fixed order and descends into the first one that takes the footprint. An
item whose footprint straddles quadrants, or that reaches the depth limit,
stays in the current node's bucket. Quadrant rectangles are half-open, so a
zero-area rectangle never takes a point and everything routed through it ends
up one level above.

The index never updates in place. Besides `insert`, the only mutation is a
consuming `search`, which removes what it returns.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, Iterator, List, Sequence, Tuple

import numpy as np
from numba import njit

from .params import ConfigurationError

NO_CHILD = -1

Rect = Tuple[float, float, float, float]


###############################################################################
# Geometry kernels
###############################################################################


@njit(cache=True)
def rect_contains_point(rx, ry, rw, rh, px, py):
    """Half-open containment: [rx, rx + rw) x [ry, ry + rh)."""
    return px >= rx and px < rx + rw and py >= ry and py < ry + rh


@njit(cache=True)
def rect_contains_rect(rx, ry, rw, rh, x0, y0, x1, y1):
    """True when the box (x0, y0)-(x1, y1) lies entirely inside the rectangle.

    Zero-area boxes and zero-area rectangles never match.
    """
    if x1 <= x0 or y1 <= y0:
        return False
    if rw <= 0.0 or rh <= 0.0:
        return False
    return x0 >= rx and x1 <= rx + rw and y0 >= ry and y1 <= ry + rh


@njit(cache=True)
def circle_intersects_rect(cx, cy, radius, rx, ry, rw, rh):
    """Circle/rectangle overlap test; touching counts as overlap."""
    if radius < 0.0:
        return False
    half_w = rw / 2.0
    half_h = rh / 2.0
    dx = abs(cx - (rx + half_w))
    dy = abs(cy - (ry + half_h))

    if dx > half_w + radius or dy > half_h + radius:
        return False
    if dx <= half_w or dy <= half_h:
        return True

    corner_x = dx - half_w
    corner_y = dy - half_h
    return corner_x * corner_x + corner_y * corner_y <= radius * radius


def quadrants(rect: Rect) -> np.ndarray:
    """Child rectangles in routing order: upper-right, upper-left, lower-left, lower-right."""
    x, y, w, h = rect
    hw, hh = w / 2.0, h / 2.0
    return np.array(
        [
            [x + hw, y, hw, hh],
            [x, y, hw, hh],
            [x, y + hh, hw, hh],
            [x + hw, y + hh, hw, hh],
        ],
        dtype=np.float64,
    )


def _footprint_box(footprint: Sequence[float]) -> Tuple[bool, float, float, float, float]:
    if len(footprint) == 2:
        x, y = float(footprint[0]), float(footprint[1])
        return True, x, y, x, y
    if len(footprint) == 4:
        x, y, w, h = (float(v) for v in footprint)
        return False, x, y, x + w, y + h
    raise ValueError(f"footprint must be (x, y) or (x, y, w, h), got {footprint!r}")


###############################################################################
# Index
###############################################################################


class SpatialIndex:
    """Region quadtree with lazily created children and per-node buckets."""

    def __init__(self, bounds: Rect, max_depth: int = 5, bucket_capacity: int = 8) -> None:
        if max_depth < 1:
            raise ConfigurationError(f"max_depth must be >= 1, got {max_depth}")
        self.max_depth = int(max_depth)
        self.bucket_capacity = int(bucket_capacity)

        # Node arena
        self._node_cap = 16
        self._rects = np.zeros((self._node_cap, 4), dtype=np.float64)
        self._quads = np.zeros((self._node_cap, 4, 4), dtype=np.float64)
        self._depths = np.zeros(self._node_cap, dtype=np.int32)
        self._children = np.full((self._node_cap, 4), NO_CHILD, dtype=np.int32)
        self._buckets: List[List[int]] = []
        self._node_count = 0

        # Entry arena: item handle + footprint box (x0, y0, x1, y1)
        self._entry_cap = 64
        self._boxes = np.zeros((self._entry_cap, 4), dtype=np.float64)
        self._is_point = np.zeros(self._entry_cap, dtype=np.bool_)
        self._items: List[Any] = []

        self.bounds: Rect = (0.0, 0.0, 0.0, 0.0)
        self.resize(bounds)

    # ------------------------------------------------------------------ arena
    def _grow_nodes(self) -> None:
        new_cap = self._node_cap * 2
        rects = np.zeros((new_cap, 4), dtype=np.float64)
        quads = np.zeros((new_cap, 4, 4), dtype=np.float64)
        depths = np.zeros(new_cap, dtype=np.int32)
        children = np.full((new_cap, 4), NO_CHILD, dtype=np.int32)
        n = self._node_count
        rects[:n] = self._rects[:n]
        quads[:n] = self._quads[:n]
        depths[:n] = self._depths[:n]
        children[:n] = self._children[:n]
        self._rects, self._quads, self._depths, self._children = rects, quads, depths, children
        self._node_cap = new_cap

    def _grow_entries(self) -> None:
        new_cap = self._entry_cap * 2
        boxes = np.zeros((new_cap, 4), dtype=np.float64)
        is_point = np.zeros(new_cap, dtype=np.bool_)
        n = len(self._items)
        boxes[:n] = self._boxes[:n]
        is_point[:n] = self._is_point[:n]
        self._boxes, self._is_point = boxes, is_point
        self._entry_cap = new_cap

    def _new_node(self, depth: int, rect: Sequence[float]) -> int:
        if self._node_count == self._node_cap:
            self._grow_nodes()
        idx = self._node_count
        self._rects[idx] = rect
        self._quads[idx] = quadrants(tuple(rect))
        self._depths[idx] = depth
        self._children[idx] = NO_CHILD
        self._buckets.append([])
        self._node_count += 1
        return idx

    # ------------------------------------------------------------------ lifecycle
    def clear(self) -> None:
        """Drop every bucket and every child; the root keeps its rectangle."""
        self._node_count = 0
        self._buckets = []
        self._items = []
        self._new_node(0, self.bounds)

    def resize(self, bounds: Rect) -> None:
        """Re-target the root at a new rectangle. Implies clear()."""
        self.bounds = tuple(float(v) for v in bounds)  # type: ignore[assignment]
        self.clear()

    # ------------------------------------------------------------------ insert
    def _route(self, node: int, is_point: bool, box: Tuple[float, float, float, float]) -> int:
        x0, y0, x1, y1 = box
        quads = self._quads[node]
        for q in range(4):
            rx, ry, rw, rh = quads[q]
            if is_point:
                if rect_contains_point(rx, ry, rw, rh, x0, y0):
                    return q
            elif rect_contains_rect(rx, ry, rw, rh, x0, y0, x1, y1):
                return q
        return NO_CHILD

    def insert(self, item: Hashable, footprint: Sequence[float]) -> int:
        """
        Store `item` under `footprint` and return the depth of the node that
        now holds it.
        """
        is_point, x0, y0, x1, y1 = _footprint_box(footprint)
        box = (x0, y0, x1, y1)

        node = 0
        while True:
            depth = int(self._depths[node])
            if depth + 1 >= self.max_depth:
                break
            q = self._route(node, is_point, box)
            if q == NO_CHILD:
                break
            child = int(self._children[node, q])
            if child == NO_CHILD:
                child = self._new_node(depth + 1, self._quads[node, q].copy())
                self._children[node, q] = child
            node = child

        entry = len(self._items)
        if entry == self._entry_cap:
            self._grow_entries()
        self._items.append(item)
        self._boxes[entry] = box
        self._is_point[entry] = is_point
        self._buckets[node].append(entry)
        return int(self._depths[node])

    def insert_points(self, items: Sequence[Hashable], positions: np.ndarray) -> None:
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
        for item, (x, y) in zip(items, positions):
            self.insert(item, (x, y))

    # ------------------------------------------------------------------ queries
    def search(
        self,
        center: Sequence[float],
        radius: float,
        consuming: bool = False,
        inclusive: bool = True,
    ) -> List[Any]:
        """
        Items whose footprint lies within `radius` of `center`.

        Order is node-local items first (bucket order), then the children in
        routing order, depth first. With `consuming=True` every returned item
        is also removed from the index, so no item is returned twice.
        ``inclusive`` selects ``distance <= radius`` over ``distance < radius``.
        """
        result: List[Any] = []
        if radius < 0.0:
            return result
        cx, cy = float(center[0]), float(center[1])
        self._search(0, cx, cy, float(radius), consuming, inclusive, result)
        return result

    def _search(self, node, cx, cy, radius, consuming, inclusive, result) -> None:
        rx, ry, rw, rh = self._rects[node]
        if not circle_intersects_rect(cx, cy, radius, rx, ry, rw, rh):
            return

        bucket = self._buckets[node]
        if bucket:
            ids = np.asarray(bucket, dtype=np.int64)
            boxes = self._boxes[ids]
            dx = np.maximum(np.maximum(boxes[:, 0] - cx, cx - boxes[:, 2]), 0.0)
            dy = np.maximum(np.maximum(boxes[:, 1] - cy, cy - boxes[:, 3]), 0.0)
            dist2 = dx * dx + dy * dy
            r2 = radius * radius
            hits = dist2 <= r2 if inclusive else dist2 < r2
            if hits.any():
                result.extend(self._items[e] for e in ids[hits])
                if consuming:
                    # matches are collected first, then dropped in one pass
                    self._buckets[node] = ids[~hits].tolist()

        for child in self._children[node]:
            if child != NO_CHILD:
                self._search(int(child), cx, cy, radius, consuming, inclusive, result)

    def return_all(self, min_depth: int = 0) -> List[Any]:
        """Every stored item held at depth >= `min_depth`, depth-first order."""
        out: List[Any] = []
        for depth, _rect, items in self.iter_buckets():
            if depth >= min_depth:
                out.extend(items)
        return out

    def iter_buckets(self) -> Iterator[Tuple[int, Rect, List[Any]]]:
        """Yield (depth, rect, items) for every node, depth-first in routing order."""
        stack = [0]
        while stack:
            node = stack.pop()
            rect = tuple(float(v) for v in self._rects[node])
            items = [self._items[e] for e in self._buckets[node]]
            yield int(self._depths[node]), rect, items  # type: ignore[misc]
            # reversed so that child 0 is visited first
            for child in self._children[node][::-1]:
                if child != NO_CHILD:
                    stack.append(int(child))

    def size(self) -> int:
        return sum(len(self._buckets[n]) for n in range(self._node_count))

    def __len__(self) -> int:
        return self.size()

    @property
    def node_count(self) -> int:
        return self._node_count

    def stats(self) -> Dict[str, int]:
        depths = self._depths[: self._node_count]
        lengths = [len(self._buckets[n]) for n in range(self._node_count)]
        return {
            "nodes": self._node_count,
            "items": sum(lengths),
            "deepest": int(depths.max()) if self._node_count else 0,
            "over_capacity": sum(1 for n in lengths if n > self.bucket_capacity),
        }


__all__ = [
    "SpatialIndex",
    "circle_intersects_rect",
    "rect_contains_point",
    "rect_contains_rect",
    "quadrants",
]
