"""Contour refinement: corner reduction followed by spline resampling.

Simplification alone keeps the staircase corners of the pixel grid; it is the
closed centripetal Catmull-Rom resampling that rounds them off.
"""

from __future__ import annotations

import math
from typing import List, Sequence, Tuple

from dotplate.contracts import EngineConfig, LayerSettings, Shape, Vec2


def simplify_closed_path(points: Sequence[Vec2], tolerance: float) -> List[Vec2]:
    """Ramer-Douglas-Peucker reduction of a closed ring.

    The ring is split at ``points[0]`` and at the vertex ``k`` farthest from
    it. Each half always keeps its own farthest vertex from the chord, so a
    ring with non-zero area never collapses below three vertices, however
    large the tolerance. Below that level recursion is the usual one, driven
    by an explicit stack. Running it again on its own output with the same
    tolerance removes nothing further.

    Args:
        points: Ring vertices without a closing duplicate.
        tolerance: Maximum allowed deviation in the ring's own units.

    Returns:
        The kept vertices in their original order (no closing duplicate).
    """
    pts = [(float(x), float(y)) for x, y in points]
    n = len(pts)
    if n <= 2 or tolerance <= 0:
        return pts

    ring = pts + [pts[0]]
    keep = [False] * len(ring)
    keep[0] = keep[-1] = True
    split, _ = _farthest(ring, 0, n)
    if split == -1:
        return pts
    keep[split] = True

    stack: List[Tuple[int, int]] = []
    for first, last in ((split, n), (0, split)):
        index, _ = _farthest(ring, first, last)
        if index != -1:
            keep[index] = True
            stack.append((index, last))
            stack.append((first, index))
    while stack:
        first, last = stack.pop()
        index, max_dist = _farthest(ring, first, last)
        if index != -1 and max_dist > tolerance:
            keep[index] = True
            stack.append((index, last))
            stack.append((first, index))
    return [p for p, k in zip(ring[:-1], keep[:-1]) if k]


def _farthest(points: Sequence[Vec2], first: int, last: int) -> Tuple[int, float]:
    """Index and distance of the point farthest from chord ``first``-``last``."""
    max_dist = 0.0
    index = -1
    x1, y1 = points[first]
    x2, y2 = points[last]
    dx = x2 - x1
    dy = y2 - y1
    denom = math.hypot(dx, dy)
    for i in range(first + 1, last):
        px, py = points[i]
        if denom == 0.0:
            dist = math.hypot(px - x1, py - y1)
        else:
            dist = abs(dy * px - dx * py + x2 * y1 - y2 * x1) / denom
        if dist > max_dist:
            max_dist = dist
            index = i
    return index, max_dist


def catmull_rom_closed(points: Sequence[Vec2], samples: int, alpha: float = 0.5) -> List[Vec2]:
    """Sample a closed Catmull-Rom spline through ``points``.

    ``alpha`` 0.5 gives centripetal parameterization. Samples are spread
    uniformly over the spans, ``samples`` in total, starting at ``points[0]``.
    """
    ctrl = [(float(x), float(y)) for x, y in points]
    count = len(ctrl)
    if count < 2 or samples < 1:
        return ctrl
    out: List[Vec2] = []
    for k in range(samples):
        span = k * count / samples
        idx = int(span)
        tau = span - idx
        p0 = ctrl[(idx - 1) % count]
        p1 = ctrl[idx % count]
        p2 = ctrl[(idx + 1) % count]
        p3 = ctrl[(idx + 2) % count]
        out.append(_catmull_rom_point(p0, p1, p2, p3, alpha, tau))
    return out


def _catmull_rom_point(p0: Vec2, p1: Vec2, p2: Vec2, p3: Vec2, alpha: float, tau: float) -> Vec2:
    def tj(ti: float, a: Vec2, b: Vec2) -> float:
        return ti + math.hypot(b[0] - a[0], b[1] - a[1]) ** alpha

    t0 = 0.0
    t1 = tj(t0, p0, p1)
    t2 = tj(t1, p1, p2)
    t3 = tj(t2, p2, p3)
    if t2 - t1 < 1e-12:
        return p1

    t = t1 + (t2 - t1) * tau
    a1 = _blend(p0, p1, t0, t1, t)
    a2 = _blend(p1, p2, t1, t2, t)
    a3 = _blend(p2, p3, t2, t3, t)
    b1 = _blend(a1, a2, t0, t2, t)
    b2 = _blend(a2, a3, t1, t3, t)
    return _blend(b1, b2, t1, t2, t)


def _blend(a: Vec2, b: Vec2, t0: float, t1: float, t: float) -> Vec2:
    denom = t1 - t0
    if abs(denom) < 1e-12:
        return b
    w0 = (t1 - t) / denom
    w1 = (t - t0) / denom
    return (a[0] * w0 + b[0] * w1, a[1] * w0 + b[1] * w1)


def refine_ring(
    points: Sequence[Vec2],
    enabled: bool,
    tolerance_mm: float,
    config: EngineConfig,
) -> List[Vec2]:
    """Simplify then (above the smoothing threshold) spline-resample a ring.

    ``points`` are in grid units; ``tolerance_mm`` is physical and is scaled
    by the cell size before use.
    """
    pts = [(float(x), float(y)) for x, y in points]
    if not enabled or tolerance_mm <= 0 or len(pts) <= 2:
        return pts
    simplified = simplify_closed_path(pts, tolerance_mm / config.cell_size_mm)
    if len(simplified) < 3:
        # zero-area ring; leave it for the extruder to judge
        return pts
    if tolerance_mm > config.smoothing_threshold_mm:
        samples = max(config.spline_samples_per_point * len(simplified), config.spline_min_samples)
        return catmull_rom_closed(simplified, samples, config.spline_alpha)
    return simplified


def refine_shape(shape: Shape, settings: LayerSettings, config: EngineConfig) -> Shape:
    """Refine a shape's outline and holes under their own smoothing gates."""
    return Shape(
        outline=refine_ring(shape.outline, settings.smooth_outer, settings.tolerance_mm, config),
        holes=[
            refine_ring(hole, settings.smooth_inner, settings.tolerance_mm, config)
            for hole in shape.holes
        ],
    )
