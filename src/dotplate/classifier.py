"""Outer/hole classification and hole nesting of traced contours."""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import shapely
from shapely.algorithms.cga import signed_area as ring_signed_area
from shapely.geometry import LinearRing, Polygon

from dotplate.contracts import Contour, Shape, Vec2

logger = logging.getLogger(__name__)


def signed_area(points: Sequence[Tuple[float, float]]) -> float:
    """Shoelace area of a closed ring; positive for outer boundaries."""
    if len(points) < 3:
        return 0.0
    return float(ring_signed_area(LinearRing(points)))


def _probe_point(points: Sequence[Tuple[float, float]]) -> Vec2:
    # Midpoint of the first edge. Edges belong to exactly one contour, so it
    # never sits on a different contour's boundary.
    (x0, y0), (x1, y1) = points[0], points[1 % len(points)]
    return ((x0 + x1) / 2.0, (y0 + y1) / 2.0)


def classify_contours(contours: Sequence[Contour]) -> List[Shape]:
    """Group contours into shapes of one outer boundary plus nested holes.

    Contours are visited largest first, so a container always exists before
    any hole it holds. Holes go to the most recently created (smallest)
    containing shape, which keeps holes of islands-inside-holes on the
    island. A hole with no container is kept as its own outer shape.
    Containment excludes the boundary.
    """
    ranked = sorted(
        ((c.signed_area, c) for c in contours if len(c.points) > 0),
        key=lambda item: abs(item[0]),
        reverse=True,
    )

    shapes: List[Shape] = []
    outlines: List[Polygon] = []
    promoted = 0
    for area, contour in ranked:
        points = [(float(x), float(y)) for x, y in contour.points]
        if area <= 0:
            probe = _probe_point(points)
            container = next(
                (
                    shape
                    for shape, outline in zip(reversed(shapes), reversed(outlines))
                    if shapely.contains_xy(outline, *probe)
                ),
                None,
            )
            if container is not None:
                container.holes.append(points)
                continue
            promoted += 1
        shapes.append(Shape(outline=points))
        outlines.append(_outline_polygon(points))

    if promoted:
        logger.warning("Promoted %d uncontained hole contour(s) to outer shapes", promoted)
    return shapes


def _outline_polygon(points: Sequence[Vec2]) -> Polygon:
    if len(points) < 3:
        return Polygon()
    return Polygon(points)
