"""Boundary tracing of an occupancy mask into closed corner-lattice contours.

Every occupied cell contributes one unit edge per side whose neighbour is not
occupied. Edges are oriented so that occupied material lies on the same side
of every edge (outer boundaries come out with positive shoelace area in
``(x, y)`` corner space, holes negative). Chaining edges end-to-start then
recovers the closed loops.

Corner ``(x, y)`` is the top-left corner of cell ``(x, y)``; ``y`` grows
downward with the raster rows.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np

from dotplate.contracts import Contour, Corner, EdgeKind

logger = logging.getLogger(__name__)

# (neighbour dy, neighbour dx, start corner offset, end corner offset)
_SIDES = (
    (-1, 0, (0, 0), (1, 0)),  # top
    (0, 1, (1, 0), (1, 1)),   # right
    (1, 0, (1, 1), (0, 1)),   # bottom
    (0, -1, (0, 1), (0, 0)),  # left
)


def boundary_edges(mask: np.ndarray, empty: Optional[np.ndarray] = None):
    """Emit the oriented unit boundary edges of ``mask``.

    Args:
        mask: (H, W) boolean occupancy grid.
        empty: (H, W) boolean grid of empty raster cells. A non-occupied
            neighbour that is not empty is another color, so its edge is
            tagged internal. ``None`` treats every non-occupied cell as empty.

    Returns:
        (starts, ends, internal): (N, 2) int arrays of ``(x, y)`` corners and
        an (N,) boolean array, ordered row-major by cell then side.
    """
    mask = np.asarray(mask, dtype=bool)
    if empty is None:
        other = np.zeros_like(mask)
    else:
        other = ~np.asarray(empty, dtype=bool) & ~mask
    occ = np.pad(mask, 1, constant_values=False)
    oth = np.pad(other, 1, constant_values=False)
    h, w = mask.shape

    starts, ends, internal, keys = [], [], [], []
    for side, (dy, dx, s_off, e_off) in enumerate(_SIDES):
        neighbour_occ = occ[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]
        neighbour_oth = oth[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]
        ys, xs = np.nonzero(mask & ~neighbour_occ)
        starts.append(np.column_stack([xs + s_off[0], ys + s_off[1]]))
        ends.append(np.column_stack([xs + e_off[0], ys + e_off[1]]))
        internal.append(neighbour_oth[ys, xs])
        keys.append(np.column_stack([ys, xs, np.full(len(xs), side)]))

    starts_arr = np.vstack(starts).astype(np.int64)
    ends_arr = np.vstack(ends).astype(np.int64)
    internal_arr = np.concatenate(internal).astype(bool)
    key_arr = np.vstack(keys)
    order = np.lexsort((key_arr[:, 2], key_arr[:, 1], key_arr[:, 0]))
    return starts_arr[order], ends_arr[order], internal_arr[order]


def trace_contours(mask: np.ndarray, empty: Optional[np.ndarray] = None) -> List[Contour]:
    """Chain the boundary edges of ``mask`` into closed contours.

    Each edge lands in exactly one contour. A diagonal pinch (two cells
    touching only at a corner) may join two loops into one contour.
    """
    starts, ends, internal = boundary_edges(mask, empty)
    start_pts = [(int(x), int(y)) for x, y in starts]
    end_pts = [(int(x), int(y)) for x, y in ends]
    kinds = [EdgeKind.INTERNAL if flag else EdgeKind.EXTERNAL for flag in internal]

    by_start: Dict[Corner, List[int]] = {}
    for i, corner in enumerate(start_pts):
        by_start.setdefault(corner, []).append(i)

    used = [False] * len(start_pts)
    contours: List[Contour] = []
    for seed in range(len(start_pts)):
        if used[seed]:
            continue
        points: List[Corner] = []
        edge_kinds: List[EdgeKind] = []
        current: Optional[int] = seed
        while current is not None:
            used[current] = True
            points.append(start_pts[current])
            edge_kinds.append(kinds[current])
            current = next(
                (i for i in by_start.get(end_pts[current], ()) if not used[i]),
                None,
            )
        contours.append(Contour(points=tuple(points), edge_kinds=tuple(edge_kinds)))

    logger.debug("Traced %d edges into %d contours", len(start_pts), len(contours))
    return contours
