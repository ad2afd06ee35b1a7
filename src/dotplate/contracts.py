"""Contracts for the raster-to-layered-solid engine."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import trimesh
from shapely.algorithms.cga import signed_area as ring_signed_area
from shapely.geometry import LinearRing, Polygon

Vec2 = Tuple[float, float]
Corner = Tuple[int, int]
Color = Tuple[int, int, int]
ColorLike = Union[str, Sequence[int]]

EMPTY_COLOR: Color = (255, 0, 255)
BASE_COLOR: Color = (221, 221, 221)

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")


def color_key(value: ColorLike) -> Color:
    """Canonicalize an RGB triple or ``#rrggbb`` string to an int tuple."""
    if isinstance(value, str):
        match = _HEX_RE.match(value.strip())
        if match is None:
            raise ValueError(f"Not a hex color: {value!r}")
        raw = match.group(1)
        return (int(raw[0:2], 16), int(raw[2:4], 16), int(raw[4:6], 16))
    try:
        channels = [int(c) for c in value]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Not an RGB triple: {value!r}") from exc
    if len(channels) != 3:
        raise ValueError(f"RGB color needs 3 channels, got {len(channels)}")
    if any(c < 0 or c > 255 for c in channels):
        raise ValueError(f"RGB channel out of range 0..255: {value!r}")
    return (channels[0], channels[1], channels[2])


class EdgeKind(Enum):
    """What lies on the far side of a traced boundary edge."""
    EXTERNAL = "external"  # empty cell or outside the grid
    INTERNAL = "internal"  # another occupied color


@dataclass(frozen=True)
class EngineConfig:
    """Global physical parameters for one model build."""

    cell_size_mm: float = 1.0
    base_thickness_mm: float = 0.2
    layer_thickness_mm: float = 1.0  # nominal thickness for unconfigured colors
    smoothing_threshold_mm: float = 0.05  # spline resampling kicks in above this
    spline_alpha: float = 0.5  # 0.5 = centripetal
    spline_samples_per_point: int = 5
    spline_min_samples: int = 20
    min_shape_area: float = 1e-9  # physical units^2

    def __post_init__(self):
        if not self.cell_size_mm > 0:
            raise ValueError(f"cell_size_mm must be positive, got {self.cell_size_mm}")


@dataclass(frozen=True)
class LayerSettings:
    """Per-color thickness and smoothing settings."""

    thickness_mm: float
    delta_mm: float = 0.0
    smooth_outer: bool = False
    smooth_inner: bool = False
    tolerance_mm: float = 0.0

    @property
    def effective_thickness_mm(self) -> float:
        return self.thickness_mm + self.delta_mm


@dataclass(frozen=True)
class Contour:
    """Closed chain of grid corners traced around occupied cells.

    ``edge_kinds[i]`` tags the segment from ``points[i]`` to the next point.
    """

    points: Tuple[Corner, ...]
    edge_kinds: Tuple[EdgeKind, ...]

    def __len__(self) -> int:
        return len(self.points)

    @property
    def signed_area(self) -> float:
        """Shoelace area in corner space; positive for outer boundaries."""
        if len(self.points) < 3:
            return 0.0
        return float(ring_signed_area(LinearRing(self.points)))


@dataclass
class Shape:
    """An outer boundary with the holes nested inside it (grid coordinates)."""

    outline: List[Vec2]
    holes: List[List[Vec2]] = field(default_factory=list)


@dataclass
class LayerSolid:
    """Extruded shapes of one stacking layer."""

    color: Color
    layer_index: int
    z_offset_mm: float
    thickness_mm: float
    polygons: List[Polygon] = field(default_factory=list)  # physical XY
    meshes: List[trimesh.Trimesh] = field(default_factory=list)

    @property
    def top_mm(self) -> float:
        return self.z_offset_mm + self.thickness_mm


@dataclass
class Model:
    """Base slab plus layer solids, in stacking order."""

    solids: List[LayerSolid]
    base: Optional[trimesh.Trimesh]
    grid_width: int
    grid_height: int
    skipped: List[Color] = field(default_factory=list)
    debug: Dict[str, object] = field(default_factory=dict)

    def meshes(self) -> List[trimesh.Trimesh]:
        out: List[trimesh.Trimesh] = []
        if self.base is not None:
            out.append(self.base)
        for solid in self.solids:
            out.extend(solid.meshes)
        return out

    def to_mesh(self) -> trimesh.Trimesh:
        """Concatenate every solid into one face-colored mesh."""
        parts: List[trimesh.Trimesh] = []
        if self.base is not None:
            parts.append(_colored(self.base, BASE_COLOR))
        for solid in self.solids:
            parts.extend(_colored(m, solid.color) for m in solid.meshes)
        if not parts:
            return trimesh.Trimesh()
        return trimesh.util.concatenate(parts)

    @property
    def height_mm(self) -> float:
        tops = [s.top_mm for s in self.solids]
        if self.base is not None:
            tops.append(float(self.base.bounds[1][2]))
        return max(tops) if tops else 0.0


def _colored(mesh: trimesh.Trimesh, color: Color) -> trimesh.Trimesh:
    copy = mesh.copy()
    rgba = np.array([color[0], color[1], color[2], 255], dtype=np.uint8)
    copy.visual.face_colors = np.tile(rgba, (len(copy.faces), 1))
    return copy
