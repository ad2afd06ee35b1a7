"""Per-layer extrusion of refined shapes into stacked solids."""

from __future__ import annotations

import logging
from typing import List, Sequence

import shapely
import trimesh
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.polygon import orient

from dotplate.contracts import Color, EngineConfig, LayerSolid, Shape, Vec2

logger = logging.getLogger(__name__)


def grid_to_world(points: Sequence[Vec2], width: int, height: int, cell_size_mm: float) -> List[Vec2]:
    """Map grid corners to physical XY: scaled, Y flipped, centred on the grid."""
    cx = width / 2.0
    cy = height / 2.0
    return [((x - cx) * cell_size_mm, (cy - y) * cell_size_mm) for x, y in points]


def _polygon_parts(geom) -> List[Polygon]:
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, MultiPolygon):
        return list(geom.geoms)
    return [g for g in getattr(geom, "geoms", []) if isinstance(g, Polygon) and not g.is_empty]


def shape_to_polygons(shape: Shape, width: int, height: int, config: EngineConfig) -> List[Polygon]:
    """Physical-space polygons (outline minus holes) for one shape.

    Rings that do not form a valid polygon (pinch points, overlapping
    resampled curves) are repaired with ``shapely.make_valid`` and may split into
    several parts. Parts below ``config.min_shape_area`` are dropped.
    """
    if len(shape.outline) < 3:
        return []
    outline = grid_to_world(shape.outline, width, height, config.cell_size_mm)
    holes = [
        grid_to_world(h, width, height, config.cell_size_mm)
        for h in shape.holes
        if len(h) >= 3
    ]

    poly = Polygon(outline, holes=holes)
    if not poly.is_valid:
        logger.warning("Repairing invalid shape polygon (%d holes)", len(holes))
        result = shapely.make_valid(Polygon(outline))
        for hole in holes:
            result = result.difference(shapely.make_valid(Polygon(hole)))
        parts = _polygon_parts(result)
    else:
        parts = [poly]

    kept = [orient(p, sign=1.0) for p in parts if p.area > config.min_shape_area]
    if len(kept) < len(parts):
        logger.debug("Dropped %d degenerate polygon part(s)", len(parts) - len(kept))
    return kept


def extrude_layer(
    shapes: Sequence[Shape],
    color: Color,
    layer_index: int,
    thickness_mm: float,
    z_offset_mm: float,
    width: int,
    height: int,
    config: EngineConfig,
) -> LayerSolid:
    """Extrude every shape of one layer and lift it to ``z_offset_mm``."""
    solid = LayerSolid(
        color=color,
        layer_index=layer_index,
        z_offset_mm=z_offset_mm,
        thickness_mm=thickness_mm,
    )
    for shape in shapes:
        for poly in shape_to_polygons(shape, width, height, config):
            mesh = trimesh.creation.extrude_polygon(poly, height=thickness_mm)
            mesh.apply_translation([0.0, 0.0, z_offset_mm])
            solid.polygons.append(poly)
            solid.meshes.append(mesh)
    return solid


def base_slab(width: int, height: int, config: EngineConfig) -> trimesh.Trimesh:
    """Flat plate under the whole grid, from z=0 to the base thickness."""
    slab = trimesh.creation.box(
        extents=[width * config.cell_size_mm, height * config.cell_size_mm, config.base_thickness_mm]
    )
    slab.apply_translation([0.0, 0.0, config.base_thickness_mm / 2.0])
    return slab
