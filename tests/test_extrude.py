"""Tests for shape-to-polygon conversion and layer extrusion."""
import numpy as np
import pytest
from shapely.geometry import Point, Polygon

from dotplate.contracts import EngineConfig, Shape
from dotplate.extrude import base_slab, extrude_layer, grid_to_world, shape_to_polygons

RED = (255, 0, 0)


def _square(x0, y0, size):
    return [(x0, y0), (x0 + size, y0), (x0 + size, y0 + size), (x0, y0 + size)]


def _hole(x0, y0, size):
    return list(reversed(_square(x0, y0, size)))


class TestGridToWorld:
    """Test grid corner -> physical coordinate mapping."""

    def test_centred_and_flipped(self):
        pts = grid_to_world([(0, 0), (3, 3)], 3, 3, 1.0)
        assert pts[0] == pytest.approx((-1.5, 1.5))
        assert pts[1] == pytest.approx((1.5, -1.5))

    def test_scaled_by_cell_size(self):
        pts = grid_to_world([(4, 0)], 4, 2, 2.5)
        assert pts[0] == pytest.approx((5.0, 2.5))


class TestShapeToPolygons:
    """Test polygon construction, repair, and degenerate rejection."""

    config = EngineConfig(cell_size_mm=1.0)

    def test_outline_with_hole(self):
        shape = Shape(outline=_square(0, 0, 3), holes=[_hole(1, 1, 1)])
        polys = shape_to_polygons(shape, 3, 3, self.config)
        assert len(polys) == 1
        assert Polygon(polys[0].exterior).area == pytest.approx(9.0)
        assert len(polys[0].interiors) == 1
        assert polys[0].area == pytest.approx(8.0)
        assert polys[0].exterior.is_ccw

    def test_degenerate_outline_dropped(self):
        flat = Shape(outline=[(0, 0), (2, 0), (4, 0)])
        assert shape_to_polygons(flat, 4, 4, self.config) == []
        assert shape_to_polygons(Shape(outline=[(0, 0), (1, 0)]), 4, 4, self.config) == []

    def test_pinched_outline_repaired(self):
        # two cells touching at one corner, traced as one ring
        ring = [(0, 0), (1, 0), (1, 1), (2, 1), (2, 2), (1, 2), (1, 1), (0, 1)]
        polys = shape_to_polygons(Shape(outline=ring), 2, 2, self.config)
        assert sum(p.area for p in polys) == pytest.approx(2.0)
        assert all(p.is_valid for p in polys)

    def test_hole_outside_outline_is_clipped(self):
        shape = Shape(outline=_square(0, 0, 2), holes=[_hole(1, 1, 2)])
        polys = shape_to_polygons(shape, 4, 4, self.config)
        assert sum(p.area for p in polys) == pytest.approx(3.0)


class TestExtrudeLayer:
    """Test per-layer solids."""

    config = EngineConfig(cell_size_mm=1.0)

    def test_volume_and_placement(self):
        shape = Shape(outline=_square(0, 0, 3), holes=[_hole(1, 1, 1)])
        solid = extrude_layer([shape], RED, 0, 2.0, 0.5, 3, 3, self.config)
        assert len(solid.meshes) == 1
        mesh = solid.meshes[0]
        assert mesh.volume == pytest.approx(16.0)
        assert mesh.bounds[0][2] == pytest.approx(0.5)
        assert mesh.bounds[1][2] == pytest.approx(2.5)
        assert solid.top_mm == pytest.approx(2.5)
        # hole is open all the way through
        assert not solid.polygons[0].contains(Point(0.0, 0.0))

    def test_one_mesh_per_shape(self):
        shapes = [Shape(outline=_square(0, 0, 1)), Shape(outline=_square(3, 3, 1))]
        solid = extrude_layer(shapes, RED, 1, 1.0, 0.0, 4, 4, self.config)
        assert len(solid.meshes) == 2
        assert len(solid.polygons) == 2

    def test_no_shapes_no_meshes(self):
        solid = extrude_layer([], RED, 0, 1.0, 0.0, 4, 4, self.config)
        assert solid.meshes == []


class TestBaseSlab:
    """Test the flat base plate."""

    def test_slab_bounds(self):
        slab = base_slab(6, 4, EngineConfig(cell_size_mm=0.5, base_thickness_mm=0.2))
        lo, hi = slab.bounds
        assert np.allclose(lo, [-1.5, -1.0, 0.0])
        assert np.allclose(hi, [1.5, 1.0, 0.2])
