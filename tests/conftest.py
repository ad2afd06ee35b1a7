"""
Shared test fixtures for the layered-solid engine tests.
"""
import sys
from pathlib import Path

import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dotplate.contracts import EngineConfig
from dotplate.raster import Raster

RED = (255, 0, 0)
BLUE = (0, 0, 255)
E = None  # empty cell in from_rows grids


@pytest.fixture
def ring_raster():
    """3x3 red raster with the centre cell empty."""
    return Raster.from_rows([
        [RED, RED, RED],
        [RED, E, RED],
        [RED, RED, RED],
    ])


@pytest.fixture
def two_color_raster():
    """Red 4x4 block with a 2x2 blue patch and a blue cell on empty ground.

    The blue cell at (5, 0) has no red underneath it.
    """
    return Raster.from_rows([
        [RED, RED, RED, RED, E, BLUE],
        [RED, BLUE, BLUE, RED, E, E],
        [RED, BLUE, BLUE, RED, E, E],
        [RED, RED, RED, RED, E, E],
    ])


@pytest.fixture
def unit_config():
    """1mm cells, no base plate."""
    return EngineConfig(cell_size_mm=1.0, base_thickness_mm=0.0, layer_thickness_mm=1.0)
