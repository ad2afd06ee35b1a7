"""Public API for the raster-to-layered-solid engine."""

from dotplate.contracts import (
    EMPTY_COLOR,
    Contour,
    EdgeKind,
    EngineConfig,
    LayerSettings,
    LayerSolid,
    Model,
    Shape,
    color_key,
)
from dotplate.pipeline import build_model, compute_layer_shapes
from dotplate.raster import Raster, layer_top_heights, move_layer, sync_stacking_order

__all__ = [
    "EMPTY_COLOR",
    "Contour",
    "EdgeKind",
    "EngineConfig",
    "LayerSettings",
    "LayerSolid",
    "Model",
    "Raster",
    "Shape",
    "build_model",
    "color_key",
    "compute_layer_shapes",
    "layer_top_heights",
    "move_layer",
    "sync_stacking_order",
]
