"""Raster -> layered solid model.

For each stacking layer the union-support mask (this color plus every color
stacked above it) is traced, classified into shapes, refined, and extruded at
the cumulative height of the layers below. An optional base slab goes under
everything.
"""

from __future__ import annotations

import logging
import time
from typing import List, Mapping, Optional, Sequence

from dotplate.classifier import classify_contours
from dotplate.contracts import (
    ColorLike,
    EngineConfig,
    LayerSettings,
    LayerSolid,
    Model,
    Shape,
)
from dotplate.extrude import base_slab, extrude_layer
from dotplate.raster import (
    Raster,
    empty_mask,
    layer_offsets,
    occupied_layers,
    resolve_layer_settings,
    stack_rank,
    validate_stacking_order,
)
from dotplate.refine import refine_shape
from dotplate.tracer import trace_contours

logger = logging.getLogger(__name__)


def compute_layer_shapes(raster: Raster, order: Sequence[ColorLike]) -> List[List[Shape]]:
    """Unrefined shapes of every layer's union-support mask, bottom first."""
    colors = validate_stacking_order(order)
    rank = stack_rank(raster, colors)
    empty = empty_mask(raster)
    shapes: List[List[Shape]] = []
    for i in range(len(colors)):
        contours = trace_contours(rank >= i, empty)
        shapes.append(classify_contours(contours))
    return shapes


def build_model(
    raster: Raster,
    order: Sequence[ColorLike],
    layer_config: Optional[Mapping[ColorLike, LayerSettings]] = None,
    config: Optional[EngineConfig] = None,
) -> Model:
    """Build the stacked solid model for ``raster``.

    Args:
        raster: Immutable cell snapshot.
        order: Bottom-to-top stacking order of distinct non-empty colors.
        layer_config: Per-color settings; unlisted colors use
            ``config.layer_thickness_mm`` with smoothing off.
        config: Global physical parameters.

    Returns:
        Model with the base slab (if ``base_thickness_mm > 0``) and one
        ``LayerSolid`` per layer with positive effective thickness.
    """
    if config is None:
        config = EngineConfig()

    started = time.perf_counter()
    colors = validate_stacking_order(order)
    settings = resolve_layer_settings(colors, layer_config, config)
    width, height = raster.width, raster.height

    base = base_slab(width, height, config) if config.base_thickness_mm > 0 else None

    rank = stack_rank(raster, colors)
    empty = empty_mask(raster)
    occupied = occupied_layers(raster, colors)
    offsets = layer_offsets(settings, config.base_thickness_mm, occupied)
    solids: List[LayerSolid] = []
    skipped = []
    for i, (color, layer) in enumerate(zip(colors, settings)):
        z = offsets[i]
        thickness = layer.effective_thickness_mm
        if thickness <= 0 or not occupied[i]:
            logger.debug(
                "Skipping layer %d %s: effective thickness %.3f, occupied=%s",
                i, color, thickness, occupied[i],
            )
            skipped.append(color)
            continue
        contours = trace_contours(rank >= i, empty)
        shapes = [refine_shape(s, layer, config) for s in classify_contours(contours)]
        solid = extrude_layer(shapes, color, i, thickness, z, width, height, config)
        logger.debug(
            "Layer %d %s: %d contours, %d shapes, %d solids at z=%.3f",
            i, color, len(contours), len(shapes), len(solid.meshes), z,
        )
        if not solid.meshes:
            logger.warning("Layer %d %s produced no solid geometry", i, color)
            skipped.append(color)
            continue
        solids.append(solid)

    elapsed = time.perf_counter() - started
    logger.info(
        "Built %dx%d model: %d layers, %d skipped, base=%s in %.3fs",
        width, height, len(solids), len(skipped), base is not None, elapsed,
    )
    return Model(
        solids=solids,
        base=base,
        grid_width=width,
        grid_height=height,
        skipped=skipped,
        debug={
            "layer_offsets_mm": offsets,
            "layer_count": len(colors),
            "solid_count": sum(len(s.meshes) for s in solids),
        },
    )
