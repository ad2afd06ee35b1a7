"""Raster snapshot, stacking order upkeep, and occupancy masks."""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, Sequence

import numpy as np

from dotplate.contracts import (
    EMPTY_COLOR,
    Color,
    ColorLike,
    EngineConfig,
    LayerSettings,
    color_key,
)


class Raster:
    """Immutable W x H grid of RGB cells; ``EMPTY_COLOR`` marks empty cells."""

    def __init__(self, pixels: np.ndarray):
        raw = np.asarray(pixels)
        if raw.size and not np.issubdtype(raw.dtype, np.integer):
            raise ValueError(f"Raster channel values must be integers, got dtype {raw.dtype}")
        arr = np.array(raw, dtype=np.int64, copy=True)
        if arr.ndim != 3 or arr.shape[2] != 3:
            raise ValueError(f"Raster pixels must have shape (H, W, 3), got {arr.shape}")
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ValueError("Raster must have at least one cell")
        if arr.min() < 0 or arr.max() > 255:
            raise ValueError("Raster channel values must lie in 0..255")
        self._pixels = arr.astype(np.uint8)
        self._pixels.setflags(write=False)

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[Optional[ColorLike]]]) -> "Raster":
        """Build a raster from nested rows of RGB triples (``None`` = empty)."""
        if not rows:
            raise ValueError("Raster must have at least one row")
        width = len(rows[0])
        grid = []
        for y, row in enumerate(rows):
            if len(row) != width:
                raise ValueError(f"Row {y} has {len(row)} cells, expected {width}")
            grid.append([EMPTY_COLOR if cell is None else color_key(cell) for cell in row])
        return cls(np.array(grid, dtype=np.int64).reshape(len(rows), width, 3))

    @classmethod
    def filled(cls, width: int, height: int, color: ColorLike = EMPTY_COLOR) -> "Raster":
        pixels = np.empty((height, width, 3), dtype=np.uint8)
        pixels[:, :] = color_key(color)
        return cls(pixels)

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    def color_at(self, x: int, y: int) -> Color:
        r, g, b = self._pixels[y, x]
        return (int(r), int(g), int(b))

    def present_colors(self) -> List[Color]:
        """Distinct non-empty colors in row-major first-appearance order."""
        flat = self._pixels.reshape(-1, 3)
        _, first = np.unique(flat, axis=0, return_index=True)
        colors = []
        for idx in np.sort(first):
            c = tuple(int(v) for v in flat[idx])
            if c != EMPTY_COLOR:
                colors.append(c)
        return colors

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Raster):
            return NotImplemented
        return np.array_equal(self._pixels, other._pixels)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Raster({self.width}x{self.height})"


# ─── Stacking order ──────────────────────────────────────────────────────────

def sync_stacking_order(previous: Iterable[ColorLike], raster: Raster) -> List[Color]:
    """Drop colors that left the raster and append newly painted ones."""
    present = raster.present_colors()
    present_set = set(present)
    order: List[Color] = []
    for value in previous:
        c = color_key(value)
        if c in present_set and c not in order:
            order.append(c)
    kept = set(order)
    order.extend(c for c in present if c not in kept)
    return order


def move_layer(order: Sequence[ColorLike], index: int, direction: int) -> List[Color]:
    """Swap layer ``index`` with its neighbour ``index + direction``.

    Out-of-range moves return an unchanged copy.
    """
    new_order = [color_key(c) for c in order]
    target = index + direction
    if not (0 <= index < len(new_order)) or not (0 <= target < len(new_order)):
        return new_order
    new_order[index], new_order[target] = new_order[target], new_order[index]
    return new_order


def validate_stacking_order(order: Sequence[ColorLike]) -> List[Color]:
    colors = [color_key(c) for c in order]
    if EMPTY_COLOR in colors:
        raise ValueError("Stacking order must not contain the empty color")
    if len(set(colors)) != len(colors):
        raise ValueError("Stacking order contains duplicate colors")
    return colors


def resolve_layer_settings(
    order: Sequence[ColorLike],
    layer_config: Optional[Mapping[ColorLike, LayerSettings]],
    config: EngineConfig,
) -> List[LayerSettings]:
    """One ``LayerSettings`` per stacking layer, defaulting unconfigured colors."""
    by_color = {}
    for key, settings in (layer_config or {}).items():
        c = color_key(key)
        if c in by_color:
            raise ValueError(f"Layer config has more than one entry for color {c}")
        if not isinstance(settings, LayerSettings):
            raise ValueError(f"Layer config for {c} must be LayerSettings, got {type(settings).__name__}")
        by_color[c] = settings
    default = LayerSettings(thickness_mm=config.layer_thickness_mm)
    return [by_color.get(color_key(c), default) for c in order]


def occupied_layers(raster: Raster, order: Sequence[ColorLike]) -> List[bool]:
    """Whether each layer's union-support mask has any cell."""
    rank = stack_rank(raster, order)
    return [bool((rank >= i).any()) for i in range(len(order))]


def layer_offsets(
    settings: Sequence[LayerSettings],
    base_thickness_mm: float,
    occupied: Optional[Sequence[bool]] = None,
) -> List[float]:
    """Bottom Z of each layer.

    A layer adds height only when its effective thickness is positive and,
    when ``occupied`` is given, its union-support mask is not empty.
    """
    if occupied is None:
        occupied = [True] * len(settings)
    offsets = []
    z = max(base_thickness_mm, 0.0)
    for s, filled in zip(settings, occupied):
        offsets.append(z)
        if filled and s.effective_thickness_mm > 0:
            z += s.effective_thickness_mm
    return offsets


def layer_top_heights(
    raster: Raster,
    order: Sequence[ColorLike],
    layer_config: Optional[Mapping[ColorLike, LayerSettings]] = None,
    config: Optional[EngineConfig] = None,
) -> List[float]:
    """Top Z of each layer as ``build_model`` will stack it.

    Skipped layers (non-positive thickness or nothing to trace) report the
    height they sit at, adding nothing.
    """
    if config is None:
        config = EngineConfig()
    colors = validate_stacking_order(order)
    settings = resolve_layer_settings(colors, layer_config, config)
    occupied = occupied_layers(raster, colors)
    offsets = layer_offsets(settings, config.base_thickness_mm, occupied)
    return [
        z + s.effective_thickness_mm if filled and s.effective_thickness_mm > 0 else z
        for z, s, filled in zip(offsets, settings, occupied)
    ]


# ─── Masks ───────────────────────────────────────────────────────────────────

def _color_codes(pixels: np.ndarray) -> np.ndarray:
    p = pixels.astype(np.int64)
    return (p[..., 0] << 16) | (p[..., 1] << 8) | p[..., 2]


def _code(color: Color) -> int:
    return (color[0] << 16) | (color[1] << 8) | color[2]


def occupancy_mask(raster: Raster, colors: Iterable[ColorLike]) -> np.ndarray:
    """Boolean (H, W) grid, True where the cell color is in ``colors``."""
    codes = [_code(color_key(c)) for c in colors]
    return np.isin(_color_codes(raster.pixels), codes)


def empty_mask(raster: Raster) -> np.ndarray:
    return _color_codes(raster.pixels) == _code(EMPTY_COLOR)


def stack_rank(raster: Raster, order: Sequence[ColorLike]) -> np.ndarray:
    """Stacking index of each cell's color; -1 for empty or unordered cells."""
    codes = _color_codes(raster.pixels)
    rank = np.full(codes.shape, -1, dtype=np.int64)
    for i, c in enumerate(order):
        rank[codes == _code(color_key(c))] = i
    return rank


def union_support_mask(raster: Raster, order: Sequence[ColorLike], index: int) -> np.ndarray:
    """Cells of layer ``index`` or any layer stacked above it."""
    return stack_rank(raster, order) >= index
