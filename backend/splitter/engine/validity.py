"""Content validity classifier: is a candidate content run real content or noise?

Three signals, evaluated in order and short-circuiting on the first positive:

1. Color cardinality: distinct exact colors among non-transparent pixels
2. Luma variance: population variance of BT.601 grayscale
3. Connected-component density: luma-tolerant 8-neighbour components on a
   downsampled grid; many components, or no single component dominating the
   area, means texture (text, icons) rather than a flat fill

Everything here is a pure function of the pixel data and the config.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components

from splitter.engine.config import SegmentationConfig

# ITU-R BT.601 luma weights
_LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])

# 8-connectivity without double counting: E, S, SE, SW
_NEIGHBOUR_OFFSETS = ((0, 1), (1, 0), (1, 1), (1, -1))


@dataclass(frozen=True)
class ValidityReport:
    """Per-signal diagnostics. Signals after the deciding one are left as None."""

    meaningful: bool
    signal: str = ""
    color_count: int | None = None
    luma_variance: float | None = None
    component_count: int | None = None
    dominant_coverage: float | None = None


def luma(pixels: NDArray[np.uint8]) -> NDArray[np.float64]:
    return pixels[..., :3].astype(np.float64) @ _LUMA_WEIGHTS


def count_colors(pixels: NDArray[np.uint8]) -> int:
    """Distinct exact RGB colors among pixels with non-zero alpha."""
    opaque = pixels[pixels[..., 3] > 0]
    if opaque.size == 0:
        return 0
    rgb = opaque[:, :3].astype(np.int64)
    codes = (rgb[:, 0] << 16) | (rgb[:, 1] << 8) | rgb[:, 2]
    return int(np.unique(codes).size)


def luma_variance(pixels: NDArray[np.uint8]) -> float:
    opaque = pixels[pixels[..., 3] > 0]
    if opaque.size == 0:
        return 0.0
    return float(np.var(luma(opaque)))


def downsample(pixels: NDArray[np.uint8], max_side: int) -> NDArray[np.uint8]:
    """Integer-stride sampling so the longer side is <= max_side."""
    longer = max(pixels.shape[0], pixels.shape[1])
    if longer <= max_side:
        return pixels
    step = math.ceil(longer / max_side)
    return pixels[::step, ::step]


def luma_components(grid: NDArray[np.float64], tolerance: float) -> tuple[int, NDArray[np.int32]]:
    """Label 8-connected components where neighbours differ by <= tolerance.

    Equivalent to a flood fill from every unvisited pixel, expressed as a
    sparse adjacency graph so scipy does the traversal.
    """
    h, w = grid.shape
    index = np.arange(h * w).reshape(h, w)
    src: list[NDArray] = []
    dst: list[NDArray] = []

    for dy, dx in _NEIGHBOUR_OFFSETS:
        y0, y1 = 0, h - dy
        x0, x1 = max(0, -dx), w - max(0, dx)
        if y1 <= y0 or x1 <= x0:
            continue
        a = grid[y0:y1, x0:x1]
        b = grid[y0 + dy:y1 + dy, x0 + dx:x1 + dx]
        close = np.abs(a - b) <= tolerance
        src.append(index[y0:y1, x0:x1][close])
        dst.append(index[y0 + dy:y1 + dy, x0 + dx:x1 + dx][close])

    n = h * w
    if src:
        rows = np.concatenate(src)
        cols = np.concatenate(dst)
    else:
        rows = cols = np.empty(0, dtype=np.int64)
    graph = coo_matrix((np.ones(rows.size, dtype=np.int8), (rows, cols)), shape=(n, n))
    n_components, labels = connected_components(graph, directed=False)
    return int(n_components), labels.reshape(h, w)


def classify_region(
    pixels: NDArray[np.uint8],
    config: SegmentationConfig | None = None,
) -> ValidityReport:
    """Evaluate the three signals on an (h, w, 4) RGBA region."""
    config = config or SegmentationConfig()
    if pixels.size == 0:
        return ValidityReport(meaningful=False)

    colors = count_colors(pixels)
    if colors > config.max_uniform_colors:
        return ValidityReport(True, "color_count", color_count=colors)

    variance = luma_variance(pixels)
    if variance > config.luma_variance_threshold:
        return ValidityReport(True, "luma_variance", color_count=colors, luma_variance=variance)

    sampled = downsample(pixels, config.component_sample_size)
    n_components, labels = luma_components(luma(sampled), config.component_luma_tolerance)
    dominant = float(np.bincount(labels.ravel()).max()) / labels.size

    meaningful = (
        n_components > config.max_uniform_components
        or dominant < config.min_dominant_coverage
    )
    return ValidityReport(
        meaningful,
        "components" if meaningful else "",
        color_count=colors,
        luma_variance=variance,
        component_count=n_components,
        dominant_coverage=dominant,
    )


def is_meaningful(pixels: NDArray[np.uint8], config: SegmentationConfig | None = None) -> bool:
    return classify_region(pixels, config).meaningful
