"""Separator detector: flags near-uniform rows by fuzzy-quantized color majority."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from splitter.engine.config import SegmentationConfig
from splitter.engine.errors import InputError


def separator_threshold(invalid_threshold: float, config: SegmentationConfig | None = None) -> float:
    config = config or SegmentationConfig()
    return max(config.separator_floor, invalid_threshold - config.separator_offset)


def _bucket_count(bucket: int) -> int:
    return 255 // bucket + 1


def quantize_colors(pixels: NDArray[np.uint8], bucket: int = 8) -> NDArray[np.int64]:
    """Pack each pixel's bucketed RGB into one integer code. Alpha is ignored."""
    base = _bucket_count(bucket)
    q = (pixels[..., :3] // bucket).astype(np.int64)
    return (q[..., 0] * base + q[..., 1]) * base + q[..., 2]


def row_majority_counts(pixels: NDArray[np.uint8], bucket: int = 8) -> NDArray[np.int64]:
    """Occurrence count of the most common fuzzy color, per row.

    Rows are sorted independently and offset by row index so a single
    run-length pass over the flattened array never merges runs across rows.
    """
    h = pixels.shape[0]
    span = _bucket_count(bucket) ** 3
    codes = np.sort(quantize_colors(pixels, bucket), axis=1)
    codes += (np.arange(h, dtype=np.int64) * span)[:, None]
    flat = codes.ravel()

    starts = np.concatenate(([0], np.flatnonzero(np.diff(flat)) + 1))
    lengths = np.diff(np.concatenate((starts, [flat.size])))
    rows = flat[starts] // span

    majority = np.zeros(h, dtype=np.int64)
    np.maximum.at(majority, rows, lengths)
    return majority


def detect_separator_rows(
    pixels: NDArray[np.uint8],
    invalid_threshold: float,
    config: SegmentationConfig | None = None,
) -> NDArray[np.bool_]:
    """One boolean per row: True iff majority / W >= separator threshold (inclusive)."""
    config = config or SegmentationConfig()
    if pixels.ndim != 3 or pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise InputError(f"pixel grid has no rows or columns: shape={pixels.shape}")
    if not 0 < invalid_threshold <= 1:
        raise InputError(f"invalid_threshold must be in (0, 1], got {invalid_threshold}")

    width = pixels.shape[1]
    threshold = separator_threshold(invalid_threshold, config)
    majority = row_majority_counts(pixels, config.color_bucket)
    return majority / width >= threshold
