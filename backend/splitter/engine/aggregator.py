"""Segment aggregator: run-length encodes row flags into separator / content segments."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from splitter.engine.config import SegmentationConfig
from splitter.engine.errors import InputError
from splitter.engine.geometry import BoundingBox, normalize_row
from splitter.engine.segments import Segment, SegmentKind
from splitter.engine.validity import is_meaningful

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowRun:
    start: int          # first row, inclusive
    end: int            # last row, exclusive
    is_separator: bool

    @property
    def height(self) -> int:
        return self.end - self.start


def iter_runs(rows: NDArray[np.bool_]) -> Iterator[RowRun]:
    """Maximal runs of equal flags, in row order."""
    n = len(rows)
    if n == 0:
        return
    changes = np.flatnonzero(rows[1:] != rows[:-1]) + 1
    bounds = [0, *changes.tolist(), n]
    for start, end in zip(bounds[:-1], bounds[1:]):
        yield RowRun(start=start, end=end, is_separator=bool(rows[start]))


def aggregate_runs(
    rows: NDArray[np.bool_],
    pixels: NDArray[np.uint8],
    min_height_ratio: float,
    config: SegmentationConfig | None = None,
) -> tuple[list[Segment], list[Segment], list[Segment]]:
    """Build (blocks, invalid_blocks, separators) from per-row separator flags."""
    config = config or SegmentationConfig()
    height = pixels.shape[0]
    if len(rows) != height:
        raise InputError(f"row flags ({len(rows)}) do not match image height ({height})")
    if not 0 < min_height_ratio <= 1:
        raise InputError(f"min_height_ratio must be in (0, 1], got {min_height_ratio}")

    min_height_px = min_height_ratio * height
    blocks: list[Segment] = []
    invalid: list[Segment] = []
    separators: list[Segment] = []

    for run in iter_runs(rows):
        ymin = normalize_row(run.start, height)
        ymax = normalize_row(run.end, height)
        if ymax <= ymin:
            # Sub-unit run in a very tall image: zero normalized height, zero coverage
            logger.debug("Skipping rows %d-%d: collapses in normalized space", run.start, run.end)
            continue
        box = BoundingBox.full_width(ymin, ymax)

        if run.is_separator:
            n = len(separators) + 1
            separators.append(Segment(f"sep-{n}", f"Separator {n}", box, SegmentKind.SEPARATOR))
        elif run.height >= min_height_px and is_meaningful(pixels[run.start:run.end], config):
            n = len(blocks) + 1
            blocks.append(Segment(f"block-{n}", f"Content {n}", box, SegmentKind.PIXEL_CONTENT))
        else:
            n = len(invalid) + 1
            invalid.append(Segment(f"invalid-{n}", f"Noise {n}", box, SegmentKind.INVALID_NOISE))

    return blocks, invalid, separators
