"""Leaf-node geometry helpers for the normalized 0-1000 coordinate space. No engine imports."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from splitter.engine.errors import GeometryInvariantError

# Full image height and width each span [0, NORM_SPAN]
NORM_SPAN = 1000

# Tolerance when testing whether a box lies inside another (normalized units)
SUBSUME_EPSILON = 0.1


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def normalize_row(row: int, height: int) -> int:
    """Pixel row boundary -> normalized 0-1000 coordinate."""
    return round_half_up(row / height * NORM_SPAN)


@dataclass(frozen=True)
class BoundingBox:
    ymin: float
    xmin: float
    ymax: float
    xmax: float

    def __post_init__(self) -> None:
        if not (0 <= self.ymin < self.ymax <= NORM_SPAN):
            raise GeometryInvariantError(
                f"vertical extent out of order: ymin={self.ymin} ymax={self.ymax}"
            )
        if not (0 <= self.xmin < self.xmax <= NORM_SPAN):
            raise GeometryInvariantError(
                f"horizontal extent out of order: xmin={self.xmin} xmax={self.xmax}"
            )

    @classmethod
    def full_width(cls, ymin: float, ymax: float) -> BoundingBox:
        return cls(ymin=ymin, xmin=0, ymax=ymax, xmax=NORM_SPAN)

    @classmethod
    def from_dict(cls, data: dict) -> BoundingBox:
        return cls(
            ymin=data["ymin"],
            xmin=data["xmin"],
            ymax=data["ymax"],
            xmax=data["xmax"],
        )

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    def to_dict(self) -> dict[str, float]:
        return {"ymin": self.ymin, "xmin": self.xmin, "ymax": self.ymax, "xmax": self.xmax}

    def within(self, other: BoundingBox, eps: float = SUBSUME_EPSILON) -> bool:
        """True if this box's vertical span lies inside other's, widened by eps."""
        return self.ymin >= other.ymin - eps and self.ymax <= other.ymax + eps

    def to_pixels(self, width: int, height: int) -> tuple[int, int, int, int]:
        """(left, top, right, bottom) pixel rectangle, at least 1px on each axis."""
        left = min(width - 1, int(round(self.xmin / NORM_SPAN * width)))
        top = min(height - 1, int(round(self.ymin / NORM_SPAN * height)))
        right = max(left + 1, int(round(self.xmax / NORM_SPAN * width)))
        bottom = max(top + 1, int(round(self.ymax / NORM_SPAN * height)))
        return left, top, min(right, width), min(bottom, height)


def union_full_width(boxes: Iterable[BoundingBox]) -> BoundingBox:
    """Vertical union of boxes, horizontal extent forced to the full width."""
    boxes = list(boxes)
    if not boxes:
        raise GeometryInvariantError("cannot take the union of zero boxes")
    return BoundingBox.full_width(
        ymin=min(b.ymin for b in boxes),
        ymax=max(b.ymax for b in boxes),
    )


def percent_of_span(total_height: float) -> int:
    """Rounded percentage of the normalized height, clamped to [0, 100]."""
    return max(0, min(100, round_half_up(100 * total_height / NORM_SPAN)))
