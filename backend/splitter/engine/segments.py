"""Immutable segment records produced by decomposition and refinement."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any

from PIL import Image

from splitter.engine.geometry import BoundingBox


class SegmentKind(str, enum.Enum):
    PIXEL_CONTENT = "pixelContent"
    INVALID_NOISE = "invalidNoise"
    SEPARATOR = "separator"
    REFINED_MERGE = "refinedMerge"


@dataclass(frozen=True)
class Segment:
    """A horizontally bounded region of the source image."""

    id: str
    label: str
    box: BoundingBox
    kind: SegmentKind
    # 1-based indices into the pixel content list this segment was built from
    parent_refs: tuple[int, ...] = ()
    # Cached raster of the region; transient, never compared or serialized
    crop: Image.Image | None = field(default=None, compare=False, repr=False)

    @property
    def height(self) -> float:
        return self.box.height

    @property
    def is_refined(self) -> bool:
        return self.kind is SegmentKind.REFINED_MERGE

    def with_crop(self, crop: Image.Image | None) -> Segment:
        return replace(self, crop=crop)

    def to_record(self) -> dict[str, Any]:
        """Plain dict (camelCase keys, no crop) for the wire and for snapshots."""
        record: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "box": self.box.to_dict(),
            "kind": self.kind.value,
        }
        if self.parent_refs:
            record["parentRefs"] = list(self.parent_refs)
        return record


@dataclass(frozen=True)
class PixelResult:
    """Complete output of the pixel decomposition pipeline."""

    blocks: list[Segment]
    invalid_blocks: list[Segment]
    separators: list[Segment]
    completeness: int
    width: int = 0
    height: int = 0

    @property
    def all_segments(self) -> list[Segment]:
        """Every segment in top-to-bottom order."""
        return sorted(
            [*self.blocks, *self.invalid_blocks, *self.separators],
            key=lambda s: s.box.ymin,
        )
