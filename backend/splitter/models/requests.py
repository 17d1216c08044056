"""API request models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from splitter.engine.errors import GeometryInvariantError, InputError
from splitter.engine.geometry import BoundingBox
from splitter.engine.refine.models import RefinementStrategy
from splitter.engine.segments import Segment, SegmentKind


class BoxPayload(BaseModel):
    ymin: float
    xmin: float
    ymax: float
    xmax: float


class SegmentPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str = ""
    box: BoxPayload
    kind: SegmentKind
    parent_refs: list[int] = Field(default_factory=list, alias="parentRefs")

    @classmethod
    def from_segment(cls, segment: Segment) -> SegmentPayload:
        return cls(
            id=segment.id,
            label=segment.label,
            box=BoxPayload(**segment.box.to_dict()),
            kind=segment.kind,
            parent_refs=list(segment.parent_refs),
        )

    def to_segment(self) -> Segment:
        try:
            box = BoundingBox.from_dict(self.box.model_dump())
        except GeometryInvariantError as e:
            raise InputError(f"segment {self.id!r}: {e}") from e
        return Segment(
            id=self.id,
            label=self.label,
            box=box,
            kind=self.kind,
            parent_refs=tuple(self.parent_refs),
        )


class DecomposeRequest(BaseModel):
    image: str = Field(..., description="Screenshot as a data URL or bare base64")
    invalid_threshold: float | None = Field(
        default=None, description="Majority-color ratio for separator rows; settings default if unset",
    )
    min_height_ratio: float | None = Field(
        default=None, description="Minimum content height as a fraction of image height",
    )


class RefineRequest(BaseModel):
    image: str = Field(..., description="Screenshot as a data URL or bare base64")
    blocks: list[SegmentPayload] = Field(..., description="Pixel content blocks, top to bottom")
    invalid_blocks: list[SegmentPayload] = Field(default_factory=list)
    separators: list[SegmentPayload] = Field(default_factory=list)
    strategy: RefinementStrategy | None = Field(
        default=None, description="Override the configured refinement strategy",
    )


class SnapshotRequest(BaseModel):
    image: str = Field(..., description="Screenshot as a data URL or bare base64")
    invalid_threshold: float
    min_height_ratio: float
    blocks: list[SegmentPayload] = Field(default_factory=list)
    invalid_blocks: list[SegmentPayload] = Field(default_factory=list)
    separators: list[SegmentPayload] = Field(default_factory=list)
    completeness: int = 0
    refined_blocks: list[SegmentPayload] = Field(default_factory=list)
    refinement_completeness: int = 0
