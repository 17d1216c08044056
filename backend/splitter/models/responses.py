"""API response models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from splitter.engine.refine.models import RefinementStrategy
from splitter.models.collaborator import StructuralUnit
from splitter.models.requests import SegmentPayload


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"


class DecomposeResponse(BaseModel):
    blocks: list[SegmentPayload] = Field(default_factory=list)
    invalid_blocks: list[SegmentPayload] = Field(default_factory=list)
    separators: list[SegmentPayload] = Field(default_factory=list)
    completeness: int = 0
    width: int = 0
    height: int = 0
    processing_time_ms: float = 0.0


class RefineResponse(BaseModel):
    segments: list[SegmentPayload] = Field(default_factory=list)
    unmapped: list[str] = Field(default_factory=list, description="Ids of pixel blocks carried through unmerged")
    completeness: int = 0
    strategy: RefinementStrategy
    structural_units: list[StructuralUnit] = Field(default_factory=list)
    processing_time_ms: float = 0.0


class RestoreResponse(BaseModel):
    version: str
    width: int
    height: int
    invalid_threshold: float
    min_height_ratio: float
    blocks: list[SegmentPayload] = Field(default_factory=list)
    invalid_blocks: list[SegmentPayload] = Field(default_factory=list)
    separators: list[SegmentPayload] = Field(default_factory=list)
    completeness: int = 0
    refined_blocks: list[SegmentPayload] = Field(default_factory=list)
    refinement_completeness: int = 0
