"""Snapshot record shapes (camelCase wire keys)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SegmentRecord(BaseModel):
    # dataUrl / parentId from older records are ignored
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    label: str = ""
    box: dict[str, float]
    kind: str | None = None
    # Older records tag segments with `source` instead of `kind`
    source: str | None = None
    parent_refs: list[int] = Field(default_factory=list, alias="parentRefs")


class SnapshotConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    invalid_threshold: float = Field(..., alias="invalidThreshold")
    min_block_ratio: float = Field(..., alias="minBlockRatio")


class SnapshotResults(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    blocks: list[SegmentRecord] = Field(default_factory=list)
    invalid_blocks: list[SegmentRecord] = Field(default_factory=list, alias="invalidBlocks")
    separators: list[SegmentRecord] = Field(default_factory=list)
    completeness: int = 0
    refined_blocks: list[SegmentRecord] = Field(default_factory=list, alias="refinedBlocks")
    refinement_completeness: int = Field(default=0, alias="refinementCompleteness")


class SnapshotRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str
    timestamp: str = ""
    original_image: str = Field(..., alias="originalImage")
    config: SnapshotConfig
    results: SnapshotResults
