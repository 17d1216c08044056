"""Response shapes expected back from the AI collaborator."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class StructuralUnit(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sequence: int = Field(..., alias="sn")
    description: str = Field(..., description="Semantic label of the logical block")


class StructuralResult(BaseModel):
    result: list[StructuralUnit]


class MappingRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sequence: int = Field(..., alias="sn")
    description: str = ""
    mapped_indices: list[int] = Field(default_factory=list, alias="mapping")
    # Some models echo a merged box back; it is recomputed locally and ignored
    box: dict[str, float] | None = None


class MappingResult(BaseModel):
    result: list[MappingRecord]


class RelevanceResult(BaseModel):
    related: bool
