"""Refinement configuration, states and results."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from splitter.engine.segments import Segment
from splitter.llm.retry import RetryPolicy
from splitter.llm.transport import DEFAULT_MAX_WIDTH
from splitter.models.collaborator import StructuralUnit


class RefinementStrategy(str, enum.Enum):
    ANNOTATED_PREVIEW = "annotated_preview"
    PAIRWISE = "pairwise"


class RefinementState(enum.Enum):
    STRUCTURAL_ANALYSIS_PENDING = "structural_analysis_pending"
    MAPPING_PENDING = "mapping_pending"
    LOCAL_MERGE_COMPLETE = "local_merge_complete"
    ERROR = "error"


@dataclass(frozen=True)
class RefinementConfig:
    strategy: RefinementStrategy = RefinementStrategy.ANNOTATED_PREVIEW
    # Pairwise mode: segments per group, groups in flight at once
    batch_size: int = 4
    concurrency: int = 3
    # Pause before each sequential pairwise call (seconds)
    pair_delay: float = 0.1
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    transport_max_width: int = DEFAULT_MAX_WIDTH
    # Numbered previews stay full size unless this is set
    preview_downscale: bool = False
    # Raise on out-of-range mapping indices instead of discarding them
    strict_mapping: bool = False

    def __post_init__(self) -> None:
        if self.batch_size < 2:
            raise ValueError(f"batch_size must be >= 2, got {self.batch_size}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")


@dataclass(frozen=True)
class RefinementResult:
    segments: list[Segment]
    completeness: int
    strategy: RefinementStrategy
    structural_units: list[StructuralUnit] = field(default_factory=list)

    @property
    def refined(self) -> list[Segment]:
        return [s for s in self.segments if s.is_refined]

    @property
    def unmapped(self) -> list[Segment]:
        """Pixel segments carried through without being merged."""
        return [s for s in self.segments if not s.is_refined]
