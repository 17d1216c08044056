"""How much of the normalized image height the segments account for."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from splitter.engine.geometry import SUBSUME_EPSILON, percent_of_span
from splitter.engine.segments import Segment


def total_height(segments: Iterable[Segment]) -> float:
    return sum(s.height for s in segments)


def pixel_completeness(
    blocks: Iterable[Segment],
    invalid_blocks: Iterable[Segment],
    separators: Iterable[Segment],
) -> int:
    """Rounded percentage of height covered by all pixel-level segments, <= 100."""
    covered = total_height(blocks) + total_height(invalid_blocks) + total_height(separators)
    return percent_of_span(covered)


def is_subsumed(segment: Segment, refined: Sequence[Segment], eps: float = SUBSUME_EPSILON) -> bool:
    return any(segment.box.within(r.box, eps) for r in refined)


def refinement_completeness(
    refined: Sequence[Segment],
    invalid_blocks: Iterable[Segment],
    separators: Iterable[Segment],
    eps: float = SUBSUME_EPSILON,
) -> int:
    """Refined-list height plus noise/separator height no refined entry swallowed."""
    untouched = [
        s for s in (*invalid_blocks, *separators)
        if not is_subsumed(s, refined, eps)
    ]
    return percent_of_span(total_height(refined) + total_height(untouched))
