"""Local geometric merge: mapping records in, full-width union boxes out."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from PIL import Image

from splitter.engine.errors import ServiceResponseError
from splitter.engine.geometry import union_full_width
from splitter.engine.raster import crop_box
from splitter.engine.segments import Segment, SegmentKind
from splitter.models.collaborator import MappingRecord, StructuralUnit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedMapping:
    """A mapping record whose indices survived range and duplicate filtering."""

    sequence: int
    description: str
    indices: tuple[int, ...]


def resolve_mappings(
    records: Sequence[MappingRecord],
    units: Sequence[StructuralUnit],
    block_count: int,
    strict: bool = False,
    raw_text: str = "",
) -> list[ResolvedMapping]:
    """Filter mapping indices to [1, block_count], first writer wins on duplicates.

    Records left without any valid index are dropped.
    """
    descriptions = {u.sequence: u.description for u in units}
    claimed: set[int] = set()
    resolved: list[ResolvedMapping] = []

    for record in records:
        valid: list[int] = []
        for idx in record.mapped_indices:
            if not 1 <= idx <= block_count:
                if strict:
                    raise ServiceResponseError(
                        f"mapping for unit {record.sequence} references block {idx}, "
                        f"valid range is 1-{block_count}",
                        raw_text,
                    )
                logger.warning("Unit %d: discarding out-of-range block %d", record.sequence, idx)
                continue
            if idx in claimed:
                logger.warning("Unit %d: block %d already mapped, keeping first owner", record.sequence, idx)
                continue
            if idx not in valid:
                valid.append(idx)

        if not valid:
            logger.info("Unit %d dropped: no valid blocks mapped", record.sequence)
            continue

        claimed.update(valid)
        resolved.append(ResolvedMapping(
            sequence=record.sequence,
            description=descriptions.get(record.sequence) or record.description,
            indices=tuple(sorted(valid)),
        ))

    return resolved


def local_merge(
    blocks: Sequence[Segment],
    mappings: Sequence[ResolvedMapping],
    image: Image.Image | None = None,
) -> list[Segment]:
    """Union each mapping's blocks; unmapped blocks pass through. Sorted by ymin."""
    refined: list[Segment] = []
    mapped: set[int] = set()

    for n, mapping in enumerate(mappings, start=1):
        box = union_full_width(blocks[i - 1].box for i in mapping.indices)
        refined.append(Segment(
            id=f"refined-{n}",
            label=mapping.description or f"Refined block {n}",
            box=box,
            kind=SegmentKind.REFINED_MERGE,
            parent_refs=mapping.indices,
            crop=crop_box(image, box) if image is not None else None,
        ))
        mapped.update(mapping.indices)

    unmapped = [b for i, b in enumerate(blocks, start=1) if i not in mapped]
    return sorted([*refined, *unmapped], key=lambda s: s.box.ymin)


def merge_segments(
    upper: Segment,
    lower: Segment,
    refs: tuple[int, ...],
    seg_id: str,
    image: Image.Image | None = None,
) -> Segment:
    """One refined segment covering two neighbours."""
    box = union_full_width([upper.box, lower.box])
    return Segment(
        id=seg_id,
        label="Merged block",
        box=box,
        kind=SegmentKind.REFINED_MERGE,
        parent_refs=refs,
        crop=crop_box(image, box) if image is not None else None,
    )
