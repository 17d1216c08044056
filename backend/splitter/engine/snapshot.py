"""Analysis snapshots: persist a finished analysis and restore it later.

Crops are never written; restore regenerates them from the embedded source
image.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from PIL import Image
from pydantic import ValidationError

from splitter.engine.config import DecompositionParams
from splitter.engine.errors import GeometryInvariantError, InputError
from splitter.engine.geometry import BoundingBox
from splitter.engine.pipeline import validate_params
from splitter.engine.raster import attach_crops, decode_image, to_data_url
from splitter.engine.refine.models import RefinementResult
from splitter.engine.segments import PixelResult, Segment, SegmentKind
from splitter.models.snapshot import SegmentRecord, SnapshotConfig, SnapshotRecord

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "4.5"

_LEGACY_SOURCE_KINDS = {
    "pixel": SegmentKind.PIXEL_CONTENT,
    "invalid": SegmentKind.INVALID_NOISE,
    "separator": SegmentKind.SEPARATOR,
    "refined": SegmentKind.REFINED_MERGE,
    "ai": SegmentKind.REFINED_MERGE,
}


@dataclass
class AnalysisState:
    """Everything a snapshot captures: source image, thresholds, segments, completeness."""

    image: Image.Image
    invalid_threshold: float
    min_height_ratio: float
    blocks: list[Segment] = field(default_factory=list)
    invalid_blocks: list[Segment] = field(default_factory=list)
    separators: list[Segment] = field(default_factory=list)
    completeness: int = 0
    refined: list[Segment] = field(default_factory=list)
    refinement_completeness: int = 0

    @classmethod
    def from_results(
        cls,
        image: Image.Image,
        params: DecompositionParams,
        pixel: PixelResult,
        refinement: RefinementResult | None = None,
    ) -> AnalysisState:
        return cls(
            image=image,
            invalid_threshold=params.invalid_threshold,
            min_height_ratio=params.min_height_ratio,
            blocks=list(pixel.blocks),
            invalid_blocks=list(pixel.invalid_blocks),
            separators=list(pixel.separators),
            completeness=pixel.completeness,
            refined=list(refinement.segments) if refinement else [],
            refinement_completeness=refinement.completeness if refinement else 0,
        )


@dataclass
class SnapshotSegments:
    """Segment lists rebuilt from a snapshot, crops regenerated."""

    version: str
    image: Image.Image
    invalid_threshold: float
    min_height_ratio: float
    blocks: list[Segment]
    invalid_blocks: list[Segment]
    separators: list[Segment]
    completeness: int
    refined: list[Segment]
    refinement_completeness: int


def serialize_for_snapshot(state: AnalysisState, timestamp: datetime | None = None) -> dict[str, Any]:
    timestamp = timestamp or datetime.now(timezone.utc)
    return {
        "version": SNAPSHOT_VERSION,
        "timestamp": timestamp.isoformat(),
        "originalImage": to_data_url(state.image),
        "config": {
            "invalidThreshold": state.invalid_threshold,
            "minBlockRatio": state.min_height_ratio,
        },
        "results": {
            "blocks": [s.to_record() for s in state.blocks],
            "invalidBlocks": [s.to_record() for s in state.invalid_blocks],
            "separators": [s.to_record() for s in state.separators],
            "completeness": state.completeness,
            "refinedBlocks": [s.to_record() for s in state.refined],
            "refinementCompleteness": state.refinement_completeness,
        },
    }


def segments_from_snapshot(
    record: dict[str, Any],
    source_image: Image.Image | None = None,
) -> SnapshotSegments:
    """Rebuild segments from a snapshot record.

    The embedded source image is decoded unless one is passed in. Malformed
    records raise InputError.
    """
    try:
        snapshot = SnapshotRecord.model_validate(record)
    except ValidationError as e:
        raise InputError(f"malformed snapshot record: {e.error_count()} validation errors") from e

    image = source_image if source_image is not None else decode_image(snapshot.original_image)
    results = snapshot.results
    if snapshot.version != SNAPSHOT_VERSION:
        logger.info("Restoring snapshot version %s (current %s)", snapshot.version, SNAPSHOT_VERSION)
    params = restore_params(snapshot.config)

    return SnapshotSegments(
        version=snapshot.version,
        image=image,
        invalid_threshold=params.invalid_threshold,
        min_height_ratio=params.min_height_ratio,
        blocks=_restore(results.blocks, SegmentKind.PIXEL_CONTENT, image),
        invalid_blocks=_restore(results.invalid_blocks, SegmentKind.INVALID_NOISE, image),
        separators=_restore(results.separators, SegmentKind.SEPARATOR, image),
        completeness=results.completeness,
        refined=_restore(results.refined_blocks, SegmentKind.REFINED_MERGE, image),
        refinement_completeness=results.refinement_completeness,
    )


def restore_params(config: SnapshotConfig) -> DecompositionParams:
    """Thresholds from a snapshot config, as fractions.

    Records written by the browser tool store both thresholds as percentages
    (invalidThreshold 97, minBlockRatio 0.2). An invalid threshold above 1
    marks such a record.
    """
    invalid_threshold = config.invalid_threshold
    min_height_ratio = config.min_block_ratio
    if invalid_threshold > 1:
        logger.info("Snapshot thresholds are percentages; converting to fractions")
        invalid_threshold /= 100
        min_height_ratio /= 100
    params = DecompositionParams(invalid_threshold=invalid_threshold, min_height_ratio=min_height_ratio)
    validate_params(params)
    return params


def _restore(records: Sequence[SegmentRecord], default_kind: SegmentKind, image: Image.Image) -> list[Segment]:
    segments = []
    for rec in records:
        try:
            box = BoundingBox.from_dict(rec.box)
        except (KeyError, GeometryInvariantError) as e:
            raise InputError(f"segment {rec.id!r} has an invalid box: {e}") from e
        segments.append(Segment(
            id=rec.id,
            label=rec.label,
            box=box,
            kind=_resolve_kind(rec, default_kind),
            parent_refs=tuple(rec.parent_refs),
        ))
    return attach_crops(segments, image)


def _resolve_kind(rec: SegmentRecord, default_kind: SegmentKind) -> SegmentKind:
    if rec.kind is not None:
        try:
            return SegmentKind(rec.kind)
        except ValueError as e:
            raise InputError(f"segment {rec.id!r} has unknown kind {rec.kind!r}") from e
    if rec.source is not None:
        if rec.source not in _LEGACY_SOURCE_KINDS:
            raise InputError(f"segment {rec.id!r} has unknown source {rec.source!r}")
        return _LEGACY_SOURCE_KINDS[rec.source]
    return default_kind
