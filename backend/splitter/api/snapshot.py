"""POST /api/snapshot: write and restore analysis snapshots."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from splitter.engine.config import DecompositionParams
from splitter.engine.pipeline import validate_params
from splitter.engine.raster import decode_image
from splitter.engine.snapshot import AnalysisState, segments_from_snapshot, serialize_for_snapshot
from splitter.models.requests import SegmentPayload, SnapshotRequest
from splitter.models.responses import RestoreResponse

router = APIRouter()


@router.post("/snapshot")
async def snapshot(req: SnapshotRequest) -> dict[str, Any]:
    validate_params(DecompositionParams(
        invalid_threshold=req.invalid_threshold,
        min_height_ratio=req.min_height_ratio,
    ))
    state = AnalysisState(
        image=decode_image(req.image),
        invalid_threshold=req.invalid_threshold,
        min_height_ratio=req.min_height_ratio,
        blocks=[p.to_segment() for p in req.blocks],
        invalid_blocks=[p.to_segment() for p in req.invalid_blocks],
        separators=[p.to_segment() for p in req.separators],
        completeness=req.completeness,
        refined=[p.to_segment() for p in req.refined_blocks],
        refinement_completeness=req.refinement_completeness,
    )
    return serialize_for_snapshot(state)


@router.post("/snapshot/restore", response_model=RestoreResponse)
async def restore(record: dict[str, Any]) -> RestoreResponse:
    restored = segments_from_snapshot(record)

    def payloads(segments):
        return [SegmentPayload.from_segment(s) for s in segments]

    return RestoreResponse(
        version=restored.version,
        width=restored.image.width,
        height=restored.image.height,
        invalid_threshold=restored.invalid_threshold,
        min_height_ratio=restored.min_height_ratio,
        blocks=payloads(restored.blocks),
        invalid_blocks=payloads(restored.invalid_blocks),
        separators=payloads(restored.separators),
        completeness=restored.completeness,
        refined_blocks=payloads(restored.refined),
        refinement_completeness=restored.refinement_completeness,
    )
