"""POST /api/refine: AI-assisted merge of pixel blocks into logical units."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends

from splitter.config import Settings, get_settings
from splitter.dependencies import get_collaborator
from splitter.engine.coverage import pixel_completeness
from splitter.engine.refine import create_refiner
from splitter.engine.segments import PixelResult
from splitter.llm.client import Collaborator
from splitter.models.requests import RefineRequest, SegmentPayload
from splitter.models.responses import RefineResponse

router = APIRouter()


@router.post("/refine", response_model=RefineResponse)
async def refine(
    req: RefineRequest,
    settings: Settings = Depends(get_settings),
    collaborator: Collaborator = Depends(get_collaborator),
) -> RefineResponse:
    start = time.perf_counter()

    blocks = [p.to_segment() for p in req.blocks]
    invalid_blocks = [p.to_segment() for p in req.invalid_blocks]
    separators = [p.to_segment() for p in req.separators]
    pixel = PixelResult(
        blocks=blocks,
        invalid_blocks=invalid_blocks,
        separators=separators,
        completeness=pixel_completeness(blocks, invalid_blocks, separators),
    )

    refiner = create_refiner(collaborator, settings.refinement_config(req.strategy))
    result = await refiner.refine(req.image, pixel)

    return RefineResponse(
        segments=[SegmentPayload.from_segment(s) for s in result.segments],
        unmapped=[s.id for s in result.unmapped],
        completeness=result.completeness,
        strategy=result.strategy,
        structural_units=result.structural_units,
        processing_time_ms=round((time.perf_counter() - start) * 1000, 1),
    )
