"""Annotated-preview refinement: structural analysis, then index mapping on a numbered preview."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Sequence

from PIL import Image

from splitter.engine.annotate import render_annotated
from splitter.engine.errors import ServiceResponseError
from splitter.engine.refine.models import RefinementConfig
from splitter.engine.segments import Segment
from splitter.llm.parsing import parse_response
from splitter.llm.prompts import mapping_instruction, structural_instruction
from splitter.llm.transport import ImagePayload, encode_image
from splitter.models.collaborator import MappingResult, StructuralResult, StructuralUnit

logger = logging.getLogger(__name__)

AnalyzeFn = Callable[[Sequence[ImagePayload], str, bool], Awaitable[str]]


async def analyze_structure(
    analyze: AnalyzeFn,
    image: Image.Image,
    config: RefinementConfig,
) -> list[StructuralUnit]:
    """Step A: ordered semantic units for the whole screenshot."""
    start = time.perf_counter()
    payload = encode_image(image, config.transport_max_width)
    raw = await analyze([payload], structural_instruction(), True)
    result = parse_response(raw, StructuralResult)
    if not result.result:
        raise ServiceResponseError("structural analysis returned no units", raw)

    logger.info(
        "Structural analysis: %d units in %.0fms",
        len(result.result),
        (time.perf_counter() - start) * 1000,
    )
    return result.result


async def map_units(
    analyze: AnalyzeFn,
    image: Image.Image,
    blocks: Sequence[Segment],
    units: Sequence[StructuralUnit],
    config: RefinementConfig,
) -> tuple[MappingResult, str]:
    """Step B: link every unit to numbered pixel blocks. Returns the parsed result and raw text."""
    start = time.perf_counter()
    preview = render_annotated(image, blocks)
    payload = encode_image(preview, config.transport_max_width, scale=config.preview_downscale)
    raw = await analyze([payload], mapping_instruction(units, blocks), True)
    result = parse_response(raw, MappingResult)

    logger.info(
        "Mapping: %d records for %d blocks in %.0fms",
        len(result.result),
        len(blocks),
        (time.perf_counter() - start) * 1000,
    )
    return result, raw
