"""Semantic refinement: merges pixel blocks into logical UI units with an AI collaborator.

Strategies:
  annotated_preview  structural analysis, index mapping on a numbered preview, local merge
  pairwise           batched adjacent-pair relevance questions plus a corrective pass

Either way the geometry is computed locally: the collaborator only decides
which blocks belong together.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Sequence

from PIL import Image

from splitter.engine.coverage import refinement_completeness
from splitter.engine.errors import InputError
from splitter.engine.raster import crop_box, decode_image
from splitter.engine.refine.mapping import analyze_structure, map_units
from splitter.engine.refine.merge import local_merge, resolve_mappings
from splitter.engine.refine.models import (
    RefinementConfig,
    RefinementResult,
    RefinementState,
    RefinementStrategy,
)
from splitter.engine.refine.pairwise import PairwiseMerger
from splitter.engine.segments import PixelResult, Segment
from splitter.llm.client import Collaborator
from splitter.llm.parsing import parse_response
from splitter.llm.prompts import relevance_instruction
from splitter.llm.retry import JitterFn, SleepFn, resilient
from splitter.llm.transport import encode_image
from splitter.models.collaborator import RelevanceResult, StructuralUnit

logger = logging.getLogger(__name__)


class SemanticRefiner:
    """Drives one refinement run per call to refine(). Tracks the current step in `state`."""

    def __init__(
        self,
        collaborator: Collaborator,
        config: RefinementConfig | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
        jitter: JitterFn = random.uniform,
    ) -> None:
        self.collaborator = collaborator
        self.config = config or RefinementConfig()
        self.state = RefinementState.STRUCTURAL_ANALYSIS_PENDING
        self._sleep = sleep
        self._analyze = resilient(self.config.retry, sleep=sleep, jitter=jitter)(collaborator.analyze)

    async def refine(
        self,
        source: bytes | str | Image.Image,
        pixel: PixelResult,
    ) -> RefinementResult:
        """Refine a pixel result. On failure the state becomes ERROR and the error propagates."""
        image = decode_image(source)
        if not pixel.blocks:
            raise InputError("nothing to refine: the pixel result has no content blocks")

        start = time.perf_counter()
        strategy = self.config.strategy
        units: list[StructuralUnit] = []
        try:
            if strategy is RefinementStrategy.ANNOTATED_PREVIEW:
                segments, units = await self._refine_by_mapping(image, pixel.blocks)
            else:
                segments = await self._refine_pairwise(image, pixel.blocks)
        except Exception as e:
            self.state = RefinementState.ERROR
            logger.warning("Refinement (%s) failed: %s", strategy.value, e)
            raise

        completeness = refinement_completeness(segments, pixel.invalid_blocks, pixel.separators)
        self.state = RefinementState.LOCAL_MERGE_COMPLETE
        logger.info(
            "Refinement (%s): %d blocks -> %d segments, %d%% in %.0fms",
            strategy.value,
            len(pixel.blocks),
            len(segments),
            completeness,
            (time.perf_counter() - start) * 1000,
        )
        return RefinementResult(
            segments=segments,
            completeness=completeness,
            strategy=strategy,
            structural_units=units,
        )

    async def _refine_by_mapping(
        self,
        image: Image.Image,
        blocks: Sequence[Segment],
    ) -> tuple[list[Segment], list[StructuralUnit]]:
        self.state = RefinementState.STRUCTURAL_ANALYSIS_PENDING
        units = await analyze_structure(self._analyze, image, self.config)

        self.state = RefinementState.MAPPING_PENDING
        mapping, raw = await map_units(self._analyze, image, blocks, units, self.config)

        resolved = resolve_mappings(
            mapping.result, units, len(blocks), strict=self.config.strict_mapping, raw_text=raw,
        )
        return local_merge(blocks, resolved, image), units

    async def _refine_pairwise(self, image: Image.Image, blocks: Sequence[Segment]) -> list[Segment]:
        self.state = RefinementState.MAPPING_PENDING

        async def is_related(upper: Segment, lower: Segment) -> bool:
            images = [
                encode_image(_crop_of(image, s), self.config.transport_max_width)
                for s in (upper, lower)
            ]
            raw = await self._analyze(images, relevance_instruction(), True)
            return parse_response(raw, RelevanceResult).related

        merger = PairwiseMerger(is_related, self.config, image, sleep=self._sleep)
        return await merger.run(blocks)


def _crop_of(image: Image.Image, segment: Segment) -> Image.Image:
    if segment.crop is not None:
        return segment.crop
    return crop_box(image, segment.box)


def create_refiner(
    collaborator: Collaborator,
    config: RefinementConfig | None = None,
) -> SemanticRefiner:
    """Factory function for creating a refiner instance."""
    return SemanticRefiner(collaborator, config)


__all__ = [
    "RefinementConfig",
    "RefinementResult",
    "RefinementState",
    "RefinementStrategy",
    "SemanticRefiner",
    "create_refiner",
]
