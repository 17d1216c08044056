"""Decomposition pipeline: raster sampling through coverage, with optional progress streaming."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray
from PIL import Image

from splitter.engine.aggregator import aggregate_runs
from splitter.engine.config import DecompositionParams, SegmentationConfig
from splitter.engine.coverage import pixel_completeness
from splitter.engine.errors import InputError
from splitter.engine.raster import decode_image, sample_pixels
from splitter.engine.segments import PixelResult, Segment
from splitter.engine.separators import detect_separator_rows

logger = logging.getLogger(__name__)


@dataclass
class DecompositionContext:
    """Mutable state handed from stage to stage during one run."""

    image: Image.Image
    params: DecompositionParams
    pixels: NDArray[np.uint8] | None = None
    rows: NDArray[np.bool_] | None = None
    blocks: list[Segment] = field(default_factory=list)
    invalid_blocks: list[Segment] = field(default_factory=list)
    separators: list[Segment] = field(default_factory=list)
    completeness: int = 0

    def result(self) -> PixelResult:
        return PixelResult(
            blocks=self.blocks,
            invalid_blocks=self.invalid_blocks,
            separators=self.separators,
            completeness=self.completeness,
            width=self.image.width,
            height=self.image.height,
        )


@dataclass(frozen=True)
class Stage:
    id: str
    description: str
    fn: Callable[[DecompositionContext], None]


def validate_params(params: DecompositionParams) -> None:
    if not 0 < params.invalid_threshold <= 1:
        raise InputError(f"invalid_threshold must be in (0, 1], got {params.invalid_threshold}")
    if not 0 < params.min_height_ratio <= 1:
        raise InputError(f"min_height_ratio must be in (0, 1], got {params.min_height_ratio}")


class DecompositionPipeline:
    """Runs the four pixel stages in order. Synchronous and CPU-bound."""

    def __init__(self, config: SegmentationConfig | None = None) -> None:
        self.config = config or SegmentationConfig()
        self.stages = [
            Stage("sample", "Extract the RGBA pixel grid", self._sample),
            Stage("separators", "Flag near-uniform separator rows", self._separators),
            Stage("aggregate", "Group rows into separator / content / noise segments", self._aggregate),
            Stage("coverage", "Compute decomposition completeness", self._coverage),
        ]

    def run(
        self,
        source: bytes | str | Image.Image,
        params: DecompositionParams | None = None,
    ) -> PixelResult:
        """Decompose the source image. Any failure aborts the whole run."""
        start = time.perf_counter()
        ctx = self._prepare(source, params)

        for stage in self.stages:
            t0 = time.perf_counter()
            stage.fn(ctx)
            logger.debug("  %s completed in %.1fms", stage.id, (time.perf_counter() - t0) * 1000)

        logger.info(
            "Decomposition complete: %d blocks, %d noise, %d separators, %d%% in %.0fms",
            len(ctx.blocks),
            len(ctx.invalid_blocks),
            len(ctx.separators),
            ctx.completeness,
            (time.perf_counter() - start) * 1000,
        )
        return ctx.result()

    def run_streaming(
        self,
        source: bytes | str | Image.Image,
        params: DecompositionParams | None = None,
    ) -> Generator[dict[str, Any], None, PixelResult]:
        """Run the pipeline, yielding a progress dict before and after each stage.

        The finished PixelResult is the generator's return value.
        """
        ctx = self._prepare(source, params)
        total = len(self.stages)

        for i, stage in enumerate(self.stages):
            yield {
                "stage_id": stage.id,
                "description": stage.description,
                "index": i,
                "total": total,
                "elapsed_ms": 0.0,
                "status": "running",
            }
            t0 = time.perf_counter()
            stage.fn(ctx)
            yield {
                "stage_id": stage.id,
                "description": stage.description,
                "index": i,
                "total": total,
                "elapsed_ms": round((time.perf_counter() - t0) * 1000, 1),
                "status": "ok",
            }

        return ctx.result()

    def _prepare(
        self,
        source: bytes | str | Image.Image,
        params: DecompositionParams | None,
    ) -> DecompositionContext:
        params = params or DecompositionParams()
        validate_params(params)
        return DecompositionContext(image=decode_image(source), params=params)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _sample(self, ctx: DecompositionContext) -> None:
        ctx.pixels = sample_pixels(ctx.image)

    def _separators(self, ctx: DecompositionContext) -> None:
        ctx.rows = detect_separator_rows(ctx.pixels, ctx.params.invalid_threshold, self.config)

    def _aggregate(self, ctx: DecompositionContext) -> None:
        ctx.blocks, ctx.invalid_blocks, ctx.separators = aggregate_runs(
            ctx.rows, ctx.pixels, ctx.params.min_height_ratio, self.config,
        )

    def _coverage(self, ctx: DecompositionContext) -> None:
        ctx.completeness = pixel_completeness(ctx.blocks, ctx.invalid_blocks, ctx.separators)


def create_pipeline(config: SegmentationConfig | None = None) -> DecompositionPipeline:
    """Factory function for creating a pipeline instance."""
    return DecompositionPipeline(config=config)


def decompose(
    source: bytes | str | Image.Image,
    invalid_threshold: float = 0.97,
    min_height_ratio: float = 0.002,
) -> PixelResult:
    """One-shot convenience wrapper around DecompositionPipeline.run()."""
    params = DecompositionParams(invalid_threshold=invalid_threshold, min_height_ratio=min_height_ratio)
    return create_pipeline().run(source, params)
