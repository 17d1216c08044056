"""POST /api/decompose: pixel-level decomposition, plain or streamed."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from splitter.config import Settings, get_settings
from splitter.dependencies import get_pipeline
from splitter.engine.config import DecompositionParams
from splitter.engine.errors import SplitterError
from splitter.engine.pipeline import DecompositionPipeline
from splitter.engine.raster import decode_image
from splitter.engine.segments import PixelResult
from splitter.models.requests import DecomposeRequest, SegmentPayload
from splitter.models.responses import DecomposeResponse

logger = logging.getLogger(__name__)

router = APIRouter()


_SENTINEL = object()  # marks end of queue


def _to_response(result: PixelResult, elapsed_ms: float) -> DecomposeResponse:
    return DecomposeResponse(
        blocks=[SegmentPayload.from_segment(s) for s in result.blocks],
        invalid_blocks=[SegmentPayload.from_segment(s) for s in result.invalid_blocks],
        separators=[SegmentPayload.from_segment(s) for s in result.separators],
        completeness=result.completeness,
        width=result.width,
        height=result.height,
        processing_time_ms=round(elapsed_ms, 1),
    )


def _params(req: DecomposeRequest, settings: Settings) -> DecompositionParams:
    return settings.decomposition_params(req.invalid_threshold, req.min_height_ratio)


async def _stream_decompose(
    image: str,
    params: DecompositionParams,
    pipeline: DecompositionPipeline,
) -> AsyncGenerator[str, None]:
    """Drive pipeline.run_streaming() in a thread, yielding SSE events as they arrive."""
    start = time.perf_counter()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    outcome: dict[str, Any] = {}

    def _run_pipeline() -> None:
        """Sync pipeline in thread: pushes progress dicts onto the async queue."""
        try:
            stream = pipeline.run_streaming(image, params)
            while True:
                try:
                    progress = next(stream)
                except StopIteration as stop:
                    outcome["result"] = stop.value
                    break
                loop.call_soon_threadsafe(queue.put_nowait, progress)
        except SplitterError as e:
            outcome["error"] = e
        except Exception as e:
            logger.exception("Streaming decomposition crashed")
            outcome["error"] = e
        finally:
            loop.call_soon_threadsafe(queue.put_nowait, _SENTINEL)

    # Start pipeline in a thread so the event loop stays free to flush SSE
    loop.run_in_executor(None, _run_pipeline)

    while True:
        item = await queue.get()
        if item is _SENTINEL:
            break
        yield f"event: progress\ndata: {json.dumps(item)}\n\n"

    if "error" in outcome:
        err = outcome["error"]
        data = json.dumps({"type": "error", "kind": type(err).__name__, "message": str(err)})
        yield f"event: error\ndata: {data}\n\n"
        return

    elapsed = (time.perf_counter() - start) * 1000
    response = _to_response(outcome["result"], elapsed)
    yield f"event: result\ndata: {response.model_dump_json(by_alias=True)}\n\n"

    yield f"event: done\ndata: {json.dumps({'type': 'done'})}\n\n"


@router.post("/decompose/stream")
async def decompose_stream(
    req: DecomposeRequest,
    settings: Settings = Depends(get_settings),
    pipeline: DecompositionPipeline = Depends(get_pipeline),
) -> StreamingResponse:
    return StreamingResponse(
        _stream_decompose(req.image, _params(req, settings), pipeline),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/decompose", response_model=DecomposeResponse)
async def decompose(
    req: DecomposeRequest,
    settings: Settings = Depends(get_settings),
    pipeline: DecompositionPipeline = Depends(get_pipeline),
) -> DecomposeResponse:
    start = time.perf_counter()
    image = decode_image(req.image)

    # CPU-bound; keep the event loop responsive
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, pipeline.run, image, _params(req, settings))

    return _to_response(result, (time.perf_counter() - start) * 1000)
