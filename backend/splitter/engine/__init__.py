"""Screenshot splitter engine: pixel decomposition and semantic refinement."""

from splitter.engine.config import DecompositionParams, SegmentationConfig
from splitter.engine.geometry import BoundingBox
from splitter.engine.pipeline import DecompositionPipeline, create_pipeline, decompose
from splitter.engine.segments import PixelResult, Segment, SegmentKind

__all__ = [
    "BoundingBox",
    "DecompositionParams",
    "DecompositionPipeline",
    "PixelResult",
    "Segment",
    "SegmentKind",
    "SegmentationConfig",
    "create_pipeline",
    "decompose",
]
