"""Every constant of the pixel pipeline in one place."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SegmentationConfig:
    """Controls separator detection and the content validity classifier."""

    # Fuzzy color bucket: each RGB channel is integer-divided by this
    color_bucket: int = 8

    # separator_threshold = max(separator_floor, invalid_threshold - separator_offset)
    separator_floor: float = 0.90
    separator_offset: float = 0.05

    # Signal 1: more distinct exact colors than this -> meaningful
    max_uniform_colors: int = 20

    # Signal 2: luma population variance above this -> meaningful
    luma_variance_threshold: float = 100.0

    # Signal 3: connected components on a downsampled grid
    component_sample_size: int = 128     # longer side after downsampling
    component_luma_tolerance: float = 5.0
    max_uniform_components: int = 50
    min_dominant_coverage: float = 0.95


@dataclass(frozen=True)
class DecompositionParams:
    """The two caller-facing thresholds of a decomposition run."""

    invalid_threshold: float = 0.97
    min_height_ratio: float = 0.002
