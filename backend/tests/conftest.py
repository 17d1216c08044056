"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence

import numpy as np
import pytest
from PIL import Image

from splitter.engine.geometry import BoundingBox
from splitter.engine.raster import to_data_url
from splitter.engine.segments import Segment, SegmentKind
from splitter.llm.transport import ImagePayload


# Synthetic screenshots are stacks of horizontal bands

WIDTH = 100

WHITE = (255, 255, 255, 255)
# Different color buckets (199 // 8 != 201 // 8), near-identical luma
GRAY_A = (199, 199, 199, 255)
GRAY_B = (201, 201, 201, 255)


def separator_band(height: int, width: int = WIDTH) -> np.ndarray:
    return np.full((height, width, 4), WHITE, dtype=np.uint8)


def noise_band(height: int, width: int = WIDTH) -> np.ndarray:
    """Two alternating grays: never a separator, never meaningful."""
    band = np.empty((height, width, 4), dtype=np.uint8)
    band[:, 0::2] = GRAY_A
    band[:, 1::2] = GRAY_B
    return band


def content_band(height: int, width: int = WIDTH, seed: int = 0) -> np.ndarray:
    """Random opaque colors: far more than 20 distinct colors."""
    rng = np.random.default_rng(seed)
    band = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    band[..., 3] = 255
    return band


_BAND_BUILDERS = {
    "separator": separator_band,
    "noise": noise_band,
    "content": content_band,
}


def build_screenshot(bands: Sequence[tuple[str, int]], width: int = WIDTH) -> Image.Image:
    parts = [_BAND_BUILDERS[kind](height, width) for kind, height in bands]
    return Image.fromarray(np.concatenate(parts, axis=0))


# 240 rows: content at 20-80, 130-180, 190-220; noise at 90-120; separators between
SCREENSHOT_BANDS = [
    ("separator", 20),
    ("content", 60),
    ("separator", 10),
    ("noise", 30),
    ("separator", 10),
    ("content", 50),
    ("separator", 10),
    ("content", 30),
    ("separator", 20),
]

# Normalized (ymin, ymax) of each run above
EXPECTED_BLOCKS = [(83, 333), (542, 750), (792, 917)]
EXPECTED_INVALID = [(375, 500)]
EXPECTED_SEPARATORS = [(0, 83), (333, 375), (500, 542), (750, 792), (917, 1000)]


def make_blocks(spans: Sequence[tuple[float, float]]) -> list[Segment]:
    """Full-width pixel content segments for the given (ymin, ymax) spans."""
    return [
        Segment(f"block-{i}", f"Content {i}", BoundingBox.full_width(ymin, ymax), SegmentKind.PIXEL_CONTENT)
        for i, (ymin, ymax) in enumerate(spans, start=1)
    ]


def spans(segments: Sequence[Segment]) -> list[tuple[float, float]]:
    return [(s.box.ymin, s.box.ymax) for s in segments]


# ---------------------------------------------------------------------------
# Collaborator doubles
# ---------------------------------------------------------------------------

Responder = Callable[[Sequence[ImagePayload], str], str]


class FakeCollaborator:
    """Scripted collaborator: replays responses (or raises exceptions) in order.

    A callable script entry is invoked with (images, instruction) and its
    return value used as the response.
    """

    def __init__(self, script: Sequence[str | BaseException | Responder] = ()) -> None:
        self.script = list(script)
        self.calls: list[tuple[Sequence[ImagePayload], str, bool]] = []

    async def analyze(
        self,
        images: Sequence[ImagePayload],
        instruction: str,
        structured: bool = False,
    ) -> str:
        self.calls.append((images, instruction, structured))
        if not self.script:
            raise AssertionError("FakeCollaborator ran out of scripted responses")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(images, instruction)
        return item


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def fixed_jitter(value: float = 0.5) -> Callable[[float, float], float]:
    return lambda low, high: value


def structural_json(*descriptions: str) -> str:
    return json.dumps({"result": [{"sn": i, "description": d} for i, d in enumerate(descriptions, start=1)]})


def mapping_json(*mappings: Sequence[int]) -> str:
    return json.dumps({
        "result": [{"sn": i, "description": f"unit {i}", "mapping": list(m)} for i, m in enumerate(mappings, start=1)]
    })


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def screenshot() -> Image.Image:
    return build_screenshot(SCREENSHOT_BANDS)


@pytest.fixture
def screenshot_data_url(screenshot) -> str:
    return to_data_url(screenshot)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
