"""Tests for the decomposition pipeline."""

from __future__ import annotations

import pytest

from splitter.engine.config import DecompositionParams
from splitter.engine.errors import InputError
from splitter.engine.pipeline import DecompositionPipeline, create_pipeline, decompose
from splitter.engine.raster import to_data_url
from tests.conftest import (
    EXPECTED_BLOCKS,
    EXPECTED_INVALID,
    EXPECTED_SEPARATORS,
    SCREENSHOT_BANDS,
    build_screenshot,
    spans,
)


class TestDecompose:
    def test_known_layout(self, screenshot):
        result = decompose(screenshot)
        assert spans(result.blocks) == EXPECTED_BLOCKS
        assert spans(result.invalid_blocks) == EXPECTED_INVALID
        assert spans(result.separators) == EXPECTED_SEPARATORS
        assert result.completeness == 100
        assert (result.width, result.height) == (100, 240)

    def test_accepts_data_url(self, screenshot_data_url):
        result = decompose(screenshot_data_url)
        assert spans(result.blocks) == EXPECTED_BLOCKS

    def test_all_boxes_satisfy_invariant(self, screenshot):
        result = decompose(screenshot)
        for s in result.all_segments:
            assert 0 <= s.box.ymin < s.box.ymax <= 1000
            assert 0 <= s.box.xmin < s.box.xmax <= 1000

    def test_deterministic(self, screenshot):
        first = decompose(screenshot)
        second = decompose(build_screenshot(SCREENSHOT_BANDS))
        assert [s.to_record() for s in first.all_segments] == [s.to_record() for s in second.all_segments]

    def test_all_segments_ordered(self, screenshot):
        ymins = [s.box.ymin for s in decompose(screenshot).all_segments]
        assert ymins == sorted(ymins)

    def test_high_min_height_turns_content_to_noise(self, screenshot):
        result = decompose(screenshot, min_height_ratio=0.5)
        assert result.blocks == []
        assert len(result.invalid_blocks) == 4
        assert result.completeness == 100

    @pytest.mark.parametrize("threshold", [0, 1.2])
    def test_bad_threshold(self, screenshot, threshold):
        with pytest.raises(InputError):
            decompose(screenshot, invalid_threshold=threshold)

    def test_undecodable_image(self):
        with pytest.raises(InputError):
            decompose(b"definitely not an image")

    def test_bad_base64(self):
        with pytest.raises(InputError):
            decompose("data:image/png;base64,@@@")


def _drain(stream):
    events = []
    while True:
        try:
            events.append(next(stream))
        except StopIteration as stop:
            return events, stop.value


class TestStreaming:
    def test_progress_then_result(self, screenshot):
        pipeline = create_pipeline()
        events, result = _drain(pipeline.run_streaming(screenshot, DecompositionParams()))

        assert len(events) == 2 * len(pipeline.stages)
        assert [e["status"] for e in events[:2]] == ["running", "ok"]
        assert [e["stage_id"] for e in events[::2]] == ["sample", "separators", "aggregate", "coverage"]
        assert all(e["total"] == 4 for e in events)
        assert spans(result.blocks) == EXPECTED_BLOCKS

    def test_matches_plain_run(self, screenshot):
        pipeline = DecompositionPipeline()
        _, streamed = _drain(pipeline.run_streaming(to_data_url(screenshot)))
        plain = pipeline.run(screenshot)
        assert streamed == plain
