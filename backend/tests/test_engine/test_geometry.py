"""Tests for normalized boxes and rounding."""

from __future__ import annotations

import pytest

from splitter.engine.errors import GeometryInvariantError
from splitter.engine.geometry import (
    BoundingBox,
    normalize_row,
    percent_of_span,
    round_half_up,
    union_full_width,
)


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(2.4999) == 2

    def test_normalize_row(self):
        assert normalize_row(0, 240) == 0
        assert normalize_row(20, 240) == 83
        assert normalize_row(130, 240) == 542
        assert normalize_row(240, 240) == 1000


class TestBoundingBox:
    def test_valid_box(self):
        box = BoundingBox(ymin=10, xmin=0, ymax=20, xmax=1000)
        assert box.height == 10
        assert box.to_dict() == {"ymin": 10, "xmin": 0, "ymax": 20, "xmax": 1000}

    @pytest.mark.parametrize("ymin,ymax", [(20, 20), (30, 20), (-1, 10), (0, 1001)])
    def test_rejects_bad_vertical_extent(self, ymin, ymax):
        with pytest.raises(GeometryInvariantError):
            BoundingBox(ymin=ymin, xmin=0, ymax=ymax, xmax=1000)

    def test_rejects_bad_horizontal_extent(self):
        with pytest.raises(GeometryInvariantError):
            BoundingBox(ymin=0, xmin=500, ymax=10, xmax=500)

    def test_invariant_error_is_an_assertion(self):
        with pytest.raises(AssertionError):
            BoundingBox.full_width(5, 5)

    def test_from_dict_roundtrip(self):
        box = BoundingBox.full_width(100, 250)
        assert BoundingBox.from_dict(box.to_dict()) == box

    def test_within_uses_epsilon(self):
        outer = BoundingBox.full_width(100, 200)
        assert BoundingBox.full_width(100, 200).within(outer)
        assert BoundingBox.full_width(99.95, 200.05).within(outer)
        assert not BoundingBox.full_width(99.5, 200).within(outer)

    def test_to_pixels_never_empty(self):
        # A 1-unit box on a 100px tall image still maps to one row
        left, top, right, bottom = BoundingBox.full_width(0, 1).to_pixels(50, 100)
        assert (left, right) == (0, 50)
        assert bottom - top >= 1

    def test_to_pixels_clamped_at_bottom(self):
        left, top, right, bottom = BoundingBox.full_width(999, 1000).to_pixels(10, 100)
        assert top <= 99
        assert bottom == 100


class TestUnion:
    def test_union_is_full_width(self):
        boxes = [BoundingBox(0, 200, 100, 300), BoundingBox(100, 0, 250, 10)]
        assert union_full_width(boxes) == BoundingBox.full_width(0, 250)

    def test_union_of_nothing_fails(self):
        with pytest.raises(GeometryInvariantError):
            union_full_width([])


class TestPercentOfSpan:
    def test_clamped(self):
        assert percent_of_span(1005) == 100
        assert percent_of_span(0) == 0

    def test_half_up(self):
        assert percent_of_span(995) == 100
        assert percent_of_span(994) == 99
