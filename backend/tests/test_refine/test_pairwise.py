"""Tests for the two-pass pairwise merger."""

from __future__ import annotations

import asyncio

import pytest

from splitter.engine.refine.models import RefinementConfig, RefinementStrategy
from splitter.engine.refine.pairwise import MergeItem, PairwiseMerger, partition
from splitter.engine.segments import Segment
from tests.conftest import make_blocks, spans


def _refs(segment: Segment) -> tuple[int, ...]:
    if segment.parent_refs:
        return segment.parent_refs
    return (int(segment.id.split("-")[1]),)


class PairOracle:
    """Answers relevance from a fixed set of related (upper, lower) block numbers."""

    def __init__(self, pairs, delays=None):
        self.pairs = set(pairs)
        self.delays = delays or {}
        self.asked: list[tuple[tuple[int, ...], tuple[int, ...]]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, upper: Segment, lower: Segment) -> bool:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            up, low = _refs(upper), _refs(lower)
            self.asked.append((up, low))
            delay = self.delays.get(up[0], 0)
            if delay:
                await asyncio.sleep(delay)
            return any((a, b) in self.pairs for a in up for b in low)
        finally:
            self.in_flight -= 1


def _config(**kwargs) -> RefinementConfig:
    kwargs.setdefault("pair_delay", 0.0)
    return RefinementConfig(strategy=RefinementStrategy.PAIRWISE, **kwargs)


def _stack(n: int) -> list[Segment]:
    step = 1000 // n
    return make_blocks([(i * step, (i + 1) * step) for i in range(n)])


def test_partition():
    items = [MergeItem(b, (i,)) for i, b in enumerate(_stack(5), start=1)]
    groups = partition(items, 2)
    assert [[it.refs[0] for it in g] for g in groups] == [[1, 2], [3, 4], [5]]


class TestFirstPass:
    @pytest.mark.asyncio
    async def test_merge_skips_ahead(self):
        oracle = PairOracle({(1, 2)})
        merger = PairwiseMerger(oracle, _config())
        items = [MergeItem(b, (i,)) for i, b in enumerate(_stack(4), start=1)]

        out = await merger.first_pass(items)

        assert [it.refs for it in out] == [(1, 2), (3,), (4,)]
        assert [it.merged for it in out] == [True, False, False]
        assert out[0].segment.id == "refined-p1-0-0"
        # (2, 3) is never asked: the cursor jumps past a merged pair
        assert oracle.asked == [((1,), (2,)), ((3,), (4,))]

    @pytest.mark.asyncio
    async def test_groups_reassembled_in_order(self):
        # Earlier groups answer slowest, so they finish last
        oracle = PairOracle({(1, 2), (5, 6)}, delays={1: 0.03, 3: 0.02, 5: 0.01})
        merger = PairwiseMerger(oracle, _config(batch_size=2, concurrency=3))
        items = [MergeItem(b, (i,)) for i, b in enumerate(_stack(6), start=1)]

        out = await merger.first_pass_batched(items)

        assert [it.refs for it in out] == [(1, 2), (3,), (4,), (5, 6)]

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self):
        oracle = PairOracle(set(), delays={i: 0.01 for i in range(1, 13)})
        merger = PairwiseMerger(oracle, _config(batch_size=2, concurrency=2))
        items = [MergeItem(b, (i,)) for i, b in enumerate(_stack(12), start=1)]

        await merger.first_pass_batched(items)

        assert oracle.max_in_flight <= 2

    @pytest.mark.asyncio
    async def test_failure_propagates(self):
        async def broken(upper, lower):
            raise RuntimeError("collaborator exploded")

        merger = PairwiseMerger(broken, _config(batch_size=2))
        items = [MergeItem(b, (i,)) for i, b in enumerate(_stack(4), start=1)]
        with pytest.raises(RuntimeError, match="exploded"):
            await merger.first_pass_batched(items)


class TestCorrectivePass:
    @pytest.mark.asyncio
    async def test_merges_across_group_boundary(self):
        oracle = PairOracle({(2, 3)})
        merger = PairwiseMerger(oracle, _config(batch_size=2))

        result = await merger.run(_stack(4))

        assert [_refs(s) for s in result] == [(1,), (2, 3), (4,)]
        assert result[1].id == "refined-p2-d-1"
        assert result[1].box.ymin == 250 and result[1].box.ymax == 750

    @pytest.mark.asyncio
    async def test_upward_merge_into_first_pass_result(self):
        oracle = PairOracle({(1, 2), (2, 3)})
        merger = PairwiseMerger(oracle, _config(batch_size=2))

        result = await merger.run(_stack(3))

        assert len(result) == 1
        assert result[0].parent_refs == (1, 2, 3)
        assert result[0].id == "refined-p2-u-1"
        assert spans(result) == [(0, 999)]

    @pytest.mark.asyncio
    async def test_downward_checked_first(self):
        # Block 3 relates both ways; the lower neighbour wins
        oracle = PairOracle({(1, 2), (2, 3), (3, 4)})
        merger = PairwiseMerger(oracle, _config(batch_size=2))
        stream = [
            MergeItem(s, (i,), merged=False) for i, s in enumerate(_stack(4), start=1)
        ]
        stream[0:2] = [merger._merge(stream[0], stream[1], "refined-p1-0-0")]

        out = await merger.corrective_pass(stream)

        assert [it.refs for it in out] == [(1, 2), (3, 4)]
        assert out[1].segment.id == "refined-p2-d-1"

    @pytest.mark.asyncio
    async def test_nothing_related(self):
        blocks = _stack(3)
        merger = PairwiseMerger(PairOracle(set()), _config())
        assert await merger.run(blocks) == blocks


class TestPacing:
    @pytest.mark.asyncio
    async def test_one_pause_before_every_call(self):
        events: list[tuple] = []
        oracle = PairOracle({(2, 3)})

        async def sleep(delay):
            events.append(("sleep", delay))

        async def related(upper, lower):
            events.append(("ask", _refs(upper), _refs(lower)))
            return await oracle(upper, lower)

        merger = PairwiseMerger(related, _config(batch_size=2, concurrency=1, pair_delay=0.25), sleep=sleep)

        result = await merger.run(_stack(4))

        assert [_refs(s) for s in result] == [(1,), (2, 3), (4,)]
        asks = [e for e in events if e[0] == "ask"]
        # First pass: (1,2), (3,4). Corrective pass: (1,2), (2,3) merges, then (2,3) against (4,)
        assert len(asks) == len(oracle.asked) == 5
        assert events == [item for ask in asks for item in (("sleep", 0.25), ask)]

    @pytest.mark.asyncio
    async def test_zero_delay_never_sleeps(self):
        delays: list[float] = []

        async def sleep(delay):
            delays.append(delay)

        merger = PairwiseMerger(PairOracle({(1, 2)}), _config(pair_delay=0.0), sleep=sleep)
        await merger.run(_stack(3))

        assert delays == []
