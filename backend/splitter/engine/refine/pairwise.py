"""Pairwise-relevance refinement.

First pass: greedy left-to-right over adjacent pixel blocks, one relevance
question per pair. A positive answer merges the pair and skips ahead two
positions, otherwise the cursor moves one. Blocks are split into ordered
groups that run concurrently (bounded by a semaphore); inside a group the
calls are sequential because each depends on the previous merge.

Second pass: strictly sequential over the reassembled stream. Every item
that was not merged is tested against its lower neighbour, then its upper
neighbour; a match replaces the pair and the scan resumes at the merge point.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from PIL import Image

from splitter.engine.refine.merge import merge_segments
from splitter.engine.refine.models import RefinementConfig
from splitter.engine.segments import Segment
from splitter.llm.retry import SleepFn

logger = logging.getLogger(__name__)

RelevanceFn = Callable[[Segment, Segment], Awaitable[bool]]


@dataclass(frozen=True)
class MergeItem:
    segment: Segment
    refs: tuple[int, ...]
    merged: bool = False


def partition(items: Sequence[MergeItem], size: int) -> list[list[MergeItem]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class PairwiseMerger:
    def __init__(
        self,
        is_related: RelevanceFn,
        config: RefinementConfig,
        image: Image.Image | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.is_related = is_related
        self.config = config
        self.image = image
        self.sleep = sleep
        self._corrections = 0

    async def run(self, blocks: Sequence[Segment]) -> list[Segment]:
        items = [MergeItem(b, (i,)) for i, b in enumerate(blocks, start=1)]
        stream = await self.first_pass_batched(items)
        stream = await self.corrective_pass(stream)
        return [item.segment for item in stream]

    async def _ask(self, upper: Segment, lower: Segment) -> bool:
        if self.config.pair_delay > 0:
            await self.sleep(self.config.pair_delay)
        return await self.is_related(upper, lower)

    def _merge(self, upper: MergeItem, lower: MergeItem, seg_id: str) -> MergeItem:
        refs = tuple(sorted({*upper.refs, *lower.refs}))
        segment = merge_segments(upper.segment, lower.segment, refs, seg_id, self.image)
        return MergeItem(segment, refs, merged=True)

    async def first_pass(self, group: Sequence[MergeItem], group_index: int = 0) -> list[MergeItem]:
        out: list[MergeItem] = []
        i = 0
        while i < len(group):
            if i + 1 < len(group) and await self._ask(group[i].segment, group[i + 1].segment):
                out.append(self._merge(group[i], group[i + 1], f"refined-p1-{group_index}-{i}"))
                i += 2
            else:
                out.append(group[i])
                i += 1
        return out

    async def first_pass_batched(self, items: Sequence[MergeItem]) -> list[MergeItem]:
        """Run the first pass per group and reassemble in group order."""
        groups = partition(items, self.config.batch_size)
        semaphore = asyncio.Semaphore(self.config.concurrency)
        # Each group owns one slot; completion order never affects placement
        buffer: list[list[MergeItem]] = [[] for _ in groups]

        async def run_group(index: int, group: list[MergeItem]) -> None:
            async with semaphore:
                buffer[index] = await self.first_pass(group, index)
                logger.debug("Pairwise group %d: %d -> %d items", index, len(group), len(buffer[index]))

        outcomes = await asyncio.gather(
            *(run_group(i, g) for i, g in enumerate(groups)),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        return [item for part in buffer for item in part]

    async def corrective_pass(self, stream: Sequence[MergeItem]) -> list[MergeItem]:
        stream = list(stream)
        k = 0
        while k < len(stream):
            item = stream[k]
            if not item.merged:
                # Lower neighbour first
                if k + 1 < len(stream) and await self._ask(item.segment, stream[k + 1].segment):
                    merged = self._merge(item, stream[k + 1], self._next_correction_id("d"))
                    stream = [*stream[:k], merged, *stream[k + 2:]]
                    continue
                if k > 0 and await self._ask(stream[k - 1].segment, item.segment):
                    merged = self._merge(stream[k - 1], item, self._next_correction_id("u"))
                    stream = [*stream[:k - 1], merged, *stream[k + 1:]]
                    k -= 1
                    continue
            k += 1
        return stream

    def _next_correction_id(self, direction: str) -> str:
        self._corrections += 1
        return f"refined-p2-{direction}-{self._corrections}"
