"""Instruction templates for the three collaborator steps."""

from __future__ import annotations

import json
from collections.abc import Sequence

from splitter.engine.segments import Segment
from splitter.models.collaborator import StructuralUnit

_STRUCTURAL_TEMPLATE = """You are a senior UI semantics analyst. Analyze the attached mobile screenshot and list its logical content blocks from top to bottom.

CORE RULES:
1. **Never** output the system status bar (clock, battery, signal, Wi-Fi) at the very top. It is not content.
2. **First block**: the app name / title row together with its top-right action buttons is the first logical block. Output it on its own and start the analysis there.
3. **Merge rules**: output one block for each of these relationships:
   - a title and the content it introduces;
   - a toolbar or navigation group;
   - sensitive or private information (a label and its masked or concrete value);
   - content that continues a previous block.
4. **Single topic**: every block covers exactly one topic. Split blocks that mix topics.
5. **Bottom navigation bar**: the bottom navigation bar is always its own block.

Return strictly this JSON:
{
  "result": [
    {"sn": 1, "description": "logical block description"}
  ]
}"""

_MAPPING_TEMPLATE = """You are a UI physical-mapping expert. The attached image is the screenshot with every pixel-level block outlined and numbered in its top-right corner. Map each semantic block to the pixel blocks it occupies.

HARD CONSTRAINTS:
1. **Exclude the status bar**: if pixel block 1 (or the first few) shows the clock, battery, Wi-Fi or signal icons, never map it to any semantic block. Real content usually starts at pixel block 2 or 3.
2. **Mapping**: walk the semantic blocks in order and list the pixel block numbers each one covers. Every semantic block needs at least one pixel block.
3. **Sensitive information**: when a pixel block is the label of a sensitive field (for example "Password") and the following blocks are its mask or value, they belong to the same semantic block.
4. **Icon grids**: when a pixel block belongs to a grid of shortcut icons and the following blocks share its style, they belong to the same semantic block.

INPUT DATA:
- Semantic blocks: {units}
- Pixel blocks (number + box in 0-1000 coordinates): {blocks}

Return strictly this JSON:
{{
  "result": [
    {{"sn": 1, "description": "description", "mapping": [2, 3]}}
  ]
}}"""

_RELEVANCE_TEMPLATE = """You are a UI semantics analyst. The two attached images are vertically adjacent regions of the same mobile screenshot, upper region first.

Decide whether they belong to the same logical content block: a title and its content, parts of one toolbar or navigation group, a sensitive-information label and its value, or content that continues from one region into the next.

Return strictly this JSON:
{"related": true}
or
{"related": false}"""


def structural_instruction() -> str:
    return _STRUCTURAL_TEMPLATE


def mapping_instruction(units: Sequence[StructuralUnit], blocks: Sequence[Segment]) -> str:
    unit_data = [u.model_dump(by_alias=True) for u in units]
    block_data = [{"number": i, "box": b.box.to_dict()} for i, b in enumerate(blocks, start=1)]
    return _MAPPING_TEMPLATE.format(
        units=json.dumps(unit_data, ensure_ascii=False),
        blocks=json.dumps(block_data),
    )


def relevance_instruction() -> str:
    return _RELEVANCE_TEMPLATE


def get_all_templates() -> dict[str, str]:
    """Return all instruction templates keyed by step name."""
    return {
        "structural": _STRUCTURAL_TEMPLATE,
        "mapping": _MAPPING_TEMPLATE,
        "relevance": _RELEVANCE_TEMPLATE,
    }
