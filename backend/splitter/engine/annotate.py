"""Annotated preview: the source image with every segment outlined and numbered.

The mapping step shows this to the collaborator so it can refer to pixel
segments by their 1-based number; the same rendering doubles as an export.
"""

from __future__ import annotations

from collections.abc import Sequence

from PIL import Image, ImageDraw, ImageFont

from splitter.engine.segments import Segment

_SPLIT_COLOR = (191, 165, 255)      # #BFA5FF
_REFINED_COLOR = (139, 92, 246)     # #8B5CF6
_FILL_ALPHA = int(0.15 * 255)
_TEXT_COLOR = (255, 255, 255, 255)


def render_annotated(
    image: Image.Image,
    segments: Sequence[Segment],
    refined: bool = False,
) -> Image.Image:
    """Return an RGB copy of image with translucent boxes and number tags."""
    base = image.convert("RGBA")
    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)

    color = _REFINED_COLOR if refined else _SPLIT_COLOR
    line_width = max(2, base.width // 500)
    font_size = max(12, base.width // 40)
    font = ImageFont.load_default(size=font_size)
    padding = font_size // 2

    for number, segment in enumerate(segments, start=1):
        left, top, right, bottom = segment.box.to_pixels(base.width, base.height)
        draw.rectangle((left, top, right - 1, bottom - 1), fill=(*color, _FILL_ALPHA))
        draw.rectangle((left, top, right - 1, bottom - 1), outline=(*color, 255), width=line_width)

        # Number tag in the top-right corner
        text = str(number)
        tx0, ty0, tx1, ty1 = draw.textbbox((0, 0), text, font=font)
        tag_w = (tx1 - tx0) + 2 * padding
        tag_h = (ty1 - ty0) + padding
        lx = right - tag_w - padding // 2
        ly = top + padding // 2
        draw.rectangle((lx, ly, lx + tag_w, ly + tag_h), fill=(*color, 255))
        draw.text((lx + tag_w / 2, ly + tag_h / 2), text, font=font, fill=_TEXT_COLOR, anchor="mm")

    return Image.alpha_composite(base, overlay).convert("RGB")
