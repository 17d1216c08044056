"""Downscale and encode images before they reach the collaborator."""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass

from PIL import Image

DEFAULT_MAX_WIDTH = 1024


@dataclass(frozen=True)
class ImagePayload:
    """A self-contained still image: media type + base64 data."""

    media_type: str
    data: str
    width: int
    height: int


def downscale(image: Image.Image, max_width: int = DEFAULT_MAX_WIDTH) -> Image.Image:
    """Shrink to max_width preserving aspect ratio; narrower images are returned as-is."""
    if image.width <= max_width:
        return image
    scale = max_width / image.width
    size = (max_width, max(1, round(image.height * scale)))
    return image.resize(size, Image.Resampling.LANCZOS)


def encode_image(
    image: Image.Image,
    max_width: int = DEFAULT_MAX_WIDTH,
    scale: bool = True,
) -> ImagePayload:
    if scale:
        image = downscale(image, max_width)
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA")
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return ImagePayload(
        media_type="image/png",
        data=base64.b64encode(buf.getvalue()).decode("ascii"),
        width=image.width,
        height=image.height,
    )
