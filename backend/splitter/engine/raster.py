"""Raster sampler: decodes the source screenshot and extracts its RGBA pixel grid."""

from __future__ import annotations

import base64
import binascii
import io
from collections.abc import Iterable

import numpy as np
from numpy.typing import NDArray
from PIL import Image, UnidentifiedImageError

from splitter.engine.errors import InputError
from splitter.engine.geometry import BoundingBox
from splitter.engine.segments import Segment

_DATA_URL_PREFIX = "data:"


def decode_image(source: bytes | str | Image.Image) -> Image.Image:
    """Accept raw bytes, a data URL, bare base64, or an already-open image."""
    if isinstance(source, Image.Image):
        image = source
    else:
        raw = _to_bytes(source)
        try:
            image = Image.open(io.BytesIO(raw))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise InputError(f"cannot decode image: {e}") from e

    if image.width <= 0 or image.height <= 0:
        raise InputError(f"image has no pixels: {image.width}x{image.height}")
    return image


def _to_bytes(source: bytes | str) -> bytes:
    if isinstance(source, bytes):
        return source
    payload = source.strip()
    if payload.startswith(_DATA_URL_PREFIX):
        _, _, payload = payload.partition(",")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InputError(f"image payload is not valid base64: {e}") from e


def sample_pixels(image: Image.Image) -> NDArray[np.uint8]:
    """(H, W, 4) uint8 RGBA grid."""
    if image.width <= 0 or image.height <= 0:
        raise InputError(f"image has no pixels: {image.width}x{image.height}")
    return np.asarray(image.convert("RGBA"), dtype=np.uint8)


def crop_box(image: Image.Image, box: BoundingBox) -> Image.Image:
    """Cut the region described by a normalized box out of the source image."""
    return image.crop(box.to_pixels(image.width, image.height))


def attach_crops(segments: Iterable[Segment], image: Image.Image) -> list[Segment]:
    return [s.with_crop(crop_box(image, s.box)) for s in segments]


def to_data_url(image: Image.Image, fmt: str = "PNG") -> str:
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    mime = Image.MIME.get(fmt.upper(), "image/png")
    return f"data:{mime};base64,{base64.b64encode(buf.getvalue()).decode('ascii')}"
