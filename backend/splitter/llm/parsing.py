"""Turn opaque collaborator text into one of the expected response models."""

from __future__ import annotations

import json
import logging
import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from splitter.engine.errors import ServiceResponseError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?([\s\S]*?)\n?\s*```$")


def strip_code_fence(text: str) -> str:
    """Remove one optional markdown code fence wrapping the whole payload."""
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def parse_response(text: str | None, model: type[M]) -> M:
    """Parse collaborator output into model, or raise ServiceResponseError with the raw text."""
    raw = text or ""
    payload = strip_code_fence(raw)
    if not payload:
        raise ServiceResponseError(f"empty {model.__name__} response", raw)

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ServiceResponseError(f"{model.__name__} is not valid JSON: {e}", raw) from e

    try:
        parsed = model.model_validate(data)
    except ValidationError as e:
        raise ServiceResponseError(
            f"{model.__name__} does not match the expected schema: {e.error_count()} errors", raw,
        ) from e

    logger.debug("Parsed %s: %s", model.__name__, parsed)
    return parsed
