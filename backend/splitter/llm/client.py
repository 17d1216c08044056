"""AI collaborator: the one external call the refiner makes, via LangChain ChatAnthropic.

The core only depends on the Collaborator protocol. SDK exceptions are
translated here into typed ServiceTransientError kinds so the retry policy
never has to inspect error messages.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import anthropic

from splitter.engine.errors import (
    FailureKind,
    ServiceResponseError,
    ServiceTransientError,
    ServiceUnavailableError,
)
from splitter.llm.transport import ImagePayload

logger = logging.getLogger(__name__)

_RATE_LIMIT_CODES = {"RESOURCE_EXHAUSTED", "rate_limit_error", "quota_exceeded", "insufficient_quota"}
_SERVER_FAULT_CODES = {"INTERNAL", "UNAVAILABLE", "api_error", "overloaded_error"}

_JSON_SYSTEM = "Respond with a single JSON object only. No markdown, no text outside the JSON."


class ResponseFormat(str, enum.Enum):
    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True)
class CollaboratorConfig:
    """Everything needed to reach the model. Built once, passed in explicitly."""

    api_key: str
    model: str
    base_url: str | None = None
    response_format: ResponseFormat = ResponseFormat.JSON
    max_tokens: int = 4096


class Collaborator(Protocol):
    async def analyze(
        self,
        images: Sequence[ImagePayload],
        instruction: str,
        structured: bool = False,
    ) -> str: ...


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def _codes_of(exc: BaseException) -> set[str]:
    codes: set[str] = set()
    code = getattr(exc, "code", None)
    if isinstance(code, str):
        codes.add(code)
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            for key in ("type", "status", "code"):
                if isinstance(error.get(key), str):
                    codes.add(error[key])
    return codes


def classify_failure(exc: BaseException) -> FailureKind | None:
    """Map a collaborator exception to a retryable kind, or None if not retryable."""
    if isinstance(exc, anthropic.RateLimitError):
        return FailureKind.RATE_LIMIT
    if isinstance(exc, (anthropic.InternalServerError, anthropic.APIConnectionError)):
        return FailureKind.SERVER_FAULT

    status = _status_of(exc)
    codes = _codes_of(exc)
    if status == 429 or codes & _RATE_LIMIT_CODES:
        return FailureKind.RATE_LIMIT
    if (status is not None and status >= 500) or codes & _SERVER_FAULT_CODES:
        return FailureKind.SERVER_FAULT
    return None


def _response_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


class AnthropicCollaborator:
    """Vision-model collaborator backed by ChatAnthropic."""

    def __init__(self, config: CollaboratorConfig) -> None:
        self.config = config
        self._llm = None

    def _client(self):
        if self._llm is None:
            from langchain_anthropic import ChatAnthropic

            kwargs: dict[str, Any] = {
                "model": self.config.model,
                "api_key": self.config.api_key,
                "max_tokens": self.config.max_tokens,
                "temperature": 0,
                # Retries are owned by splitter.llm.retry
                "max_retries": 0,
            }
            if self.config.base_url:
                kwargs["base_url"] = self.config.base_url
            self._llm = ChatAnthropic(**kwargs)
        return self._llm

    def _build_messages(
        self,
        images: Sequence[ImagePayload],
        instruction: str,
        fmt: ResponseFormat,
    ) -> list:
        from langchain_core.messages import HumanMessage, SystemMessage

        content: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": img.media_type,
                    "data": img.data,
                },
            }
            for img in images
        ]
        content.append({"type": "text", "text": instruction})

        messages: list = []
        if fmt is ResponseFormat.JSON:
            messages.append(SystemMessage(content=_JSON_SYSTEM))
        messages.append(HumanMessage(content=content))
        return messages

    async def analyze(
        self,
        images: Sequence[ImagePayload],
        instruction: str,
        structured: bool = False,
    ) -> str:
        if not self.config.api_key:
            raise ServiceUnavailableError("collaborator not configured; set ANTHROPIC_API_KEY in .env")

        fmt = self.config.response_format if structured else ResponseFormat.TEXT
        messages = self._build_messages(images, instruction, fmt)

        start = time.perf_counter()
        try:
            response = await self._client().ainvoke(messages)
        except Exception as e:
            kind = classify_failure(e)
            if kind is None:
                raise
            raise ServiceTransientError(kind, str(e)) from e

        text = _response_text(response.content)
        logger.debug(
            "Collaborator (%s, %d images) answered in %.0fms: %s",
            self.config.model,
            len(images),
            (time.perf_counter() - start) * 1000,
            text[:2000],
        )
        if not text.strip():
            raise ServiceResponseError("collaborator returned empty content", text)
        return text
