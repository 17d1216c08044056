"""Error taxonomy shared by the pixel pipeline and the semantic refiner.

InputError               -> caller supplied bad data, fail fast
ServiceTransientError    -> collaborator temporarily unavailable, retried
ServiceUnavailableError  -> retries exhausted
ServiceResponseError     -> collaborator answered, but the answer is unusable
GeometryInvariantError   -> a computed box broke the 0-1000 ordering invariant
"""

from __future__ import annotations

import enum


class SplitterError(Exception):
    """Base class for every error raised by the splitter."""


class InputError(SplitterError, ValueError):
    pass


class FailureKind(enum.Enum):
    RATE_LIMIT = "rate_limit"
    SERVER_FAULT = "server_fault"


class ServiceTransientError(SplitterError):
    def __init__(self, kind: FailureKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class ServiceUnavailableError(SplitterError):
    def __init__(
        self,
        message: str,
        attempts: int = 0,
        last_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ServiceResponseError(SplitterError):
    """Collaborator output that cannot be used. Keeps the raw text for diagnostics."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


class GeometryInvariantError(SplitterError, AssertionError):
    pass
