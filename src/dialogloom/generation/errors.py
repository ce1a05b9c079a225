"""Structured generation failures.

Backends report failures as exceptions whose message is the only signal of
what went wrong. The dispatcher converts that message exactly once into a
:class:`GenerationFailure` with an :class:`ErrorKind`; everything downstream
works with the kind, never with the raw text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

# Substrings that mark a time-limit condition in backend error messages
TIMEOUT_MARKERS = ("timeout", "timed out")


class ErrorKind(StrEnum):
    """Why a generation request failed.

    ``TIMEOUT`` marks a retryable backend time-limit condition; ``ERROR`` is
    any other failure.
    """

    ERROR = "error"
    TIMEOUT = "timeout"


def classify_error(message: str) -> ErrorKind:
    """Classify a backend failure message.

    Any message mentioning ``timeout`` or ``timed out`` (case-insensitive)
    is a timeout.
    """
    lowered = message.lower()
    if any(marker in lowered for marker in TIMEOUT_MARKERS):
        return ErrorKind.TIMEOUT
    return ErrorKind.ERROR


@dataclass(frozen=True)
class GenerationFailure:
    """Classified outcome of a failed generation request."""

    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> GenerationFailure:
        message = str(exc) or type(exc).__name__
        return cls(kind=classify_error(message), message=message)

    @property
    def is_timeout(self) -> bool:
        return self.kind is ErrorKind.TIMEOUT


class GenerationError(Exception):
    """Raised by the dispatcher when the backend call fails.

    Attributes:
        node_type: Type of the node being generated.
        failure: The classified failure.
    """

    def __init__(self, node_type: str, failure: GenerationFailure) -> None:
        self.node_type = node_type
        self.failure = failure
        super().__init__(failure.message)

    @property
    def kind(self) -> ErrorKind:
        return self.failure.kind
