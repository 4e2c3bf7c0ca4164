"""Error types raised by providers and reported by the orchestrator."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    NO_RESULTS = "NO_RESULTS"
    SEARCH_FAILED = "SEARCH_FAILED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    SYNTHESIS_UNAVAILABLE = "SYNTHESIS_UNAVAILABLE"
    UNEXPECTED = "UNEXPECTED"


class ProviderError(Exception):
    """A search provider failed, with steps the user can take to recover."""

    def __init__(
        self,
        message: str,
        provider: str,
        *,
        is_configuration_error: bool = False,
        recovery_suggestions: list[str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.is_configuration_error = is_configuration_error
        self.recovery_suggestions = list(recovery_suggestions or [])

    def __str__(self) -> str:
        if not self.recovery_suggestions:
            return self.message
        steps = "\n".join(f"  - {s}" for s in self.recovery_suggestions)
        return f"{self.message}\nRecovery steps:\n{steps}"


class ExtractionError(Exception):
    """Content could not be fetched for one URL."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url
        self.message = message


class SynthesisUnavailableError(Exception):
    """The configured synthesizer could not be reached."""


class ResearchError(Exception):
    """Structured failure of one research request."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        suggestions: list[str] | None = None,
        alternative_queries: list[str] | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.suggestions = list(suggestions or [])
        self.alternative_queries = list(alternative_queries or [])

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "suggestions": list(self.suggestions),
            "alternative_queries": list(self.alternative_queries),
        }
