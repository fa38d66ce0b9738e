"""Shared LLM data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class LLMRequest:
    stage: str
    prompt: str
    model: str
    temperature: float
    max_tokens: int
    timeout_seconds: int
    top_p: float | None = None
    top_k: int | None = None
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMResult:
    text: str
    provider: str
    model: str
    finish_reason: str | None = None
    tokens_in: int = 0
    tokens_out: int = 0
    latency_ms: int = 0
    raw: Dict[str, Any] = field(default_factory=dict)


class ProviderError(RuntimeError):
    """Provider failed to return a valid generation.

    ``status`` carries the HTTP-like status code when the upstream gave one and
    ``finish_reason`` the generator's stop reason when it refused to answer.
    """

    def __init__(self, message: str, status: int | None = None, finish_reason: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.finish_reason = finish_reason


class MalformedOutputError(ProviderError):
    """Generator answered, but the answer is empty or not in the expected shape."""
