"""Remote text generator interface."""

from __future__ import annotations

from typing import Protocol

from ..types import LLMRequest, LLMResult


class TextGenerator(Protocol):
    """Text in, text out. Failures raise ProviderError (or anything else)."""

    name: str

    def generate(self, request: LLMRequest) -> LLMResult:
        ...
