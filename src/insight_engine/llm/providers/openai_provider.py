"""OpenAI Chat Completions provider."""

from __future__ import annotations

import os
import time

from ..types import LLMRequest, LLMResult, MalformedOutputError, ProviderError


class OpenAIProvider:
    name = "openai"

    def __init__(self, api_key: str | None = None, client=None) -> None:
        self._client = client
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if self._client is None and api_key:
            try:
                from openai import OpenAI
            except Exception as exc:  # pragma: no cover - depends on installed package
                raise ProviderError(f"openai package unavailable: {exc}") from exc
            self._client = OpenAI(api_key=api_key)

    def generate(self, request: LLMRequest) -> LLMResult:
        if self._client is None:
            raise ProviderError("OPENAI_API_KEY missing", status=401)

        start = time.perf_counter()
        try:
            response = self._client.chat.completions.create(
                model=request.model,
                temperature=request.temperature,
                top_p=request.top_p if request.top_p is not None else 1.0,
                max_tokens=request.max_tokens,
                messages=[{"role": "user", "content": request.prompt}],
                timeout=request.timeout_seconds,
            )
        except Exception as exc:
            raise ProviderError(str(exc), status=getattr(exc, "status_code", None)) from exc

        latency_ms = int((time.perf_counter() - start) * 1000)
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise MalformedOutputError("OpenAI response has no choices")

        choice = choices[0]
        finish_reason = getattr(choice, "finish_reason", None)
        if finish_reason == "content_filter":
            raise ProviderError("Content was blocked by safety filters", finish_reason=finish_reason)

        message = getattr(choice, "message", None)
        text = getattr(message, "content", None) or ""
        if not text.strip():
            raise MalformedOutputError("OpenAI returned empty content")

        usage = getattr(response, "usage", None)
        tokens_in = int(getattr(usage, "prompt_tokens", 0) or 0)
        tokens_out = int(getattr(usage, "completion_tokens", 0) or 0)

        return LLMResult(
            text=text.strip(),
            provider=self.name,
            model=request.model,
            finish_reason=finish_reason,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            latency_ms=latency_ms,
            raw={"id": getattr(response, "id", None)},
        )
