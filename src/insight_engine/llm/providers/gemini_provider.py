"""Google Gemini REST provider."""

from __future__ import annotations

import os
import time
from typing import Any, Dict

import requests

from ..errors import POLICY_FINISH_REASONS
from ..types import LLMRequest, LLMResult, MalformedOutputError, ProviderError

API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

# Safety thresholds used by the resume-improvement flow; content is user-authored.
RELAXED_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]


def _error_message(res: requests.Response) -> str:
    try:
        body = res.json()
    except ValueError:
        return (res.text or "")[:300]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        status = error.get("status") or ""
        message = error.get("message") or ""
        return f"{status} {message}".strip()
    return str(body)[:300]


class GeminiProvider:
    name = "gemini"

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")

    def _payload(self, request: LLMRequest) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {
            "temperature": request.temperature,
            "maxOutputTokens": request.max_tokens,
        }
        if request.top_p is not None:
            generation_config["topP"] = request.top_p
        if request.top_k is not None:
            generation_config["topK"] = request.top_k

        payload: Dict[str, Any] = {
            "contents": [{"parts": [{"text": request.prompt}]}],
            "generationConfig": generation_config,
        }
        if request.meta.get("relaxed_safety"):
            payload["safetySettings"] = RELAXED_SAFETY_SETTINGS
        return payload

    def generate(self, request: LLMRequest) -> LLMResult:
        if not self._api_key:
            raise ProviderError("GEMINI_API_KEY/GOOGLE_API_KEY missing", status=401)

        url = f"{API_BASE}/{request.model}:generateContent"
        headers = {"x-goog-api-key": self._api_key, "content-type": "application/json"}

        start = time.perf_counter()
        try:
            res = requests.post(
                url,
                headers=headers,
                json=self._payload(request),
                timeout=request.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise ProviderError(f"network error calling Gemini: {exc}") from exc

        if res.status_code >= 400:
            raise ProviderError(
                f"Gemini HTTP {res.status_code}: {_error_message(res)}",
                status=res.status_code,
            )

        try:
            data = res.json()
        except ValueError as exc:
            raise MalformedOutputError("Gemini returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise MalformedOutputError("Gemini returned an unexpected body")

        latency_ms = int((time.perf_counter() - start) * 1000)

        feedback = data.get("promptFeedback") or {}
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        if block_reason:
            raise ProviderError(f"Prompt blocked by Gemini: {block_reason}", finish_reason="SAFETY")

        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            raise MalformedOutputError("Gemini response has no candidates")

        candidate = candidates[0]
        finish_reason = candidate.get("finishReason")
        if finish_reason and str(finish_reason).upper() in POLICY_FINISH_REASONS:
            raise ProviderError(
                f"Content was blocked by safety filters ({finish_reason})",
                finish_reason=str(finish_reason),
            )

        content = candidate.get("content") or {}
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            raise MalformedOutputError("Gemini candidate has no content parts")
        texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str) and part["text"]]
        if not texts:
            raise MalformedOutputError("Gemini candidate has no text parts")

        usage = data.get("usageMetadata") or {}
        if not isinstance(usage, dict):
            usage = {}
        tokens_in = int(usage.get("promptTokenCount", 0) or 0)
        tokens_out = int(usage.get("candidatesTokenCount", 0) or 0)

        return LLMResult(
            text="".join(texts).strip(),
            provider=self.name,
            model=request.model,
            finish_reason=finish_reason,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            latency_ms=latency_ms,
            raw={"responseId": data.get("responseId")},
        )
