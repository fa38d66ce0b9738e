"""Resilient generation calls against a remote text generator."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict, Tuple

from .config import ON_EXHAUSTION_FALLBACK, ON_EXHAUSTION_RAISE, GenerationSettings, RetryPolicy
from .insights import GenerationRequest, GenerationResult, fallback_insights, result_from_payload
from .llm.errors import POLICY_FINISH_REASONS
from .llm.providers.base import TextGenerator
from .llm.types import LLMRequest, LLMResult, MalformedOutputError, ProviderError
from .parsing import parse_json_payload, strip_code_fences
from .prompts import build_improve_prompt, build_insights_prompt
from .retry import run_with_retry
from .utils import normalize_subject

logger = logging.getLogger(__name__)

SOURCE_LLM = "llm"
SOURCE_FALLBACK = "fallback"

CallLogger = Callable[[str, LLMResult, Dict[str, Any]], None]


class InsightGenerator:
    """Wraps a TextGenerator with retry, classification, parsing and fallback.

    Holds no state between calls; everything process-wide (model, keys,
    retry bounds) arrives through ``settings``.
    """

    def __init__(
        self,
        provider: TextGenerator,
        settings: GenerationSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        call_logger: CallLogger | None = None,
    ) -> None:
        self.provider = provider
        self.settings = settings or GenerationSettings()
        self.sleep = sleep
        self.call_logger = call_logger

    def _policy(self, max_retries: int | None, base_delay_ms: int | None, on_exhaustion: str) -> RetryPolicy:
        policy = self.settings.retry
        changes: Dict[str, Any] = {"on_exhaustion": on_exhaustion}
        if max_retries is not None:
            changes["max_retries"] = max_retries
        if base_delay_ms is not None:
            changes["base_delay_ms"] = base_delay_ms
        return replace(policy, **changes)

    def _complete(self, stage: str, prompt: str, meta: Dict[str, Any]) -> LLMResult:
        request = LLMRequest(
            stage=stage,
            prompt=prompt,
            model=self.settings.model,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            timeout_seconds=self.settings.timeout_seconds,
            top_p=self.settings.top_p,
            top_k=self.settings.top_k,
            meta=meta,
        )
        result = self.provider.generate(request)
        if result is None:
            raise MalformedOutputError("No response received from AI")
        if result.finish_reason and str(result.finish_reason).upper() in POLICY_FINISH_REASONS:
            raise ProviderError(
                f"Content was blocked by safety filters ({result.finish_reason})",
                finish_reason=str(result.finish_reason),
            )
        if self.call_logger is not None:
            self.call_logger(stage, result, meta)
        return result

    def generate_with_source(
        self,
        subject: str,
        max_retries: int | None = None,
        base_delay_ms: int | None = None,
        fallback: bool = True,
    ) -> Tuple[GenerationResult, str]:
        """Like generate(), also reporting whether the record came from the model or the fallback."""
        industry = normalize_subject(subject)
        if not industry:
            raise ValueError("subject must be a non-empty string")

        request = GenerationRequest(subject=industry, prompt=build_insights_prompt(industry))
        policy = self._policy(
            max_retries,
            base_delay_ms,
            ON_EXHAUSTION_FALLBACK if fallback else ON_EXHAUSTION_RAISE,
        )

        def attempt() -> Tuple[GenerationResult, str]:
            result = self._complete("insights", request.prompt, {"industry": request.subject})
            payload = parse_json_payload(result.text)
            return result_from_payload(payload), SOURCE_LLM

        def use_fallback() -> Tuple[GenerationResult, str]:
            logger.info("Using fallback insights for industry=%s", request.subject)
            return fallback_insights(), SOURCE_FALLBACK

        return run_with_retry(
            attempt,
            policy,
            fallback=use_fallback,
            sleep=self.sleep,
            label=f"insights:{request.subject}",
        )

    def generate(
        self,
        subject: str,
        max_retries: int | None = None,
        base_delay_ms: int | None = None,
        fallback: bool = True,
    ) -> GenerationResult:
        """Returns insights for ``subject``.

        With ``fallback=True`` (batch refresh) this never raises for upstream
        failures and returns the static fallback record instead. With
        ``fallback=False`` a GenerationError carrying the last ErrorKind is raised.
        """
        result, _source = self.generate_with_source(
            subject,
            max_retries=max_retries,
            base_delay_ms=base_delay_ms,
            fallback=fallback,
        )
        return result

    def improve_text(
        self,
        current: str,
        section_type: str,
        industry: str,
        max_retries: int | None = None,
        base_delay_ms: int | None = None,
    ) -> str:
        """Rewrites a resume section; raises GenerationError with a user-readable message on failure."""
        if not current or not current.strip():
            raise ValueError("Please provide content to improve")

        prompt = build_improve_prompt(current.strip(), section_type, industry)
        policy = self._policy(max_retries, base_delay_ms, ON_EXHAUSTION_RAISE)

        def attempt() -> str:
            result = self._complete(
                "improve",
                prompt,
                {"industry": industry, "type": section_type, "relaxed_safety": True},
            )
            improved = strip_code_fences(result.text)
            if not improved:
                raise MalformedOutputError("AI returned empty response")
            return improved

        return run_with_retry(attempt, policy, sleep=self.sleep, label=f"improve:{section_type}")
