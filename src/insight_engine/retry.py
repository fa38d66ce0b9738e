"""Bounded exponential-backoff retry shared by the batch and interactive flows."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TypeVar

from .config import ON_EXHAUSTION_FALLBACK, RetryPolicy
from .llm.errors import ErrorKind, GenerationError, classify_error, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryState:
    """Per-call bookkeeping; lives only for the duration of one run_with_retry."""

    attempt: int = 0
    last_error: Optional[BaseException] = None
    last_kind: Optional[ErrorKind] = None
    delay_ms: int = 0
    delays_ms: List[int] = field(default_factory=list)


def _jitter_ms(policy: RetryPolicy, rng: Callable[[], float]) -> int:
    if policy.jitter_ms <= 0:
        return 0
    return int(rng() * policy.jitter_ms)


def run_with_retry(
    call: Callable[[], T],
    policy: RetryPolicy,
    fallback: Callable[[], T] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "generation",
    rng: Callable[[], float] = random.random,
) -> T:
    """Runs ``call`` until it returns, a fatal error occurs, or attempts run out.

    On exhaustion the policy decides: ``fallback`` returns ``fallback()``,
    ``raise`` raises GenerationError tagged with the last error's kind.
    """
    state = RetryState()

    for attempt in range(policy.max_retries):
        state.attempt = attempt + 1
        try:
            value = call()
        except Exception as exc:
            kind = classify_error(exc)
            state.last_error = exc
            state.last_kind = kind

            if not is_retryable(kind, policy.retryable):
                logger.error(
                    "[%s] fatal error attempt=%d/%d kind=%s error=%s",
                    label,
                    state.attempt,
                    policy.max_retries,
                    kind.value,
                    exc,
                )
                break
            if state.attempt >= policy.max_retries:
                logger.error(
                    "[%s] retries exhausted attempt=%d/%d kind=%s error=%s",
                    label,
                    state.attempt,
                    policy.max_retries,
                    kind.value,
                    exc,
                )
                break

            state.delay_ms = policy.delay_ms(attempt) + _jitter_ms(policy, rng)
            state.delays_ms.append(state.delay_ms)
            logger.warning(
                "[%s] retry attempt=%d/%d delay_ms=%d kind=%s error=%s",
                label,
                state.attempt,
                policy.max_retries,
                state.delay_ms,
                kind.value,
                exc,
            )
            sleep(state.delay_ms / 1000.0)
            continue

        logger.info("[%s] success attempt=%d/%d", label, state.attempt, policy.max_retries)
        return value

    kind = state.last_kind or ErrorKind.UNKNOWN
    if policy.on_exhaustion == ON_EXHAUSTION_FALLBACK and fallback is not None:
        logger.warning(
            "[%s] fallback after attempts=%d kind=%s",
            label,
            state.attempt,
            kind.value,
        )
        return fallback()

    logger.error("[%s] error after attempts=%d kind=%s", label, state.attempt, kind.value)
    raise GenerationError(kind, str(state.last_error or "generation failed"), attempts=state.attempt) from state.last_error
