"""Configuration loading, defaults, and typed views over the settings dict."""

from __future__ import annotations

import os
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet

import yaml

DEFAULT_SETTINGS: Dict[str, Any] = {
    "database": {
        "path": "data/industry_insights.db",
    },
    "llm": {
        "provider": "gemini",
        "model": "gemini-2.5-flash",
        "temperature": 0.7,
        "top_p": 0.8,
        "top_k": 40,
        "max_tokens": 2048,
        "timeout_seconds": 30,
    },
    "retry": {
        "max_retries": 3,
        "base_delay_ms": 1000,
        "jitter_ms": 0,
        "retryable": ["rate_limited", "service_overloaded", "malformed_output"],
    },
    "refresh": {
        "interval_days": 7,
    },
    "logging": {
        "level": "INFO",
    },
    "pricing": {
        "gemini:gemini-2.5-flash": {"input_per_1k": 0.0003, "output_per_1k": 0.0025},
        "gemini:gemini-2.5-pro": {"input_per_1k": 0.00125, "output_per_1k": 0.01},
        "openai:gpt-4.1-mini": {"input_per_1k": 0.0004, "output_per_1k": 0.0016},
        "openai:gpt-4.1": {"input_per_1k": 0.002, "output_per_1k": 0.008},
    },
}

ON_EXHAUSTION_FALLBACK = "fallback"
ON_EXHAUSTION_RAISE = "raise"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounds and disposition for one resilient call."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    jitter_ms: int = 0
    retryable: FrozenSet[str] = frozenset({"rate_limited", "service_overloaded", "malformed_output"})
    on_exhaustion: str = ON_EXHAUSTION_FALLBACK

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")
        if self.jitter_ms < 0:
            raise ValueError(f"jitter_ms must be >= 0, got {self.jitter_ms}")
        if self.on_exhaustion not in (ON_EXHAUSTION_FALLBACK, ON_EXHAUSTION_RAISE):
            raise ValueError(f"Invalid on_exhaustion policy: {self.on_exhaustion}")

    def delay_ms(self, attempt: int) -> int:
        return self.base_delay_ms * (2 ** attempt)


@dataclass(frozen=True)
class GenerationSettings:
    provider: str = "gemini"
    model: str = "gemini-2.5-flash"
    temperature: float = 0.7
    top_p: float | None = 0.8
    top_k: int | None = 40
    max_tokens: int = 2048
    timeout_seconds: int = 30
    api_key: str | None = field(default=None, repr=False)
    retry: RetryPolicy = field(default_factory=RetryPolicy)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(settings_path: str = "config/settings.yaml") -> Dict[str, Any]:
    """Loads settings.yaml and merges it onto defaults."""
    merged = deepcopy(DEFAULT_SETTINGS)
    config_path = Path(settings_path)
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as f:
            user_cfg = yaml.safe_load(f) or {}
        merged = _deep_merge(merged, user_cfg)
    return merged


def _api_key_for(provider: str) -> str | None:
    if provider == "gemini":
        return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if provider == "openai":
        return os.getenv("OPENAI_API_KEY")
    return None


def retry_policy_from_config(config: Dict[str, Any], on_exhaustion: str = ON_EXHAUSTION_FALLBACK) -> RetryPolicy:
    retry_cfg = config.get("retry", {})
    retryable = retry_cfg.get("retryable") or DEFAULT_SETTINGS["retry"]["retryable"]
    return RetryPolicy(
        max_retries=int(retry_cfg.get("max_retries", 3)),
        base_delay_ms=int(retry_cfg.get("base_delay_ms", 1000)),
        jitter_ms=int(retry_cfg.get("jitter_ms", 0)),
        retryable=frozenset(str(kind).strip().lower() for kind in retryable),
        on_exhaustion=on_exhaustion,
    )


def generation_settings_from_config(config: Dict[str, Any]) -> GenerationSettings:
    """Builds the explicit settings object handed to providers and the generator."""
    llm_cfg = config.get("llm", {})
    provider = str(llm_cfg.get("provider", "gemini")).strip().lower()
    top_p = llm_cfg.get("top_p")
    top_k = llm_cfg.get("top_k")
    return GenerationSettings(
        provider=provider,
        model=str(llm_cfg.get("model", "gemini-2.5-flash")),
        temperature=float(llm_cfg.get("temperature", 0.7)),
        top_p=float(top_p) if top_p is not None else None,
        top_k=int(top_k) if top_k is not None else None,
        max_tokens=int(llm_cfg.get("max_tokens", 2048)),
        timeout_seconds=int(llm_cfg.get("timeout_seconds", 30)),
        api_key=llm_cfg.get("api_key") or _api_key_for(provider),
        retry=retry_policy_from_config(config),
    )
