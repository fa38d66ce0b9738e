from insight_engine.config import (
    DEFAULT_SETTINGS,
    ON_EXHAUSTION_RAISE,
    RetryPolicy,
    generation_settings_from_config,
    load_settings,
    retry_policy_from_config,
)


def test_missing_settings_file_returns_defaults(tmp_path):
    cfg = load_settings(str(tmp_path / "missing.yaml"))
    assert cfg == DEFAULT_SETTINGS
    assert cfg is not DEFAULT_SETTINGS


def test_yaml_overrides_are_deep_merged(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("retry:\n  max_retries: 5\nllm:\n  provider: openai\n  model: gpt-4.1-mini\n", encoding="utf-8")

    cfg = load_settings(str(path))

    assert cfg["retry"]["max_retries"] == 5
    assert cfg["retry"]["base_delay_ms"] == 1000
    assert cfg["llm"]["provider"] == "openai"
    assert cfg["llm"]["timeout_seconds"] == 30


def test_generation_settings_pick_up_api_key_from_env(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("GOOGLE_API_KEY", "g-key")

    settings = generation_settings_from_config(load_settings("does-not-exist.yaml"))

    assert settings.provider == "gemini"
    assert settings.api_key == "g-key"
    assert settings.retry == RetryPolicy()
    assert "g-key" not in repr(settings)


def test_retry_policy_from_config():
    cfg = {"retry": {"max_retries": 4, "base_delay_ms": 250, "jitter_ms": 50, "retryable": ["Rate_Limited"]}}

    policy = retry_policy_from_config(cfg, on_exhaustion=ON_EXHAUSTION_RAISE)

    assert policy.max_retries == 4
    assert policy.retryable == frozenset({"rate_limited"})
    assert policy.on_exhaustion == ON_EXHAUSTION_RAISE
    assert [policy.delay_ms(i) for i in range(3)] == [250, 500, 1000]
