import pytest

from insight_engine.config import ON_EXHAUSTION_RAISE, RetryPolicy
from insight_engine.llm.errors import ErrorKind, GenerationError
from insight_engine.llm.types import MalformedOutputError, ProviderError
from insight_engine.retry import run_with_retry


class Flaky:
    def __init__(self, failures, value="done"):
        self.failures = list(failures)
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.value


def test_success_short_circuits_without_sleeping():
    call = Flaky([])
    sleeps = []

    assert run_with_retry(call, RetryPolicy(), sleep=sleeps.append) == "done"
    assert call.calls == 1
    assert sleeps == []


def test_backoff_doubles_per_attempt():
    call = Flaky([ProviderError("x", status=503)] * 3)
    sleeps = []

    run_with_retry(call, RetryPolicy(max_retries=4, base_delay_ms=500), sleep=sleeps.append)

    assert sleeps == [0.5, 1.0, 2.0]
    assert call.calls == 4


def test_jitter_is_added_to_base_delay():
    call = Flaky([ProviderError("x", status=429)])
    sleeps = []

    run_with_retry(
        call,
        RetryPolicy(base_delay_ms=1000, jitter_ms=100),
        sleep=sleeps.append,
        rng=lambda: 0.5,
    )

    assert sleeps == [1.05]


def test_fallback_policy_returns_fallback_value():
    call = Flaky([MalformedOutputError("bad")] * 5)

    value = run_with_retry(call, RetryPolicy(max_retries=2), fallback=lambda: "default", sleep=lambda s: None)

    assert value == "default"
    assert call.calls == 2


def test_raise_policy_ignores_fallback_and_keeps_last_kind():
    call = Flaky([ProviderError("x", status=503), MalformedOutputError("bad")])

    with pytest.raises(GenerationError) as excinfo:
        run_with_retry(
            call,
            RetryPolicy(max_retries=2, on_exhaustion=ON_EXHAUSTION_RAISE),
            fallback=lambda: "default",
            sleep=lambda s: None,
        )

    assert excinfo.value.kind is ErrorKind.MALFORMED_OUTPUT
    assert isinstance(excinfo.value.__cause__, MalformedOutputError)


def test_network_errors_are_fatal_by_default_but_configurable():
    default_call = Flaky([ProviderError("network error calling Gemini")])
    run_with_retry(default_call, RetryPolicy(), fallback=lambda: None, sleep=lambda s: None)
    assert default_call.calls == 1

    retrying_call = Flaky([ProviderError("network error calling Gemini")])
    policy = RetryPolicy(retryable=frozenset({"network_error"}))
    assert run_with_retry(retrying_call, policy, sleep=lambda s: None) == "done"
    assert retrying_call.calls == 2


def test_retry_logs_attempt_and_delay(caplog):
    call = Flaky([ProviderError("x", status=503)])

    with caplog.at_level("WARNING", logger="insight_engine.retry"):
        run_with_retry(call, RetryPolicy(base_delay_ms=1000), sleep=lambda s: None, label="insights:Retail")

    messages = [record.getMessage() for record in caplog.records]
    assert any("attempt=1/3" in m and "delay_ms=1000" in m and "service_overloaded" in m for m in messages)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_retries": 0},
        {"base_delay_ms": -1},
        {"jitter_ms": -5},
        {"on_exhaustion": "ignore"},
    ],
)
def test_invalid_policies_are_rejected(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)
