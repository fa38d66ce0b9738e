import json

import pytest

from insight_engine.config import load_settings
from insight_engine.insights import fallback_insights
from insight_engine.llm.types import LLMResult, ProviderError
from insight_engine.models import apply_migrations, get_connection, get_insight, insight_from_row, upsert_insight
from insight_engine.orchestrator import (
    build_generator,
    get_or_create_insight,
    improve_section,
    insight_view,
    refresh_all_insights,
    refresh_due_insights,
)
from insight_engine.scheduler import run_weekly_refresh


def _insights_text(industry):
    return json.dumps(
        {
            "salaryRanges": [
                {"role": f"{industry} {level}", "min": 1000, "max": 3000, "median": 2000, "location": "Global"}
                for level in ("Junior", "Mid", "Senior", "Lead", "Head")
            ],
            "growthRate": 6,
            "demandLevel": "HIGH",
            "topSkills": ["a", "b", "c", "d", "e"],
            "marketOutlook": "POSITIVE",
            "keyTrends": ["t1", "t2", "t3", "t4", "t5"],
            "recommendedSkills": ["r1"],
        }
    )


class IndustryProvider:
    """Answers with a deterministic record naming the industry found in the prompt."""

    name = "gemini"

    def __init__(self, fail_for=(), reply=None):
        self.fail_for = set(fail_for)
        self.reply = reply
        self.seen = []

    def generate(self, request):
        industry = request.meta.get("industry")
        self.seen.append(industry)
        if industry in self.fail_for:
            raise ProviderError("quota exceeded", status=429)
        text = self.reply if self.reply is not None else _insights_text(industry)
        return LLMResult(text=text, provider=self.name, model=request.model, tokens_in=1000, tokens_out=1000)


@pytest.fixture
def config(tmp_path):
    cfg = load_settings(str(tmp_path / "none.yaml"))
    cfg["database"]["path"] = str(tmp_path / "app.db")
    return cfg


def _setup(config, provider):
    apply_migrations(config["database"]["path"])
    conn = get_connection(config["database"]["path"])
    return conn, build_generator(conn, config, provider=provider, sleep=lambda s: None)


def test_get_or_create_generates_once_then_reads_stored_row(config):
    provider = IndustryProvider()
    conn, generator = _setup(config, provider)

    first = get_or_create_insight(conn, config, generator, "Data Science")
    second = get_or_create_insight(conn, config, generator, "Data Science")

    assert first["created"] is True
    assert second["created"] is False
    assert provider.seen == ["Data Science"]
    assert first["insight"]["source"] == "llm"
    assert first["insight"]["next_update"] > first["insight"]["last_updated"]

    view = insight_view(second["insight"])
    assert view["industry"] == "Data Science"
    assert view["salaryRanges"][0]["role"] == "Data Science Junior"


def test_get_or_create_keys_on_trimmed_industry_only(config):
    provider = IndustryProvider()
    conn, generator = _setup(config, provider)

    get_or_create_insight(conn, config, generator, "Software Engineering")
    padded = get_or_create_insight(conn, config, generator, "  Software Engineering ")
    spaced = get_or_create_insight(conn, config, generator, "Software  Engineering")

    assert padded["created"] is False
    assert spaced["created"] is True
    assert provider.seen == ["Software Engineering", "Software  Engineering"]


def test_get_or_create_stores_fallback_when_generation_fails(config):
    provider = IndustryProvider(fail_for={"Mining"})
    conn, generator = _setup(config, provider)

    result = get_or_create_insight(conn, config, generator, "Mining")

    assert result["ok"] is True
    assert result["insight"]["source"] == "fallback"
    assert insight_from_row(result["insight"]) == fallback_insights()
    assert provider.seen == ["Mining"] * 3


def test_get_or_create_rejects_blank_industry(config):
    conn, generator = _setup(config, IndustryProvider())

    result = get_or_create_insight(conn, config, generator, "  ")

    assert result == {"ok": False, "reason": "empty_industry", "created": False, "insight": None}


def test_refresh_all_processes_industries_sequentially_and_survives_failures(config):
    provider = IndustryProvider(fail_for={"Banking"})
    conn, generator = _setup(config, provider)
    for industry in ("Retail", "Banking", "Aviation"):
        upsert_insight(conn, industry, fallback_insights(), next_update="2020-01-01T00:00:00+00:00", source="fallback")

    result = refresh_all_insights(conn, config, generator)

    assert result["count"] == 3
    assert result["fallbacks"] == 1
    assert [item["industry"] for item in result["results"]] == ["Aviation", "Banking", "Retail"]
    assert provider.seen == ["Aviation", "Banking", "Banking", "Banking", "Retail"]
    assert get_insight(conn, "Retail")["source"] == "llm"
    assert get_insight(conn, "Banking")["source"] == "fallback"


def test_refresh_all_stores_fallback_for_non_finite_reply_and_continues(config):
    provider = IndustryProvider(reply=_insights_text("any").replace('"growthRate": 6', '"growthRate": NaN'))
    conn, generator = _setup(config, provider)
    for industry in ("Retail", "Aviation"):
        upsert_insight(conn, industry, fallback_insights(), next_update="2020-01-01T00:00:00+00:00", source="llm")

    result = refresh_all_insights(conn, config, generator)

    assert result["count"] == 2
    assert result["fallbacks"] == 2
    assert provider.seen == ["Aviation"] * 3 + ["Retail"] * 3
    assert insight_from_row(get_insight(conn, "Retail")) == fallback_insights()
    assert get_insight(conn, "Aviation")["source"] == "fallback"


def test_refresh_due_skips_fresh_rows(config):
    provider = IndustryProvider()
    conn, generator = _setup(config, provider)
    upsert_insight(conn, "Stale", fallback_insights(), next_update="2020-01-01T00:00:00+00:00")
    upsert_insight(conn, "Fresh", fallback_insights(), next_update="2999-01-01T00:00:00+00:00")

    result = refresh_due_insights(conn, config, generator, now_iso="2021-01-01T00:00:00+00:00")

    assert result["count"] == 1
    assert provider.seen == ["Stale"]


def test_successful_calls_are_logged_with_cost(config):
    conn, generator = _setup(config, IndustryProvider())

    get_or_create_insight(conn, config, generator, "Telecom")

    row = conn.execute("SELECT * FROM llm_calls").fetchone()
    assert row["stage"] == "insights"
    assert row["model"] == "gemini-2.5-flash"
    assert row["cost_usd"] == pytest.approx(0.0028)


def test_weekly_scheduler_refreshes_every_industry(config):
    provider = IndustryProvider()
    conn, _ = _setup(config, provider)
    upsert_insight(conn, "Logistics", fallback_insights(), next_update="2999-01-01T00:00:00+00:00")

    result = run_weekly_refresh(conn, config, provider=provider)

    assert result["count"] == 1
    assert result["message"] == "Industry insights generated successfully"
    assert get_insight(conn, "Logistics")["source"] == "llm"


def test_improve_section_returns_content(config):
    conn, generator = _setup(config, IndustryProvider(reply="Led a team of 5 engineers."))

    result = improve_section(generator, "managed 5 engineers", "experience", "Software")

    assert result == {"ok": True, "reason": None, "error": None, "content": "Led a team of 5 engineers."}


def test_improve_section_maps_exhausted_rate_limit_to_user_message(config):
    provider = IndustryProvider(fail_for={"Software"})
    conn, generator = _setup(config, provider)

    result = improve_section(generator, "managed 5 engineers", "experience", "Software")

    assert result["ok"] is False
    assert result["reason"] == "rate_limited"
    assert result["error"] == "API rate limit reached. Please wait a moment and try again."
    assert len(provider.seen) == 3


def test_improve_section_safety_block_is_not_retried(config):
    class BlockingProvider:
        name = "gemini"

        def __init__(self):
            self.calls = 0

        def generate(self, request):
            self.calls += 1
            assert request.meta["relaxed_safety"] is True
            return LLMResult(text="", provider=self.name, model=request.model, finish_reason="SAFETY")

    provider = BlockingProvider()
    conn, generator = _setup(config, provider)

    result = improve_section(generator, "some text", "summary", "Media")

    assert provider.calls == 1
    assert result["reason"] == "policy_blocked"
    assert result["error"] == "Content was flagged by safety filters. Please rephrase your description."


def test_improve_section_rejects_empty_input_without_calling_model(config):
    provider = IndustryProvider()
    conn, generator = _setup(config, provider)

    result = improve_section(generator, "   ", "experience", "Software")

    assert result["ok"] is False
    assert result["reason"] == "invalid_input"
    assert result["error"] == "Please provide content to improve"
    assert provider.seen == []


def test_improve_section_empty_reply_is_retried_as_malformed(config):
    conn, generator = _setup(config, IndustryProvider(reply="   "))

    result = improve_section(generator, "text", "experience", "Software")

    assert result["reason"] == "malformed_output"
    assert result["error"] == "Failed to improve content. Please try again."
