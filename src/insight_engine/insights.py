"""Industry insight record: shape, loose validation, and the static fallback."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from .llm.types import MalformedOutputError

logger = logging.getLogger(__name__)

MIN_SALARY_RANGES = 5
MIN_TOP_SKILLS = 5
MIN_KEY_TRENDS = 5


class DemandLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class MarketOutlook(str, Enum):
    POSITIVE = "POSITIVE"
    NEUTRAL = "NEUTRAL"
    NEGATIVE = "NEGATIVE"


@dataclass(frozen=True)
class GenerationRequest:
    subject: str
    prompt: str


@dataclass
class SalaryRange:
    role: str
    min: float
    max: float
    median: float
    location: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "min": self.min,
            "max": self.max,
            "median": self.median,
            "location": self.location,
        }


@dataclass
class GenerationResult:
    salary_ranges: List[SalaryRange]
    growth_rate: float
    demand_level: DemandLevel
    top_skills: List[str]
    market_outlook: MarketOutlook
    key_trends: List[str]
    recommended_skills: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "salaryRanges": [item.to_dict() for item in self.salary_ranges],
            "growthRate": self.growth_rate,
            "demandLevel": self.demand_level.value,
            "topSkills": list(self.top_skills),
            "marketOutlook": self.market_outlook.value,
            "keyTrends": list(self.key_trends),
            "recommendedSkills": list(self.recommended_skills),
        }

    def shortfalls(self) -> List[str]:
        issues = []
        if len(self.salary_ranges) < MIN_SALARY_RANGES:
            issues.append(f"salaryRanges has {len(self.salary_ranges)} < {MIN_SALARY_RANGES}")
        if len(self.top_skills) < MIN_TOP_SKILLS:
            issues.append(f"topSkills has {len(self.top_skills)} < {MIN_TOP_SKILLS}")
        if len(self.key_trends) < MIN_KEY_TRENDS:
            issues.append(f"keyTrends has {len(self.key_trends)} < {MIN_KEY_TRENDS}")
        return issues


def _number(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise MalformedOutputError(f"{field_name} must be a number, got bool")
    number = None
    if isinstance(value, str):
        value = value.strip().rstrip("%").replace(",", "").strip()
    if isinstance(value, (int, float, str)):
        try:
            number = float(value)
        except (ValueError, OverflowError):
            pass
    if number is not None and math.isfinite(number):
        return number
    raise MalformedOutputError(f"{field_name} must be a number, got {value!r}")


def _enum(enum_cls, value: Any, field_name: str):
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise MalformedOutputError(f"{field_name} must be one of {allowed}, got {value!r}") from exc


def _string_list(value: Any, field_name: str) -> List[str]:
    if not isinstance(value, list):
        raise MalformedOutputError(f"{field_name} must be a list")
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _salary_ranges(value: Any) -> List[SalaryRange]:
    if not isinstance(value, list):
        raise MalformedOutputError("salaryRanges must be a list")
    ranges = []
    for idx, item in enumerate(value):
        if not isinstance(item, dict):
            raise MalformedOutputError(f"salaryRanges[{idx}] must be an object")
        role = item.get("role")
        if not isinstance(role, str) or not role.strip():
            raise MalformedOutputError(f"salaryRanges[{idx}].role must be a non-empty string")
        ranges.append(
            SalaryRange(
                role=role.strip(),
                min=_number(item.get("min"), f"salaryRanges[{idx}].min"),
                max=_number(item.get("max"), f"salaryRanges[{idx}].max"),
                median=_number(item.get("median"), f"salaryRanges[{idx}].median"),
                location=str(item.get("location") or "").strip(),
            )
        )
    return ranges


def result_from_payload(payload: Any) -> GenerationResult:
    """Validates a decoded JSON payload; raises MalformedOutputError on bad shape."""
    if not isinstance(payload, dict):
        raise MalformedOutputError(f"Expected a JSON object, got {type(payload).__name__}")

    missing = [
        key
        for key in ("salaryRanges", "growthRate", "demandLevel", "topSkills", "marketOutlook", "keyTrends")
        if key not in payload
    ]
    if missing:
        raise MalformedOutputError(f"Missing fields: {', '.join(missing)}")

    result = GenerationResult(
        salary_ranges=_salary_ranges(payload["salaryRanges"]),
        growth_rate=_number(payload["growthRate"], "growthRate"),
        demand_level=_enum(DemandLevel, payload["demandLevel"], "demandLevel"),
        top_skills=_string_list(payload["topSkills"], "topSkills"),
        market_outlook=_enum(MarketOutlook, payload["marketOutlook"], "marketOutlook"),
        key_trends=_string_list(payload["keyTrends"], "keyTrends"),
        recommended_skills=_string_list(payload.get("recommendedSkills") or [], "recommendedSkills"),
    )
    for issue in result.shortfalls():
        logger.warning("Insight payload below requested size: %s", issue)
    return result


def fallback_insights() -> GenerationResult:
    """Static record written when the generator cannot produce one."""
    return GenerationResult(
        salary_ranges=[
            SalaryRange("Entry Level", 40000, 60000, 50000, "Global"),
            SalaryRange("Mid Level", 60000, 90000, 75000, "Global"),
            SalaryRange("Senior Level", 90000, 130000, 110000, "Global"),
            SalaryRange("Lead/Manager", 110000, 160000, 135000, "Global"),
            SalaryRange("Director/VP", 140000, 200000, 170000, "Global"),
        ],
        growth_rate=5.0,
        demand_level=DemandLevel.MEDIUM,
        top_skills=["Communication", "Problem Solving", "Technical Skills", "Teamwork", "Adaptability"],
        market_outlook=MarketOutlook.POSITIVE,
        key_trends=[
            "Digital Transformation",
            "Remote Work",
            "AI Integration",
            "Sustainability",
            "Data-Driven Decision Making",
        ],
        recommended_skills=[
            "Leadership",
            "Project Management",
            "Data Analysis",
            "Cloud Computing",
            "Agile Methodologies",
        ],
    )
