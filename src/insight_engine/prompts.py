"""Prompt builders."""

from __future__ import annotations

INSIGHTS_TEMPLATE = """Analyze the current state of the {industry} industry and provide insights in ONLY the following JSON format without any additional notes or explanations:
{{
  "salaryRanges": [
    {{ "role": "string", "min": number, "max": number, "median": number, "location": "string" }}
  ],
  "growthRate": number,
  "demandLevel": "HIGH" | "MEDIUM" | "LOW",
  "topSkills": ["skill1", "skill2"],
  "marketOutlook": "POSITIVE" | "NEUTRAL" | "NEGATIVE",
  "keyTrends": ["trend1", "trend2"],
  "recommendedSkills": ["skill1", "skill2"]
}}

IMPORTANT: Return ONLY the JSON. No additional text, notes, or markdown formatting.
Include at least {min_roles} common roles for salary ranges.
Growth rate should be a percentage.
Include at least {min_skills} skills and {min_trends} trends."""


def build_insights_prompt(industry: str, min_roles: int = 5, min_skills: int = 5, min_trends: int = 5) -> str:
    return INSIGHTS_TEMPLATE.format(
        industry=industry,
        min_roles=min_roles,
        min_skills=min_skills,
        min_trends=min_trends,
    )


def build_improve_prompt(current: str, section_type: str, industry: str) -> str:
    return (
        f"As an expert resume writer, improve the writing quality of the following {section_type} "
        f"description for a {industry} professional.\n\n"
        "IMPORTANT: Keep all the facts, experiences, and achievements from the original content. "
        "DO NOT add any information that wasn't present in the original. "
        "Only enhance the writing style and presentation.\n\n"
        f'Current content: "{current}"\n\n'
        "Requirements:\n"
        "1. Preserve all factual information, dates, numbers, and specific details from the original\n"
        "2. Use strong action verbs to start sentences\n"
        "3. Rephrase for impact and clarity without changing the meaning\n"
        "4. Maintain the same experiences and accomplishments - only improve how they're expressed\n"
        "5. Make it more professional and concise\n"
        f"6. Use industry-specific terminology relevant to {industry}\n"
        "7. If metrics exist, keep them; if they don't exist, don't add fake ones\n\n"
        "Return ONLY the improved description without any additional text, explanations, or formatting markers."
    )
