"""
Turns Claude's raw text into audit JSON.

The model is told to answer with bare JSON but sometimes wraps it in fences,
adds a sentence around it, or leaves trailing commas. Pure functions, no I/O.
"""

import json
import re

from app.errors import ParseError

REQUIRED_FIELDS = ("overallScore", "performanceLevel")

SECTION_WEIGHTS = {
    "headline": 0.20,
    "aboutMe": 0.30,
    "specialties": 0.15,
    "clientFocus": 0.10,
    "treatmentApproach": 0.10,
    "credentials": 0.05,
    "photo": 0.10,
}

PERFORMANCE_LEVELS = (
    (90, "Excellent"),
    (75, "Above Average"),
    (60, "Average"),
    (45, "Below Average"),
    (0, "Poor"),
)

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def _object_span(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None
    return text[start:end + 1]


def extract_json_text(text: str) -> str:
    """
    Slice from the first { to the last }. Fences and trailing commas are only
    stripped when that slice is not already valid JSON, so string values that
    happen to contain ``` or ",]" come through untouched.
    """
    text = text or ""
    candidate = _object_span(text)
    if candidate is not None:
        try:
            json.loads(candidate)
            return candidate
        except json.JSONDecodeError:
            pass

    cleaned = _object_span(_FENCE_RE.sub("", text).strip())
    if cleaned is None:
        raise ParseError("No JSON object found in model response")
    return _TRAILING_COMMA_RE.sub(r"\1", cleaned)


def parse_audit_response(text: str) -> dict:
    try:
        data = json.loads(extract_json_text(text))
    except json.JSONDecodeError as e:
        raise ParseError(f"Model response is not valid JSON: {e.msg} at position {e.pos}") from e

    if not isinstance(data, dict):
        raise ParseError("Model response is not a JSON object")
    missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, "")]
    if missing:
        raise ParseError(f"Audit is missing required fields: {', '.join(missing)}")
    score = data["overallScore"]
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ParseError("overallScore must be a number")
    return data


def performance_level(score: float) -> str:
    for floor, label in PERFORMANCE_LEVELS:
        if score >= floor:
            return label
    return "Poor"


def computed_score(audit: dict) -> int | None:
    """Weighted overall score from sectionScores, or None if any section is missing."""
    sections = audit.get("sectionScores")
    if not isinstance(sections, dict):
        return None
    total = 0.0
    for name, weight in SECTION_WEIGHTS.items():
        section = sections.get(name)
        score = section.get("score") if isinstance(section, dict) else None
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            return None
        total += score * weight
    return round(total)
