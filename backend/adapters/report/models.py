"""
Report data model.

Pure data containers plus strict dict parsing. The parsing functions raise
ValueError on malformed input; callers translate that into the error
taxonomy of their layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from constants import (
    QUESTIONNAIRE_ITEMS,
    QUESTIONNAIRE_SCORE_MAX,
    QUESTIONNAIRE_SCORE_MIN,
    REPORT_PRIORITIES,
    WELLNESS_SCORE_MAX,
    WELLNESS_SCORE_MIN,
)

# Report keys for the per-vital breakdown. GSR is presented as "stress".
REPORT_VITAL_KEYS: tuple[str, ...] = ("heartRate", "spo2", "ecg", "stress")


# =============================================================================
# Input context
# =============================================================================

@dataclass(frozen=True)
class ReportContext:
    """
    Optional context forwarded alongside the vitals.

    profile:
        Free-text description of the person being monitored.

    questionnaire:
        Ten screening scores (q1..q10), each 0 (not at all) to
        3 (nearly every day).
    """
    profile: str | None = None
    questionnaire: tuple[int, ...] | None = None

    def __post_init__(self) -> None:
        if self.questionnaire is None:
            return
        if len(self.questionnaire) != QUESTIONNAIRE_ITEMS:
            raise ValueError(
                f"questionnaire needs {QUESTIONNAIRE_ITEMS} scores, "
                f"got {len(self.questionnaire)}"
            )
        for i, score in enumerate(self.questionnaire, start=1):
            if isinstance(score, bool) or not isinstance(score, int):
                raise ValueError(f"q{i} must be an integer")
            if not QUESTIONNAIRE_SCORE_MIN <= score <= QUESTIONNAIRE_SCORE_MAX:
                raise ValueError(
                    f"q{i} must be between {QUESTIONNAIRE_SCORE_MIN} "
                    f"and {QUESTIONNAIRE_SCORE_MAX}"
                )

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> ReportContext:
        """
        Build from a client payload.

        Accepts {"profile": str, "questionnaire": [..10..]} or
        {"profile": str, "q1": .., ..., "q10": ..}.
        """
        profile = data.get("profile")
        if profile is not None and not isinstance(profile, str):
            raise ValueError("profile must be a string")

        raw = data.get("questionnaire")
        if raw is None and "q1" in data:
            raw = [data.get(f"q{i}") for i in range(1, QUESTIONNAIRE_ITEMS + 1)]

        if raw is None:
            return ReportContext(profile=profile)
        if not isinstance(raw, list):
            raise ValueError("questionnaire must be a list")
        return ReportContext(profile=profile, questionnaire=tuple(raw))

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile,
            "questionnaire": list(self.questionnaire) if self.questionnaire else None,
        }


# =============================================================================
# Report output
# =============================================================================

@dataclass(frozen=True)
class Recommendation:
    """One personalized recommendation."""
    title: str
    description: str
    priority: str


@dataclass(frozen=True)
class VitalAnalysis:
    """Interpretation of a single vital sign."""
    value: str
    status: str
    interpretation: str


@dataclass(frozen=True)
class HealthReport:
    """Structured report returned by the collaborator."""
    wellness_score: float
    summary: str
    recommendations: tuple[Recommendation, ...]
    vitals: dict[str, VitalAnalysis]

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> HealthReport:
        """
        Parse the collaborator's JSON.

        Raises:
            ValueError on any missing or ill-typed field.
        """
        score = data.get("wellnessScore")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise ValueError("wellnessScore must be a number")
        if not WELLNESS_SCORE_MIN <= score <= WELLNESS_SCORE_MAX:
            raise ValueError("wellnessScore out of range")

        summary = data.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            raise ValueError("summary must be a non-empty string")

        raw_recs = data.get("recommendations")
        if not isinstance(raw_recs, list):
            raise ValueError("recommendations must be a list")
        recommendations = tuple(_recommendation(r) for r in raw_recs)

        raw_vitals = data.get("vitals")
        if not isinstance(raw_vitals, dict):
            raise ValueError("vitals must be an object")
        vitals = {key: _vital_analysis(key, raw_vitals.get(key)) for key in REPORT_VITAL_KEYS}

        return HealthReport(
            wellness_score=float(score),
            summary=summary.strip(),
            recommendations=recommendations,
            vitals=vitals,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "wellnessScore": self.wellness_score,
            "summary": self.summary,
            "recommendations": [
                {"title": r.title, "description": r.description, "priority": r.priority}
                for r in self.recommendations
            ],
            "vitals": {
                key: {
                    "value": v.value,
                    "status": v.status,
                    "interpretation": v.interpretation,
                }
                for key, v in self.vitals.items()
            },
        }


def _string_field(data: Mapping[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"{where}.{key} must be a string")
    return value


def _recommendation(raw: Any) -> Recommendation:
    if not isinstance(raw, dict):
        raise ValueError("recommendation must be an object")
    priority = _string_field(raw, "priority", "recommendation").upper()
    if priority not in REPORT_PRIORITIES:
        raise ValueError(f"unknown priority {priority!r}")
    return Recommendation(
        title=_string_field(raw, "title", "recommendation"),
        description=_string_field(raw, "description", "recommendation"),
        priority=priority,
    )


def _vital_analysis(key: str, raw: Any) -> VitalAnalysis:
    if not isinstance(raw, dict):
        raise ValueError(f"vitals.{key} must be an object")
    where = f"vitals.{key}"
    return VitalAnalysis(
        value=_string_field(raw, "value", where),
        status=_string_field(raw, "status", where),
        interpretation=_string_field(raw, "interpretation", where),
    )
