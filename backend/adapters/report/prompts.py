"""
Report prompt text and message construction.

Prompt versioning lives in constants.REPORT_PROMPT_VERSION; bump it whenever
the text below changes meaning.
"""

from __future__ import annotations

import hashlib
from typing import Any

from adapters.report.models import ReportContext
from constants import PROMPT_HASH_HEX_LEN
from handoff.aggregate import VitalsAggregate


REPORT_SYSTEM_PROMPT_V1: str = """
You are a mental health and wellness expert. Analyze biometric sensor data,
and screening questionnaire answers when provided, to generate a wellness report.

Sensor Data Interpretation

- Heart Rate (BPM): normal resting 60-100. Consistently elevated heart rate can
  indicate stress or anxiety. Low heart rate with low variability may suggest
  fatigue or depression.
- SpO2 (%): normal above 95. Significant drops combined with high heart rate can
  relate to panic or respiratory distress.
- GSR (galvanic skin response, uS): normal resting below 10. Measures emotional
  arousal; spikes indicate stress or anxiety triggers.
- ECG (mV): normal around 1.0-1.5. Context on cardiac electrical activity.

Psychological States

- Calm: normal heart rate, stable GSR, good SpO2, low questionnaire scores.
- Stressed/Anxious: elevated heart rate, high GSR, high scores on nervousness,
  trouble relaxing, panic and irritability (q1, q2, q6, q9).
- Depressed/Fatigued: low or normal heart rate, low energy, high scores on
  sadness, loss of interest, concentration, worthlessness and sleep
  (q3, q4, q5, q7, q8, q10).

Output Rules

Respond with a single JSON object and nothing else:

{
  "wellnessScore": number 0-100, weighing sensor data against questionnaire answers,
  "summary": "2-3 sentences naming the most likely mental state",
  "recommendations": [
    {"title": "...", "description": "...", "priority": "HIGH" | "MEDIUM" | "LOW"}
  ],
  "vitals": {
    "heartRate": {"value": "80 BPM", "status": "Normal", "interpretation": "..."},
    "spo2": {"value": "...", "status": "...", "interpretation": "..."},
    "ecg": {"value": "...", "status": "...", "interpretation": "..."},
    "stress": {"value": "...", "status": "...", "interpretation": "..."}
  }
}

- Provide four distinct recommendations.
- Each interpretation is one sentence.
- When questionnaire answers are present, interpretations and the summary must
  connect the sensor readings to the self-reported feelings.
"""

QUESTIONNAIRE_LABELS: tuple[str, ...] = (
    "Nervous/Anxious",
    "Trouble Relaxing",
    "Sad/Hopeless",
    "Lost Interest",
    "Trouble Concentrating",
    "Panic/Dread",
    "Tired/No Energy",
    "Feeling Worthless",
    "Irritable",
    "Trouble Sleeping",
)


def prompt_hash(text: str = REPORT_SYSTEM_PROMPT_V1) -> str:
    """Short content hash logged next to the prompt version."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:PROMPT_HASH_HEX_LEN]


def render_user_message(aggregate: VitalsAggregate, context: ReportContext | None) -> str:
    """Render the per-session data block. Raises ValueError on an empty aggregate."""
    means = aggregate.means()
    lines = [
        "Sensor Readings "
        f"({aggregate.reading_count} readings, {aggregate.source}):",
        f"- Average Heart Rate: {means['heartRate']:.1f} BPM",
        f"- Average SpO2: {means['spo2']:.1f}%",
        f"- Average ECG Signal: {means['ecg']:.2f} mV",
        f"- Average Stress Level (GSR): {means['gsr']:.2f} uS",
    ]

    if context is not None and context.profile:
        lines += ["", f"Profile: {context.profile}"]

    if context is not None and context.questionnaire is not None:
        lines += ["", "Questionnaire Scores (0=Not at all, 3=Nearly every day):"]
        lines += [
            f"- q{i} {label}: {score}"
            for i, (label, score) in enumerate(
                zip(QUESTIONNAIRE_LABELS, context.questionnaire), start=1
            )
        ]

    return "\n".join(lines)


def build_report_messages(
    aggregate: VitalsAggregate,
    context: ReportContext | None,
) -> list[dict[str, Any]]:
    """Chat messages for one report request."""
    return [
        {"role": "system", "content": REPORT_SYSTEM_PROMPT_V1.strip()},
        {"role": "user", "content": render_user_message(aggregate, context)},
    ]
