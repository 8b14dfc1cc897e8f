"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for all behavioral invariants of the monitor.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific overrides live in config.py, defaults live here.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Wire Protocol (device -> host)
# =============================================================================

FRAME_OPEN: Final[str] = "{"
FRAME_CLOSE: Final[str] = "}"

# Text encoding of the device stream; undecodable bytes are replaced,
# never raised, so noise cannot abort the read loop.
WIRE_ENCODING: Final[str] = "utf-8"
WIRE_DECODE_ERRORS: Final[str] = "replace"

VITAL_FIELDS: Final[Tuple[str, ...]] = ("heartRate", "spo2", "ecg", "gsr")

# Bounded preview of a rejected frame in decode-failure logs
FRAME_PREVIEW_CHARS: Final[int] = 120

# =============================================================================
# Control Protocol (host -> device)
# =============================================================================

# "collect and send one reading (or one batch)"
START_COMMAND: Final[bytes] = b"M"

# =============================================================================
# Serial Link
# =============================================================================

SERIAL_BAUD_RATE_DEFAULT: Final[int] = 9600

# Blocking read timeout; bounds how long a cancelled read lingers in its
# worker thread after close().
SERIAL_READ_TIMEOUT_S: Final[float] = 0.25
SERIAL_WRITE_TIMEOUT_S: Final[float] = 1.0
SERIAL_READ_MAX_BYTES: Final[int] = 4096

# =============================================================================
# Session Control
# =============================================================================

SESSION_QUOTA_DEFAULT: Final[int] = 5

# Display window of most-recent samples kept on the session state
SAMPLE_WINDOW_MAX: Final[int] = 100

POLL_INTERVAL_MS_DEFAULT: Final[int] = 1_000

# 0 disables the max-duration watchdog: a session then runs until stopped
SESSION_MAX_DURATION_S_DEFAULT: Final[float] = 0.0

# Decoded samples buffered between the read loop and the session runtime
SAMPLE_QUEUE_MAX: Final[int] = 256

# =============================================================================
# Report Hand-off
# =============================================================================

QUESTIONNAIRE_ITEMS: Final[int] = 10
QUESTIONNAIRE_SCORE_MIN: Final[int] = 0
QUESTIONNAIRE_SCORE_MAX: Final[int] = 3

WELLNESS_SCORE_MIN: Final[int] = 0
WELLNESS_SCORE_MAX: Final[int] = 100

REPORT_PRIORITIES: Final[Tuple[str, ...]] = ("HIGH", "MEDIUM", "LOW")

# HTTP statuses the report collaborator uses to signal overload
REPORT_OVERLOADED_STATUS_CODES: Final[Tuple[int, ...]] = (429, 503, 529)

REPORT_PROMPT_VERSION: Final[str] = "v1"
PROMPT_HASH_HEX_LEN: Final[int] = 8
