"""
Completion reason enumeration.

Records why a session left MONITORING. Orthogonal to State:
- State answers: "What is the session doing?"
- CompletionReason answers: "Why did collection end?"
"""

from __future__ import annotations

from enum import Enum


class CompletionReason(str, Enum):
    """
    QUOTA_MET:
        The valid-reading quota was reached.

    STOPPED:
        Explicit external stop, regardless of quota.

    WATCHDOG:
        The max-duration watchdog expired before the quota was met.
    """

    QUOTA_MET = "QUOTA_MET"
    STOPPED = "STOPPED"
    WATCHDOG = "WATCHDOG"
