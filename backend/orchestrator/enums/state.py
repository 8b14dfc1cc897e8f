"""
Authoritative monitoring-session state enumeration.

Rules:
- This enum defines ONLY the control-plane states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class State(str, Enum):
    """
    Control states for one monitoring session.

    IDLE -> STARTING -> MONITORING -> COMPLETING -> IDLE

    These states represent orchestration intent, NOT connection status
    and NOT transport lifecycle.
    """

    IDLE = "IDLE"
    STARTING = "STARTING"
    MONITORING = "MONITORING"
    COMPLETING = "COMPLETING"
