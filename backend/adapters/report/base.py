"""
Report generator contract.

Purpose:
- Define the interface for the external report-generation collaborator.
- Keep hand-off policy (once per session, no-data guard, timing) OUT of
  the adapter.

Rules:
- This file contains NO logic.
- No retries.
- No knowledge of sessions, transport or UI.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from adapters.report.models import HealthReport, ReportContext
from handoff.aggregate import VitalsAggregate


class ReportGenerator(ABC):
    """
    Abstract base class for report generators.

    The adapter is a *dumb pipe*:
    aggregate -> vendor -> structured report.
    """

    @abstractmethod
    async def generate(
        self,
        aggregate: VitalsAggregate,
        context: ReportContext | None = None,
    ) -> HealthReport:
        """
        Produce a structured report for a non-empty aggregate.

        Contract:
        - Returns a fully parsed HealthReport, or
        - Raises ReportError with a classified kind
          (OVERLOADED must be distinguishable from other failures).
        - Must NOT retry internally.
        """
        raise NotImplementedError
