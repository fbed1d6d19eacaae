"""Data models for sweep pass tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from print_notifier.domain.models import ReconciliationOutcome


def utc_now() -> datetime:
    """Current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass
class SweepResult:
    """
    Aggregate results of one reconciliation pass.

    Attributes:
        pass_id: Unique identifier of the pass, also bound to its log lines
        started_at: UTC timestamp when the pass began
        finished_at: UTC timestamp when the pass completed
        duration_seconds: Total time for the pass
        outcomes: One outcome per candidate job
        skipped: Whether the pass was skipped before querying
        skip_reason: Why it was skipped (e.g. "store_unhealthy")
        had_errors: Whether the candidate query or any reconciliation failed
    """

    pass_id: str
    started_at: datetime
    finished_at: datetime
    duration_seconds: float = 0.0
    outcomes: List[ReconciliationOutcome] = field(default_factory=list)
    skipped: bool = False
    skip_reason: Optional[str] = None
    had_errors: bool = False

    def __post_init__(self):
        if self.duration_seconds == 0.0:
            self.duration_seconds = (self.finished_at - self.started_at).total_seconds()
        if any(not outcome.success for outcome in self.outcomes):
            self.had_errors = True

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def already_notified(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.skipped)
