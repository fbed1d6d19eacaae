"""Domain models shared across the notifier."""

from .models import (
    ChangeKind,
    JobChange,
    JobStatus,
    OutcomeStage,
    PaymentSummary,
    PrintFile,
    PrintJob,
    PrintSettings,
    ReconciliationOutcome,
    User,
)

__all__ = [
    "JobStatus",
    "PrintFile",
    "PrintSettings",
    "PaymentSummary",
    "PrintJob",
    "User",
    "ChangeKind",
    "JobChange",
    "OutcomeStage",
    "ReconciliationOutcome",
]
