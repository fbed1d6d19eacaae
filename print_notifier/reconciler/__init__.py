"""Completion reconciliation: the one place that decides and records notifications."""

from .locks import JobLockMap
from .service import CompletionReconciler

__all__ = [
    "CompletionReconciler",
    "JobLockMap",
]
