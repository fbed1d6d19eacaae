"""Scheduling module for periodic reconciliation sweeps."""

from .models import SweepResult
from .service import SweepScheduler

__all__ = [
    "SweepResult",
    "SweepScheduler",
]
