"""Completion-notification service for print jobs."""

__version__ = "0.1.0"
