"""Test doubles and builders for print notifier tests."""

from .doubles import InMemoryJobStore, RecordingGateway
from .factories import insert_malformed_job, make_job, make_user

__all__ = [
    "InMemoryJobStore",
    "RecordingGateway",
    "insert_malformed_job",
    "make_job",
    "make_user",
]
