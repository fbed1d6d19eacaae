"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List

from print_notifier.domain.models import JobStatus

from .duration import DurationParseError, parse_duration


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """Check raw configuration for legal but suspicious values.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    sweep_interval = config_dict.get("sweep_interval")
    if isinstance(sweep_interval, str):
        try:
            if parse_duration(sweep_interval) < 120:
                warning_messages.append(
                    f"Short sweep_interval ({sweep_interval}) re-queries the whole backlog very often"
                )
        except DurationParseError:
            # Reported by model validation
            pass

    completion_status = config_dict.get("completion_status")
    known_statuses = {status.value for status in JobStatus}
    if isinstance(completion_status, str) and completion_status.strip() not in known_statuses:
        warning_messages.append(
            f"completion_status '{completion_status}' is not a known job status "
            f"({', '.join(sorted(known_statuses))}); no job may ever match it"
        )

    listener = config_dict.get("listener", {})
    if isinstance(listener, dict):
        if listener.get("enabled") is False:
            warning_messages.append(
                "Change-feed listener is disabled; completions are only picked up by the sweep"
            )
        poll_interval = listener.get("poll_interval")
        if isinstance(poll_interval, str):
            try:
                if parse_duration(poll_interval) < 2:
                    warning_messages.append(
                        f"Very fast listener poll_interval ({poll_interval}) may load the store"
                    )
            except DurationParseError:
                pass

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit warning messages using Python's warnings module."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
