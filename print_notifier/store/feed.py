"""Change feed built on snapshot polling.

The store has no native push notifications, so a subscription re-runs its
query every ``poll_interval`` seconds and diffs the result against the
previous snapshot:

- first snapshot: every match is reported as ``added``
- new match: ``added``
- match whose document changed: ``modified``
- previous match that no longer matches (or was deleted): ``removed``

Polls without changes yield nothing. A failed poll (any error raised by the
query) is logged and retried on the next tick, keeping the last good snapshot.
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional

from print_notifier.domain.models import ChangeKind, JobChange, PrintJob
from print_notifier.logging import get_logger

logger = get_logger(__name__, component="change_feed")


def diff_snapshots(
    previous: Optional[Dict[str, PrintJob]], current: Dict[str, PrintJob]
) -> List[JobChange]:
    """Compute the changes between two snapshots keyed by job id.

    ``previous=None`` marks the initial snapshot.
    """
    if previous is None:
        return [JobChange(ChangeKind.ADDED, job) for job in current.values()]

    changes = []
    for job_id, job in current.items():
        before = previous.get(job_id)
        if before is None:
            changes.append(JobChange(ChangeKind.ADDED, job))
        elif before != job:
            changes.append(JobChange(ChangeKind.MODIFIED, job))

    for job_id, job in previous.items():
        if job_id not in current:
            changes.append(JobChange(ChangeKind.REMOVED, job))

    return changes


async def poll_job_changes(
    query: Callable[[], Awaitable[List[PrintJob]]],
    poll_interval: float,
    description: str = "",
) -> AsyncIterator[List[JobChange]]:
    """Yield change batches for the jobs returned by ``query``.

    Runs until the consuming task is cancelled or the generator is closed.
    """
    snapshot: Optional[Dict[str, PrintJob]] = None

    logger.info(
        f"Change feed subscribed ({description})",
        extra={"event": "feed.subscribed", "poll_interval": poll_interval},
    )

    while True:
        try:
            jobs = await query()
        except Exception as e:
            logger.warning(
                f"Change feed poll failed, retrying in {poll_interval}s: {e}",
                extra={"event": "feed.poll.failed", "error_type": type(e).__name__},
            )
        else:
            current = {job.job_id: job for job in jobs}
            changes = diff_snapshots(snapshot, current)
            snapshot = current
            if changes:
                yield changes

        await asyncio.sleep(poll_interval)
