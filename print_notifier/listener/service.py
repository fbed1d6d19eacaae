"""Change-feed listener.

Subscribes to jobs carrying the completion status and forwards every added or
modified document to the reconciler, so pushes and sweeps share one dedup
guard. Removed documents are ignored.
"""

import asyncio
import contextlib
from typing import List, Optional

from print_notifier.domain.models import ChangeKind, JobChange, ReconciliationOutcome
from print_notifier.logging import get_logger
from print_notifier.logging.context import log_context
from print_notifier.reconciler.service import CompletionReconciler
from print_notifier.store.repositories import JobStore

logger = get_logger(__name__, component="listener")

ACTIONABLE_KINDS = frozenset({ChangeKind.ADDED, ChangeKind.MODIFIED})


class ChangeFeedListener:
    """Background task consuming the store's change feed."""

    def __init__(
        self,
        store: JobStore,
        reconciler: CompletionReconciler,
        completion_status: str = "completed",
        poll_interval: float = 10.0,
    ):
        self.store = store
        self.reconciler = reconciler
        self.completion_status = completion_status
        self.poll_interval = poll_interval
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Spawn the listener task on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self.run(), name="change-feed-listener")
        logger.info(
            f"Listener started for status '{self.completion_status}'",
            extra={
                "event": "listener.started",
                "completion_status": self.completion_status,
                "poll_interval": self.poll_interval,
            },
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Listener stopped", extra={"event": "listener.stopped"})

    async def run(self) -> None:
        """Consume the change feed until cancelled.

        Any other error ends the current subscription; a fresh one is opened
        after ``poll_interval`` seconds.
        """
        while True:
            feed = self.store.subscribe_jobs(self.poll_interval, status=self.completion_status)
            try:
                async for changes in feed:
                    await self.handle_batch(changes)
            except Exception as e:
                logger.error(
                    f"Change feed subscription failed, resubscribing in {self.poll_interval}s: {e}",
                    extra={"event": "listener.feed.failed", "error_type": type(e).__name__},
                    exc_info=True,
                )
            finally:
                await feed.aclose()
            await asyncio.sleep(self.poll_interval)

    async def handle_batch(self, changes: List[JobChange]) -> List[ReconciliationOutcome]:
        """Reconcile the actionable changes of one batch concurrently.

        Only added or modified jobs that carry the completion status are
        actionable. A failure on one change is logged and never prevents the
        others from being handled.
        """
        actionable = [
            change
            for change in changes
            if change.kind in ACTIONABLE_KINDS and change.job.is_completed(self.completion_status)
        ]

        with log_context(trigger="listener"):
            logger.info(
                f"Change batch received: {len(changes)} changes, {len(actionable)} actionable",
                extra={
                    "event": "listener.batch.received",
                    "change_count": len(changes),
                    "actionable_count": len(actionable),
                },
            )

            results = await asyncio.gather(
                *(self.reconciler.reconcile(change.job) for change in actionable),
                return_exceptions=True,
            )

            outcomes = []
            for change, result in zip(actionable, results):
                if isinstance(result, BaseException):
                    if isinstance(result, asyncio.CancelledError):
                        raise result
                    logger.error(
                        f"Failed to handle {change.kind.value} change for job {change.job.job_id}: {result}",
                        extra={"event": "listener.change.failed", "job_id": change.job.job_id},
                    )
                    continue
                outcomes.append(result)
            return outcomes
