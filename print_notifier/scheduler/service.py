"""Sweep scheduler: periodic reconciliation of completed, unnotified jobs."""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from print_notifier.logging import get_logger
from print_notifier.logging.context import log_context
from print_notifier.reconciler.service import CompletionReconciler
from print_notifier.store.repositories import JobStore

from .models import SweepResult, utc_now

logger = get_logger(__name__, component="scheduler")

SWEEP_JOB_ID = "completion-sweep"


class SweepScheduler:
    """
    Wraps APScheduler to run a reconciliation pass at a fixed interval.

    Uses AsyncIOScheduler so passes run as coroutines on the service's event
    loop, next to the HTTP server and the change-feed listener. The first pass
    runs immediately after start().
    """

    def __init__(
        self,
        store: JobStore,
        reconciler: CompletionReconciler,
        interval_seconds: int,
        completion_status: str = "completed",
    ):
        """
        Initialize the sweep scheduler.

        Args:
            store: Job store to ping and query
            reconciler: Reconciler invoked for every candidate job
            interval_seconds: Interval between passes in seconds
            completion_status: Status literal that marks a job as completed
        """
        self.store = store
        self.reconciler = reconciler
        self.interval_seconds = interval_seconds
        self.completion_status = completion_status

        self.scheduler = AsyncIOScheduler(
            job_defaults={
                "max_instances": 1,  # Prevent overlapping passes
                "coalesce": True,  # If a pass is delayed, only execute once
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    async def run_pass(self, trigger: str = "scheduled") -> SweepResult:
        """
        Execute one reconciliation pass.

        This method:
        1. Pings the store; an unhealthy store skips the whole pass
        2. Queries jobs with the completion status that are not yet notified
        3. Reconciles them concurrently and waits for every outcome

        Returns:
            SweepResult with one outcome per candidate job

        Raises:
            Nothing; failures are logged and reflected in the result.
        """
        pass_id = uuid4().hex
        started_at = utc_now()

        with log_context(pass_id=pass_id, trigger=trigger):
            if not await self.store.ping():
                logger.warning(
                    "Sweep pass skipped: store health check failed",
                    extra={"event": "sweep.pass.skipped", "reason": "store_unhealthy"},
                )
                return SweepResult(
                    pass_id=pass_id,
                    started_at=started_at,
                    finished_at=utc_now(),
                    skipped=True,
                    skip_reason="store_unhealthy",
                )

            try:
                jobs = await self.store.find_jobs(status=self.completion_status, notified=False)
            except Exception as e:
                logger.error(
                    f"Sweep pass aborted: candidate query failed: {e}",
                    extra={"event": "sweep.query.failed", "error_type": type(e).__name__},
                )
                return SweepResult(
                    pass_id=pass_id,
                    started_at=started_at,
                    finished_at=utc_now(),
                    had_errors=True,
                )

            logger.info(
                f"Sweep pass started with {len(jobs)} candidate jobs",
                extra={"event": "sweep.pass.started", "candidate_count": len(jobs)},
            )

            outcomes = await self.reconciler.reconcile_all(jobs)
            result = SweepResult(
                pass_id=pass_id,
                started_at=started_at,
                finished_at=utc_now(),
                outcomes=outcomes,
            )

            logger.info(
                "Sweep pass completed",
                extra={
                    "event": "sweep.pass.completed",
                    "duration_ms": int(result.duration_seconds * 1000),
                    "total": result.total,
                    "succeeded": result.succeeded,
                    "failed": result.failed,
                    "already_notified": result.already_notified,
                    "had_errors": result.had_errors,
                },
            )
            return result

    def start(self) -> None:
        """
        Start the scheduler and register the sweep job.

        Must be called with a running event loop. The first pass executes
        immediately; subsequent passes follow the configured interval.
        """
        trigger = IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc)

        next_run = utc_now()
        self.scheduler.add_job(
            func=self.run_pass,
            trigger=trigger,
            id=SWEEP_JOB_ID,
            name="Completion notification sweep",
            replace_existing=True,
            next_run_time=next_run,
        )
        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": next_run.isoformat(),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: If True, wait for a running pass to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    async def trigger_now(self) -> SweepResult:
        """Run a pass immediately in the current task, outside the schedule."""
        logger.info("Triggering immediate sweep pass", extra={"event": "scheduler.trigger_now"})
        return await self.run_pass(trigger="manual")

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        """
        Get the next scheduled pass time.

        Returns:
            Next run time as a datetime, or None if not scheduled
        """
        job = self.scheduler.get_job(SWEEP_JOB_ID)
        return job.next_run_time if job else None
