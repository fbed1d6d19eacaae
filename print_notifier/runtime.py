"""Service wiring.

Builds every collaborator from configuration and hands them to each other
explicitly. Tests pass their own store and gateway instead.
"""

import asyncio
from typing import List, Optional

from print_notifier.config.environment import EnvironmentConfig
from print_notifier.config.models import AppConfig
from print_notifier.domain.models import ReconciliationOutcome
from print_notifier.listener.service import ChangeFeedListener
from print_notifier.logging import get_logger
from print_notifier.notifications.formatter import NotificationFormatter
from print_notifier.notifications.gateway import DeliveryGateway, SMTPDeliveryGateway
from print_notifier.notifications.smtp_client import build_sender_address
from print_notifier.reconciler.service import CompletionReconciler
from print_notifier.scheduler.models import SweepResult
from print_notifier.scheduler.service import SweepScheduler
from print_notifier.store.database import Database
from print_notifier.store.repositories import JobStore

logger = get_logger(__name__, component="runtime")


class NotifierRuntime:
    """Owns the database, reconciler, sweep scheduler and change-feed listener."""

    def __init__(
        self,
        app_config: AppConfig,
        env_config: EnvironmentConfig,
        store: Optional[JobStore] = None,
        gateway: Optional[DeliveryGateway] = None,
        database: Optional[Database] = None,
    ):
        self.app_config = app_config
        self.env_config = env_config

        if store is None:
            database = database or Database(env_config.database_url)
            store = JobStore(database)
        self.database = database
        self.store = store

        self.gateway = gateway or SMTPDeliveryGateway(env_config, use_tls=app_config.email.use_tls)
        self.formatter = NotificationFormatter(
            sender=build_sender_address(env_config),
            email_config=app_config.email,
            formatting_config=app_config.formatting,
        )
        self.reconciler = CompletionReconciler(self.store, self.formatter, self.gateway)
        self.scheduler = SweepScheduler(
            self.store,
            self.reconciler,
            interval_seconds=app_config.sweep_interval_seconds,
            completion_status=app_config.completion_status,
        )
        self.listener = ChangeFeedListener(
            self.store,
            self.reconciler,
            completion_status=app_config.completion_status,
            poll_interval=app_config.listener.poll_interval_seconds,
        )

    async def connect(self) -> None:
        if self.database is not None:
            await self.database.connect()

    async def start(self) -> None:
        """Connect the store, start the sweep schedule and, if enabled, the listener."""
        await self.connect()
        self.scheduler.start()
        if self.app_config.listener.enabled:
            self.listener.start()
        else:
            logger.info("Change-feed listener disabled", extra={"event": "listener.disabled"})

    async def stop(self) -> None:
        await self.listener.stop()
        self.scheduler.shutdown(wait=False)
        # AsyncIOScheduler applies the shutdown on the next loop iteration
        await asyncio.sleep(0)
        if self.database is not None:
            await self.database.close()

    async def run_single_pass(self) -> SweepResult:
        """Connect and execute one sweep pass without starting the schedule."""
        await self.connect()
        return await self.scheduler.trigger_now()

    async def check_completed_jobs(self) -> List[ReconciliationOutcome]:
        """On-demand pass: every completed job, already-notified ones filtered out.

        The store health is not checked first.

        Raises:
            PersistenceError: If the candidate query fails
        """
        jobs = await self.store.find_jobs(status=self.app_config.completion_status)
        pending = [job for job in jobs if not job.notified]

        logger.info(
            f"On-demand check: {len(pending)} of {len(jobs)} completed jobs pending",
            extra={
                "event": "on_demand.started",
                "completed_count": len(jobs),
                "pending_count": len(pending),
            },
        )
        return await self.reconciler.reconcile_all(pending)
