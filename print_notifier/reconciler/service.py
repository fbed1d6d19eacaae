"""Completion reconciler.

The single state-transition entry point shared by the sweep, the change-feed
listener and the on-demand endpoint. For one job it decides whether a
completion email is owed, sends it at most once and records the dedup marker:

1. skip if the job is already notified (re-checked against a fresh read)
2. look up the owning user and their email address
3. format the message
4. send it through the delivery gateway
5. mark the job notified with a conditional write

Each step is a fallible boundary; a failure ends the attempt with an outcome
attributed to that step and leaves ``notified`` false so a later pass retries.
"""

import asyncio
from typing import Iterable, List, Optional

from print_notifier.domain.models import OutcomeStage, PrintJob, ReconciliationOutcome
from print_notifier.logging import get_logger
from print_notifier.logging.context import log_context
from print_notifier.notifications.formatter import NotificationFormatter
from print_notifier.notifications.gateway import DeliveryGateway
from print_notifier.store.exceptions import PersistenceError
from print_notifier.store.repositories import JobStore

from .locks import JobLockMap

logger = get_logger(__name__, component="reconciler")


class CompletionReconciler:
    """Drives one job from "completed" to "notified".

    Collaborators are injected; nothing here reaches for module-level clients.
    """

    def __init__(
        self,
        store: JobStore,
        formatter: NotificationFormatter,
        gateway: DeliveryGateway,
        locks: Optional[JobLockMap] = None,
    ):
        self.store = store
        self.formatter = formatter
        self.gateway = gateway
        self.locks = locks or JobLockMap()

    async def reconcile(self, job: PrintJob) -> ReconciliationOutcome:
        """Reconcile a single completed job. Never raises.

        Callers pass jobs already filtered on the completion status.

        Returns:
            ReconciliationOutcome; already-notified jobs yield a no-op success
        """
        job_id = job.job_id

        with log_context(job_id=job_id):
            if job.notified:
                logger.debug(
                    "Job already notified, nothing to do",
                    extra={"event": "reconcile.skip", "reason": "already_notified"},
                )
                return ReconciliationOutcome.already_notified(job_id)

            try:
                async with self.locks.hold(job_id):
                    return await self._reconcile_locked(job_id)
            except Exception as e:
                logger.error(
                    f"Unexpected error reconciling job {job_id}: {e}",
                    exc_info=True,
                    extra={"event": "reconcile.unexpected_error", "error_type": type(e).__name__},
                )
                return ReconciliationOutcome.failed(job_id, None, "unexpected error", str(e))

    async def reconcile_all(self, jobs: Iterable[PrintJob]) -> List[ReconciliationOutcome]:
        """Reconcile jobs concurrently and wait for every one of them.

        One job's failure never affects the others; the result has exactly one
        outcome per input job, in input order.
        """
        jobs = list(jobs)
        results = await asyncio.gather(
            *(self.reconcile(job) for job in jobs), return_exceptions=True
        )

        outcomes = []
        for job, result in zip(jobs, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(
                    f"Reconciliation of job {job.job_id} raised: {result}",
                    extra={"event": "reconcile.unexpected_error", "job_id": job.job_id},
                )
                outcomes.append(
                    ReconciliationOutcome.failed(job.job_id, None, "unexpected error", str(result))
                )
            else:
                outcomes.append(result)
        return outcomes

    async def _reconcile_locked(self, job_id: str) -> ReconciliationOutcome:
        # Fresh read: the caller's copy may predate another trigger's write-back
        try:
            job = await self.store.get_job(job_id)
        except PersistenceError as e:
            logger.error(
                f"Job lookup failed for {job_id}: {e}",
                extra={"event": "reconcile.lookup.failed", "stage": OutcomeStage.LOOKUP.value},
            )
            return ReconciliationOutcome.failed(job_id, OutcomeStage.LOOKUP, "job lookup failed", str(e))

        if job is None:
            logger.warning(
                f"Job {job_id} no longer exists",
                extra={"event": "reconcile.lookup.failed", "stage": OutcomeStage.LOOKUP.value},
            )
            return ReconciliationOutcome.failed(job_id, OutcomeStage.LOOKUP, "job not found")

        if job.notified:
            logger.info(
                "Job was notified by a concurrent pass, skipping",
                extra={"event": "reconcile.skip", "reason": "already_notified"},
            )
            return ReconciliationOutcome.already_notified(job_id)

        # Step 1: owner lookup
        try:
            user = await self.store.get_user(job.user_id)
        except PersistenceError as e:
            logger.error(
                f"User lookup failed for job {job_id}: {e}",
                extra={"event": "reconcile.lookup.failed", "user_id": job.user_id},
            )
            return ReconciliationOutcome.failed(job_id, OutcomeStage.LOOKUP, "user lookup failed", str(e))

        if user is None:
            logger.error(
                f"User {job.user_id} not found for job {job_id}",
                extra={"event": "reconcile.lookup.failed", "user_id": job.user_id},
            )
            return ReconciliationOutcome.failed(job_id, OutcomeStage.LOOKUP, "user not found")

        if not user.email:
            logger.error(
                f"No email found for user {job.user_id}",
                extra={"event": "reconcile.lookup.failed", "user_id": job.user_id},
            )
            return ReconciliationOutcome.failed(job_id, OutcomeStage.LOOKUP, "no user email")

        # Step 2: format
        try:
            message = self.formatter.format(job, user)
        except Exception as e:
            logger.error(
                f"Formatting failed for job {job_id}: {e}",
                exc_info=True,
                extra={"event": "reconcile.format.failed"},
            )
            return ReconciliationOutcome.failed(job_id, OutcomeStage.FORMAT, "formatting failed", str(e))

        # Step 3: deliver
        try:
            delivery = await self.gateway.send(message)
        except Exception as e:
            logger.error(
                f"Gateway raised while sending for job {job_id}: {e}",
                exc_info=True,
                extra={"event": "reconcile.delivery.failed"},
            )
            return ReconciliationOutcome.failed(job_id, OutcomeStage.DELIVERY, "delivery failed", str(e))

        if not delivery.success:
            logger.warning(
                f"Delivery failed for job {job_id}: {delivery.reason}",
                extra={"event": "reconcile.delivery.failed", "reason": delivery.reason},
            )
            return ReconciliationOutcome.failed(
                job_id, OutcomeStage.DELIVERY, "delivery failed", delivery.reason
            )

        # Step 4: record the dedup marker
        try:
            transitioned = await self.store.mark_notified(job_id)
        except PersistenceError as e:
            logger.error(
                f"Email sent for job {job_id} but marking it notified failed; "
                f"the next pass will send it again: {e}",
                extra={"event": "reconcile.write_back.failed", "recipient": user.email},
            )
            return ReconciliationOutcome.failed(job_id, OutcomeStage.WRITE_BACK, "write-back failed", str(e))

        if not transitioned:
            logger.warning(
                f"Job {job_id} was marked notified by another writer while sending",
                extra={"event": "reconcile.write_back.lost", "recipient": user.email},
            )
        else:
            logger.info(
                f"Completion email sent for job {job_id} to {user.email}",
                extra={"event": "reconcile.sent", "recipient": user.email},
            )

        return ReconciliationOutcome.sent(job_id)
