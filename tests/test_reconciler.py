"""Unit tests for the completion reconciler.

Covers:
- Happy path: one send, notified set, success outcome
- Idempotence: already-notified jobs are a no-op
- Failure attribution: lookup, format, delivery and write-back stages
- Concurrency: duplicate triggers for one job send a single email
- All-settle batches: one failure never hides the other outcomes
"""

import asyncio
from unittest.mock import Mock

import pytest

from print_notifier.domain.models import OutcomeStage, PrintJob
from print_notifier.notifications.models import NotificationTemplateError
from print_notifier.reconciler import CompletionReconciler, JobLockMap

from tests.helpers import (
    InMemoryJobStore,
    RecordingGateway,
    insert_malformed_job,
    make_job,
    make_user,
)


class TestReconcileHappyPath:
    """Scenario: job J1 owned by U1 with a working gateway."""

    @pytest.mark.asyncio
    async def test_sends_once_and_marks_notified(self, reconciler, store, gateway):
        """Test that a completed, unnotified job is emailed and marked notified."""
        outcome = await reconciler.reconcile(make_job())

        assert outcome.success is True
        assert outcome.job_id == "J1"
        assert outcome.to_payload() == {"success": True, "jobId": "J1"}
        assert gateway.recipients == ["a@x.com"]
        assert store.jobs["J1"].notified is True

    @pytest.mark.asyncio
    async def test_message_is_addressed_and_formatted(self, reconciler, gateway):
        """Test that the sent message carries sender, subject and job details."""
        await reconciler.reconcile(make_job())

        message = gateway.sent[0]
        assert message.from_address == "PrintSuit <notifier@test.com>"
        assert message.subject == "Your Print Job is Complete!"
        assert "order_123" in message.text
        assert "thesis.pdf" in message.html

    @pytest.mark.asyncio
    async def test_sparse_job_still_sends(self, formatter, gateway):
        """Test that a job without files, settings or payment formats with defaults."""
        sparse = PrintJob(job_id="J9", user_id="U1", status="completed")
        store = InMemoryJobStore(jobs=[sparse], users=[make_user()])
        reconciler = CompletionReconciler(store, formatter, gateway)

        outcome = await reconciler.reconcile(sparse)

        assert outcome.success is True
        assert "A4" in gateway.sent[0].text
        assert "0.00" in gateway.sent[0].text

    @pytest.mark.asyncio
    async def test_lock_entries_released(self, reconciler):
        """Test that the per-job lock map is empty once reconciliation ends."""
        await reconciler.reconcile(make_job())

        assert len(reconciler.locks) == 0


class TestReconcileIdempotence:
    """Already-notified jobs never trigger a send."""

    @pytest.mark.asyncio
    async def test_notified_job_is_noop(self, reconciler, store, gateway):
        """Test that notified=True yields a no-op success with zero sends."""
        outcome = await reconciler.reconcile(make_job(notified=True))

        assert outcome.success is True
        assert outcome.skipped is True
        assert gateway.attempts == []
        assert store.mark_notified_calls == []

    @pytest.mark.asyncio
    async def test_repeated_reconcile_sends_once(self, reconciler, gateway):
        """Test that reconciling the same stale copy twice sends one email."""
        job = make_job()

        first = await reconciler.reconcile(job)
        second = await reconciler.reconcile(job)

        assert first.success and not first.skipped
        assert second.success and second.skipped
        assert len(gateway.sent) == 1

    @pytest.mark.asyncio
    async def test_stale_copy_rechecked_against_store(self, reconciler, store, gateway):
        """Test that a caller's stale notified=False copy is re-read before sending."""
        store.jobs["J1"] = make_job(notified=True)

        outcome = await reconciler.reconcile(make_job(notified=False))

        assert outcome.skipped is True
        assert gateway.attempts == []

    @pytest.mark.asyncio
    async def test_concurrent_triggers_send_once(self, store, formatter):
        """Test that sweep and listener reconciling J1 at once produce one email."""
        gateway = RecordingGateway(delay=0.01)
        reconciler = CompletionReconciler(store, formatter, gateway)

        outcomes = await asyncio.gather(
            reconciler.reconcile(make_job()),
            reconciler.reconcile(make_job()),
            reconciler.reconcile(make_job()),
        )

        assert all(outcome.success for outcome in outcomes)
        assert len(gateway.sent) == 1
        assert sum(1 for outcome in outcomes if outcome.skipped) == 2
        assert store.mark_notified_calls == ["J1"]

    @pytest.mark.asyncio
    async def test_shared_lock_map_across_reconcilers(self, store, formatter):
        """Test that reconcilers sharing a JobLockMap serialize the same job."""
        gateway = RecordingGateway(delay=0.01)
        locks = JobLockMap()
        first = CompletionReconciler(store, formatter, gateway, locks=locks)
        second = CompletionReconciler(store, formatter, gateway, locks=locks)

        await asyncio.gather(first.reconcile(make_job()), second.reconcile(make_job()))

        assert len(gateway.sent) == 1


class TestReconcileLookupFailures:
    """User and job lookup failures leave notified false and send nothing."""

    @pytest.mark.asyncio
    async def test_user_not_found(self, gateway, formatter):
        """Test that a missing owner fails at lookup with zero sends."""
        store = InMemoryJobStore(jobs=[make_job()], users=[])
        reconciler = CompletionReconciler(store, formatter, gateway)

        outcome = await reconciler.reconcile(make_job())

        assert outcome.success is False
        assert outcome.error == "user not found"
        assert outcome.stage == OutcomeStage.LOOKUP
        assert gateway.attempts == []
        assert store.jobs["J1"].notified is False

    @pytest.mark.asyncio
    async def test_user_without_email(self, gateway, formatter):
        """Test that an owner without email fails at lookup."""
        store = InMemoryJobStore(jobs=[make_job()], users=[make_user(email="  ")])
        reconciler = CompletionReconciler(store, formatter, gateway)

        outcome = await reconciler.reconcile(make_job())

        assert outcome.error == "no user email"
        assert gateway.attempts == []
        assert store.jobs["J1"].notified is False

    @pytest.mark.asyncio
    async def test_user_lookup_error(self, reconciler, store, gateway):
        """Test that a store error during user lookup is reported, not raised."""
        store.fail_user_lookup = True

        outcome = await reconciler.reconcile(make_job())

        assert outcome.error == "user lookup failed"
        assert "connection reset" in outcome.detail
        assert gateway.attempts == []

    @pytest.mark.asyncio
    async def test_job_deleted_before_reconcile(self, reconciler, store, gateway):
        """Test that a job missing from the store fails with job not found."""
        del store.jobs["J1"]

        outcome = await reconciler.reconcile(make_job())

        assert outcome.error == "job not found"
        assert gateway.attempts == []

    @pytest.mark.asyncio
    async def test_malformed_stored_job(self, job_store, database, formatter, gateway):
        """Test that a stored job failing validation is a lookup failure, not a crash."""
        await job_store.save_user(make_user())
        await insert_malformed_job(database, "J2")
        reconciler = CompletionReconciler(job_store, formatter, gateway)

        outcome = await reconciler.reconcile(make_job("J2"))

        assert outcome.error == "job lookup failed"
        assert outcome.stage == OutcomeStage.LOOKUP
        assert "malformed" in outcome.detail
        assert gateway.attempts == []

    @pytest.mark.asyncio
    async def test_missing_user_retried_after_fix(self, gateway, formatter):
        """Test that fixing the user data lets a later pass deliver."""
        store = InMemoryJobStore(jobs=[make_job()], users=[])
        reconciler = CompletionReconciler(store, formatter, gateway)

        assert (await reconciler.reconcile(make_job())).success is False

        await store.save_user(make_user())
        outcome = await reconciler.reconcile(make_job())

        assert outcome.success is True
        assert store.jobs["J1"].notified is True


class TestReconcileFormatFailure:

    @pytest.mark.asyncio
    async def test_template_error_is_format_failure(self, store, gateway):
        """Test that a formatter error is attributed to the format stage."""
        formatter = Mock()
        formatter.format.side_effect = NotificationTemplateError("Template rendering failed")
        reconciler = CompletionReconciler(store, formatter, gateway)

        outcome = await reconciler.reconcile(make_job())

        assert outcome.error == "formatting failed"
        assert outcome.stage == OutcomeStage.FORMAT
        assert gateway.attempts == []
        assert store.jobs["J1"].notified is False


class TestReconcileDeliveryFailure:

    @pytest.mark.asyncio
    async def test_gateway_failure_leaves_job_unnotified(self, store, formatter):
        """Scenario: gateway fails once, then succeeds on the next pass."""
        gateway = RecordingGateway(fail_next=1)
        reconciler = CompletionReconciler(store, formatter, gateway)

        outcome = await reconciler.reconcile(make_job())

        assert outcome.to_payload() == {"success": False, "jobId": "J1", "error": "delivery failed"}
        assert outcome.stage == OutcomeStage.DELIVERY
        assert "451" in outcome.detail
        assert store.jobs["J1"].notified is False
        assert store.mark_notified_calls == []

        retry = await reconciler.reconcile(make_job())

        assert retry.success is True
        assert store.jobs["J1"].notified is True
        assert len(gateway.sent) == 1

    @pytest.mark.asyncio
    async def test_gateway_exception_is_delivery_failure(self, reconciler, store, gateway):
        """Test that an exception raised by the gateway becomes a delivery failure."""
        gateway.raise_error = ConnectionError("connection refused")

        outcome = await reconciler.reconcile(make_job())

        assert outcome.error == "delivery failed"
        assert "connection refused" in outcome.detail
        assert store.jobs["J1"].notified is False


class TestReconcileWriteBackFailure:

    @pytest.mark.asyncio
    async def test_write_back_failure_after_send(self, reconciler, store, gateway):
        """Test that a failed mark-notified after a send is reported as write-back failed."""
        store.fail_mark_notified = True

        outcome = await reconciler.reconcile(make_job())

        assert outcome.success is False
        assert outcome.error == "write-back failed"
        assert outcome.stage == OutcomeStage.WRITE_BACK
        assert len(gateway.sent) == 1
        assert store.jobs["J1"].notified is False

    @pytest.mark.asyncio
    async def test_write_back_logged_as_duplicate_risk(self, reconciler, store, caplog):
        """Test that the write-back failure log names the duplicate-email risk."""
        store.fail_mark_notified = True

        with caplog.at_level("ERROR"):
            await reconciler.reconcile(make_job())

        records = [r for r in caplog.records if getattr(r, "event", None) == "reconcile.write_back.failed"]
        assert len(records) == 1
        assert "send it again" in records[0].getMessage()


class TestReconcileAll:
    """All-settle semantics for a batch of jobs."""

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_others(self, formatter, gateway):
        """Test that N jobs with one failing yield N outcomes and N-1 successes."""
        jobs = [make_job(job_id=f"J{i}", user_id=f"U{i}") for i in range(1, 6)]
        users = [make_user(user_id=f"U{i}", email=f"user{i}@x.com") for i in range(1, 6) if i != 3]
        store = InMemoryJobStore(jobs=jobs, users=users)
        reconciler = CompletionReconciler(store, formatter, gateway)

        outcomes = await reconciler.reconcile_all(jobs)

        assert [o.job_id for o in outcomes] == ["J1", "J2", "J3", "J4", "J5"]
        assert sum(1 for o in outcomes if o.success) == 4
        assert outcomes[2].error == "user not found"
        assert store.jobs["J3"].notified is False
        assert len(gateway.sent) == 4

    @pytest.mark.asyncio
    async def test_escaped_exception_becomes_outcome(self, reconciler, monkeypatch):
        """Test that an exception escaping reconcile() is converted to an outcome."""
        original = reconciler.reconcile

        async def flaky_reconcile(job):
            if job.job_id == "J2":
                raise RuntimeError("boom")
            return await original(job)

        monkeypatch.setattr(reconciler, "reconcile", flaky_reconcile)

        outcomes = await reconciler.reconcile_all([make_job(), make_job(job_id="J2")])

        assert outcomes[0].success is True
        assert outcomes[1].success is False
        assert outcomes[1].error == "unexpected error"
        assert outcomes[1].detail == "boom"

    @pytest.mark.asyncio
    async def test_empty_batch(self, reconciler):
        assert await reconciler.reconcile_all([]) == []
