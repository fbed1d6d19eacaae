"""Tests for the core domain models."""

import pytest
from pydantic import ValidationError

from print_notifier.domain.models import (
    JobStatus,
    OutcomeStage,
    PrintJob,
    ReconciliationOutcome,
    User,
)

from tests.helpers import make_job


class TestPrintJob:

    def test_accepts_stored_camel_case_document(self):
        """Test parsing a document as written by the submission flow."""
        job = PrintJob.model_validate(
            {
                "jobId": "J1",
                "userId": "U1",
                "status": "completed",
                "hubName": "Library Hub",
                "files": [{"fileName": "thesis.pdf", "pageCount": 42, "price": "84.00"}],
                "settings": {"paperSize": "A3", "doubleSided": True, "copies": 2},
                "payment": {"orderId": "order_123", "amount": 168},
            }
        )

        assert job.job_id == "J1"
        assert job.notified is False
        assert job.files[0].page_count == 42
        assert job.files[0].price == "84.00"
        assert job.settings.double_sided is True
        assert job.payment.order_id == "order_123"

    def test_dump_by_alias_round_trips(self):
        dumped = make_job().model_dump(by_alias=True)

        assert dumped["jobId"] == "J1"
        assert dumped["settings"]["paperSize"] == "A3"
        assert PrintJob.model_validate(dumped) == make_job()

    def test_status_enum_coerced_to_string(self):
        job = PrintJob(job_id="J1", user_id="U1", status=JobStatus.COMPLETED)

        assert job.status == "completed"
        assert job.is_completed()
        assert not job.is_completed("complete")

    def test_unknown_status_kept_verbatim(self):
        """Test that statuses outside JobStatus are stored, not rejected."""
        assert PrintJob(job_id="J1", user_id="U1", status="complete").status == "complete"

    def test_sparse_job_defaults(self):
        job = PrintJob(job_id="J1", user_id="U1", files=None)

        assert job.status == "pending"
        assert job.files == []
        assert job.settings is None
        assert job.payment is None

    @pytest.mark.parametrize("field", ["job_id", "user_id"])
    def test_ids_required(self, field):
        data = {"job_id": "J1", "user_id": "U1", field: ""}

        with pytest.raises(ValidationError):
            PrintJob(**data)

    def test_negative_page_count_rejected(self):
        with pytest.raises(ValidationError):
            PrintJob.model_validate({"jobId": "J1", "userId": "U1", "files": [{"pageCount": -1}]})


class TestUser:

    @pytest.mark.parametrize("email", ["", "   ", None])
    def test_blank_email_is_missing(self, email):
        assert User(user_id="U1", email=email).email is None

    def test_email_stripped(self):
        assert User.model_validate({"userId": "U1", "email": " a@x.com "}).email == "a@x.com"


class TestReconciliationOutcome:

    def test_sent_payload(self):
        assert ReconciliationOutcome.sent("J1").to_payload() == {"success": True, "jobId": "J1"}

    def test_already_notified_is_success(self):
        outcome = ReconciliationOutcome.already_notified("J1")

        assert outcome.success is True
        assert outcome.skipped is True
        assert outcome.to_payload() == {"success": True, "jobId": "J1"}

    def test_failed_payload_omits_detail(self):
        """Test that stage and detail stay out of the wire payload."""
        outcome = ReconciliationOutcome.failed(
            "J1", OutcomeStage.DELIVERY, "delivery failed", "451 try again"
        )

        assert outcome.to_payload() == {"success": False, "jobId": "J1", "error": "delivery failed"}
        assert outcome.stage == OutcomeStage.DELIVERY
        assert outcome.detail == "451 try again"
