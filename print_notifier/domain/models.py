"""Core domain models for print jobs, users, change events and outcomes.

- PrintJob: a print job document with its files, settings and payment summary
- User: the owner of a print job
- JobChange: one entry of a change-feed batch
- ReconciliationOutcome: result of reconciling one job in one pass

Stored documents use camelCase keys (``userId``, ``fileName``); the models
accept either spelling and dump camelCase when ``by_alias=True``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class JobStatus(str, Enum):
    """Lifecycle statuses of a print job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PrintFile(_Document):
    """A single uploaded file within a print job."""

    file_name: Optional[str] = Field(None, alias="fileName")
    page_count: Optional[int] = Field(None, alias="pageCount", ge=0)
    price: Optional[Union[float, str]] = Field(None, description="Computed price for this file")


class PrintSettings(_Document):
    """Print settings chosen at submission time. Every field may be absent."""

    color: Optional[str] = None
    paper_size: Optional[str] = Field(None, alias="paperSize")
    copies: Optional[int] = Field(None, ge=0)
    double_sided: Optional[bool] = Field(None, alias="doubleSided")
    orientation: Optional[str] = None
    page_range: Optional[str] = Field(None, alias="pageRange")


class PaymentSummary(_Document):
    """Payment recorded for a print job."""

    order_id: Optional[str] = Field(None, alias="orderId")
    amount: Optional[Union[float, str]] = None


class PrintJob(_Document):
    """A print job document as stored in the job store."""

    job_id: str = Field(..., alias="jobId", min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)
    status: str = Field(JobStatus.PENDING.value)
    notified: bool = Field(False, description="Dedup marker: completion email already sent")
    files: List[PrintFile] = Field(default_factory=list)
    settings: Optional[PrintSettings] = None
    payment: Optional[PaymentSummary] = None
    hub_name: Optional[str] = Field(None, alias="hubName")

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> Any:
        if isinstance(v, JobStatus):
            return v.value
        return v

    @field_validator("files", mode="before")
    @classmethod
    def none_files_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def is_completed(self, completion_status: str = JobStatus.COMPLETED.value) -> bool:
        return self.status == completion_status


class User(_Document):
    """Owner of print jobs. Read-only from the notifier's point of view."""

    user_id: str = Field(..., alias="userId", min_length=1)
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None

    @field_validator("email")
    @classmethod
    def blank_email_as_missing(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None


class ChangeKind(str, Enum):
    """Kinds of change reported by the job change feed."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class JobChange:
    """One change-feed entry.

    For ``removed`` changes ``job`` is the last version seen while it matched.
    """

    kind: ChangeKind
    job: PrintJob


class OutcomeStage(str, Enum):
    """Reconciliation step a failure is attributed to."""

    LOOKUP = "lookup"
    FORMAT = "format"
    DELIVERY = "delivery"
    WRITE_BACK = "write_back"


@dataclass
class ReconciliationOutcome:
    """Result of reconciling one job in one pass.

    Attributes:
        job_id: Job that was reconciled
        success: True when an email was sent and recorded, or none was owed
        error: Short failure reason (e.g. "delivery failed")
        stage: Step the failure is attributed to
        detail: Underlying error text, for logs and debugging
        skipped: True when the job was already notified (no-op)
    """

    job_id: str
    success: bool
    error: Optional[str] = None
    stage: Optional[OutcomeStage] = None
    detail: Optional[str] = None
    skipped: bool = False

    @classmethod
    def sent(cls, job_id: str) -> "ReconciliationOutcome":
        return cls(job_id=job_id, success=True)

    @classmethod
    def already_notified(cls, job_id: str) -> "ReconciliationOutcome":
        return cls(job_id=job_id, success=True, skipped=True)

    @classmethod
    def failed(
        cls,
        job_id: str,
        stage: Optional[OutcomeStage],
        error: str,
        detail: Optional[str] = None,
    ) -> "ReconciliationOutcome":
        return cls(job_id=job_id, success=False, error=error, stage=stage, detail=detail)

    def to_payload(self) -> Dict[str, Any]:
        """Wire shape returned by the on-demand endpoint."""
        payload: Dict[str, Any] = {"success": self.success, "jobId": self.job_id}
        if self.error is not None:
            payload["error"] = self.error
        return payload
