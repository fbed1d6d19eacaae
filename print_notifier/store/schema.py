"""Database schema definition and ORM models.

Nested job data (files, settings, payment) is kept as JSON documents in the
shape the submission flow writes them; only the fields the notifier filters
on are real columns.
"""

from typing import Any, Dict

from sqlalchemy import JSON, Boolean, Column, Index, String, false
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import declarative_base

from print_notifier.domain.models import PrintJob, User

Base = declarative_base()


class PrintJobModel(Base):
    """ORM model for the print_jobs table."""

    __tablename__ = "print_jobs"

    job_id = Column(String(128), primary_key=True, nullable=False)
    user_id = Column(String(128), nullable=False)
    status = Column(String(32), nullable=False)
    notified = Column(Boolean, nullable=False, default=False, server_default=false())
    hub_name = Column(String(255), nullable=True)

    files = Column(JSON, nullable=False, default=list)
    settings = Column(JSON, nullable=True)
    payment = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_print_jobs_status_notified", "status", "notified"),
        Index("idx_print_jobs_user", "user_id"),
    )

    def to_domain(self) -> PrintJob:
        return PrintJob.model_validate(
            {
                "job_id": self.job_id,
                "user_id": self.user_id,
                "status": self.status,
                "notified": bool(self.notified),
                "hub_name": self.hub_name,
                "files": self.files or [],
                "settings": self.settings,
                "payment": self.payment,
            }
        )

    @classmethod
    def column_values(cls, job: PrintJob) -> Dict[str, Any]:
        """Column values for ``job``, nested documents dumped with camelCase keys."""
        return {
            "job_id": job.job_id,
            "user_id": job.user_id,
            "status": job.status,
            "notified": job.notified,
            "hub_name": job.hub_name,
            "files": [f.model_dump(by_alias=True, exclude_none=True) for f in job.files],
            "settings": (
                job.settings.model_dump(by_alias=True, exclude_none=True) if job.settings else None
            ),
            "payment": (
                job.payment.model_dump(by_alias=True, exclude_none=True) if job.payment else None
            ),
        }

    @classmethod
    def from_domain(cls, job: PrintJob) -> "PrintJobModel":
        return cls(**cls.column_values(job))


class UserModel(Base):
    """ORM model for the users table."""

    __tablename__ = "users"

    user_id = Column(String(128), primary_key=True, nullable=False)
    email = Column(String(320), nullable=True)
    name = Column(String(255), nullable=True)
    role = Column(String(32), nullable=True)

    def to_domain(self) -> User:
        return User(user_id=self.user_id, email=self.email, name=self.name, role=self.role)

    @classmethod
    def from_domain(cls, user: User) -> "UserModel":
        return cls(user_id=user.user_id, email=user.email, name=user.name, role=user.role)


# Fields accepted by JobStore.find_jobs / update_job. update_job never writes
# notified: only mark_notified sets it and nothing clears it.
JOB_FILTER_FIELDS = frozenset({"job_id", "user_id", "status", "notified", "hub_name"})
JOB_UPDATE_FIELDS = frozenset({"user_id", "status", "hub_name", "files", "settings", "payment"})


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet. Safe to call repeatedly."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
