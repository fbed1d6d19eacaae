"""Job store: the narrow read/update surface the notifier needs.

Capabilities:
- point lookup of jobs and users
- filtered job query (field equality)
- partial job update, and a conditional mark-notified write
- lightweight health check (ping)
- change subscription (see feed.py)

Methods return domain models, never ORM instances.
"""

from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from pydantic import BaseModel, ValidationError
from sqlalchemy import false, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from print_notifier.domain.models import JobChange, PrintJob, User
from print_notifier.logging import get_logger

from .database import Database
from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .feed import poll_job_changes
from .schema import JOB_FILTER_FIELDS, JOB_UPDATE_FIELDS, PrintJobModel, UserModel

logger = get_logger(__name__, component="store")


def _to_column_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, list):
        return [_to_column_value(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value


def _check_fields(fields: Dict[str, Any], allowed: frozenset, operation: str) -> None:
    unknown = sorted(set(fields) - allowed)
    if unknown:
        raise ValueError(
            f"Unsupported field(s) for {operation}: {', '.join(unknown)}. "
            f"Allowed: {', '.join(sorted(allowed))}"
        )


def _job_to_domain(job_model: PrintJobModel) -> PrintJob:
    """Convert a stored row, raising DataIntegrityError for malformed documents."""
    try:
        return job_model.to_domain()
    except ValidationError as e:
        raise DataIntegrityError(f"Stored job {job_model.job_id} is malformed: {e}") from e


class JobStore:
    """Async job/user store backed by SQLAlchemy."""

    def __init__(self, database: Database):
        self.database = database

    async def get_job(self, job_id: str) -> Optional[PrintJob]:
        """Retrieve a job by id.

        Returns:
            PrintJob if found, None otherwise

        Raises:
            DataIntegrityError: If the stored document does not validate
            PersistenceError: If a database error occurs
        """
        try:
            async with self.database.session() as session:
                job_model = await session.get(PrintJobModel, job_id)
                return _job_to_domain(job_model) if job_model is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving job {job_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve job: {e}") from e

    async def get_user(self, user_id: str) -> Optional[User]:
        """Retrieve a user by id.

        Returns:
            User if found, None otherwise

        Raises:
            PersistenceError: If a database error occurs
        """
        try:
            async with self.database.session() as session:
                user_model = await session.get(UserModel, user_id)
                return user_model.to_domain() if user_model is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving user {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve user: {e}") from e

    async def find_jobs(self, **field_equals: Any) -> List[PrintJob]:
        """Query jobs whose columns equal the given values.

        Rows whose stored document does not validate are logged and left out,
        so one malformed job never hides the others.

        Example:
            >>> await store.find_jobs(status="completed", notified=False)

        Raises:
            ValueError: If a filter names an unsupported field
            PersistenceError: If a database error occurs
        """
        _check_fields(field_equals, JOB_FILTER_FIELDS, "job query")

        stmt = select(PrintJobModel).order_by(PrintJobModel.job_id)
        for field_name, value in field_equals.items():
            stmt = stmt.where(getattr(PrintJobModel, field_name) == _to_column_value(value))

        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                job_models = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error querying jobs {field_equals}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to query jobs: {e}") from e

        jobs = []
        for job_model in job_models:
            try:
                jobs.append(_job_to_domain(job_model))
            except DataIntegrityError as e:
                logger.error(
                    f"Skipping malformed job {job_model.job_id}: {e}",
                    extra={"event": "store.job.malformed", "job_id": job_model.job_id},
                )
        return jobs

    async def update_job(self, job_id: str, **fields: Any) -> None:
        """Merge ``fields`` into an existing job (no concurrency check).

        Raises:
            ValueError: If a field is not updatable
            RecordNotFoundError: If the job does not exist
            PersistenceError: If a database error occurs
        """
        _check_fields(fields, JOB_UPDATE_FIELDS, "job update")
        if not fields:
            return

        values = {name: _to_column_value(value) for name, value in fields.items()}
        stmt = update(PrintJobModel).where(PrintJobModel.job_id == job_id).values(**values)

        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    raise RecordNotFoundError(f"Job {job_id} not found")
        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error updating job {job_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update job: {e}") from e

    async def mark_notified(self, job_id: str) -> bool:
        """Set ``notified`` to true only if it is still false.

        Returns:
            True if this call performed the transition, False if the job was
            already notified or does not exist

        Raises:
            PersistenceError: If a database error occurs
        """
        stmt = (
            update(PrintJobModel)
            .where(PrintJobModel.job_id == job_id, PrintJobModel.notified == false())
            .values(notified=True)
        )

        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                return result.rowcount == 1
        except SQLAlchemyError as e:
            logger.error(f"Error marking job {job_id} as notified: {e}", exc_info=True)
            raise PersistenceError(f"Failed to mark job as notified: {e}") from e

    async def save_job(self, job: PrintJob) -> PrintJob:
        """Insert a job or replace an existing one.

        A stored ``notified=True`` is kept even if ``job`` carries False.
        """
        try:
            async with self.database.session() as session:
                existing = await session.get(PrintJobModel, job.job_id)
                if existing is None:
                    session.add(PrintJobModel.from_domain(job))
                else:
                    values = PrintJobModel.column_values(job)
                    values["notified"] = existing.notified or job.notified
                    for name, value in values.items():
                        setattr(existing, name, value)
                await session.flush()
            return job
        except IntegrityError as e:
            logger.error(f"Integrity error saving job {job.job_id}: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to save job due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving job {job.job_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save job: {e}") from e

    async def save_user(self, user: User) -> User:
        """Insert a user or replace an existing one."""
        try:
            async with self.database.session() as session:
                await session.merge(UserModel.from_domain(user))
            return user
        except IntegrityError as e:
            logger.error(f"Integrity error saving user {user.user_id}: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to save user due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving user {user.user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save user: {e}") from e

    async def ping(self) -> bool:
        """Health check: read at most one user row.

        Never raises; any failure is logged and reported as unhealthy.
        """
        try:
            async with self.database.session() as session:
                await session.execute(select(UserModel.user_id).limit(1))
            return True
        except Exception as e:
            logger.error(
                f"Store health check failed: {e}",
                extra={"event": "store.ping.failed", "error_type": type(e).__name__},
            )
            return False

    def subscribe_jobs(
        self, poll_interval: float = 10.0, **field_equals: Any
    ) -> AsyncIterator[List[JobChange]]:
        """Subscribe to changes of jobs matching ``field_equals``.

        Yields batches of JobChange; the first batch reports every current
        match as added. See feed.poll_job_changes.

        Raises:
            ValueError: If a filter names an unsupported field
        """
        _check_fields(field_equals, JOB_FILTER_FIELDS, "job subscription")
        return poll_job_changes(
            lambda: self.find_jobs(**field_equals),
            poll_interval=poll_interval,
            description=", ".join(f"{k}={v}" for k, v in field_equals.items()),
        )
