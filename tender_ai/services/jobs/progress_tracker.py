"""Persisted, pollable progress for long-running jobs.

State machine per row: queued -> processing -> completed | error.
Progress never decreases, stays below 100 while processing and is forced
to 100 on completion. Terminal rows are never modified again.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import JobProgress
from tender_ai.repositories.job_progress_repository import JobProgressRepository
from tender_ai.schemas.enums import JobStatus, JobType, TERMINAL_JOB_STATUSES
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

MAX_RUNNING_PROGRESS = 99

# (progress percent, message) -> awaitable; stage services call it to report progress
ProgressReporter = Callable[[float, str], Awaitable[None]]


def is_terminal(job: JobProgress) -> bool:
    return job.status in {s.value for s in TERMINAL_JOB_STATUSES}


class JobProgressTracker:
    """Creates and advances JobProgress rows."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = JobProgressRepository(session)

    async def create(self, project_id: UUID, job_type: JobType, message: Optional[str] = None) -> JobProgress:
        job = await self.repo.create(
            project_id=project_id,
            job_type=JobType(job_type).value,
            status=JobStatus.QUEUED.value,
            progress=0,
            message=message,
        )
        LOGGER.info(
            f"Job queued: {job.job_type}",
            extra={"project_id": str(project_id), "job_id": str(job.id)},
        )
        return job

    async def start(self, job: JobProgress, message: Optional[str] = None) -> JobProgress:
        if is_terminal(job):
            LOGGER.warning(f"Ignoring start on terminal job {job.id} ({job.status})")
            return job
        job.status = JobStatus.PROCESSING.value
        job.started_at = datetime.now(timezone.utc)
        if message:
            job.message = message
        return await self.repo.save(job)

    async def update(self, job: JobProgress, progress: float, message: Optional[str] = None) -> JobProgress:
        """Advance progress; lower values than the current one are ignored."""
        if is_terminal(job):
            LOGGER.warning(f"Ignoring progress update on terminal job {job.id} ({job.status})")
            return job
        target = min(MAX_RUNNING_PROGRESS, max(0, int(progress)))
        job.progress = max(job.progress or 0, target)
        if message is not None:
            job.message = message
        return await self.repo.save(job)

    async def complete(self, job: JobProgress, message: Optional[str] = None) -> JobProgress:
        if is_terminal(job):
            LOGGER.warning(f"Ignoring completion of terminal job {job.id} ({job.status})")
            return job
        job.status = JobStatus.COMPLETED.value
        job.progress = 100
        job.completed_at = datetime.now(timezone.utc)
        if message is not None:
            job.message = message
        LOGGER.info(f"Job completed: {job.job_type}", extra={"job_id": str(job.id), "summary": message})
        return await self.repo.save(job)

    async def fail(self, job: JobProgress, error_message: str) -> JobProgress:
        if is_terminal(job):
            LOGGER.warning(f"Ignoring failure of terminal job {job.id} ({job.status})")
            return job
        job.status = JobStatus.ERROR.value
        job.error_message = error_message
        job.completed_at = datetime.now(timezone.utc)
        LOGGER.error(f"Job failed: {job.job_type}", extra={"job_id": str(job.id), "error": error_message})
        return await self.repo.save(job)

    @asynccontextmanager
    async def track(self, project_id: UUID, job_type: JobType) -> AsyncIterator[JobProgress]:
        """Create and start a job; mark it errored if the body raises or is cancelled.

        A body that returns without completing the job completes it with no
        summary. The exception is always re-raised. A failed flush inside the
        body leaves the session needing a rollback, so the failure is recorded
        by id after rolling back rather than through the (now expired) instance.
        """
        job = await self.create(project_id, job_type)
        await self.start(job)
        job_id, job_type_value = job.id, job.job_type
        try:
            yield job
        except (Exception, asyncio.CancelledError) as e:
            if isinstance(e, asyncio.CancelledError):
                message = "Job cancelled"
            else:
                message = str(e) or type(e).__name__
            await self._record_failure(job_id, job_type_value, message)
            raise
        if not is_terminal(job):
            await self.complete(job)

    async def _record_failure(self, job_id: UUID, job_type: str, error_message: str) -> None:
        try:
            await self.session.rollback()
            marked = await self.repo.mark_failed(job_id, error_message, datetime.now(timezone.utc))
        except SQLAlchemyError as e:
            LOGGER.error(
                f"Could not record failure of job {job_id}: {e}",
                exc_info=True,
                extra={"job_id": str(job_id), "error": error_message},
            )
            return
        if marked:
            LOGGER.error(f"Job failed: {job_type}", extra={"job_id": str(job_id), "error": error_message})

    async def list_for_project(self, project_id: UUID, since: Optional[datetime] = None) -> List[JobProgress]:
        return await self.repo.list_for_project(project_id, since)

    async def all_terminal(self, project_id: UUID, since: Optional[datetime] = None) -> bool:
        """True when there are job rows and every one has finished (the run-finished condition)."""
        jobs = await self.list_for_project(project_id, since)
        return bool(jobs) and all(is_terminal(job) for job in jobs)
