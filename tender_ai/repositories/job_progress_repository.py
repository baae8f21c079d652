from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import JobProgress
from tender_ai.repositories.base_repository import BaseRepository
from tender_ai.schemas.enums import JobStatus, TERMINAL_JOB_STATUSES


class JobProgressRepository(BaseRepository[JobProgress]):
    """Repository for job progress rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, JobProgress)

    async def list_for_project(
        self, project_id: UUID, since: Optional[datetime] = None
    ) -> List[JobProgress]:
        """Job rows of a project, oldest first, optionally only those created at or after `since`."""
        if since is None:
            return await self.list_by_project(project_id, order_by=JobProgress.created_at)
        try:
            result = await self.session.execute(
                select(JobProgress)
                .where(JobProgress.project_id == project_id, JobProgress.created_at >= since)
                .order_by(JobProgress.created_at)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing job progress for project {project_id}: {e}", exc_info=True)
            raise

    async def save(self, job: JobProgress) -> JobProgress:
        """Persist in-memory changes to a job row."""
        try:
            self.session.add(job)
            await self.session.flush()
            await self.session.commit()
            return job
        except SQLAlchemyError as e:
            self.logger.error(f"Error saving job progress {job.id}: {e}", exc_info=True)
            raise

    async def mark_failed(self, job_id: UUID, error_message: str, completed_at: datetime) -> bool:
        """Move a non-terminal row to error by id without touching loaded instances.

        Returns False when the row is missing or already terminal.
        """
        try:
            result = await self.session.execute(
                update(JobProgress)
                .where(
                    JobProgress.id == job_id,
                    JobProgress.status.notin_([s.value for s in TERMINAL_JOB_STATUSES]),
                )
                .values(
                    status=JobStatus.ERROR.value,
                    error_message=error_message,
                    completed_at=completed_at,
                )
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error marking job {job_id} failed: {e}", exc_info=True)
            raise
