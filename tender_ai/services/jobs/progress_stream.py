"""Server-sent progress for asynchronous jobs, built on polling job rows."""

import asyncio
from datetime import datetime
from typing import AsyncGenerator, Dict, Optional, Sequence, Tuple
from uuid import UUID

from tender_ai.core.database import async_session_maker
from tender_ai.database.models import JobProgress
from tender_ai.schemas.enums import JobStatus, JobType
from tender_ai.schemas.sse import SSEEvent, SSEEventType, format_sse
from tender_ai.services.jobs.progress_tracker import JobProgressTracker, is_terminal
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)


def job_snapshot(job: JobProgress) -> Dict:
    return {
        "id": str(job.id),
        "job_type": job.job_type,
        "status": job.status,
        "progress": job.progress,
        "message": job.message,
        "error_message": job.error_message,
        "started_at": job.started_at.isoformat() if job.started_at else None,
        "completed_at": job.completed_at.isoformat() if job.completed_at else None,
    }


def run_finished(jobs: Sequence[JobProgress], expected: Optional[Sequence[JobType]] = None) -> bool:
    """Whether a run is over.

    A run is over as soon as any row errored (later stages never start),
    or when every row is terminal and every expected job type has a row.
    """
    if any(job.status == JobStatus.ERROR.value for job in jobs):
        return True
    if not jobs or not all(is_terminal(job) for job in jobs):
        return False
    seen = {job.job_type for job in jobs}
    return all(JobType(t).value in seen for t in (expected or ()))


class ProgressStreamer:
    """Polls a project's job rows and yields SSE frames for changes."""

    def __init__(self, poll_interval: float = 2.0, session_factory=async_session_maker):
        self.poll_interval = poll_interval
        self.session_factory = session_factory
        self._last_seen: Dict[str, Tuple] = {}

    async def _poll(self, project_id: UUID, since: Optional[datetime]) -> Sequence[JobProgress]:
        async with self.session_factory() as session:
            return await JobProgressTracker(session).list_for_project(project_id, since)

    def _changed(self, job: JobProgress) -> bool:
        state = (job.status, job.progress, job.message)
        if self._last_seen.get(str(job.id)) == state:
            return False
        self._last_seen[str(job.id)] = state
        return True

    async def stream(
        self,
        project_id: UUID,
        since: Optional[datetime] = None,
        expected: Optional[Sequence[JobType]] = None,
    ) -> AsyncGenerator[str, None]:
        try:
            while True:
                jobs = await self._poll(project_id, since)
                for job in jobs:
                    if self._changed(job):
                        yield format_sse(SSEEvent(event_type=SSEEventType.PROGRESS, data=job_snapshot(job)))

                if run_finished(jobs, expected):
                    failed = any(job.status == JobStatus.ERROR.value for job in jobs)
                    yield format_sse(SSEEvent(
                        event_type=SSEEventType.FINISHED,
                        data={"status": JobStatus.ERROR.value if failed else JobStatus.COMPLETED.value},
                    ))
                    break

                yield format_sse(SSEEvent(event_type=SSEEventType.HEARTBEAT))
                await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            LOGGER.info(f"Progress stream closed for project {project_id}")
            raise
