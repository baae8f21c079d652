"""Setup pipeline trigger and job progress (JSON list and SSE poller)."""

from datetime import datetime, timedelta, timezone
from typing import Annotated, Dict, Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.api.dependencies import get_queue, get_session, get_user_id
from tender_ai.api.streaming import SSE_HEADERS
from tender_ai.core.config import settings
from tender_ai.schemas.api import ApiResponse, JobDispatchOut, JobOut
from tender_ai.schemas.enums import JobType
from tender_ai.services.jobs.handlers import SETUP_TOPIC, project_key
from tender_ai.services.jobs.progress_stream import ProgressStreamer
from tender_ai.services.jobs.progress_tracker import JobProgressTracker
from tender_ai.services.jobs.queue_service import QueueService
from tender_ai.services.pipeline.orchestrator import PIPELINE_JOB_TYPES
from tender_ai.services.projects.project_service import ProjectService
from tender_ai.utils.logging import get_logger
from tender_ai.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()

# Tolerates clock skew between the API host and the database server
SINCE_MARGIN = timedelta(seconds=2)

EXPECTED_JOB_TYPES: Dict[str, Tuple[JobType, ...]] = {
    "setup": PIPELINE_JOB_TYPES,
    "indexing": (JobType.INDEXING,),
    "draft_all": (JobType.DRAFT_ALL,),
    "feedback": (JobType.FEEDBACK,),
}


def trigger_time() -> datetime:
    """Lower bound on created_at for rows belonging to a run triggered now."""
    return datetime.now(timezone.utc) - SINCE_MARGIN


async def get_project_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> ProjectService:
    return ProjectService(db_session)


async def get_tracker(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> JobProgressTracker:
    return JobProgressTracker(db_session)


@router.post(
    "/{project_id}/setup",
    response_model=ApiResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start the project setup pipeline",
    operation_id="start_project_setup",
)
async def start_setup(
    request: Request,
    project_id: UUID,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    queue: Annotated[QueueService, Depends(get_queue)] = None,
    project_service: Annotated[ProjectService, Depends(get_project_service)] = None,
) -> ApiResponse:
    """Queue structure analysis, extraction, indexing and feedback for a project."""
    await project_service.get_project(project_id)
    since = trigger_time()
    job_id = await queue.send(
        SETUP_TOPIC,
        {"project_id": str(project_id), "user_id": user_id},
        key=project_key(project_id),
    )
    LOGGER.info("Setup pipeline queued", extra={"project_id": str(project_id), "job_id": job_id})
    return create_api_response(
        data=JobDispatchOut(job_id=job_id, since=since),
        message="Setup pipeline started",
        request=request,
    )


@router.get(
    "/{project_id}/jobs",
    response_model=ApiResponse,
    summary="List job progress rows for a project",
    operation_id="list_project_jobs",
)
async def list_jobs(
    request: Request,
    project_id: UUID,
    since: Optional[datetime] = Query(None, description="Only rows created at or after this time"),
    tracker: Annotated[JobProgressTracker, Depends(get_tracker)] = None,
) -> ApiResponse:
    jobs = await tracker.list_for_project(project_id, since)
    return create_api_response(
        data={
            "jobs": [JobOut.model_validate(job) for job in jobs],
            "all_terminal": await tracker.all_terminal(project_id, since),
        },
        request=request,
    )


@router.get(
    "/{project_id}/jobs/stream",
    summary="Stream job progress as server-sent events",
    operation_id="stream_project_jobs",
)
async def stream_jobs(
    project_id: UUID,
    since: Optional[datetime] = Query(None, description="Only rows created at or after this time"),
    scope: str = Query("setup", pattern="^(setup|indexing|draft_all|feedback)$"),
) -> StreamingResponse:
    """Poll the project's job rows and push changes until the run finishes."""
    streamer = ProgressStreamer(poll_interval=settings.progress_poll_interval)
    return StreamingResponse(
        streamer.stream(project_id, since=since, expected=EXPECTED_JOB_TYPES[scope]),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
