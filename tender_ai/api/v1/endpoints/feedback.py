"""Evaluation report feedback: listing, curation and re-extraction."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.api.dependencies import get_queue, get_session, get_user_id
from tender_ai.api.v1.endpoints.jobs import get_project_service, trigger_time
from tender_ai.schemas.api import ApiResponse, FeedbackOut, FeedbackUpdateRequest, JobDispatchOut
from tender_ai.services.feedback.feedback_service import FeedbackService
from tender_ai.services.jobs.handlers import FEEDBACK_TOPIC, project_key
from tender_ai.services.jobs.queue_service import QueueService
from tender_ai.services.projects.project_service import ProjectService
from tender_ai.utils.logging import get_logger
from tender_ai.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_feedback_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> FeedbackService:
    return FeedbackService(db_session)


@router.get(
    "/{project_id}/feedback",
    response_model=ApiResponse,
    summary="List feedback extracted from evaluation reports",
    operation_id="list_feedback",
)
async def list_feedback(
    request: Request,
    project_id: UUID,
    feedback_service: Annotated[FeedbackService, Depends(get_feedback_service)] = None,
) -> ApiResponse:
    feedback = await feedback_service.list_feedback(project_id)
    return create_api_response(
        data=[FeedbackOut.model_validate(f) for f in feedback],
        request=request,
    )


@router.post(
    "/{project_id}/feedback/extract",
    response_model=ApiResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Re-extract feedback from the project's evaluation reports",
    operation_id="extract_feedback",
)
async def extract_feedback(
    request: Request,
    project_id: UUID,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    queue: Annotated[QueueService, Depends(get_queue)] = None,
    project_service: Annotated[ProjectService, Depends(get_project_service)] = None,
) -> ApiResponse:
    """Replaces existing feedback; serialised with setup and indexing for the project."""
    await project_service.get_project(project_id)
    since = trigger_time()
    job_id = await queue.send(
        FEEDBACK_TOPIC,
        {"project_id": str(project_id), "user_id": user_id},
        key=project_key(project_id),
    )
    LOGGER.info("Feedback extraction queued", extra={"project_id": str(project_id), "job_id": job_id})
    return create_api_response(
        data=JobDispatchOut(job_id=job_id, since=since),
        message="Feedback extraction started",
        request=request,
    )


@router.patch(
    "/{project_id}/feedback/{feedback_id}",
    response_model=ApiResponse,
    summary="Update a feedback entry",
    operation_id="update_feedback",
)
async def update_feedback(
    request: Request,
    project_id: UUID,
    feedback_id: UUID,
    payload: FeedbackUpdateRequest,
    feedback_service: Annotated[FeedbackService, Depends(get_feedback_service)] = None,
) -> ApiResponse:
    feedback = await feedback_service.update_feedback(
        project_id, feedback_id, **payload.model_dump(exclude_unset=True)
    )
    return create_api_response(data=FeedbackOut.model_validate(feedback), request=request)


@router.delete(
    "/{project_id}/feedback/{feedback_id}",
    response_model=ApiResponse,
    summary="Delete a feedback entry",
    operation_id="delete_feedback",
)
async def delete_feedback(
    request: Request,
    project_id: UUID,
    feedback_id: UUID,
    feedback_service: Annotated[FeedbackService, Depends(get_feedback_service)] = None,
) -> ApiResponse:
    await feedback_service.delete_feedback(project_id, feedback_id)
    return create_api_response(data={"id": str(feedback_id)}, message="Feedback deleted", request=request)
