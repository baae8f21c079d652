"""Draft groups: listing, manual edits, streamed generation and draft-all."""

import asyncio
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.api.dependencies import get_gateway, get_queue, get_session, get_user_id
from tender_ai.api.streaming import SSE_HEADERS, stream_generation
from tender_ai.api.v1.endpoints.jobs import trigger_time
from tender_ai.schemas.api import (
    ApiResponse,
    DraftGroupOut,
    DraftGroupUpdateRequest,
    DraftVersionOut,
    JobDispatchOut,
)
from tender_ai.services.ai.generation_gateway import GenerationGateway, StreamCallbacks
from tender_ai.services.ai.preferences import load_preferences
from tender_ai.services.drafting.draft_service import DraftService
from tender_ai.services.jobs.handlers import DRAFT_ALL_TOPIC
from tender_ai.services.jobs.queue_service import QueueService
from tender_ai.utils.responses import create_api_response

router = APIRouter()


async def get_draft_service(
    db_session: Annotated[AsyncSession, Depends(get_session)],
    gateway: Annotated[GenerationGateway, Depends(get_gateway)],
) -> DraftService:
    return DraftService(db_session, gateway)


@router.get(
    "/{project_id}/drafts",
    response_model=ApiResponse,
    summary="List draft groups",
    operation_id="list_draft_groups",
)
async def list_groups(
    request: Request,
    project_id: UUID,
    draft_service: Annotated[DraftService, Depends(get_draft_service)] = None,
) -> ApiResponse:
    groups = await draft_service.list_groups(project_id)
    return create_api_response(data=[DraftGroupOut.model_validate(g) for g in groups], request=request)


@router.get(
    "/{project_id}/drafts/{draft_group_id}/versions",
    response_model=ApiResponse,
    summary="List saved versions of a draft group",
    operation_id="list_draft_versions",
)
async def list_versions(
    request: Request,
    project_id: UUID,
    draft_group_id: UUID,
    draft_service: Annotated[DraftService, Depends(get_draft_service)] = None,
) -> ApiResponse:
    versions = await draft_service.list_versions(draft_group_id)
    return create_api_response(data=[DraftVersionOut.model_validate(v) for v in versions], request=request)


@router.patch(
    "/{project_id}/drafts/{draft_group_id}",
    response_model=ApiResponse,
    summary="Edit a draft group",
    operation_id="update_draft_group",
)
async def update_group(
    request: Request,
    project_id: UUID,
    draft_group_id: UUID,
    payload: DraftGroupUpdateRequest,
    draft_service: Annotated[DraftService, Depends(get_draft_service)] = None,
) -> ApiResponse:
    group = await draft_service.update_group(draft_group_id, **payload.model_dump(exclude_unset=True))
    return create_api_response(data=DraftGroupOut.model_validate(group), request=request)


@router.post(
    "/{project_id}/drafts/{draft_group_id}/generate",
    summary="Stream a draft for one section",
    operation_id="generate_draft",
)
async def generate_draft(
    request: Request,
    project_id: UUID,
    draft_group_id: UUID,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    gateway: Annotated[GenerationGateway, Depends(get_gateway)] = None,
) -> StreamingResponse:
    """Server-sent `token` frames followed by `done` or `error`. Closing the connection cancels."""

    async def run(session: AsyncSession, callbacks: StreamCallbacks, cancel_event: asyncio.Event) -> None:
        preferences = await load_preferences(session, project_id, user_id)
        await DraftService(session, gateway).stream_group(draft_group_id, preferences, callbacks, cancel_event)

    return StreamingResponse(
        stream_generation(request, run, name=f"draft:{draft_group_id}"),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post(
    "/{project_id}/drafts/generate-all",
    response_model=ApiResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue drafting of every pending section",
    operation_id="generate_all_drafts",
)
async def generate_all(
    request: Request,
    project_id: UUID,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    queue: Annotated[QueueService, Depends(get_queue)] = None,
) -> ApiResponse:
    since = trigger_time()
    job_id = await queue.send(DRAFT_ALL_TOPIC, {"project_id": str(project_id), "user_id": user_id})
    return create_api_response(
        data=JobDispatchOut(job_id=job_id, since=since),
        message="Drafting queued",
        request=request,
    )
