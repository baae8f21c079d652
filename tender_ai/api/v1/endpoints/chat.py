import asyncio
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.api.dependencies import get_gateway, get_session, get_user_id
from tender_ai.api.streaming import SSE_HEADERS, stream_generation
from tender_ai.schemas.api import ApiResponse, ChatMessageOut, ChatMessageRequest, EditSuggestionRequest
from tender_ai.services.ai.generation_gateway import GenerationGateway, StreamCallbacks
from tender_ai.services.ai.preferences import load_preferences
from tender_ai.services.chat.chat_service import ChatService
from tender_ai.utils.responses import create_api_response

router = APIRouter()


@router.get(
    "/{project_id}/chat",
    response_model=ApiResponse,
    summary="Chat history for a project",
    operation_id="get_chat_history",
)
async def chat_history(
    request: Request,
    project_id: UUID,
    db_session: Annotated[AsyncSession, Depends(get_session)] = None,
    gateway: Annotated[GenerationGateway, Depends(get_gateway)] = None,
) -> ApiResponse:
    messages = await ChatService(db_session, gateway).history(project_id)
    return create_api_response(data=[ChatMessageOut.model_validate(m) for m in messages], request=request)


@router.post(
    "/{project_id}/chat",
    summary="Send a chat message and stream the reply",
    operation_id="send_chat_message",
)
async def send_message(
    request: Request,
    project_id: UUID,
    payload: ChatMessageRequest,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    gateway: Annotated[GenerationGateway, Depends(get_gateway)] = None,
) -> StreamingResponse:

    async def run(session: AsyncSession, callbacks: StreamCallbacks, cancel_event: asyncio.Event) -> None:
        preferences = await load_preferences(session, project_id, user_id)
        await ChatService(session, gateway).stream_reply(
            project_id, payload.message, preferences, callbacks, cancel_event
        )

    return StreamingResponse(
        stream_generation(request, run, name=f"chat:{project_id}"),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post(
    "/{project_id}/chat/edit",
    summary="Stream a suggested rewrite of an item's answer",
    operation_id="suggest_item_edit",
)
async def suggest_edit(
    request: Request,
    project_id: UUID,
    payload: EditSuggestionRequest,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    gateway: Annotated[GenerationGateway, Depends(get_gateway)] = None,
) -> StreamingResponse:
    """The final `done` frame carries the suggestion with its old/new text and diff."""

    async def run(session: AsyncSession, callbacks: StreamCallbacks, cancel_event: asyncio.Event) -> None:
        preferences = await load_preferences(session, project_id, user_id)
        await ChatService(session, gateway).suggest_edit(
            project_id, payload.item_id, payload.instruction, preferences, callbacks, cancel_event
        )

    return StreamingResponse(
        stream_generation(request, run, name=f"edit:{payload.item_id}", done_key="suggestion"),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
