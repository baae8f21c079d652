"""Shared FastAPI dependencies."""

from typing import Annotated, Optional

from fastapi import Header, Request

from tender_ai.core.database import get_async_session as get_session
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.jobs.queue_service import QueueService

__all__ = ["get_session", "get_gateway", "get_queue", "get_user_id"]


def get_gateway(request: Request) -> GenerationGateway:
    return request.app.state.gateway


def get_queue(request: Request) -> QueueService:
    return request.app.state.queue


async def get_user_id(
    x_user_id: Annotated[Optional[str], Header(description="Caller identity set by the upstream gateway")] = None,
) -> Optional[str]:
    """Identity of the caller, used only to pick their model and prompt defaults."""
    return x_user_id or None
