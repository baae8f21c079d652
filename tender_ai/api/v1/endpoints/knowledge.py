from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.api.dependencies import get_gateway, get_queue, get_session, get_user_id
from tender_ai.api.v1.endpoints.jobs import trigger_time
from tender_ai.schemas.api import ApiResponse, JobDispatchOut, SearchRequest, SearchResultOut
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.ai.preferences import load_preferences
from tender_ai.services.jobs.handlers import INDEX_TOPIC, project_key
from tender_ai.services.jobs.queue_service import QueueService
from tender_ai.services.retrieval.hybrid_retriever import HybridRetriever
from tender_ai.utils.responses import create_api_response

router = APIRouter()


@router.post(
    "/{project_id}/knowledge/index",
    response_model=ApiResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Rebuild the project's knowledge base index",
    operation_id="index_knowledge",
)
async def index_knowledge(
    request: Request,
    project_id: UUID,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    queue: Annotated[QueueService, Depends(get_queue)] = None,
) -> ApiResponse:
    since = trigger_time()
    job_id = await queue.send(
        INDEX_TOPIC,
        {"project_id": str(project_id), "user_id": user_id},
        key=project_key(project_id),
    )
    return create_api_response(
        data=JobDispatchOut(job_id=job_id, since=since),
        message="Knowledge indexing started",
        request=request,
    )


@router.post(
    "/{project_id}/knowledge/search",
    response_model=ApiResponse,
    summary="Hybrid search over the project's knowledge base",
    operation_id="search_knowledge",
)
async def search_knowledge(
    request: Request,
    project_id: UUID,
    payload: SearchRequest,
    db_session: Annotated[AsyncSession, Depends(get_session)] = None,
    gateway: Annotated[GenerationGateway, Depends(get_gateway)] = None,
) -> ApiResponse:
    preferences = await load_preferences(db_session, project_id)
    results = await HybridRetriever(db_session, gateway).search(
        project_id, payload.query, limit=payload.limit, text_search_config=preferences.text_search_config
    )
    return create_api_response(
        data=[
            SearchResultOut(
                chunk_id=r.chunk_id,
                document_id=r.document_id,
                content=r.content,
                score=r.score,
                section_title=r.section_title,
            )
            for r in results
        ],
        message=f"Found {len(results)} results",
        request=request,
    )
