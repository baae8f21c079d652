from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.api.dependencies import get_session, get_user_id
from tender_ai.schemas.api import ApiResponse, ProjectCreateRequest, ProjectOut
from tender_ai.services.projects.project_service import ProjectService
from tender_ai.utils.responses import create_api_response

router = APIRouter()


async def get_project_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> ProjectService:
    return ProjectService(db_session)


@router.post(
    "/",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a tender project",
    operation_id="create_project",
)
async def create_project(
    request: Request,
    payload: ProjectCreateRequest,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    project_service: Annotated[ProjectService, Depends(get_project_service)] = None,
) -> ApiResponse:
    project = await project_service.create_project(
        name=payload.name,
        owner_id=user_id,
        description=payload.description,
        content_language=payload.content_language,
    )
    return create_api_response(
        data=ProjectOut.model_validate(project),
        message="Project created",
        request=request,
    )


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List projects",
    operation_id="list_projects",
)
async def list_projects(
    request: Request,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    project_service: Annotated[ProjectService, Depends(get_project_service)] = None,
) -> ApiResponse:
    projects = await project_service.list_projects(owner_id=user_id, skip=offset, limit=limit)
    return create_api_response(
        data=[ProjectOut.model_validate(p) for p in projects],
        message=f"Retrieved {len(projects)} projects",
        request=request,
    )


@router.get(
    "/{project_id}",
    response_model=ApiResponse,
    summary="Get a project",
    operation_id="get_project",
)
async def get_project(
    request: Request,
    project_id: UUID,
    project_service: Annotated[ProjectService, Depends(get_project_service)] = None,
) -> ApiResponse:
    project = await project_service.get_project(project_id)
    return create_api_response(data=ProjectOut.model_validate(project), request=request)
