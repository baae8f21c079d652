from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.api.dependencies import get_session, get_user_id
from tender_ai.schemas.api import (
    ApiResponse,
    ItemOut,
    ItemUpdateRequest,
    ReorderRequest,
    SectionCreateRequest,
    SectionOut,
    SectionUpdateRequest,
)
from tender_ai.services.ai.preferences import load_preferences
from tender_ai.services.outline.outline_service import OutlineService
from tender_ai.utils.responses import create_api_response

router = APIRouter()


async def get_outline_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> OutlineService:
    return OutlineService(db_session)


@router.get(
    "/{project_id}/outline",
    response_model=ApiResponse,
    summary="List outline sections in order",
    operation_id="list_outline_sections",
)
async def list_sections(
    request: Request,
    project_id: UUID,
    outline_service: Annotated[OutlineService, Depends(get_outline_service)] = None,
) -> ApiResponse:
    sections = await outline_service.list_sections(project_id)
    return create_api_response(data=[SectionOut.model_validate(s) for s in sections], request=request)


@router.post(
    "/{project_id}/outline",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a manual outline section",
    operation_id="create_outline_section",
)
async def create_section(
    request: Request,
    project_id: UUID,
    payload: SectionCreateRequest,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    db_session: Annotated[AsyncSession, Depends(get_session)] = None,
    outline_service: Annotated[OutlineService, Depends(get_outline_service)] = None,
) -> ApiResponse:
    preferences = await load_preferences(db_session, project_id, user_id)
    section = await outline_service.create_section(
        project_id,
        payload.title,
        preferences,
        description=payload.description,
        parent_id=payload.parent_id,
        position=payload.position,
    )
    return create_api_response(data=SectionOut.model_validate(section), message="Section created", request=request)


@router.patch(
    "/{project_id}/outline/{section_id}",
    response_model=ApiResponse,
    summary="Update an outline section",
    operation_id="update_outline_section",
)
async def update_section(
    request: Request,
    project_id: UUID,
    section_id: UUID,
    payload: SectionUpdateRequest,
    outline_service: Annotated[OutlineService, Depends(get_outline_service)] = None,
) -> ApiResponse:
    section = await outline_service.update_section(section_id, **payload.model_dump(exclude_unset=True))
    return create_api_response(data=SectionOut.model_validate(section), request=request)


@router.delete(
    "/{project_id}/outline/{section_id}",
    response_model=ApiResponse,
    summary="Delete an outline section",
    operation_id="delete_outline_section",
)
async def delete_section(
    request: Request,
    project_id: UUID,
    section_id: UUID,
    outline_service: Annotated[OutlineService, Depends(get_outline_service)] = None,
) -> ApiResponse:
    await outline_service.delete_section(section_id)
    return create_api_response(data={"id": str(section_id)}, message="Section deleted", request=request)


@router.put(
    "/{project_id}/outline/order",
    response_model=ApiResponse,
    summary="Reorder outline sections",
    operation_id="reorder_outline_sections",
)
async def reorder_sections(
    request: Request,
    project_id: UUID,
    payload: ReorderRequest,
    outline_service: Annotated[OutlineService, Depends(get_outline_service)] = None,
) -> ApiResponse:
    sections = await outline_service.reorder(project_id, payload.section_ids)
    return create_api_response(data=[SectionOut.model_validate(s) for s in sections], request=request)


@router.get(
    "/{project_id}/items",
    response_model=ApiResponse,
    summary="List extracted questions and conditions",
    operation_id="list_extracted_items",
)
async def list_items(
    request: Request,
    project_id: UUID,
    group_by: Optional[str] = Query(None, pattern="^theme$", description="Set to 'theme' to group by AI theme"),
    outline_service: Annotated[OutlineService, Depends(get_outline_service)] = None,
) -> ApiResponse:
    if group_by == "theme":
        grouped = await outline_service.items_by_theme(project_id)
        data = {theme: [ItemOut.model_validate(i) for i in items] for theme, items in grouped.items()}
    else:
        data = [ItemOut.model_validate(i) for i in await outline_service.list_items(project_id)]
    return create_api_response(data=data, request=request)


@router.patch(
    "/{project_id}/items/{item_id}",
    response_model=ApiResponse,
    summary="Update an extracted item",
    operation_id="update_extracted_item",
)
async def update_item(
    request: Request,
    project_id: UUID,
    item_id: UUID,
    payload: ItemUpdateRequest,
    outline_service: Annotated[OutlineService, Depends(get_outline_service)] = None,
) -> ApiResponse:
    item = await outline_service.update_item(item_id, **payload.model_dump(exclude_unset=True))
    return create_api_response(data=ItemOut.model_validate(item), request=request)
