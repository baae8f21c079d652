from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.api.dependencies import get_gateway, get_session, get_user_id
from tender_ai.core.exceptions import ValidationError
from tender_ai.schemas.api import ApiResponse, PreferencesUpdateRequest, ProjectSettingsUpdateRequest
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.settings.settings_service import SettingsService
from tender_ai.utils.responses import create_api_response

router = APIRouter()


async def get_settings_service(
    db_session: Annotated[AsyncSession, Depends(get_session)],
    gateway: Annotated[GenerationGateway, Depends(get_gateway)],
) -> SettingsService:
    return SettingsService(db_session, gateway)


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise ValidationError("X-User-ID header is required for user preferences")
    return user_id


@router.get(
    "/models",
    response_model=ApiResponse,
    summary="List registered models and their availability",
    operation_id="list_models",
)
async def list_models(
    request: Request,
    settings_service: Annotated[SettingsService, Depends(get_settings_service)] = None,
) -> ApiResponse:
    return create_api_response(data=settings_service.get_models(), request=request)


@router.get(
    "/preferences",
    response_model=ApiResponse,
    summary="Get the caller's default models and prompts",
    operation_id="get_user_preferences",
)
async def get_preferences(
    request: Request,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    settings_service: Annotated[SettingsService, Depends(get_settings_service)] = None,
) -> ApiResponse:
    data = await settings_service.get_user_preferences(_require_user(user_id))
    return create_api_response(data=data, request=request)


@router.put(
    "/preferences",
    response_model=ApiResponse,
    summary="Update the caller's default models and prompts",
    operation_id="update_user_preferences",
)
async def update_preferences(
    request: Request,
    payload: PreferencesUpdateRequest,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    settings_service: Annotated[SettingsService, Depends(get_settings_service)] = None,
) -> ApiResponse:
    data = await settings_service.update_user_preferences(
        _require_user(user_id), models=payload.models, prompts=payload.prompts
    )
    return create_api_response(data=data, message="Preferences updated", request=request)


@router.get(
    "/projects/{project_id}",
    response_model=ApiResponse,
    summary="Get a project's model and prompt overrides",
    operation_id="get_project_settings",
)
async def get_project_settings(
    request: Request,
    project_id: UUID,
    settings_service: Annotated[SettingsService, Depends(get_settings_service)] = None,
) -> ApiResponse:
    return create_api_response(data=await settings_service.get_project_settings(project_id), request=request)


@router.put(
    "/projects/{project_id}",
    response_model=ApiResponse,
    summary="Update a project's model and prompt overrides",
    operation_id="update_project_settings",
)
async def update_project_settings(
    request: Request,
    project_id: UUID,
    payload: ProjectSettingsUpdateRequest,
    settings_service: Annotated[SettingsService, Depends(get_settings_service)] = None,
) -> ApiResponse:
    data = await settings_service.update_project_settings(
        project_id,
        models=payload.models,
        prompts=payload.prompts,
        content_language=payload.content_language,
    )
    return create_api_response(data=data, message="Project settings updated", request=request)
