from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.api.dependencies import get_gateway, get_session, get_user_id
from tender_ai.schemas.api import ApiResponse
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.ai.preferences import load_preferences
from tender_ai.services.compliance.compliance_service import ComplianceAggregator
from tender_ai.utils.responses import create_api_response

router = APIRouter()


@router.post(
    "/{project_id}/compliance",
    response_model=ApiResponse,
    summary="Generate a compliance report",
    operation_id="generate_compliance_report",
)
async def compliance_report(
    request: Request,
    project_id: UUID,
    user_id: Annotated[Optional[str], Depends(get_user_id)] = None,
    db_session: Annotated[AsyncSession, Depends(get_session)] = None,
    gateway: Annotated[GenerationGateway, Depends(get_gateway)] = None,
) -> ApiResponse:
    """Coverage statistics and warnings, with an AI quality score when one can be obtained."""
    preferences = await load_preferences(db_session, project_id, user_id)
    report = await ComplianceAggregator(db_session, gateway).generate_report(project_id, preferences)
    return create_api_response(
        data=report.model_dump(mode="json", by_alias=True),
        message=report.summary,
        request=request,
    )
