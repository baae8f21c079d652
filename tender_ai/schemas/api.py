"""Request and response bodies for the HTTP API."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tender_ai.schemas.enums import DraftStatus, FeedbackSeverity, FeedbackType, ItemStatus


class ResponseMeta(BaseModel):
    timestamp: datetime
    request_id: str
    api_version: str = "v1"


class ApiResponse(BaseModel):
    """Envelope returned by every JSON endpoint."""

    status: bool = True
    message: str = "Operation successful"
    data: Any = None
    meta: ResponseMeta


class ErrorDetail(BaseModel):
    """RFC 7807 style error body."""

    title: str
    status: int
    detail: str
    instance: Optional[str] = None
    request_id: str
    timestamp: datetime


class _ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ProjectCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    content_language: str = Field("english", description="Postgres text search configuration")


class ProjectOut(_ORMModel):
    id: UUID
    name: str
    description: Optional[str] = None
    content_language: str
    created_at: datetime


class DocumentOut(_ORMModel):
    id: UUID
    project_id: UUID
    filename: str
    mime_type: str
    file_type: str
    file_size: int
    page_count: Optional[int] = None
    ocr_used: bool
    created_at: datetime


class JobOut(_ORMModel):
    id: UUID
    job_type: str
    status: str
    progress: int
    message: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class JobDispatchOut(BaseModel):
    job_id: str
    since: datetime = Field(..., description="Pass to the progress endpoints to see only this run")


class SearchRequest(BaseModel):
    query: str
    limit: int = Field(10, ge=1, le=50)


class SearchResultOut(BaseModel):
    chunk_id: UUID
    document_id: UUID
    content: str
    score: float
    section_title: Optional[str] = None


class SectionOut(_ORMModel):
    id: UUID
    parent_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    position: int
    source: str


class SectionCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    position: Optional[int] = None


class SectionUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    position: Optional[int] = None


class ReorderRequest(BaseModel):
    section_ids: List[UUID]


class ItemOut(_ORMModel):
    id: UUID
    outline_section_id: Optional[UUID] = None
    kind: str
    original_text: str
    section_reference: Optional[str] = None
    source_page: Optional[int] = None
    ai_themes: List[str] = Field(default_factory=list)
    position: int
    is_addressed: bool
    response_text: Optional[str] = None
    status: str


class ItemUpdateRequest(BaseModel):
    is_addressed: Optional[bool] = None
    response_text: Optional[str] = None
    status: Optional[ItemStatus] = None
    outline_section_id: Optional[UUID] = None


class FeedbackOut(_ORMModel):
    id: UUID
    source_document_id: Optional[UUID] = None
    extracted_item_id: Optional[UUID] = None
    feedback_type: str
    severity: str
    content: str
    section_reference: Optional[str] = None
    is_addressed: bool
    created_at: datetime


class FeedbackUpdateRequest(BaseModel):
    is_addressed: Optional[bool] = None
    content: Optional[str] = None
    severity: Optional[FeedbackSeverity] = None
    feedback_type: Optional[FeedbackType] = None
    extracted_item_id: Optional[UUID] = None


class DraftGroupOut(_ORMModel):
    id: UUID
    outline_section_id: UUID
    model_id: str
    system_prompt: Optional[str] = None
    generated_text: Optional[str] = None
    status: str
    updated_at: datetime


class DraftGroupUpdateRequest(BaseModel):
    model_id: Optional[str] = None
    system_prompt: Optional[str] = None
    generated_text: Optional[str] = None
    status: Optional[DraftStatus] = None


class DraftVersionOut(_ORMModel):
    id: UUID
    version: int
    content: str
    model_used: str
    created_at: datetime


class ChatMessageRequest(BaseModel):
    message: str = Field(..., min_length=1)


class EditSuggestionRequest(BaseModel):
    item_id: UUID
    instruction: str = Field(..., min_length=1)


class ChatMessageOut(_ORMModel):
    id: UUID
    role: str
    content: str
    target_item_id: Optional[UUID] = None
    suggestion: Optional[Dict[str, Any]] = None
    created_at: datetime


class PreferencesUpdateRequest(BaseModel):
    models: Optional[Dict[str, str]] = None
    prompts: Optional[Dict[str, str]] = None


class ProjectSettingsUpdateRequest(PreferencesUpdateRequest):
    content_language: Optional[str] = None
