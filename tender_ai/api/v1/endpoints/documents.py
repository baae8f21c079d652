from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.api.dependencies import get_session
from tender_ai.core.config import settings
from tender_ai.schemas.api import ApiResponse, DocumentOut
from tender_ai.schemas.enums import FileType
from tender_ai.services.documents.ingest_service import (
    DocumentIngestService,
    LocalBlobStore,
    PlainTextExtractor,
)
from tender_ai.utils.logging import get_logger
from tender_ai.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_ingest_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> DocumentIngestService:
    return DocumentIngestService(db_session, LocalBlobStore(settings.storage_dir), PlainTextExtractor())


@router.post(
    "/{project_id}/documents",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document to a project",
    operation_id="upload_document",
)
async def upload_document(
    request: Request,
    project_id: UUID,
    file: UploadFile = File(..., description="Document to upload"),
    file_type: FileType = Form(..., description="Role of the document in the project"),
    ingest_service: Annotated[DocumentIngestService, Depends(get_ingest_service)] = None,
) -> ApiResponse:
    data = await file.read()
    document = await ingest_service.upload(
        project_id=project_id,
        filename=file.filename or "upload",
        data=data,
        mime_type=file.content_type or "application/octet-stream",
        file_type=file_type,
    )
    return create_api_response(
        data=DocumentOut.model_validate(document),
        message=f"Uploaded {document.filename}",
        request=request,
    )


@router.get(
    "/{project_id}/documents",
    response_model=ApiResponse,
    summary="List a project's documents",
    operation_id="list_documents",
)
async def list_documents(
    request: Request,
    project_id: UUID,
    ingest_service: Annotated[DocumentIngestService, Depends(get_ingest_service)] = None,
) -> ApiResponse:
    documents = await ingest_service.list_documents(project_id)
    return create_api_response(
        data=[DocumentOut.model_validate(d) for d in documents],
        message=f"Retrieved {len(documents)} documents",
        request=request,
    )


@router.post(
    "/{project_id}/documents/{document_id}/extract",
    response_model=ApiResponse,
    summary="Re-run text extraction for a document",
    operation_id="re_extract_document",
)
async def re_extract_document(
    request: Request,
    project_id: UUID,
    document_id: UUID,
    ingest_service: Annotated[DocumentIngestService, Depends(get_ingest_service)] = None,
) -> ApiResponse:
    document = await ingest_service.re_extract(document_id)
    return create_api_response(data=DocumentOut.model_validate(document), request=request)


@router.delete(
    "/{project_id}/documents/{document_id}",
    response_model=ApiResponse,
    summary="Delete a document",
    operation_id="delete_document",
)
async def delete_document(
    request: Request,
    project_id: UUID,
    document_id: UUID,
    ingest_service: Annotated[DocumentIngestService, Depends(get_ingest_service)] = None,
) -> ApiResponse:
    await ingest_service.remove(document_id)
    LOGGER.info(f"Document {document_id} deleted", extra={"project_id": str(project_id)})
    return create_api_response(data={"id": str(document_id)}, message="Document deleted", request=request)
