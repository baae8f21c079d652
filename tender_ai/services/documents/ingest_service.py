"""Document upload, removal and re-extraction.

Blob storage and text extraction are collaborators behind small protocols.
The bundled implementations store blobs on the local filesystem and read
plain-text formats only; richer extractors plug in through TextExtractor.
"""

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.exceptions import AppError, NotFoundError, ValidationError
from tender_ai.database.models import Document
from tender_ai.repositories.document_repository import DocumentRepository
from tender_ai.schemas.enums import FileType
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

PLAIN_TEXT_EXTENSIONS = {"txt", "csv", "md"}


@dataclass
class ExtractedText:
    text: str
    page_count: Optional[int] = None
    ocr_used: bool = False


class BlobStore(Protocol):
    async def upload(self, key: str, data: bytes, mime_type: str) -> str: ...

    async def download(self, key: str) -> bytes: ...

    async def delete(self, key: str) -> None: ...


class TextExtractor(Protocol):
    async def extract(self, data: bytes, mime_type: str, filename: str) -> ExtractedText:
        """Raises ValidationError for unsupported file types."""
        ...


class LocalBlobStore:
    """Blob store rooted at a local directory."""

    def __init__(self, root: str):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValidationError(f"Invalid storage key '{key}'")
        return path

    async def upload(self, key: str, data: bytes, mime_type: str) -> str:
        path = self._path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)
        return key

    async def download(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise NotFoundError(f"Blob '{key}' not found", e) from e

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._path(key).unlink, True)


class PlainTextExtractor:
    """Decodes text/* payloads as UTF-8."""

    async def extract(self, data: bytes, mime_type: str, filename: str) -> ExtractedText:
        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if not (mime_type.startswith("text/") or extension in PLAIN_TEXT_EXTENSIONS):
            raise ValidationError(f"Unsupported file type: {mime_type}")
        return ExtractedText(text=data.decode("utf-8", errors="replace"))


class DocumentIngestService:
    """Stores uploads and their extracted text.

    Extraction failures other than unsupported types are logged and the
    document is stored with empty text, so it can be re-extracted later.
    """

    def __init__(self, session: AsyncSession, blob_store: BlobStore, extractor: TextExtractor):
        self.session = session
        self.blob_store = blob_store
        self.extractor = extractor
        self.repo = DocumentRepository(session)

    async def _extract(self, data: bytes, mime_type: str, filename: str) -> ExtractedText:
        try:
            return await self.extractor.extract(data, mime_type, filename)
        except ValidationError:
            raise
        except Exception as e:
            LOGGER.error(f"Text extraction failed for {filename}: {e}", exc_info=True)
            return ExtractedText(text="")

    async def list_documents(self, project_id: UUID) -> List[Document]:
        return await self.repo.list_by_project(project_id, order_by=Document.created_at.desc())

    async def get_document(self, document_id: UUID) -> Document:
        document = await self.repo.get_by_id(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    async def upload(
        self,
        project_id: UUID,
        filename: str,
        data: bytes,
        mime_type: str,
        file_type: FileType,
    ) -> Document:
        """Store the blob, extract its text and record the document.

        Raises:
            ValidationError: Unsupported file type
        """
        extracted = await self._extract(data, mime_type, filename)
        storage_key = f"projects/{project_id}/documents/{int(time.time() * 1000)}-{Path(filename).name}"
        try:
            await self.blob_store.upload(storage_key, data, mime_type)
        except AppError:
            raise
        except Exception as e:
            raise AppError(f"Storage upload error: {e}", e) from e

        document = await self.repo.create(
            project_id=project_id,
            filename=filename,
            mime_type=mime_type,
            storage_key=storage_key,
            file_size=len(data),
            file_type=FileType(file_type).value,
            extracted_text=extracted.text,
            page_count=extracted.page_count,
            ocr_used=extracted.ocr_used,
        )
        LOGGER.info(
            f"Document uploaded: {filename}",
            extra={"project_id": str(project_id), "file_type": document.file_type, "chars": len(extracted.text)},
        )
        return document

    async def re_extract(self, document_id: UUID) -> Document:
        document = await self.get_document(document_id)
        data = await self.blob_store.download(document.storage_key)
        extracted = await self._extract(data, document.mime_type, document.filename)
        changes = {"extracted_text": extracted.text, "ocr_used": extracted.ocr_used}
        if extracted.page_count is not None:
            changes["page_count"] = extracted.page_count
        return await self.repo.update(document.id, **changes)

    async def remove(self, document_id: UUID) -> None:
        document = await self.get_document(document_id)
        await self.blob_store.delete(document.storage_key)
        await self.repo.delete(document.id)
