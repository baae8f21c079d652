"""Unit tests for document upload and text extraction."""

from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from tender_ai.core.exceptions import NotFoundError, ValidationError
from tender_ai.schemas.enums import FileType
from tender_ai.services.documents.ingest_service import (
    DocumentIngestService,
    ExtractedText,
    LocalBlobStore,
    PlainTextExtractor,
)


class TestLocalBlobStore:

    @pytest.mark.asyncio
    async def test_upload_download_delete(self, tmp_path):
        store = LocalBlobStore(str(tmp_path))

        await store.upload("projects/p/doc.txt", b"hello", "text/plain")
        assert await store.download("projects/p/doc.txt") == b"hello"

        await store.delete("projects/p/doc.txt")
        with pytest.raises(NotFoundError):
            await store.download("projects/p/doc.txt")

    @pytest.mark.asyncio
    async def test_rejects_keys_outside_root(self, tmp_path):
        store = LocalBlobStore(str(tmp_path / "blobs"))

        with pytest.raises(ValidationError):
            await store.upload("../escape.txt", b"x", "text/plain")


class TestPlainTextExtractor:

    @pytest.mark.asyncio
    async def test_text_mime(self):
        extracted = await PlainTextExtractor().extract("Scope of work".encode(), "text/plain", "rfp")
        assert extracted.text == "Scope of work"

    @pytest.mark.asyncio
    async def test_extension_fallback(self):
        extracted = await PlainTextExtractor().extract(b"# Title", "application/octet-stream", "notes.MD")
        assert extracted.text == "# Title"

    @pytest.mark.asyncio
    async def test_unsupported(self):
        with pytest.raises(ValidationError):
            await PlainTextExtractor().extract(b"%PDF", "application/pdf", "rfp.pdf")


@pytest.fixture
def blob_store():
    return AsyncMock()


@pytest.fixture
def extractor():
    extractor = AsyncMock()
    extractor.extract.return_value = ExtractedText(text="Requirements", page_count=3)
    return extractor


@pytest.fixture
def service(mock_session, blob_store, extractor):
    service = DocumentIngestService(mock_session, blob_store, extractor)
    service.repo = AsyncMock()
    service.repo.create.side_effect = lambda **kwargs: SimpleNamespace(id=uuid4(), **kwargs)
    return service


class TestDocumentIngestService:

    @pytest.mark.asyncio
    async def test_upload_records_text(self, service, blob_store, project_id):
        document = await service.upload(project_id, "rfp.txt", b"Requirements", "text/plain", FileType.RFP)

        assert document.extracted_text == "Requirements"
        assert document.page_count == 3
        assert document.file_type == "rfp"
        assert document.file_size == len(b"Requirements")
        assert document.storage_key.startswith(f"projects/{project_id}/documents/")
        assert document.storage_key.endswith("-rfp.txt")
        blob_store.upload.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unsupported_type_stores_nothing(self, service, blob_store, extractor, project_id):
        extractor.extract.side_effect = ValidationError("Unsupported file type: image/png")

        with pytest.raises(ValidationError):
            await service.upload(project_id, "logo.png", b"png", "image/png", FileType.REFERENCE)

        blob_store.upload.assert_not_awaited()
        service.repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_extraction_crash_keeps_document(self, service, extractor, project_id):
        extractor.extract.side_effect = UnicodeError("bad bytes")

        document = await service.upload(project_id, "old.txt", b"\xff", "text/plain", FileType.PAST_SUBMISSION)

        assert document.extracted_text == ""

    @pytest.mark.asyncio
    async def test_re_extract_updates_text(self, service, blob_store):
        document = SimpleNamespace(
            id=uuid4(), storage_key="k", mime_type="text/plain", filename="rfp.txt"
        )
        service.repo.get_by_id.return_value = document
        blob_store.download.return_value = b"Requirements"

        await service.re_extract(document.id)

        service.repo.update.assert_awaited_once_with(
            document.id, extracted_text="Requirements", ocr_used=False, page_count=3
        )

    @pytest.mark.asyncio
    async def test_remove_missing(self, service):
        service.repo.get_by_id.return_value = None

        with pytest.raises(NotFoundError):
            await service.remove(uuid4())
