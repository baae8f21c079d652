"""Knowledge base indexing: full rebuild of a project's chunks and vectors."""

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.config import settings
from tender_ai.repositories.chunk_repository import DocumentChunkRepository
from tender_ai.repositories.document_repository import DocumentRepository
from tender_ai.schemas.enums import KNOWLEDGE_FILE_TYPES
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.chunking.document_chunker import DocumentChunker
from tender_ai.services.jobs.progress_tracker import ProgressReporter
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)


CHUNKING_SHARE = 80
EMBEDDING_SHARE = 20

_MARKDOWN_HEADING = re.compile(r"^ {0,3}#{1,6}[ \t]+(.+?)[ \t#]*$", re.MULTILINE)


def find_headings(text: str) -> List[Tuple[int, str]]:
    """(offset, title) of every markdown heading, in document order."""
    return [(m.start(), m.group(1).strip()) for m in _MARKDOWN_HEADING.finditer(text)]


def section_title_at(headings: List[Tuple[int, str]], offset: int, default: str) -> str:
    """Title of the last heading starting at or before `offset`."""
    index = bisect_right([start for start, _ in headings], offset)
    return headings[index - 1][1] if index else default


@dataclass
class IndexingResult:
    deleted_chunks: int
    total_chunks: int
    embedded_chunks: int
    failed_batches: int

    @property
    def summary(self) -> str:
        return f"{self.total_chunks} chunks indexed"


class EmbeddingIndexer:
    """Chunks knowledge documents and embeds the chunks in fixed-size batches.

    Every run deletes the project's previous chunks first. A failed
    embedding batch is logged and skipped; its chunks keep a null vector
    and are excluded from hybrid retrieval.
    """

    def __init__(
        self,
        session: AsyncSession,
        gateway: GenerationGateway,
        chunk_size: int = settings.chunking.chunk_size,
        overlap: int = settings.chunking.chunk_overlap,
        batch_size: int = settings.embedding.batch_size,
    ):
        self.session = session
        self.gateway = gateway
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.batch_size = batch_size
        self.document_repo = DocumentRepository(session)
        self.chunk_repo = DocumentChunkRepository(session)

    async def index_project(
        self, project_id: UUID, report: Optional[ProgressReporter] = None
    ) -> IndexingResult:
        deleted = await self.chunk_repo.delete_by_project(project_id)
        LOGGER.info(
            f"Rebuilding knowledge index, removed {deleted} chunks",
            extra={"project_id": str(project_id)},
        )

        total_chunks = await self._chunk_documents(project_id, report)
        embedded, failed_batches = await self._embed_chunks(project_id, report)

        result = IndexingResult(
            deleted_chunks=deleted,
            total_chunks=total_chunks,
            embedded_chunks=embedded,
            failed_batches=failed_batches,
        )
        LOGGER.info(
            f"Knowledge index rebuilt: {result.summary}",
            extra={
                "project_id": str(project_id),
                "embedded_chunks": embedded,
                "failed_batches": failed_batches,
            },
        )
        return result

    async def _chunk_documents(self, project_id: UUID, report: Optional[ProgressReporter]) -> int:
        documents = await self.document_repo.list_by_type(project_id, KNOWLEDGE_FILE_TYPES)
        total = 0
        for index, document in enumerate(documents):
            if document.extracted_text:
                headings = find_headings(document.extracted_text)
                rows = [
                    {
                        "project_id": project_id,
                        "document_id": document.id,
                        "chunk_index": position,
                        "content": chunk.text,
                        "start_char": chunk.start,
                        "end_char": chunk.end,
                        "section_title": section_title_at(headings, chunk.start, document.filename),
                    }
                    for position, chunk in enumerate(
                        DocumentChunker(document.extracted_text, self.chunk_size, self.overlap)
                    )
                ]
                await self.chunk_repo.create_many(rows)
                total += len(rows)
            else:
                LOGGER.warning(f"Document {document.id} has no extracted text, skipping")

            if report:
                await report(
                    (index + 1) / len(documents) * CHUNKING_SHARE,
                    f"Chunked {document.filename}",
                )
        return total

    async def _embed_chunks(self, project_id: UUID, report: Optional[ProgressReporter]) -> tuple[int, int]:
        pairs = await self.chunk_repo.list_for_embedding(project_id)
        batches = [pairs[i:i + self.batch_size] for i in range(0, len(pairs), self.batch_size)]
        embedded = 0
        failed = 0

        for index, batch in enumerate(batches):
            try:
                vectors = await self.gateway.embed_many([content for _, content in batch])
            except Exception as e:
                failed += 1
                LOGGER.error(
                    f"Embedding batch {index + 1}/{len(batches)} failed: {e}",
                    exc_info=True,
                    extra={"project_id": str(project_id), "batch_size": len(batch)},
                )
            else:
                await self.chunk_repo.set_embeddings(
                    {chunk_id: vector for (chunk_id, _), vector in zip(batch, vectors)}
                )
                embedded += len(batch)

            if report:
                await report(
                    CHUNKING_SHARE + (index + 1) / len(batches) * EMBEDDING_SHARE,
                    f"Embedded {embedded}/{len(pairs)} chunks",
                )
        return embedded, failed
