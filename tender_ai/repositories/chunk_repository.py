from typing import Dict, List, Sequence, Tuple
from uuid import UUID

from sqlalchemy import cast, func, select, update
from sqlalchemy.dialects.postgresql import REGCONFIG
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import DocumentChunk
from tender_ai.repositories.base_repository import BaseRepository
from tender_ai.services.retrieval.constants import (
    FUZZY_WEIGHT,
    LEXICAL_WEIGHT,
    VECTOR_WEIGHT,
)


class DocumentChunkRepository(BaseRepository[DocumentChunk]):
    """Repository for knowledge chunks and their hybrid search."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, DocumentChunk)

    async def list_for_embedding(self, project_id: UUID) -> List[Tuple[UUID, str]]:
        """(id, content) pairs for every chunk of a project, in index order."""
        result = await self.session.execute(
            select(DocumentChunk.id, DocumentChunk.content)
            .where(DocumentChunk.project_id == project_id)
            .order_by(DocumentChunk.document_id, DocumentChunk.chunk_index)
        )
        return [(row.id, row.content) for row in result]

    async def set_embeddings(self, vectors: Dict[UUID, Sequence[float]]) -> None:
        """Write embedding vectors back by chunk id."""
        try:
            for chunk_id, vector in vectors.items():
                await self.session.execute(
                    update(DocumentChunk)
                    .where(DocumentChunk.id == chunk_id)
                    .values(embedding=list(vector))
                )
            await self.session.commit()
        except SQLAlchemyError as e:
            self.logger.error(f"Error storing {len(vectors)} chunk embeddings: {e}", exc_info=True)
            raise

    async def hybrid_search(
        self,
        project_id: UUID,
        query: str,
        query_embedding: Sequence[float],
        limit: int,
        text_search_config: str = "english",
    ) -> list:
        """Rank embedded chunks by the weighted vector, lexical and fuzzy signals.

        Returns:
            Rows with content, document_id, section_title and the three
            per-signal scores (vector_score, lexical_score, fuzzy_score),
            best first.
        """
        vector_score = (1 - DocumentChunk.embedding.cosine_distance(list(query_embedding)))
        ts_query = func.plainto_tsquery(cast(text_search_config, REGCONFIG), query)
        lexical_score = func.coalesce(func.ts_rank(DocumentChunk.search_vector, ts_query), 0.0)
        fuzzy_score = func.coalesce(func.similarity(DocumentChunk.content, query), 0.0)
        combined = (
            vector_score * VECTOR_WEIGHT
            + lexical_score * LEXICAL_WEIGHT
            + fuzzy_score * FUZZY_WEIGHT
        )

        stmt = (
            select(
                DocumentChunk.id,
                DocumentChunk.document_id,
                DocumentChunk.content,
                DocumentChunk.section_title,
                vector_score.label("vector_score"),
                lexical_score.label("lexical_score"),
                fuzzy_score.label("fuzzy_score"),
            )
            .where(
                DocumentChunk.project_id == project_id,
                DocumentChunk.embedding.is_not(None),
            )
            .order_by(combined.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result)
