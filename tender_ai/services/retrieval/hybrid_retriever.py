"""Hybrid knowledge search over a project's embedded chunks.

score = 0.6 * cosine_similarity + 0.3 * ts_rank + 0.1 * trigram_similarity

Ranking and truncation happen in Postgres; the returned score is the same
weighted combination recomputed from the per-signal values.
"""

from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.config import settings
from tender_ai.repositories.chunk_repository import DocumentChunkRepository
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.retrieval.constants import (
    DEFAULT_SEARCH_LIMIT,
    FUZZY_WEIGHT,
    LEXICAL_WEIGHT,
    VECTOR_WEIGHT,
)
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)


def combine_scores(vector_score: float, lexical_score: float, fuzzy_score: float) -> float:
    """Weighted combination of the three relevance signals."""
    return (
        VECTOR_WEIGHT * vector_score
        + LEXICAL_WEIGHT * lexical_score
        + FUZZY_WEIGHT * fuzzy_score
    )


@dataclass
class SearchResult:
    chunk_id: UUID
    document_id: UUID
    content: str
    score: float
    section_title: Optional[str] = None


class HybridRetriever:
    """Combined vector, lexical and fuzzy search scoped to one project."""

    def __init__(self, session: AsyncSession, gateway: GenerationGateway):
        self.session = session
        self.gateway = gateway
        self.chunk_repo = DocumentChunkRepository(session)

    async def search(
        self,
        project_id: UUID,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
        text_search_config: Optional[str] = None,
    ) -> List[SearchResult]:
        """Ranked chunks for a free-text query, best first.

        Returns an empty list when the query embedding cannot be computed.
        Database errors propagate.
        """
        if not query or not query.strip():
            return []

        try:
            query_embedding = await self.gateway.embed(query)
        except Exception as e:
            LOGGER.warning(
                f"Query embedding failed, returning no results: {e}",
                extra={"project_id": str(project_id)},
            )
            return []

        rows = await self.chunk_repo.hybrid_search(
            project_id=project_id,
            query=query,
            query_embedding=query_embedding,
            limit=limit,
            text_search_config=text_search_config or settings.retrieval.text_search_config,
        )

        results = [
            SearchResult(
                chunk_id=row.id,
                document_id=row.document_id,
                content=row.content,
                section_title=row.section_title,
                score=combine_scores(
                    float(row.vector_score or 0.0),
                    float(row.lexical_score or 0.0),
                    float(row.fuzzy_score or 0.0),
                ),
            )
            for row in rows
        ]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]
