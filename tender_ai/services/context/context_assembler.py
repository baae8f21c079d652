"""Prompt context for drafting units and chat.

Blocks are emitted in a fixed order and omitted entirely when empty.
The result is appended to the resolved system prompt, never to the user
prompt.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import AnalysisFeedback, ExtractedItem
from tender_ai.repositories.feedback_repository import AnalysisFeedbackRepository
from tender_ai.repositories.outline_repository import ExtractedItemRepository
from tender_ai.schemas.enums import ItemKind
from tender_ai.services.retrieval.constants import CONTEXT_QUERY_MAX_CHARS, CONTEXT_SEARCH_LIMIT
from tender_ai.services.retrieval.hybrid_retriever import HybridRetriever, SearchResult
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

QUESTIONS_HEADER = "## Questions to answer"
CONDITIONS_HEADER = "## Conditions to confirm"
KNOWLEDGE_HEADER = "## Relevant knowledge from past submissions"
FEEDBACK_HEADER = "## Feedback from previous evaluations"
REQUIREMENTS_HEADER = "## Project requirements"

KNOWLEDGE_SEPARATOR = "\n---\n"
CHAT_ITEM_LIMIT = 50
CHAT_ITEM_PREVIEW_CHARS = 200


def _block(header: str, body: str) -> Optional[str]:
    return f"{header}\n{body}" if body else None


def render_context(
    questions: Sequence[str],
    conditions: Sequence[str],
    knowledge: Sequence[str],
    feedback: Sequence[AnalysisFeedback],
) -> str:
    """Join the non-empty labelled blocks in their fixed order."""
    blocks = [
        _block(QUESTIONS_HEADER, "\n".join(f"- {q}" for q in questions)),
        _block(CONDITIONS_HEADER, "\n".join(f"- {c}" for c in conditions)),
        _block(KNOWLEDGE_HEADER, KNOWLEDGE_SEPARATOR.join(knowledge)),
        _block(
            FEEDBACK_HEADER,
            "\n".join(f"- [{fb.feedback_type}/{fb.severity}] {fb.content}" for fb in feedback),
        ),
    ]
    return "\n\n".join(block for block in blocks if block)


def build_system_prompt(base_prompt: str, context: str) -> str:
    if not context:
        return base_prompt
    return f"{base_prompt}\n\n{context}"


def build_context_query(items: Sequence[ExtractedItem]) -> str:
    return " ".join(item.original_text for item in items)[:CONTEXT_QUERY_MAX_CHARS]


class ContextAssembler:
    """Gathers section items, knowledge hits and feedback into prompt context."""

    def __init__(self, session: AsyncSession, retriever: HybridRetriever):
        self.session = session
        self.retriever = retriever
        self.item_repo = ExtractedItemRepository(session)
        self.feedback_repo = AnalysisFeedbackRepository(session)

    async def for_section(
        self,
        project_id: UUID,
        section_id: UUID,
        text_search_config: Optional[str] = None,
    ) -> str:
        items = await self.item_repo.list_by_section(section_id)
        questions = [i.original_text for i in items if i.kind == ItemKind.QUESTION.value]
        conditions = [i.original_text for i in items if i.kind == ItemKind.CONDITION.value]

        knowledge: List[str] = []
        query = build_context_query(items)
        if query:
            hits = await self._safe_search(project_id, query, text_search_config)
            knowledge = [hit.content for hit in hits]

        feedback = await self.feedback_repo.list_for_items(project_id, [i.id for i in items])
        return render_context(questions, conditions, knowledge, feedback)

    async def for_chat(
        self,
        project_id: UUID,
        query: str,
        text_search_config: Optional[str] = None,
    ) -> str:
        """Requirements summary plus scored knowledge hits; each part is best-effort."""
        blocks: List[str] = []

        try:
            items = await self.item_repo.list_ordered(project_id)
        except Exception as e:
            LOGGER.warning(f"Could not load items for chat context: {e}", extra={"project_id": str(project_id)})
            items = []
        if items:
            lines = [
                f"- [{item.kind}/{item.status}] {item.original_text[:CHAT_ITEM_PREVIEW_CHARS]}"
                for item in items[:CHAT_ITEM_LIMIT]
            ]
            addressed = sum(1 for item in items if item.is_addressed)
            lines.insert(0, f"{len(items)} requirements, {addressed} addressed.")
            blocks.append(f"{REQUIREMENTS_HEADER}\n" + "\n".join(lines))

        hits = await self._safe_search(project_id, query, text_search_config)
        if hits:
            body = KNOWLEDGE_SEPARATOR.join(f"[{round(hit.score * 100)}%] {hit.content}" for hit in hits)
            blocks.append(f"{KNOWLEDGE_HEADER}\n{body}")

        return "\n\n".join(blocks)

    async def _safe_search(
        self, project_id: UUID, query: str, text_search_config: Optional[str]
    ) -> List[SearchResult]:
        try:
            return await self.retriever.search(
                project_id, query, limit=CONTEXT_SEARCH_LIMIT, text_search_config=text_search_config
            )
        except Exception as e:
            LOGGER.warning(
                f"Knowledge search failed, continuing without it: {e}",
                extra={"project_id": str(project_id)},
            )
            return []
