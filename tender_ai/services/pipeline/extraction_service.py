"""Stage 2: extract questions and conditions from RFP documents."""

from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import OutlineSection
from tender_ai.repositories.document_repository import DocumentRepository
from tender_ai.repositories.outline_repository import ExtractedItemRepository, OutlineSectionRepository
from tender_ai.schemas.enums import FileType, ItemKind, ItemStatus, Operation
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.ai.preferences import AIPreferences
from tender_ai.services.ai.prompts import build_extraction_prompt
from tender_ai.services.jobs.progress_tracker import ProgressReporter
from tender_ai.services.pipeline.matching import match_section
from tender_ai.utils.json_parser import parse_json_list
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def build_item_rows(
    project_id: UUID,
    document_id: UUID,
    raw_items: List[Any],
    sections: Sequence[OutlineSection],
    start_position: int = 0,
) -> List[Dict[str, Any]]:
    """Turn model output into extracted_items rows, assigning each to a section."""
    rows = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        text = str(raw.get("originalText") or raw.get("text") or "").strip()
        if not text:
            continue
        reference = raw.get("sectionReference")
        reference = str(reference).strip() if reference not in (None, "") else None
        kind = ItemKind.CONDITION if str(raw.get("kind", "")).lower() == ItemKind.CONDITION.value else ItemKind.QUESTION
        themes = raw.get("aiThemes") or []
        rows.append({
            "project_id": project_id,
            "source_document_id": document_id,
            "outline_section_id": match_section(reference, sections),
            "kind": kind.value,
            "original_text": text,
            "section_reference": reference,
            "source_page": _optional_int(raw.get("sourcePage")),
            "ai_themes": [str(t) for t in themes] if isinstance(themes, list) else [],
            "position": start_position + len(rows),
            "status": ItemStatus.PENDING.value,
            "is_addressed": False,
        })
    return rows


class ItemExtractionService:
    """Replaces a project's extracted items, one model call per RFP document.

    A document whose response cannot be parsed is logged and skipped.
    """

    def __init__(self, session: AsyncSession, gateway: GenerationGateway):
        self.session = session
        self.gateway = gateway
        self.document_repo = DocumentRepository(session)
        self.section_repo = OutlineSectionRepository(session)
        self.item_repo = ExtractedItemRepository(session)

    async def run(
        self,
        project_id: UUID,
        preferences: AIPreferences,
        report: Optional[ProgressReporter] = None,
    ) -> str:
        await self.item_repo.delete_by_project(project_id)

        sections = await self.section_repo.list_ordered(project_id)
        rfps = [doc for doc in await self.document_repo.list_by_type(project_id, [FileType.RFP]) if doc.extracted_text]

        model = preferences.model(Operation.EXTRACTION)
        system_prompt = preferences.prompt(Operation.EXTRACTION)
        questions = conditions = 0
        position = 0

        for index, document in enumerate(rfps):
            response = await self.gateway.generate(
                model,
                system_prompt,
                build_extraction_prompt(document.extracted_text, [s.title for s in sections]),
            )
            raw_items = parse_json_list(response, ("items", "requirements"))
            if raw_items is None:
                LOGGER.warning(
                    f"Could not parse extraction output for document {document.id}, skipping",
                    extra={"project_id": str(project_id), "document": document.filename},
                )
            else:
                rows = build_item_rows(project_id, document.id, raw_items, sections, position)
                await self.item_repo.create_many(rows)
                position += len(rows)
                conditions += sum(1 for r in rows if r["kind"] == ItemKind.CONDITION.value)
                questions += sum(1 for r in rows if r["kind"] == ItemKind.QUESTION.value)

            if report:
                await report((index + 1) / len(rfps) * 100, f"Processed {document.filename}")

        LOGGER.info(
            "Item extraction finished",
            extra={"project_id": str(project_id), "questions": questions, "conditions": conditions},
        )
        return f"{questions + conditions} items extracted ({questions} questions, {conditions} conditions)"
