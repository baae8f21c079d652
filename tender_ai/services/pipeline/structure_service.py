"""Stage 1: derive the response outline and one draft group per section."""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.exceptions import StructureAnalysisError
from tender_ai.repositories.document_repository import DocumentRepository
from tender_ai.repositories.outline_repository import DraftGroupRepository, OutlineSectionRepository
from tender_ai.schemas.enums import DraftStatus, FileType, Operation, SectionSource
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.ai.preferences import AIPreferences
from tender_ai.services.ai.prompts import build_structure_prompt
from tender_ai.services.jobs.progress_tracker import ProgressReporter
from tender_ai.utils.json_parser import parse_json_list
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

_SOURCES = {s.value for s in SectionSource}


def normalize_sections(raw_sections: List[Any]) -> List[Dict[str, Any]]:
    """Keep entries with a title; default position to list index and source to ai_suggested."""
    sections = []
    for index, raw in enumerate(raw_sections):
        if not isinstance(raw, dict):
            continue
        title = str(raw.get("title") or "").strip()
        if not title:
            continue
        try:
            position = int(raw.get("position", index))
        except (TypeError, ValueError):
            position = index
        source = str(raw.get("source") or "").lower()
        sections.append({
            "title": title,
            "description": raw.get("description") or None,
            "position": position,
            "source": source if source in _SOURCES else SectionSource.AI_SUGGESTED.value,
        })
    return sections


class StructureAnalysisService:
    """Replaces a project's outline sections and draft groups from its RFP and template."""

    def __init__(self, session: AsyncSession, gateway: GenerationGateway):
        self.session = session
        self.gateway = gateway
        self.document_repo = DocumentRepository(session)
        self.section_repo = OutlineSectionRepository(session)
        self.draft_group_repo = DraftGroupRepository(session)

    async def run(
        self,
        project_id: UUID,
        preferences: AIPreferences,
        report: Optional[ProgressReporter] = None,
    ) -> str:
        # Prior outline is removed before generation so a failed run leaves nothing stale
        await self.draft_group_repo.delete_by_project(project_id)
        await self.section_repo.delete_by_project(project_id)

        template = await self.document_repo.first_by_type(project_id, FileType.TEMPLATE)
        rfps = await self.document_repo.list_by_type(project_id, [FileType.RFP])
        rfp_texts = [doc.extracted_text for doc in rfps if doc.extracted_text]
        template_text = template.extracted_text if template else None

        if not rfp_texts and not template_text:
            LOGGER.warning("No RFP or template text to analyse", extra={"project_id": str(project_id)})
            return "No documents to analyse"

        if report:
            await report(30, "Analysing document structure")

        response = await self.gateway.generate(
            preferences.model(Operation.STRUCTURE),
            preferences.prompt(Operation.STRUCTURE),
            build_structure_prompt(template_text, rfp_texts),
        )
        raw_sections = parse_json_list(response, ("sections",))
        if raw_sections is None:
            raise StructureAnalysisError("Structure analysis returned no parseable section list")

        if report:
            await report(70, "Creating outline sections")

        sections = await self.section_repo.create_many(
            [{"project_id": project_id, **row} for row in normalize_sections(raw_sections)]
        )

        drafting_model = preferences.model(Operation.DRAFTING)
        drafting_prompt = preferences.prompt(Operation.DRAFTING)
        await self.draft_group_repo.create_many([
            {
                "project_id": project_id,
                "outline_section_id": section.id,
                "model_id": drafting_model,
                "system_prompt": drafting_prompt,
                "status": DraftStatus.PENDING.value,
            }
            for section in sections
        ])

        LOGGER.info(
            f"Outline created with {len(sections)} sections",
            extra={"project_id": str(project_id), "model": drafting_model},
        )
        return f"{len(sections)} sections identified"
