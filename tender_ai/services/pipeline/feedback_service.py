"""Stage 4: extract feedback from evaluation reports and link it to items."""

from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import ExtractedItem
from tender_ai.repositories.document_repository import DocumentRepository
from tender_ai.repositories.feedback_repository import AnalysisFeedbackRepository
from tender_ai.repositories.outline_repository import ExtractedItemRepository
from tender_ai.schemas.enums import FeedbackSeverity, FeedbackType, FileType, Operation
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.ai.preferences import AIPreferences
from tender_ai.services.ai.prompts import build_feedback_prompt
from tender_ai.services.jobs.progress_tracker import ProgressReporter
from tender_ai.services.pipeline.matching import match_item
from tender_ai.utils.json_parser import parse_json_list
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

_TYPES = {t.value for t in FeedbackType}
_SEVERITIES = {s.value for s in FeedbackSeverity}


def build_feedback_rows(
    project_id: UUID,
    document_id: UUID,
    raw_feedback: List[Any],
    items: Sequence[ExtractedItem],
) -> List[Dict[str, Any]]:
    rows = []
    for raw in raw_feedback:
        if not isinstance(raw, dict):
            continue
        content = str(raw.get("content") or "").strip()
        if not content:
            continue
        reference = raw.get("sectionReference")
        reference = str(reference).strip() if reference not in (None, "") else None
        feedback_type = str(raw.get("feedbackType") or "").lower()
        severity = str(raw.get("severity") or "").lower()
        rows.append({
            "project_id": project_id,
            "source_document_id": document_id,
            "extracted_item_id": match_item(reference, items),
            "feedback_type": feedback_type if feedback_type in _TYPES else FeedbackType.COMMENT.value,
            "severity": severity if severity in _SEVERITIES else FeedbackSeverity.INFO.value,
            "content": content,
            "section_reference": reference,
            "is_addressed": False,
        })
    return rows


class FeedbackExtractionService:
    """Replaces a project's feedback from its analysis report documents."""

    def __init__(self, session: AsyncSession, gateway: GenerationGateway):
        self.session = session
        self.gateway = gateway
        self.document_repo = DocumentRepository(session)
        self.item_repo = ExtractedItemRepository(session)
        self.feedback_repo = AnalysisFeedbackRepository(session)

    async def run(
        self,
        project_id: UUID,
        preferences: AIPreferences,
        report: Optional[ProgressReporter] = None,
    ) -> str:
        reports = [
            doc for doc in await self.document_repo.list_by_type(project_id, [FileType.ANALYSIS_REPORT])
            if doc.extracted_text
        ]
        await self.feedback_repo.delete_by_project(project_id)
        if not reports:
            return "No analysis reports to process"

        items = await self.item_repo.list_ordered(project_id)
        model = preferences.model(Operation.FEEDBACK)
        system_prompt = preferences.prompt(Operation.FEEDBACK)
        total = linked = 0

        for index, document in enumerate(reports):
            response = await self.gateway.generate(
                model, system_prompt, build_feedback_prompt(document.extracted_text)
            )
            raw_feedback = parse_json_list(response, ("feedback", "observations"))
            if raw_feedback is None:
                LOGGER.warning(
                    f"Could not parse feedback output for document {document.id}, skipping",
                    extra={"project_id": str(project_id), "document": document.filename},
                )
            else:
                rows = build_feedback_rows(project_id, document.id, raw_feedback, items)
                await self.feedback_repo.create_many(rows)
                total += len(rows)
                linked += sum(1 for r in rows if r["extracted_item_id"] is not None)

            if report:
                await report((index + 1) / len(reports) * 100, f"Processed {document.filename}")

        return f"{total} feedback items extracted ({linked} linked to requirements)"
