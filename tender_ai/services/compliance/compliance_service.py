"""Compliance report: deterministic coverage metrics plus an optional AI assessment."""

from typing import Any, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import AnalysisFeedback, DraftGroup, ExtractedItem
from tender_ai.repositories.feedback_repository import AnalysisFeedbackRepository
from tender_ai.repositories.outline_repository import DraftGroupRepository, ExtractedItemRepository
from tender_ai.schemas.compliance import ComplianceReport, ComplianceStats, ComplianceWarning
from tender_ai.schemas.enums import DraftStatus, FeedbackSeverity, ItemKind, Operation
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.ai.preferences import AIPreferences
from tender_ai.services.ai.prompts import build_compliance_prompt
from tender_ai.utils.json_parser import parse_json_object
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

WARNING_TEXT_CHARS = 100
PROMPT_ITEM_CHARS = 200

_BLOCKING_SEVERITIES = {FeedbackSeverity.CRITICAL.value, FeedbackSeverity.MAJOR.value}
_UNDRAFTED_STATUSES = {DraftStatus.PENDING.value, DraftStatus.GENERATING.value}


def coverage_percent(addressed: int, total: int) -> int:
    """Rounded share of addressed items; 0 for a project with no items."""
    if total <= 0:
        return 0
    # Half-up, so 12.5 reports as 13
    return int(addressed * 100 / total + 0.5)


def compute_stats(
    items: Sequence[ExtractedItem],
    groups: Sequence[DraftGroup],
    feedback: Sequence[AnalysisFeedback],
) -> ComplianceStats:
    addressed = sum(1 for item in items if item.is_addressed)
    return ComplianceStats(
        total_items=len(items),
        questions=sum(1 for item in items if item.kind == ItemKind.QUESTION.value),
        conditions=sum(1 for item in items if item.kind == ItemKind.CONDITION.value),
        addressed_items=addressed,
        pending_items=len(items) - addressed,
        draft_groups_total=len(groups),
        draft_groups_drafted=sum(1 for g in groups if g.status not in _UNDRAFTED_STATUSES),
        feedback_addressed=sum(1 for fb in feedback if fb.is_addressed),
        feedback_total=len(feedback),
    )


def build_warnings(
    items: Sequence[ExtractedItem],
    groups: Sequence[DraftGroup],
    feedback: Sequence[AnalysisFeedback],
) -> List[ComplianceWarning]:
    """Deterministic warnings, grouped by origin in a stable order."""
    warnings = []
    for item in items:
        if item.kind == ItemKind.QUESTION.value and not item.is_addressed:
            reference = f"{item.section_reference} " if item.section_reference else ""
            warnings.append(ComplianceWarning(
                extracted_item_id=item.id,
                message=f"Unanswered question: {reference}{item.original_text[:WARNING_TEXT_CHARS]}",
                severity=FeedbackSeverity.CRITICAL.value,
            ))
    for item in items:
        if item.kind == ItemKind.CONDITION.value and not item.is_addressed:
            warnings.append(ComplianceWarning(
                extracted_item_id=item.id,
                message=f"Unconfirmed condition: {item.original_text[:WARNING_TEXT_CHARS]}",
                severity=FeedbackSeverity.MAJOR.value,
            ))
    for fb in feedback:
        if not fb.is_addressed and fb.severity in _BLOCKING_SEVERITIES:
            warnings.append(ComplianceWarning(
                extracted_item_id=fb.extracted_item_id,
                message=f"Unaddressed {fb.severity} feedback: {fb.content[:WARNING_TEXT_CHARS]}",
                severity=fb.severity,
            ))
    for group in groups:
        if group.status == DraftStatus.PENDING.value:
            warnings.append(ComplianceWarning(
                extracted_item_id=None,
                message=f"Section not drafted yet (draft group {group.id})",
                severity=FeedbackSeverity.MAJOR.value,
            ))
    return warnings


def _parse_ai_warnings(raw: Any) -> List[ComplianceWarning]:
    if not isinstance(raw, list):
        return []
    parsed = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("message"):
            continue
        item_id = entry.get("itemId") or entry.get("extractedItemId")
        try:
            item_uuid = UUID(str(item_id)) if item_id else None
        except ValueError:
            item_uuid = None
        parsed.append(ComplianceWarning(
            extracted_item_id=item_uuid,
            message=str(entry["message"]),
            severity=str(entry.get("severity") or FeedbackSeverity.INFO.value).lower(),
        ))
    return parsed


def _clamp_score(value: Any) -> Optional[int]:
    try:
        return max(0, min(100, round(float(value))))
    except (TypeError, ValueError):
        return None


class ComplianceAggregator:
    """Builds a project's compliance report.

    The AI pass runs only once at least one item is addressed. It can
    override the quality score and summary and append warnings; when it
    fails or returns something unparseable the deterministic report is
    returned unchanged.
    """

    def __init__(self, session: AsyncSession, gateway: GenerationGateway):
        self.session = session
        self.gateway = gateway
        self.item_repo = ExtractedItemRepository(session)
        self.draft_group_repo = DraftGroupRepository(session)
        self.feedback_repo = AnalysisFeedbackRepository(session)

    async def generate_report(self, project_id: UUID, preferences: AIPreferences) -> ComplianceReport:
        items = await self.item_repo.list_ordered(project_id)
        groups = await self.draft_group_repo.list_by_project(project_id)
        feedback = await self.feedback_repo.list_by_project(project_id)

        stats = compute_stats(items, groups, feedback)
        coverage = coverage_percent(stats.addressed_items, stats.total_items)
        report = ComplianceReport(
            quality_score=coverage,
            coverage_percent=coverage,
            summary=(
                f"{stats.addressed_items}/{stats.total_items} items addressed ({coverage}% coverage), "
                f"{stats.draft_groups_drafted}/{stats.draft_groups_total} sections drafted"
            ),
            warnings=build_warnings(items, groups, feedback),
            stats=stats,
        )

        if stats.addressed_items > 0:
            await self._apply_ai_assessment(report, items, feedback, preferences)

        LOGGER.info(
            "Compliance report generated",
            extra={
                "project_id": str(project_id),
                "coverage": coverage,
                "quality_score": report.quality_score,
                "warnings": len(report.warnings),
            },
        )
        return report

    async def _apply_ai_assessment(
        self,
        report: ComplianceReport,
        items: Sequence[ExtractedItem],
        feedback: Sequence[AnalysisFeedback],
        preferences: AIPreferences,
    ) -> None:
        unaddressed = [
            {
                "itemId": str(item.id),
                "kind": item.kind,
                "sectionReference": item.section_reference,
                "text": item.original_text[:PROMPT_ITEM_CHARS],
            }
            for item in items
            if not item.is_addressed
        ]
        open_feedback = [
            {
                "itemId": str(fb.extracted_item_id) if fb.extracted_item_id else None,
                "type": fb.feedback_type,
                "severity": fb.severity,
                "sectionReference": fb.section_reference,
                "content": fb.content[:PROMPT_ITEM_CHARS],
            }
            for fb in feedback
            if not fb.is_addressed
        ]
        try:
            response = await self.gateway.generate(
                preferences.model(Operation.COMPLIANCE),
                preferences.prompt(Operation.COMPLIANCE),
                build_compliance_prompt(report.stats.model_dump(by_alias=True), unaddressed, open_feedback),
            )
        except Exception as e:
            LOGGER.warning(f"AI compliance assessment failed, keeping computed values: {e}")
            return

        parsed = parse_json_object(response)
        if parsed is None:
            LOGGER.warning("AI compliance assessment was not parseable, keeping computed values")
            return

        score = _clamp_score(parsed.get("qualityScore"))
        if score is not None:
            report.quality_score = score
        if isinstance(parsed.get("summary"), str) and parsed["summary"].strip():
            report.summary = parsed["summary"].strip()
        report.warnings.extend(_parse_ai_warnings(parsed.get("warnings")))
