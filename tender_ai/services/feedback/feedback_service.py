"""Review and curation of feedback extracted from evaluation reports."""

from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.exceptions import NotFoundError, ValidationError
from tender_ai.database.models import AnalysisFeedback
from tender_ai.repositories.feedback_repository import AnalysisFeedbackRepository
from tender_ai.repositories.outline_repository import ExtractedItemRepository
from tender_ai.schemas.enums import FeedbackSeverity, FeedbackType
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FEEDBACK_FIELDS = {"is_addressed", "content", "severity", "feedback_type", "extracted_item_id"}


class FeedbackService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.feedback_repo = AnalysisFeedbackRepository(session)
        self.item_repo = ExtractedItemRepository(session)

    async def list_feedback(self, project_id: UUID) -> List[AnalysisFeedback]:
        """Newest first."""
        return await self.feedback_repo.list_newest_first(project_id)

    async def get_feedback(self, project_id: UUID, feedback_id: UUID) -> AnalysisFeedback:
        feedback = await self.feedback_repo.get_by_id(feedback_id)
        if feedback is None or feedback.project_id != project_id:
            raise NotFoundError(f"Feedback {feedback_id} not found")
        return feedback

    async def update_feedback(self, project_id: UUID, feedback_id: UUID, **changes) -> AnalysisFeedback:
        """Apply reviewer edits: mark addressed, reword, reclassify or relink.

        Raises:
            NotFoundError: If the feedback or the target item is not in the project
            ValidationError: On unknown fields or invalid enum values
        """
        unknown = set(changes) - _FEEDBACK_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update feedback fields: {', '.join(sorted(unknown))}")
        # extracted_item_id=None unlinks; None elsewhere means unchanged
        changes = {k: v for k, v in changes.items() if v is not None or k == "extracted_item_id"}
        await self.get_feedback(project_id, feedback_id)

        try:
            if changes.get("severity") is not None:
                changes["severity"] = FeedbackSeverity(changes["severity"]).value
            if changes.get("feedback_type") is not None:
                changes["feedback_type"] = FeedbackType(changes["feedback_type"]).value
        except ValueError as e:
            raise ValidationError(f"Invalid feedback classification: {e}", e) from e
        if changes.get("content") is not None and not changes["content"].strip():
            raise ValidationError("Feedback content cannot be empty")
        if changes.get("extracted_item_id") is not None:
            item = await self.item_repo.get_by_id(changes["extracted_item_id"])
            if item is None or item.project_id != project_id:
                raise NotFoundError(f"Extracted item {changes['extracted_item_id']} not found")

        feedback = await self.feedback_repo.update(feedback_id, **changes)
        LOGGER.info(
            f"Feedback {feedback_id} updated",
            extra={"project_id": str(project_id), "fields": sorted(changes)},
        )
        return feedback

    async def delete_feedback(self, project_id: UUID, feedback_id: UUID) -> None:
        await self.get_feedback(project_id, feedback_id)
        await self.feedback_repo.delete(feedback_id)
