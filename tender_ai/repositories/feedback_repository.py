from typing import List
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import AnalysisFeedback
from tender_ai.repositories.base_repository import BaseRepository


class AnalysisFeedbackRepository(BaseRepository[AnalysisFeedback]):
    """Repository for report feedback."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, AnalysisFeedback)

    async def list_for_items(self, project_id: UUID, item_ids: List[UUID]) -> List[AnalysisFeedback]:
        """Feedback linked to any of the items, plus the project's unlinked feedback."""
        link_filter = AnalysisFeedback.extracted_item_id.is_(None)
        if item_ids:
            link_filter = or_(AnalysisFeedback.extracted_item_id.in_(item_ids), link_filter)
        result = await self.session.execute(
            select(AnalysisFeedback)
            .where(AnalysisFeedback.project_id == project_id, link_filter)
            .order_by(AnalysisFeedback.created_at)
        )
        return list(result.scalars().all())

    async def list_newest_first(self, project_id: UUID) -> List[AnalysisFeedback]:
        return await self.list_by_project(project_id, order_by=AnalysisFeedback.created_at.desc())
