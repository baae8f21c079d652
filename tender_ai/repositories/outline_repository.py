from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import DraftGroup, ExtractedItem, OutlineSection
from tender_ai.repositories.base_repository import BaseRepository
from tender_ai.schemas.enums import DraftStatus, ItemStatus


class OutlineSectionRepository(BaseRepository[OutlineSection]):
    """Repository for outline sections."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, OutlineSection)

    async def list_ordered(self, project_id: UUID) -> List[OutlineSection]:
        return await self.list_by_project(project_id, order_by=OutlineSection.position)

    async def next_position(self, project_id: UUID) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.max(OutlineSection.position), -1))
            .where(OutlineSection.project_id == project_id)
        )
        return result.scalar_one() + 1

    async def reorder(self, project_id: UUID, section_ids: List[UUID]) -> None:
        """Assign positions following the given id order."""
        try:
            for position, section_id in enumerate(section_ids):
                await self.session.execute(
                    update(OutlineSection)
                    .where(OutlineSection.id == section_id, OutlineSection.project_id == project_id)
                    .values(position=position)
                )
            await self.session.commit()
        except SQLAlchemyError as e:
            self.logger.error(f"Error reordering sections for project {project_id}: {e}", exc_info=True)
            raise


class ExtractedItemRepository(BaseRepository[ExtractedItem]):
    """Repository for extracted questions and conditions."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ExtractedItem)

    async def list_ordered(self, project_id: UUID) -> List[ExtractedItem]:
        return await self.list_by_project(project_id, order_by=ExtractedItem.position)

    async def list_by_section(self, section_id: UUID) -> List[ExtractedItem]:
        result = await self.session.execute(
            select(ExtractedItem)
            .where(ExtractedItem.outline_section_id == section_id)
            .order_by(ExtractedItem.position)
        )
        return list(result.scalars().all())

    async def mark_section_drafted(self, section_id: UUID) -> int:
        """Move the section's pending items to drafted.

        Returns:
            Number of items updated
        """
        try:
            result = await self.session.execute(
                update(ExtractedItem)
                .where(
                    ExtractedItem.outline_section_id == section_id,
                    ExtractedItem.status == ItemStatus.PENDING.value,
                )
                .values(status=ItemStatus.DRAFTED.value)
            )
            await self.session.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating item status for section {section_id}: {e}", exc_info=True)
            raise


class DraftGroupRepository(BaseRepository[DraftGroup]):
    """Repository for draft groups (one per outline section)."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, DraftGroup)

    async def get_by_section(self, section_id: UUID) -> Optional[DraftGroup]:
        result = await self.session.execute(
            select(DraftGroup).where(DraftGroup.outline_section_id == section_id)
        )
        return result.scalar_one_or_none()

    async def list_with_sections(self, project_id: UUID) -> List[DraftGroup]:
        """Draft groups ordered by their section position."""
        result = await self.session.execute(
            select(DraftGroup)
            .join(OutlineSection, DraftGroup.outline_section_id == OutlineSection.id)
            .where(DraftGroup.project_id == project_id)
            .order_by(OutlineSection.position)
        )
        return list(result.scalars().all())

    async def list_pending(self, project_id: UUID) -> List[DraftGroup]:
        groups = await self.list_with_sections(project_id)
        return [g for g in groups if g.status == DraftStatus.PENDING.value]

    async def set_status(self, draft_group_id: UUID, status: str) -> Optional[DraftGroup]:
        return await self.update(draft_group_id, status=str(getattr(status, "value", status)))
