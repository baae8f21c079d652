"""Manual outline maintenance and extracted-item editing."""

from collections import OrderedDict
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.exceptions import NotFoundError, ValidationError
from tender_ai.database.models import ExtractedItem, OutlineSection
from tender_ai.repositories.outline_repository import (
    DraftGroupRepository,
    ExtractedItemRepository,
    OutlineSectionRepository,
)
from tender_ai.schemas.enums import DraftStatus, ItemStatus, Operation, SectionSource
from tender_ai.services.ai.preferences import AIPreferences
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

UNCLASSIFIED_THEME = "unclassified"

_SECTION_FIELDS = {"title", "description", "parent_id", "position"}
_ITEM_FIELDS = {"is_addressed", "response_text", "status", "outline_section_id"}


def group_items_by_theme(items: Sequence[ExtractedItem]) -> Dict[str, List[ExtractedItem]]:
    """Items keyed by AI theme, first-seen order; an item appears under each of its themes."""
    grouped: Dict[str, List[ExtractedItem]] = OrderedDict()
    for item in items:
        for theme in item.ai_themes or [UNCLASSIFIED_THEME]:
            grouped.setdefault(theme, []).append(item)
    return grouped


class OutlineService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.section_repo = OutlineSectionRepository(session)
        self.item_repo = ExtractedItemRepository(session)
        self.draft_group_repo = DraftGroupRepository(session)

    async def list_sections(self, project_id: UUID) -> List[OutlineSection]:
        return await self.section_repo.list_ordered(project_id)

    async def create_section(
        self,
        project_id: UUID,
        title: str,
        preferences: AIPreferences,
        description: Optional[str] = None,
        parent_id: Optional[UUID] = None,
        position: Optional[int] = None,
    ) -> OutlineSection:
        """Add a manual section together with its draft group."""
        if not title or not title.strip():
            raise ValidationError("Section title is required")
        if position is None:
            position = await self.section_repo.next_position(project_id)

        section = await self.section_repo.create(
            project_id=project_id,
            title=title.strip(),
            description=description,
            parent_id=parent_id,
            position=position,
            source=SectionSource.MANUAL.value,
        )
        await self.draft_group_repo.create(
            project_id=project_id,
            outline_section_id=section.id,
            model_id=preferences.model(Operation.DRAFTING),
            system_prompt=preferences.prompt(Operation.DRAFTING),
            status=DraftStatus.PENDING.value,
        )
        LOGGER.info(f"Manual section created: {section.title}", extra={"project_id": str(project_id)})
        return section

    async def update_section(self, section_id: UUID, **changes) -> OutlineSection:
        unknown = set(changes) - _SECTION_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update section fields: {', '.join(sorted(unknown))}")
        section = await self.section_repo.update(section_id, **changes)
        if section is None:
            raise NotFoundError(f"Outline section {section_id} not found")
        return section

    async def delete_section(self, section_id: UUID) -> None:
        """Delete a section; its draft group goes with it and its items become unassigned."""
        if not await self.section_repo.delete(section_id):
            raise NotFoundError(f"Outline section {section_id} not found")

    async def reorder(self, project_id: UUID, section_ids: List[UUID]) -> List[OutlineSection]:
        await self.section_repo.reorder(project_id, section_ids)
        return await self.section_repo.list_ordered(project_id)

    async def list_items(self, project_id: UUID) -> List[ExtractedItem]:
        return await self.item_repo.list_ordered(project_id)

    async def items_by_theme(self, project_id: UUID) -> Dict[str, List[ExtractedItem]]:
        return group_items_by_theme(await self.item_repo.list_ordered(project_id))

    async def update_item(self, item_id: UUID, **changes) -> ExtractedItem:
        unknown = set(changes) - _ITEM_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update item fields: {', '.join(sorted(unknown))}")
        if "status" in changes:
            try:
                changes["status"] = ItemStatus(changes["status"]).value
            except ValueError as e:
                raise ValidationError(f"Invalid item status '{changes['status']}'", e) from e
        item = await self.item_repo.update(item_id, **changes)
        if item is None:
            raise NotFoundError(f"Extracted item {item_id} not found")
        return item
