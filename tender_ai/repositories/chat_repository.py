from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import ChatMessage, QueueDeadLetter
from tender_ai.repositories.base_repository import BaseRepository


class ChatMessageRepository(BaseRepository[ChatMessage]):
    """Repository for project chat history."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ChatMessage)

    async def recent(self, project_id: UUID, limit: int = 20) -> List[ChatMessage]:
        """Most recent messages, returned oldest first."""
        result = await self.session.execute(
            select(ChatMessage)
            .where(ChatMessage.project_id == project_id)
            .order_by(ChatMessage.created_at.desc())
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))


class DeadLetterRepository(BaseRepository[QueueDeadLetter]):
    """Repository for queue messages that exhausted their deliveries."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, QueueDeadLetter)
