from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import Document
from tender_ai.repositories.base_repository import BaseRepository


class DocumentRepository(BaseRepository[Document]):
    """Repository for uploaded documents."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Document)

    async def list_by_type(
        self, project_id: UUID, file_types: Iterable[str]
    ) -> List[Document]:
        """Documents of the given file types, oldest first."""
        types = [str(getattr(t, "value", t)) for t in file_types]
        result = await self.session.execute(
            select(Document)
            .where(Document.project_id == project_id, Document.file_type.in_(types))
            .order_by(Document.created_at)
        )
        return list(result.scalars().all())

    async def first_by_type(self, project_id: UUID, file_type: str) -> Optional[Document]:
        documents = await self.list_by_type(project_id, [file_type])
        return documents[0] if documents else None
