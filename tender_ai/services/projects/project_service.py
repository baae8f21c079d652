from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.config import settings
from tender_ai.core.exceptions import NotFoundError, ValidationError
from tender_ai.database.models import Project
from tender_ai.repositories.project_repository import ProjectRepository
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ProjectService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ProjectRepository(session)

    async def create_project(
        self,
        name: str,
        owner_id: Optional[str] = None,
        description: Optional[str] = None,
        content_language: Optional[str] = None,
    ) -> Project:
        if not name or not name.strip():
            raise ValidationError("Project name is required")
        project = await self.repo.create(
            name=name.strip(),
            owner_id=owner_id,
            description=description,
            content_language=content_language or settings.retrieval.text_search_config,
            model_overrides={},
            prompt_overrides={},
        )
        LOGGER.info(f"Project created: {project.name}", extra={"project_id": str(project.id), "owner_id": owner_id})
        return project

    async def list_projects(self, owner_id: Optional[str] = None, skip: int = 0, limit: int = 50) -> List[Project]:
        filters = {"owner_id": owner_id} if owner_id else None
        return await self.repo.get_all(skip=skip, limit=limit, filters=filters)

    async def get_project(self, project_id: UUID) -> Project:
        project = await self.repo.get_by_id(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project
