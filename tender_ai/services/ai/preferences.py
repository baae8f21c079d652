"""Per-request view of a project's and user's model/prompt overrides."""

from dataclasses import dataclass, field
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.config import settings
from tender_ai.core.exceptions import NotFoundError
from tender_ai.repositories.project_repository import ProfileRepository, ProjectRepository
from tender_ai.schemas.enums import Operation
from tender_ai.services.ai.model_resolver import resolve_model, resolve_prompt


@dataclass
class AIPreferences:
    project_models: Dict[str, str] = field(default_factory=dict)
    user_models: Dict[str, str] = field(default_factory=dict)
    project_prompts: Dict[str, str] = field(default_factory=dict)
    user_prompts: Dict[str, str] = field(default_factory=dict)
    text_search_config: str = settings.retrieval.text_search_config

    def model(self, operation: Operation) -> str:
        return resolve_model(operation, self.project_models, self.user_models)

    def prompt(self, operation: Operation) -> str:
        return resolve_prompt(operation, self.project_prompts, self.user_prompts)


async def load_preferences(
    session: AsyncSession, project_id: UUID, user_id: Optional[str] = None
) -> AIPreferences:
    """Read the project's overrides and, when a user is given, their defaults.

    Raises:
        NotFoundError: If the project does not exist
    """
    project = await ProjectRepository(session).get_by_id(project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    preferences = AIPreferences(
        project_models=dict(project.model_overrides or {}),
        project_prompts=dict(project.prompt_overrides or {}),
        text_search_config=project.content_language or settings.retrieval.text_search_config,
    )
    if user_id:
        profile = await ProfileRepository(session).get_by_user_id(user_id)
        if profile is not None:
            preferences.user_models = dict(profile.default_models or {})
            preferences.user_prompts = dict(profile.default_prompts or {})
    return preferences
