"""Model catalogue plus user-default and project-override AI settings."""

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.exceptions import NotFoundError, ValidationError
from tender_ai.repositories.project_repository import ProfileRepository, ProjectRepository
from tender_ai.schemas.enums import Operation
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.ai.model_registry import DEFAULT_MODELS, is_registered, list_models, supports_operation
from tender_ai.services.ai.prompts import PROMPTS
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)


def validate_overrides(
    models: Optional[Dict[str, str]], prompts: Optional[Dict[str, str]]
) -> None:
    """Reject unknown operations and models that cannot serve their operation.

    The embedding model is not overridable (only its current value is accepted):
    every stored chunk vector must come from the deployment's single embedder.

    Raises:
        ValidationError: On the first invalid entry
    """
    operations = {op.value for op in Operation}
    for operation, model_id in (models or {}).items():
        if operation not in operations:
            raise ValidationError(f"Unknown operation '{operation}'")
        if operation == Operation.EMBEDDING.value and model_id != DEFAULT_MODELS[Operation.EMBEDDING]:
            raise ValidationError("The embedding model is set by server configuration and cannot be overridden")
        if not is_registered(model_id):
            raise ValidationError(f"Unknown model '{model_id}' for operation '{operation}'")
        if not supports_operation(model_id, Operation(operation)):
            raise ValidationError(f"Model '{model_id}' is an embedding model and cannot be used for '{operation}'")
    for operation in (prompts or {}):
        if operation not in operations:
            raise ValidationError(f"Unknown operation '{operation}'")


class SettingsService:
    def __init__(self, session: AsyncSession, gateway: GenerationGateway):
        self.session = session
        self.gateway = gateway
        self.profile_repo = ProfileRepository(session)
        self.project_repo = ProjectRepository(session)

    def get_models(self) -> Dict[str, Any]:
        return {
            "models": list_models(self.gateway.configured_providers()),
            "defaults": {op.value: model_id for op, model_id in DEFAULT_MODELS.items()},
        }

    async def get_user_preferences(self, user_id: str) -> Dict[str, Any]:
        """User defaults, falling back to the system tables for unset operations."""
        profile = await self.profile_repo.get_by_user_id(user_id)
        models = {op.value: model_id for op, model_id in DEFAULT_MODELS.items()}
        prompts = {op.value: prompt for op, prompt in PROMPTS.items()}
        if profile is not None:
            models.update(profile.default_models or {})
            prompts.update(profile.default_prompts or {})
        return {"models": models, "prompts": prompts}

    async def update_user_preferences(
        self,
        user_id: str,
        models: Optional[Dict[str, str]] = None,
        prompts: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        validate_overrides(models, prompts)
        profile = await self.profile_repo.get_or_create(user_id)
        changes = {}
        if models is not None:
            changes["default_models"] = models
        if prompts is not None:
            changes["default_prompts"] = prompts
        if changes:
            await self.profile_repo.update(profile.id, **changes)
            LOGGER.info("User AI defaults updated", extra={"user_id": user_id, "fields": sorted(changes)})
        return await self.get_user_preferences(user_id)

    async def get_project_settings(self, project_id: UUID) -> Dict[str, Any]:
        project = await self.project_repo.get_by_id(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return {
            "models": dict(project.model_overrides or {}),
            "prompts": dict(project.prompt_overrides or {}),
            "content_language": project.content_language,
        }

    async def update_project_settings(
        self,
        project_id: UUID,
        models: Optional[Dict[str, str]] = None,
        prompts: Optional[Dict[str, str]] = None,
        content_language: Optional[str] = None,
    ) -> Dict[str, Any]:
        validate_overrides(models, prompts)
        changes: Dict[str, Any] = {}
        if models is not None:
            changes["model_overrides"] = models
        if prompts is not None:
            changes["prompt_overrides"] = prompts
        if content_language is not None:
            changes["content_language"] = content_language
        project = await self.project_repo.update(project_id, **changes)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return await self.get_project_settings(project_id)
