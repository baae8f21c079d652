"""Unit tests for AI settings."""

from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from tender_ai.core.exceptions import NotFoundError, ValidationError
from tender_ai.schemas.enums import Operation
from tender_ai.services.ai.model_registry import DEFAULT_MODELS
from tender_ai.services.ai.prompts import PROMPTS
from tender_ai.services.settings.settings_service import SettingsService, validate_overrides


@pytest.fixture
def service(mock_session, mock_gateway):
    service = SettingsService(mock_session, mock_gateway)
    service.profile_repo = AsyncMock()
    service.project_repo = AsyncMock()
    return service


class TestValidateOverrides:

    def test_accepts_known_entries(self):
        validate_overrides({"drafting": "gpt-4o"}, {"chat": "Be brief."})
        validate_overrides(None, None)

    @pytest.mark.parametrize("models,prompts", [
        ({"poetry": "gpt-4o"}, None),
        ({"drafting": "gpt-99"}, None),
        ({"drafting": "minilm-l6-v2"}, None),
        ({"chat": "gemini-text-embedding"}, None),
        ({"embedding": "gemini-text-embedding"}, None),
        ({"embedding": "gpt-4o"}, None),
        (None, {"poetry": "Rhyme."}),
    ])
    def test_rejects_invalid(self, models, prompts):
        with pytest.raises(ValidationError):
            validate_overrides(models, prompts)

    def test_current_embedding_model_is_accepted_unchanged(self):
        validate_overrides({"embedding": DEFAULT_MODELS[Operation.EMBEDDING], "chat": "gpt-4o"}, None)


class TestPreferences:

    @pytest.mark.asyncio
    async def test_user_defaults_overlay_system(self, service):
        service.profile_repo.get_by_user_id.return_value = SimpleNamespace(
            default_models={"chat": "gpt-4o"}, default_prompts=None
        )

        preferences = await service.get_user_preferences("user-1")

        assert preferences["models"]["chat"] == "gpt-4o"
        assert preferences["prompts"]["chat"] == PROMPTS[Operation.CHAT]

    @pytest.mark.asyncio
    async def test_invalid_update_writes_nothing(self, service):
        with pytest.raises(ValidationError):
            await service.update_user_preferences("user-1", models={"chat": "nope"})

        service.profile_repo.get_or_create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_project_settings_missing(self, service):
        service.project_repo.update.return_value = None

        with pytest.raises(NotFoundError):
            await service.update_project_settings(uuid4(), content_language="german")

    @pytest.mark.asyncio
    async def test_project_settings_round_trip(self, service):
        project_id = uuid4()
        project = SimpleNamespace(
            model_overrides={"drafting": "gpt-4o"}, prompt_overrides={}, content_language="english"
        )
        service.project_repo.update.return_value = project
        service.project_repo.get_by_id.return_value = project

        result = await service.update_project_settings(project_id, models={"drafting": "gpt-4o"})

        service.project_repo.update.assert_awaited_once_with(project_id, model_overrides={"drafting": "gpt-4o"})
        assert result == {"models": {"drafting": "gpt-4o"}, "prompts": {}, "content_language": "english"}
