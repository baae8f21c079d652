"""Unit tests for feedback curation."""

from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from tender_ai.core.exceptions import NotFoundError, ValidationError
from tender_ai.schemas.enums import FeedbackSeverity
from tender_ai.services.feedback.feedback_service import FeedbackService


@pytest.fixture
def service(mock_session):
    service = FeedbackService(mock_session)
    service.feedback_repo = AsyncMock()
    service.item_repo = AsyncMock()
    return service


def _feedback(project_id, **overrides):
    values = dict(
        id=uuid4(),
        project_id=project_id,
        extracted_item_id=None,
        feedback_type="weakness",
        severity="major",
        content="Staffing plan lacks named deputies",
        is_addressed=False,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestFeedbackService:

    @pytest.mark.asyncio
    async def test_list_newest_first(self, service, project_id):
        rows = [_feedback(project_id), _feedback(project_id)]
        service.feedback_repo.list_newest_first.return_value = rows

        assert await service.list_feedback(project_id) == rows
        service.feedback_repo.list_newest_first.assert_awaited_once_with(project_id)

    @pytest.mark.asyncio
    async def test_mark_addressed(self, service, project_id):
        feedback = _feedback(project_id)
        service.feedback_repo.get_by_id.return_value = feedback
        service.feedback_repo.update.return_value = feedback

        await service.update_feedback(project_id, feedback.id, is_addressed=True)

        service.feedback_repo.update.assert_awaited_once_with(feedback.id, is_addressed=True)

    @pytest.mark.asyncio
    async def test_enum_values_normalised(self, service, project_id):
        feedback = _feedback(project_id)
        service.feedback_repo.get_by_id.return_value = feedback

        await service.update_feedback(project_id, feedback.id, severity=FeedbackSeverity.CRITICAL, feedback_type="strength")

        service.feedback_repo.update.assert_awaited_once_with(
            feedback.id, severity="critical", feedback_type="strength"
        )

    @pytest.mark.asyncio
    async def test_relink_to_item_in_project(self, service, project_id):
        feedback = _feedback(project_id)
        item = SimpleNamespace(id=uuid4(), project_id=project_id)
        service.feedback_repo.get_by_id.return_value = feedback
        service.item_repo.get_by_id.return_value = item

        await service.update_feedback(project_id, feedback.id, extracted_item_id=item.id)

        service.feedback_repo.update.assert_awaited_once_with(feedback.id, extracted_item_id=item.id)

    @pytest.mark.asyncio
    async def test_explicit_none_unlinks(self, service, project_id):
        feedback = _feedback(project_id, extracted_item_id=uuid4())
        service.feedback_repo.get_by_id.return_value = feedback

        await service.update_feedback(project_id, feedback.id, extracted_item_id=None, severity=None)

        service.feedback_repo.update.assert_awaited_once_with(feedback.id, extracted_item_id=None)
        service.item_repo.get_by_id.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_item_from_other_project_rejected(self, service, project_id):
        feedback = _feedback(project_id)
        service.feedback_repo.get_by_id.return_value = feedback
        service.item_repo.get_by_id.return_value = SimpleNamespace(id=uuid4(), project_id=uuid4())

        with pytest.raises(NotFoundError):
            await service.update_feedback(project_id, feedback.id, extracted_item_id=uuid4())

        service.feedback_repo.update.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("changes", [
        {"project_id": uuid4()},
        {"severity": "apocalyptic"},
        {"feedback_type": "praise"},
        {"content": "   "},
    ])
    async def test_invalid_changes_rejected(self, service, project_id, changes):
        service.feedback_repo.get_by_id.return_value = _feedback(project_id)

        with pytest.raises(ValidationError):
            await service.update_feedback(project_id, uuid4(), **changes)

        service.feedback_repo.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_feedback_of_other_project_is_not_found(self, service, project_id):
        service.feedback_repo.get_by_id.return_value = _feedback(uuid4())

        with pytest.raises(NotFoundError):
            await service.update_feedback(project_id, uuid4(), is_addressed=True)
        with pytest.raises(NotFoundError):
            await service.delete_feedback(project_id, uuid4())

        service.feedback_repo.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete(self, service, project_id):
        feedback = _feedback(project_id)
        service.feedback_repo.get_by_id.return_value = feedback

        await service.delete_feedback(project_id, feedback.id)

        service.feedback_repo.delete.assert_awaited_once_with(feedback.id)
