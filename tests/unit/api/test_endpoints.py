"""Tests for API endpoints.

Routes are exercised through TestClient with their service dependencies
overridden; the lifespan (database, queue) is not started.
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from tender_ai.api.dependencies import get_queue
from tender_ai.api.v1.endpoints import feedback, jobs, projects
from tender_ai.core.exceptions import ConfigurationError, NotFoundError, ValidationError
from tender_ai.main import app


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def project_service():
    service = AsyncMock()
    app.dependency_overrides[projects.get_project_service] = lambda: service
    app.dependency_overrides[jobs.get_project_service] = lambda: service
    return service


@pytest.fixture
def queue():
    queue = AsyncMock()
    queue.send.return_value = "queue-setup.run-1"
    app.dependency_overrides[get_queue] = lambda: queue
    return queue


def _project(**overrides):
    values = dict(
        id=uuid4(),
        name="City bridge tender",
        description=None,
        content_language="english",
        created_at=datetime.now(timezone.utc),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestProjectEndpoints:

    def test_create_project(self, client, project_service):
        project = _project()
        project_service.create_project.return_value = project

        response = client.post("/api/v1/projects/", json={"name": project.name}, headers={"X-User-ID": "user-1"})

        assert response.status_code == 201
        body = response.json()
        assert body["status"] is True
        assert body["data"]["id"] == str(project.id)
        assert project_service.create_project.await_args.kwargs["owner_id"] == "user-1"

    def test_correlation_id_echoed(self, client, project_service):
        project_service.get_project.return_value = _project()

        response = client.get(f"/api/v1/projects/{uuid4()}", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"
        assert response.json()["meta"]["request_id"] == "abc-123"

    @pytest.mark.parametrize("error,status_code", [
        (NotFoundError("Project x not found"), 404),
        (ValidationError("Project name is required"), 422),
        (ConfigurationError("Provider 'gemini' is not configured"), 503),
    ])
    def test_app_errors_map_to_status(self, client, project_service, error, status_code):
        project_service.get_project.side_effect = error

        response = client.get(f"/api/v1/projects/{uuid4()}")

        assert response.status_code == status_code
        detail = response.json()["detail"]
        assert detail["status"] == status_code
        assert detail["detail"] == error.message


class TestSetupEndpoint:

    def test_queues_keyed_setup(self, client, project_service, queue):
        project_id = uuid4()
        project_service.get_project.return_value = _project(id=project_id)

        response = client.post(f"/api/v1/projects/{project_id}/setup", headers={"X-User-ID": "user-1"})

        assert response.status_code == 202
        assert response.json()["data"]["job_id"] == "queue-setup.run-1"
        queue.send.assert_awaited_once_with(
            "setup.run",
            {"project_id": str(project_id), "user_id": "user-1"},
            key=f"project-{project_id}",
        )

    def test_unknown_project_is_not_queued(self, client, project_service, queue):
        project_service.get_project.side_effect = NotFoundError("Project not found")

        response = client.post(f"/api/v1/projects/{uuid4()}/setup")

        assert response.status_code == 404
        queue.send.assert_not_awaited()


@pytest.fixture
def feedback_service():
    service = AsyncMock()
    app.dependency_overrides[feedback.get_feedback_service] = lambda: service
    return service


def _feedback(**overrides):
    values = dict(
        id=uuid4(),
        source_document_id=uuid4(),
        extracted_item_id=None,
        feedback_type="weakness",
        severity="major",
        content="Staffing plan lacks named deputies",
        section_reference="3.2",
        is_addressed=False,
        created_at=datetime.now(timezone.utc),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestFeedbackEndpoints:

    def test_list(self, client, feedback_service):
        project_id = uuid4()
        feedback_service.list_feedback.return_value = [_feedback(), _feedback(severity="info")]

        response = client.get(f"/api/v1/projects/{project_id}/feedback")

        assert response.status_code == 200
        assert [f["severity"] for f in response.json()["data"]] == ["major", "info"]
        feedback_service.list_feedback.assert_awaited_once_with(project_id)

    def test_extract_queues_keyed_job(self, client, project_service, queue):
        project_id = uuid4()
        project_service.get_project.return_value = _project(id=project_id)
        queue.send.return_value = "queue-feedback.extract-1"

        response = client.post(f"/api/v1/projects/{project_id}/feedback/extract", headers={"X-User-ID": "user-1"})

        assert response.status_code == 202
        assert response.json()["data"]["job_id"] == "queue-feedback.extract-1"
        queue.send.assert_awaited_once_with(
            "feedback.extract",
            {"project_id": str(project_id), "user_id": "user-1"},
            key=f"project-{project_id}",
        )

    def test_extract_unknown_project_is_not_queued(self, client, project_service, queue):
        project_service.get_project.side_effect = NotFoundError("Project not found")

        response = client.post(f"/api/v1/projects/{uuid4()}/feedback/extract")

        assert response.status_code == 404
        queue.send.assert_not_awaited()

    def test_mark_addressed(self, client, feedback_service):
        project_id, feedback_id = uuid4(), uuid4()
        feedback_service.update_feedback.return_value = _feedback(id=feedback_id, is_addressed=True)

        response = client.patch(
            f"/api/v1/projects/{project_id}/feedback/{feedback_id}", json={"is_addressed": True}
        )

        assert response.status_code == 200
        assert response.json()["data"]["is_addressed"] is True
        feedback_service.update_feedback.assert_awaited_once_with(project_id, feedback_id, is_addressed=True)

    def test_invalid_severity_rejected_by_schema(self, client, feedback_service):
        response = client.patch(f"/api/v1/projects/{uuid4()}/feedback/{uuid4()}", json={"severity": "apocalyptic"})

        assert response.status_code == 422
        feedback_service.update_feedback.assert_not_awaited()

    def test_delete_missing_feedback(self, client, feedback_service):
        feedback_service.delete_feedback.side_effect = NotFoundError("Feedback not found")

        response = client.delete(f"/api/v1/projects/{uuid4()}/feedback/{uuid4()}")

        assert response.status_code == 404
