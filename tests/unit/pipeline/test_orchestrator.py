"""Unit tests for the setup pipeline ordering and failure isolation."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tender_ai.core.exceptions import APIClientError, StructureAnalysisError
from tender_ai.schemas.enums import JobStatus, JobType
from tender_ai.services.ai.preferences import AIPreferences
from tender_ai.services.indexing.embedding_indexer import IndexingResult
from tender_ai.services.pipeline.orchestrator import PIPELINE_JOB_TYPES, PipelineOrchestrator


@pytest.fixture
def orchestrator(mock_session, mock_gateway, tracker):
    orchestrator = PipelineOrchestrator(mock_session, mock_gateway)
    orchestrator.tracker = tracker
    orchestrator.structure = MagicMock(run=AsyncMock(return_value="5 sections"))
    orchestrator.extraction = MagicMock(run=AsyncMock(return_value="12 questions, 3 conditions"))
    orchestrator.indexer = MagicMock(index_project=AsyncMock(return_value=IndexingResult(0, 9, 9, 0)))
    orchestrator.feedback = MagicMock(run=AsyncMock(return_value="4 feedback items"))
    return orchestrator


@pytest.fixture(autouse=True)
def preferences():
    with patch(
        "tender_ai.services.pipeline.orchestrator.load_preferences",
        AsyncMock(return_value=AIPreferences()),
    ) as loader:
        yield loader


class TestPipelineOrchestrator:

    @pytest.mark.asyncio
    async def test_stages_run_in_order_with_one_row_each(self, orchestrator, job_repo, project_id):
        jobs = await orchestrator.run(project_id, "user-1")

        assert [job.job_type for job in jobs] == [t.value for t in PIPELINE_JOB_TYPES]
        assert [row.job_type for row in job_repo.rows] == [
            "structure_analysis", "item_extraction", "knowledge_indexing", "feedback_extraction",
        ]
        assert all(row.status == JobStatus.COMPLETED.value and row.progress == 100 for row in job_repo.rows)
        assert [row.message for row in job_repo.rows] == [
            "5 sections", "12 questions, 3 conditions", "9 chunks indexed", "4 feedback items",
        ]

    @pytest.mark.asyncio
    async def test_structure_failure_stops_the_run(self, orchestrator, job_repo, project_id):
        orchestrator.structure.run.side_effect = StructureAnalysisError("Could not parse outline")

        with pytest.raises(StructureAnalysisError):
            await orchestrator.run(project_id)

        assert len(job_repo.rows) == 1
        assert job_repo.rows[0].job_type == JobType.STRUCTURE.value
        assert job_repo.rows[0].status == JobStatus.ERROR.value
        assert job_repo.rows[0].error_message == "Could not parse outline"
        orchestrator.extraction.run.assert_not_awaited()
        orchestrator.indexer.index_project.assert_not_awaited()
        orchestrator.feedback.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_indexing_failure_leaves_earlier_rows_completed(self, orchestrator, job_repo, project_id):
        orchestrator.indexer.index_project.side_effect = APIClientError("embedding provider down")

        with pytest.raises(APIClientError):
            await orchestrator.run(project_id)

        assert [row.status for row in job_repo.rows] == ["completed", "completed", "error"]
        orchestrator.feedback.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stage_progress_reports_reach_tracker(self, orchestrator, job_repo, project_id):
        async def structure(project_id, preferences, report):
            await report(50, "Half way")
            assert job_repo.rows[0].progress == 50
            return "done"

        orchestrator.structure.run.side_effect = structure

        await orchestrator.run(project_id)

        assert job_repo.rows[0].progress == 100

    @pytest.mark.asyncio
    async def test_preferences_loaded_once_for_user(self, orchestrator, preferences, mock_session, project_id):
        await orchestrator.run(project_id, "user-1")

        preferences.assert_awaited_once_with(mock_session, project_id, "user-1")
