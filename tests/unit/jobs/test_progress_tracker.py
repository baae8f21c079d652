"""Unit tests for JobProgressTracker state transitions."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tender_ai.repositories.job_progress_repository import JobProgressRepository
from tender_ai.schemas.enums import JobStatus, JobType
from tender_ai.services.jobs.progress_tracker import JobProgressTracker

# Mirrors the job_progress table without the Postgres-only server default
JOB_PROGRESS_DDL = """
CREATE TABLE job_progress (
    id CHAR(32) PRIMARY KEY,
    project_id CHAR(32) NOT NULL,
    job_type VARCHAR NOT NULL,
    status VARCHAR NOT NULL,
    progress INTEGER NOT NULL,
    message TEXT,
    error_message TEXT,
    started_at DATETIME,
    completed_at DATETIME,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
)
"""


class TestTransitions:

    @pytest.mark.asyncio
    async def test_created_job_is_queued_at_zero(self, tracker, project_id):
        job = await tracker.create(project_id, JobType.INDEXING)

        assert job.status == JobStatus.QUEUED.value
        assert job.progress == 0
        assert job.job_type == "knowledge_indexing"

    @pytest.mark.asyncio
    async def test_start_sets_processing_and_timestamp(self, tracker, project_id):
        job = await tracker.create(project_id, JobType.STRUCTURE)
        await tracker.start(job, "Analysing")

        assert job.status == JobStatus.PROCESSING.value
        assert job.started_at is not None
        assert job.message == "Analysing"

    @pytest.mark.asyncio
    async def test_progress_never_decreases(self, tracker, project_id):
        job = await tracker.create(project_id, JobType.INDEXING)
        await tracker.start(job)

        await tracker.update(job, 40, "batch 2")
        await tracker.update(job, 25, "late report")

        assert job.progress == 40
        assert job.message == "late report"

    @pytest.mark.asyncio
    async def test_progress_stays_below_100_while_running(self, tracker, project_id):
        job = await tracker.create(project_id, JobType.INDEXING)
        await tracker.start(job)

        await tracker.update(job, 150)

        assert job.progress == 99
        assert job.status == JobStatus.PROCESSING.value

    @pytest.mark.asyncio
    async def test_fractional_progress_truncated(self, tracker, project_id):
        job = await tracker.create(project_id, JobType.INDEXING)
        await tracker.update(job, 33.9)

        assert job.progress == 33

    @pytest.mark.asyncio
    async def test_complete_forces_100_with_summary(self, tracker, project_id):
        job = await tracker.create(project_id, JobType.EXTRACTION)
        await tracker.start(job)
        await tracker.update(job, 60)

        await tracker.complete(job, "12 questions, 4 conditions")

        assert job.status == JobStatus.COMPLETED.value
        assert job.progress == 100
        assert job.message == "12 questions, 4 conditions"
        assert job.completed_at is not None

    @pytest.mark.asyncio
    async def test_fail_records_error_and_completion_time(self, tracker, project_id):
        job = await tracker.create(project_id, JobType.FEEDBACK)
        await tracker.start(job)

        await tracker.fail(job, "provider unavailable")

        assert job.status == JobStatus.ERROR.value
        assert job.error_message == "provider unavailable"
        assert job.completed_at is not None

    @pytest.mark.asyncio
    async def test_terminal_rows_are_not_modified(self, tracker, project_id):
        job = await tracker.create(project_id, JobType.FEEDBACK)
        await tracker.complete(job, "done")

        await tracker.update(job, 10, "late")
        await tracker.fail(job, "late failure")
        await tracker.start(job)

        assert job.status == JobStatus.COMPLETED.value
        assert job.progress == 100
        assert job.message == "done"
        assert job.error_message is None


class TestTrack:

    @pytest.mark.asyncio
    async def test_body_error_marks_row_and_reraises(self, tracker, job_repo, project_id):
        with pytest.raises(RuntimeError, match="stage exploded"):
            async with tracker.track(project_id, JobType.STRUCTURE) as job:
                await tracker.update(job, 30)
                raise RuntimeError("stage exploded")

        row = job_repo.rows[0]
        assert row.status == JobStatus.ERROR.value
        assert row.error_message == "stage exploded"
        assert row.progress == 30

    @pytest.mark.asyncio
    async def test_body_that_returns_completes_job(self, tracker, job_repo, project_id):
        async with tracker.track(project_id, JobType.INDEXING):
            pass

        assert job_repo.rows[0].status == JobStatus.COMPLETED.value
        assert job_repo.rows[0].progress == 100

    @pytest.mark.asyncio
    async def test_explicit_completion_kept(self, tracker, job_repo, project_id):
        async with tracker.track(project_id, JobType.INDEXING) as job:
            await tracker.complete(job, "3 documents indexed")

        assert job_repo.rows[0].message == "3 documents indexed"

    @pytest.mark.asyncio
    async def test_failure_rolls_back_session_first(self, tracker, mock_session, project_id):
        with pytest.raises(ValueError):
            async with tracker.track(project_id, JobType.EXTRACTION):
                raise ValueError("bad batch")

        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancellation_marks_row_and_reraises(self, tracker, job_repo, project_id):
        with pytest.raises(asyncio.CancelledError):
            async with tracker.track(project_id, JobType.DRAFT_ALL):
                raise asyncio.CancelledError()

        row = job_repo.rows[0]
        assert row.status == JobStatus.ERROR.value
        assert row.error_message == "Job cancelled"
        assert row.completed_at is not None

    @pytest.mark.asyncio
    async def test_body_that_failed_job_itself_keeps_its_message(self, tracker, job_repo, project_id):
        with pytest.raises(RuntimeError):
            async with tracker.track(project_id, JobType.STRUCTURE) as job:
                await tracker.fail(job, "no outline found")
                raise RuntimeError("stage aborted")

        assert job_repo.rows[0].error_message == "no outline found"

    @pytest.mark.asyncio
    async def test_original_error_propagates_when_recording_fails(self, tracker, job_repo, project_id):
        job_repo.mark_failed = AsyncMock(side_effect=OperationalError("UPDATE", {}, Exception("db gone")))

        with pytest.raises(RuntimeError, match="stage exploded"):
            async with tracker.track(project_id, JobType.STRUCTURE):
                raise RuntimeError("stage exploded")


class TestTrackWithSession:

    @pytest.mark.asyncio
    async def test_failed_flush_in_body_still_marks_row_error(self, tmp_path, project_id):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        try:
            async with engine.begin() as conn:
                await conn.execute(text(JOB_PROGRESS_DDL))

            async with factory() as session:
                tracker = JobProgressTracker(session)
                with pytest.raises(IntegrityError):
                    async with tracker.track(project_id, JobType.FEEDBACK):
                        await JobProgressRepository(session).create_many(
                            [{"project_id": project_id, "job_type": None}]
                        )

            async with factory() as session:
                result = await session.execute(
                    text("SELECT status, error_message, completed_at FROM job_progress")
                )
                rows = result.all()
        finally:
            await engine.dispose()

        assert len(rows) == 1
        status, error_message, completed_at = rows[0]
        assert status == JobStatus.ERROR.value
        assert "NOT NULL" in error_message
        assert completed_at is not None


class TestPolling:

    @pytest.mark.asyncio
    async def test_all_terminal_requires_rows(self, tracker, project_id):
        assert await tracker.all_terminal(project_id) is False

    @pytest.mark.asyncio
    async def test_all_terminal(self, tracker, project_id):
        first = await tracker.create(project_id, JobType.STRUCTURE)
        second = await tracker.create(project_id, JobType.EXTRACTION)
        await tracker.complete(first)
        assert await tracker.all_terminal(project_id) is False

        await tracker.fail(second, "boom")
        assert await tracker.all_terminal(project_id) is True

    @pytest.mark.asyncio
    async def test_since_excludes_earlier_runs(self, tracker, job_repo, project_id):
        old = await tracker.create(project_id, JobType.STRUCTURE)
        old.created_at = datetime.now(timezone.utc) - timedelta(hours=1)
        await tracker.complete(old)
        since = datetime.now(timezone.utc) - timedelta(minutes=1)
        await tracker.create(project_id, JobType.STRUCTURE)

        jobs = await tracker.list_for_project(project_id, since)

        assert len(jobs) == 1
        assert await tracker.all_terminal(project_id, since) is False
