"""Unit tests for the compliance report."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from tender_ai.core.exceptions import APIClientError
from tender_ai.services.ai.preferences import AIPreferences
from tender_ai.services.compliance.compliance_service import (
    ComplianceAggregator,
    build_warnings,
    compute_stats,
    coverage_percent,
)


def _item(kind="question", addressed=False, text="Describe the approach", reference=None):
    return SimpleNamespace(
        id=uuid4(), kind=kind, is_addressed=addressed, original_text=text, section_reference=reference,
    )


def _group(status="pending"):
    return SimpleNamespace(id=uuid4(), status=status)


def _feedback(severity="major", addressed=False, content="Pricing unclear"):
    return SimpleNamespace(
        id=uuid4(), severity=severity, is_addressed=addressed, content=content, extracted_item_id=None,
        feedback_type="weakness", section_reference="4.1",
    )


@pytest.fixture
def aggregator(mock_session, mock_gateway):
    aggregator = ComplianceAggregator(mock_session, mock_gateway)
    aggregator.item_repo = AsyncMock()
    aggregator.draft_group_repo = AsyncMock()
    aggregator.feedback_repo = AsyncMock()
    aggregator.draft_group_repo.list_by_project.return_value = []
    aggregator.feedback_repo.list_by_project.return_value = []
    return aggregator


class TestCoverage:

    def test_six_of_ten(self):
        assert coverage_percent(6, 10) == 60

    def test_no_items(self):
        assert coverage_percent(0, 0) == 0

    def test_half_rounds_up(self):
        assert coverage_percent(1, 8) == 13
        assert coverage_percent(1, 3) == 33


class TestStatsAndWarnings:

    def test_stats_counts(self):
        items = [_item(addressed=True), _item(kind="condition"), _item()]
        groups = [_group("pending"), _group("generating"), _group("drafted"), _group("edited")]
        feedback = [_feedback(addressed=True), _feedback()]

        stats = compute_stats(items, groups, feedback)

        assert (stats.total_items, stats.questions, stats.conditions) == (3, 2, 1)
        assert (stats.addressed_items, stats.pending_items) == (1, 2)
        assert (stats.draft_groups_total, stats.draft_groups_drafted) == (4, 2)
        assert (stats.feedback_addressed, stats.feedback_total) == (1, 2)

    def test_warning_per_gap_in_order(self):
        question = _item(text="Q" * 150, reference="2.1")
        condition = _item(kind="condition", text="Hold ISO 9001")
        items = [condition, question, _item(addressed=True)]
        groups = [_group("pending"), _group("drafted")]
        feedback = [_feedback("critical"), _feedback("minor"), _feedback("major", addressed=True)]

        warnings = build_warnings(items, groups, feedback)

        assert [w.severity for w in warnings] == ["critical", "major", "critical", "major"]
        assert warnings[0].message == "Unanswered question: 2.1 " + "Q" * 100
        assert warnings[0].extracted_item_id == question.id
        assert warnings[1].message == "Unconfirmed condition: Hold ISO 9001"
        assert warnings[2].message.startswith("Unaddressed critical feedback:")
        assert warnings[3].message.startswith("Section not drafted yet")
        assert warnings[3].extracted_item_id is None


class TestComplianceAggregator:

    @pytest.mark.asyncio
    async def test_deterministic_report_without_addressed_items(self, aggregator, mock_gateway, project_id):
        aggregator.item_repo.list_ordered.return_value = [_item(), _item()]

        report = await aggregator.generate_report(project_id, AIPreferences())

        mock_gateway.generate.assert_not_awaited()
        assert report.coverage_percent == 0
        assert report.quality_score == 0
        assert report.summary == "0/2 items addressed (0% coverage), 0/0 sections drafted"

    @pytest.mark.asyncio
    async def test_empty_project(self, aggregator, project_id):
        aggregator.item_repo.list_ordered.return_value = []

        report = await aggregator.generate_report(project_id, AIPreferences())

        assert report.coverage_percent == 0
        assert report.warnings == []

    @pytest.mark.asyncio
    async def test_ai_assessment_overrides_score_and_summary(self, aggregator, mock_gateway, project_id):
        items = [_item(addressed=True) for _ in range(6)] + [_item() for _ in range(4)]
        aggregator.item_repo.list_ordered.return_value = items
        mock_gateway.generate.return_value = json.dumps({
            "qualityScore": 72.6,
            "summary": "Solid answers, pricing still open.",
            "warnings": [{"message": "Pricing lacks detail", "severity": "Minor", "itemId": str(items[7].id)}],
        })

        report = await aggregator.generate_report(project_id, AIPreferences())

        assert report.coverage_percent == 60
        assert report.quality_score == 73
        assert report.summary == "Solid answers, pricing still open."
        assert report.warnings[-1].message == "Pricing lacks detail"
        assert report.warnings[-1].severity == "minor"
        assert report.warnings[-1].extracted_item_id == items[7].id
        assert len(report.warnings) == 5

    @pytest.mark.asyncio
    async def test_open_feedback_included_in_ai_prompt(self, aggregator, mock_gateway, project_id):
        aggregator.item_repo.list_ordered.return_value = [_item(addressed=True), _item()]
        aggregator.feedback_repo.list_by_project.return_value = [
            _feedback(content="Staffing plan too vague"),
            _feedback(severity="minor", addressed=True, content="Typos in the annex"),
        ]
        mock_gateway.generate.return_value = json.dumps({"qualityScore": 50})

        await aggregator.generate_report(project_id, AIPreferences())

        user_prompt = mock_gateway.generate.await_args.args[2]
        assert "## Open evaluator feedback" in user_prompt
        assert "Staffing plan too vague" in user_prompt
        assert "Typos in the annex" not in user_prompt

    @pytest.mark.asyncio
    async def test_feedback_section_omitted_when_all_addressed(self, aggregator, mock_gateway, project_id):
        aggregator.item_repo.list_ordered.return_value = [_item(addressed=True)]
        aggregator.feedback_repo.list_by_project.return_value = [_feedback(addressed=True)]
        mock_gateway.generate.return_value = json.dumps({"qualityScore": 90})

        await aggregator.generate_report(project_id, AIPreferences())

        assert "evaluator feedback" not in mock_gateway.generate.await_args.args[2]

    @pytest.mark.asyncio
    async def test_unparseable_ai_response_keeps_computed_values(self, aggregator, mock_gateway, project_id):
        aggregator.item_repo.list_ordered.return_value = [_item(addressed=True), _item()]
        mock_gateway.generate.return_value = "The project looks fine overall."

        report = await aggregator.generate_report(project_id, AIPreferences())

        assert report.quality_score == 50
        assert report.summary.startswith("1/2 items addressed (50% coverage)")

    @pytest.mark.asyncio
    async def test_provider_failure_keeps_computed_values(self, aggregator, mock_gateway, project_id):
        aggregator.item_repo.list_ordered.return_value = [_item(addressed=True)]
        mock_gateway.generate.side_effect = APIClientError("rate limited")

        report = await aggregator.generate_report(project_id, AIPreferences())

        assert report.quality_score == 100
        assert report.coverage_percent == 100

    @pytest.mark.asyncio
    async def test_out_of_range_score_is_clamped(self, aggregator, mock_gateway, project_id):
        aggregator.item_repo.list_ordered.return_value = [_item(addressed=True)]
        mock_gateway.generate.return_value = '{"qualityScore": 140}'

        report = await aggregator.generate_report(project_id, AIPreferences())

        assert report.quality_score == 100

    @pytest.mark.asyncio
    async def test_camel_case_serialisation(self, aggregator, project_id):
        aggregator.item_repo.list_ordered.return_value = []

        report = await aggregator.generate_report(project_id, AIPreferences())
        dumped = report.model_dump(by_alias=True)

        assert {"qualityScore", "coveragePercent", "summary", "warnings", "stats"} <= set(dumped)
        assert "totalItems" in dumped["stats"]
