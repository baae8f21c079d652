"""Unit tests for prompt context assembly."""

from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from tender_ai.services.context.context_assembler import (
    CONDITIONS_HEADER,
    FEEDBACK_HEADER,
    KNOWLEDGE_HEADER,
    QUESTIONS_HEADER,
    REQUIREMENTS_HEADER,
    ContextAssembler,
    build_system_prompt,
    render_context,
)


def _item(text, kind="question", addressed=False):
    return SimpleNamespace(
        id=uuid4(), original_text=text, kind=kind, status="pending", is_addressed=addressed
    )


def _feedback(content, feedback_type="weakness", severity="major"):
    return SimpleNamespace(content=content, feedback_type=feedback_type, severity=severity)


@pytest.fixture
def retriever():
    retriever = AsyncMock()
    retriever.search.return_value = []
    return retriever


@pytest.fixture
def assembler(mock_session, retriever):
    assembler = ContextAssembler(mock_session, retriever)
    assembler.item_repo = AsyncMock()
    assembler.feedback_repo = AsyncMock()
    assembler.feedback_repo.list_for_items.return_value = []
    return assembler


class TestRenderContext:

    def test_blocks_in_fixed_order(self):
        context = render_context(
            ["Describe your SLA"],
            ["ISO 27001 certified"],
            ["Past answer one", "Past answer two"],
            [_feedback("Weak on pricing")],
        )

        positions = [context.index(h) for h in (QUESTIONS_HEADER, CONDITIONS_HEADER, KNOWLEDGE_HEADER, FEEDBACK_HEADER)]
        assert positions == sorted(positions)
        assert "- Describe your SLA" in context
        assert "Past answer one\n---\nPast answer two" in context
        assert "- [weakness/major] Weak on pricing" in context

    def test_empty_blocks_are_omitted(self):
        context = render_context(["Only a question"], [], [], [])

        assert context == f"{QUESTIONS_HEADER}\n- Only a question"
        assert CONDITIONS_HEADER not in context
        assert KNOWLEDGE_HEADER not in context

    def test_all_empty_gives_empty_string(self):
        assert render_context([], [], [], []) == ""

    def test_system_prompt_untouched_without_context(self):
        assert build_system_prompt("base", "") == "base"
        assert build_system_prompt("base", "ctx") == "base\n\nctx"


class TestForSection:

    @pytest.mark.asyncio
    async def test_questions_conditions_knowledge_and_feedback(self, assembler, retriever, project_id):
        items = [_item("What is your uptime?"), _item("Must be GDPR compliant", kind="condition")]
        assembler.item_repo.list_by_section.return_value = items
        retriever.search.return_value = [SimpleNamespace(content="99.9% uptime in 2023", score=0.7)]
        assembler.feedback_repo.list_for_items.return_value = [_feedback("Cite uptime figures")]

        context = await assembler.for_section(project_id, uuid4())

        assert "- What is your uptime?" in context
        assert "- Must be GDPR compliant" in context
        assert "99.9% uptime in 2023" in context
        assert "Cite uptime figures" in context
        query = retriever.search.await_args.args[1]
        assert query == "What is your uptime? Must be GDPR compliant"
        assembler.feedback_repo.list_for_items.assert_awaited_once_with(project_id, [i.id for i in items])

    @pytest.mark.asyncio
    async def test_search_failure_drops_only_knowledge(self, assembler, retriever, project_id):
        assembler.item_repo.list_by_section.return_value = [_item("Question")]
        retriever.search.side_effect = RuntimeError("database unavailable")

        context = await assembler.for_section(project_id, uuid4())

        assert QUESTIONS_HEADER in context
        assert KNOWLEDGE_HEADER not in context

    @pytest.mark.asyncio
    async def test_section_without_items_skips_search(self, assembler, retriever, project_id):
        assembler.item_repo.list_by_section.return_value = []

        assert await assembler.for_section(project_id, uuid4()) == ""
        retriever.search.assert_not_awaited()


class TestForChat:

    @pytest.mark.asyncio
    async def test_requirements_summary_and_scored_hits(self, assembler, retriever, project_id):
        assembler.item_repo.list_ordered.return_value = [_item("A", addressed=True), _item("B")]
        retriever.search.return_value = [SimpleNamespace(content="Past text", score=0.654)]

        context = await assembler.for_chat(project_id, "what about uptime")

        assert context.startswith(REQUIREMENTS_HEADER)
        assert "2 requirements, 1 addressed." in context
        assert "[65%] Past text" in context

    @pytest.mark.asyncio
    async def test_item_load_failure_is_tolerated(self, assembler, retriever, project_id):
        assembler.item_repo.list_ordered.side_effect = RuntimeError("boom")

        assert await assembler.for_chat(project_id, "query") == ""
