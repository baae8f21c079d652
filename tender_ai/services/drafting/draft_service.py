"""Section drafting: streamed single-group generation and the draft-all job."""

import asyncio
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.exceptions import NotFoundError, ValidationError
from tender_ai.database.models import DraftGroup, ResponseDraft
from tender_ai.repositories.outline_repository import (
    DraftGroupRepository,
    ExtractedItemRepository,
    OutlineSectionRepository,
)
from tender_ai.repositories.response_draft_repository import ResponseDraftRepository
from tender_ai.schemas.enums import DraftStatus, JobType, Operation
from tender_ai.services.ai.generation_gateway import GenerationGateway, StreamCallbacks, invoke_callback
from tender_ai.services.ai.model_registry import is_registered, supports_operation
from tender_ai.services.ai.preferences import AIPreferences
from tender_ai.services.ai.prompts import build_drafting_prompt
from tender_ai.services.context.context_assembler import ContextAssembler, build_system_prompt
from tender_ai.services.jobs.progress_tracker import JobProgressTracker
from tender_ai.services.retrieval.hybrid_retriever import HybridRetriever
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

_EDITABLE_FIELDS = ("model_id", "system_prompt", "generated_text", "status")


class DraftService:
    """Generates, versions and edits draft group text.

    Every successful generation stores the text on the group, appends a
    ResponseDraft version and moves the section's pending items to drafted.
    A failed or cancelled stream puts the group back to pending and saves
    nothing.
    """

    def __init__(self, session: AsyncSession, gateway: GenerationGateway):
        self.session = session
        self.gateway = gateway
        self.group_repo = DraftGroupRepository(session)
        self.section_repo = OutlineSectionRepository(session)
        self.item_repo = ExtractedItemRepository(session)
        self.draft_repo = ResponseDraftRepository(session)
        self.assembler = ContextAssembler(session, HybridRetriever(session, gateway))
        self.tracker = JobProgressTracker(session)

    async def get_group(self, draft_group_id: UUID) -> DraftGroup:
        group = await self.group_repo.get_by_id(draft_group_id)
        if group is None:
            raise NotFoundError(f"Draft group {draft_group_id} not found")
        return group

    async def list_groups(self, project_id: UUID) -> List[DraftGroup]:
        return await self.group_repo.list_with_sections(project_id)

    async def list_versions(self, draft_group_id: UUID) -> List[ResponseDraft]:
        await self.get_group(draft_group_id)
        return await self.draft_repo.list_versions(draft_group_id)

    def _model_for(self, group: DraftGroup, preferences: AIPreferences) -> str:
        if group.model_id and supports_operation(group.model_id, Operation.DRAFTING):
            return group.model_id
        return preferences.model(Operation.DRAFTING)

    async def _prompts(self, group: DraftGroup, preferences: AIPreferences) -> tuple[str, str]:
        """System prompt with section context appended, and the user prompt."""
        section = await self.section_repo.get_by_id(group.outline_section_id)
        if section is None:
            raise NotFoundError(f"Outline section {group.outline_section_id} not found")
        context = await self.assembler.for_section(
            group.project_id, section.id, preferences.text_search_config
        )
        base_prompt = group.system_prompt or preferences.prompt(Operation.DRAFTING)
        return (
            build_system_prompt(base_prompt, context),
            build_drafting_prompt(section.title, section.description),
        )

    async def _save_generation(self, group: DraftGroup, text: str, model_id: str, prompt: str) -> None:
        await self.group_repo.update(
            group.id, generated_text=text, status=DraftStatus.DRAFTED.value
        )
        draft = await self.draft_repo.append_version(group.id, text, model_id, prompt)
        await self.item_repo.mark_section_drafted(group.outline_section_id)
        LOGGER.info(
            f"Draft group {group.id} saved as version {draft.version}",
            extra={"project_id": str(group.project_id), "model": model_id},
        )

    async def _reset_to_pending(self, group: DraftGroup) -> None:
        await self.group_repo.set_status(group.id, DraftStatus.PENDING)

    async def stream_group(
        self,
        draft_group_id: UUID,
        preferences: AIPreferences,
        callbacks: StreamCallbacks,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Stream one section's draft through the callbacks.

        The generated text is persisted before the caller's on_done fires.

        Raises:
            NotFoundError: Unknown draft group or section
            ConfigurationError: Model or provider not usable; the group is reset to pending
        """
        group = await self.get_group(draft_group_id)
        await self.group_repo.set_status(group.id, DraftStatus.GENERATING)

        try:
            model_id = self._model_for(group, preferences)
            system_prompt, user_prompt = await self._prompts(group, preferences)
        except Exception:
            await self._reset_to_pending(group)
            raise

        async def on_done(text: str) -> None:
            await self._save_generation(group, text, model_id, system_prompt)
            await invoke_callback(callbacks.on_done, text)

        async def on_error(error: Exception) -> None:
            LOGGER.warning(f"Draft generation for group {group.id} ended without text: {error}")
            await self._reset_to_pending(group)
            await invoke_callback(callbacks.on_error, error)

        try:
            await self.gateway.stream(
                model_id,
                system_prompt,
                user_prompt,
                StreamCallbacks(on_token=callbacks.on_token, on_done=on_done, on_error=on_error),
                cancel_event=cancel_event,
            )
        except (Exception, asyncio.CancelledError):
            await self._reset_to_pending(group)
            raise

    async def generate_all(self, project_id: UUID, preferences: AIPreferences) -> str:
        """Draft every pending group in section order under one DRAFT_ALL job."""
        async with self.tracker.track(project_id, JobType.DRAFT_ALL) as job:
            groups = await self.group_repo.list_pending(project_id)
            for index, group in enumerate(groups):
                section = await self.section_repo.get_by_id(group.outline_section_id)
                title = section.title if section else "Section"
                await self.tracker.update(job, index / len(groups) * 100, f"Drafting {title}")

                model_id = self._model_for(group, preferences)
                system_prompt, user_prompt = await self._prompts(group, preferences)
                text = await self.gateway.generate(model_id, system_prompt, user_prompt)
                await self._save_generation(group, text, model_id, system_prompt)

            summary = f"{len(groups)} sections drafted" if groups else "No pending sections to draft"
            await self.tracker.complete(job, summary)
        return summary

    async def update_group(self, draft_group_id: UUID, **changes) -> DraftGroup:
        """Apply a manual edit.

        Supplying new text for a group that was drafted moves it to edited,
        unless the same request sets an explicit status.

        Raises:
            NotFoundError: Unknown draft group
            ValidationError: Unknown field, model id or status
        """
        group = await self.get_group(draft_group_id)
        values = {k: v for k, v in changes.items() if v is not None}

        unknown = set(values) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update draft group fields: {', '.join(sorted(unknown))}")
        if "model_id" in values:
            if not is_registered(values["model_id"]):
                raise ValidationError(f"Unknown model '{values['model_id']}'")
            if not supports_operation(values["model_id"], Operation.DRAFTING):
                raise ValidationError(f"Model '{values['model_id']}' cannot generate drafts")
        if "status" in values:
            try:
                values["status"] = DraftStatus(values["status"]).value
            except ValueError as e:
                raise ValidationError(f"Invalid draft status '{values['status']}'", e) from e
        elif values.get("generated_text") and group.status == DraftStatus.DRAFTED.value:
            values["status"] = DraftStatus.EDITED.value

        return await self.group_repo.update(group.id, **values)
