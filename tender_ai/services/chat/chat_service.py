"""Project assistant chat and streamed edit suggestions for item answers."""

import asyncio
import difflib
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.exceptions import NotFoundError
from tender_ai.database.models import ChatMessage
from tender_ai.repositories.chat_repository import ChatMessageRepository
from tender_ai.repositories.outline_repository import ExtractedItemRepository
from tender_ai.schemas.enums import ChatRole, Operation
from tender_ai.services.ai.generation_gateway import GenerationGateway, StreamCallbacks, invoke_callback
from tender_ai.services.ai.preferences import AIPreferences
from tender_ai.services.ai.prompts import EDIT_SUGGESTION_PROMPT, build_edit_prompt
from tender_ai.services.context.context_assembler import ContextAssembler, build_system_prompt
from tender_ai.services.retrieval.hybrid_retriever import HybridRetriever
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

HISTORY_LIMIT = 20
HISTORY_HEADER = "## Conversation so far"


def render_history(messages: Sequence[ChatMessage]) -> str:
    return "\n\n".join(f"{message.role}: {message.content}" for message in messages)


def build_edit_suggestion(old_text: str, new_text: str) -> Dict[str, Any]:
    """Old/new texts plus a unified line diff between them."""
    diff = list(difflib.unified_diff(
        old_text.splitlines(),
        new_text.splitlines(),
        fromfile="current",
        tofile="suggested",
        lineterm="",
    ))
    return {"old": old_text, "new": new_text, "diff": diff}


class ChatService:
    """Streams assistant replies grounded in the project's items and knowledge base."""

    def __init__(self, session: AsyncSession, gateway: GenerationGateway):
        self.session = session
        self.gateway = gateway
        self.message_repo = ChatMessageRepository(session)
        self.item_repo = ExtractedItemRepository(session)
        self.assembler = ContextAssembler(session, HybridRetriever(session, gateway))

    async def history(self, project_id: UUID) -> List[ChatMessage]:
        return await self.message_repo.list_by_project(project_id, order_by=ChatMessage.created_at)

    async def stream_reply(
        self,
        project_id: UUID,
        message: str,
        preferences: AIPreferences,
        callbacks: StreamCallbacks,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Persist the user message, then stream and persist the assistant reply.

        Context and history go into the system prompt; a failed knowledge
        search only drops the knowledge block.
        """
        history = await self.message_repo.recent(project_id, HISTORY_LIMIT)
        await self.message_repo.create(project_id=project_id, role=ChatRole.USER.value, content=message)

        context = await self.assembler.for_chat(project_id, message, preferences.text_search_config)
        system_prompt = build_system_prompt(preferences.prompt(Operation.CHAT), context)
        if history:
            system_prompt = f"{system_prompt}\n\n{HISTORY_HEADER}\n{render_history(history)}"

        async def on_done(text: str) -> None:
            await self.message_repo.create(
                project_id=project_id, role=ChatRole.ASSISTANT.value, content=text
            )
            await invoke_callback(callbacks.on_done, text)

        await self.gateway.stream(
            preferences.model(Operation.CHAT),
            system_prompt,
            message,
            StreamCallbacks(on_token=callbacks.on_token, on_done=on_done, on_error=callbacks.on_error),
            cancel_event=cancel_event,
        )

    async def suggest_edit(
        self,
        project_id: UUID,
        item_id: UUID,
        instruction: str,
        preferences: AIPreferences,
        callbacks: StreamCallbacks,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Stream a rewrite of an item's answer.

        ``on_done`` receives the suggestion dict from build_edit_suggestion;
        the item itself is not modified.

        Raises:
            NotFoundError: If the item does not belong to the project
        """
        item = await self.item_repo.get_by_id(item_id)
        if item is None or item.project_id != project_id:
            raise NotFoundError(f"Extracted item {item_id} not found")
        current_text = item.response_text or ""

        async def on_done(text: str) -> None:
            suggestion = build_edit_suggestion(current_text, text)
            await self.message_repo.create(
                project_id=project_id,
                role=ChatRole.ASSISTANT.value,
                content=text,
                target_item_id=item.id,
                suggestion=suggestion,
            )
            LOGGER.info(
                "Edit suggestion stored",
                extra={"project_id": str(project_id), "item_id": str(item.id), "diff_lines": len(suggestion["diff"])},
            )
            await invoke_callback(callbacks.on_done, suggestion)

        await self.gateway.stream(
            preferences.model(Operation.CHAT),
            EDIT_SUGGESTION_PROMPT,
            build_edit_prompt(current_text, item.original_text, instruction),
            StreamCallbacks(on_token=callbacks.on_token, on_done=on_done, on_error=callbacks.on_error),
            cancel_event=cancel_event,
        )
