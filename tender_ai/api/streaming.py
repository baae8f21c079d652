"""Bridge from generation callbacks to a server-sent event stream.

The generation runs on a supervised background task with its own database
session, since the request's session is closed before a streaming body is
sent. Tokens are handed over through an asyncio.Queue. A client disconnect
sets the cancel event, which stops the provider stream.
"""

import asyncio
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.database import async_session_maker
from tender_ai.schemas.sse import SSEEvent, SSEEventType, format_sse
from tender_ai.services.ai.generation_gateway import StreamCallbacks
from tender_ai.services.jobs.queue_service import spawn_supervised
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

DISCONNECT_POLL_SECONDS = 0.5
CANCEL_GRACE_SECONDS = 5.0

StreamRunner = Callable[[AsyncSession, StreamCallbacks, asyncio.Event], Awaitable[None]]


def _error_frame(error: BaseException) -> str:
    return format_sse(SSEEvent(
        event_type=SSEEventType.ERROR,
        data={"error": str(error) or type(error).__name__, "error_type": type(error).__name__},
    ))


async def _watch_disconnect(request: Request, cancel_event: asyncio.Event) -> None:
    while not cancel_event.is_set():
        if await request.is_disconnected():
            LOGGER.info(f"Client disconnected from {request.url.path}, cancelling generation")
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def stream_generation(
    request: Request,
    run: StreamRunner,
    name: str,
    done_key: str = "content",
    session_factory: Callable[[], Any] = async_session_maker,
) -> AsyncGenerator[str, None]:
    """Run `run` in the background and yield its callbacks as SSE frames.

    Frames: `token` per fragment, then exactly one of `done` (result under
    `done_key`) or `error`.
    """
    frames: asyncio.Queue[Optional[str]] = asyncio.Queue()
    cancel_event = asyncio.Event()

    async def on_token(token: str) -> None:
        await frames.put(format_sse(SSEEvent(event_type=SSEEventType.TOKEN, data={"token": token})))

    async def on_done(result: Any) -> None:
        await frames.put(format_sse(SSEEvent(event_type=SSEEventType.DONE, data={done_key: result})))

    async def on_error(error: Exception) -> None:
        await frames.put(_error_frame(error))

    async def runner() -> None:
        try:
            async with session_factory() as session:
                await run(session, StreamCallbacks(on_token=on_token, on_done=on_done, on_error=on_error), cancel_event)
        except Exception as e:
            LOGGER.error(f"Streamed generation '{name}' failed before completing: {e}", exc_info=True)
            await frames.put(_error_frame(e))
        finally:
            await frames.put(None)

    task = spawn_supervised(runner(), name=name)
    watcher = spawn_supervised(_watch_disconnect(request, cancel_event), name=f"{name}:disconnect")
    try:
        while True:
            frame = await frames.get()
            if frame is None:
                break
            yield frame
    finally:
        cancel_event.set()
        watcher.cancel()
        if not task.done():
            # The runner resets draft status when it sees the cancel event
            await asyncio.wait({task}, timeout=CANCEL_GRACE_SECONDS)
