"""Activities backing the durable queue workflow."""

from typing import Any, Callable, Dict

from temporalio import activity
from temporalio.exceptions import ApplicationError

from tender_ai.core.database import async_session_maker
from tender_ai.core.exceptions import ConfigurationError, NotFoundError, ValidationError
from tender_ai.repositories.chat_repository import DeadLetterRepository
from tender_ai.services.jobs.queue_service import HandlerRegistry
from tender_ai.temporal.constants import DEAD_LETTER_ACTIVITY, DISPATCH_ACTIVITY
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Redelivery cannot fix these
_NON_RETRYABLE = (ConfigurationError, NotFoundError, ValidationError)


class QueueActivities:
    """Activities bound to the worker's handler registry."""

    def __init__(self, registry: HandlerRegistry, session_factory: Callable[[], Any] = async_session_maker):
        self.registry = registry
        self.session_factory = session_factory

    @activity.defn(name=DISPATCH_ACTIVITY)
    async def dispatch(self, topic: str, payload: Dict[str, Any]) -> None:
        """Run the topic's handler. Raising triggers redelivery."""
        handler = self.registry.get(topic)
        if handler is None:
            raise ApplicationError(f"No handler registered for topic '{topic}'", non_retryable=True)

        attempt = activity.info().attempt
        LOGGER.info(f"Delivering '{topic}' (attempt {attempt})", extra={"topic": topic, "attempt": attempt})
        try:
            await handler(payload)
        except _NON_RETRYABLE as e:
            LOGGER.error(f"Handler for '{topic}' failed permanently: {e}", exc_info=True)
            raise ApplicationError(str(e), type=type(e).__name__, non_retryable=True) from e
        except Exception as e:
            LOGGER.error(f"Handler for '{topic}' failed on attempt {attempt}: {e}", exc_info=True)
            raise

    @activity.defn(name=DEAD_LETTER_ACTIVITY)
    async def record_dead_letter(
        self,
        job_id: str,
        topic: str,
        payload: Dict[str, Any],
        error: str,
        attempts: int,
    ) -> None:
        async with self.session_factory() as session:
            await DeadLetterRepository(session).create(
                job_id=job_id, topic=topic, payload=payload, error=error, attempts=attempts
            )
        LOGGER.error(
            f"Dead-lettered job {job_id}",
            extra={"topic": topic, "attempts": attempts, "error": error},
        )

    def all(self) -> list:
        return [self.dispatch, self.record_dead_letter]
