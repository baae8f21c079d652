"""Durable queue workflow: one execution per dispatched message."""

from datetime import timedelta
from typing import Any, Dict

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError, RetryState

with workflow.unsafe.imports_passed_through():
    from tender_ai.temporal.constants import (
        DEAD_LETTER_ACTIVITY,
        DEAD_LETTER_TIMEOUT_SECONDS,
        DISPATCH_ACTIVITY,
        DISPATCH_ACTIVITY_TIMEOUT_SECONDS,
        QUEUE_DISPATCH_WORKFLOW,
        RETRY_BACKOFF_COEFFICIENT,
        RETRY_INITIAL_INTERVAL_SECONDS,
        RETRY_MAXIMUM_INTERVAL_SECONDS,
    )


@workflow.defn(name=QUEUE_DISPATCH_WORKFLOW)
class QueueDispatchWorkflow:
    """Delivers a message to its topic handler with retries.

    The handler runs as an activity; a failed attempt is redelivered with
    exponential backoff up to `max_deliveries` attempts. Once attempts are
    exhausted (or the failure is non-retryable) the message is written to
    the dead-letter table and the workflow ends with a dead_lettered status.
    """

    def __init__(self) -> None:
        self._status = "initialized"

    @workflow.query
    def get_status(self) -> str:
        return self._status

    @workflow.run
    async def run(self, topic: str, payload: Dict[str, Any], max_deliveries: int) -> dict:
        self._status = "dispatching"
        try:
            await workflow.execute_activity(
                DISPATCH_ACTIVITY,
                args=[topic, payload],
                start_to_close_timeout=timedelta(seconds=DISPATCH_ACTIVITY_TIMEOUT_SECONDS),
                retry_policy=RetryPolicy(
                    initial_interval=timedelta(seconds=RETRY_INITIAL_INTERVAL_SECONDS),
                    backoff_coefficient=RETRY_BACKOFF_COEFFICIENT,
                    maximum_interval=timedelta(seconds=RETRY_MAXIMUM_INTERVAL_SECONDS),
                    maximum_attempts=max_deliveries,
                ),
            )
        except ActivityError as e:
            attempts = max_deliveries if e.retry_state == RetryState.MAXIMUM_ATTEMPTS_REACHED else 1
            error = str(e.cause or e)
            workflow.logger.error(f"Message on '{topic}' dead-lettered after {attempts} attempts: {error}")
            await workflow.execute_activity(
                DEAD_LETTER_ACTIVITY,
                args=[workflow.info().workflow_id, topic, payload, error, attempts],
                start_to_close_timeout=timedelta(seconds=DEAD_LETTER_TIMEOUT_SECONDS),
            )
            self._status = "dead_lettered"
            return {"status": self._status, "topic": topic, "error": error, "attempts": attempts}

        self._status = "completed"
        return {"status": self._status, "topic": topic}
