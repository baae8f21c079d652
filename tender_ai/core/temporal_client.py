"""Temporal client connection management.

Used by the durable queue backend to start workflows and by the worker
process to poll for them.
"""

from typing import Optional

from temporalio.client import Client as TemporalClient

from tender_ai.core.config import settings
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)


class TemporalClientManager:
    """Lazily creates a Temporal client and keeps it around for reuse."""

    def __init__(self) -> None:
        self._client: Optional[TemporalClient] = None

    async def get_client(self) -> TemporalClient:
        """Get or create Temporal client instance.

        Returns:
            TemporalClient: Connected Temporal client
        """
        if self._client is None:
            LOGGER.info(f"Connecting to Temporal at {settings.temporal_target}")
            self._client = await TemporalClient.connect(
                settings.temporal_target,
                namespace=settings.queue.temporal_namespace,
            )
        return self._client

    def reset(self) -> None:
        """Drop the cached client (the SDK closes connections when released)."""
        self._client = None


_temporal_manager = TemporalClientManager()


async def get_temporal_client() -> TemporalClient:
    """Get the shared Temporal client instance."""
    return await _temporal_manager.get_client()


def reset_temporal_client() -> None:
    _temporal_manager.reset()
