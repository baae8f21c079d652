import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class SSEEventType(str, Enum):
    TOKEN = "token"
    DONE = "done"
    ERROR = "error"
    PROGRESS = "progress"
    FINISHED = "finished"
    HEARTBEAT = "heartbeat"


class SSEEvent(BaseModel):
    event_type: SSEEventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any] = Field(default_factory=dict)


def format_sse(event: SSEEvent) -> str:
    """Serialise an event as one `data:` frame."""
    payload = {"type": event.event_type.value, "timestamp": event.timestamp.isoformat(), **event.data}
    return f"data: {json.dumps(payload, default=str)}\n\n"
