"""Stream events, the ordered output protocol for one turn."""

import json
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from chat_kernel.models.base import WireModel


class ThinkingEvent(WireModel):
    type: Literal["thinking"] = "thinking"
    status: str


class TextEvent(WireModel):
    type: Literal["text"] = "text"
    content: str


class BlocksEvent(WireModel):
    type: Literal["blocks"] = "blocks"
    items: List[Dict[str, Any]]


class ContextEvent(WireModel):
    type: Literal["context"] = "context"
    update: Dict[str, Any]
    pending_action: Optional[Dict[str, Any]] = None


class DoneEvent(WireModel):
    type: Literal["done"] = "done"


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    message: str
    code: Optional[str] = None


StreamEvent = Annotated[
    Union[ThinkingEvent, TextEvent, BlocksEvent, ContextEvent, DoneEvent, ErrorEvent],
    Field(discriminator="type"),
]

TERMINAL_EVENT_TYPES = ("done", "error")

_event_adapter = TypeAdapter(StreamEvent)


def parse_event(payload: Union[str, bytes, dict]) -> StreamEvent:
    if isinstance(payload, dict):
        return _event_adapter.validate_python(payload)
    return _event_adapter.validate_json(payload)


def to_sse(event: StreamEvent) -> str:
    """Server-sent-events framing: one `data:` line per event."""
    return f"data: {json.dumps(event.to_wire())}\n\n"


class TurnState(str, Enum):
    RECEIVED = "received"
    CONFIRMATION_CHECK = "confirmation-check"
    ROUTING = "routing"
    CLARIFYING = "clarifying"
    DISAMBIGUATING = "disambiguating"
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    RESPONDING = "responding"
    DONE = "done"
    CANCELLED = "cancelled"
    ERROR = "error"


TERMINAL_TURN_STATES = (TurnState.DONE, TurnState.CANCELLED, TurnState.ERROR)
