"""Inbound chat request and the non-streaming reply."""

from typing import Any, Dict, List, Optional, Union

from pydantic import Field, field_validator

from chat_kernel.models.base import WireModel
from chat_kernel.models.context import AccumulatedContext
from chat_kernel.models.plan import ClarificationNeeded, IntentCategory, MatchCandidate


class RequestContext(WireModel):
    """Context hints the client echoes back with each message."""

    focused_task_id: Optional[str] = None
    focused_client_id: Optional[str] = None
    focused_opportunity_id: Optional[str] = None
    last_intent: Optional[IntentCategory] = None
    last_tool: Optional[str] = None
    pending_action: Optional[Union[str, Dict[str, Any]]] = None
    pending_confirmation: Optional[Union[str, Dict[str, Any]]] = None

    def pending_id(self) -> Optional[str]:
        for value in (self.pending_confirmation, self.pending_action):
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("id"):
                return str(value["id"])
        return None

    def as_update(self) -> AccumulatedContext:
        """Only the hints actually supplied become a context update."""
        fields = self.model_dump(
            exclude_unset=True,
            exclude_none=True,
            include={
                "focused_task_id",
                "focused_client_id",
                "focused_opportunity_id",
                "last_intent",
                "last_tool",
            },
        )
        return AccumulatedContext(**fields)


class ChatRequest(WireModel):
    message: str = Field(min_length=1)
    context: Optional[RequestContext] = None
    conversation_id: Optional[str] = None
    stream: bool = True

    @field_validator("message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value


class ChatReply(WireModel):
    """
    Non-streaming response. Exactly one shape is populated:
    a result (content/blocks/cards/context/undo), or one of the gated forms.
    """

    content: Optional[str] = None
    blocks: Optional[List[Dict[str, Any]]] = None
    cards: Optional[List[Dict[str, Any]]] = None
    context: Optional[Dict[str, Any]] = None
    undo_available: Optional[bool] = None
    undo_description: Optional[str] = None

    needs_selection: Optional[bool] = None
    selection_options: Optional[List[MatchCandidate]] = None
    needs_clarification: Optional[bool] = None
    clarification: Optional[ClarificationNeeded] = None
    needs_confirmation: Optional[bool] = None
    pending_action: Optional[Dict[str, Any]] = None

    error: Optional[str] = None
