"""
Context Store — per-conversation Accumulated Context with merge semantics.

Behavioral Contract:
- merge() overwrites only the fields explicitly present in the update
- Fields absent from the update keep their previous values (explicit None clears)
- recent_entities: new mentions are prepended, a repeat (same id + type)
  moves to the front, and the list is capped
- Contexts live for the lifetime of a conversation; reset() clears one
"""

import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional, Union

from chat_kernel.models.context import AccumulatedContext, RecentEntity
from chat_kernel.models.plan import EntityType, ExecutionPlan, IntentCategory
from chat_kernel.models.tools import ToolResult
from chat_kernel.workspace.store import utcnow

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 10

ContextUpdate = Union[AccumulatedContext, dict]


def _as_update(update: ContextUpdate) -> AccumulatedContext:
    if isinstance(update, AccumulatedContext):
        return update
    return AccumulatedContext.model_validate(update)


def merge_recent(
    existing: List[RecentEntity],
    mentions: List[RecentEntity],
    limit: int = DEFAULT_RECENT_LIMIT,
) -> List[RecentEntity]:
    merged = list(mentions)
    seen = {(e.id, e.type) for e in mentions}
    for entity in existing:
        if (entity.id, entity.type) not in seen:
            merged.append(entity)
            seen.add((entity.id, entity.type))
    return merged[:limit]


def merge(
    existing: AccumulatedContext,
    update: ContextUpdate,
    limit: int = DEFAULT_RECENT_LIMIT,
) -> AccumulatedContext:
    """Field-wise merge. Returns a new context; neither input is modified."""
    update = _as_update(update)
    changes = {}
    for field_name in update.model_fields_set:
        if field_name == "recent_entities":
            continue
        changes[field_name] = getattr(update, field_name)

    if "recent_entities" in update.model_fields_set:
        changes["recent_entities"] = merge_recent(
            existing.recent_entities, update.recent_entities, limit
        )

    return existing.model_copy(update=changes, deep=True)


_FOCUS_FIELDS = {
    EntityType.CLIENT: "focused_client_id",
    EntityType.TASK: "focused_task_id",
    EntityType.OPPORTUNITY: "focused_opportunity_id",
}


def _entity_name(data: dict) -> Optional[str]:
    return data.get("name") or data.get("title")


def derive_update(
    plan: ExecutionPlan,
    result: ToolResult,
    current_time: Optional[datetime] = None,
) -> AccumulatedContext:
    """
    Context update produced by one completed execution.

    A successful single-entity result focuses that entity and records it
    as a recent mention. A delete clears the focus instead.
    """
    fields = {
        "last_intent": plan.intent,
        "last_tool": result.tool_name,
    }
    entity_type = plan.entity_type
    if entity_type is not None:
        fields["last_entity_type"] = entity_type

    if not result.success or entity_type is None:
        return AccumulatedContext(**fields)

    focus_field = _FOCUS_FIELDS.get(entity_type)
    data = result.data
    if plan.intent == IntentCategory.DELETE:
        if focus_field:
            fields[focus_field] = None
        return AccumulatedContext(**fields)

    if isinstance(data, dict) and data.get("id") and _entity_name(data):
        if focus_field:
            fields[focus_field] = data["id"]
        fields["recent_entities"] = [RecentEntity(
            id=data["id"],
            type=entity_type,
            name=_entity_name(data),
            mentioned_at=current_time or utcnow(),
        )]
    return AccumulatedContext(**fields)


class ContextStore:
    """One AccumulatedContext per conversation id, in memory."""

    def __init__(self, recent_limit: int = DEFAULT_RECENT_LIMIT):
        self.recent_limit = recent_limit
        self._contexts: Dict[str, AccumulatedContext] = {}
        self._lock = threading.Lock()

    def get(self, conversation_id: str) -> AccumulatedContext:
        with self._lock:
            context = self._contexts.get(conversation_id)
        return context.model_copy(deep=True) if context else AccumulatedContext()

    def apply(self, conversation_id: str, update: ContextUpdate) -> AccumulatedContext:
        """Merge an update into a conversation's context and return the result."""
        with self._lock:
            existing = self._contexts.get(conversation_id) or AccumulatedContext()
            merged = merge(existing, update, self.recent_limit)
            self._contexts[conversation_id] = merged
        return merged.model_copy(deep=True)

    def reset(self, conversation_id: str) -> bool:
        with self._lock:
            existed = self._contexts.pop(conversation_id, None) is not None
        if existed:
            logger.info("Context reset for conversation %s", conversation_id)
        return existed

    def conversations(self) -> List[str]:
        with self._lock:
            return sorted(self._contexts)
