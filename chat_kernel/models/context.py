"""Cross-turn conversational memory."""

from datetime import datetime
from typing import List, Optional

from chat_kernel.models.base import WireModel
from chat_kernel.models.plan import EntityType, IntentCategory


class RecentEntity(WireModel):
    id: str
    type: EntityType
    name: str
    mentioned_at: datetime


class AccumulatedContext(WireModel):
    """
    Per-conversation state carried between turns.

    Used both as the stored value and as a partial update: only the fields
    explicitly set on an update instance are applied by merge().
    """

    focused_client_id: Optional[str] = None
    focused_task_id: Optional[str] = None
    focused_opportunity_id: Optional[str] = None
    last_intent: Optional[IntentCategory] = None
    last_tool: Optional[str] = None
    last_entity_type: Optional[EntityType] = None
    pending_confirmation_id: Optional[str] = None
    recent_entities: List[RecentEntity] = []  # most recent first

    def focused_id(self, entity_type: EntityType) -> Optional[str]:
        return {
            EntityType.CLIENT: self.focused_client_id,
            EntityType.TASK: self.focused_task_id,
            EntityType.OPPORTUNITY: self.focused_opportunity_id,
        }.get(entity_type)
