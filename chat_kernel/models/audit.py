"""One append-only record of a gated or mutating decision."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class AuditKind(str, Enum):
    CONFIRMATION = "confirmation"
    EXECUTION = "execution"
    UNDO = "undo"


class AuditDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class AuditEntry(BaseModel):
    id: str
    kind: AuditKind
    recorded_at: datetime

    # WHAT
    tool_name: Optional[str] = None
    decision: Optional[AuditDecision] = None
    success: Optional[bool] = None
    reason: Optional[str] = None
    confirmation_id: Optional[str] = None

    # AFFECTED ENTITY
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None

    detail: dict = {}

    # INTEGRITY
    signature: str = ""
    prior_record_hash: Optional[str] = None
