"""A time-boxed, single-use approval token and its outcomes."""

from datetime import datetime
from enum import Enum
from typing import Optional

from chat_kernel.models.base import WireModel
from chat_kernel.models.plan import AffectedEntity, ExecutionPlan


class ConfirmationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


class PendingConfirmation(WireModel):
    """
    Owned by the ConfirmationManager. Everyone else refers to it by id.

    Lifecycle: pending -> {confirmed | cancelled | expired}, all terminal.
    """

    id: str
    plan: ExecutionPlan
    created_at: datetime
    expires_at: datetime
    message: str
    consequence: Optional[str] = None
    severity: Severity = Severity.WARNING
    affected_entity: Optional[AffectedEntity] = None
    status: ConfirmationStatus = ConfirmationStatus.PENDING
    resolved_at: Optional[datetime] = None

    def is_expired(self, current_time: datetime) -> bool:
        return current_time >= self.expires_at

    def as_pending_action(self) -> dict:
        """Legacy pending-action layout: {id, plan, createdAt, expiresAt, message}."""
        return {
            "id": self.id,
            "plan": self.plan.to_wire(),
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
            "message": self.message,
        }


class ConfirmationOutcome(WireModel):
    should_execute: bool
    confirmation: Optional[PendingConfirmation] = None
    message: Optional[str] = None


class CancellationOutcome(WireModel):
    message: str
    confirmation: Optional[PendingConfirmation] = None
