"""
Confirmation Manager — owns every Pending Confirmation.

Behavioral Contract:
- create() always issues a fresh id; ids are never reused
- confirm() is a single atomic check-and-transition: of any number of
  concurrent confirms on one id, at most one sees should_execute=True
- A confirm at or after expires_at never executes, whether or not the
  sweep has run
- cancel() is idempotent and has no execution side effect
- sweep_expired() is cleanup only; correctness never depends on it
- Every confirm/cancel decision on a known id is appended to the audit log
"""

import asyncio
import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from croniter import croniter

from chat_kernel.audit.store import AuditLog
from chat_kernel.models.audit import AuditDecision
from chat_kernel.models.config import PipelineConfig
from chat_kernel.models.confirmation import (
    CancellationOutcome,
    ConfirmationOutcome,
    ConfirmationStatus,
    PendingConfirmation,
    Severity,
)
from chat_kernel.models.plan import AffectedEntity, ExecutionPlan
from chat_kernel.tools.registry import ToolRegistry
from chat_kernel.workspace.store import utcnow

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Confirmation not found. It may have expired."
EXPIRED_MESSAGE = "This confirmation has expired. Please try again."
CANCELLED_MESSAGE = "Action cancelled. No changes were made."


class ConfirmationCooldownError(Exception):
    """Raised when the same action on the same entity was confirmed too recently."""

    def __init__(self, tool_name: str, remaining_seconds: int):
        self.tool_name = tool_name
        self.remaining_seconds = remaining_seconds
        super().__init__(
            f"Please wait {remaining_seconds} seconds before trying this action again."
        )


class ConfirmationManager:
    """
    In-memory confirmation store. Passed by reference to whoever needs it;
    confirm() is the only way a pending plan is released for execution.
    """

    def __init__(
        self,
        audit_log: Optional[AuditLog] = None,
        config: Optional[PipelineConfig] = None,
        registry: Optional[ToolRegistry] = None,
    ):
        self.audit_log = audit_log
        self.config = config or PipelineConfig()
        self.registry = registry
        self._pending: Dict[str, PendingConfirmation] = {}
        self._cooldowns: Dict[Tuple[str, str], datetime] = {}
        self._lock = threading.Lock()

    # --- creation ---

    def _cooldown_key(self, plan: ExecutionPlan) -> Tuple[str, str]:
        entity = plan.affected_entity
        return plan.tool, entity.id if entity else ""

    def create(
        self,
        plan: ExecutionPlan,
        message: str,
        affected_entity: Optional[AffectedEntity] = None,
        current_time: Optional[datetime] = None,
    ) -> PendingConfirmation:
        """
        Register a plan awaiting approval.

        Raises ConfirmationCooldownError if the same tool was just confirmed
        for the same entity.
        """
        now = current_time or utcnow()
        definition = self.registry.get_definition(plan.tool) if self.registry else None
        ttl = self.config.confirmation_ttl_seconds
        if definition is not None and definition.confirmation_ttl_seconds:
            ttl = definition.confirmation_ttl_seconds

        key = self._cooldown_key(plan)
        with self._lock:
            until = self._cooldowns.get(key)
            if until is not None and now < until:
                remaining = int((until - now).total_seconds() + 0.999)
                raise ConfirmationCooldownError(plan.tool, remaining)

            confirmation = PendingConfirmation(
                id=f"pending-{int(now.timestamp() * 1000)}-{uuid4().hex[:8]}",
                plan=plan,
                created_at=now,
                expires_at=now + timedelta(seconds=ttl),
                message=message,
                consequence=definition.consequence if definition else None,
                severity=definition.severity if definition else Severity.WARNING,
                affected_entity=affected_entity or plan.affected_entity,
            )
            self._pending[confirmation.id] = confirmation

        logger.info(
            "Confirmation %s created for %s (expires %s)",
            confirmation.id, plan.tool, confirmation.expires_at.isoformat(),
        )
        return confirmation.model_copy(deep=True)

    # --- resolution ---

    def confirm(
        self, confirmation_id: str, current_time: Optional[datetime] = None
    ) -> ConfirmationOutcome:
        """Release the stored plan if, and only if, it is still pending and unexpired."""
        now = current_time or utcnow()
        with self._lock:
            confirmation = self._pending.pop(confirmation_id, None)
            if confirmation is not None:
                if confirmation.is_expired(now):
                    confirmation.status = ConfirmationStatus.EXPIRED
                else:
                    confirmation.status = ConfirmationStatus.CONFIRMED
                    self._start_cooldown(confirmation, now)
                confirmation.resolved_at = now

        if confirmation is None:
            logger.warning("Confirm for unknown confirmation %s", confirmation_id)
            return ConfirmationOutcome(should_execute=False, message=NOT_FOUND_MESSAGE)

        if confirmation.status == ConfirmationStatus.EXPIRED:
            logger.warning("Confirm for expired confirmation %s", confirmation_id)
            self._audit(confirmation, AuditDecision.REJECTED, "expired", now)
            return ConfirmationOutcome(
                should_execute=False, confirmation=confirmation, message=EXPIRED_MESSAGE
            )

        logger.info("Confirmation %s approved", confirmation_id)
        self._audit(confirmation, AuditDecision.APPROVED, None, now)
        return ConfirmationOutcome(should_execute=True, confirmation=confirmation)

    def cancel(
        self, confirmation_id: str, current_time: Optional[datetime] = None
    ) -> CancellationOutcome:
        """Withdraw a confirmation. Safe to call on unknown or already-resolved ids."""
        now = current_time or utcnow()
        with self._lock:
            confirmation = self._pending.pop(confirmation_id, None)
            if confirmation is not None:
                confirmation.status = ConfirmationStatus.CANCELLED
                confirmation.resolved_at = now

        if confirmation is not None:
            logger.info("Confirmation %s cancelled", confirmation_id)
            self._audit(confirmation, AuditDecision.REJECTED, "cancelled", now)
        return CancellationOutcome(message=CANCELLED_MESSAGE, confirmation=confirmation)

    def _start_cooldown(self, confirmation: PendingConfirmation, now: datetime) -> None:
        definition = (
            self.registry.get_definition(confirmation.plan.tool) if self.registry else None
        )
        if definition is not None and definition.cooldown_seconds > 0:
            key = self._cooldown_key(confirmation.plan)
            self._cooldowns[key] = now + timedelta(seconds=definition.cooldown_seconds)

    def _audit(
        self,
        confirmation: PendingConfirmation,
        decision: AuditDecision,
        reason: Optional[str],
        now: datetime,
    ) -> None:
        if self.audit_log is not None:
            self.audit_log.record_confirmation(
                confirmation, decision, reason=reason, current_time=now
            )

    # --- inspection ---

    def get(self, confirmation_id: str) -> Optional[PendingConfirmation]:
        with self._lock:
            confirmation = self._pending.get(confirmation_id)
            return confirmation.model_copy(deep=True) if confirmation else None

    def list_pending(self, current_time: Optional[datetime] = None) -> List[PendingConfirmation]:
        """Unexpired pending confirmations, oldest first."""
        now = current_time or utcnow()
        with self._lock:
            pending = [c.model_copy(deep=True) for c in self._pending.values()]
        return sorted(
            (c for c in pending if not c.is_expired(now)), key=lambda c: c.created_at
        )

    def pending_actions(self, current_time: Optional[datetime] = None) -> Dict[str, dict]:
        """Legacy layout: {id: {id, plan, createdAt, expiresAt, message}}."""
        return {c.id: c.as_pending_action() for c in self.list_pending(current_time)}

    # --- expiry ---

    def sweep_expired(self, current_time: Optional[datetime] = None) -> int:
        """Drop expired confirmations and lapsed cooldowns. Returns how many confirmations went."""
        now = current_time or utcnow()
        with self._lock:
            expired = [cid for cid, c in self._pending.items() if c.is_expired(now)]
            for cid in expired:
                del self._pending[cid]
            lapsed = [k for k, until in self._cooldowns.items() if until <= now]
            for key in lapsed:
                del self._cooldowns[key]
        if expired:
            logger.info("Swept %d expired confirmation(s)", len(expired))
        return len(expired)

    def _seconds_until_next_sweep(self, now: datetime) -> float:
        if self.config.sweep_schedule:
            next_fire = croniter(self.config.sweep_schedule, now).get_next(datetime)
            return max((next_fire - now).total_seconds(), 0.0)
        return float(self.config.sweep_interval_seconds)

    async def run_sweeper_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Sweep on a fixed interval (or cron schedule) until stop_event is set."""
        if stop_event is None:
            stop_event = asyncio.Event()

        while not stop_event.is_set():
            await asyncio.to_thread(self.sweep_expired)
            try:
                await asyncio.wait_for(
                    stop_event.wait(),
                    timeout=self._seconds_until_next_sweep(utcnow()),
                )
            except asyncio.TimeoutError:
                continue
