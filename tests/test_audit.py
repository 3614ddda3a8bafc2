"""Tests for the hash-chained Audit Log."""

from datetime import datetime, timedelta, timezone

from chat_kernel.audit.store import AuditLog
from chat_kernel.models.audit import AuditDecision, AuditKind
from chat_kernel.models.confirmation import ConfirmationStatus, PendingConfirmation
from chat_kernel.models.plan import (
    AffectedEntity,
    ConfidenceLevel,
    EntityType,
    ExecutionPlan,
    IntentCategory,
)
from chat_kernel.models.tools import EntitySnapshot, ToolResult, UndoRecord

T0 = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


def _make_plan(entity_id: str = "cli_acme") -> ExecutionPlan:
    return ExecutionPlan(
        intent=IntentCategory.DELETE,
        entity_type=EntityType.CLIENT,
        tool="delete_client",
        arguments={"id": entity_id},
        confidence=0.85,
        confidence_level=ConfidenceLevel.HIGH,
        requires_confirmation=True,
        original_message="delete client Acme",
        affected_entity=AffectedEntity(type=EntityType.CLIENT, id=entity_id, name="Acme Holdings"),
    )


def _make_confirmation(confirmation_id: str = "pending-1-abc") -> PendingConfirmation:
    plan = _make_plan()
    return PendingConfirmation(
        id=confirmation_id,
        plan=plan,
        created_at=T0,
        expires_at=T0 + timedelta(minutes=5),
        message='Are you sure you want to delete client "Acme Holdings"?',
        affected_entity=plan.affected_entity,
        status=ConfirmationStatus.CONFIRMED,
    )


class TestAuditLog:
    def setup_method(self):
        self.log = AuditLog(db_path=":memory:")

    def test_record_confirmation(self):
        entry = self.log.record_confirmation(
            _make_confirmation(), AuditDecision.APPROVED, current_time=T0
        )
        assert entry.kind == AuditKind.CONFIRMATION
        assert entry.decision == AuditDecision.APPROVED
        assert entry.entity_type == "client"
        assert entry.entity_id == "cli_acme"
        assert entry.entity_name == "Acme Holdings"
        assert entry.recorded_at == T0
        assert entry.signature

    def test_entries_are_chained(self):
        first = self.log.record_confirmation(_make_confirmation(), AuditDecision.APPROVED)
        second = self.log.record_execution(
            _make_plan(), ToolResult(success=True, tool_name="delete_client", arguments={"id": "cli_acme"})
        )
        assert first.prior_record_hash is None
        assert second.prior_record_hash == first.signature
        assert self.log.verify_chain_integrity()

    def test_tampering_is_detected(self):
        self.log.record_confirmation(_make_confirmation(), AuditDecision.APPROVED)
        self.log.record_confirmation(
            _make_confirmation("pending-2-def"), AuditDecision.REJECTED, reason="cancelled"
        )
        entry = self.log.query_recent(1)[0]
        forged = entry.model_copy(update={"decision": AuditDecision.APPROVED})
        self.log._conn.execute(
            "UPDATE audit SET record_json = ? WHERE id = ?",
            (forged.model_dump_json(), entry.id),
        )
        assert not self.log.verify_chain_integrity()

    def test_query_by_confirmation(self):
        self.log.record_confirmation(_make_confirmation(), AuditDecision.APPROVED)
        self.log.record_confirmation(
            _make_confirmation("pending-2-def"), AuditDecision.REJECTED, reason="expired"
        )
        entries = self.log.query_by_confirmation("pending-2-def")
        assert len(entries) == 1
        assert entries[0].reason == "expired"

    def test_query_by_entity(self):
        self.log.record_execution(
            _make_plan(), ToolResult(success=True, tool_name="delete_client", arguments={"id": "cli_acme"})
        )
        self.log.record_execution(
            _make_plan("cli_john_smith"),
            ToolResult(success=False, tool_name="delete_client", error_code="not_found"),
        )
        assert len(self.log.query_by_entity("cli_acme")) == 1
        failed = self.log.query_by_entity("cli_john_smith")[0]
        assert failed.success is False
        assert failed.reason == "not_found"

    def test_record_undo(self):
        record = UndoRecord(
            undo_action="undo_1",
            tool_name="delete_client",
            description='delete client "Acme Holdings"',
            snapshots=[EntitySnapshot(entity_type=EntityType.CLIENT, entity_id="cli_acme", state={})],
            recorded_at=T0,
        )
        entry = self.log.record_undo(record, success=True)
        assert entry.kind == AuditKind.UNDO
        assert entry.entity_id == "cli_acme"

    def test_query_recent_keeps_recording_order(self):
        for i in range(5):
            self.log.record_confirmation(
                _make_confirmation(f"pending-{i}"), AuditDecision.APPROVED
            )
        recent = self.log.query_recent(limit=3)
        assert [e.confirmation_id for e in recent] == ["pending-2", "pending-3", "pending-4"]
        assert self.log.count() == 5
