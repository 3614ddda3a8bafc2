"""Tests for the pipeline data models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from chat_kernel.models import (
    ChatRequest,
    ClarificationNeeded,
    ConfidenceLevel,
    EntityType,
    ErrorEvent,
    ExecutionPlan,
    IntentCategory,
    MatchCandidate,
    MultiMatch,
    PendingConfirmation,
    PipelineConfig,
    RequestContext,
    TextEvent,
    ToolResult,
    UndoRecord,
)
from chat_kernel.models.events import parse_event, to_sse

T0 = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


def _make_plan(**overrides) -> ExecutionPlan:
    fields = dict(
        intent=IntentCategory.READ,
        tool="list_tasks",
        arguments={"status": "needs-review"},
        confidence=0.85,
        confidence_level=ConfidenceLevel.HIGH,
        original_message="Show me pending reviews",
    )
    fields.update(overrides)
    return ExecutionPlan(**fields)


class TestExecutionPlan:
    def test_plan_is_executable_by_default(self):
        plan = _make_plan()
        assert plan.is_executable
        assert not plan.is_pre_confirmed

    def test_clarification_and_multi_match_are_exclusive(self):
        with pytest.raises(ValidationError):
            _make_plan(
                clarification_needed=ClarificationNeeded(
                    field="id", reason="missing", question="Which one?"
                ),
                multi_match=MultiMatch(
                    entity_type=EntityType.CLIENT,
                    matches=[MatchCandidate(id="a", display_name="A")],
                    reason="two",
                ),
            )

    def test_gated_plan_is_not_executable(self):
        plan = _make_plan(clarification_needed=ClarificationNeeded(
            field="title", reason="missing", question="What should the task say?"
        ))
        assert not plan.is_executable

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            _make_plan(confidence=1.5)

    def test_pre_confirmed_marker(self):
        plan = _make_plan(arguments={"id": "cli_acme", "_confirmed": True})
        assert plan.is_pre_confirmed

    def test_wire_format_uses_camel_case(self):
        wire = _make_plan(requires_confirmation=True).to_wire()
        assert wire["requiresConfirmation"] is True
        assert wire["confidenceLevel"] == "high"
        assert wire["originalMessage"] == "Show me pending reviews"
        assert "clarificationNeeded" not in wire


class TestChatRequest:
    def test_accepts_camel_case_payload(self):
        req = ChatRequest.model_validate({
            "message": "yes",
            "conversationId": "conv-1",
            "context": {"focusedClientId": "cli_acme", "pendingAction": "pending-1-abc"},
            "stream": False,
        })
        assert req.conversation_id == "conv-1"
        assert req.context.focused_client_id == "cli_acme"
        assert req.context.pending_id() == "pending-1-abc"

    def test_rejects_empty_message(self):
        with pytest.raises(ValidationError):
            ChatRequest(message="")

    def test_rejects_blank_message(self):
        with pytest.raises(ValidationError):
            ChatRequest(message="   ")

    def test_stream_defaults_to_true(self):
        assert ChatRequest(message="hi").stream is True


class TestRequestContext:
    def test_pending_confirmation_takes_precedence(self):
        ctx = RequestContext(
            pending_confirmation={"id": "pending-2"}, pending_action="pending-1"
        )
        assert ctx.pending_id() == "pending-2"

    def test_no_pending(self):
        assert RequestContext().pending_id() is None

    def test_update_only_carries_supplied_hints(self):
        update = RequestContext(focused_task_id="task_kyc").as_update()
        assert update.model_fields_set == {"focused_task_id"}


class TestStreamEvents:
    def test_parse_event_by_type(self):
        event = parse_event({"type": "error", "message": "boom", "code": "internal_error"})
        assert isinstance(event, ErrorEvent)
        assert event.code == "internal_error"

    def test_sse_framing(self):
        frame = to_sse(TextEvent(content="Hello"))
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert isinstance(parse_event(frame[len("data: "):].strip()), TextEvent)


class TestPendingConfirmation:
    def _make_confirmation(self) -> PendingConfirmation:
        return PendingConfirmation(
            id="pending-1-abc",
            plan=_make_plan(tool="delete_client", intent=IntentCategory.DELETE),
            created_at=T0,
            expires_at=T0 + timedelta(minutes=5),
            message='Are you sure you want to delete client "Acme Holdings"?',
        )

    def test_expiry_boundary(self):
        confirmation = self._make_confirmation()
        assert not confirmation.is_expired(T0 + timedelta(minutes=4, seconds=59))
        assert confirmation.is_expired(T0 + timedelta(minutes=5))

    def test_legacy_pending_action_layout(self):
        action = self._make_confirmation().as_pending_action()
        assert set(action) == {"id", "plan", "createdAt", "expiresAt", "message"}
        assert action["plan"]["tool"] == "delete_client"


class TestToolResult:
    def test_result_is_immutable(self):
        result = ToolResult(success=True, tool_name="get_help")
        with pytest.raises(ValidationError):
            result.success = False

    def test_undo_record_is_not_serialised(self):
        record = UndoRecord(
            undo_action="undo_1", tool_name="create_task",
            description="create task", snapshots=[], recorded_at=T0,
        )
        result = ToolResult(success=True, tool_name="create_task", undo_record=record)
        assert "undoRecord" not in result.to_wire()
        assert result.undo_record is record


class TestPipelineConfig:
    def test_defaults(self):
        config = PipelineConfig()
        assert config.confirmation_ttl_seconds == 300
        assert config.sweep_interval_seconds == 60
        assert config.max_disambiguation_matches == 5

    def test_valid_cron_schedule(self):
        assert PipelineConfig(sweep_schedule="*/5 * * * *").sweep_schedule == "*/5 * * * *"

    def test_invalid_cron_schedule(self):
        with pytest.raises(ValidationError):
            PipelineConfig(sweep_schedule="every minute")
