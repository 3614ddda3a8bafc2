"""Tests for the Context Store and merge semantics."""

from datetime import datetime, timezone

from chat_kernel.context.store import ContextStore, derive_update, merge, merge_recent
from chat_kernel.models.context import AccumulatedContext, RecentEntity
from chat_kernel.models.plan import ConfidenceLevel, EntityType, ExecutionPlan, IntentCategory
from chat_kernel.models.tools import ToolResult

T0 = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


def _recent(entity_id: str, entity_type: EntityType = EntityType.CLIENT) -> RecentEntity:
    return RecentEntity(id=entity_id, type=entity_type, name=entity_id.title(), mentioned_at=T0)


def _make_context() -> AccumulatedContext:
    return AccumulatedContext(
        focused_client_id="cli_sarah_chen",
        focused_task_id="task_kyc",
        last_intent=IntentCategory.READ,
        last_tool="get_client",
        last_entity_type=EntityType.CLIENT,
        recent_entities=[_recent("cli_sarah_chen"), _recent("task_kyc", EntityType.TASK)],
    )


def _make_plan(tool: str, intent: IntentCategory, entity_type: EntityType) -> ExecutionPlan:
    return ExecutionPlan(
        intent=intent,
        entity_type=entity_type,
        tool=tool,
        confidence=0.9,
        confidence_level=ConfidenceLevel.HIGH,
        original_message="test",
    )


class TestMerge:
    def test_empty_update_is_identity(self):
        ctx = _make_context()
        assert merge(ctx, {}) == ctx
        assert merge(ctx, AccumulatedContext()) == ctx

    def test_single_field_update_preserves_the_rest(self):
        ctx = _make_context()
        merged = merge(ctx, {"focused_client_id": "X"})
        assert merged.focused_client_id == "X"
        assert merged.model_dump(exclude={"focused_client_id"}) == ctx.model_dump(
            exclude={"focused_client_id"}
        )

    def test_camel_case_update(self):
        merged = merge(_make_context(), {"focusedOpportunityId": "opp_trust"})
        assert merged.focused_opportunity_id == "opp_trust"
        assert merged.focused_client_id == "cli_sarah_chen"

    def test_explicit_none_clears(self):
        merged = merge(_make_context(), AccumulatedContext(focused_task_id=None))
        assert merged.focused_task_id is None
        assert merged.focused_client_id == "cli_sarah_chen"

    def test_inputs_are_not_modified(self):
        ctx = _make_context()
        before = ctx.model_dump()
        merge(ctx, {"recent_entities": [_recent("cli_acme")]})
        assert ctx.model_dump() == before


class TestRecentEntities:
    def test_new_mentions_are_prepended(self):
        merged = merge_recent([_recent("a"), _recent("b")], [_recent("c")])
        assert [e.id for e in merged] == ["c", "a", "b"]

    def test_duplicate_moves_to_front(self):
        merged = merge_recent([_recent("a"), _recent("b"), _recent("c")], [_recent("b")])
        assert [e.id for e in merged] == ["b", "a", "c"]

    def test_same_id_different_type_is_distinct(self):
        merged = merge_recent([_recent("x", EntityType.TASK)], [_recent("x")])
        assert len(merged) == 2

    def test_capped(self):
        existing = [_recent(f"cli_{i}") for i in range(10)]
        merged = merge_recent(existing, [_recent("cli_new")], limit=10)
        assert len(merged) == 10
        assert merged[0].id == "cli_new"
        assert merged[-1].id == "cli_8"


class TestDeriveUpdate:
    def test_single_entity_result_focuses_it(self):
        plan = _make_plan("get_task", IntentCategory.READ, EntityType.TASK)
        result = ToolResult(
            success=True, tool_name="get_task",
            data={"id": "task_call_john", "title": "Call John Smith about retirement plan"},
        )
        update = derive_update(plan, result, current_time=T0)
        assert update.focused_task_id == "task_call_john"
        assert update.last_tool == "get_task"
        assert update.recent_entities[0].name == "Call John Smith about retirement plan"

    def test_list_result_only_records_the_turn(self):
        plan = _make_plan("list_tasks", IntentCategory.READ, EntityType.TASK)
        result = ToolResult(success=True, tool_name="list_tasks", data=[{"id": "t", "title": "T"}])
        update = derive_update(plan, result)
        assert update.model_fields_set == {"last_intent", "last_tool", "last_entity_type"}

    def test_delete_clears_focus(self):
        plan = _make_plan("delete_client", IntentCategory.DELETE, EntityType.CLIENT)
        result = ToolResult(
            success=True, tool_name="delete_client", data={"id": "cli_acme", "name": "Acme Holdings"}
        )
        merged = merge(_make_context(), derive_update(plan, result))
        assert merged.focused_client_id is None
        assert merged.focused_task_id == "task_kyc"

    def test_failure_does_not_focus(self):
        plan = _make_plan("get_client", IntentCategory.READ, EntityType.CLIENT)
        result = ToolResult(success=False, tool_name="get_client", error_code="not_found")
        update = derive_update(plan, result)
        assert "focused_client_id" not in update.model_fields_set


class TestContextStore:
    def setup_method(self):
        self.store = ContextStore(recent_limit=3)

    def test_unknown_conversation_is_empty(self):
        assert self.store.get("nope") == AccumulatedContext()

    def test_apply_accumulates(self):
        self.store.apply("c1", {"focused_client_id": "cli_acme"})
        self.store.apply("c1", {"last_tool": "get_client"})
        ctx = self.store.get("c1")
        assert ctx.focused_client_id == "cli_acme"
        assert ctx.last_tool == "get_client"

    def test_conversations_are_isolated(self):
        self.store.apply("c1", {"focused_client_id": "cli_acme"})
        assert self.store.get("c2").focused_client_id is None

    def test_recent_limit_applies(self):
        for i in range(5):
            self.store.apply("c1", {"recent_entities": [_recent(f"cli_{i}")]})
        assert [e.id for e in self.store.get("c1").recent_entities] == ["cli_4", "cli_3", "cli_2"]

    def test_reset(self):
        self.store.apply("c1", {"focused_client_id": "cli_acme"})
        assert self.store.reset("c1") is True
        assert self.store.reset("c1") is False
        assert self.store.conversations() == []
