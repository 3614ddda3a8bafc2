"""Tests for the Tool Executor, its undo slot and the rate limiter."""

from datetime import datetime, timedelta, timezone

from chat_kernel.audit.store import AuditLog
from chat_kernel.models.audit import AuditKind
from chat_kernel.models.plan import ConfidenceLevel, EntityType, ExecutionPlan, IntentCategory
from chat_kernel.models.tools import ToolCategory
from chat_kernel.tools.catalog import build_default_registry
from chat_kernel.tools.executor import ToolExecutor
from chat_kernel.tools.rate_limiter import RateLimiter, RateLimitRule
from chat_kernel.workspace.seed import seed_demo_workspace

T0 = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


def _make_plan(tool: str, intent: IntentCategory = IntentCategory.UPDATE, **arguments) -> ExecutionPlan:
    return ExecutionPlan(
        intent=intent,
        tool=tool,
        arguments=arguments,
        confidence=0.9,
        confidence_level=ConfidenceLevel.HIGH,
        original_message=f"run {tool}",
    )


class TestExecution:
    def setup_method(self):
        self.workspace = seed_demo_workspace(current_time=T0)
        self.audit = AuditLog()
        self.executor = ToolExecutor(build_default_registry(), self.workspace, self.audit)

    def test_create_task(self):
        before = self.workspace.count(EntityType.TASK)
        result = self.executor.execute(
            _make_plan("create_task", IntentCategory.CREATE, title="Call John", priority="high"),
            current_time=T0,
        )
        assert result.success
        assert result.render_as == "task-card"
        assert result.data["title"] == "Call John"
        assert result.message == 'Created task "Call John".'
        assert result.undoable
        assert self.workspace.count(EntityType.TASK) == before + 1

    def test_defaults_are_applied(self):
        result = self.executor.execute(_make_plan("create_task", IntentCategory.CREATE, title="Prep"))
        assert result.arguments["priority"] == "medium"
        assert result.data["priority"] == "medium"

    def test_unknown_tool(self):
        result = self.executor.execute(_make_plan("launch_rocket"))
        assert not result.success
        assert result.error_code == "unknown_tool"
        assert result.error == "Unknown tool: launch_rocket"

    def test_invalid_arguments_have_no_side_effects(self):
        before = self.workspace.count(EntityType.TASK)
        result = self.executor.execute(
            _make_plan("create_task", IntentCategory.CREATE, title="Prep", priority="critical")
        )
        assert not result.success
        assert result.error_code == "validation_error"
        assert "priority must be one of" in result.error
        assert self.workspace.count(EntityType.TASK) == before
        assert not self.executor.undo_available

    def test_missing_required_parameter(self):
        result = self.executor.execute(_make_plan("create_task", IntentCategory.CREATE))
        assert result.error_code == "validation_error"
        assert "Missing required parameter: title" in result.error

    def test_missing_record(self):
        result = self.executor.execute(_make_plan("get_client", IntentCategory.READ, id="cli_nobody"))
        assert not result.success
        assert result.error_code == "not_found"

    def test_invalid_state(self):
        result = self.executor.execute(_make_plan("complete_task", id="task_quarterly"))
        assert result.error_code == "invalid_state"
        assert "already completed" in result.error

    def test_private_arguments_are_not_passed_to_handlers(self):
        result = self.executor.execute(
            _make_plan("delete_task", IntentCategory.DELETE, id="task_call_john", _confirmed=True)
        )
        assert result.success
        assert self.workspace.find(EntityType.TASK, "task_call_john") is None

    def test_mutations_are_audited(self):
        self.executor.execute(_make_plan("complete_task", id="task_call_john"), current_time=T0)
        self.executor.execute(_make_plan("complete_task", id="task_quarterly"), current_time=T0)
        self.executor.execute(_make_plan("list_tasks", IntentCategory.READ), current_time=T0)

        entries = self.audit.query_recent()
        assert [e.kind for e in entries] == [AuditKind.EXECUTION, AuditKind.EXECUTION]
        assert [e.success for e in entries] == [True, False]
        assert entries[0].entity_id == "task_call_john"
        assert entries[1].reason == "invalid_state"


class TestUndo:
    def setup_method(self):
        self.workspace = seed_demo_workspace(current_time=T0)
        self.audit = AuditLog()
        self.executor = ToolExecutor(build_default_registry(), self.workspace, self.audit)

    def _create(self, title: str) -> str:
        result = self.executor.execute(_make_plan("create_task", IntentCategory.CREATE, title=title))
        return result.data["id"]

    def test_nothing_to_undo(self):
        result = self.executor.undo_last()
        assert not result.success
        assert result.error_code == "nothing_to_undo"
        assert result.error == "There's nothing to undo."

    def test_undo_reverses_create(self):
        task_id = self._create("Prep agenda")
        assert self.executor.undo_description == 'Undo create task "Prep agenda"'

        result = self.executor.undo_last(current_time=T0)
        assert result.success
        assert result.message == 'Done. I reversed the last change (create task "Prep agenda").'
        assert self.workspace.find(EntityType.TASK, task_id) is None
        assert not self.executor.undo_available

    def test_undo_runs_at_most_once(self):
        self._create("Prep agenda")
        assert self.executor.undo_last().success
        assert self.executor.undo_last().error_code == "nothing_to_undo"

    def test_newer_action_replaces_slot(self):
        first = self._create("First")
        second = self._create("Second")
        self.executor.undo_last()
        assert self.workspace.find(EntityType.TASK, first) is not None
        assert self.workspace.find(EntityType.TASK, second) is None

    def test_undo_restores_deleted_client(self):
        self.executor.execute(_make_plan("delete_client", IntentCategory.DELETE, id="cli_acme"))
        assert self.workspace.find(EntityType.CLIENT, "cli_acme") is None
        self.executor.undo_last()
        assert self.workspace.get(EntityType.CLIENT, "cli_acme").name == "Acme Holdings"

    def test_undo_restores_updated_fields(self):
        self.executor.execute(_make_plan("update_client", id="cli_john_smith", risk_profile="aggressive"))
        self.executor.undo_last()
        assert self.workspace.get(EntityType.CLIENT, "cli_john_smith").risk_profile == "conservative"

    def test_non_undoable_mutation_clears_slot(self):
        self._create("Prep agenda")
        self.executor.execute(
            _make_plan("bulk_update_tasks", status="completed", filter_status="pending")
        )
        assert not self.executor.undo_available

    def test_reads_keep_slot(self):
        self._create("Prep agenda")
        self.executor.execute(_make_plan("list_tasks", IntentCategory.READ))
        assert self.executor.undo_available

    def test_failed_mutation_keeps_slot(self):
        self._create("Prep agenda")
        self.executor.execute(_make_plan("complete_task", id="task_quarterly"))
        assert self.executor.undo_available

    def test_undo_plan_is_routed_to_slot(self):
        task_id = self._create("Prep agenda")
        result = self.executor.execute(_make_plan("undo_action", IntentCategory.UNDO))
        assert result.success
        assert self.workspace.find(EntityType.TASK, task_id) is None

    def test_undo_is_audited(self):
        self._create("Prep agenda")
        self.executor.undo_last(current_time=T0)
        last = self.audit.query_recent(1)[0]
        assert last.kind == AuditKind.UNDO
        assert last.success is True
        assert last.tool_name == "create_task"


class TestRateLimits:
    def setup_method(self):
        rules = {
            ToolCategory.CREATE: RateLimitRule(
                max_operations=2, window_seconds=60, message="Slow down."
            ),
        }
        self.limiter = RateLimiter(rules=rules)
        self.executor = ToolExecutor(
            build_default_registry(), seed_demo_workspace(current_time=T0),
            rate_limiter=self.limiter,
        )

    def _create(self, at: datetime):
        return self.executor.execute(
            _make_plan("create_task", IntentCategory.CREATE, title="Prep"), current_time=at
        )

    def test_limit_is_enforced_per_window(self):
        assert self._create(T0).success
        assert self._create(T0 + timedelta(seconds=1)).success

        blocked = self._create(T0 + timedelta(seconds=2))
        assert not blocked.success
        assert blocked.rate_limited
        assert blocked.error_code == "rate_limited"
        assert blocked.error == "Slow down."
        assert blocked.rate_limit_reset_at == T0 + timedelta(seconds=60)

        assert self._create(T0 + timedelta(seconds=61)).success

    def test_failures_do_not_count(self):
        for _ in range(3):
            self.executor.execute(
                _make_plan("create_task", IntentCategory.CREATE), current_time=T0
            )
        assert self._create(T0).success

    def test_reads_are_never_limited(self):
        for _ in range(5):
            result = self.executor.execute(
                _make_plan("list_tasks", IntentCategory.READ), current_time=T0
            )
            assert result.success

    def test_disabled_limiter_allows_everything(self):
        self.limiter.enabled = False
        for _ in range(4):
            assert self._create(T0).success
