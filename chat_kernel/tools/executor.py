"""
Tool Executor — validates and runs an Execution Plan against the workspace.

Behavioral Contract:
- Never raises across its boundary: every failure comes back as a ToolResult
  (unknown_tool, rate_limited, validation_error, not_found, store_error,
  invalid_state, handler_error)
- Invalid arguments never reach a handler, so they never cause side effects
- Keeps exactly one undo slot: a newer undoable action replaces it, a newer
  non-undoable mutation clears it, and undo_last() consumes it
- Every mutation, failed mutation and undo is appended to the audit log
"""

import logging
import threading
import time
from datetime import datetime
from typing import Optional

from chat_kernel.audit.store import AuditLog
from chat_kernel.models.plan import ExecutionPlan, IntentCategory
from chat_kernel.models.tools import ToolDefinition, ToolResult, UndoRecord
from chat_kernel.tools.handlers import ToolExecutionError
from chat_kernel.tools.rate_limiter import RateLimiter
from chat_kernel.tools.registry import ToolRegistry, ToolValidationError
from chat_kernel.workspace.store import EntityNotFoundError, WorkspaceStore, WorkspaceStoreError

logger = logging.getLogger(__name__)

UNDO_TOOL = "undo_action"


class ToolExecutor:
    """Runs plans through the registry. One instance per workspace."""

    def __init__(
        self,
        registry: ToolRegistry,
        workspace: WorkspaceStore,
        audit_log: Optional[AuditLog] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.registry = registry
        self.workspace = workspace
        self.audit_log = audit_log
        self.rate_limiter = rate_limiter or RateLimiter()
        self._undo_slot: Optional[UndoRecord] = None
        self._undo_lock = threading.Lock()

    # --- undo slot ---

    @property
    def undo_available(self) -> bool:
        return self._undo_slot is not None

    @property
    def undo_description(self) -> Optional[str]:
        slot = self._undo_slot
        return f"Undo {slot.description}" if slot else None

    def _update_undo_slot(self, definition: ToolDefinition, record: Optional[UndoRecord]) -> None:
        with self._undo_lock:
            if record is not None:
                self._undo_slot = record
            elif definition.mutating:
                self._undo_slot = None

    # --- execution ---

    def execute(
        self, plan: ExecutionPlan, current_time: Optional[datetime] = None
    ) -> ToolResult:
        """Run one plan. Undo plans are delegated to undo_last()."""
        if plan.intent == IntentCategory.UNDO or plan.tool == UNDO_TOOL:
            return self.undo_last(current_time=current_time)

        definition = self.registry.get_definition(plan.tool)
        if definition is None:
            logger.warning("No tool registered under %r", plan.tool)
            return ToolResult(
                success=False,
                tool_name=plan.tool,
                arguments=plan.arguments,
                error=f"Unknown tool: {plan.tool}",
                error_code="unknown_tool",
            )

        status = self.rate_limiter.check(definition.category, current_time)
        if not status.allowed:
            return ToolResult(
                success=False,
                tool_name=definition.name,
                arguments=plan.arguments,
                render_as=definition.render_as,
                error=status.message,
                error_code="rate_limited",
                rate_limited=True,
                rate_limit_reset_at=status.reset_at,
            )

        try:
            arguments = self.registry.validate(definition, plan.arguments)
        except ToolValidationError as e:
            return ToolResult(
                success=False,
                tool_name=definition.name,
                arguments=plan.arguments,
                render_as=definition.render_as,
                error=str(e),
                error_code="validation_error",
                confirmation_required=definition.requires_confirmation,
            )

        result = self._dispatch(definition, arguments)
        if result.success:
            self.rate_limiter.record(definition.category, current_time)
            self._update_undo_slot(definition, result.undo_record)
            logger.info("Executed %s", definition.name)

        if definition.mutating and self.audit_log is not None:
            self.audit_log.record_execution(plan, result, current_time=current_time)
        return result

    def _dispatch(self, definition: ToolDefinition, arguments: dict) -> ToolResult:
        """Run the bound handler and convert its outcome or failure into a result."""
        handler = self.registry.get_handler(definition.name)
        handler_args = {k: v for k, v in arguments.items() if not k.startswith("_")}
        failure = None

        start = time.monotonic()
        try:
            outcome = handler(self.workspace, handler_args)
        except EntityNotFoundError as e:
            failure = (str(e), "not_found")
        except WorkspaceStoreError as e:
            logger.warning("Store error in %s: %s", definition.name, e)
            failure = (str(e), "store_error")
        except ToolExecutionError as e:
            failure = (str(e), e.code)
        except Exception as e:
            logger.exception("Handler %s failed", definition.name)
            failure = (f"{type(e).__name__}: {e}", "handler_error")
        elapsed = round(time.monotonic() - start, 3)

        if failure is not None:
            return ToolResult(
                success=False,
                tool_name=definition.name,
                arguments=arguments,
                render_as=definition.render_as,
                error=failure[0],
                error_code=failure[1],
                duration_seconds=elapsed,
            )

        return ToolResult(
            success=True,
            tool_name=definition.name,
            arguments=arguments,
            render_as=definition.render_as,
            data=outcome.data,
            message=outcome.message,
            undoable=outcome.undo is not None,
            undo_action=outcome.undo.undo_action if outcome.undo else None,
            duration_seconds=elapsed,
            undo_record=outcome.undo,
        )

    def undo_last(self, current_time: Optional[datetime] = None) -> ToolResult:
        """Reverse the most recent undoable action, at most once."""
        with self._undo_lock:
            record = self._undo_slot
            self._undo_slot = None

        if record is None:
            return ToolResult(
                success=False,
                tool_name=UNDO_TOOL,
                error="There's nothing to undo.",
                error_code="nothing_to_undo",
            )

        try:
            for snapshot in reversed(record.snapshots):
                self.workspace.restore(snapshot.entity_type, snapshot.entity_id, snapshot.state)
        except WorkspaceStoreError as e:
            logger.warning("Undo of %s failed: %s", record.tool_name, e)
            if self.audit_log is not None:
                self.audit_log.record_undo(record, success=False, current_time=current_time)
            return ToolResult(
                success=False,
                tool_name=UNDO_TOOL,
                arguments={"undo_action": record.undo_action},
                error=str(e),
                error_code="store_error",
            )

        logger.info("Undid %s (%s)", record.tool_name, record.undo_action)
        if self.audit_log is not None:
            self.audit_log.record_undo(record, success=True, current_time=current_time)
        return ToolResult(
            success=True,
            tool_name=UNDO_TOOL,
            arguments={"undo_action": record.undo_action},
            message=f"Done. I reversed the last change ({record.description}).",
            data={"undone": record.tool_name, "description": record.description},
        )

