"""Default tool catalogue: every tool the assistant can run, with its schema."""

from typing import List

from chat_kernel.models.confirmation import Severity
from chat_kernel.models.plan import EntityType, IntentCategory
from chat_kernel.models.tools import ParameterType, ToolCategory, ToolDefinition, ToolParameter
from chat_kernel.tools import handlers
from chat_kernel.tools.registry import ToolRegistry

P = ParameterType

RISK_PROFILES = ["conservative", "moderate", "aggressive"]
CLIENT_STATUSES = ["active", "inactive", "prospect", "archived"]
TASK_STATUSES = ["pending", "in-progress", "needs-review", "completed"]
PRIORITIES = ["low", "medium", "high"]
OPPORTUNITY_STATUSES = ["new", "viewed", "snoozed", "dismissed", "actioned", "archived"]
EXPORT_FORMATS = ["csv", "json"]


def _id(entity: str, required: bool = True) -> ToolParameter:
    return ToolParameter(
        name="id", type=P.STRING, required=required,
        description=f"{entity.capitalize()} ID",
        prompt=f"Which {entity} do you mean?",
    )


DEFAULT_TOOLS: List[ToolDefinition] = [
    # --- clients ---
    ToolDefinition(
        name="list_clients", description="List clients with optional filters",
        intent=IntentCategory.READ, entity_type=EntityType.CLIENT, render_as="client-table",
        parameters=[
            ToolParameter(name="name", description="Filter by name (partial match)"),
            ToolParameter(name="risk_profile", enum=RISK_PROFILES),
            ToolParameter(name="status", enum=CLIENT_STATUSES),
            ToolParameter(name="limit", type=P.INTEGER, default=20),
        ],
    ),
    ToolDefinition(
        name="get_client", description="Show one client's profile",
        intent=IntentCategory.READ, entity_type=EntityType.CLIENT,
        target_parameter="id", render_as="client-profile",
        parameters=[_id("client")],
    ),
    ToolDefinition(
        name="search_clients", description="Search clients by name, email or notes",
        intent=IntentCategory.SEARCH, entity_type=EntityType.CLIENT, render_as="client-table",
        parameters=[
            ToolParameter(name="query", required=True, prompt="What should I search for?"),
            ToolParameter(name="risk_profile", enum=RISK_PROFILES),
            ToolParameter(name="min_portfolio_value", type=P.NUMBER),
            ToolParameter(name="max_portfolio_value", type=P.NUMBER),
        ],
    ),
    ToolDefinition(
        name="create_client", description="Add a new client",
        intent=IntentCategory.CREATE, category=ToolCategory.CREATE,
        entity_type=EntityType.CLIENT, render_as="client-profile",
        mutating=True, undoable=True,
        parameters=[
            ToolParameter(name="name", required=True, prompt="What is the new client's name?"),
            ToolParameter(name="email"),
            ToolParameter(name="risk_profile", enum=RISK_PROFILES, default="moderate"),
            ToolParameter(name="portfolio_value", type=P.NUMBER, default=0.0),
        ],
    ),
    ToolDefinition(
        name="update_client", description="Update a client's details",
        intent=IntentCategory.UPDATE, category=ToolCategory.UPDATE,
        entity_type=EntityType.CLIENT, target_parameter="id", render_as="client-profile",
        mutating=True, undoable=True,
        parameters=[
            _id("client"),
            ToolParameter(name="email"),
            ToolParameter(name="phone"),
            ToolParameter(name="risk_profile", enum=RISK_PROFILES),
            ToolParameter(name="notes"),
        ],
    ),
    ToolDefinition(
        name="archive_client", description="Mark a client inactive",
        intent=IntentCategory.DELETE, category=ToolCategory.DELETE,
        entity_type=EntityType.CLIENT, target_parameter="id",
        mutating=True, undoable=True,
        requires_confirmation=True, severity=Severity.DANGER, cooldown_seconds=10,
        confirmation_template='Are you sure you want to archive client "{name}"?',
        consequence=(
            "This client will be marked as inactive and hidden from your active "
            "client list. All associated tasks will remain."
        ),
        parameters=[_id("client")],
    ),
    ToolDefinition(
        name="delete_client", description="Remove a client record",
        intent=IntentCategory.DELETE, category=ToolCategory.DELETE,
        entity_type=EntityType.CLIENT, target_parameter="id",
        mutating=True, undoable=True,
        requires_confirmation=True, severity=Severity.DANGER, cooldown_seconds=10,
        confirmation_template='Are you sure you want to delete client "{name}"?',
        consequence="The client record will be removed. You can undo this right after.",
        parameters=[_id("client")],
    ),
    ToolDefinition(
        name="get_client_stats", description="Client book statistics",
        intent=IntentCategory.REPORT, entity_type=EntityType.CLIENT, render_as="stats",
    ),
    ToolDefinition(
        name="export_clients", description="Export the client list",
        intent=IntentCategory.EXPORT, category=ToolCategory.EXPORT,
        entity_type=EntityType.CLIENT, render_as="export",
        parameters=[ToolParameter(name="format", enum=EXPORT_FORMATS, default="csv")],
    ),
    # --- tasks ---
    ToolDefinition(
        name="list_tasks", description="List tasks with optional filters",
        intent=IntentCategory.READ, entity_type=EntityType.TASK, render_as="task-list",
        parameters=[
            ToolParameter(name="status", enum=TASK_STATUSES),
            ToolParameter(name="priority", enum=PRIORITIES),
            ToolParameter(name="client_id"),
            ToolParameter(name="due_date", enum=["today", "week", "overdue", "all"]),
            ToolParameter(name="limit", type=P.INTEGER, default=50),
        ],
    ),
    ToolDefinition(
        name="get_task", description="Show one task",
        intent=IntentCategory.READ, entity_type=EntityType.TASK,
        target_parameter="id", render_as="task-card",
        parameters=[_id("task")],
    ),
    ToolDefinition(
        name="search_tasks", description="Search tasks by title or description",
        intent=IntentCategory.SEARCH, entity_type=EntityType.TASK, render_as="task-list",
        parameters=[
            ToolParameter(name="query", required=True, prompt="What should I search for?"),
            ToolParameter(name="status", enum=TASK_STATUSES),
            ToolParameter(name="priority", enum=PRIORITIES),
        ],
    ),
    ToolDefinition(
        name="create_task", description="Create a task",
        intent=IntentCategory.CREATE, category=ToolCategory.CREATE,
        entity_type=EntityType.TASK, render_as="task-card",
        mutating=True, undoable=True,
        parameters=[
            ToolParameter(name="title", required=True, prompt="What should the task say?"),
            ToolParameter(name="description"),
            ToolParameter(name="client_id"),
            ToolParameter(name="due_date", type=P.DATE),
            ToolParameter(name="priority", enum=PRIORITIES, default="medium"),
        ],
    ),
    ToolDefinition(
        name="update_task", description="Change a task's title, status, priority or due date",
        intent=IntentCategory.UPDATE, category=ToolCategory.UPDATE,
        entity_type=EntityType.TASK, target_parameter="id", render_as="task-card",
        mutating=True, undoable=True,
        parameters=[
            _id("task"),
            ToolParameter(name="title"),
            ToolParameter(name="status", enum=TASK_STATUSES),
            ToolParameter(name="priority", enum=PRIORITIES),
            ToolParameter(name="due_date", type=P.DATE),
        ],
    ),
    ToolDefinition(
        name="complete_task", description="Mark a task completed",
        intent=IntentCategory.UPDATE, category=ToolCategory.UPDATE,
        entity_type=EntityType.TASK, target_parameter="id", render_as="task-card",
        mutating=True, undoable=True, parameters=[_id("task")],
    ),
    ToolDefinition(
        name="approve_task", description="Approve a task waiting for review",
        intent=IntentCategory.UPDATE, category=ToolCategory.UPDATE,
        entity_type=EntityType.TASK, target_parameter="id", render_as="task-card",
        mutating=True, undoable=True, parameters=[_id("task")],
    ),
    ToolDefinition(
        name="reject_task", description="Send a reviewed task back with a note",
        intent=IntentCategory.UPDATE, category=ToolCategory.UPDATE,
        entity_type=EntityType.TASK, target_parameter="id", render_as="task-card",
        mutating=True, undoable=True,
        parameters=[_id("task"), ToolParameter(name="reason")],
    ),
    ToolDefinition(
        name="delete_task", description="Delete a task",
        intent=IntentCategory.DELETE, category=ToolCategory.DELETE,
        entity_type=EntityType.TASK, target_parameter="id",
        mutating=True, undoable=True,
        requires_confirmation=True, severity=Severity.DANGER, cooldown_seconds=5,
        confirmation_template='Are you sure you want to delete the task "{name}"?',
        consequence="This task will be removed. You can undo this action.",
        parameters=[_id("task")],
    ),
    ToolDefinition(
        name="bulk_update_tasks", description="Set the status of many tasks at once",
        intent=IntentCategory.UPDATE, category=ToolCategory.BULK,
        entity_type=EntityType.TASK, render_as="task-list", mutating=True,
        requires_confirmation=True, severity=Severity.WARNING, cooldown_seconds=30,
        confirmation_template="Are you sure you want to update {count} tasks?",
        consequence="Every matching task will change status. This cannot be undone.",
        parameters=[
            ToolParameter(name="status", enum=TASK_STATUSES, required=True,
                          prompt="Which status should the tasks move to?"),
            ToolParameter(name="filter_status", enum=TASK_STATUSES),
            ToolParameter(name="client_id"),
        ],
    ),
    ToolDefinition(
        name="get_task_stats", description="Task workload statistics",
        intent=IntentCategory.REPORT, entity_type=EntityType.TASK, render_as="stats",
    ),
    ToolDefinition(
        name="export_tasks", description="Export tasks",
        intent=IntentCategory.EXPORT, category=ToolCategory.EXPORT,
        entity_type=EntityType.TASK, render_as="export",
        parameters=[
            ToolParameter(name="format", enum=EXPORT_FORMATS, default="csv"),
            ToolParameter(name="status", enum=TASK_STATUSES),
        ],
    ),
    # --- opportunities ---
    ToolDefinition(
        name="list_opportunities", description="List pipeline opportunities",
        intent=IntentCategory.READ, entity_type=EntityType.OPPORTUNITY,
        render_as="opportunity-list",
        parameters=[
            ToolParameter(name="status", enum=OPPORTUNITY_STATUSES),
            ToolParameter(name="type", enum=["contract", "milestone", "market"]),
            ToolParameter(name="impact_level", enum=["high", "medium", "low"]),
            ToolParameter(name="client_id"),
        ],
    ),
    ToolDefinition(
        name="get_opportunity", description="Show one opportunity",
        intent=IntentCategory.READ, entity_type=EntityType.OPPORTUNITY,
        target_parameter="id", render_as="opportunity-detail",
        parameters=[_id("opportunity")],
    ),
    ToolDefinition(
        name="snooze_opportunity", description="Hide an opportunity for a number of days",
        intent=IntentCategory.UPDATE, category=ToolCategory.UPDATE,
        entity_type=EntityType.OPPORTUNITY, target_parameter="id",
        render_as="opportunity-detail", mutating=True, undoable=True,
        parameters=[_id("opportunity"), ToolParameter(name="days", type=P.INTEGER, default=7)],
    ),
    ToolDefinition(
        name="dismiss_opportunity", description="Dismiss an opportunity",
        intent=IntentCategory.UPDATE, category=ToolCategory.UPDATE,
        entity_type=EntityType.OPPORTUNITY, target_parameter="id",
        mutating=True, undoable=True,
        requires_confirmation=True, severity=Severity.WARNING,
        confirmation_ttl_seconds=180, cooldown_seconds=3,
        confirmation_template='Are you sure you want to dismiss the opportunity "{name}"?',
        consequence="This opportunity will be marked as dismissed and won't appear in your active pipeline.",
        parameters=[_id("opportunity"), ToolParameter(name="reason")],
    ),
    ToolDefinition(
        name="archive_opportunity", description="Remove an opportunity from the pipeline",
        intent=IntentCategory.DELETE, category=ToolCategory.DELETE,
        entity_type=EntityType.OPPORTUNITY, target_parameter="id",
        mutating=True, undoable=True,
        requires_confirmation=True, severity=Severity.DANGER, cooldown_seconds=5,
        confirmation_template='Are you sure you want to archive the opportunity "{name}"?',
        consequence="This opportunity will be removed from your pipeline. You can restore it later if needed.",
        parameters=[_id("opportunity")],
    ),
    ToolDefinition(
        name="get_pipeline_summary", description="Pipeline value summary",
        intent=IntentCategory.SUMMARIZE, entity_type=EntityType.OPPORTUNITY, render_as="stats",
    ),
    # --- workflows & automations ---
    ToolDefinition(
        name="list_workflows", description="List workflows",
        intent=IntentCategory.WORKFLOW, entity_type=EntityType.WORKFLOW,
        render_as="workflow-status",
        parameters=[
            ToolParameter(name="status", enum=["active", "completed", "paused", "cancelled"]),
            ToolParameter(name="client_id"),
        ],
    ),
    ToolDefinition(
        name="start_workflow", description="Start a workflow from a template",
        intent=IntentCategory.WORKFLOW, category=ToolCategory.CREATE,
        entity_type=EntityType.WORKFLOW, render_as="workflow-status",
        mutating=True, undoable=True,
        parameters=[
            ToolParameter(name="name", required=True, prompt="Which workflow should I start?"),
            ToolParameter(name="client_id"),
        ],
    ),
    ToolDefinition(
        name="cancel_workflow", description="Cancel a running workflow",
        intent=IntentCategory.WORKFLOW, category=ToolCategory.UPDATE,
        entity_type=EntityType.WORKFLOW, target_parameter="id",
        render_as="workflow-status", mutating=True,
        requires_confirmation=True, severity=Severity.WARNING,
        confirmation_ttl_seconds=180, cooldown_seconds=5,
        confirmation_template='Are you sure you want to cancel the workflow "{name}"?',
        consequence="All progress on this workflow will be lost. This action cannot be undone.",
        parameters=[_id("workflow")],
    ),
    ToolDefinition(
        name="list_automations", description="List automations",
        intent=IntentCategory.AUTOMATION, entity_type=EntityType.AUTOMATION,
        render_as="automation-list",
        parameters=[ToolParameter(name="status", enum=["running", "paused", "pending"])],
    ),
    ToolDefinition(
        name="pause_automation", description="Pause an automation",
        intent=IntentCategory.AUTOMATION, category=ToolCategory.UPDATE,
        entity_type=EntityType.AUTOMATION, target_parameter="id",
        render_as="automation-list", mutating=True, undoable=True,
        parameters=[_id("automation")],
    ),
    ToolDefinition(
        name="resume_automation", description="Resume a paused automation",
        intent=IntentCategory.AUTOMATION, category=ToolCategory.UPDATE,
        entity_type=EntityType.AUTOMATION, target_parameter="id",
        render_as="automation-list", mutating=True, undoable=True,
        parameters=[_id("automation")],
    ),
    # --- communication ---
    ToolDefinition(
        name="send_client_email", description="Email a client",
        intent=IntentCategory.CREATE, category=ToolCategory.SENSITIVE,
        entity_type=EntityType.CLIENT, target_parameter="client_id",
        render_as="email", mutating=True,
        requires_confirmation=True, severity=Severity.WARNING, cooldown_seconds=30,
        confirmation_template='Send this email to "{name}"?',
        consequence="The email is sent immediately and cannot be recalled.",
        parameters=[
            ToolParameter(name="client_id", required=True, prompt="Which client should I email?"),
            ToolParameter(name="subject", default="Following up"),
            ToolParameter(name="body", required=True, prompt="What should the email say?"),
        ],
    ),
    # --- conversation ---
    ToolDefinition(
        name="get_help", description="Explain what the assistant can do",
        intent=IntentCategory.HELP,
    ),
    ToolDefinition(
        name="general_response", description="Conversational reply with no data access",
        intent=IntentCategory.GENERAL,
        parameters=[ToolParameter(name="message"), ToolParameter(name="reply")],
    ),
]


def register_default_tools(registry: ToolRegistry) -> ToolRegistry:
    """Bind each default definition to the handler of the same name."""
    for definition in DEFAULT_TOOLS:
        registry.register(definition, getattr(handlers, definition.name))
    return registry


def build_default_registry() -> ToolRegistry:
    return register_default_tools(ToolRegistry())
