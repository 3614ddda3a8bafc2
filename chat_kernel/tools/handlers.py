"""
Tool handlers: the operations behind every registered tool.

Each handler takes the workspace store and already-validated arguments and
returns a HandlerOutcome. Mutating handlers that can be reversed capture a
snapshot of the records they touch *before* changing them.
"""

import csv
import io
import json
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from chat_kernel.models.plan import EntityType
from chat_kernel.models.tools import EntitySnapshot, HandlerOutcome, UndoRecord
from chat_kernel.models.workspace import Client, OutboundEmail, Task, Workflow
from chat_kernel.workspace.store import WorkspaceStore, new_id, utcnow


class ToolExecutionError(Exception):
    """Raised by a handler when the request is valid but cannot be carried out."""

    def __init__(self, message: str, code: str = "invalid_state"):
        self.code = code
        super().__init__(message)


Args = Dict[str, Any]


def _dump(record) -> dict:
    return record.model_dump(mode="json")


def _undo(
    workspace: WorkspaceStore,
    tool_name: str,
    description: str,
    targets: Iterable[Tuple[EntityType, str]],
) -> UndoRecord:
    """Snapshot the given records as they are right now."""
    return UndoRecord(
        undo_action=f"undo_{uuid4().hex[:12]}",
        tool_name=tool_name,
        description=description,
        snapshots=[
            EntitySnapshot(
                entity_type=entity_type,
                entity_id=entity_id,
                state=workspace.snapshot(entity_type, entity_id),
            )
            for entity_type, entity_id in targets
        ],
        recorded_at=utcnow(),
    )


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle.lower() in haystack.lower()


def _export(rows: List[dict], fmt: str, stem: str) -> dict:
    if fmt == "json":
        content = json.dumps(rows, indent=2, default=str)
    else:
        buffer = io.StringIO()
        if rows:
            writer = csv.DictWriter(buffer, fieldnames=list(rows[0].keys()))
            writer.writeheader()
            writer.writerows(rows)
        content = buffer.getvalue()
    return {
        "format": fmt,
        "filename": f"{stem}-{utcnow().date().isoformat()}.{fmt}",
        "row_count": len(rows),
        "content": content,
    }


# === CLIENTS ===

def list_clients(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    status = args.get("status")
    clients = workspace.clients(include_archived=status == "archived")
    if status:
        clients = [c for c in clients if c.status == status]
    if args.get("name"):
        clients = [c for c in clients if _contains(c.name, args["name"])]
    if args.get("risk_profile"):
        clients = [c for c in clients if c.risk_profile == args["risk_profile"]]
    clients.sort(key=lambda c: c.name)
    clients = clients[: args.get("limit", 20)]
    return HandlerOutcome(
        data=[_dump(c) for c in clients],
        message=f"Found {len(clients)} client{'s' if len(clients) != 1 else ''}.",
    )


def get_client(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    client = workspace.get(EntityType.CLIENT, args["id"])
    tasks = [t for t in workspace.tasks() if t.client_id == client.id]
    opportunities = [o for o in workspace.opportunities() if o.client_id == client.id]
    data = _dump(client)
    data["open_tasks"] = [_dump(t) for t in tasks if t.status != "completed"]
    data["opportunities"] = [_dump(o) for o in opportunities]
    return HandlerOutcome(
        data=data,
        message=f"Here's {client.name}: {client.summary}.",
    )


def search_clients(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    query = args["query"]
    clients = [
        c for c in workspace.clients()
        if _contains(c.name, query) or _contains(c.email, query) or _contains(c.notes, query)
    ]
    if args.get("risk_profile"):
        clients = [c for c in clients if c.risk_profile == args["risk_profile"]]
    if args.get("min_portfolio_value") is not None:
        clients = [c for c in clients if c.portfolio_value >= args["min_portfolio_value"]]
    if args.get("max_portfolio_value") is not None:
        clients = [c for c in clients if c.portfolio_value <= args["max_portfolio_value"]]
    clients.sort(key=lambda c: c.name)
    return HandlerOutcome(
        data=[_dump(c) for c in clients],
        message=f'Found {len(clients)} client(s) matching "{query}".',
    )


def create_client(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    now = utcnow()
    client = Client(
        id=new_id(EntityType.CLIENT),
        name=args["name"],
        email=args.get("email"),
        risk_profile=args.get("risk_profile", "moderate"),
        portfolio_value=args.get("portfolio_value", 0.0),
        status="prospect",
        created_at=now,
        updated_at=now,
    )
    undo = _undo(workspace, "create_client", f'create client "{client.name}"',
                 [(EntityType.CLIENT, client.id)])
    workspace.put(EntityType.CLIENT, client)
    return HandlerOutcome(
        data=_dump(client), message=f"Added {client.name} as a new client.", undo=undo
    )


def update_client(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    client = workspace.get(EntityType.CLIENT, args["id"])
    changes = {
        k: args[k] for k in ("email", "phone", "risk_profile", "notes") if k in args
    }
    if not changes:
        raise ToolExecutionError("Tell me what to change (email, phone, risk profile or notes).")
    undo = _undo(workspace, "update_client", f'update client "{client.name}"',
                 [(EntityType.CLIENT, client.id)])
    updated = client.model_copy(update={**changes, "updated_at": utcnow()})
    workspace.put(EntityType.CLIENT, updated)
    return HandlerOutcome(
        data=_dump(updated),
        message=f"Updated {updated.name}: " + ", ".join(
            f"{k.replace('_', ' ')} → {v}" for k, v in changes.items()
        ) + ".",
        undo=undo,
    )


def archive_client(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    client = workspace.get(EntityType.CLIENT, args["id"])
    if client.status == "archived":
        raise ToolExecutionError(f"{client.name} is already archived.")
    undo = _undo(workspace, "archive_client", f'archive client "{client.name}"',
                 [(EntityType.CLIENT, client.id)])
    archived = client.model_copy(update={"status": "archived", "updated_at": utcnow()})
    workspace.put(EntityType.CLIENT, archived)
    return HandlerOutcome(
        data=_dump(archived), message=f"Archived {client.name}.", undo=undo
    )


def delete_client(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    client = workspace.get(EntityType.CLIENT, args["id"])
    undo = _undo(workspace, "delete_client", f'delete client "{client.name}"',
                 [(EntityType.CLIENT, client.id)])
    workspace.remove(EntityType.CLIENT, client.id)
    return HandlerOutcome(
        data=_dump(client), message=f"Deleted client {client.name}.", undo=undo
    )


def get_client_stats(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    clients = workspace.clients()
    by_risk: Dict[str, int] = {}
    by_status: Dict[str, int] = {}
    for c in clients:
        by_risk[c.risk_profile] = by_risk.get(c.risk_profile, 0) + 1
        by_status[c.status] = by_status.get(c.status, 0) + 1
    total = sum(c.portfolio_value for c in clients)
    return HandlerOutcome(
        data={
            "total_clients": len(clients),
            "total_portfolio_value": total,
            "by_risk_profile": by_risk,
            "by_status": by_status,
        },
        message=f"You have {len(clients)} clients with ${total:,.0f} under management.",
    )


def export_clients(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    rows = [
        {k: v for k, v in _dump(c).items() if k not in ("notes",)}
        for c in sorted(workspace.clients(), key=lambda c: c.name)
    ]
    export = _export(rows, args.get("format", "csv"), "clients")
    return HandlerOutcome(
        data=export,
        message=f"Exported {export['row_count']} clients to {export['filename']}.",
    )


# === TASKS ===

def _due_filter(task: Task, window: str, today: date) -> bool:
    if window == "all":
        return True
    if task.due_date is None:
        return False
    if window == "today":
        return task.due_date == today
    if window == "week":
        return today <= task.due_date <= today + timedelta(days=7)
    if window == "overdue":
        return task.due_date < today and task.status != "completed"
    return True


def list_tasks(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    today = utcnow().date()
    tasks = workspace.tasks()
    if args.get("status"):
        tasks = [t for t in tasks if t.status == args["status"]]
    if args.get("priority"):
        tasks = [t for t in tasks if t.priority == args["priority"]]
    if args.get("client_id"):
        tasks = [t for t in tasks if t.client_id == args["client_id"]]
    if args.get("due_date"):
        tasks = [t for t in tasks if _due_filter(t, args["due_date"], today)]
    tasks.sort(key=lambda t: (t.due_date or date.max, t.title))
    tasks = tasks[: args.get("limit", 50)]
    label = args.get("status", "").replace("-", " ")
    noun = f"{label} task" if label else "task"
    return HandlerOutcome(
        data=[_dump(t) for t in tasks],
        message=f"You have {len(tasks)} {noun}{'s' if len(tasks) != 1 else ''}.",
    )


def get_task(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    task = workspace.get(EntityType.TASK, args["id"])
    return HandlerOutcome(data=_dump(task), message=f'"{task.title}" is {task.summary}.')


def search_tasks(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    query = args["query"]
    tasks = [
        t for t in workspace.tasks()
        if _contains(t.title, query) or _contains(t.description, query)
    ]
    if args.get("status"):
        tasks = [t for t in tasks if t.status == args["status"]]
    if args.get("priority"):
        tasks = [t for t in tasks if t.priority == args["priority"]]
    tasks.sort(key=lambda t: t.title)
    return HandlerOutcome(
        data=[_dump(t) for t in tasks],
        message=f'Found {len(tasks)} task(s) matching "{query}".',
    )


def create_task(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    if args.get("client_id"):
        workspace.get(EntityType.CLIENT, args["client_id"])
    now = utcnow()
    task = Task(
        id=new_id(EntityType.TASK),
        title=args["title"],
        description=args.get("description", ""),
        priority=args.get("priority", "medium"),
        client_id=args.get("client_id"),
        due_date=args.get("due_date"),
        created_at=now,
        updated_at=now,
    )
    undo = _undo(workspace, "create_task", f'create task "{task.title}"',
                 [(EntityType.TASK, task.id)])
    workspace.put(EntityType.TASK, task)
    due = f", due {task.due_date.isoformat()}" if task.due_date else ""
    return HandlerOutcome(
        data=_dump(task), message=f'Created task "{task.title}"{due}.', undo=undo
    )


def update_task(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    task = workspace.get(EntityType.TASK, args["id"])
    changes = {
        k: args[k] for k in ("title", "status", "priority", "due_date") if k in args
    }
    if not changes:
        raise ToolExecutionError("Tell me what to change (title, status, priority or due date).")
    undo = _undo(workspace, "update_task", f'update task "{task.title}"',
                 [(EntityType.TASK, task.id)])
    updated = Task.model_validate({**_dump(task), **changes, "updated_at": utcnow()})
    workspace.put(EntityType.TASK, updated)
    return HandlerOutcome(
        data=_dump(updated), message=f'Updated "{updated.title}".', undo=undo
    )


def _set_task_status(
    workspace: WorkspaceStore,
    tool_name: str,
    task_id: str,
    status: str,
    verb: str,
    require_review: bool = False,
    note: Optional[str] = None,
) -> HandlerOutcome:
    task = workspace.get(EntityType.TASK, task_id)
    if require_review and task.status != "needs-review":
        raise ToolExecutionError(f'"{task.title}" is not waiting for review.')
    if task.status == status:
        raise ToolExecutionError(f'"{task.title}" is already {status}.')
    undo = _undo(workspace, tool_name, f'{verb} task "{task.title}"',
                 [(EntityType.TASK, task.id)])
    updated = task.model_copy(update={
        "status": status, "review_note": note or task.review_note, "updated_at": utcnow(),
    })
    workspace.put(EntityType.TASK, updated)
    suffix = "d" if verb.endswith("e") else "ed"
    return HandlerOutcome(
        data=_dump(updated), message=f'{verb.capitalize()}{suffix} "{task.title}".', undo=undo
    )


def complete_task(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    return _set_task_status(workspace, "complete_task", args["id"], "completed", "complete")


def approve_task(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    return _set_task_status(
        workspace, "approve_task", args["id"], "completed", "approve", require_review=True
    )


def reject_task(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    return _set_task_status(
        workspace, "reject_task", args["id"], "pending", "reject",
        require_review=True, note=args.get("reason"),
    )


def delete_task(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    task = workspace.get(EntityType.TASK, args["id"])
    undo = _undo(workspace, "delete_task", f'delete task "{task.title}"',
                 [(EntityType.TASK, task.id)])
    workspace.remove(EntityType.TASK, task.id)
    return HandlerOutcome(data=_dump(task), message=f'Deleted "{task.title}".', undo=undo)


def bulk_update_tasks(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    tasks = workspace.tasks()
    if args.get("filter_status"):
        tasks = [t for t in tasks if t.status == args["filter_status"]]
    if args.get("client_id"):
        tasks = [t for t in tasks if t.client_id == args["client_id"]]
    tasks = [t for t in tasks if t.status != args["status"]]
    now = utcnow()
    for task in tasks:
        workspace.put(EntityType.TASK, task.model_copy(
            update={"status": args["status"], "updated_at": now}
        ))
    return HandlerOutcome(
        data={"updated": [t.id for t in tasks], "status": args["status"]},
        message=f"Marked {len(tasks)} task(s) as {args['status'].replace('-', ' ')}.",
    )


def get_task_stats(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    today = utcnow().date()
    tasks = workspace.tasks()
    by_status: Dict[str, int] = {}
    by_priority: Dict[str, int] = {}
    for t in tasks:
        by_status[t.status] = by_status.get(t.status, 0) + 1
        by_priority[t.priority] = by_priority.get(t.priority, 0) + 1
    overdue = sum(1 for t in tasks if _due_filter(t, "overdue", today))
    return HandlerOutcome(
        data={
            "total_tasks": len(tasks),
            "by_status": by_status,
            "by_priority": by_priority,
            "overdue": overdue,
        },
        message=(
            f"{len(tasks)} tasks: {by_status.get('needs-review', 0)} awaiting review, "
            f"{overdue} overdue."
        ),
    )


def export_tasks(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    tasks = workspace.tasks()
    if args.get("status"):
        tasks = [t for t in tasks if t.status == args["status"]]
    rows = [_dump(t) for t in sorted(tasks, key=lambda t: t.title)]
    export = _export(rows, args.get("format", "csv"), "tasks")
    return HandlerOutcome(
        data=export,
        message=f"Exported {export['row_count']} tasks to {export['filename']}.",
    )


# === OPPORTUNITIES ===

_INACTIVE_OPPORTUNITY = ("dismissed", "archived")


def list_opportunities(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    opportunities = workspace.opportunities()
    if args.get("status"):
        opportunities = [o for o in opportunities if o.status == args["status"]]
    else:
        opportunities = [o for o in opportunities if o.status not in _INACTIVE_OPPORTUNITY]
    for key in ("type", "impact_level", "client_id"):
        if args.get(key):
            opportunities = [o for o in opportunities if getattr(o, key) == args[key]]
    opportunities.sort(key=lambda o: (-o.value, o.title))
    return HandlerOutcome(
        data=[_dump(o) for o in opportunities],
        message=f"{len(opportunities)} opportunit{'ies' if len(opportunities) != 1 else 'y'} in your pipeline.",
    )


def get_opportunity(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    opportunity = workspace.get(EntityType.OPPORTUNITY, args["id"])
    return HandlerOutcome(
        data=_dump(opportunity),
        message=f'"{opportunity.title}": {opportunity.summary}.',
    )


def _update_opportunity(
    workspace: WorkspaceStore, tool_name: str, opportunity_id: str, verb: str, **changes
) -> HandlerOutcome:
    opportunity = workspace.get(EntityType.OPPORTUNITY, opportunity_id)
    if opportunity.status == changes.get("status"):
        raise ToolExecutionError(f'"{opportunity.title}" is already {opportunity.status}.')
    undo = _undo(workspace, tool_name, f'{verb} opportunity "{opportunity.title}"',
                 [(EntityType.OPPORTUNITY, opportunity.id)])
    updated = opportunity.model_copy(update=changes)
    workspace.put(EntityType.OPPORTUNITY, updated)
    return HandlerOutcome(data=_dump(updated), undo=undo)


def snooze_opportunity(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    until = utcnow() + timedelta(days=args.get("days", 7))
    outcome = _update_opportunity(
        workspace, "snooze_opportunity", args["id"], "snooze",
        status="snoozed", snoozed_until=until,
    )
    outcome.message = (
        f'Snoozed "{outcome.data["title"]}" until {until.date().isoformat()}.'
    )
    return outcome


def dismiss_opportunity(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    outcome = _update_opportunity(
        workspace, "dismiss_opportunity", args["id"], "dismiss",
        status="dismissed", dismiss_reason=args.get("reason"),
    )
    outcome.message = f'Dismissed "{outcome.data["title"]}".'
    return outcome


def archive_opportunity(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    outcome = _update_opportunity(
        workspace, "archive_opportunity", args["id"], "archive", status="archived",
    )
    outcome.message = f'Archived "{outcome.data["title"]}".'
    return outcome


def get_pipeline_summary(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    active = [o for o in workspace.opportunities() if o.status not in _INACTIVE_OPPORTUNITY]
    by_type: Dict[str, float] = {}
    for o in active:
        by_type[o.type] = by_type.get(o.type, 0.0) + o.value
    total = sum(o.value for o in active)
    high = sum(1 for o in active if o.impact_level == "high")
    return HandlerOutcome(
        data={
            "open_opportunities": len(active),
            "total_value": total,
            "high_impact": high,
            "value_by_type": by_type,
        },
        message=f"{len(active)} open opportunities worth ${total:,.0f} ({high} high impact).",
    )


# === WORKFLOWS & AUTOMATIONS ===

_WORKFLOW_TEMPLATES = {
    "onboarding": ["Collect documents", "Risk questionnaire", "Open accounts"],
    "annual review": ["Schedule meeting", "Prepare report", "Meet", "Follow up"],
    "rebalance": ["Analyze drift", "Propose trades", "Client approval", "Execute"],
}


def list_workflows(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    workflows = workspace.list(EntityType.WORKFLOW)
    if args.get("status"):
        workflows = [w for w in workflows if w.status == args["status"]]
    if args.get("client_id"):
        workflows = [w for w in workflows if w.client_id == args["client_id"]]
    workflows.sort(key=lambda w: w.started_at, reverse=True)
    return HandlerOutcome(
        data=[_dump(w) for w in workflows],
        message=f"{len(workflows)} workflow(s).",
    )


def start_workflow(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    name = args["name"]
    if args.get("client_id"):
        workspace.get(EntityType.CLIENT, args["client_id"])
    steps = next(
        (s for key, s in _WORKFLOW_TEMPLATES.items() if key in name.lower()),
        ["Start", "Complete"],
    )
    workflow = Workflow(
        id=new_id(EntityType.WORKFLOW),
        name=name,
        client_id=args.get("client_id"),
        steps=steps,
        started_at=utcnow(),
    )
    undo = _undo(workspace, "start_workflow", f'start workflow "{name}"',
                 [(EntityType.WORKFLOW, workflow.id)])
    workspace.put(EntityType.WORKFLOW, workflow)
    return HandlerOutcome(
        data=_dump(workflow), message=f'Started the "{name}" workflow.', undo=undo
    )


def cancel_workflow(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    workflow = workspace.get(EntityType.WORKFLOW, args["id"])
    if workflow.status in ("completed", "cancelled"):
        raise ToolExecutionError(f'"{workflow.name}" is already {workflow.status}.')
    cancelled = workflow.model_copy(update={"status": "cancelled"})
    workspace.put(EntityType.WORKFLOW, cancelled)
    return HandlerOutcome(data=_dump(cancelled), message=f'Cancelled "{workflow.name}".')


def list_automations(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    automations = workspace.list(EntityType.AUTOMATION)
    if args.get("status"):
        automations = [a for a in automations if a.status == args["status"]]
    automations.sort(key=lambda a: a.name)
    return HandlerOutcome(
        data=[_dump(a) for a in automations],
        message=f"{len(automations)} automation(s).",
    )


def _set_automation_status(
    workspace: WorkspaceStore, tool_name: str, automation_id: str, status: str, verb: str
) -> HandlerOutcome:
    automation = workspace.get(EntityType.AUTOMATION, automation_id)
    if automation.status == status:
        raise ToolExecutionError(f'"{automation.name}" is already {status}.')
    undo = _undo(workspace, tool_name, f'{verb} automation "{automation.name}"',
                 [(EntityType.AUTOMATION, automation.id)])
    updated = automation.model_copy(update={"status": status})
    workspace.put(EntityType.AUTOMATION, updated)
    return HandlerOutcome(
        data=_dump(updated), message=f'{verb.capitalize()}d "{automation.name}".', undo=undo
    )


def pause_automation(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    return _set_automation_status(workspace, "pause_automation", args["id"], "paused", "pause")


def resume_automation(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    return _set_automation_status(workspace, "resume_automation", args["id"], "running", "resume")


# === COMMUNICATION ===

def send_client_email(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    client = workspace.get(EntityType.CLIENT, args["client_id"])
    if not client.email:
        raise ToolExecutionError(f"{client.name} has no email address on file.")
    email = workspace.record_email(OutboundEmail(
        id=f"email_{uuid4().hex[:12]}",
        client_id=client.id,
        to=client.email,
        subject=args["subject"],
        body=args["body"],
        sent_at=utcnow(),
    ))
    return HandlerOutcome(
        data=_dump(email), message=f'Sent "{email.subject}" to {client.name} ({email.to}).'
    )


# === CONVERSATION ===

HELP_TEXT = (
    "I can look up and update clients, tasks, opportunities, workflows and "
    "automations. Try \"show me pending reviews\", \"tell me about Sarah Chen\", "
    "\"create a task to call John Smith tomorrow\", \"archive client Acme\" or "
    "\"export my tasks\". Say \"undo\" to reverse the last change."
)

_GREETINGS = ("hi", "hello", "hey", "good morning", "good afternoon", "good evening")


def get_help(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    return HandlerOutcome(message=HELP_TEXT)


def general_response(workspace: WorkspaceStore, args: Args) -> HandlerOutcome:
    message = (args.get("message") or "").strip().lower()
    if any(message.startswith(g) for g in _GREETINGS):
        return HandlerOutcome(message="Hello! What would you like to work on?")
    if args.get("reply"):
        return HandlerOutcome(message=args["reply"])
    return HandlerOutcome(
        message="I'm not sure how to help with that yet. Say \"help\" to see what I can do."
    )
