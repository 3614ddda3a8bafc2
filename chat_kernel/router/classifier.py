"""
Intent classification — message + context -> a scored candidate tool.

The classifier is a replaceable scoring function behind the IntentClassifier
protocol. RuleBasedIntentClassifier evaluates an ordered list of rules; the
first rule that fires wins, and later rules that also fire are reported as
alternatives.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Optional, Protocol

from pydantic import BaseModel

from chat_kernel.models.context import AccumulatedContext
from chat_kernel.models.plan import (
    ClarificationNeeded,
    EntityType,
    ExtractedEntities,
    IntentCategory,
)
from chat_kernel.router.entities import REFERENCE_WORDS, STOPWORDS
from chat_kernel.router.signals import RegexPhraseClassifier, SignalKind

FALLBACK_CONFIDENCE = 0.4


class IntentCandidate(BaseModel):
    """A classifier's best guess, before entity resolution and gating."""

    intent: IntentCategory
    tool: str
    confidence: float
    entity_type: Optional[EntityType] = None
    arguments: Dict[str, Any] = {}
    target_name: Optional[str] = None   # name to resolve into the tool's target parameter
    client_name: Optional[str] = None   # optional client association (filters, new records)
    clarification: Optional[ClarificationNeeded] = None
    alternatives: List[str] = []


class IntentClassifier(Protocol):
    """Protocol for intent classification — pluggable backend."""

    def classify(
        self,
        message: str,
        entities: ExtractedEntities,
        context: AccumulatedContext,
    ) -> IntentCandidate: ...


Rule = Callable[[str, str, ExtractedEntities, AccumulatedContext], Optional[IntentCandidate]]

_ENTITY_KEYWORDS = [
    (EntityType.TASK, r"\b(tasks?|to-?dos?)\b"),
    (EntityType.CLIENT, r"\bclients?\b"),
    (EntityType.OPPORTUNITY, r"\b(opportunit(y|ies)|deals?)\b"),
    (EntityType.WORKFLOW, r"\bworkflows?\b"),
    (EntityType.AUTOMATION, r"\bautomations?\b"),
]

_STATUS_WORDS = [
    ("needs-review", r"\b(needs?[\s-]review|awaiting review|for review|in review)\b"),
    ("in-progress", r"\bin[\s-]progress\b"),
    ("completed", r"\b(completed?|done|finished)\b"),
    ("pending", r"\b(pending|open|outstanding)\b"),
]

_RISK_WORDS = ("conservative", "moderate", "aggressive")
_SNOOZE_UNIT_DAYS = {"day": 1, "week": 7, "month": 30}


def entity_type_in(lowered: str) -> Optional[EntityType]:
    """The entity type named earliest in the message, if any."""
    found = []
    for entity_type, pattern in _ENTITY_KEYWORDS:
        match = re.search(pattern, lowered)
        if match:
            found.append((match.start(), entity_type))
    return min(found)[1] if found else None


def status_in(lowered: str) -> Optional[str]:
    for status, pattern in _STATUS_WORDS:
        if re.search(pattern, lowered):
            return status
    return None


def trailing_name(message: str, keyword: str) -> Optional[str]:
    """Text after an entity keyword: "delete task quarterly report" -> "quarterly report"."""
    match = re.search(
        rf"\b{keyword}s?\b\s+(?:named\s+|called\s+)?(.+)$", message, re.IGNORECASE
    )
    if not match:
        return None
    phrase = match.group(1).strip().strip("\"'“”.?!")
    words = phrase.split()
    if not words or words[0].lower() in REFERENCE_WORDS:
        return None
    if all(w.lower() in STOPWORDS for w in words):
        return None
    return phrase


def _first_name(entities: ExtractedEntities) -> Optional[str]:
    return entities.names[0] if entities.names else None


class RuleBasedIntentClassifier:
    """
    Rule-based classifier for the prototype.
    Deterministic regex rules rather than a learned model.
    """

    def __init__(self):
        self._rules: List[Rule] = []
        self._phrases = RegexPhraseClassifier()
        self._register_default_rules()

    def _register_default_rules(self) -> None:
        """Register rules in priority order."""
        self._rules = [
            self._rule_undo,
            self._rule_confirmation_phrase,
            self._rule_help,
            self._rule_greeting,
            self._rule_email,
            self._rule_bulk_update,
            self._rule_delete,
            self._rule_archive,
            self._rule_opportunity_actions,
            self._rule_workflow_actions,
            self._rule_automation_actions,
            self._rule_export,
            self._rule_complete,
            self._rule_review_decision,
            self._rule_create,
            self._rule_update,
            self._rule_report,
            self._rule_reviews,
            self._rule_search,
            self._rule_tasks,
            self._rule_opportunities,
            self._rule_workflows,
            self._rule_automations,
            self._rule_client_lookup,
            self._rule_clients,
            self._rule_reference_lookup,
        ]

    def register_rule(self, rule: Rule, position: Optional[int] = None) -> None:
        """Add a custom rule, by default with the lowest priority."""
        if position is None:
            self._rules.append(rule)
        else:
            self._rules.insert(position, rule)

    def classify(
        self,
        message: str,
        entities: ExtractedEntities,
        context: AccumulatedContext,
    ) -> IntentCandidate:
        text = message.strip()
        lowered = text.lower()
        chosen: Optional[IntentCandidate] = None
        alternatives: List[str] = []
        for rule in self._rules:
            candidate = rule(text, lowered, entities, context)
            if candidate is None:
                continue
            if chosen is None:
                chosen = candidate
            elif candidate.tool != chosen.tool and candidate.tool not in alternatives:
                alternatives.append(candidate.tool)

        if chosen is None:
            chosen = IntentCandidate(
                intent=IntentCategory.GENERAL,
                tool="general_response",
                confidence=FALLBACK_CONFIDENCE,
                arguments={"message": text},
            )
        chosen.alternatives = alternatives[:3]
        return chosen

    # --- special intents ---

    def _rule_undo(self, text, lowered, entities, context):
        if re.search(r"^(undo|revert|take (that|it) back)\b|\bundo (that|it|the last|last)\b", lowered):
            return IntentCandidate(
                intent=IntentCategory.UNDO, tool="undo_action", confidence=0.95
            )
        return None

    def _rule_confirmation_phrase(self, text, lowered, entities, context):
        signal = self._phrases.detect(text)
        if signal.kind == SignalKind.CONFIRM:
            return IntentCandidate(
                intent=IntentCategory.CONFIRM, tool="confirm_action", confidence=0.9,
                arguments={"confirmation_id": signal.confirmation_id} if signal.confirmation_id else {},
            )
        if signal.kind == SignalKind.CANCEL:
            return IntentCandidate(
                intent=IntentCategory.CANCEL, tool="cancel_action", confidence=0.9,
                arguments={"confirmation_id": signal.confirmation_id} if signal.confirmation_id else {},
            )
        return None

    def _rule_help(self, text, lowered, entities, context):
        if re.search(r"^(help|\?|what can you do|how do (i|you)|what do you do)\b", lowered):
            return IntentCandidate(intent=IntentCategory.HELP, tool="get_help", confidence=0.9)
        return None

    def _rule_greeting(self, text, lowered, entities, context):
        if re.search(r"^(hi|hello|hey|good (morning|afternoon|evening))\b", lowered):
            return IntentCandidate(
                intent=IntentCategory.GENERAL, tool="general_response",
                confidence=0.9, arguments={"message": text},
            )
        return None

    # --- mutations ---

    def _rule_email(self, text, lowered, entities, context):
        if not re.search(r"\b(email|e-mail|send (a )?(note|message))\b", lowered):
            return None
        if re.search(r"\b(update|change|set)\b", lowered):
            return None
        arguments: Dict[str, Any] = {}
        body = entities.quoted[0] if entities.quoted else None
        if body is None:
            saying = re.search(r"\b(?:saying|that says)\s+(.+)$", text, re.IGNORECASE)
            body = saying.group(1).strip() if saying else None
        if body:
            arguments["body"] = body
        about = re.search(r"\babout\s+(.+?)(?:\s+saying\b|$)", text, re.IGNORECASE)
        if about:
            arguments["subject"] = about.group(1).strip().strip("\"'").capitalize()
        return IntentCandidate(
            intent=IntentCategory.CREATE, tool="send_client_email", confidence=0.8,
            entity_type=EntityType.CLIENT, arguments=arguments,
            target_name=_first_name(entities),
        )

    def _rule_bulk_update(self, text, lowered, entities, context):
        match = re.search(r"\b(mark|set|move|update)\s+all\b(.*?)\btasks?\b(.*)$", lowered)
        if not match:
            return None
        arguments: Dict[str, Any] = {}
        target = status_in(match.group(3))
        if target:
            arguments["status"] = target
        source = status_in(match.group(2))
        if source:
            arguments["filter_status"] = source
        return IntentCandidate(
            intent=IntentCategory.UPDATE, tool="bulk_update_tasks", confidence=0.85,
            entity_type=EntityType.TASK, arguments=arguments,
            client_name=_first_name(entities),
        )

    def _rule_delete(self, text, lowered, entities, context):
        if not re.search(r"\b(delete|remove|erase|get rid of)\b", lowered):
            return None
        entity_type = entity_type_in(lowered)
        if entity_type is None and entities.references:
            entity_type = context.last_entity_type
        tools = {
            EntityType.CLIENT: "delete_client",
            EntityType.TASK: "delete_task",
            EntityType.OPPORTUNITY: "archive_opportunity",
        }
        if entity_type not in tools:
            return IntentCandidate(
                intent=IntentCategory.DELETE, tool="general_response", confidence=0.6,
                clarification=ClarificationNeeded(
                    field="entity_type",
                    reason="The message does not say what kind of record to delete",
                    question="What would you like to delete: a client, a task or an opportunity?",
                    options=["client", "task", "opportunity"],
                ),
            )
        keyword = "opportunit(?:y|ie)" if entity_type == EntityType.OPPORTUNITY else entity_type.value
        return IntentCandidate(
            intent=IntentCategory.DELETE, tool=tools[entity_type], confidence=0.85,
            entity_type=entity_type,
            target_name=_first_name(entities) or trailing_name(text, keyword),
        )

    def _rule_archive(self, text, lowered, entities, context):
        if not re.search(r"\barchive\b", lowered):
            return None
        entity_type = entity_type_in(lowered)
        if entity_type is None and entities.references:
            entity_type = context.last_entity_type
        if entity_type == EntityType.OPPORTUNITY:
            return IntentCandidate(
                intent=IntentCategory.DELETE, tool="archive_opportunity", confidence=0.85,
                entity_type=entity_type,
                target_name=_first_name(entities) or trailing_name(text, "opportunit(?:y|ie)"),
            )
        return IntentCandidate(
            intent=IntentCategory.DELETE, tool="archive_client", confidence=0.85,
            entity_type=EntityType.CLIENT,
            target_name=_first_name(entities) or trailing_name(text, "client"),
        )

    def _rule_opportunity_actions(self, text, lowered, entities, context):
        target = _first_name(entities) or trailing_name(text, "opportunit(?:y|ie)")
        if re.search(r"\bdismiss\b", lowered):
            arguments = {}
            reason = re.search(r"\bbecause\s+(.+)$", text, re.IGNORECASE)
            if reason:
                arguments["reason"] = reason.group(1).strip()
            return IntentCandidate(
                intent=IntentCategory.UPDATE, tool="dismiss_opportunity", confidence=0.85,
                entity_type=EntityType.OPPORTUNITY, arguments=arguments, target_name=target,
            )
        if re.search(r"\bsnooze\b", lowered):
            arguments = {}
            span = re.search(r"\b(\d+|a|an|one|next)\s+(day|week|month)s?\b", lowered)
            if span:
                count = 1 if not span.group(1).isdigit() else int(span.group(1))
                arguments["days"] = count * _SNOOZE_UNIT_DAYS[span.group(2)]
            elif entities.numbers:
                arguments["days"] = int(entities.numbers[0])
            return IntentCandidate(
                intent=IntentCategory.UPDATE, tool="snooze_opportunity", confidence=0.85,
                entity_type=EntityType.OPPORTUNITY, arguments=arguments, target_name=target,
            )
        return None

    def _rule_workflow_actions(self, text, lowered, entities, context):
        if not re.search(r"\bworkflows?\b", lowered):
            return None
        if re.search(r"\b(cancel|stop|abort)\b", lowered):
            return IntentCandidate(
                intent=IntentCategory.WORKFLOW, tool="cancel_workflow", confidence=0.85,
                entity_type=EntityType.WORKFLOW,
                target_name=(
                    entities.quoted[0] if entities.quoted
                    else _workflow_name(text)
                ),
            )
        if re.search(r"\b(start|begin|kick off|launch|run)\b", lowered):
            arguments = {}
            name = _workflow_name(text)
            if name:
                arguments["name"] = name
            return IntentCandidate(
                intent=IntentCategory.WORKFLOW, tool="start_workflow", confidence=0.85,
                entity_type=EntityType.WORKFLOW, arguments=arguments,
                client_name=_first_name(entities),
            )
        return None

    def _rule_automation_actions(self, text, lowered, entities, context):
        if not re.search(r"\bautomations?\b", lowered):
            return None
        tool = None
        if re.search(r"\b(pause|disable|turn off)\b", lowered):
            tool = "pause_automation"
        elif re.search(r"\b(resume|unpause|enable|turn on|restart)\b", lowered):
            tool = "resume_automation"
        if tool is None:
            return None
        name = entities.quoted[0] if entities.quoted else _automation_name(text)
        return IntentCandidate(
            intent=IntentCategory.AUTOMATION, tool=tool, confidence=0.85,
            entity_type=EntityType.AUTOMATION, target_name=name,
        )

    def _rule_export(self, text, lowered, entities, context):
        if not re.search(r"\b(export|download)\b", lowered):
            return None
        arguments: Dict[str, Any] = {"format": "json" if "json" in lowered else "csv"}
        if entity_type_in(lowered) == EntityType.CLIENT:
            return IntentCandidate(
                intent=IntentCategory.EXPORT, tool="export_clients", confidence=0.9,
                entity_type=EntityType.CLIENT, arguments=arguments,
            )
        status = status_in(lowered)
        if status:
            arguments["status"] = status
        return IntentCandidate(
            intent=IntentCategory.EXPORT, tool="export_tasks", confidence=0.9,
            entity_type=EntityType.TASK, arguments=arguments,
        )

    def _rule_complete(self, text, lowered, entities, context):
        if not re.search(r"\b(complete|finish|done with)\b|\bmark\b.*\b(done|complete|completed)\b", lowered):
            return None
        return IntentCandidate(
            intent=IntentCategory.UPDATE, tool="complete_task", confidence=0.8,
            entity_type=EntityType.TASK,
            target_name=(
                entities.quoted[0] if entities.quoted
                else trailing_name(_strip_status_suffix(text), "task")
            ),
        )

    def _rule_review_decision(self, text, lowered, entities, context):
        match = re.search(r"\b(approve|reject)\b", lowered)
        if not match:
            return None
        arguments = {}
        reason = re.search(r"\bbecause\s+(.+)$", text, re.IGNORECASE)
        if match.group(1) == "reject" and reason:
            arguments["reason"] = reason.group(1).strip()
        return IntentCandidate(
            intent=IntentCategory.UPDATE, tool=f"{match.group(1)}_task", confidence=0.8,
            entity_type=EntityType.TASK, arguments=arguments,
            target_name=(
                entities.quoted[0] if entities.quoted else trailing_name(text, "task")
            ),
        )

    def _rule_create(self, text, lowered, entities, context):
        if not re.search(r"\b(create|add|new|remind me to|set up)\b", lowered):
            return None
        if entity_type_in(lowered) == EntityType.CLIENT and not re.search(r"\btask\b", lowered):
            arguments: Dict[str, Any] = {}
            name = _first_name(entities) or trailing_name(text, "client")
            if name:
                arguments["name"] = name
            if entities.email:
                arguments["email"] = entities.email
            for risk in _RISK_WORDS:
                if risk in lowered:
                    arguments["risk_profile"] = risk
            if entities.numbers:
                arguments["portfolio_value"] = max(entities.numbers)
            return IntentCandidate(
                intent=IntentCategory.CREATE, tool="create_client", confidence=0.85,
                entity_type=EntityType.CLIENT, arguments=arguments,
            )

        arguments = {}
        title = _task_title(text)
        if title:
            arguments["title"] = title
        if entities.dates:
            arguments["due_date"] = entities.dates[0]
        if entities.priority:
            arguments["priority"] = "high" if entities.priority == "urgent" else entities.priority
        return IntentCandidate(
            intent=IntentCategory.CREATE, tool="create_task", confidence=0.85,
            entity_type=EntityType.TASK, arguments=arguments,
            client_name=_first_name(entities),
        )

    def _rule_update(self, text, lowered, entities, context):
        if not re.search(r"\b(update|change|set|reassign|reschedule|move|make)\b", lowered):
            return None
        entity_type = entity_type_in(lowered)
        client_fields = entities.email or any(r in lowered for r in _RISK_WORDS) or "phone" in lowered
        if entity_type == EntityType.CLIENT or (entity_type is None and client_fields):
            arguments: Dict[str, Any] = {}
            if entities.email:
                arguments["email"] = entities.email
            for risk in _RISK_WORDS:
                if risk in lowered:
                    arguments["risk_profile"] = risk
            phone = re.search(r"\+?\d[\d\s().-]{6,}\d", text)
            if "phone" in lowered and phone:
                arguments["phone"] = phone.group(0)
            return IntentCandidate(
                intent=IntentCategory.UPDATE, tool="update_client", confidence=0.75,
                entity_type=EntityType.CLIENT, arguments=arguments,
                target_name=_first_name(entities),
            )

        arguments = {}
        if entities.priority:
            arguments["priority"] = "high" if entities.priority == "urgent" else entities.priority
        status = status_in(lowered)
        if status:
            arguments["status"] = status
        if entities.dates:
            arguments["due_date"] = entities.dates[0]
        return IntentCandidate(
            intent=IntentCategory.UPDATE, tool="update_task", confidence=0.75,
            entity_type=EntityType.TASK, arguments=arguments,
            target_name=entities.quoted[0] if entities.quoted else None,
        )

    # --- reads ---

    def _rule_report(self, text, lowered, entities, context):
        if not re.search(
            r"\b(stats|statistics|report|summary|summarize|overview|how many|breakdown|workload)\b",
            lowered,
        ):
            return None
        entity_type = entity_type_in(lowered)
        if entity_type == EntityType.OPPORTUNITY or "pipeline" in lowered:
            return IntentCandidate(
                intent=IntentCategory.SUMMARIZE, tool="get_pipeline_summary", confidence=0.8,
                entity_type=EntityType.OPPORTUNITY,
            )
        if entity_type == EntityType.CLIENT:
            return IntentCandidate(
                intent=IntentCategory.REPORT, tool="get_client_stats", confidence=0.8,
                entity_type=EntityType.CLIENT,
            )
        return IntentCandidate(
            intent=IntentCategory.REPORT, tool="get_task_stats", confidence=0.8,
            entity_type=EntityType.TASK,
        )

    def _rule_reviews(self, text, lowered, entities, context):
        if re.search(r"\breviews?\b|\bneeds?[\s-]review\b", lowered):
            return IntentCandidate(
                intent=IntentCategory.READ, tool="list_tasks", confidence=0.85,
                entity_type=EntityType.TASK, arguments={"status": "needs-review"},
            )
        return None

    def _rule_search(self, text, lowered, entities, context):
        if not re.search(r"\b(search|find|look for|look up)\b", lowered):
            return None
        query = entities.quoted[0] if entities.quoted else None
        if query is None:
            match = re.search(
                r"\b(?:search|find|look for|look up)\s+(?:for\s+)?(?:clients?\s+|tasks?\s+)?(?:named\s+|called\s+|about\s+|with\s+)?(.+)$",
                text, re.IGNORECASE,
            )
            query = match.group(1).strip().strip("?.!") if match else None
        arguments = {"query": query} if query else {}
        if entity_type_in(lowered) == EntityType.TASK:
            return IntentCandidate(
                intent=IntentCategory.SEARCH, tool="search_tasks", confidence=0.75,
                entity_type=EntityType.TASK, arguments=arguments,
            )
        return IntentCandidate(
            intent=IntentCategory.SEARCH, tool="search_clients", confidence=0.75,
            entity_type=EntityType.CLIENT, arguments=arguments,
        )

    def _rule_tasks(self, text, lowered, entities, context):
        if entity_type_in(lowered) != EntityType.TASK:
            return None
        arguments: Dict[str, Any] = {}
        if re.search(r"\boverdue\b|\blate\b", lowered):
            arguments["due_date"] = "overdue"
        elif re.search(r"\b(due )?today\b", lowered):
            arguments["due_date"] = "today"
        elif re.search(r"\bthis week\b", lowered):
            arguments["due_date"] = "week"
        status = status_in(lowered)
        if status:
            arguments["status"] = status
        if entities.priority and entities.priority != "urgent":
            arguments["priority"] = entities.priority
        elif entities.priority == "urgent":
            arguments["priority"] = "high"
        return IntentCandidate(
            intent=IntentCategory.READ, tool="list_tasks", confidence=0.85,
            entity_type=EntityType.TASK, arguments=arguments,
            client_name=_first_name(entities),
        )

    def _rule_opportunities(self, text, lowered, entities, context):
        if not re.search(r"\b(opportunit(y|ies)|pipeline|deals?)\b", lowered):
            return None
        if re.search(r"\bopportunity\b", lowered) and entities.quoted:
            return IntentCandidate(
                intent=IntentCategory.READ, tool="get_opportunity", confidence=0.85,
                entity_type=EntityType.OPPORTUNITY, target_name=entities.quoted[0],
            )
        arguments: Dict[str, Any] = {}
        if entities.priority in ("high", "medium", "low"):
            arguments["impact_level"] = entities.priority
        for kind in ("contract", "milestone", "market"):
            if re.search(rf"\b{kind}s?\b", lowered):
                arguments["type"] = kind
        return IntentCandidate(
            intent=IntentCategory.READ, tool="list_opportunities", confidence=0.85,
            entity_type=EntityType.OPPORTUNITY, arguments=arguments,
            client_name=_first_name(entities),
        )

    def _rule_workflows(self, text, lowered, entities, context):
        if re.search(r"\bworkflows?\b", lowered):
            arguments = {}
            for status in ("active", "completed", "paused", "cancelled"):
                if status in lowered:
                    arguments["status"] = status
            return IntentCandidate(
                intent=IntentCategory.WORKFLOW, tool="list_workflows", confidence=0.85,
                entity_type=EntityType.WORKFLOW, arguments=arguments,
                client_name=_first_name(entities),
            )
        return None

    def _rule_automations(self, text, lowered, entities, context):
        if re.search(r"\bautomations?\b", lowered):
            arguments = {}
            for status in ("running", "paused"):
                if status in lowered:
                    arguments["status"] = status
            return IntentCandidate(
                intent=IntentCategory.AUTOMATION, tool="list_automations", confidence=0.85,
                entity_type=EntityType.AUTOMATION, arguments=arguments,
            )
        return None

    def _rule_client_lookup(self, text, lowered, entities, context):
        name = _first_name(entities)
        if name is None:
            name = trailing_name(text, "client") if re.search(r"\bclient\b", lowered) else None
        if name is None:
            return None
        cue = re.search(
            r"\b(tell me about|show|who is|details|profile|portfolio|look up|open|pull up|info|client)\b",
            lowered,
        )
        return IntentCandidate(
            intent=IntentCategory.READ, tool="get_client",
            confidence=0.85 if cue else 0.6,
            entity_type=EntityType.CLIENT, target_name=name,
        )

    def _rule_clients(self, text, lowered, entities, context):
        if not re.search(r"\bclients\b|\bclient list\b", lowered):
            return None
        arguments: Dict[str, Any] = {}
        for risk in _RISK_WORDS:
            if risk in lowered:
                arguments["risk_profile"] = risk
        for status in ("active", "inactive", "prospect", "archived"):
            if re.search(rf"\b{status}s?\b", lowered):
                arguments["status"] = status
        return IntentCandidate(
            intent=IntentCategory.READ, tool="list_clients", confidence=0.85,
            entity_type=EntityType.CLIENT, arguments=arguments,
        )

    def _rule_reference_lookup(self, text, lowered, entities, context):
        """ "tell me more about it" -> look up the entity last talked about."""
        if not entities.references or context.last_entity_type is None:
            return None
        if not re.search(r"\b(tell|show|more|details|open|about)\b", lowered):
            return None
        tools = {
            EntityType.CLIENT: "get_client",
            EntityType.TASK: "get_task",
            EntityType.OPPORTUNITY: "get_opportunity",
        }
        tool = tools.get(context.last_entity_type)
        if tool is None:
            return None
        return IntentCandidate(
            intent=IntentCategory.READ, tool=tool, confidence=0.7,
            entity_type=context.last_entity_type,
        )


# --- phrase helpers ---

_DATE_TAIL = re.compile(
    r"\s+(?:(?:by|on|due|for)\s+)?(?:today|tomorrow|next week|next month|"
    r"monday|tuesday|wednesday|thursday|friday|saturday|sunday|\d{4}-\d{2}-\d{2})\b.*$",
    re.IGNORECASE,
)
_PRIORITY_TAIL = re.compile(r"[\s,]+(?:with\s+)?(?:urgent|high|medium|low)[\s-]+priority\b", re.IGNORECASE)


def _task_title(text: str) -> Optional[str]:
    match = re.search(
        r"(?:remind me to|(?:create|add|new)\s+(?:a\s+|an\s+)?(?:new\s+)?(?:task|to-?do)"
        r"(?:\s+(?:to|called|named|for|:))?)\s*:?\s*(.+)$",
        text, re.IGNORECASE,
    )
    if not match:
        return None
    title = _PRIORITY_TAIL.sub("", match.group(1))
    title = _DATE_TAIL.sub("", title).strip().strip("\"'“”.!")
    if not title:
        return None
    return title[0].upper() + title[1:]


def _strip_status_suffix(text: str) -> str:
    return re.sub(r"\s+(?:as\s+)?(?:done|complete|completed|finished)\s*$", "", text, flags=re.IGNORECASE)


def _workflow_name(text: str) -> Optional[str]:
    match = re.search(
        r"\b(?:start|begin|kick off|launch|run|cancel|stop|abort)\s+(?:an?\s+|the\s+)?(.+?)\s+workflow\b",
        text, re.IGNORECASE,
    )
    if match:
        return match.group(1).strip().title()
    return trailing_name(text, "workflow")


def _automation_name(text: str) -> Optional[str]:
    match = re.search(
        r"\b(?:pause|disable|turn off|resume|unpause|enable|turn on|restart)\s+(?:the\s+)?(.+?)\s+automation\b",
        text, re.IGNORECASE,
    )
    if match:
        return match.group(1).strip()
    return trailing_name(text, "automation")
