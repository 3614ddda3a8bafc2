"""
Intent Router — turns one raw message plus accumulated context into an
Execution Plan.

Behavioral Contract:
- Never executes anything and never mutates the workspace
- A plan carries at most one of clarification_needed / multi_match
- Tools flagged requires_confirmation produce requires_confirmation=True
  unless the arguments carry the pre-confirmed marker
- undo / confirm / cancel bypass tool selection and entity resolution
- Low confidence is informational unless clarify_low_confidence is set
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from chat_kernel.models.config import PipelineConfig
from chat_kernel.models.context import AccumulatedContext
from chat_kernel.models.plan import (
    SPECIAL_INTENTS,
    AffectedEntity,
    ClarificationNeeded,
    ClassificationResult,
    ConfidenceLevel,
    EntityType,
    ExecutionPlan,
    IntentCategory,
    MultiMatch,
)
from chat_kernel.models.tools import ParameterType, ToolDefinition
from chat_kernel.router.classifier import IntentCandidate, IntentClassifier, RuleBasedIntentClassifier
from chat_kernel.router.entities import extract_entities
from chat_kernel.router.resolver import EntityResolver
from chat_kernel.tools.registry import ToolRegistry
from chat_kernel.workspace.store import WorkspaceStore

logger = logging.getLogger(__name__)

CONFIRMED_MARKER = "_confirmed"

LOW_CONFIDENCE_QUESTION = (
    "I'm not sure what you'd like me to do. Could you rephrase that, "
    "or say \"help\" to see what I can do?"
)

Resolution = Tuple[Optional[AffectedEntity], Optional[MultiMatch], Optional[ClarificationNeeded]]


class IntentRouter:
    """Classifies a message, resolves its entities and gates the resulting plan."""

    def __init__(
        self,
        registry: ToolRegistry,
        workspace: WorkspaceStore,
        classifier: Optional[IntentClassifier] = None,
        config: Optional[PipelineConfig] = None,
    ):
        self.registry = registry
        self.workspace = workspace
        self.classifier = classifier or RuleBasedIntentClassifier()
        self.config = config or PipelineConfig()
        self.resolver = EntityResolver(workspace, self.config.match_similarity_floor)

    def confidence_level(self, confidence: float) -> ConfidenceLevel:
        if confidence >= self.config.high_confidence_threshold:
            return ConfidenceLevel.HIGH
        if confidence >= self.config.medium_confidence_threshold:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.LOW

    def classify(
        self,
        message: str,
        context: Optional[AccumulatedContext] = None,
        current_time: Optional[datetime] = None,
    ) -> ClassificationResult:
        context = context or AccumulatedContext()
        entities = extract_entities(message, current_time)
        candidate = self.classifier.classify(message, entities, context)
        level = self.confidence_level(candidate.confidence)
        logger.debug(
            "Classified %r as %s/%s (%.2f, %s)",
            message, candidate.intent.value, candidate.tool, candidate.confidence, level.value,
        )

        if candidate.intent in SPECIAL_INTENTS:
            plan = ExecutionPlan(
                intent=candidate.intent,
                tool=candidate.tool,
                arguments=dict(candidate.arguments),
                confidence=candidate.confidence,
                confidence_level=level,
                original_message=message,
                extracted_entities=entities,
            )
            return ClassificationResult(plan=plan, ready_for_execution=True)

        definition = self.registry.get_definition(candidate.tool)
        arguments: Dict[str, Any] = dict(candidate.arguments)
        clarification = candidate.clarification
        multi_match: Optional[MultiMatch] = None
        affected: Optional[AffectedEntity] = None

        if clarification is None and definition is not None and entities.invalid_dates:
            clarification = self._invalid_date(definition, entities.invalid_dates[0])
        if clarification is None and definition is not None:
            multi_match = self._associate_client(definition, candidate, arguments)
            if multi_match is None and definition.target_parameter:
                affected, multi_match, clarification = self._resolve_target(
                    definition, candidate, context, arguments
                )
            if multi_match is None and clarification is None:
                clarification = self._missing_parameter(definition, arguments)

        if (
            clarification is None
            and multi_match is None
            and level == ConfidenceLevel.LOW
            and self.config.clarify_low_confidence
            and candidate.intent == IntentCategory.GENERAL
        ):
            clarification = ClarificationNeeded(
                field="intent",
                reason="The request could not be classified with enough confidence",
                question=LOW_CONFIDENCE_QUESTION,
            )

        pre_confirmed = arguments.get(CONFIRMED_MARKER) is True
        requires_confirmation = bool(
            definition is not None and definition.requires_confirmation and not pre_confirmed
        )
        plan = ExecutionPlan(
            intent=candidate.intent,
            entity_type=candidate.entity_type or (definition.entity_type if definition else None),
            tool=candidate.tool,
            arguments=arguments,
            render_as=definition.render_as if definition else "text",
            confidence=candidate.confidence,
            confidence_level=level,
            requires_confirmation=requires_confirmation,
            clarification_needed=clarification,
            multi_match=multi_match,
            original_message=message,
            affected_entity=affected,
            extracted_entities=entities,
            alternatives=candidate.alternatives,
        )

        if clarification is not None:
            return ClassificationResult(
                plan=plan, ready_for_execution=False,
                needs_user_input=True, user_prompt=clarification.question,
            )
        if multi_match is not None:
            return ClassificationResult(
                plan=plan, ready_for_execution=False,
                needs_user_input=True, user_prompt=multi_match.reason,
            )
        if requires_confirmation:
            return ClassificationResult(
                plan=plan, ready_for_execution=False,
                confirmation_message=self.confirmation_message(definition, plan),
            )
        return ClassificationResult(plan=plan, ready_for_execution=True)

    # --- resolution ---

    def _too_many(self, entity_type: EntityType, name: str, matches) -> MultiMatch:
        cap = self.config.max_disambiguation_matches
        return MultiMatch(
            entity_type=entity_type,
            matches=matches[:cap],
            reason=(
                f'I found {len(matches)} {entity_type.value}s matching "{name}". '
                "Which one did you mean?"
            ),
        )

    def _associate_client(
        self,
        definition: ToolDefinition,
        candidate: IntentCandidate,
        arguments: Dict[str, Any],
    ) -> Optional[MultiMatch]:
        """Attach client_id for tools that filter by, or link to, a client."""
        name = candidate.client_name
        if not name or arguments.get("client_id"):
            return None
        if definition.parameter("client_id") is None or definition.target_parameter == "client_id":
            return None
        matches = self.resolver.match(EntityType.CLIENT, name)
        if len(matches) == 1:
            arguments["client_id"] = matches[0].id
            arguments["client_name"] = matches[0].display_name
        elif len(matches) > 1:
            return self._too_many(EntityType.CLIENT, name, matches)
        return None

    def _resolve_target(
        self,
        definition: ToolDefinition,
        candidate: IntentCandidate,
        context: AccumulatedContext,
        arguments: Dict[str, Any],
    ) -> Resolution:
        param = definition.target_parameter
        entity_type = definition.entity_type or EntityType.CLIENT

        if arguments.get(param):
            return self.resolver.describe(entity_type, arguments[param]), None, None

        name = candidate.target_name
        if name:
            matches = self.resolver.match(entity_type, name)
            if len(matches) == 1:
                match = matches[0]
                arguments[param] = match.id
                return (
                    AffectedEntity(type=entity_type, id=match.id, name=match.display_name),
                    None,
                    None,
                )
            if len(matches) > 1:
                return None, self._too_many(entity_type, name, matches), None
            return None, None, ClarificationNeeded(
                field=param,
                reason=f'No {entity_type.value} matches "{name}"',
                question=f'I couldn\'t find a {entity_type.value} called "{name}". Which one do you mean?',
                options=self.resolver.roster(entity_type) or None,
            )

        affected = self.resolver.resolve_reference(entity_type, context)
        if affected is not None:
            arguments[param] = affected.id
        return affected, None, None

    def _invalid_date(
        self, definition: ToolDefinition, raw: str
    ) -> Optional[ClarificationNeeded]:
        for param in definition.parameters:
            if param.type == ParameterType.DATE:
                return ClarificationNeeded(
                    field=param.name,
                    reason=f"{raw} is not a valid calendar date",
                    question=f"{raw} isn't a real date. Which date did you mean?",
                )
        return None

    def _missing_parameter(
        self, definition: ToolDefinition, arguments: Dict[str, Any]
    ) -> Optional[ClarificationNeeded]:
        for param in definition.required_parameters:
            if param.default is not None or arguments.get(param.name) not in (None, ""):
                continue
            options = param.enum
            if param.name == definition.target_parameter and definition.entity_type:
                options = self.resolver.roster(definition.entity_type) or None
            return ClarificationNeeded(
                field=param.name,
                reason=f"{param.name} is required for {definition.name}",
                question=param.prompt or f"What {param.name.replace('_', ' ')} should I use?",
                options=options,
            )
        return None

    # --- confirmation text ---

    def _affected_count(self, definition: ToolDefinition, arguments: Dict[str, Any]) -> int:
        if definition.entity_type != EntityType.TASK:
            return 1
        tasks = self.workspace.tasks()
        if arguments.get("filter_status"):
            tasks = [t for t in tasks if t.status == arguments["filter_status"]]
        if arguments.get("client_id"):
            tasks = [t for t in tasks if t.client_id == arguments["client_id"]]
        return sum(1 for t in tasks if t.status != arguments.get("status"))

    def confirmation_message(self, definition: ToolDefinition, plan: ExecutionPlan) -> str:
        template = definition.confirmation_template or (
            f"Are you sure you want to {definition.description.lower()}?"
        )
        name = plan.affected_entity.name if plan.affected_entity else ""
        return (
            template
            .replace("{name}", name)
            .replace("{count}", str(self._affected_count(definition, plan.arguments)))
        )
