"""Execution Plans: the structured, not-yet-run interpretation of one user message."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from chat_kernel.models.base import WireModel


class IntentCategory(str, Enum):
    READ = "read"
    SEARCH = "search"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SUMMARIZE = "summarize"
    REPORT = "report"
    EXPORT = "export"
    WORKFLOW = "workflow"
    AUTOMATION = "automation"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    UNDO = "undo"
    HELP = "help"
    GENERAL = "general"


# Intents that never go through tool selection.
SPECIAL_INTENTS = (IntentCategory.UNDO, IntentCategory.CONFIRM, IntentCategory.CANCEL)


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EntityType(str, Enum):
    CLIENT = "client"
    TASK = "task"
    OPPORTUNITY = "opportunity"
    WORKFLOW = "workflow"
    AUTOMATION = "automation"


class AffectedEntity(WireModel):
    """The single business entity a plan acts on, once resolved."""

    type: EntityType
    id: str
    name: str


class ClarificationNeeded(WireModel):
    field: str
    reason: str
    question: str
    options: Optional[List[str]] = None


class MatchCandidate(WireModel):
    id: str
    display_name: str
    summary: str = ""
    score: Optional[float] = None


class MultiMatch(WireModel):
    entity_type: EntityType
    matches: List[MatchCandidate]
    reason: str


class ExtractedEntities(WireModel):
    """Surface features pulled out of a raw message before classification."""

    names: List[str] = []
    dates: List[str] = []
    invalid_dates: List[str] = []
    priority: Optional[str] = None
    references: List[str] = []
    numbers: List[float] = []
    quoted: List[str] = []
    email: Optional[str] = None


class ExecutionPlan(WireModel):
    """
    Output of the Intent Router.

    Invariant: at most one of clarification_needed / multi_match is set.
    A plan carrying either is not executable as-is.
    """

    intent: IntentCategory
    entity_type: Optional[EntityType] = None
    tool: str
    arguments: Dict[str, Any] = {}
    render_as: str = "text"
    confidence: float = Field(ge=0.0, le=1.0)
    confidence_level: ConfidenceLevel
    requires_confirmation: bool = False
    clarification_needed: Optional[ClarificationNeeded] = None
    multi_match: Optional[MultiMatch] = None
    original_message: str

    # Supplementary routing detail
    affected_entity: Optional[AffectedEntity] = None
    extracted_entities: Optional[ExtractedEntities] = None
    alternatives: List[str] = []

    @model_validator(mode="after")
    def _single_gate(self) -> "ExecutionPlan":
        if self.clarification_needed is not None and self.multi_match is not None:
            raise ValueError(
                "A plan cannot need both clarification and disambiguation"
            )
        return self

    @property
    def is_executable(self) -> bool:
        return self.clarification_needed is None and self.multi_match is None

    @property
    def is_pre_confirmed(self) -> bool:
        return self.arguments.get("_confirmed") is True


class ClassificationResult(WireModel):
    """What IntentRouter.classify hands back to the orchestrator."""

    plan: ExecutionPlan
    ready_for_execution: bool
    confirmation_message: Optional[str] = None
    needs_user_input: bool = False
    user_prompt: Optional[str] = None
