"""Chat Kernel data models."""

from chat_kernel.models.audit import AuditDecision, AuditEntry, AuditKind
from chat_kernel.models.base import WireModel
from chat_kernel.models.config import PipelineConfig
from chat_kernel.models.confirmation import (
    CancellationOutcome,
    ConfirmationOutcome,
    ConfirmationStatus,
    PendingConfirmation,
    Severity,
)
from chat_kernel.models.context import AccumulatedContext, RecentEntity
from chat_kernel.models.events import (
    BlocksEvent,
    ContextEvent,
    DoneEvent,
    ErrorEvent,
    StreamEvent,
    TextEvent,
    ThinkingEvent,
    TurnState,
)
from chat_kernel.models.plan import (
    AffectedEntity,
    ClarificationNeeded,
    ClassificationResult,
    ConfidenceLevel,
    EntityType,
    ExecutionPlan,
    ExtractedEntities,
    IntentCategory,
    MatchCandidate,
    MultiMatch,
)
from chat_kernel.models.request import ChatReply, ChatRequest, RequestContext
from chat_kernel.models.response import ChatResponse
from chat_kernel.models.tools import (
    EntitySnapshot,
    HandlerOutcome,
    ParameterType,
    ToolCategory,
    ToolDefinition,
    ToolParameter,
    ToolResult,
    UndoRecord,
)
from chat_kernel.models.workspace import (
    Automation,
    Client,
    Opportunity,
    OutboundEmail,
    Task,
    Workflow,
)

__all__ = [
    "AccumulatedContext",
    "AffectedEntity",
    "AuditDecision",
    "AuditEntry",
    "AuditKind",
    "Automation",
    "BlocksEvent",
    "CancellationOutcome",
    "ChatReply",
    "ChatRequest",
    "ChatResponse",
    "ClarificationNeeded",
    "ClassificationResult",
    "Client",
    "ConfidenceLevel",
    "ConfirmationOutcome",
    "ConfirmationStatus",
    "ContextEvent",
    "DoneEvent",
    "EntitySnapshot",
    "EntityType",
    "ErrorEvent",
    "ExecutionPlan",
    "ExtractedEntities",
    "HandlerOutcome",
    "IntentCategory",
    "MatchCandidate",
    "MultiMatch",
    "Opportunity",
    "OutboundEmail",
    "ParameterType",
    "PendingConfirmation",
    "PipelineConfig",
    "RecentEntity",
    "RequestContext",
    "Severity",
    "StreamEvent",
    "Task",
    "TextEvent",
    "ThinkingEvent",
    "ToolCategory",
    "ToolDefinition",
    "ToolParameter",
    "ToolResult",
    "TurnState",
    "UndoRecord",
    "WireModel",
    "Workflow",
]
