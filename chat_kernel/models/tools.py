"""Tool definitions, handler outcomes, undo records and Tool Results."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from chat_kernel.models.base import WireModel
from chat_kernel.models.confirmation import Severity
from chat_kernel.models.plan import EntityType, IntentCategory


class ParameterType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"
    ARRAY = "array"
    OBJECT = "object"


class ToolCategory(str, Enum):
    """Operation class. Drives rate limiting."""
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXPORT = "export"
    BULK = "bulk"
    SENSITIVE = "sensitive"


class ToolParameter(WireModel):
    name: str
    type: ParameterType = ParameterType.STRING
    description: str = ""
    required: bool = False
    enum: Optional[List[str]] = None
    default: Optional[Any] = None
    prompt: Optional[str] = None  # question asked when the value is missing


class ToolDefinition(WireModel):
    """A named, schema-validated operation against a business entity."""

    name: str
    description: str
    intent: IntentCategory
    category: ToolCategory = ToolCategory.READ
    entity_type: Optional[EntityType] = None
    target_parameter: Optional[str] = None  # argument that receives a resolved entity id
    parameters: List[ToolParameter] = []
    render_as: str = "text"
    mutating: bool = False
    undoable: bool = False

    # Confirmation gating
    requires_confirmation: bool = False
    severity: Severity = Severity.WARNING
    confirmation_template: Optional[str] = None  # "{name}" is the resolved entity
    consequence: Optional[str] = None
    confirmation_ttl_seconds: Optional[int] = None
    cooldown_seconds: int = 0

    def parameter(self, name: str) -> Optional[ToolParameter]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    @property
    def required_parameters(self) -> List[ToolParameter]:
        return [p for p in self.parameters if p.required]


class EntitySnapshot(BaseModel):
    """Prior state of one record. state=None means the record did not exist."""

    entity_type: EntityType
    entity_id: str
    state: Optional[dict] = None


class UndoRecord(BaseModel):
    """Everything needed to reverse one mutating tool call."""

    undo_action: str
    tool_name: str
    description: str
    snapshots: List[EntitySnapshot]
    recorded_at: datetime


class HandlerOutcome(BaseModel):
    """What a tool handler returns to the executor."""

    data: Optional[Any] = None
    message: Optional[str] = None
    undo: Optional[UndoRecord] = None


class ToolResult(WireModel):
    """Produced once per execution. Immutable."""

    model_config = ConfigDict(frozen=True)

    success: bool
    tool_name: str
    arguments: Dict[str, Any] = {}
    render_as: str = "text"
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    undoable: bool = False
    undo_action: Optional[str] = None
    rate_limited: bool = False
    rate_limit_reset_at: Optional[datetime] = None
    confirmation_required: bool = False
    duration_seconds: float = 0.0

    undo_record: Optional[UndoRecord] = Field(default=None, exclude=True)
