"""
Tool Registry — name-keyed tool definitions and their handlers.

Populated once at startup. The executor looks tools up by name and
validates arguments against the declared parameter schema before any
handler runs.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Protocol

from chat_kernel.models.tools import HandlerOutcome, ParameterType, ToolDefinition, ToolParameter
from chat_kernel.workspace.store import WorkspaceStore


class ToolHandler(Protocol):
    """One handler per registered tool."""

    def __call__(
        self, workspace: WorkspaceStore, arguments: Dict[str, Any]
    ) -> HandlerOutcome: ...


class UnknownToolError(KeyError):
    """Raised when a tool name has no registration."""
    pass


class ToolValidationError(ValueError):
    """Raised when arguments do not satisfy a tool's parameter schema."""

    def __init__(self, tool_name: str, errors: List[str]):
        self.tool_name = tool_name
        self.errors = errors
        super().__init__(f"Invalid arguments for {tool_name}: " + "; ".join(errors))


_TRUE = ("true", "yes", "1")
_FALSE = ("false", "no", "0")


def _coerce(param: ToolParameter, value: Any) -> Any:
    """Coerce one value to the declared type. Raises ValueError on mismatch."""
    kind = param.type
    if kind == ParameterType.STRING:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if not isinstance(value, str):
            raise ValueError(f"{param.name} must be a string")
        return value
    if kind == ParameterType.NUMBER:
        if isinstance(value, bool):
            raise ValueError(f"{param.name} must be a number")
        if isinstance(value, (int, float)):
            return value
        try:
            return float(str(value).replace(",", "").lstrip("$"))
        except ValueError:
            raise ValueError(f"{param.name} must be a number") from None
    if kind == ParameterType.INTEGER:
        if isinstance(value, bool):
            raise ValueError(f"{param.name} must be an integer")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise ValueError(f"{param.name} must be an integer")
    if kind == ParameterType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in _TRUE + _FALSE:
            return value.lower() in _TRUE
        raise ValueError(f"{param.name} must be a boolean")
    if kind == ParameterType.DATE:
        if isinstance(value, date):
            return value.isoformat()
        try:
            return date.fromisoformat(str(value)).isoformat()
        except ValueError:
            raise ValueError(f"{param.name} must be an ISO date (YYYY-MM-DD)") from None
    if kind == ParameterType.ARRAY:
        if not isinstance(value, list):
            raise ValueError(f"{param.name} must be a list")
        return value
    if kind == ParameterType.OBJECT:
        if not isinstance(value, dict):
            raise ValueError(f"{param.name} must be an object")
        return value
    return value


class ToolRegistry:
    """Holds ToolDefinitions and the ToolHandler bound to each."""

    def __init__(self):
        self._definitions: Dict[str, ToolDefinition] = {}
        self._handlers: Dict[str, ToolHandler] = {}

    def register(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        """Register (or replace) a tool."""
        self._definitions[definition.name] = definition
        self._handlers[definition.name] = handler

    def has(self, name: str) -> bool:
        return name in self._definitions

    def get_definition(self, name: str) -> Optional[ToolDefinition]:
        return self._definitions.get(name)

    def get_handler(self, name: str) -> ToolHandler:
        try:
            return self._handlers[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def definitions(self) -> List[ToolDefinition]:
        return sorted(self._definitions.values(), key=lambda d: d.name)

    def validate(
        self, definition: ToolDefinition, arguments: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Check arguments against the schema and return a sanitized copy.

        Applies defaults, coerces types, and checks enum membership.
        Unknown keys are dropped; the "_confirmed" marker is carried through.
        """
        errors: List[str] = []
        clean: Dict[str, Any] = {}

        for param in definition.parameters:
            value = arguments.get(param.name)
            if value is None or value == "":
                if param.default is not None:
                    clean[param.name] = param.default
                elif param.required:
                    errors.append(f"Missing required parameter: {param.name}")
                continue
            try:
                value = _coerce(param, value)
            except ValueError as e:
                errors.append(str(e))
                continue
            if param.enum and value not in param.enum:
                errors.append(
                    f"{param.name} must be one of: {', '.join(param.enum)}"
                )
                continue
            clean[param.name] = value

        if errors:
            raise ToolValidationError(definition.name, errors)

        if arguments.get("_confirmed") is True:
            clean["_confirmed"] = True
        return clean
