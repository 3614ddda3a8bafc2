"""Response Builder — turns tool results and gated plans into user-facing text and blocks."""

from typing import Any, Dict, List, Optional

from chat_kernel.models.confirmation import PendingConfirmation
from chat_kernel.models.plan import ClarificationNeeded, MultiMatch
from chat_kernel.models.response import ChatResponse
from chat_kernel.models.tools import ToolResult

MAX_CARDS = 10

_FAILURE_PREFIXES = {
    "not_found": "I couldn't find that record.",
    "validation_error": "I couldn't run that request.",
    "unknown_tool": "I don't know how to do that yet.",
    "store_error": "The data store reported a problem.",
    "invalid_state": "That action isn't possible right now.",
    "handler_error": "Something went wrong.",
}


def _card(record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if not isinstance(record, dict) or "id" not in record:
        return None
    title = record.get("name") or record.get("title") or record["id"]
    card = {"id": record["id"], "title": title}
    subtitle = record.get("status") or record.get("risk_profile")
    if subtitle:
        card["subtitle"] = subtitle
    return card


class ResponseBuilder:
    """Stateless formatting; every method returns a ChatResponse."""

    def build_response(
        self, result: ToolResult, undo_description: Optional[str] = None
    ) -> ChatResponse:
        undo = {
            "undo_available": undo_description is not None,
            "undo_description": undo_description,
        }
        if not result.success:
            return ChatResponse(content=self._failure_text(result), **undo)

        content = result.message or f"Done: {result.tool_name.replace('_', ' ')}."
        blocks: List[Dict[str, Any]] = []
        cards: List[Dict[str, Any]] = []
        if result.render_as != "text" and result.data is not None:
            blocks.append({"type": result.render_as, "data": result.data})
            records = result.data if isinstance(result.data, list) else [result.data]
            cards = [c for c in (_card(r) for r in records[:MAX_CARDS]) if c]
        return ChatResponse(content=content, blocks=blocks, cards=cards, **undo)

    def _failure_text(self, result: ToolResult) -> str:
        if result.rate_limited:
            return result.error or "Too many requests. Please wait a moment."
        prefix = _FAILURE_PREFIXES.get(result.error_code or "")
        if prefix is None:
            return result.error or "Something went wrong."
        if result.error_code == "not_found":
            return prefix
        return f"{prefix} {result.error}" if result.error else prefix

    def build_disambiguation(self, multi_match: MultiMatch) -> ChatResponse:
        lines = [multi_match.reason]
        for index, match in enumerate(multi_match.matches, start=1):
            line = f"{index}. {match.display_name}"
            if match.summary:
                line += f" ({match.summary})"
            lines.append(line)
        block = {
            "type": "select-entity",
            "entityType": multi_match.entity_type.value,
            "options": [m.to_wire() for m in multi_match.matches],
        }
        return ChatResponse(content="\n".join(lines), blocks=[block])

    def build_clarification_prompt(self, clarification: ClarificationNeeded) -> ChatResponse:
        content = clarification.question
        if clarification.options:
            content += "\nOptions: " + ", ".join(clarification.options)
        return ChatResponse(content=content)

    def build_confirmation_prompt(self, confirmation: PendingConfirmation) -> ChatResponse:
        content = confirmation.message
        if confirmation.consequence:
            content += f"\n\n{confirmation.consequence}"
        content += '\n\nReply "yes" to proceed or "cancel" to stop.'
        block = {
            "type": "confirm-action",
            "confirmationId": confirmation.id,
            "severity": confirmation.severity.value,
            "message": confirmation.message,
            "expiresAt": confirmation.expires_at.isoformat(),
        }
        if confirmation.consequence:
            block["consequence"] = confirmation.consequence
        if confirmation.affected_entity:
            block["affectedEntity"] = confirmation.affected_entity.to_wire()
        return ChatResponse(content=content, blocks=[block])

    def build_message(self, text: str) -> ChatResponse:
        return ChatResponse(content=text)
