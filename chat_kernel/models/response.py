"""User-facing response produced by the Response Builder."""

from typing import Any, Dict, List, Optional

from chat_kernel.models.base import WireModel


class ChatResponse(WireModel):
    content: str
    blocks: List[Dict[str, Any]] = []
    cards: List[Dict[str, Any]] = []
    undo_available: bool = False
    undo_description: Optional[str] = None
