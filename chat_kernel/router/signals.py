"""
Confirmation/cancellation phrase detection.

Runs before routing. The message is lower-cased and trimmed, then matched
against fixed confirm and cancel patterns. An optional captured id (as in
"confirm pending-123") overrides the ambient pending confirmation id.
"""

import re
from enum import Enum
from typing import List, Optional, Pattern, Protocol, Tuple

from pydantic import BaseModel


class SignalKind(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    NONE = "none"


class ConfirmationSignal(BaseModel):
    kind: SignalKind = SignalKind.NONE
    confirmation_id: Optional[str] = None

    @property
    def detected(self) -> bool:
        return self.kind != SignalKind.NONE


class PhraseClassifier(Protocol):
    """Protocol for confirm/cancel detection — pluggable backend."""

    def detect(self, message: str) -> ConfirmationSignal: ...


CONFIRM_PATTERNS: List[Pattern] = [
    re.compile(r"^confirm\s*(action)?\s*([a-z0-9-]+)?$"),
    re.compile(r"^yes,?\s*(confirm|proceed|do it)?$"),
    re.compile(r"^go ahead$"),
    re.compile(r"^proceed$"),
    re.compile(r"^approved?$"),
]

CANCEL_PATTERNS: List[Pattern] = [
    re.compile(r"^cancel\s*(action)?\s*([a-z0-9-]+)?$"),
    re.compile(r"^no,?\s*(cancel|stop|don't)?$"),
    re.compile(r"^nevermind$"),
    re.compile(r"^abort$"),
    re.compile(r"^stop$"),
]


# Words that may follow "confirm"/"cancel" without naming an id.
_DEICTIC = ("it", "that", "this")


def _captured_id(match: "re.Match") -> Tuple[bool, Optional[str]]:
    """
    (is_signal, id). A trailing word that is neither a confirmation id nor
    "it"/"that"/"this" means the message names something else
    ("cancel workflow"), so it is not a confirmation response.
    """
    if match.re.groups < 2 or match.group(2) is None:
        return True, None
    word = match.group(2)
    if word.startswith("pending-"):
        return True, word
    return word in _DEICTIC, None


class RegexPhraseClassifier:
    """Fixed regex patterns over the normalized message."""

    def __init__(
        self,
        confirm_patterns: Optional[List[Pattern]] = None,
        cancel_patterns: Optional[List[Pattern]] = None,
    ):
        self.confirm_patterns = confirm_patterns or CONFIRM_PATTERNS
        self.cancel_patterns = cancel_patterns or CANCEL_PATTERNS

    def detect(self, message: str) -> ConfirmationSignal:
        normalized = message.lower().strip().rstrip(".!")
        for kind, patterns in (
            (SignalKind.CONFIRM, self.confirm_patterns),
            (SignalKind.CANCEL, self.cancel_patterns),
        ):
            for pattern in patterns:
                match = pattern.match(normalized)
                if not match:
                    continue
                is_signal, confirmation_id = _captured_id(match)
                if is_signal:
                    return ConfirmationSignal(kind=kind, confirmation_id=confirmation_id)
                return ConfirmationSignal()
        return ConfirmationSignal()
