"""Surface entity extraction: names, dates, priorities, references, numbers."""

import re
from datetime import date, datetime, timedelta
from typing import List, Optional

from chat_kernel.models.plan import ExtractedEntities
from chat_kernel.workspace.store import utcnow

# Command words double as given names and surnames ("Mark Johnson", "Grace Open"),
# so they are only dropped when they lead a sentence.
COMMAND_WORDS = {
    "show", "list", "tell", "find", "search", "get", "give", "display", "view", "open",
    "delete", "remove", "archive", "dismiss", "snooze", "cancel", "create", "add",
    "new", "update", "change", "set", "mark", "complete", "finish", "approve",
    "reject", "email", "send", "call", "remind", "schedule", "start", "pause",
    "resume", "export", "please", "can", "could", "would", "undo", "help",
}

STOPWORDS = COMMAND_WORDS | {
    "i", "me", "my", "we", "you", "a", "an", "the", "and", "or", "to", "of", "for",
    "what", "who", "how", "when", "where", "which", "is", "are", "about",
    "client", "clients", "task", "tasks", "opportunity", "opportunities",
    "workflow", "workflows", "automation", "automations", "portfolio", "profile",
    "details", "hi", "hello", "hey", "yes", "no", "ok", "okay", "today", "tomorrow",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "high", "medium", "low", "urgent", "pending", "review", "reviews",
    "it", "that", "this", "them", "those",
}

# Words that end a name wherever they appear in a capitalized run.
SPLIT_WORDS = STOPWORDS - COMMAND_WORDS

REFERENCE_WORDS = ("it", "that", "this", "them", "those", "him", "her")

_CAPITALIZED = re.compile(r"\b[A-Z][\w&.\-']*(?:\s+[A-Z][\w&.\-']*)*")
_QUOTED = re.compile(r"[\"“]([^\"”]+)[\"”]")
_ISO_DATE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
_NUMBER = re.compile(r"(?<![\w-])\$?(\d[\d,]*(?:\.\d+)?)\s*(k|m|million|thousand)?\b", re.I)
_EMAIL = re.compile(r"\b[\w.+-]+@[\w-]+\.[\w.]+\b")
_PRIORITY = re.compile(r"\b(urgent|high|medium|low)(?:[\s-]+priority)?\b")
_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def _strip_possessive(token: str) -> str:
    for suffix in ("'s", "’s", "'"):
        if token.endswith(suffix):
            return token[: -len(suffix)]
    return token


def _starts_sentence(prefix: str) -> bool:
    prefix = prefix.rstrip()
    return not prefix or prefix[-1] in ".!?"


def extract_names(message: str) -> List[str]:
    """
    Candidate proper names, in order of appearance.

    Quoted phrases are taken verbatim. Capitalized runs lose their possessives
    and any stop-words leading a sentence ("Show Chen's" -> "Chen"). Inside a
    run only non-command stop-words split it, so "create client Mark Johnson"
    keeps "Mark Johnson".
    """
    names: List[str] = []
    for quoted in _QUOTED.findall(message):
        if quoted.strip():
            names.append(quoted.strip())
    unquoted = _QUOTED.sub(" ", message)
    for match in _CAPITALIZED.finditer(unquoted):
        tokens = [_strip_possessive(t).strip(".,") for t in match.group(0).split()]
        if _starts_sentence(unquoted[: match.start()]):
            while tokens and tokens[0].lower() in STOPWORDS:
                tokens.pop(0)
        # "Sarah Chen About" -> "Sarah Chen"
        segment: List[str] = []
        for token in tokens + [""]:
            if token and token.lower() not in SPLIT_WORDS:
                segment.append(token)
                continue
            phrase = " ".join(segment)
            if phrase and phrase not in names:
                names.append(phrase)
            segment = []
    return names


def invalid_dates(text: str) -> List[str]:
    """ISO-shaped dates that are not on the calendar, e.g. 2026-02-30."""
    bad = []
    for raw in _ISO_DATE.findall(text):
        try:
            date.fromisoformat(raw)
        except ValueError:
            bad.append(raw)
    return bad


def resolve_date(text: str, today: date) -> Optional[str]:
    lowered = text.lower()
    for raw in _ISO_DATE.findall(lowered):
        try:
            return date.fromisoformat(raw).isoformat()
        except ValueError:
            continue
    if "today" in lowered:
        return today.isoformat()
    if "tomorrow" in lowered:
        return (today + timedelta(days=1)).isoformat()
    if "next week" in lowered:
        return (today + timedelta(days=7)).isoformat()
    if "next month" in lowered:
        return (today + timedelta(days=30)).isoformat()
    for offset, weekday in enumerate(_WEEKDAYS):
        if re.search(rf"\b{weekday}\b", lowered):
            delta = (offset - today.weekday()) % 7 or 7
            return (today + timedelta(days=delta)).isoformat()
    return None


def _parse_number(raw: str, scale: Optional[str]) -> float:
    value = float(raw.replace(",", ""))
    scale = (scale or "").lower()
    if scale in ("k", "thousand"):
        value *= 1_000
    elif scale in ("m", "million"):
        value *= 1_000_000
    return value


def extract_entities(message: str, current_time: Optional[datetime] = None) -> ExtractedEntities:
    today = (current_time or utcnow()).date()
    lowered = message.lower()

    references = [
        word for word in REFERENCE_WORDS if re.search(rf"\b{word}\b", lowered)
    ]
    priority = _PRIORITY.search(lowered)
    email = _EMAIL.search(message)
    dates = []
    resolved = resolve_date(message, today)
    if resolved:
        dates.append(resolved)

    without_dates = _ISO_DATE.sub(" ", message)
    numbers = [
        _parse_number(raw, scale) for raw, scale in _NUMBER.findall(without_dates)
    ]

    return ExtractedEntities(
        names=extract_names(message),
        dates=dates,
        invalid_dates=invalid_dates(message),
        priority=priority.group(1) if priority else None,
        references=references,
        numbers=numbers,
        quoted=[q.strip() for q in _QUOTED.findall(message) if q.strip()],
        email=email.group(0) if email else None,
    )
