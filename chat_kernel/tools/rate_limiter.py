"""
Rate Limiter — sliding-window limits per operation category.

Checked before a tool runs; recorded only after it succeeds.
"""

import logging
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, Optional

from pydantic import BaseModel

from chat_kernel.models.tools import ToolCategory
from chat_kernel.workspace.store import utcnow

logger = logging.getLogger(__name__)


class RateLimitRule(BaseModel):
    max_operations: int
    window_seconds: int
    message: str


class RateLimitStatus(BaseModel):
    allowed: bool
    remaining: int
    reset_at: Optional[datetime] = None
    message: Optional[str] = None


DEFAULT_RATE_LIMITS: Dict[ToolCategory, RateLimitRule] = {
    ToolCategory.CREATE: RateLimitRule(
        max_operations=20, window_seconds=60,
        message="You're creating items too quickly. Please wait a moment.",
    ),
    ToolCategory.DELETE: RateLimitRule(
        max_operations=10, window_seconds=60,
        message="Too many delete operations. Please wait before deleting more items.",
    ),
    ToolCategory.UPDATE: RateLimitRule(
        max_operations=30, window_seconds=60,
        message="Too many updates. Please slow down.",
    ),
    ToolCategory.EXPORT: RateLimitRule(
        max_operations=5, window_seconds=300,
        message="Export limit reached. Please wait a few minutes before exporting again.",
    ),
    ToolCategory.BULK: RateLimitRule(
        max_operations=3, window_seconds=300,
        message="Bulk operation limit reached. Please wait before performing more bulk actions.",
    ),
    ToolCategory.SENSITIVE: RateLimitRule(
        max_operations=5, window_seconds=60,
        message="Too many sensitive operations. Please wait before trying again.",
    ),
}


class RateLimiter:
    """In-memory sliding windows, one per category. Reads are never limited."""

    def __init__(
        self,
        rules: Optional[Dict[ToolCategory, RateLimitRule]] = None,
        enabled: bool = True,
    ):
        self.rules = dict(DEFAULT_RATE_LIMITS if rules is None else rules)
        self.enabled = enabled
        self._history: Dict[ToolCategory, Deque[datetime]] = {}
        self._lock = threading.Lock()

    def _prune(self, category: ToolCategory, now: datetime) -> Deque[datetime]:
        window = self._history.setdefault(category, deque())
        rule = self.rules[category]
        cutoff = now - timedelta(seconds=rule.window_seconds)
        while window and window[0] <= cutoff:
            window.popleft()
        return window

    def check(
        self, category: ToolCategory, current_time: Optional[datetime] = None
    ) -> RateLimitStatus:
        rule = self.rules.get(category)
        if not self.enabled or rule is None:
            return RateLimitStatus(allowed=True, remaining=-1)

        now = current_time or utcnow()
        with self._lock:
            window = self._prune(category, now)
            used = len(window)
            oldest = window[0] if window else None

        if used < rule.max_operations:
            return RateLimitStatus(allowed=True, remaining=rule.max_operations - used)

        reset_at = oldest + timedelta(seconds=rule.window_seconds)
        logger.warning(
            "Rate limit hit for %s operations (%d in %ds)",
            category.value, used, rule.window_seconds,
        )
        return RateLimitStatus(
            allowed=False, remaining=0, reset_at=reset_at, message=rule.message
        )

    def record(self, category: ToolCategory, current_time: Optional[datetime] = None) -> None:
        if not self.enabled or category not in self.rules:
            return
        now = current_time or utcnow()
        with self._lock:
            self._prune(category, now).append(now)

    def reset(self) -> None:
        with self._lock:
            self._history.clear()
