"""
Entity Resolver — maps extracted names and references onto workspace records.

Matching runs in tiers and stops at the first tier that produces anything:
  1. exact (case-insensitive) display-name match
  2. token / substring match
  3. difflib similarity at or above the configured floor

Candidates are ordered by score descending, then display name ascending,
so the same candidate set always yields the same order.
"""

import logging
from difflib import SequenceMatcher
from typing import List, Optional

from chat_kernel.models.context import AccumulatedContext
from chat_kernel.models.plan import AffectedEntity, EntityType, MatchCandidate
from chat_kernel.workspace.store import WorkspaceStore

logger = logging.getLogger(__name__)

EXACT_SCORE = 1.0
TOKEN_SCORE = 0.85
SUBSTRING_SCORE = 0.7
FUZZY_WEIGHT = 0.6


def _tokens(text: str) -> List[str]:
    return [t for t in "".join(c if c.isalnum() else " " for c in text.lower()).split() if t]


def _similarity(query: str, name: str) -> float:
    """Best difflib ratio of the query against the whole name or any single token."""
    candidates = [name.lower()] + _tokens(name)
    return max(SequenceMatcher(None, query.lower(), c).ratio() for c in candidates)


def sort_candidates(candidates: List[MatchCandidate]) -> List[MatchCandidate]:
    return sorted(candidates, key=lambda c: (-(c.score or 0.0), c.display_name.lower()))


class EntityResolver:
    """Resolves names against one entity type's records in the workspace."""

    def __init__(self, workspace: WorkspaceStore, similarity_floor: float = 0.6):
        self.workspace = workspace
        self.similarity_floor = similarity_floor

    def _records(self, entity_type: EntityType):
        if entity_type == EntityType.CLIENT:
            return self.workspace.clients()
        return self.workspace.list(entity_type)

    def match(self, entity_type: EntityType, query: str) -> List[MatchCandidate]:
        """All candidates from the first matching tier, in stable order."""
        query = query.strip()
        if not query:
            return []
        records = self._records(entity_type)
        lowered = query.lower()
        query_tokens = set(_tokens(query))

        exact = [r for r in records if r.display_name.lower() == lowered]
        if exact:
            return sort_candidates([self._candidate(r, EXACT_SCORE) for r in exact])

        partial = []
        for record in records:
            name = record.display_name
            if query_tokens and query_tokens <= set(_tokens(name)):
                partial.append(self._candidate(record, TOKEN_SCORE))
            elif lowered in name.lower():
                partial.append(self._candidate(record, SUBSTRING_SCORE))
        if partial:
            return sort_candidates(partial)

        fuzzy = []
        for record in records:
            ratio = _similarity(query, record.display_name)
            if ratio >= self.similarity_floor:
                fuzzy.append(self._candidate(record, round(ratio * FUZZY_WEIGHT, 3)))
        if fuzzy:
            logger.debug("Fuzzy matches for %r: %s", query, [c.display_name for c in fuzzy])
        return sort_candidates(fuzzy)

    def _candidate(self, record, score: float) -> MatchCandidate:
        return MatchCandidate(
            id=record.id,
            display_name=record.display_name,
            summary=record.summary,
            score=score,
        )

    def resolve_reference(
        self, entity_type: EntityType, context: AccumulatedContext
    ) -> Optional[AffectedEntity]:
        """
        Resolve "it"/"that"/"them" to the most recently mentioned entity of a
        compatible type, falling back to the focused entity for that type.
        """
        for recent in context.recent_entities:
            if recent.type == entity_type and self.workspace.find(entity_type, recent.id):
                return AffectedEntity(type=entity_type, id=recent.id, name=recent.name)

        focused_id = context.focused_id(entity_type)
        if focused_id:
            record = self.workspace.find(entity_type, focused_id)
            if record is not None:
                return AffectedEntity(
                    type=entity_type, id=record.id, name=record.display_name
                )
        return None

    def describe(self, entity_type: EntityType, entity_id: str) -> Optional[AffectedEntity]:
        record = self.workspace.find(entity_type, entity_id)
        if record is None:
            return None
        return AffectedEntity(type=entity_type, id=record.id, name=record.display_name)

    def roster(self, entity_type: EntityType, limit: int = 5) -> List[str]:
        """A few display names to offer as clarification options."""
        return sorted(r.display_name for r in self._records(entity_type))[:limit]
