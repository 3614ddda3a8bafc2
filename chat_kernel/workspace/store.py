"""
Workspace Store — in-memory stand-in for the business data collaborators.

Holds clients, tasks, opportunities, workflows and automations, and exposes
the simple query/mutate operations tool handlers need.

Behavioral Contract:
- Every read returns a copy; callers mutate only through put()/remove()
- Missing records raise EntityNotFoundError, never return partial data
- snapshot()/restore() capture and reinstate one record's full state (undo)
- Each operation is a short critical section; no lock outlives a call
"""

import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Type
from uuid import uuid4

from pydantic import BaseModel

from chat_kernel.models.plan import EntityType
from chat_kernel.models.workspace import (
    Automation,
    Client,
    Opportunity,
    OutboundEmail,
    Task,
    Workflow,
)


class WorkspaceStoreError(Exception):
    """Raised when the underlying store cannot complete an operation."""
    pass


class EntityNotFoundError(WorkspaceStoreError):
    """Raised when a referenced record does not exist."""

    def __init__(self, entity_type: EntityType, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"No {entity_type.value} found with id {entity_id}")


RECORD_TYPES: Dict[EntityType, Type[BaseModel]] = {
    EntityType.CLIENT: Client,
    EntityType.TASK: Task,
    EntityType.OPPORTUNITY: Opportunity,
    EntityType.WORKFLOW: Workflow,
    EntityType.AUTOMATION: Automation,
}

ID_PREFIXES: Dict[EntityType, str] = {
    EntityType.CLIENT: "cli",
    EntityType.TASK: "task",
    EntityType.OPPORTUNITY: "opp",
    EntityType.WORKFLOW: "wf",
    EntityType.AUTOMATION: "auto",
}


def new_id(entity_type: EntityType) -> str:
    return f"{ID_PREFIXES[entity_type]}_{uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkspaceStore:
    """
    In-memory workspace store for the prototype.
    Production would delegate to the real CRM/task services.
    """

    def __init__(self):
        self._records: Dict[EntityType, Dict[str, BaseModel]] = {
            entity_type: {} for entity_type in RECORD_TYPES
        }
        self._emails: List[OutboundEmail] = []
        self._lock = threading.RLock()

    # --- generic record access ---

    def get(self, entity_type: EntityType, entity_id: str) -> BaseModel:
        with self._lock:
            record = self._records[entity_type].get(entity_id)
            if record is None:
                raise EntityNotFoundError(entity_type, entity_id)
            return record.model_copy(deep=True)

    def find(self, entity_type: EntityType, entity_id: str) -> Optional[BaseModel]:
        with self._lock:
            record = self._records[entity_type].get(entity_id)
            return record.model_copy(deep=True) if record else None

    def list(
        self,
        entity_type: EntityType,
        predicate: Optional[Callable[[BaseModel], bool]] = None,
    ) -> List[BaseModel]:
        with self._lock:
            records = [r.model_copy(deep=True) for r in self._records[entity_type].values()]
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        return records

    def put(self, entity_type: EntityType, record: BaseModel) -> BaseModel:
        """Insert or replace a record."""
        expected = RECORD_TYPES[entity_type]
        if not isinstance(record, expected):
            raise WorkspaceStoreError(
                f"Expected {expected.__name__} for {entity_type.value}, "
                f"got {type(record).__name__}"
            )
        with self._lock:
            self._records[entity_type][record.id] = record.model_copy(deep=True)
        return record

    def remove(self, entity_type: EntityType, entity_id: str) -> BaseModel:
        with self._lock:
            record = self._records[entity_type].pop(entity_id, None)
        if record is None:
            raise EntityNotFoundError(entity_type, entity_id)
        return record

    def count(self, entity_type: EntityType) -> int:
        with self._lock:
            return len(self._records[entity_type])

    # --- undo support ---

    def snapshot(self, entity_type: EntityType, entity_id: str) -> Optional[dict]:
        """Serializable state of one record, or None if it does not exist."""
        record = self.find(entity_type, entity_id)
        return record.model_dump(mode="json") if record else None

    def restore(
        self, entity_type: EntityType, entity_id: str, state: Optional[dict]
    ) -> None:
        """Put a record back to a snapshot. A None snapshot removes it."""
        with self._lock:
            if state is None:
                self._records[entity_type].pop(entity_id, None)
                return
            record = RECORD_TYPES[entity_type].model_validate(state)
            self._records[entity_type][entity_id] = record

    # --- outbound email ---

    def record_email(self, email: OutboundEmail) -> OutboundEmail:
        with self._lock:
            self._emails.append(email)
        return email

    def emails(self, client_id: Optional[str] = None) -> List[OutboundEmail]:
        with self._lock:
            sent = list(self._emails)
        if client_id:
            sent = [e for e in sent if e.client_id == client_id]
        return sent

    # --- typed conveniences ---

    def clients(self, include_archived: bool = False) -> List[Client]:
        return self.list(
            EntityType.CLIENT,
            lambda c: include_archived or c.status != "archived",
        )

    def tasks(self) -> List[Task]:
        return self.list(EntityType.TASK)

    def opportunities(self) -> List[Opportunity]:
        return self.list(EntityType.OPPORTUNITY)
