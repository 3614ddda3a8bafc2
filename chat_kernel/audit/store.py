"""
Audit Log — append-only, hash-chained record of confirmations and mutations.

Behavioral Contract:
- Append-only. No entry is ever modified or deleted.
- Each entry is hashed and chained to the previous entry (tamper-evident).
- Every confirm/cancel decision records: confirmation id, approved/rejected,
  affected entity type/id/name, timestamp.
- Executions and undo reversals are recorded with their outcome.
- Writers never read it for correctness; queries exist for operators.
"""

import hashlib
import json
import sqlite3
import threading
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from chat_kernel.models.audit import AuditDecision, AuditEntry, AuditKind
from chat_kernel.models.confirmation import PendingConfirmation
from chat_kernel.models.plan import ExecutionPlan
from chat_kernel.models.tools import ToolResult, UndoRecord
from chat_kernel.workspace.store import utcnow


def _signature(entry: AuditEntry) -> str:
    entry_dict = entry.model_dump(mode="json")
    entry_dict["signature"] = ""
    entry_bytes = json.dumps(entry_dict, sort_keys=True, default=str).encode()
    return hashlib.sha256(entry_bytes).hexdigest()


class AuditLog:
    """
    Append-only audit store.
    Prototype: SQLite. Production: a write-once table or log service.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS audit (
                id TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                tool_name TEXT,
                decision TEXT,
                success INTEGER,
                confirmation_id TEXT,
                entity_type TEXT,
                entity_id TEXT,
                recorded_at TEXT NOT NULL,
                signature TEXT NOT NULL,
                prior_record_hash TEXT,
                record_json TEXT NOT NULL
            )
        """)
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_audit_entity ON audit(entity_id)"
        )
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_audit_confirmation ON audit(confirmation_id)"
        )
        self._conn.commit()

    def append(self, entry: AuditEntry) -> AuditEntry:
        """Append an entry, chaining it to the latest one."""
        with self._lock:
            entry.prior_record_hash = self._get_latest_hash()
            entry.signature = _signature(entry)
            self._conn.execute(
                """
                INSERT INTO audit (
                    id, kind, tool_name, decision, success, confirmation_id,
                    entity_type, entity_id, recorded_at, signature,
                    prior_record_hash, record_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.id,
                    entry.kind.value,
                    entry.tool_name,
                    entry.decision.value if entry.decision else None,
                    None if entry.success is None else int(entry.success),
                    entry.confirmation_id,
                    entry.entity_type,
                    entry.entity_id,
                    entry.recorded_at.isoformat(),
                    entry.signature,
                    entry.prior_record_hash,
                    entry.model_dump_json(),
                ),
            )
            self._conn.commit()
        return entry

    def _get_latest_hash(self) -> Optional[str]:
        row = self._conn.execute(
            "SELECT signature FROM audit ORDER BY rowid DESC LIMIT 1"
        ).fetchone()
        return row["signature"] if row else None

    # --- typed writers ---

    def record_confirmation(
        self,
        confirmation: PendingConfirmation,
        decision: AuditDecision,
        reason: Optional[str] = None,
        current_time: Optional[datetime] = None,
    ) -> AuditEntry:
        entity = confirmation.affected_entity
        return self.append(AuditEntry(
            id=f"aud_{uuid4().hex[:12]}",
            kind=AuditKind.CONFIRMATION,
            recorded_at=current_time or utcnow(),
            tool_name=confirmation.plan.tool,
            decision=decision,
            reason=reason,
            confirmation_id=confirmation.id,
            entity_type=entity.type.value if entity else None,
            entity_id=entity.id if entity else None,
            entity_name=entity.name if entity else None,
            detail={"status": confirmation.status.value},
        ))

    def record_execution(
        self,
        plan: ExecutionPlan,
        result: ToolResult,
        current_time: Optional[datetime] = None,
    ) -> AuditEntry:
        entity = plan.affected_entity
        return self.append(AuditEntry(
            id=f"aud_{uuid4().hex[:12]}",
            kind=AuditKind.EXECUTION,
            recorded_at=current_time or utcnow(),
            tool_name=result.tool_name,
            success=result.success,
            reason=result.error_code,
            entity_type=plan.entity_type.value if plan.entity_type else None,
            entity_id=entity.id if entity else result.arguments.get("id"),
            entity_name=entity.name if entity else None,
            detail={
                "arguments": result.arguments,
                "undo_action": result.undo_action,
                "error": result.error,
            },
        ))

    def record_undo(
        self,
        record: UndoRecord,
        success: bool,
        current_time: Optional[datetime] = None,
    ) -> AuditEntry:
        first = record.snapshots[0] if record.snapshots else None
        return self.append(AuditEntry(
            id=f"aud_{uuid4().hex[:12]}",
            kind=AuditKind.UNDO,
            recorded_at=current_time or utcnow(),
            tool_name=record.tool_name,
            success=success,
            entity_type=first.entity_type.value if first else None,
            entity_id=first.entity_id if first else None,
            detail={"undo_action": record.undo_action, "description": record.description},
        ))

    # --- queries ---

    def _deserialize(self, row: sqlite3.Row) -> AuditEntry:
        return AuditEntry.model_validate_json(row["record_json"])

    def _fetch(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def query_recent(self, limit: int = 50) -> List[AuditEntry]:
        rows = self._fetch(
            "SELECT record_json FROM audit ORDER BY rowid DESC LIMIT ?", (limit,)
        )
        return [self._deserialize(r) for r in reversed(rows)]

    def query_by_entity(self, entity_id: str) -> List[AuditEntry]:
        rows = self._fetch(
            "SELECT record_json FROM audit WHERE entity_id = ? ORDER BY rowid",
            (entity_id,),
        )
        return [self._deserialize(r) for r in rows]

    def query_by_confirmation(self, confirmation_id: str) -> List[AuditEntry]:
        rows = self._fetch(
            "SELECT record_json FROM audit WHERE confirmation_id = ? ORDER BY rowid",
            (confirmation_id,),
        )
        return [self._deserialize(r) for r in rows]

    def verify_chain_integrity(self) -> bool:
        """Verify no entry has been tampered with or removed from the middle."""
        rows = self._fetch(
            "SELECT record_json, signature FROM audit ORDER BY rowid"
        )
        for i, row in enumerate(rows):
            entry = self._deserialize(row)
            if entry.signature != row["signature"] or _signature(entry) != entry.signature:
                return False
            if i > 0 and entry.prior_record_hash != rows[i - 1]["signature"]:
                return False
        return True

    def count(self) -> int:
        rows = self._fetch("SELECT COUNT(*) AS cnt FROM audit")
        return rows[0]["cnt"]

    def close(self) -> None:
        self._conn.close()
