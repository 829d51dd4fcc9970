"""AuditRepository — concrete implementation of AuditRepositoryProtocol.

audit_logs is append-only: this module exposes no UPDATE or DELETE.
details is stored as JSONB; asyncpg hands JSONB back as text unless a codec is
registered, so rows are decoded here.

Transaction ownership: the CALLER commits. Inserts join whatever unit of work
the caller has open so an audit entry commits together with its state change.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_audit.domain.models import AuditLogEntry
from src.cm_common.errors import InternalError

_INSERT_SQL = text("""
    INSERT INTO audit_logs (action, actor_handle, target, details, public)
    VALUES (:action, :actor_handle, :target, CAST(:details AS JSONB), :public)
    RETURNING id, action, actor_handle, target, details, public, timestamp
""")

_LIST_SQL = text("""
    SELECT id, action, actor_handle, target, details, public, timestamp
    FROM audit_logs
    WHERE (:public_only = FALSE OR public = TRUE)
    ORDER BY timestamp DESC, id DESC
    OFFSET :offset
    LIMIT :limit
""")

_COUNT_SQL = text("""
    SELECT COUNT(*) FROM audit_logs
    WHERE (:public_only = FALSE OR public = TRUE)
""")


def _decode_details(raw: Any) -> dict[str, Any] | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        return json.loads(raw)
    return dict(raw)


def _row_to_entry(row: Any) -> AuditLogEntry:
    return AuditLogEntry(
        id=row.id,
        action=row.action,
        actor_handle=row.actor_handle,
        target=row.target,
        details=_decode_details(row.details),
        public=row.public,
        timestamp=row.timestamp,
    )


class AuditRepository:
    """Concrete repository — insert and paginated reads only."""

    async def insert(
        self,
        db: AsyncSession,
        action: str,
        actor_handle: str,
        target: str | None,
        details: dict[str, Any] | None,
        public: bool,
    ) -> AuditLogEntry:
        result = await db.execute(
            _INSERT_SQL,
            {
                "action": action,
                "actor_handle": actor_handle,
                "target": target,
                "details": json.dumps(details, default=str) if details is not None else None,
                "public": public,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Audit insert returned no rows")
        return _row_to_entry(row)

    async def list_entries(
        self,
        db: AsyncSession,
        public_only: bool,
        offset: int,
        limit: int,
    ) -> list[AuditLogEntry]:
        result = await db.execute(
            _LIST_SQL,
            {"public_only": public_only, "offset": offset, "limit": limit},
        )
        return [_row_to_entry(row) for row in result.fetchall()]

    async def count_entries(self, db: AsyncSession, public_only: bool) -> int:
        result = await db.execute(_COUNT_SQL, {"public_only": public_only})
        return int(result.scalar_one())
