"""Pydantic schemas for cm_audit API."""

from typing import Any

from pydantic import BaseModel

from src.cm_audit.domain.models import AuditLogEntry


class AuditLogItem(BaseModel):
    id: int
    action: str
    actor_handle: str
    target: str | None
    details: dict[str, Any] | None
    public: bool
    timestamp: str  # ISO8601 string

    @classmethod
    def from_domain(cls, e: AuditLogEntry) -> "AuditLogItem":
        return cls(
            id=e.id,
            action=e.action,
            actor_handle=e.actor_handle,
            target=e.target,
            details=e.details,
            public=e.public,
            timestamp=e.timestamp.isoformat() if e.timestamp else "",
        )


class AuditLogPage(BaseModel):
    items: list[AuditLogItem]
    total: int
    page: int
    limit: int
