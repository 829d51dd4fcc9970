"""Domain models for cm_audit — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass
class AuditLogEntry:
    id: int                          # BIGSERIAL
    action: str                      # AuditAction value
    actor_handle: str
    target: str | None
    details: dict[str, Any] | None
    public: bool                     # fixed at write time, never updated
    timestamp: datetime | None = None
