"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_audit.domain.models import AuditLogEntry


class AuditRepositoryProtocol(Protocol):
    async def insert(
        self,
        db: AsyncSession,
        action: str,
        actor_handle: str,
        target: str | None,
        details: dict[str, Any] | None,
        public: bool,
    ) -> AuditLogEntry: ...

    async def list_entries(
        self,
        db: AsyncSession,
        public_only: bool,
        offset: int,
        limit: int,
    ) -> list[AuditLogEntry]: ...

    async def count_entries(self, db: AsyncSession, public_only: bool) -> int: ...
