"""AuditService — filtered append-only audit trail.

record() never commits: it runs inside the caller's unit of work so that the
entry and the state change it describes become durable together. Whether an
action is persisted at all, and whether it is public, is decided from the
configuration snapshot passed in by the caller.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_audit.application.schemas import AuditLogItem, AuditLogPage
from src.cm_audit.domain.models import AuditLogEntry
from src.cm_audit.domain.repository import AuditRepositoryProtocol
from src.cm_audit.infrastructure.persistence import AuditRepository
from src.cm_common.enums import AuditAction
from src.cm_config.domain.models import AuditLogConfig, OrgConfig

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


def should_record(settings: AuditLogConfig, action: str) -> bool:
    """Module enabled and, when an allow-list is configured, action listed in it."""
    if not settings.enabled:
        return False
    if settings.actions_to_log and action not in settings.actions_to_log:
        return False
    return True


class AuditService:
    def __init__(self, repo: AuditRepositoryProtocol | None = None) -> None:
        self._repo: AuditRepositoryProtocol = repo or AuditRepository()

    async def record(
        self,
        db: AsyncSession,
        config: OrgConfig,
        action: AuditAction | str,
        actor_handle: str,
        target: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry | None:
        action_value = action.value if isinstance(action, AuditAction) else action
        settings = config.audit_log
        if not should_record(settings, action_value):
            return None
        entry = await self._repo.insert(
            db,
            action=action_value,
            actor_handle=actor_handle,
            target=target,
            details=details,
            public=settings.public,
        )
        logger.info(
            "Audit %s by %s%s",
            action_value,
            actor_handle,
            f" on {target}" if target else "",
        )
        return entry

    async def list_public(
        self, db: AsyncSession, config: OrgConfig, page: int, limit: int
    ) -> AuditLogPage:
        if not config.audit_log.enabled:
            return AuditLogPage(items=[], total=0, page=page, limit=limit)
        return await self._page(db, public_only=True, page=page, limit=limit)

    async def list_all(self, db: AsyncSession, page: int, limit: int) -> AuditLogPage:
        return await self._page(db, public_only=False, page=page, limit=limit)

    async def _page(
        self, db: AsyncSession, public_only: bool, page: int, limit: int
    ) -> AuditLogPage:
        offset = (max(page, 1) - 1) * limit
        entries = await self._repo.list_entries(db, public_only, offset, limit)
        total = await self._repo.count_entries(db, public_only)
        return AuditLogPage(
            items=[AuditLogItem.from_domain(e) for e in entries],
            total=total,
            page=page,
            limit=limit,
        )
