"""MemberDirectory — default IdentityResolverProtocol over the members table.

Handles are generated as "@<prefix>_<6 hex>" where prefix is up to 8 lower-case
alphanumerics of the e-mail local part. The members.email UNIQUE constraint is
the final guard against two concurrent first-time lookups for the same e-mail:
the loser of the INSERT race re-reads the winner's row.

Transaction ownership: resolve_or_create() flushes its INSERT but does not
commit; the member row becomes durable with the caller's unit of work.
"""

import logging
import re
import secrets
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_common.enums import MemberRole
from src.cm_common.errors import InternalError, InvalidEmailError
from src.cm_identity.domain.models import Identity

logger = logging.getLogger(__name__)

_MAX_HANDLE_ATTEMPTS = 5

_GET_BY_EMAIL_SQL = text("""
    SELECT id, email, handle, role, created_at
    FROM members
    WHERE email = :email
""")

_HANDLE_EXISTS_SQL = text("SELECT 1 FROM members WHERE handle = :handle")

_INSERT_SQL = text("""
    INSERT INTO members (email, handle, role)
    VALUES (:email, :handle, :role)
    ON CONFLICT (email) DO NOTHING
    RETURNING id, email, handle, role, created_at
""")

_PROMOTE_SQL = text("""
    UPDATE members SET role = 'admin'
    WHERE id = CAST(:id AS UUID)
    RETURNING id, email, handle, role, created_at
""")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_handle(email: str) -> str:
    local = email.split("@", 1)[0]
    prefix = re.sub(r"[^a-z0-9]", "", local[:8].lower())
    return f"@{prefix}_{secrets.token_hex(3)}"


def _row_to_identity(row: Any) -> Identity:
    return Identity(
        id=str(row.id),
        email=row.email,
        handle=row.handle,
        role=row.role,
        created_at=row.created_at,
    )


class MemberDirectory:
    def __init__(self, admin_emails: frozenset[str] | None = None) -> None:
        self._admin_emails = (
            admin_emails if admin_emails is not None else settings.admin_emails
        )

    def _role_for(self, email: str) -> str:
        return MemberRole.ADMIN.value if email in self._admin_emails else MemberRole.MEMBER.value

    async def resolve_or_create(self, db: AsyncSession, email: str) -> Identity:
        normalized = normalize_email(email)
        if not normalized or "@" not in normalized:
            raise InvalidEmailError()

        row = (await db.execute(_GET_BY_EMAIL_SQL, {"email": normalized})).fetchone()
        if row is not None:
            identity = _row_to_identity(row)
            # Promote members added to ADMIN_EMAILS after their first visit
            if self._role_for(normalized) == MemberRole.ADMIN and not identity.is_admin:
                promoted = (await db.execute(_PROMOTE_SQL, {"id": identity.id})).fetchone()
                if promoted is not None:
                    identity = _row_to_identity(promoted)
            return identity

        handle = await self._unique_handle(db, normalized)
        inserted = (
            await db.execute(
                _INSERT_SQL,
                {"email": normalized, "handle": handle, "role": self._role_for(normalized)},
            )
        ).fetchone()
        if inserted is None:
            # Lost the race: another request created the member first
            row = (await db.execute(_GET_BY_EMAIL_SQL, {"email": normalized})).fetchone()
            if row is None:
                raise InternalError(f"Member vanished after conflicting insert: {normalized}")
            return _row_to_identity(row)

        identity = _row_to_identity(inserted)
        logger.info("New member created: %s (%s)", identity.handle, identity.role)
        return identity

    async def _unique_handle(self, db: AsyncSession, email: str) -> str:
        handle = generate_handle(email)
        for _ in range(_MAX_HANDLE_ATTEMPTS):
            exists = (await db.execute(_HANDLE_EXISTS_SQL, {"handle": handle})).fetchone()
            if exists is None:
                break
            handle = generate_handle(email)
        return handle
