"""FastAPI dependencies: configuration snapshot, caller identity, admin and cron guards.

Authentication itself happens upstream: member endpoints trust the X-User-Email
header set by the authenticating proxy. Admin endpoints additionally require the
shared X-Admin-Token and an X-Admin-Email listed in ADMIN_EMAILS.

Usage in any router:
    from src.cm_gateway.auth.dependencies import get_config_snapshot, require_member

    @router.post("/proposals")
    async def create(
        config: Annotated[OrgConfig, Depends(get_config_snapshot)],
        member: Annotated[Identity, Depends(require_member)],
    ):
        ...
"""

import secrets
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_common.database import get_db_session
from src.cm_common.errors import (
    AdminRequiredError,
    IdentityRequiredError,
    InvalidCronSecretError,
)
from src.cm_config.application.store import ConfigStore
from src.cm_config.domain.models import OrgConfig
from src.cm_identity.domain.models import Identity
from src.cm_identity.domain.repository import IdentityResolverProtocol
from src.cm_identity.infrastructure.persistence import MemberDirectory, normalize_email

# Process-wide holders; main.lifespan loads the store from MODULES_PATH
config_store = ConfigStore(settings.MODULES_PATH)
_identity_resolver = MemberDirectory()


def get_config_store() -> ConfigStore:
    return config_store


def get_config_snapshot(
    store: Annotated[ConfigStore, Depends(get_config_store)],
) -> OrgConfig:
    """Capture one immutable configuration snapshot for the whole request."""
    return store.snapshot()


def get_identity_resolver() -> IdentityResolverProtocol:
    return _identity_resolver


async def optional_member(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    resolver: Annotated[IdentityResolverProtocol, Depends(get_identity_resolver)],
    x_user_email: Annotated[str | None, Header()] = None,
) -> Identity | None:
    if not x_user_email or not x_user_email.strip():
        return None
    return await resolver.resolve_or_create(db, x_user_email)


async def require_member(
    member: Annotated[Identity | None, Depends(optional_member)],
) -> Identity:
    if member is None:
        raise IdentityRequiredError()
    return member


async def require_admin(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    resolver: Annotated[IdentityResolverProtocol, Depends(get_identity_resolver)],
    x_admin_token: Annotated[str | None, Header()] = None,
    x_admin_email: Annotated[str | None, Header()] = None,
) -> Identity:
    """Verify admin credentials and return the admin's identity for audit attribution.

    Raises HTTP 403 (AdminRequiredError) when the token is missing or wrong, when no
    ADMIN_TOKEN is configured, or when the e-mail is not listed in ADMIN_EMAILS.
    """
    if not settings.ADMIN_TOKEN or not x_admin_token:
        raise AdminRequiredError()
    if not secrets.compare_digest(x_admin_token.encode(), settings.ADMIN_TOKEN.encode()):
        raise AdminRequiredError()
    if not x_admin_email or normalize_email(x_admin_email) not in settings.admin_emails:
        raise AdminRequiredError()
    return await resolver.resolve_or_create(db, x_admin_email)


async def require_cron_secret(
    x_cron_secret: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for the cron trigger. Without CRON_SECRET only DEBUG deployments may call it."""
    if not settings.CRON_SECRET:
        if settings.DEBUG:
            return
        raise InvalidCronSecretError()
    if not x_cron_secret or not secrets.compare_digest(
        x_cron_secret.encode(), settings.CRON_SECRET.encode()
    ):
        raise InvalidCronSecretError()
