"""Identity collaborator Protocol.

The ledger and governance services only need "who is this e-mail": an id to
reference, a handle to display and a role for policy checks. Any directory that
can answer that (SSO bridge, external user service) can be injected instead of
the bundled MemberDirectory.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_identity.domain.models import Identity


class IdentityResolverProtocol(Protocol):
    async def resolve_or_create(self, db: AsyncSession, email: str) -> Identity: ...
