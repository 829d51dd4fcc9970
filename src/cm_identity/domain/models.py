"""Domain models for cm_identity — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.cm_common.enums import MemberRole


@dataclass
class Identity:
    id: str
    email: str
    handle: str                      # "@prefix_a1b2c3", shown instead of the e-mail
    role: str                        # MemberRole value
    created_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN
