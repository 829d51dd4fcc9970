"""Organization configuration snapshot — frozen pydantic models.

Loaded from modules.json. Instances are immutable: a configuration change builds
a new OrgConfig and swaps the reference held by ConfigStore. Services receive a
snapshot as an explicit argument and never read a shared mutable object.

All amounts are integer cents.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.cm_common.cents import MAX_AMOUNT_CENTS


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class OrganizationConfig(_Frozen):
    name: str = Field("Community", min_length=1)
    description: str | None = None
    currency: str = Field("BRL", min_length=3, max_length=3)
    locale: str = "pt-BR"


class GoalConfig(_Frozen):
    enabled: bool = False
    target_amount_cents: int = Field(0, ge=0)
    description: str | None = None


class RewardTier(_Frozen):
    tag: str = Field(..., min_length=1, max_length=32)
    color: str = "#999999"
    amount_cents: int = Field(..., gt=0)


class DonationsConfig(_Frozen):
    enabled: bool = True
    min_amount_cents: int | None = Field(None, gt=0)
    max_amount_cents: int | None = Field(None, gt=0)
    allow_anonymous: bool = True
    goal: GoalConfig | None = None
    rewards: tuple[RewardTier, ...] = ()

    @model_validator(mode="after")
    def _check_window(self) -> "DonationsConfig":
        if (
            self.min_amount_cents is not None
            and self.max_amount_cents is not None
            and self.min_amount_cents > self.max_amount_cents
        ):
            raise ValueError("min_amount_cents must not exceed max_amount_cents")
        return self


class PaymentGate(_Frozen):
    enabled: bool = False
    amount_cents: int = Field(0, ge=0)


class VotingConfig(_Frozen):
    enabled: bool = True
    create_proposal_role: Literal["admin", "member"] = "member"
    pay_to_create: PaymentGate = PaymentGate()
    pay_to_vote: PaymentGate = PaymentGate()
    quorum_min_votes: int = Field(5, gt=0)
    duration_days: int = Field(7, gt=0)


class AuditLogConfig(_Frozen):
    enabled: bool = True
    public: bool = True
    actions_to_log: tuple[str, ...] = ()


class AutoPaymentConfig(_Frozen):
    # Lengths follow the audit_logs.target and transactions columns
    id: str = Field(..., min_length=1, max_length=128)
    description: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0, le=MAX_AMOUNT_CENTS)
    currency: str = Field("BRL", min_length=3, max_length=3)
    recipient: str | None = Field(None, max_length=200)
    category: str = Field("infrastructure", min_length=1, max_length=50)


class AutoPaymentsConfig(_Frozen):
    enabled: bool = False
    payments: tuple[AutoPaymentConfig, ...] = ()

    @model_validator(mode="after")
    def _unique_ids(self) -> "AutoPaymentsConfig":
        ids = [p.id for p in self.payments]
        if len(ids) != len(set(ids)):
            raise ValueError("automatic payment ids must be unique")
        return self


class CronConfig(_Frozen):
    enabled: bool = False
    auto_payments: AutoPaymentsConfig = AutoPaymentsConfig()


class OrgConfig(_Frozen):
    # Unknown top-level sections (landing page, integrations, ...) belong to other services
    model_config = ConfigDict(frozen=True, extra="ignore")

    version: str = "1"
    organization: OrganizationConfig = OrganizationConfig()
    donations: DonationsConfig = DonationsConfig()
    voting: VotingConfig = VotingConfig()
    audit_log: AuditLogConfig = AuditLogConfig()
    cron: CronConfig = CronConfig()

    @property
    def currency(self) -> str:
        return self.organization.currency.upper()


# Modules an administrator may patch through the settings endpoint
EDITABLE_MODULES = ("organization", "donations", "voting", "audit_log", "cron")
