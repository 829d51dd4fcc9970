"""Global enums — must match DB CHECK constraints exactly.

See alembic/versions/002_create_transactions.py .. 005_create_audit_logs.py.
"""

from enum import Enum


class TransactionType(str, Enum):
    IN = "IN"
    OUT = "OUT"


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"


class MemberRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class ProposalStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class ProposalResult(str, Enum):
    NONE = "none"
    APPROVED = "approved"
    DENIED = "denied"
    NO_QUORUM = "no_quorum"


class VoteChoice(str, Enum):
    YES = "yes"
    NO = "no"
    ABSTAIN = "abstain"


class AuditAction(str, Enum):
    # Ledger
    RECORD_DONATION = "RECORD_DONATION"
    CREATE_EXPENSE = "CREATE_EXPENSE"
    CONFIRM_TRANSACTION = "CONFIRM_TRANSACTION"
    # Scheduler
    CRON_PAYMENT = "CRON_PAYMENT"
    CRON_PAYMENT_FAILED = "CRON_PAYMENT_FAILED"
    CRON_PAYMENT_ERROR = "CRON_PAYMENT_ERROR"
    # Governance
    CREATE_PROPOSAL = "CREATE_PROPOSAL"
    CAST_VOTE = "CAST_VOTE"
    ADD_COMMENT = "ADD_COMMENT"
    CLOSE_PROPOSAL = "CLOSE_PROPOSAL"
    # Configuration
    CHANGE_SETTINGS = "CHANGE_SETTINGS"


class AutoPaymentOutcome(str, Enum):
    PAID = "paid"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    ERROR = "error"
