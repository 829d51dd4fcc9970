"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Validation
  2xxx: Ledger
  3xxx: Voting
  4xxx: Access/Policy
  5xxx: Scheduler
  6xxx: Configuration
  9xxx: System

Every error carries a stable `kind` so callers can branch without parsing codes:
validation, policy_denied, conflict, not_found, unauthorized, store, internal.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        kind: str = "internal",
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.kind = kind
        super().__init__(message)


# --- 1xxx: Validation ---

class AmountOutOfRangeError(AppError):
    def __init__(self, amount: int, detail: str) -> None:
        self.amount = amount
        super().__init__(1001, f"Amount out of range: {detail}", 422, "validation")


class AnonymousNotAllowedError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Anonymous donations are not allowed", 422, "validation")


class ModuleDisabledError(AppError):
    def __init__(self, module: str) -> None:
        super().__init__(1003, f"Module is disabled: {module}", 422, "validation")


class InvalidEmailError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "A valid e-mail address is required", 422, "validation")


# --- 2xxx: Ledger ---

class TransactionNotFoundError(AppError):
    def __init__(self, transaction_id: int) -> None:
        super().__init__(2001, f"Transaction not found: {transaction_id}", 404, "not_found")


class TransactionNotPendingError(AppError):
    def __init__(self, transaction_id: int, status: str) -> None:
        super().__init__(
            2002,
            f"Transaction {transaction_id} in status {status} cannot be confirmed",
            409,
            "conflict",
        )


class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            2003,
            f"Insufficient balance: required {required} cents, available {available} cents",
            422,
            "conflict",
        )


# --- 3xxx: Voting ---

class ProposalNotFoundError(AppError):
    def __init__(self, proposal_id: int) -> None:
        super().__init__(3001, f"Proposal not found: {proposal_id}", 404, "not_found")


class DuplicateVoteError(AppError):
    def __init__(self, proposal_id: int) -> None:
        super().__init__(3002, f"Already voted on proposal {proposal_id}", 409, "conflict")


class ProposalAlreadyClosedError(AppError):
    def __init__(self, proposal_id: int) -> None:
        super().__init__(3003, f"Proposal {proposal_id} is already closed", 409, "conflict")


class VotingPeriodEndedError(AppError):
    def __init__(self, proposal_id: int) -> None:
        super().__init__(
            3004, f"Voting period has ended for proposal {proposal_id}", 409, "conflict"
        )


# --- 4xxx: Access/Policy ---

class PolicyDeniedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Not allowed: {detail}", 403, "policy_denied")


class InvalidCronSecretError(AppError):
    def __init__(self) -> None:
        super().__init__(4002, "Invalid or missing cron secret", 401, "unauthorized")


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(4003, "Administrator credentials required", 403, "policy_denied")


class IdentityRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(4004, "A member identity is required", 401, "unauthorized")


# --- 5xxx: Scheduler ---

class SchedulerBusyError(AppError):
    def __init__(self) -> None:
        super().__init__(5001, "Automatic payment run already in progress", 409, "conflict")


# --- 6xxx: Configuration ---

class ConfigModuleNotFoundError(AppError):
    def __init__(self, module: str) -> None:
        super().__init__(6001, f"Unknown configuration module: {module}", 404, "not_found")


class ConfigValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6002, f"Invalid configuration: {detail}", 422, "validation")


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500, "internal")


class StoreError(AppError):
    def __init__(self, detail: str = "Storage backend failure") -> None:
        super().__init__(9003, detail, 503, "store")
