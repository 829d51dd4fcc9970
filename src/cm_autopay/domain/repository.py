"""Run-lease Protocol — single-flight guard for the automatic payment run."""

from typing import Protocol


class RunLeaseProtocol(Protocol):
    async def acquire(self) -> str | None:
        """Take the lease. Returns an owner token, or None when another run holds it."""
        ...

    async def release(self, token: str) -> None:
        """Release the lease only if it is still owned by token."""
        ...
