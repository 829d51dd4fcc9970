"""Fire-and-forget notification dispatch.

The core only knows an opaque sink: notify(event_kind, payload). Delivery
(chat webhooks, e-mail) belongs to whatever sink the deployment injects.
dispatch() never raises and never blocks the caller on delivery; failures are
logged and dropped.
"""

import asyncio
import logging
from typing import Any, Protocol

logger = logging.getLogger("cm.notify")

DONATION_RECORDED = "donation.recorded"
PROPOSAL_CREATED = "proposal.created"
PROPOSAL_CLOSED = "proposal.closed"
AUTOPAY_RUN_FINISHED = "autopay.run_finished"


class NotificationSinkProtocol(Protocol):
    async def notify(self, event_kind: str, payload: dict[str, Any]) -> None: ...


class LogNotificationSink:
    """Default sink: writes the event to the cm.notify logger."""

    async def notify(self, event_kind: str, payload: dict[str, Any]) -> None:
        logger.info("[%s] %s", event_kind, payload)


class NotificationDispatcher:
    def __init__(self, sink: NotificationSinkProtocol | None = None) -> None:
        self._sink: NotificationSinkProtocol = sink or LogNotificationSink()
        self._pending: set[asyncio.Task[None]] = set()

    def dispatch(self, event_kind: str, payload: dict[str, Any]) -> None:
        task = asyncio.create_task(self._deliver(event_kind, payload))
        # Keep a strong reference until the task finishes
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event_kind: str, payload: dict[str, Any]) -> None:
        try:
            await self._sink.notify(event_kind, payload)
        except Exception as e:  # noqa: BLE001 — delivery is best-effort
            logger.warning("Notification %s failed: %s", event_kind, e)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


_default_dispatcher = NotificationDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    return _default_dispatcher
