"""Tests for cm_notify — fire-and-forget dispatch."""

import logging
from typing import Any

import pytest

from src.cm_notify.dispatcher import DONATION_RECORDED, NotificationDispatcher


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def notify(self, event_kind: str, payload: dict[str, Any]) -> None:
        self.events.append((event_kind, payload))


class FailingSink:
    async def notify(self, event_kind: str, payload: dict[str, Any]) -> None:
        raise ConnectionError("webhook unreachable")


class TestDispatch:
    async def test_delivers_in_background(self) -> None:
        sink = RecordingSink()
        dispatcher = NotificationDispatcher(sink)

        dispatcher.dispatch(DONATION_RECORDED, {"amount_cents": 1000})
        await dispatcher.drain()

        assert sink.events == [(DONATION_RECORDED, {"amount_cents": 1000})]

    async def test_failure_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        dispatcher = NotificationDispatcher(FailingSink())

        with caplog.at_level(logging.WARNING, logger="cm.notify"):
            dispatcher.dispatch(DONATION_RECORDED, {})
            await dispatcher.drain()

        assert "webhook unreachable" in caplog.text

    async def test_drain_without_pending(self) -> None:
        await NotificationDispatcher(RecordingSink()).drain()
