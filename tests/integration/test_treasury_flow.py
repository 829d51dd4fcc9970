"""End-to-end flows against live PostgreSQL + Redis."""

import asyncio
import uuid

import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.asyncio(loop_scope="session"), pytest.mark.integration]


def _email(prefix: str) -> str:
    return f"{prefix}.{uuid.uuid4().hex[:8]}@example.org"


async def _balance(client: AsyncClient) -> int:
    resp = await client.get("/api/v1/finance/summary")
    assert resp.status_code == 200
    return resp.json()["data"]["balance_cents"]


class TestLedgerFlow:
    async def test_donation_then_expense_moves_balance(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        before = await _balance(client)

        resp = await client.post(
            "/api/v1/finance/donations",
            json={"amount_cents": 5000, "message": "integration"},
            headers={"X-User-Email": _email("donor")},
        )
        assert resp.status_code == 200, resp.text
        assert await _balance(client) == before + 5000

        resp = await client.post(
            "/api/v1/admin/expenses",
            json={"amount_cents": 1200, "description": "Domain", "category": "infrastructure"},
            headers=admin_headers,
        )
        assert resp.status_code == 200, resp.text
        assert await _balance(client) == before + 3800

    async def test_external_ref_is_idempotent(self, client: AsyncClient) -> None:
        ref = f"pi_{uuid.uuid4().hex}"
        first = await client.post(
            "/api/v1/finance/donations", json={"amount_cents": 1000, "external_ref": ref}
        )
        second = await client.post(
            "/api/v1/finance/donations", json={"amount_cents": 1000, "external_ref": ref}
        )
        assert first.json()["data"]["created"] is True
        assert second.json()["data"]["created"] is False
        assert (
            first.json()["data"]["transaction"]["id"]
            == second.json()["data"]["transaction"]["id"]
        )

    async def test_pending_donation_counts_after_confirmation(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        before = await _balance(client)
        resp = await client.post(
            "/api/v1/finance/donations", json={"amount_cents": 700, "pending": True}
        )
        tx_id = resp.json()["data"]["transaction"]["id"]
        assert await _balance(client) == before

        confirm = await client.post(
            f"/api/v1/admin/transactions/{tx_id}/confirm", headers=admin_headers
        )
        assert confirm.status_code == 200
        assert await _balance(client) == before + 700

        again = await client.post(
            f"/api/v1/admin/transactions/{tx_id}/confirm", headers=admin_headers
        )
        assert again.status_code == 409


class TestVotingFlow:
    async def test_concurrent_duplicate_votes_count_once(
        self, client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        author = {"X-User-Email": _email("author")}
        created = await client.post(
            "/api/v1/proposals",
            json={"title": "Integration proposal", "description": "Body"},
            headers=author,
        )
        assert created.status_code == 200, created.text
        proposal_id = created.json()["data"]["id"]

        voter = {"X-User-Email": _email("voter")}
        url = f"/api/v1/proposals/{proposal_id}/votes"
        results = await asyncio.gather(
            client.post(url, json={"choice": "yes"}, headers=voter),
            client.post(url, json={"choice": "yes"}, headers=voter),
        )
        codes = sorted(r.json()["code"] for r in results)
        assert codes[0] == 0
        assert codes[1] == 3002

        detail = await client.get(f"/api/v1/proposals/{proposal_id}")
        assert detail.json()["data"]["proposal"]["yes_count"] == 1

        closed = await client.post(
            f"/api/v1/admin/proposals/{proposal_id}/close", headers=admin_headers
        )
        assert closed.json()["data"]["result"] == "no_quorum"

        again = await client.post(
            f"/api/v1/admin/proposals/{proposal_id}/close", headers=admin_headers
        )
        assert again.status_code == 409


class TestCron:
    async def test_status(self, client: AsyncClient) -> None:
        resp = await client.get(
            "/api/v1/cron/status", headers={"X-Cron-Secret": "integration-cron-secret"}
        )
        assert resp.status_code == 200
        assert "enabled" in resp.json()["data"]
