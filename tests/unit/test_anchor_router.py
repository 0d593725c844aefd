"""HTTP tests for anchor and proof routes."""

from __future__ import annotations

import hashlib

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from journal_ledger.modules.anchors.public_router import (
    CLOSED_DAY_CACHE_CONTROL,
    OPEN_DAY_CACHE_CONTROL,
)
from journal_ledger.modules.anchors.public_router import router as public_router
from journal_ledger.modules.anchors.router import router
from journal_ledger.modules.anchors.service import AnchorService
from journal_ledger.modules.ledger.dependencies import get_anchor_service
from journal_ledger.modules.ledger.service import LedgerService

OWNER = {"X-Owner-Id": "U1"}


def _pair(left: str, right: str) -> str:
    return hashlib.sha256((left + right).encode()).hexdigest()


@pytest.fixture
def ledger(store, settings, keyring, clock) -> LedgerService:
    return LedgerService(store, settings=settings, keyring=keyring, clock=clock)


@pytest.fixture
def client(store, clock) -> AsyncClient:
    app = FastAPI()
    app.include_router(router, prefix="/anchors")
    app.include_router(public_router, prefix="/public")
    app.dependency_overrides[get_anchor_service] = lambda: AnchorService(store, clock=clock)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_today_anchor_is_open(client, ledger) -> None:
    entry = await ledger.commit("U1", "today")

    resp = await client.get("/public/anchors/today")

    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == OPEN_DAY_CACHE_CONTROL
    assert resp.json() == {
        "date": "2024-01-01",
        "count": 1,
        "root": _pair(entry.digest, entry.digest),
        "closed": False,
    }


@pytest.mark.asyncio
async def test_closed_day_is_immutable_cacheable(client, ledger, clock) -> None:
    await ledger.commit("U1", "yesterday")
    clock.advance(days=1)

    resp = await client.get("/public/anchors/2024-01-01")

    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == CLOSED_DAY_CACHE_CONTROL
    assert resp.json()["closed"] is True
    assert resp.json()["count"] == 1


@pytest.mark.asyncio
async def test_empty_day_has_null_root(client) -> None:
    resp = await client.get("/public/anchors/2020-02-02")
    assert resp.json() == {"date": "2020-02-02", "count": 0, "root": None, "closed": True}


@pytest.mark.asyncio
async def test_bad_date_is_422(client) -> None:
    resp = await client.get("/public/anchors/2024-13-40")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_owner_proof_replays_to_public_root(client, ledger, clock) -> None:
    first = await ledger.commit("U1", "first")
    clock.advance(minutes=1)
    await ledger.commit("U2", "second")

    proof = await client.get(f"/anchors/proof/{first.id}", headers=OWNER)
    assert proof.status_code == 200
    body = proof.json()
    assert body["digest"] == first.digest
    assert body["count"] == 2
    assert body["date"] == "2024-01-01"

    anchor = (await client.get("/public/anchors/2024-01-01")).json()
    assert body["root"] == anchor["root"]

    check = await client.post(
        "/public/proofs/verify",
        json={"digest": body["digest"], "root": anchor["root"], "proof": body["proof"]},
    )
    assert check.status_code == 200
    assert check.json() == {"ok": True, "computedRoot": anchor["root"]}


@pytest.mark.asyncio
async def test_proof_verify_rejects_wrong_root(client) -> None:
    digest = hashlib.sha256(b"x").hexdigest()
    resp = await client.post(
        "/public/proofs/verify",
        json={"digest": digest, "root": "0" * 64, "proof": [{"side": "R", "hash": digest}]},
    )
    assert resp.json() == {"ok": False, "computedRoot": _pair(digest, digest)}


@pytest.mark.asyncio
async def test_proof_verify_validates_shape(client) -> None:
    resp = await client.post(
        "/public/proofs/verify",
        json={"digest": "abc", "root": "0" * 64, "proof": [{"side": "up", "hash": "0" * 64}]},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_proof_errors(client, ledger) -> None:
    entry = await ledger.commit("U1", "private")

    assert (await client.get("/anchors/proof/bad", headers=OWNER)).status_code == 400
    other = await client.get(f"/anchors/proof/{entry.id}", headers={"X-Owner-Id": "U2"})
    assert other.status_code == 404
    assert (await client.get(f"/anchors/proof/{entry.id}")).status_code == 401
