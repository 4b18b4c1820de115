"""Integration tests for token API endpoints.

Tests cover:
- Creation of interval and fixed tokens with principal header
- Recipient assignment authorization
- Advancement and eligibility through HTTP
- Stable error codes in JSON error bodies
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from legacy_tokens.api.errors import register_exception_handlers
from legacy_tokens.api.routes import api_router
from legacy_tokens.db.redis import get_redis

pytestmark = pytest.mark.integration

ALICE = {"X-Principal-Id": "SP-alice"}
BOB = {"X-Principal-Id": "SP-bob"}


@pytest.fixture
def app(redis_client):
    """Test FastAPI app with Redis overridden by fakeredis."""
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    app.dependency_overrides[get_redis] = lambda: redis_client
    return app


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_create_interval_token(client):
    response = await client.post(
        "/api/tokens/interval",
        json={"metadata_ref": "ipfs://a", "interval_blocks": 10, "total_stages": 2},
        headers=ALICE,
    )

    assert response.status_code == 201
    assert response.json() == {"token_id": 1}

    info = (await client.get("/api/tokens/1")).json()
    assert info["owner"] == "SP-alice"
    assert info["creator"] == "SP-alice"
    assert info["schedule_type"] == "interval"
    assert info["interval_blocks"] == 10
    assert info["current_stage"] == 0
    assert info["matured"] is False


@pytest.mark.asyncio
async def test_create_requires_principal(client):
    response = await client.post(
        "/api/tokens/fixed",
        json={"metadata_ref": "ipfs://a", "unlock_heights": [10]},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_schedule_returns_stable_code(client):
    response = await client.post(
        "/api/tokens/fixed",
        json={"metadata_ref": "ipfs://a", "unlock_heights": []},
        headers=ALICE,
    )

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "InvalidSchedule"
    assert body["code"] == 104
    assert "debug_id" in body

    last = await client.get("/api/tokens/last-id")
    assert last.json() == {"last_token_id": 0}


@pytest.mark.asyncio
async def test_missing_token_returns_404(client):
    response = await client.get("/api/tokens/42")

    assert response.status_code == 404
    assert response.json()["error"] == "NftNotFound"
    assert response.json()["code"] == 101


@pytest.mark.asyncio
async def test_recipient_requires_owner(client):
    await client.post("/api/tokens/fixed", json={"metadata_ref": "m", "unlock_heights": [10]}, headers=ALICE)

    response = await client.put("/api/tokens/1/stages/0/recipient", json={"recipient": "SP-bob"}, headers=BOB)

    assert response.status_code == 403
    assert response.json()["error"] == "NotAuthorized"

    stage = (await client.get("/api/tokens/1/stages/0")).json()
    assert stage["recipient"] is None


@pytest.mark.asyncio
async def test_full_advance_flow(client, chain):
    await client.post("/api/tokens/fixed", json={"metadata_ref": "m", "unlock_heights": [100, 200]}, headers=ALICE)
    response = await client.put("/api/tokens/1/stages/0/recipient", json={"recipient": "SP-bob"}, headers=ALICE)
    assert response.json() == {"ok": True}

    early = await client.post("/api/tokens/1/advance")
    assert early.status_code == 409
    assert early.json()["error"] == "NotUnlocked"

    blocks = (await client.get("/api/tokens/1/blocks-until-unlock")).json()
    assert blocks == {"token_id": 1, "blocks": 100}

    await chain.advance_to(100)
    assert (await client.get("/api/tokens/1/can-advance")).json()["can_advance"] is True

    response = await client.post("/api/tokens/1/advance")
    assert response.status_code == 200
    assert response.json() == {"token_id": 1, "new_stage": 1, "owner": "SP-bob", "matured": False}

    owner = (await client.get("/api/tokens/1/owner")).json()
    assert owner == {"token_id": 1, "owner": "SP-bob"}

    stages = (await client.get("/api/tokens/1/stages")).json()["stages"]
    assert [s["unlock_height"] for s in stages] == [100, 200]
    assert stages[0]["recipient"] == "SP-bob"


@pytest.mark.asyncio
async def test_advance_without_recipient_is_invalid_stage(client):
    await client.post("/api/tokens/fixed", json={"metadata_ref": "m", "unlock_heights": [0]}, headers=ALICE)

    response = await client.post("/api/tokens/1/advance")

    assert response.status_code == 409
    assert response.json()["error"] == "InvalidStage"
    assert response.json()["code"] == 102


@pytest.mark.asyncio
async def test_missing_stage_entry_returns_404(client):
    await client.post(
        "/api/tokens/interval",
        json={"metadata_ref": "m", "interval_blocks": 5, "total_stages": 3},
        headers=ALICE,
    )

    response = await client.get("/api/tokens/1/stages/1")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_chain_height(client, chain):
    await chain.advance_to(77)

    response = await client.get("/api/chain/height")

    assert response.json() == {"height": 77}


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
