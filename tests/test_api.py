"""Tests for the HTTP API."""

import pytest
import pytest_asyncio
from eth_utils import function_signature_to_4byte_selector
from httpx import ASGITransport, AsyncClient

from routex.api.app import create_app
from routex.backends.simulated import encode_dex_swap
from routex.ledger.database import close_db, get_session_factory, init_db
from routex.ledger.repository import persist_swaps
from routex.safety import DANGEROUS_SIGNATURES
from routex.swap_engine.engine import SwapEngine
from routex.swap_engine.factory import (
    DEMO_DEX,
    POOL_STETH_WETH,
    RETH,
    STETH,
    TBTC,
    USDC,
    USDT,
    WETH,
    build_dry_run_engine,
)

from conftest import OTHER, USER

ADMIN = {"X-Admin-Token": "test-admin-token"}
API = {"X-Api-Token": "test-api-token"}
AS_USER = {**API, "X-Caller": USER}


@pytest_asyncio.fixture
async def engine() -> SwapEngine:
    return await build_dry_run_engine()


@pytest_asyncio.fixture
async def client(engine):
    await init_db()
    app = create_app(engine)
    engine.add_listener(persist_swaps(get_session_factory()))
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await close_db()


def fund(engine: SwapEngine, asset: str, amount: int, holder: str = USER) -> None:
    engine.chain.mint(asset, holder, amount)
    engine.chain.approve(asset, holder, engine.engine_address, amount)


def stable_swap(amount: int = 1_000 * 10**6, **extra) -> dict:
    body = {
        "asset_in": USDC,
        "asset_out": USDT,
        "amount_in": amount,
        "backend": "direct_pool",
    }
    body.update(extra)
    return body


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "routex"}

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        response = await client.get("/health/detailed")

        data = response.json()
        assert data["status"] == "healthy"
        assert data["engine"]["paused"] is False
        assert data["engine"]["backends"] == 1
        assert data["config"]["admin_token"] == "***"
        assert data["config"]["api_token"] == "***"


class TestViews:
    @pytest.mark.asyncio
    async def test_route_view(self, client):
        response = await client.get(f"/api/v1/routes/{USDC}/{USDT}")

        data = response.json()
        assert data["exists"] is True
        assert data["kind"] == "direct_pool"

    @pytest.mark.asyncio
    async def test_missing_route(self, client):
        response = await client.get(f"/api/v1/routes/{USDT}/{TBTC}")

        assert response.json() == {
            "exists": False,
            "kind": None,
            "backend": None,
            "route_data": None,
        }

    @pytest.mark.asyncio
    async def test_slippage_view(self, client):
        response = await client.get(f"/api/v1/slippage/{USDC}/{USDT}")

        assert response.json() == {"bps": 50, "source": "category_default"}

    @pytest.mark.asyncio
    async def test_pool_view(self, client):
        response = await client.get(f"/api/v1/pools/{POOL_STETH_WETH}")

        assert response.json() == {"pool": POOL_STETH_WETH, "whitelisted": True, "paused": False}

    @pytest.mark.asyncio
    async def test_protocols(self, client):
        response = await client.get("/api/v1/protocols")

        assert response.json() == {
            "direct_pool": False,
            "multi_hop_path": False,
            "direct_mint": False,
            "composite_steps": False,
        }

    @pytest.mark.asyncio
    async def test_backends(self, client):
        response = await client.get("/api/v1/backends")

        assert [entry["address"] for entry in response.json()] == [DEMO_DEX]

    @pytest.mark.asyncio
    async def test_selectors(self, client):
        response = await client.get("/api/v1/selectors")

        data = response.json()
        assert len(data) == len(DANGEROUS_SIGNATURES)
        assert all(entry["blocked_attempts"] == 0 for entry in data)


class TestSwaps:
    @pytest.mark.asyncio
    async def test_swap(self, client, engine):
        fund(engine, USDC, 1_000 * 10**6)

        response = await client.post("/api/v1/swaps", json=stable_swap(), headers=AS_USER)

        assert response.status_code == 200
        data = response.json()
        assert data["amount_out"] == "999500000"
        assert data["used_fallback"] is False
        assert engine.balance_of(USDT, USER) == 999_500_000

    @pytest.mark.asyncio
    async def test_swap_is_recorded(self, client, engine):
        fund(engine, USDC, 1_000 * 10**6)
        swap = await client.post("/api/v1/swaps", json=stable_swap(), headers=AS_USER)

        response = await client.get("/api/v1/swaps", params={"caller": USER})

        records = response.json()
        assert len(records) == 1
        assert records[0]["route_hash"] == swap.json()["route_hash"]
        assert records[0]["amount_out"] == "999500000"

        others = await client.get("/api/v1/swaps", params={"caller": OTHER})
        assert others.json() == []

    @pytest.mark.asyncio
    async def test_caller_header_required(self, client):
        response = await client.post("/api/v1/swaps", json=stable_swap(), headers=API)

        assert response.status_code == 422

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "guess"])
    async def test_api_token_required_to_act_for_caller(self, client, engine, token):
        fund(engine, USDC, 1_000 * 10**6)
        headers = {"X-Caller": USER}
        if token:
            headers["X-Api-Token"] = token

        for path, body in (
            ("/api/v1/swaps", stable_swap()),
            ("/api/v1/swaps/auto", {"asset_in": USDC, "asset_out": USDT, "amount_in": 10**6}),
            (
                "/api/v1/backends/swap",
                {
                    "backend": DEMO_DEX,
                    "asset_in": USDC,
                    "asset_out": USDT,
                    "amount_in": 10**6,
                    "call_data": "0x" + encode_dex_swap(USDC, USDT, 10**6, 0).hex(),
                    "secret": "dry-run-secret",
                },
            ),
        ):
            response = await client.post(path, json=body, headers=headers)
            assert response.status_code == 401

        assert engine.balance_of(USDC, USER) == 1_000 * 10**6
        assert engine.balance_of(USDT, USER) == 0

    @pytest.mark.asyncio
    async def test_unreachable_minimum(self, client, engine):
        fund(engine, USDC, 1_000 * 10**6)

        response = await client.post(
            "/api/v1/swaps", json=stable_swap(min_amount_out=2_000 * 10**6), headers=AS_USER
        )

        assert response.status_code == 422
        assert response.json()["error"] == "swap_failed"
        assert engine.balance_of(USDC, USER) == 1_000 * 10**6

    @pytest.mark.asyncio
    async def test_auto_swap_bridged(self, client, engine):
        fund(engine, STETH, 10**18)

        response = await client.post(
            "/api/v1/swaps/auto",
            json={"asset_in": STETH, "asset_out": RETH, "amount_in": 10**18},
            headers=AS_USER,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["amount_out"] == "908181818181818181"
        assert data["path"] == [STETH, WETH, RETH]

    @pytest.mark.asyncio
    async def test_cross_category(self, client, engine):
        fund(engine, STETH, 10**18)

        response = await client.post(
            "/api/v1/swaps/auto",
            json={"asset_in": STETH, "asset_out": USDC, "amount_in": 10**18},
            headers=AS_USER,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "cross_category"

    @pytest.mark.asyncio
    async def test_paused_engine(self, client, engine):
        fund(engine, USDC, 1_000 * 10**6)
        paused = await client.post("/admin/pause", headers=ADMIN)
        assert paused.status_code == 200

        response = await client.post("/api/v1/swaps", json=stable_swap(), headers=AS_USER)

        assert response.status_code == 409
        assert response.json()["error"] == "paused"


class TestBackendSwaps:
    @pytest.mark.asyncio
    async def test_backend_swap(self, client, engine):
        fund(engine, USDC, 1_000 * 10**6)
        body = {
            "backend": DEMO_DEX,
            "asset_in": USDC,
            "asset_out": USDT,
            "amount_in": 1_000 * 10**6,
            "call_data": "0x" + encode_dex_swap(USDC, USDT, 1_000 * 10**6, 0).hex(),
            "secret": "dry-run-secret",
        }

        response = await client.post("/api/v1/backends/swap", json=body, headers=AS_USER)

        assert response.status_code == 200
        assert response.json() == {"amount_out": "999000000"}

    @pytest.mark.asyncio
    async def test_wrong_secret(self, client, engine):
        fund(engine, USDC, 1_000 * 10**6)
        body = {
            "backend": DEMO_DEX,
            "asset_in": USDC,
            "asset_out": USDT,
            "amount_in": 1_000 * 10**6,
            "call_data": "0x" + encode_dex_swap(USDC, USDT, 1_000 * 10**6, 0).hex(),
            "secret": "guess",
        }

        response = await client.post("/api/v1/backends/swap", json=body, headers=AS_USER)

        assert response.status_code == 403
        assert response.json()["error"] == "invalid_secret"

    @pytest.mark.asyncio
    async def test_delegatecall_rejected(self, client, engine):
        fund(engine, USDC, 1_000 * 10**6)
        selector = function_signature_to_4byte_selector("delegatecall(address,bytes)")
        body = {
            "backend": DEMO_DEX,
            "asset_in": USDC,
            "asset_out": USDT,
            "amount_in": 1_000 * 10**6,
            "call_data": "0x" + (selector + b"\x00" * 64).hex(),
            "secret": "dry-run-secret",
        }

        response = await client.post("/api/v1/backends/swap", json=body, headers=AS_USER)

        assert response.status_code == 400
        assert response.json()["error"] == "dangerous_selector"
        selectors = (await client.get("/api/v1/selectors")).json()
        blocked = next(e for e in selectors if e["signature"] == "delegatecall(address,bytes)")
        assert blocked["blocked_attempts"] == 1


class TestAdmin:
    @pytest.mark.asyncio
    async def test_token_required(self, client):
        response = await client.post("/admin/pause")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_set_slippage(self, client):
        response = await client.post(
            "/admin/slippage",
            json={"asset_in": USDC, "asset_out": USDT, "bps": 30},
            headers=ADMIN,
        )
        assert response.status_code == 200

        view = await client.get(f"/api/v1/slippage/{USDC}/{USDT}")
        assert view.json() == {"bps": 30, "source": "configured"}

    @pytest.mark.asyncio
    async def test_slippage_above_maximum(self, client):
        response = await client.post(
            "/admin/slippage",
            json={"asset_in": USDC, "asset_out": USDT, "bps": 5_000},
            headers=ADMIN,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_slippage"

    @pytest.mark.asyncio
    async def test_configure_and_remove_route(self, client):
        body = {
            "asset_in": USDT,
            "asset_out": USDC,
            "kind": "direct_pool",
            "pool": "0x" + f"{0x5001:040x}",
            "index_in": 1,
            "index_out": 0,
            "secret": "dry-run-secret",
        }

        created = await client.post("/admin/routes", json=body, headers=ADMIN)
        assert created.status_code == 200
        assert created.json()["kind"] == "direct_pool"
        assert (await client.get(f"/api/v1/routes/{USDT}/{USDC}")).json()["exists"] is True

        removed = await client.delete(f"/admin/routes/{USDT}/{USDC}", headers=ADMIN)
        assert removed.json()["success"] is True
        assert (await client.get(f"/api/v1/routes/{USDT}/{USDC}")).json()["exists"] is False

    @pytest.mark.asyncio
    async def test_route_needs_secret(self, client):
        body = {
            "asset_in": USDT,
            "asset_out": USDC,
            "kind": "direct_pool",
            "pool": "0x" + f"{0x5001:040x}",
            "secret": "guess",
        }

        response = await client.post("/admin/routes", json=body, headers=ADMIN)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_pause_protocol(self, client):
        response = await client.post(
            "/admin/pause", json={"protocol": "direct_mint"}, headers=ADMIN
        )
        assert response.status_code == 200

        protocols = (await client.get("/api/v1/protocols")).json()
        assert protocols["direct_mint"] is True

    @pytest.mark.asyncio
    async def test_withdraw_requires_pause(self, client, engine):
        engine.chain.mint(USDC, engine.engine_address, 500)
        body = {"asset": USDC, "amount": 500, "recipient": OTHER}

        rejected = await client.post("/admin/withdraw", json=body, headers=ADMIN)
        assert rejected.status_code == 409

        await client.post("/admin/pause", headers=ADMIN)
        response = await client.post("/admin/withdraw", json=body, headers=ADMIN)

        assert response.status_code == 200
        assert engine.balance_of(USDC, OTHER) == 500

    @pytest.mark.asyncio
    async def test_save_config(self, client):
        response = await client.post("/admin/config/save", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["success"] is True
