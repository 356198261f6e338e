"""Tests for the quote service and the remote HTTP estimator."""

from decimal import Decimal

import httpx
import pytest

from routex.assets import NATIVE_ASSET
from routex.backends.remote import RemoteEstimator
from routex.errors import BackendError
from routex.routing.models import (
    CompositeRoute,
    CompositeStep,
    DirectMintRoute,
    DirectPoolRoute,
    MultiHopRoute,
    StepAction,
)
from routex.routing.path import encode_path

from conftest import (
    DAI,
    MINTER,
    ONE,
    POOL_1,
    RETH,
    STETH,
    TOKEN_A,
    TOKEN_B,
    USDC,
    USDT,
    WETH,
)


def mock_estimator(handler, api_key=None) -> RemoteEstimator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteEstimator("http://quotes.test/", api_key=api_key, client=client)


class TestQuoteService:
    """Tests for route-derived quotes."""

    @pytest.mark.asyncio
    async def test_pool_quote(self, env):
        await env.pool(POOL_1, [TOKEN_A, TOKEN_B], rate=Decimal("0.981"), quote_rate=Decimal("0.98"))

        quote = await env.engine.quotes.get_quote(TOKEN_A, TOKEN_B, ONE, DirectPoolRoute(POOL_1))

        assert quote.valid
        assert quote.expected_output == 98 * 10**16
        assert quote.source == "direct_pool"
        assert quote.timestamp == env.clock()
        assert quote.ttl_seconds == 30

    @pytest.mark.asyncio
    async def test_native_input_quoted_as_wrapped(self, env):
        await env.pool(POOL_1, [WETH, RETH], rate=Decimal("0.9"), fee_tiers=[500])

        quote = await env.engine.quotes.get_quote(
            NATIVE_ASSET, RETH, ONE, DirectPoolRoute(POOL_1, fee=500)
        )

        assert quote.expected_output == 9 * 10**17

    @pytest.mark.asyncio
    async def test_backend_error_gives_invalid_quote(self, env):
        pool = await env.pool(POOL_1, [TOKEN_A, TOKEN_B])
        pool.quote_error = "oracle unavailable"

        quote = await env.engine.quotes.get_quote(TOKEN_A, TOKEN_B, ONE, DirectPoolRoute(POOL_1))

        assert not quote.valid
        assert quote.expected_output == 0
        assert "oracle unavailable" in quote.error
        assert not quote.is_fresh(env.clock())

    @pytest.mark.asyncio
    async def test_missing_backend_gives_invalid_quote(self, env):
        quote = await env.engine.quotes.get_quote(TOKEN_A, TOKEN_B, ONE, DirectPoolRoute(POOL_1))

        assert not quote.valid
        assert "NoCodeError" in quote.error

    @pytest.mark.asyncio
    async def test_path_quote(self, env):
        router = env.router([USDC, USDT, DAI])
        router.set_hop(USDC, USDT, 100, Decimal("0.9995"))
        router.set_hop(USDT, DAI, 100, Decimal("0.9995") * 10**12)
        route = MultiHopRoute(router.address, encode_path([USDC, USDT, DAI], [100, 100]))

        quote = await env.engine.quotes.get_quote(USDC, DAI, 1_000 * 10**6, route)

        assert quote.expected_output == 999_000_250_000_000_000_000

    @pytest.mark.asyncio
    async def test_mint_quote_is_normalized_input(self, env):
        quote = await env.engine.quotes.get_quote(NATIVE_ASSET, STETH, ONE, DirectMintRoute(MINTER))

        assert quote.expected_output == ONE

    @pytest.mark.asyncio
    async def test_composite_quote_is_haircut(self, env):
        route = CompositeRoute(
            (
                CompositeStep(StepAction.UNWRAP, WETH, WETH, NATIVE_ASSET),
                CompositeStep(StepAction.DIRECT_MINT, MINTER, NATIVE_ASSET, STETH),
            )
        )

        quote = await env.engine.quotes.get_quote(WETH, STETH, ONE, route)

        assert quote.expected_output == 95 * 10**16

    @pytest.mark.asyncio
    async def test_remote_estimator_replaces_backend_quote(self, env):
        await env.pool(POOL_1, [TOKEN_A, TOKEN_B], rate=Decimal("0.98"))
        env.engine.quotes.add_estimator(
            POOL_1, mock_estimator(lambda request: httpx.Response(200, json={"amount_out": "12345"}))
        )

        quote = await env.engine.quotes.get_quote(TOKEN_A, TOKEN_B, ONE, DirectPoolRoute(POOL_1))

        assert quote.expected_output == 12345

    @pytest.mark.asyncio
    async def test_remote_failure_gives_invalid_quote(self, env):
        await env.pool(POOL_1, [TOKEN_A, TOKEN_B])
        env.engine.quotes.add_estimator(
            POOL_1, mock_estimator(lambda request: httpx.Response(503, text="maintenance"))
        )

        quote = await env.engine.quotes.get_quote(TOKEN_A, TOKEN_B, ONE, DirectPoolRoute(POOL_1))

        assert not quote.valid
        assert "503" in quote.error


class TestRemoteEstimator:
    """Tests for the HTTP quote client."""

    @pytest.mark.asyncio
    async def test_single_quote_request(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"amount_out": "999500000"})

        estimator = mock_estimator(handler, api_key="quote-key")
        amount = await estimator.estimate_single(USDC, USDT, 10**9, DirectPoolRoute(POOL_1, fee=100))

        assert amount == 999_500_000
        request = seen[0]
        assert request.url.path == "/quote"
        assert request.url.params["pool"] == POOL_1
        assert request.url.params["amount"] == str(10**9)
        assert request.url.params["fee"] == "100"
        assert request.headers["Authorization"] == "Bearer quote-key"

    @pytest.mark.asyncio
    async def test_path_quote_request(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"amount_out": 7})

        path = encode_path([USDC, USDT], [100])
        amount = await mock_estimator(handler).estimate_path(path, 10)

        assert amount == 7
        assert seen[0].url.path == "/quote/path"
        assert seen[0].url.params["path"] == path.hex()
        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        estimator = mock_estimator(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(BackendError, match="500"):
            await estimator.estimate_path(encode_path([USDC, USDT], [100]), 10)

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        estimator = mock_estimator(lambda request: httpx.Response(200, json={"price": "1"}))

        with pytest.raises(BackendError, match="malformed"):
            await estimator.estimate_path(encode_path([USDC, USDT], [100]), 10)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BackendError, match="ConnectError"):
            await mock_estimator(handler).estimate_path(encode_path([USDC, USDT], [100]), 10)
