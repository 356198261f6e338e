"""Tests for the slippage policy."""

import logging

import pytest

from routex.assets import NATIVE_ASSET, AssetInfo
from routex.config import EngineConfig
from routex.errors import NoFallbackBoundError
from routex.routing.models import Quote
from routex.routing.slippage import (
    SOURCE_CATEGORY_DEFAULT,
    SOURCE_CONFIGURED,
    SOURCE_LEG_DEFAULT,
    SlippagePolicy,
)
from routex.routing.store import ConfigStore

from conftest import (
    DAI,
    ONE,
    RETH,
    STETH,
    TBTC,
    TOKEN_A,
    TOKEN_B,
    TOKENS,
    USDC,
    USDT,
    WBTC,
    WETH,
)


@pytest.fixture
def store() -> ConfigStore:
    store = ConfigStore(WETH)
    for token, decimals, category in TOKENS:
        store.set_asset(AssetInfo(token, decimals, category))
    return store


@pytest.fixture
def policy(store, clock) -> SlippagePolicy:
    return SlippagePolicy(store, EngineConfig(), clock)


class TestCategoryDefaults:
    @pytest.mark.parametrize(
        "asset_in,asset_out,bps",
        [
            (USDC, USDT, 50),
            (DAI, USDC, 50),
            (STETH, RETH, 100),
            (NATIVE_ASSET, STETH, 100),
            (WBTC, TBTC, 300),
            (WBTC, USDC, 300),
            (STETH, USDC, 500),
            (TOKEN_A, TOKEN_B, 500),
        ],
    )
    def test_default_bps(self, policy, asset_in, asset_out, bps):
        assert policy.default_bps(asset_in, asset_out) == bps

    def test_configured_overrides_default(self, policy, store):
        store.set_slippage(USDC, USDT, 200)

        assert policy.slippage_in_effect(USDC, USDT) == (200, SOURCE_CONFIGURED)
        # direction matters
        assert policy.slippage_in_effect(USDT, USDC) == (50, SOURCE_CATEGORY_DEFAULT)

    def test_zero_clears_configured(self, policy, store):
        store.set_slippage(USDC, USDT, 200)
        store.set_slippage(USDC, USDT, 0)

        assert policy.slippage_in_effect(USDC, USDT) == (50, SOURCE_CATEGORY_DEFAULT)


class TestFallbackBound:
    """Bounds without a fresh quote."""

    def test_normalizes_up(self, policy):
        # 1000 USDC (6 decimals) -> DAI (18 decimals) at 50 bps
        assert policy.fallback_bound(USDC, DAI, 1_000 * 10**6) == 995 * 10**18

    def test_normalizes_down(self, policy):
        assert policy.fallback_bound(DAI, USDC, 1_000 * 10**18) == 995 * 10**6

    def test_configured_tolerance(self, policy, store):
        store.set_slippage(TOKEN_A, TOKEN_B, 200)

        assert policy.fallback_bound(TOKEN_A, TOKEN_B, ONE) == 98 * 10**16

    def test_dust_amount_has_no_bound(self, policy):
        with pytest.raises(NoFallbackBoundError):
            policy.fallback_bound(DAI, USDC, 10**11)

    def test_zero_tolerance_has_no_bound(self, store, clock):
        policy = SlippagePolicy(store, EngineConfig(default_volatile_slippage_bps=0), clock)

        with pytest.raises(NoFallbackBoundError):
            policy.fallback_bound(TOKEN_A, TOKEN_B, ONE)


class TestResolveBound:
    """Tight bound from fresh quotes."""

    def test_fresh_quote_gives_tight_bound(self, policy, clock):
        quote = Quote(expected_output=98 * 10**16, timestamp=clock())

        assert policy.resolve_bound(TOKEN_A, TOKEN_B, ONE, quote) == 978_040_000_000_000_000

    def test_stale_quote_falls_back(self, policy, clock):
        quote = Quote(expected_output=98 * 10**16, timestamp=clock() - 31)

        assert policy.resolve_bound(TOKEN_A, TOKEN_B, ONE, quote) == 95 * 10**16

    def test_invalid_quote_falls_back(self, policy, clock):
        quote = Quote.invalid("backend reverted", timestamp=clock())

        assert policy.resolve_bound(TOKEN_A, TOKEN_B, ONE, quote) == 95 * 10**16

    def test_no_quote_falls_back(self, policy):
        assert policy.resolve_bound(TOKEN_A, TOKEN_B, ONE) == 95 * 10**16


class TestLegBound:
    def test_unconfigured_leg_uses_leg_default(self, policy, caplog):
        with caplog.at_level(logging.DEBUG, logger="routex.routing.slippage"):
            assert policy.leg_bound(STETH, WETH, ONE) == 98 * 10**16

        assert f"200 bps, {SOURCE_LEG_DEFAULT}" in caplog.text

    def test_configured_leg_wins(self, policy, store, caplog):
        store.set_slippage(STETH, WETH, 30)

        with caplog.at_level(logging.DEBUG, logger="routex.routing.slippage"):
            assert policy.leg_bound(STETH, WETH, ONE) == 997 * 10**15

        assert f"30 bps, {SOURCE_CONFIGURED}" in caplog.text

    def test_fresh_quote_wins(self, policy, clock):
        quote = Quote(expected_output=ONE, timestamp=clock())

        assert policy.leg_bound(STETH, WETH, ONE, quote) == 998 * 10**15

    def test_leg_uses_its_own_amount(self, policy):
        assert policy.leg_bound(STETH, WETH, 5 * ONE) == 49 * 10**17


class TestQuoteFreshness:
    def test_age_at_window_is_fresh(self):
        quote = Quote(expected_output=1, timestamp=100.0, ttl_seconds=30)
        assert quote.is_fresh(130.0)
        assert not quote.is_fresh(130.5)

    def test_zero_estimate_is_not_fresh(self):
        assert not Quote(expected_output=0, timestamp=100.0).is_fresh(100.0)
