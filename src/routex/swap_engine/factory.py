"""Factory for creating the swap engine from settings.

Dry-run deployments get a simulated chain with demo assets, pools, a path
router, a minter and a raw-call DEX. Otherwise the engine starts empty and
its configuration is loaded from the database.
"""

import logging
from decimal import Decimal
from typing import Optional

from routex.assets import NATIVE_ASSET, AssetCategory
from routex.backends.remote import RemoteEstimator
from routex.backends.simulated import (
    SimulatedDex,
    SimulatedMinter,
    SimulatedPathRouter,
    SimulatedPool,
)
from routex.chain.contracts import WrappedNative
from routex.chain.state import InMemoryChain
from routex.config import Settings, get_settings
from routex.routing.models import DirectPoolRoute, MultiHopRoute
from routex.routing.path import encode_path
from routex.swap_engine.engine import SwapEngine

logger = logging.getLogger(__name__)


def demo_address(n: int) -> str:
    return "0x" + f"{n:040x}"


# Demo deployment layout
WETH = demo_address(0x1001)
USDC = demo_address(0x2001)
USDT = demo_address(0x2002)
DAI = demo_address(0x2003)
STETH = demo_address(0x3001)
RETH = demo_address(0x3002)
WBTC = demo_address(0x4001)
TBTC = demo_address(0x4002)

POOL_USDC_USDT = demo_address(0x5001)
POOL_STETH_WETH = demo_address(0x5002)
POOL_RETH_WETH = demo_address(0x5003)
POOL_WBTC_TBTC = demo_address(0x5004)
PATH_ROUTER = demo_address(0x6001)
STETH_MINTER = demo_address(0x7001)
DEMO_DEX = demo_address(0x8001)

DEMO_TOKENS = [
    (USDC, 6, AssetCategory.STABLE, "USDC"),
    (USDT, 6, AssetCategory.STABLE, "USDT"),
    (DAI, 18, AssetCategory.STABLE, "DAI"),
    (WETH, 18, AssetCategory.ETH_LST, "WETH"),
    (STETH, 18, AssetCategory.ETH_LST, "stETH"),
    (RETH, 18, AssetCategory.ETH_LST, "rETH"),
    (WBTC, 8, AssetCategory.BTC_WRAPPED, "WBTC"),
    (TBTC, 18, AssetCategory.BTC_WRAPPED, "tBTC"),
]

LIQUIDITY = 10**30


def create_remote_estimator(settings: Optional[Settings] = None) -> Optional[RemoteEstimator]:
    """Remote estimator when a quote service is configured."""
    settings = settings or get_settings()
    if not settings.quote_api_url:
        return None
    return RemoteEstimator(
        settings.quote_api_url,
        api_key=settings.quote_api_key,
        timeout=settings.quote_api_timeout,
    )


def attach_estimator(engine: SwapEngine, estimator: RemoteEstimator) -> int:
    """Quote every configured pool and router through ``estimator``."""
    count = 0
    for _, route in engine.store.routes.items():
        if isinstance(route, (DirectPoolRoute, MultiHopRoute)):
            engine.quotes.add_estimator(route.backend_address, estimator)
            count += 1
    logger.info(f"Remote estimator attached to {count} routes")
    return count


def create_engine(settings: Optional[Settings] = None, chain: Optional[InMemoryChain] = None) -> SwapEngine:
    """Bare engine wired from settings."""
    settings = settings or get_settings()
    return SwapEngine(
        chain or InMemoryChain(),
        config=settings.engine_config(),
        engine_address=settings.engine_address,
        owner=settings.owner_address,
    )


def _deploy_backends(chain: InMemoryChain) -> None:
    chain.deploy(WrappedNative(WETH))

    stable_pool = SimulatedPool(POOL_USDC_USDT, [USDC, USDT], rate=Decimal("0.9995"))
    steth_pool = SimulatedPool(
        POOL_STETH_WETH, [STETH, WETH], rate=Decimal("0.999"), fee_tiers=[100, 500, 3000]
    )
    reth_pool = SimulatedPool(
        POOL_RETH_WETH, [RETH, WETH], rate=Decimal("1.1"), fee_tiers=[500]
    )
    # 8 -> 18 decimals
    btc_pool = SimulatedPool(POOL_WBTC_TBTC, [WBTC, TBTC], rate=Decimal("0.998") * 10**10)

    router = SimulatedPathRouter(PATH_ROUTER)
    router.set_hop(USDC, USDT, 100, Decimal("0.9995"))
    router.set_hop(USDT, DAI, 100, Decimal("0.9995") * 10**12)

    minter = SimulatedMinter(STETH_MINTER, STETH)
    dex = SimulatedDex(DEMO_DEX, rate=Decimal("0.999"))

    for contract in (stable_pool, steth_pool, reth_pool, btc_pool, router, minter, dex):
        chain.deploy(contract)

    for pool, coins in (
        (stable_pool, [USDC, USDT]),
        (steth_pool, [STETH, WETH]),
        (reth_pool, [RETH, WETH]),
        (btc_pool, [WBTC, TBTC]),
        (router, [USDC, USDT, DAI]),
        (dex, [token for token, *_ in DEMO_TOKENS if token != WETH]),
    ):
        for coin in coins:
            chain.mint(coin, pool.address, LIQUIDITY)
    # wrapper backing for WETH held by pools
    chain.mint(NATIVE_ASSET, WETH, LIQUIDITY * 2)
    chain.mint(WETH, POOL_STETH_WETH, LIQUIDITY)
    chain.mint(WETH, POOL_RETH_WETH, LIQUIDITY)


async def build_dry_run_engine(settings: Optional[Settings] = None) -> SwapEngine:
    """Engine on a simulated chain with the demo deployment configured."""
    settings = settings or get_settings()
    chain = InMemoryChain()
    _deploy_backends(chain)

    engine = SwapEngine(
        chain,
        config=settings.engine_config(),
        engine_address=settings.engine_address,
        owner=settings.owner_address,
        wrapped_native=WETH,
    )
    owner = engine.owner
    secret = settings.operator_secret or "dry-run-secret"
    await engine.set_operator_secret(secret, caller=owner)

    await engine.batch_support_tokens(
        [token for token, *_ in DEMO_TOKENS],
        [decimals for _, decimals, *_ in DEMO_TOKENS],
        [category for _, _, category, _ in DEMO_TOKENS],
        caller=owner,
    )
    await engine.batch_whitelist_pools(
        [POOL_USDC_USDT, POOL_STETH_WETH, POOL_RETH_WETH, POOL_WBTC_TBTC], caller=owner
    )
    await engine.set_bridge_asset(AssetCategory.BTC_WRAPPED, WBTC, caller=owner)

    await engine.configure_route(USDC, USDT, POOL_USDC_USDT, 0, 0, 1, secret=secret, caller=owner)
    await engine.configure_route(STETH, WETH, POOL_STETH_WETH, 500, 0, 1, secret=secret, caller=owner)
    await engine.configure_route(WETH, RETH, POOL_RETH_WETH, 500, 1, 0, secret=secret, caller=owner)
    await engine.configure_route(WBTC, TBTC, POOL_WBTC_TBTC, 0, 0, 1, secret=secret, caller=owner)
    await engine.configure_multi_hop_route(
        USDC, DAI, PATH_ROUTER, encode_path([USDC, USDT, DAI], [100, 100]), secret=secret, caller=owner
    )
    await engine.configure_direct_mint_route(NATIVE_ASSET, STETH, STETH_MINTER, secret=secret, caller=owner)
    await engine.register_dex(DEMO_DEX, "Demo DEX", secret=secret, caller=owner)

    estimator = create_remote_estimator(settings)
    if estimator is not None:
        attach_estimator(engine, estimator)

    logger.info(
        f"Dry-run engine ready: {len(engine.store.routes)} routes, "
        f"{len(engine.store.backends)} registered backends"
    )
    return engine
