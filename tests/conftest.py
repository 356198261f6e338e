"""Pytest configuration and fixtures."""

import os
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Set test environment
os.environ["ROUTEX_ENVIRONMENT"] = "test"
os.environ["ROUTEX_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ROUTEX_DEBUG"] = "false"
os.environ["ROUTEX_DRY_RUN"] = "true"
os.environ["ROUTEX_ADMIN_TOKEN"] = "test-admin-token"
os.environ["ROUTEX_API_TOKEN"] = "test-api-token"

from routex.assets import NATIVE_ASSET, AssetCategory
from routex.backends.simulated import SimulatedMinter, SimulatedPathRouter, SimulatedPool
from routex.chain.contracts import WrappedNative
from routex.chain.state import InMemoryChain
from routex.ledger.database import create_db_engine, init_db
from routex.safety import reset_blocked_attempts
from routex.swap_engine.engine import DEFAULT_ENGINE_ADDRESS, DEFAULT_OWNER_ADDRESS, SwapEngine


def addr(n: int) -> str:
    return "0x" + f"{n:040x}"


OWNER = DEFAULT_OWNER_ADDRESS
ENGINE = DEFAULT_ENGINE_ADDRESS
USER = addr(0xBEEF)
OTHER = addr(0xCAFE)
SECRET = "test-operator-secret"

ONE = 10**18
LIQUIDITY = 10**30

# Tokens
WETH = addr(0x1001)
USDC = addr(0x2001)
USDT = addr(0x2002)
DAI = addr(0x2003)
STETH = addr(0x3001)
RETH = addr(0x3002)
CBETH = addr(0x3003)
WBTC = addr(0x4001)
TBTC = addr(0x4002)
TOKEN_A = addr(0x9001)
TOKEN_B = addr(0x9002)
TOKEN_C = addr(0x9003)

# Backends
POOL_1 = addr(0x5001)
POOL_2 = addr(0x5002)
POOL_3 = addr(0x5003)
ROUTER = addr(0x6001)
MINTER = addr(0x7001)
DEX = addr(0x8001)

TOKENS = [
    (WETH, 18, AssetCategory.ETH_LST),
    (USDC, 6, AssetCategory.STABLE),
    (USDT, 6, AssetCategory.STABLE),
    (DAI, 18, AssetCategory.STABLE),
    (STETH, 18, AssetCategory.ETH_LST),
    (RETH, 18, AssetCategory.ETH_LST),
    (CBETH, 18, AssetCategory.ETH_LST),
    (WBTC, 8, AssetCategory.BTC_WRAPPED),
    (TBTC, 18, AssetCategory.BTC_WRAPPED),
    (TOKEN_A, 18, AssetCategory.VOLATILE),
    (TOKEN_B, 18, AssetCategory.VOLATILE),
    (TOKEN_C, 18, AssetCategory.VOLATILE),
]


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Deployment:
    """Engine on an in-memory chain plus helpers to deploy and fund backends."""

    def __init__(self, engine: SwapEngine, clock: FakeClock):
        self.engine = engine
        self.chain = engine.chain
        self.clock = clock
        self.events = []
        engine.add_listener(self.events.append)

    def _add_liquidity(self, holder: str, coins: list[str]) -> None:
        for coin in coins:
            self.chain.mint(coin, holder, LIQUIDITY)
            if coin == WETH:
                self.chain.mint(NATIVE_ASSET, WETH, LIQUIDITY)

    async def pool(
        self,
        address: str,
        coins: list[str],
        rate: Decimal = Decimal("1"),
        quote_rate: Optional[Decimal] = None,
        fee_tiers: Optional[list[int]] = None,
        whitelist: bool = True,
    ) -> SimulatedPool:
        pool = SimulatedPool(address, coins, rate=rate, quote_rate=quote_rate, fee_tiers=fee_tiers)
        self.chain.deploy(pool)
        self._add_liquidity(pool.address, coins)
        if whitelist:
            await self.engine.whitelist_pool(address, caller=OWNER)
        return pool

    def router(self, coins: list[str]) -> SimulatedPathRouter:
        router = SimulatedPathRouter(ROUTER)
        self.chain.deploy(router)
        self._add_liquidity(router.address, coins)
        return router

    def minter(self, share_token: str = STETH) -> SimulatedMinter:
        minter = SimulatedMinter(MINTER, share_token)
        self.chain.deploy(minter)
        return minter

    async def route(self, asset_in, asset_out, pool, fee=0, index_in=0, index_out=1):
        return await self.engine.configure_route(
            asset_in, asset_out, pool, fee, index_in, index_out, secret=SECRET, caller=OWNER
        )

    def fund(self, asset: str, amount: int, holder: str = USER) -> None:
        """Give ``holder`` tokens and approve the engine to pull them."""
        self.chain.mint(asset, holder, amount)
        if asset == WETH:
            self.chain.mint(NATIVE_ASSET, WETH, amount)
        if asset != NATIVE_ASSET:
            allowed = self.chain.allowance(asset, holder, ENGINE)
            self.chain.approve(asset, holder, ENGINE, allowed + amount)

    def balance(self, asset: str, holder: str = USER) -> int:
        return self.chain.balance_of(asset, holder)


@pytest.fixture(autouse=True)
def _reset_blocked_attempts():
    reset_blocked_attempts()
    yield
    reset_blocked_attempts()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def chain() -> InMemoryChain:
    chain = InMemoryChain()
    chain.deploy(WrappedNative(WETH))
    return chain


@pytest_asyncio.fixture
async def engine(chain, clock) -> SwapEngine:
    """Engine with the operator secret set and every test token supported."""
    engine = SwapEngine(chain, clock=clock, wrapped_native=WETH)
    await engine.set_operator_secret(SECRET, caller=OWNER)
    await engine.batch_support_tokens(
        [token for token, _, _ in TOKENS],
        [decimals for _, decimals, _ in TOKENS],
        [category for _, _, category in TOKENS],
        caller=OWNER,
    )
    return engine


@pytest_asyncio.fixture
async def env(engine, clock) -> Deployment:
    return Deployment(engine, clock)


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create in-memory database engine for testing."""
    engine = create_db_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session
