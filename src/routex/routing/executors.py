"""Protocol-specific swap executors.

Every executor runs with the engine as the holder of funds, approves the
backend for exactly the amount it needs, resets that approval afterwards and
reports what actually arrived (balance after minus balance before).
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from routex.assets import NATIVE_ASSET
from routex.backends.base import MinterBackend, PathRouterBackend, PoolBackend
from routex.chain.contracts import WrappedNative
from routex.chain.state import InMemoryChain
from routex.errors import (
    BackendError,
    InsufficientOutputError,
    InvalidRouteError,
    PoolNotWhitelistedError,
    PoolPausedError,
    ProtocolPausedError,
)
from routex.routing.models import (
    BackendKind,
    CompositeRoute,
    CompositeStep,
    DirectMintRoute,
    DirectPoolRoute,
    MultiHopRoute,
    Route,
    StepAction,
)
from routex.routing.slippage import SlippagePolicy
from routex.routing.store import ConfigStore

logger = logging.getLogger(__name__)


class RouteExecutor:
    """Dispatches a route to the matching backend executor."""

    def __init__(
        self,
        chain: InMemoryChain,
        store: ConfigStore,
        policy: SlippagePolicy,
        engine_address: str,
    ):
        self.chain = chain
        self.store = store
        self.policy = policy
        self.engine_address = engine_address.lower()

    # Guards
    def check_protocol(self, kind: BackendKind) -> None:
        if self.store.is_protocol_paused(kind):
            raise ProtocolPausedError(f"Protocol {kind.value} is paused")

    def check_pool(self, pool: str, asset_in: str, asset_out: str) -> None:
        """Pool must be unpaused and whitelisted, unless the pair overrides the whitelist."""
        if self.store.is_pool_paused(pool):
            raise PoolPausedError(f"Pool {pool} is paused")
        if not self.store.is_pool_whitelisted(pool) and not self.store.has_pool_override(
            asset_in, asset_out
        ):
            raise PoolNotWhitelistedError(f"Pool {pool} is not whitelisted")

    def check_route(self, route: Route, asset_in: str, asset_out: str) -> None:
        """Circuit breakers for a route before any funds move."""
        self.check_protocol(route.kind)
        if isinstance(route, DirectPoolRoute):
            self.check_pool(route.pool, asset_in, asset_out)

    # Helpers
    def _balance(self, asset: str) -> int:
        return self.chain.balance_of(asset, self.engine_address)

    @contextmanager
    def _approval(self, asset: str, spender: str, amount: int) -> Iterator[None]:
        self.chain.approve(asset, self.engine_address, spender, amount)
        try:
            yield
        finally:
            self.chain.approve(asset, self.engine_address, spender, 0)

    def _wrapper(self) -> WrappedNative:
        if not self.store.wrapped_native:
            raise InvalidRouteError("No wrapped native asset configured")
        contract = self.chain.get_contract(self.store.wrapped_native)
        if not isinstance(contract, WrappedNative):
            raise InvalidRouteError(f"{self.store.wrapped_native} is not a native wrapper")
        return contract

    def _contract(self, address: str, expected: type):
        contract = self.chain.get_contract(address)
        if not isinstance(contract, expected):
            raise InvalidRouteError(f"{address} is not a {expected.__name__}")
        return contract

    def wrap(self, amount: int) -> int:
        wrapper = self._wrapper()
        before = self._balance(wrapper.token)
        wrapper.deposit(self.chain, self.engine_address, amount)
        return self._balance(wrapper.token) - before

    def unwrap(self, amount: int) -> int:
        wrapper = self._wrapper()
        before = self._balance(NATIVE_ASSET)
        wrapper.withdraw(self.chain, self.engine_address, amount)
        return self._balance(NATIVE_ASSET) - before

    # Primitive executors
    async def pool_swap(
        self,
        route: DirectPoolRoute,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        min_amount_out: int,
    ) -> int:
        """Single-hop swap between pool-level assets."""
        pool: PoolBackend = self._contract(route.pool, PoolBackend)
        before = self._balance(asset_out)
        with self._approval(asset_in, pool.address, amount_in):
            declared = await pool.swap(
                self.chain,
                self.engine_address,
                asset_in,
                asset_out,
                amount_in,
                min_amount_out,
                route,
            )
        received = self._balance(asset_out) - before
        if declared != received:
            logger.warning(f"Pool {pool.address} declared {declared} but delivered {received}")
        return received

    async def path_swap(self, route: MultiHopRoute, amount_in: int, min_amount_out: int) -> int:
        router: PathRouterBackend = self._contract(route.router, PathRouterBackend)
        first, last = route.endpoints()
        before = self._balance(last)
        with self._approval(first, router.address, amount_in):
            declared = await router.swap_path(
                self.chain, self.engine_address, route.path, amount_in, min_amount_out
            )
        received = self._balance(last) - before
        if declared != received:
            logger.warning(f"Router {router.address} declared {declared} but delivered {received}")
        return received

    async def mint(self, minter_address: str, asset_out: str, amount_in: int) -> int:
        minter: MinterBackend = self._contract(minter_address, MinterBackend)
        if minter.share_token != asset_out.lower():
            raise InvalidRouteError(f"Minter {minter_address} mints {minter.share_token}, not {asset_out}")
        before = self._balance(asset_out)
        await minter.deposit(self.chain, self.engine_address, amount_in)
        return self._balance(asset_out) - before

    # Route executors
    async def _execute_direct_pool(self, route, asset_in, asset_out, amount_in, min_amount_out) -> int:
        pool_in, pool_out = self.store.pool_asset(asset_in), self.store.pool_asset(asset_out)
        amount = amount_in
        if pool_in != asset_in.lower():
            amount = self.wrap(amount_in)
        received = await self.pool_swap(route, pool_in, pool_out, amount, min_amount_out)
        if pool_out != asset_out.lower():
            received = self.unwrap(received)
        return received

    async def _execute_multi_hop(self, route, asset_in, asset_out, amount_in, min_amount_out) -> int:
        pool_in, pool_out = self.store.pool_asset(asset_in), self.store.pool_asset(asset_out)
        if route.endpoints() != (pool_in, pool_out):
            raise InvalidRouteError(f"Path does not connect {asset_in} to {asset_out}")
        amount = amount_in
        if pool_in != asset_in.lower():
            amount = self.wrap(amount_in)
        received = await self.path_swap(route, amount, min_amount_out)
        if pool_out != asset_out.lower():
            received = self.unwrap(received)
        return received

    async def _execute_direct_mint(self, route, asset_in, asset_out, amount_in, min_amount_out) -> int:
        amount = amount_in
        if asset_in.lower() != NATIVE_ASSET:
            if asset_in.lower() != self.store.wrapped_native:
                raise InvalidRouteError(f"Minting needs the native asset, got {asset_in}")
            amount = self.unwrap(amount_in)
        return await self.mint(route.minter, asset_out, amount)

    async def _run_step(self, step: CompositeStep, amount_in: int, min_amount_out: int) -> int:
        if step.action == StepAction.WRAP:
            return self.wrap(amount_in)
        if step.action == StepAction.UNWRAP:
            return self.unwrap(amount_in)
        if step.action == StepAction.DIRECT_MINT:
            self.check_protocol(BackendKind.DIRECT_MINT)
            return await self.mint(step.backend, step.asset_out, amount_in)
        pool_route = step.pool_route()
        self.check_protocol(BackendKind.DIRECT_POOL)
        self.check_pool(pool_route.pool, step.asset_in, step.asset_out)
        return await self.pool_swap(pool_route, step.asset_in, step.asset_out, amount_in, min_amount_out)

    async def _execute_composite(self, route: CompositeRoute, asset_in, asset_out, amount_in, min_amount_out) -> int:
        steps = route.steps
        if steps[0].asset_in != asset_in.lower() or steps[-1].asset_out != asset_out.lower():
            raise InvalidRouteError(f"Composite steps do not connect {asset_in} to {asset_out}")

        asset, amount = asset_in.lower(), amount_in
        for i, step in enumerate(steps):
            if step.asset_in != asset:
                raise InvalidRouteError(f"Step {i} expects {step.asset_in}, holding {asset}")
            last = i == len(steps) - 1
            step_min = 0
            if step.action in (StepAction.SWAP, StepAction.DIRECT_MINT):
                step_min = self.policy.leg_bound(step.asset_in, step.asset_out, amount)
            if last:
                step_min = max(step_min, min_amount_out)
            received = await self._run_step(step, amount, step_min)
            if received < step_min or received <= 0:
                raise InsufficientOutputError(received, step_min)
            logger.debug(f"Composite step {i} {step.action.value}: {amount} {asset} -> {received} {step.asset_out}")
            asset, amount = step.asset_out, received
        return amount

    async def execute(
        self,
        route: Route,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        min_amount_out: int,
    ) -> int:
        """Run ``route`` for ``amount_in`` held by the engine; returns the measured output."""
        self.check_route(route, asset_in, asset_out)
        if isinstance(route, DirectPoolRoute):
            received = await self._execute_direct_pool(route, asset_in, asset_out, amount_in, min_amount_out)
        elif isinstance(route, MultiHopRoute):
            received = await self._execute_multi_hop(route, asset_in, asset_out, amount_in, min_amount_out)
        elif isinstance(route, DirectMintRoute):
            received = await self._execute_direct_mint(route, asset_in, asset_out, amount_in, min_amount_out)
        elif isinstance(route, CompositeRoute):
            received = await self._execute_composite(route, asset_in, asset_out, amount_in, min_amount_out)
        else:
            raise BackendError(f"unsupported route type {type(route).__name__}")

        if received < min_amount_out:
            raise InsufficientOutputError(received, min_amount_out)
        return received
