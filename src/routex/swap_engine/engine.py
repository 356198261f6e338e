"""Swap Engine - entry points of the multi-protocol routing engine.

Flow for one swap:
1. Validate amount and assets, check pause flags and circuit breakers
2. Custody the caller's input (token pull or native value)
3. Primary attempt: quote -> tight bound -> protocol executor
4. Fallback attempt: configured/category bound -> protocol executor
5. Deliver the measured output, then emit SwapCompleted records once settled

Every swap runs inside ``chain.atomic()``, so a terminal failure leaves the
caller's balances untouched. Configuration entry points are role-gated and
reserve their key in a ``ConfigLock`` while they run.
"""

import inspect
import logging
import time
from typing import Any, Callable, Iterable, Optional

from eth_abi import encode as abi_encode
from eth_utils import keccak

from routex.assets import NATIVE_ASSET, AssetCategory, AssetInfo, normalize_address
from routex.backends.base import Estimator, MinterBackend
from routex.chain.state import InMemoryChain
from routex.config import EngineConfig
from routex.errors import (
    AuthorizationError,
    ConfigurationError,
    InsufficientOutputError,
    InvalidAmountError,
    InvalidRouteError,
    InvalidSlippageError,
    LengthMismatchError,
    NoCodeError,
    NoRouteFoundError,
    NotPausedError,
    PausedError,
    SameAssetError,
    SecurityError,
    StateError,
    SwapFailedError,
    UnauthorizedError,
    ValidationError,
)
from routex.routing.auto import AutoRouter, RoutePlan
from routex.routing.executors import RouteExecutor
from routex.routing.models import (
    AttemptOutcome,
    AttemptResult,
    BackendKind,
    CompositeRoute,
    CompositeStep,
    DirectMintRoute,
    DirectPoolRoute,
    MultiHopRoute,
    Quote,
    Route,
    StepAction,
    SwapCompleted,
    SwapRequest,
    SwapResult,
)
from routex.routing.quotes import QuoteService
from routex.routing.registry import BackendRegistration
from routex.routing.slippage import SlippagePolicy
from routex.routing.store import ConfigStore
from routex.safety import hash_secret, list_dangerous_selectors, verify_secret
from routex.swap_engine.sandbox import BackendSandbox
from routex.utils.locks import ConfigLock, ReentrancyGuard

logger = logging.getLogger(__name__)

DEFAULT_ENGINE_ADDRESS = "0x00000000000000000000000000000000000e0e0e"
DEFAULT_OWNER_ADDRESS = "0x000000000000000000000000000000000000a11c"

MAX_DECIMALS = 36

SwapListener = Callable[[SwapCompleted], Any]


class SwapEngine:
    """Routes swaps across pool, path, mint and composite backends.

    Owns the configuration store and every service that reads it. All
    entry points are coroutines guarded against re-entrancy.
    """

    def __init__(
        self,
        chain: InMemoryChain,
        store: Optional[ConfigStore] = None,
        config: Optional[EngineConfig] = None,
        engine_address: str = DEFAULT_ENGINE_ADDRESS,
        owner: str = DEFAULT_OWNER_ADDRESS,
        clock: Callable[[], float] = time.time,
        estimators: Optional[dict[str, Estimator]] = None,
        wrapped_native: Optional[str] = None,
    ):
        self.chain = chain
        self.config = config or EngineConfig()
        self.clock = clock
        self.store = store or ConfigStore(wrapped_native)
        if wrapped_native:
            self.store.wrapped_native = normalize_address(wrapped_native)
        self.engine_address = normalize_address(engine_address)
        self.owner = normalize_address(owner)

        self.policy = SlippagePolicy(self.store, self.config, clock)
        self.quotes = QuoteService(chain, self.store, self.config, clock, estimators)
        self.executor = RouteExecutor(chain, self.store, self.policy, self.engine_address)
        self.auto_router = AutoRouter(self.store)
        self.sandbox = BackendSandbox(
            chain, self.store, self.engine_address, self.config.backend_gas_limit
        )
        self.config_lock = ConfigLock(self.config.config_lock_seconds, clock)
        self.guard = ReentrancyGuard("swap_engine")

        self._nonce = 0
        self._listeners: list[SwapListener] = []

    # ======================
    # Listeners
    # ======================

    def add_listener(self, listener: SwapListener) -> None:
        """Call ``listener`` with every SwapCompleted record (sync or async)."""
        self._listeners.append(listener)

    async def _emit(self, event: SwapCompleted) -> None:
        # runs after the swap has settled; a failing listener cannot undo it
        for listener in self._listeners:
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Swap listener {listener!r} failed for {event.route_hash}")

    # ======================
    # Access control
    # ======================

    def _only_owner(self, caller: str) -> str:
        caller = normalize_address(caller)
        if caller != self.owner:
            raise UnauthorizedError(f"{caller} is not the owner")
        return caller

    def _only_route_manager(self, caller: str) -> str:
        caller = normalize_address(caller)
        if caller != self.owner and caller not in self.store.route_managers:
            raise UnauthorizedError(f"{caller} is not a route manager")
        return caller

    def _check_secret(self, secret: Optional[str]) -> None:
        verify_secret(secret, self.store.secret_hash, self.engine_address)

    # ======================
    # Validation
    # ======================

    @property
    def is_paused(self) -> bool:
        return self.store.paused

    def _check_not_paused(self) -> None:
        if self.store.paused:
            raise PausedError("Engine is paused")

    def _validate_swap(self, asset_in: str, asset_out: str, amount_in: int) -> tuple[str, str]:
        if amount_in <= 0:
            raise InvalidAmountError("Amount must be greater than zero")
        return self._validate_pair(asset_in, asset_out)

    def _validate_pair(self, asset_in: str, asset_out: str) -> tuple[str, str]:
        asset_in, asset_out = normalize_address(asset_in), normalize_address(asset_out)
        if asset_in == asset_out:
            raise SameAssetError(f"Cannot route {asset_in} to itself")
        self.store.require_asset(asset_in)
        self.store.require_asset(asset_out)
        return asset_in, asset_out

    def _require_code(self, address: str) -> str:
        address = normalize_address(address)
        if not self.chain.has_code(address):
            raise NoCodeError(f"No contract deployed at {address}")
        return address

    # ======================
    # Custody
    # ======================

    def _custody_input(self, asset_in: str, amount_in: int, caller: str, value: int) -> None:
        """Move the caller's input to the engine before any backend call."""
        engine = self.engine_address
        if asset_in == NATIVE_ASSET:
            if value < amount_in:
                raise ValidationError(
                    f"Sent value {value} is below the swap amount {amount_in}",
                    code="insufficient_value",
                )
            self.chain.transfer(NATIVE_ASSET, caller, engine, value)
            refund = value - amount_in
            if refund > 0:
                self.chain.transfer(NATIVE_ASSET, engine, caller, refund)
                logger.debug(f"Refunded {refund} excess native value to {caller}")
            return

        if value:
            raise ValidationError("Native value sent with a token swap", code="unexpected_value")
        self.chain.transfer_from(asset_in, engine, caller, engine, amount_in)

    def _deliver(self, asset_out: str, amount: int, caller: str) -> None:
        self.chain.transfer(asset_out, self.engine_address, caller, amount)

    # ======================
    # Attempts
    # ======================

    async def _attempt(
        self,
        route: Route,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        min_amount_out: int,
        quote: Optional[Quote] = None,
    ) -> AttemptResult:
        """Run one execution attempt; backend failures come back tagged."""
        try:
            with self.chain.atomic():
                received = await self.executor.execute(
                    route, asset_in, asset_out, amount_in, min_amount_out
                )
        except (StateError, SecurityError, AuthorizationError):
            raise
        except Exception as e:
            return AttemptResult(
                AttemptOutcome.EXECUTION_FAILURE,
                min_amount_out=min_amount_out,
                quote=quote,
                error=e,
            )
        return AttemptResult(
            AttemptOutcome.SUCCESS,
            amount_out=received,
            min_amount_out=min_amount_out,
            quote=quote,
        )

    async def _primary_attempt(
        self,
        route: Route,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        caller_min: int,
        per_leg: bool,
    ) -> AttemptResult:
        quote = await self.quotes.get_quote(asset_in, asset_out, amount_in, route)
        if not quote.is_fresh(self.clock()):
            return AttemptResult(AttemptOutcome.QUOTE_FAILURE, quote=quote)

        if per_leg:
            bound = self.policy.leg_bound(asset_in, asset_out, amount_in, quote)
        else:
            bound = self.policy.resolve_bound(asset_in, asset_out, amount_in, quote)
        return await self._attempt(
            route, asset_in, asset_out, amount_in, max(bound, caller_min), quote
        )

    async def _execute_with_fallback(
        self,
        route: Route,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        caller_min: int = 0,
        per_leg: bool = False,
    ) -> tuple[AttemptResult, bool]:
        """Primary attempt, then exactly one fallback attempt.

        Returns the successful attempt and whether the fallback produced it.
        """
        primary = await self._primary_attempt(
            route, asset_in, asset_out, amount_in, caller_min, per_leg
        )
        if primary.ok:
            return primary, False

        if primary.outcome == AttemptOutcome.QUOTE_FAILURE:
            logger.warning(
                f"No fresh quote for {asset_in}->{asset_out} via {route.kind.value}"
                f" ({primary.quote.error if primary.quote else 'none'}), using configured slippage"
            )
        else:
            logger.warning(
                f"Primary attempt {asset_in}->{asset_out} via {route.kind.value} failed: "
                f"{type(primary.error).__name__}: {primary.error}"
            )

        if per_leg:
            bound = self.policy.leg_bound(asset_in, asset_out, amount_in)
        else:
            bound = self.policy.fallback_bound(asset_in, asset_out, amount_in)
        fallback = await self._attempt(
            route, asset_in, asset_out, amount_in, max(bound, caller_min)
        )
        if fallback.ok:
            return fallback, True

        error = fallback.error
        if isinstance(error, (InsufficientOutputError, ValidationError, ConfigurationError)):
            raise error
        reason = getattr(error, "reason", None) or str(error)
        logger.error(
            f"Fallback attempt {asset_in}->{asset_out} via {route.kind.value} failed: {reason}"
        )
        raise SwapFailedError(f"Swap failed via {route.kind.value}: {reason}") from error

    def _route_hash(self, asset_in: str, asset_out: str, route: Route, timestamp: float) -> str:
        """Per-call correlation id; not used for deduplication."""
        self._nonce += 1
        encoded = abi_encode(
            ["address", "address", "string", "bytes", "uint256", "uint256"],
            [
                asset_in,
                asset_out,
                route.kind.value,
                route.route_data(),
                int(timestamp * 1000),
                self._nonce,
            ],
        )
        return "0x" + keccak(encoded).hex()

    def _completed(
        self,
        caller: str,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        amount_out: int,
        route: Route,
        used_fallback: bool,
    ) -> SwapCompleted:
        now = self.clock()
        return SwapCompleted(
            caller=caller,
            asset_in=asset_in,
            asset_out=asset_out,
            amount_in=amount_in,
            amount_out=amount_out,
            backend=route.kind,
            backend_address=route.backend_address,
            route_hash=self._route_hash(asset_in, asset_out, route, now),
            timestamp=now,
            used_fallback=used_fallback,
        )

    # ======================
    # Swaps
    # ======================

    async def swap_assets(self, request: SwapRequest, caller: str, value: int = 0) -> SwapResult:
        """Swap through the route configured for the pair.

        ``request.backend`` must match the configured route kind. For
        multi-hop routes, ``request.route_data`` overrides the stored path.
        """
        async with self.guard.enter("swap_assets"):
            caller = normalize_address(caller)
            asset_in, asset_out = self._validate_swap(
                request.asset_in, request.asset_out, request.amount_in
            )
            self._check_not_paused()

            route = self.store.find_route(asset_in, asset_out)
            if route is None:
                raise NoRouteFoundError(f"No route found for {asset_in} -> {asset_out}")
            if route.kind != BackendKind(request.backend):
                raise InvalidRouteError(
                    f"Route for {asset_in} -> {asset_out} uses {route.kind.value}, "
                    f"not {BackendKind(request.backend).value}"
                )
            if request.route_data and isinstance(route, MultiHopRoute):
                route = MultiHopRoute(route.router, bytes(request.route_data))
            self.executor.check_route(route, asset_in, asset_out)

            with self.chain.atomic():
                self._custody_input(asset_in, request.amount_in, caller, value)
                attempt, used_fallback = await self._execute_with_fallback(
                    route, asset_in, asset_out, request.amount_in, request.min_amount_out
                )
                self._deliver(asset_out, attempt.amount_out, caller)
                event = self._completed(
                    caller,
                    asset_in,
                    asset_out,
                    request.amount_in,
                    attempt.amount_out,
                    route,
                    used_fallback,
                )

            await self._emit(event)
            logger.info(
                f"Swap completed: {request.amount_in} {asset_in} -> {attempt.amount_out} "
                f"{asset_out} via {route.kind.value} (min {attempt.min_amount_out}, "
                f"fallback={used_fallback})"
            )
            return SwapResult(
                amount_out=attempt.amount_out,
                min_amount_out=attempt.min_amount_out,
                backend=route.kind,
                route_hash=event.route_hash,
                used_fallback=used_fallback,
                path=[asset_in, asset_out],
            )

    def plan_route(self, asset_in: str, asset_out: str) -> RoutePlan:
        """Plan an auto-routed swap without executing it."""
        asset_in, asset_out = self._validate_pair(asset_in, asset_out)
        return self.auto_router.plan(asset_in, asset_out)

    async def auto_swap_assets(
        self,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        min_amount_out: int,
        caller: str,
        value: int = 0,
    ) -> SwapResult:
        """Swap via the direct, reverse or bridged route, in that order.

        Bridged legs are bounded independently on their own amounts; the
        final leg must also meet ``min_amount_out``.
        """
        async with self.guard.enter("auto_swap_assets"):
            caller = normalize_address(caller)
            asset_in, asset_out = self._validate_swap(asset_in, asset_out, amount_in)
            self._check_not_paused()

            plan = self.auto_router.plan(asset_in, asset_out)
            for leg in plan.legs:
                self.executor.check_route(leg.route, leg.asset_in, leg.asset_out)

            per_leg = len(plan.legs) > 1
            events: list[SwapCompleted] = []
            used_fallback = False
            with self.chain.atomic():
                self._custody_input(asset_in, amount_in, caller, value)
                amount = amount_in
                attempt = None
                for i, leg in enumerate(plan.legs):
                    last = i == len(plan.legs) - 1
                    attempt, leg_fallback = await self._execute_with_fallback(
                        leg.route,
                        leg.asset_in,
                        leg.asset_out,
                        amount,
                        caller_min=min_amount_out if last else 0,
                        per_leg=per_leg,
                    )
                    used_fallback = used_fallback or leg_fallback
                    events.append(
                        self._completed(
                            caller,
                            leg.asset_in,
                            leg.asset_out,
                            amount,
                            attempt.amount_out,
                            leg.route,
                            leg_fallback,
                        )
                    )
                    logger.debug(
                        f"Leg {i} {leg.asset_in}->{leg.asset_out}: {amount} -> {attempt.amount_out}"
                        f"{' (reversed route)' if leg.reversed else ''}"
                    )
                    amount = attempt.amount_out

                self._deliver(asset_out, amount, caller)

            for event in events:
                await self._emit(event)
            logger.info(
                f"Auto swap completed ({plan.strategy.value}): {amount_in} {asset_in} -> "
                f"{amount} {asset_out} via {' -> '.join(plan.path)}"
            )
            return SwapResult(
                amount_out=amount,
                min_amount_out=attempt.min_amount_out,
                backend=plan.legs[-1].route.kind,
                route_hash=events[-1].route_hash,
                used_fallback=used_fallback,
                path=plan.path,
            )

    async def execute_backend_swap(
        self,
        backend: str,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        call_data: bytes,
        *,
        secret: Optional[str],
        caller: str,
    ) -> int:
        """Forward ``call_data`` to a registered backend; no fallback."""
        async with self.guard.enter("execute_backend_swap"):
            caller = normalize_address(caller)
            self._check_not_paused()
            self._check_secret(secret)
            with self.chain.atomic():
                return await self.sandbox.execute(
                    normalize_address(backend),
                    normalize_address(asset_in),
                    normalize_address(asset_out),
                    amount_in,
                    bytes(call_data),
                    caller,
                )

    # ======================
    # Route configuration
    # ======================

    def _store_route(self, asset_in: str, asset_out: str, route: Route, operation: str) -> None:
        with self.config_lock.hold(("route", asset_in, asset_out), operation):
            self.store.routes.set(asset_in, asset_out, route)
        logger.info(f"Route {asset_in} -> {asset_out} set to {route.kind.value} ({operation})")

    async def configure_route(
        self,
        asset_in: str,
        asset_out: str,
        pool: str,
        fee: int = 0,
        index_in: int = 0,
        index_out: int = 1,
        *,
        secret: Optional[str],
        caller: str,
    ) -> DirectPoolRoute:
        """Configure a direct pool route for the pair."""
        async with self.guard.enter("configure_route"):
            self._only_route_manager(caller)
            self._check_secret(secret)
            asset_in, asset_out = self._validate_pair(asset_in, asset_out)
            pool = self._require_code(pool)
            if fee < 0 or index_in < 0 or index_out < 0 or index_in == index_out:
                raise InvalidRouteError("Invalid fee or coin indices")
            route = DirectPoolRoute(pool, fee, index_in, index_out)
            self._store_route(asset_in, asset_out, route, "configure_route")
            return route

    async def configure_direct_mint_route(
        self,
        asset_in: str,
        asset_out: str,
        minter: str,
        *,
        secret: Optional[str],
        caller: str,
    ) -> DirectMintRoute:
        """Configure minting ``asset_out`` from the native (or wrapped native) asset."""
        async with self.guard.enter("configure_direct_mint_route"):
            self._only_route_manager(caller)
            self._check_secret(secret)
            asset_in, asset_out = self._validate_pair(asset_in, asset_out)
            if asset_in not in (NATIVE_ASSET, self.store.wrapped_native):
                raise InvalidRouteError(f"Minting needs the native asset, got {asset_in}")
            minter = self._require_code(minter)
            contract = self.chain.get_contract(minter)
            if not isinstance(contract, MinterBackend) or contract.share_token != asset_out:
                raise InvalidRouteError(f"{minter} does not mint {asset_out}")
            route = DirectMintRoute(minter)
            self._store_route(asset_in, asset_out, route, "configure_direct_mint_route")
            return route

    async def configure_multi_hop_route(
        self,
        asset_in: str,
        asset_out: str,
        router: str,
        path: bytes,
        *,
        secret: Optional[str],
        caller: str,
    ) -> MultiHopRoute:
        """Configure a packed-path route through ``router``."""
        async with self.guard.enter("configure_multi_hop_route"):
            self._only_route_manager(caller)
            self._check_secret(secret)
            asset_in, asset_out = self._validate_pair(asset_in, asset_out)
            router = self._require_code(router)
            route = MultiHopRoute(router, bytes(path))
            expected = (self.store.pool_asset(asset_in), self.store.pool_asset(asset_out))
            if not route.is_empty() and route.endpoints() != expected:
                raise InvalidRouteError(f"Path does not connect {asset_in} to {asset_out}")
            self._store_route(asset_in, asset_out, route, "configure_multi_hop_route")
            return route

    async def configure_composite_route(
        self,
        asset_in: str,
        asset_out: str,
        steps: Iterable[CompositeStep],
        *,
        secret: Optional[str],
        caller: str,
    ) -> CompositeRoute:
        """Configure an ordered wrap/unwrap/mint/swap sequence."""
        async with self.guard.enter("configure_composite_route"):
            self._only_route_manager(caller)
            self._check_secret(secret)
            asset_in, asset_out = self._validate_pair(asset_in, asset_out)
            steps = tuple(steps)
            if not steps:
                raise InvalidRouteError("Composite route needs at least one step")

            holding = asset_in
            for i, step in enumerate(steps):
                if step.asset_in != holding:
                    raise InvalidRouteError(f"Step {i} expects {step.asset_in}, holding {holding}")
                self._require_code(step.backend)
                if step.action in (StepAction.WRAP, StepAction.UNWRAP):
                    if step.backend != self.store.wrapped_native:
                        raise InvalidRouteError(f"Step {i} must use the native wrapper")
                elif step.action == StepAction.SWAP:
                    step.pool_route()
                holding = step.asset_out
            if holding != asset_out:
                raise InvalidRouteError(f"Composite steps end in {holding}, not {asset_out}")

            route = CompositeRoute(steps)
            self._store_route(asset_in, asset_out, route, "configure_composite_route")
            return route

    async def remove_route(self, asset_in: str, asset_out: str, *, caller: str) -> Optional[Route]:
        async with self.guard.enter("remove_route"):
            self._only_route_manager(caller)
            asset_in, asset_out = normalize_address(asset_in), normalize_address(asset_out)
            with self.config_lock.hold(("route", asset_in, asset_out), "remove_route"):
                route = self.store.routes.remove(asset_in, asset_out)
            if route is not None:
                logger.info(f"Route {asset_in} -> {asset_out} removed")
            return route

    # ======================
    # Slippage, assets and pools
    # ======================

    def _check_slippage(self, bps: int) -> None:
        if bps < 0 or bps > self.config.max_slippage_bps:
            raise InvalidSlippageError(
                f"Slippage {bps} bps outside 0..{self.config.max_slippage_bps}"
            )

    async def set_slippage_tolerance(
        self, asset_in: str, asset_out: str, bps: int, *, caller: str
    ) -> None:
        """Set the pair tolerance; zero clears it back to the category default."""
        async with self.guard.enter("set_slippage_tolerance"):
            self._only_owner(caller)
            self._check_slippage(bps)
            asset_in, asset_out = normalize_address(asset_in), normalize_address(asset_out)
            with self.config_lock.hold(("slippage", asset_in, asset_out), "set_slippage_tolerance"):
                self.store.set_slippage(asset_in, asset_out, bps)
            logger.info(f"Slippage {asset_in} -> {asset_out} set to {bps} bps")

    async def batch_set_slippage_tolerance(
        self,
        assets_in: list[str],
        assets_out: list[str],
        bps_values: list[int],
        *,
        caller: str,
    ) -> None:
        async with self.guard.enter("batch_set_slippage_tolerance"):
            self._only_owner(caller)
            if not len(assets_in) == len(assets_out) == len(bps_values):
                raise LengthMismatchError(
                    f"Got {len(assets_in)} inputs, {len(assets_out)} outputs, {len(bps_values)} values"
                )
            for bps in bps_values:
                self._check_slippage(bps)
            pairs = [
                (normalize_address(a), normalize_address(b)) for a, b in zip(assets_in, assets_out)
            ]
            for (asset_in, asset_out), bps in zip(pairs, bps_values):
                with self.config_lock.hold(("slippage", asset_in, asset_out), "batch_set_slippage_tolerance"):
                    self.store.set_slippage(asset_in, asset_out, bps)
            logger.info(f"Slippage set for {len(pairs)} pairs")

    def _asset_info(
        self,
        asset: str,
        decimals: int,
        category: AssetCategory,
        supported: bool,
        symbol: str,
    ) -> AssetInfo:
        asset = normalize_address(asset)
        if asset == NATIVE_ASSET:
            raise ValidationError("The native asset is always supported", code="native_asset")
        if not 0 <= decimals <= MAX_DECIMALS:
            raise ValidationError(f"Invalid decimals {decimals}", code="invalid_decimals")
        return AssetInfo(asset, decimals, AssetCategory(category), supported, symbol)

    async def support_token(
        self,
        asset: str,
        decimals: int,
        category: AssetCategory,
        *,
        caller: str,
        supported: bool = True,
        symbol: str = "",
    ) -> AssetInfo:
        """Register decimals and category for ``asset``."""
        async with self.guard.enter("support_token"):
            self._only_owner(caller)
            info = self._asset_info(asset, decimals, category, supported, symbol)
            with self.config_lock.hold(("asset", info.address), "support_token"):
                self.store.set_asset(info)
            logger.info(
                f"Token {info.symbol or info.address} {'supported' if supported else 'unsupported'}"
                f" ({info.category.value}, {info.decimals} decimals)"
            )
            return info

    async def batch_support_tokens(
        self,
        assets: list[str],
        decimals: list[int],
        categories: list[AssetCategory],
        *,
        caller: str,
        supported: bool = True,
    ) -> list[AssetInfo]:
        async with self.guard.enter("batch_support_tokens"):
            self._only_owner(caller)
            if not len(assets) == len(decimals) == len(categories):
                raise LengthMismatchError(
                    f"Got {len(assets)} assets, {len(decimals)} decimals, {len(categories)} categories"
                )
            infos = [
                self._asset_info(asset, dec, category, supported, "")
                for asset, dec, category in zip(assets, decimals, categories)
            ]
            for info in infos:
                with self.config_lock.hold(("asset", info.address), "batch_support_tokens"):
                    self.store.set_asset(info)
            logger.info(f"{len(infos)} tokens {'supported' if supported else 'unsupported'}")
            return infos

    async def whitelist_pool(self, pool: str, allowed: bool = True, *, caller: str) -> None:
        async with self.guard.enter("whitelist_pool"):
            self._only_owner(caller)
            pool = normalize_address(pool)
            with self.config_lock.hold(("pool", pool), "whitelist_pool"):
                self.store.set_pool_whitelisted(pool, allowed)
            logger.info(f"Pool {pool} {'whitelisted' if allowed else 'removed from whitelist'}")

    async def batch_whitelist_pools(
        self, pools: list[str], allowed: bool = True, *, caller: str
    ) -> None:
        async with self.guard.enter("batch_whitelist_pools"):
            self._only_owner(caller)
            normalized = [normalize_address(pool) for pool in pools]
            for pool in normalized:
                with self.config_lock.hold(("pool", pool), "batch_whitelist_pools"):
                    self.store.set_pool_whitelisted(pool, allowed)
            logger.info(f"{len(normalized)} pools {'whitelisted' if allowed else 'removed from whitelist'}")

    async def set_pool_override(
        self, asset_in: str, asset_out: str, enabled: bool, *, caller: str
    ) -> None:
        """Allow the pair to trade through pools that are not whitelisted."""
        async with self.guard.enter("set_pool_override"):
            self._only_owner(caller)
            asset_in, asset_out = normalize_address(asset_in), normalize_address(asset_out)
            with self.config_lock.hold(("pool_override", asset_in, asset_out), "set_pool_override"):
                self.store.set_pool_override(asset_in, asset_out, enabled)
            logger.info(f"Unlisted-pool override {asset_in} -> {asset_out}: {enabled}")

    async def set_route_manager(self, manager: str, enabled: bool, *, caller: str) -> None:
        async with self.guard.enter("set_route_manager"):
            self._only_owner(caller)
            manager = normalize_address(manager)
            if enabled:
                self.store.route_managers.add(manager)
            else:
                self.store.route_managers.discard(manager)
            logger.info(f"Route manager {manager} {'granted' if enabled else 'revoked'}")

    async def set_operator_secret(self, secret: str, *, caller: str) -> None:
        """Store the hash of ``secret`` bound to this engine's address."""
        async with self.guard.enter("set_operator_secret"):
            self._only_owner(caller)
            if not secret:
                raise ValidationError("Operator secret cannot be empty", code="empty_secret")
            self.store.secret_hash = hash_secret(secret, self.engine_address)
            logger.info("Operator secret updated")

    async def set_bridge_asset(self, category: AssetCategory, asset: str, *, caller: str) -> None:
        """Intermediate asset used for bridged routes within ``category``."""
        async with self.guard.enter("set_bridge_asset"):
            self._only_owner(caller)
            category = AssetCategory(category)
            asset = normalize_address(asset)
            info = self.store.require_asset(asset)
            if info.category != category:
                raise ValidationError(
                    f"{asset} is {info.category.value}, not {category.value}",
                    code="bridge_category",
                )
            self.store.bridge_assets[category] = asset
            logger.info(f"Bridge asset for {category.value} set to {asset}")

    # ======================
    # Backend registry
    # ======================

    async def register_dex(
        self, address: str, name: str, *, secret: Optional[str], caller: str
    ) -> BackendRegistration:
        async with self.guard.enter("register_dex"):
            self._only_owner(caller)
            self._check_secret(secret)
            address = normalize_address(address)
            with self.config_lock.hold(("backend", address), "register_dex"):
                return self.sandbox.register(address, name)

    async def remove_dex(self, address: str, *, caller: str) -> BackendRegistration:
        async with self.guard.enter("remove_dex"):
            self._only_owner(caller)
            address = normalize_address(address)
            with self.config_lock.hold(("backend", address), "remove_dex"):
                return self.sandbox.remove(address)

    # ======================
    # Circuit breakers
    # ======================

    async def pause(self, *, caller: str) -> None:
        async with self.guard.enter("pause"):
            self._only_owner(caller)
            self.store.paused = True
            logger.warning("Engine paused")

    async def unpause(self, *, caller: str) -> None:
        async with self.guard.enter("unpause"):
            self._only_owner(caller)
            if not self.store.paused:
                raise NotPausedError("Engine is not paused")
            self.store.paused = False
            logger.info("Engine unpaused")

    async def emergency_pause_pool(self, pool: str, *, caller: str) -> None:
        async with self.guard.enter("emergency_pause_pool"):
            self._only_owner(caller)
            pool = normalize_address(pool)
            self.store.set_pool_paused(pool, True)
            logger.warning(f"Pool {pool} paused")

    async def unpause_pool(self, pool: str, *, caller: str) -> None:
        async with self.guard.enter("unpause_pool"):
            self._only_owner(caller)
            pool = normalize_address(pool)
            self.store.set_pool_paused(pool, False)
            logger.info(f"Pool {pool} unpaused")

    async def emergency_pause_protocol(self, kind: BackendKind, *, caller: str) -> None:
        async with self.guard.enter("emergency_pause_protocol"):
            self._only_owner(caller)
            kind = BackendKind(kind)
            self.store.set_protocol_paused(kind, True)
            logger.warning(f"Protocol {kind.value} paused")

    async def unpause_protocol(self, kind: BackendKind, *, caller: str) -> None:
        async with self.guard.enter("unpause_protocol"):
            self._only_owner(caller)
            kind = BackendKind(kind)
            self.store.set_protocol_paused(kind, False)
            logger.info(f"Protocol {kind.value} unpaused")

    async def emergency_withdraw(
        self, asset: str, amount: int, recipient: str, *, caller: str
    ) -> None:
        """Move engine-held funds out; only while globally paused."""
        async with self.guard.enter("emergency_withdraw"):
            self._only_owner(caller)
            if not self.store.paused:
                raise NotPausedError("Emergency withdraw requires the engine to be paused")
            if amount <= 0:
                raise InvalidAmountError("Amount must be greater than zero")
            asset, recipient = normalize_address(asset), normalize_address(recipient)
            self.chain.transfer(asset, self.engine_address, recipient, amount)
            logger.warning(f"Emergency withdraw: {amount} {asset} to {recipient}")

    # ======================
    # Views
    # ======================

    def route_exists(self, asset_in: str, asset_out: str) -> bool:
        return self.store.find_route(asset_in, asset_out) is not None

    def get_route(self, asset_in: str, asset_out: str) -> Optional[Route]:
        return self.store.find_route(asset_in, asset_out)

    def slippage_in_effect(self, asset_in: str, asset_out: str) -> tuple[int, str]:
        """Tolerance used without a fresh quote, and its source."""
        return self.policy.slippage_in_effect(asset_in, asset_out)

    def pool_status(self, pool: str) -> dict:
        pool = normalize_address(pool)
        return {
            "pool": pool,
            "whitelisted": self.store.is_pool_whitelisted(pool),
            "paused": self.store.is_pool_paused(pool),
        }

    def protocol_status(self) -> dict[str, bool]:
        """Paused flag per backend kind."""
        return {kind.value: self.store.is_protocol_paused(kind) for kind in BackendKind}

    def registered_backends(self) -> list[BackendRegistration]:
        return self.store.backends.entries()

    def dangerous_selectors(self) -> list[dict]:
        return list_dangerous_selectors()

    def balance_of(self, asset: str, holder: str) -> int:
        return self.chain.balance_of(asset, holder)

