"""Best-effort output estimates for a route.

A failed estimate is never fatal: it comes back as an invalid quote and the
engine falls back to configured slippage.
"""

import logging
import time
from typing import Callable, Optional

from routex.assets import apply_bps, normalize_amount
from routex.backends.base import Estimator
from routex.chain.state import InMemoryChain
from routex.config import EngineConfig
from routex.routing.models import (
    CompositeRoute,
    DirectMintRoute,
    DirectPoolRoute,
    MultiHopRoute,
    Quote,
    Route,
)
from routex.routing.store import ConfigStore

logger = logging.getLogger(__name__)


class QuoteService:
    """Obtains quotes from the backend implied by a route."""

    def __init__(
        self,
        chain: InMemoryChain,
        store: ConfigStore,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], float] = time.time,
        estimators: Optional[dict[str, Estimator]] = None,
    ):
        self.chain = chain
        self.store = store
        self.config = config or EngineConfig()
        self.clock = clock
        self.estimators: dict[str, Estimator] = {
            address.lower(): estimator for address, estimator in (estimators or {}).items()
        }

    def add_estimator(self, address: str, estimator: Estimator) -> None:
        """Quote ``address`` through ``estimator`` instead of the backend itself."""
        self.estimators[address.lower()] = estimator

    def _estimator_for(self, address: str) -> Estimator:
        estimator = self.estimators.get(address.lower())
        if estimator is not None:
            return estimator
        contract = self.chain.get_contract(address)
        if not isinstance(contract, Estimator):
            raise TypeError(f"{type(contract).__name__} at {address} cannot estimate")
        return contract

    def _normalized(self, asset_in: str, asset_out: str, amount_in: int) -> int:
        return normalize_amount(
            amount_in, self.store.decimals(asset_in), self.store.decimals(asset_out)
        )

    async def _estimate(self, asset_in: str, asset_out: str, amount_in: int, route: Route) -> int:
        if isinstance(route, DirectPoolRoute):
            estimator = self._estimator_for(route.pool)
            return await estimator.estimate_single(
                self.store.pool_asset(asset_in),
                self.store.pool_asset(asset_out),
                amount_in,
                route,
            )
        if isinstance(route, MultiHopRoute):
            estimator = self._estimator_for(route.router)
            return await estimator.estimate_path(route.path, amount_in)
        if isinstance(route, DirectMintRoute):
            # mint ratio
            return self._normalized(asset_in, asset_out, amount_in)
        if isinstance(route, CompositeRoute):
            # composite paths are not quoted end-to-end
            return apply_bps(
                self._normalized(asset_in, asset_out, amount_in),
                self.config.composite_quote_haircut_bps,
            )
        raise TypeError(f"Unknown route type {type(route).__name__}")

    async def get_quote(self, asset_in: str, asset_out: str, amount_in: int, route: Route) -> Quote:
        """Estimate the output of ``route``; invalid quote on any failure."""
        now = self.clock()
        source = route.kind.value
        try:
            expected = await self._estimate(asset_in, asset_out, amount_in, route)
        except Exception as e:
            logger.warning(
                f"Quote failed for {asset_in}->{asset_out} via {source}: {type(e).__name__}: {e}"
            )
            return Quote.invalid(f"{type(e).__name__}: {e}", timestamp=now, source=source)

        if expected <= 0:
            logger.warning(f"Quote for {asset_in}->{asset_out} via {source} returned {expected}")
            return Quote.invalid("non-positive estimate", timestamp=now, source=source)

        logger.debug(f"Quote {amount_in} {asset_in} -> {expected} {asset_out} via {source}")
        return Quote(
            expected_output=expected,
            valid=True,
            timestamp=now,
            ttl_seconds=self.config.quote_validity_seconds,
            source=source,
        )
