"""Minimum-output bounds for swaps and their intermediate legs.

Two tiers: a fresh quote gives a tight bound (expected output minus a small
buffer); without one the bound comes from the configured pair tolerance or
the category default, applied to the decimal-normalized input.
"""

import logging
import time
from typing import Callable, Optional

from routex.assets import AssetCategory, apply_bps, normalize_amount
from routex.config import EngineConfig
from routex.errors import NoFallbackBoundError
from routex.routing.models import Quote
from routex.routing.store import ConfigStore

logger = logging.getLogger(__name__)

SOURCE_CONFIGURED = "configured"
SOURCE_CATEGORY_DEFAULT = "category_default"
SOURCE_LEG_DEFAULT = "leg_default"


class SlippagePolicy:
    """Resolves the minimum acceptable output for a swap."""

    def __init__(
        self,
        store: ConfigStore,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.clock = clock

    def default_bps(self, asset_in: str, asset_out: str) -> int:
        """Category-based default tolerance for a pair."""
        cat_in = self.store.category(asset_in)
        cat_out = self.store.category(asset_out)
        if cat_in == AssetCategory.STABLE and cat_out == AssetCategory.STABLE:
            return self.config.default_stable_slippage_bps
        if cat_in == AssetCategory.ETH_LST and cat_out == AssetCategory.ETH_LST:
            return self.config.default_lst_slippage_bps
        if AssetCategory.BTC_WRAPPED in (cat_in, cat_out):
            return self.config.default_btc_slippage_bps
        return self.config.default_volatile_slippage_bps

    def slippage_in_effect(self, asset_in: str, asset_out: str) -> tuple[int, str]:
        """Tolerance used when no fresh quote is available, and where it came from."""
        configured = self.store.get_slippage(asset_in, asset_out)
        if configured:
            return configured, SOURCE_CONFIGURED
        return self.default_bps(asset_in, asset_out), SOURCE_CATEGORY_DEFAULT

    def _tight_bound(self, quote: Optional[Quote]) -> int:
        if quote is None or not quote.is_fresh(self.clock()):
            return 0
        return apply_bps(quote.expected_output, self.config.tight_buffer_bps)

    def _bound_from_bps(self, asset_in: str, asset_out: str, amount_in: int, bps: int) -> int:
        if bps <= 0:
            raise NoFallbackBoundError(f"No fallback bound available for {asset_in} -> {asset_out}")
        normalized = normalize_amount(
            amount_in, self.store.decimals(asset_in), self.store.decimals(asset_out)
        )
        bound = apply_bps(normalized, bps)
        if bound <= 0:
            raise NoFallbackBoundError(
                f"Amount {amount_in} too small for a non-zero bound on {asset_in} -> {asset_out}"
            )
        return bound

    def fallback_bound(self, asset_in: str, asset_out: str, amount_in: int) -> int:
        """Bound from configured or category-default slippage."""
        bps, source = self.slippage_in_effect(asset_in, asset_out)
        bound = self._bound_from_bps(asset_in, asset_out, amount_in, bps)
        logger.debug(f"Fallback bound {asset_in}->{asset_out}: {bound} ({bps} bps, {source})")
        return bound

    def resolve_bound(
        self,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        quote: Optional[Quote] = None,
    ) -> int:
        """Tight bound from a fresh quote, otherwise the fallback bound."""
        tight = self._tight_bound(quote)
        if tight > 0:
            return tight
        return self.fallback_bound(asset_in, asset_out, amount_in)

    def leg_bound(
        self,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        quote: Optional[Quote] = None,
    ) -> int:
        """Bound for one leg of a bridged or composite path.

        Uses the leg's own amount; without a fresh quote the pair tolerance
        applies, else the per-leg fallback.
        """
        tight = self._tight_bound(quote)
        if tight > 0:
            return tight
        bps, source = self.store.get_slippage(asset_in, asset_out), SOURCE_CONFIGURED
        if not bps:
            bps, source = self.config.leg_fallback_slippage_bps, SOURCE_LEG_DEFAULT
        bound = self._bound_from_bps(asset_in, asset_out, amount_in, bps)
        logger.debug(f"Leg bound {asset_in}->{asset_out}: {bound} ({bps} bps, {source})")
        return bound
