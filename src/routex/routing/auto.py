"""Route discovery for pairs without an explicit route.

Tries, in order: the direct route, the reverse route re-oriented, then a
two-leg path through the category's bridge asset.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from routex.errors import CrossCategoryError, NoRouteFoundError
from routex.routing.models import Route
from routex.routing.store import ConfigStore

logger = logging.getLogger(__name__)


class RouteStrategy(str, Enum):
    """How a plan was found."""

    DIRECT = "direct"
    REVERSE = "reverse"
    BRIDGED = "bridged"


@dataclass(frozen=True)
class RouteLeg:
    asset_in: str
    asset_out: str
    route: Route
    reversed: bool = False


@dataclass(frozen=True)
class RoutePlan:
    """Ordered legs to execute for one auto-routed swap."""

    strategy: RouteStrategy
    legs: tuple[RouteLeg, ...]

    @property
    def path(self) -> list[str]:
        return [self.legs[0].asset_in] + [leg.asset_out for leg in self.legs]


class AutoRouter:
    """Finds an executable plan between two assets of the same category."""

    def __init__(self, store: ConfigStore):
        self.store = store

    def check_same_category(self, asset_in: str, asset_out: str) -> None:
        cat_in = self.store.category(asset_in)
        cat_out = self.store.category(asset_out)
        if cat_in != cat_out:
            raise CrossCategoryError(
                f"Cannot auto-route {cat_in.value} asset {asset_in} to {cat_out.value} asset {asset_out}"
            )

    def resolve_leg(self, asset_in: str, asset_out: str) -> Optional[RouteLeg]:
        """Direct route for the leg, else the reversed route for the opposite pair."""
        route = self.store.find_route(asset_in, asset_out)
        if route is not None:
            return RouteLeg(asset_in, asset_out, route)
        opposite = self.store.find_route(asset_out, asset_in)
        if opposite is not None:
            reoriented = opposite.reversed()
            if reoriented is not None:
                return RouteLeg(asset_in, asset_out, reoriented, reversed=True)
        return None

    def _bridged(self, asset_in: str, asset_out: str) -> Optional[RoutePlan]:
        bridge = self.store.bridge_asset(self.store.category(asset_in))
        if bridge is None:
            return None
        if not self.store.is_supported(bridge):
            logger.warning(f"Bridge asset {bridge} is not supported, skipping bridged route")
            return None
        pool_in, pool_out = self.store.pool_asset(asset_in), self.store.pool_asset(asset_out)
        if bridge in (pool_in, pool_out):
            return None

        first = self.resolve_leg(asset_in, bridge)
        second = self.resolve_leg(bridge, asset_out)
        if first is None or second is None:
            logger.debug(
                f"No bridged route {asset_in}->{bridge}->{asset_out} "
                f"(first leg: {first is not None}, second leg: {second is not None})"
            )
            return None
        return RoutePlan(RouteStrategy.BRIDGED, (first, second))

    def plan(self, asset_in: str, asset_out: str) -> RoutePlan:
        """First viable plan: direct, reverse, then bridged."""
        self.check_same_category(asset_in, asset_out)

        direct = self.store.find_route(asset_in, asset_out)
        if direct is not None:
            return RoutePlan(RouteStrategy.DIRECT, (RouteLeg(asset_in, asset_out, direct),))

        opposite = self.store.find_route(asset_out, asset_in)
        if opposite is not None:
            reoriented = opposite.reversed()
            if reoriented is not None:
                return RoutePlan(
                    RouteStrategy.REVERSE,
                    (RouteLeg(asset_in, asset_out, reoriented, reversed=True),),
                )

        bridged = self._bridged(asset_in, asset_out)
        if bridged is not None:
            return bridged

        raise NoRouteFoundError(f"No route found for {asset_in} -> {asset_out}")
