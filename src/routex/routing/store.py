"""Configuration store owned by a routing engine.

Holds every keyed configuration table the engine reads during a swap. All
mutation goes through the engine's privileged entry points, which call the
typed setters below.
"""

from typing import Optional

from routex.assets import NATIVE_ASSET, NATIVE_ASSET_INFO, AssetCategory, AssetInfo
from routex.errors import UnsupportedAssetError
from routex.routing.models import BackendKind, Route
from routex.routing.registry import BackendRegistry, Pair, RouteRegistry


class ConfigStore:
    """Routes, slippage, assets, pool lists, pause flags and roles."""

    def __init__(self, wrapped_native: Optional[str] = None):
        self.routes = RouteRegistry()
        self.backends = BackendRegistry()
        self.slippage: dict[Pair, int] = {}
        self.assets: dict[str, AssetInfo] = {}
        self.pool_whitelist: set[str] = set()
        self.pool_overrides: set[Pair] = set()
        self.paused = False
        self.paused_protocols: set[BackendKind] = set()
        self.paused_pools: set[str] = set()
        self.route_managers: set[str] = set()
        self.bridge_assets: dict[AssetCategory, str] = {}
        self.wrapped_native = wrapped_native.lower() if wrapped_native else None
        self.secret_hash: Optional[bytes] = None

    # Assets
    def set_asset(self, info: AssetInfo) -> None:
        self.assets[info.address.lower()] = info

    def asset_info(self, asset: str) -> Optional[AssetInfo]:
        asset = asset.lower()
        if asset == NATIVE_ASSET:
            return NATIVE_ASSET_INFO
        return self.assets.get(asset)

    def is_supported(self, asset: str) -> bool:
        info = self.asset_info(asset)
        return info is not None and info.supported

    def require_asset(self, asset: str) -> AssetInfo:
        """Asset info for a supported asset."""
        info = self.asset_info(asset)
        if info is None or not info.supported:
            raise UnsupportedAssetError(f"Asset {asset} is not supported")
        return info

    def decimals(self, asset: str) -> int:
        return self.require_asset(asset).decimals

    def category(self, asset: str) -> AssetCategory:
        return self.require_asset(asset).category

    def pool_asset(self, asset: str) -> str:
        """Token a pool trades in place of ``asset`` (native becomes wrapped)."""
        asset = asset.lower()
        if asset == NATIVE_ASSET and self.wrapped_native:
            return self.wrapped_native
        return asset

    def bridge_asset(self, category: AssetCategory) -> Optional[str]:
        """Intermediate asset for two-leg routes within ``category``."""
        bridge = self.bridge_assets.get(category)
        if bridge is None and category == AssetCategory.ETH_LST:
            return self.wrapped_native
        return bridge

    # Routes
    def find_route(self, asset_in: str, asset_out: str) -> Optional[Route]:
        """Route for the pair, falling back to the wrapped-native equivalent key."""
        route = self.routes.get(asset_in, asset_out)
        if route is not None:
            return route
        key_in, key_out = self.pool_asset(asset_in), self.pool_asset(asset_out)
        if (key_in, key_out) == (asset_in.lower(), asset_out.lower()):
            return None
        route = self.routes.get(key_in, key_out)
        if route is not None and route.kind in (BackendKind.DIRECT_POOL, BackendKind.MULTI_HOP_PATH):
            return route
        return None

    # Slippage
    def set_slippage(self, asset_in: str, asset_out: str, bps: int) -> None:
        key = (asset_in.lower(), asset_out.lower())
        if bps == 0:
            self.slippage.pop(key, None)
        else:
            self.slippage[key] = bps

    def get_slippage(self, asset_in: str, asset_out: str) -> int:
        return self.slippage.get((asset_in.lower(), asset_out.lower()), 0)

    # Pools
    def set_pool_whitelisted(self, pool: str, allowed: bool) -> None:
        if allowed:
            self.pool_whitelist.add(pool.lower())
        else:
            self.pool_whitelist.discard(pool.lower())

    def is_pool_whitelisted(self, pool: str) -> bool:
        return pool.lower() in self.pool_whitelist

    def set_pool_paused(self, pool: str, paused: bool) -> None:
        if paused:
            self.paused_pools.add(pool.lower())
        else:
            self.paused_pools.discard(pool.lower())

    def is_pool_paused(self, pool: str) -> bool:
        return pool.lower() in self.paused_pools

    def set_pool_override(self, asset_in: str, asset_out: str, enabled: bool) -> None:
        key = (asset_in.lower(), asset_out.lower())
        if enabled:
            self.pool_overrides.add(key)
        else:
            self.pool_overrides.discard(key)

    def has_pool_override(self, asset_in: str, asset_out: str) -> bool:
        return (asset_in.lower(), asset_out.lower()) in self.pool_overrides

    # Protocols
    def set_protocol_paused(self, kind: BackendKind, paused: bool) -> None:
        if paused:
            self.paused_protocols.add(kind)
        else:
            self.paused_protocols.discard(kind)

    def is_protocol_paused(self, kind: BackendKind) -> bool:
        return kind in self.paused_protocols
