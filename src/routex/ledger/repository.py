"""Repositories for engine configuration and swap records."""

import json
from typing import Callable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from routex.assets import AssetCategory, AssetInfo
from routex.ledger.models import (
    AssetRecord,
    BackendRecord,
    RouteRecord,
    SlippageRecord,
    SwapEventRecord,
    SystemConfig,
)
from routex.routing.models import BackendKind, SwapCompleted, route_from_data
from routex.routing.store import ConfigStore

# SystemConfig keys
KEY_PAUSED = "paused"
KEY_PAUSED_PROTOCOLS = "paused_protocols"
KEY_PAUSED_POOLS = "paused_pools"
KEY_POOL_WHITELIST = "pool_whitelist"
KEY_POOL_OVERRIDES = "pool_overrides"
KEY_ROUTE_MANAGERS = "route_managers"
KEY_BRIDGE_ASSETS = "bridge_assets"
KEY_WRAPPED_NATIVE = "wrapped_native"
KEY_SECRET_HASH = "secret_hash"


class ConfigRepository:
    """Persists the keyed configuration tables of a ConfigStore."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # System Config operations
    async def get_config(self, key: str) -> Optional[str]:
        """Get a system config value."""
        stmt = select(SystemConfig).where(SystemConfig.key == key)
        result = await self.session.execute(stmt)
        config = result.scalar_one_or_none()
        return config.value if config else None

    async def set_config(self, key: str, value: str) -> SystemConfig:
        stmt = select(SystemConfig).where(SystemConfig.key == key)
        result = await self.session.execute(stmt)
        config = result.scalar_one_or_none()
        if config is None:
            config = SystemConfig(key=key, value=value)
            self.session.add(config)
        else:
            config.value = value
        await self.session.flush()
        return config

    async def _get_json(self, key: str, default):
        raw = await self.get_config(key)
        return default if raw is None else json.loads(raw)

    async def _set_json(self, key: str, value) -> None:
        await self.set_config(key, json.dumps(value, sort_keys=True))

    async def save_store(self, store: ConfigStore) -> None:
        """Replace the persisted configuration with the contents of ``store``."""
        for model in (RouteRecord, SlippageRecord, AssetRecord, BackendRecord):
            await self.session.execute(delete(model))

        for (asset_in, asset_out), route in store.routes.items():
            self.session.add(
                RouteRecord(
                    asset_in=asset_in,
                    asset_out=asset_out,
                    kind=route.kind.value,
                    backend=route.backend_address,
                    route_data=route.route_data().hex(),
                )
            )
        for (asset_in, asset_out), bps in store.slippage.items():
            self.session.add(SlippageRecord(asset_in=asset_in, asset_out=asset_out, bps=bps))
        for info in store.assets.values():
            self.session.add(
                AssetRecord(
                    address=info.address,
                    decimals=info.decimals,
                    category=info.category.value,
                    supported=info.supported,
                    symbol=info.symbol,
                )
            )
        for position, entry in enumerate(store.backends.entries()):
            self.session.add(
                BackendRecord(
                    position=position,
                    address=entry.address,
                    name=entry.name,
                    registered=entry.registered,
                )
            )

        await self._set_json(KEY_PAUSED, store.paused)
        await self._set_json(KEY_PAUSED_PROTOCOLS, sorted(kind.value for kind in store.paused_protocols))
        await self._set_json(KEY_PAUSED_POOLS, sorted(store.paused_pools))
        await self._set_json(KEY_POOL_WHITELIST, sorted(store.pool_whitelist))
        await self._set_json(KEY_POOL_OVERRIDES, sorted(list(pair) for pair in store.pool_overrides))
        await self._set_json(KEY_ROUTE_MANAGERS, sorted(store.route_managers))
        await self._set_json(
            KEY_BRIDGE_ASSETS, {category.value: asset for category, asset in store.bridge_assets.items()}
        )
        await self._set_json(KEY_WRAPPED_NATIVE, store.wrapped_native)
        await self._set_json(KEY_SECRET_HASH, store.secret_hash.hex() if store.secret_hash else None)
        await self.session.flush()

    async def load_store(self, store: Optional[ConfigStore] = None) -> ConfigStore:
        """Populate ``store`` (or a new one) from the persisted configuration."""
        wrapped_native = await self._get_json(KEY_WRAPPED_NATIVE, None)
        if store is None:
            store = ConfigStore(wrapped_native)
        elif wrapped_native:
            store.wrapped_native = wrapped_native

        for record in (await self.session.execute(select(AssetRecord))).scalars():
            store.set_asset(
                AssetInfo(
                    address=record.address,
                    decimals=record.decimals,
                    category=AssetCategory(record.category),
                    supported=record.supported,
                    symbol=record.symbol,
                )
            )
        for record in (await self.session.execute(select(RouteRecord))).scalars():
            route = route_from_data(
                BackendKind(record.kind), bytes.fromhex(record.route_data), record.backend
            )
            store.routes.set(record.asset_in, record.asset_out, route)
        for record in (await self.session.execute(select(SlippageRecord))).scalars():
            store.set_slippage(record.asset_in, record.asset_out, record.bps)

        stmt = select(BackendRecord).order_by(BackendRecord.position)
        for record in (await self.session.execute(stmt)).scalars():
            if record.registered:
                store.backends.register(record.address, record.name)

        store.paused = await self._get_json(KEY_PAUSED, False)
        store.paused_protocols = {
            BackendKind(kind) for kind in await self._get_json(KEY_PAUSED_PROTOCOLS, [])
        }
        store.paused_pools = set(await self._get_json(KEY_PAUSED_POOLS, []))
        store.pool_whitelist = set(await self._get_json(KEY_POOL_WHITELIST, []))
        store.pool_overrides = {tuple(pair) for pair in await self._get_json(KEY_POOL_OVERRIDES, [])}
        store.route_managers = set(await self._get_json(KEY_ROUTE_MANAGERS, []))
        store.bridge_assets = {
            AssetCategory(category): asset
            for category, asset in (await self._get_json(KEY_BRIDGE_ASSETS, {})).items()
        }
        secret_hash = await self._get_json(KEY_SECRET_HASH, None)
        store.secret_hash = bytes.fromhex(secret_hash) if secret_hash else None
        return store


class SwapRecordRepository:
    """Stores and lists completed swap records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, event: SwapCompleted) -> SwapEventRecord:
        record = SwapEventRecord(
            route_hash=event.route_hash,
            caller=event.caller,
            asset_in=event.asset_in,
            asset_out=event.asset_out,
            amount_in=str(event.amount_in),
            amount_out=str(event.amount_out),
            backend=event.backend.value,
            backend_address=event.backend_address,
            used_fallback=event.used_fallback,
            timestamp=event.timestamp,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def list_recent(self, limit: int = 50, caller: Optional[str] = None) -> list[SwapEventRecord]:
        """Most recent records first, optionally for one caller."""
        stmt = select(SwapEventRecord)
        if caller:
            stmt = stmt.where(SwapEventRecord.caller == caller.lower())
        stmt = stmt.order_by(SwapEventRecord.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(SwapEventRecord.id)))
        return result.scalar() or 0


def persist_swaps(session_factory: async_sessionmaker[AsyncSession]) -> Callable:
    """Engine listener writing every SwapCompleted record to the database."""

    async def listener(event: SwapCompleted) -> None:
        async with session_factory() as session:
            await SwapRecordRepository(session).record(event)
            await session.commit()

    return listener
