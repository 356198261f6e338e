"""Ledger module for persisted configuration and swap records."""

from routex.ledger.database import close_db, create_db_engine, get_db, init_db
from routex.ledger.models import (
    AssetRecord,
    BackendRecord,
    RouteRecord,
    SlippageRecord,
    SwapEventRecord,
    SystemConfig,
)
from routex.ledger.repository import ConfigRepository, SwapRecordRepository, persist_swaps

__all__ = [
    # Models
    "AssetRecord",
    "BackendRecord",
    "RouteRecord",
    "SlippageRecord",
    "SwapEventRecord",
    "SystemConfig",
    # Database
    "close_db",
    "create_db_engine",
    "get_db",
    "init_db",
    # Repositories
    "ConfigRepository",
    "SwapRecordRepository",
    "persist_swaps",
]
