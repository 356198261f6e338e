"""SQLAlchemy models for persisted engine configuration and swap records."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class RouteRecord(Base):
    """Route configured for an asset pair."""

    __tablename__ = "routes"
    __table_args__ = (Index("ix_routes_pair", "asset_in", "asset_out", unique=True),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    asset_in: Mapped[str] = mapped_column(String(42), nullable=False)
    asset_out: Mapped[str] = mapped_column(String(42), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)  # BackendKind value
    backend: Mapped[str] = mapped_column(String(42), nullable=False)
    route_data: Mapped[str] = mapped_column(Text, nullable=False)  # hex
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class SlippageRecord(Base):
    """Configured slippage tolerance for an asset pair."""

    __tablename__ = "slippage"
    __table_args__ = (Index("ix_slippage_pair", "asset_in", "asset_out", unique=True),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    asset_in: Mapped[str] = mapped_column(String(42), nullable=False)
    asset_out: Mapped[str] = mapped_column(String(42), nullable=False)
    bps: Mapped[int] = mapped_column(Integer, nullable=False)


class AssetRecord(Base):
    """Decimals, category and support flag of an asset."""

    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(42), unique=True, nullable=False, index=True)
    decimals: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    supported: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    symbol: Mapped[str] = mapped_column(String(20), default="", nullable=False)


class BackendRecord(Base):
    """Registered backend, stored in registration order."""

    __tablename__ = "backends"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    address: Mapped[str] = mapped_column(String(42), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    registered: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class SystemConfig(Base):
    """Key/value entries for flags, pool lists and roles (JSON values)."""

    __tablename__ = "system_config"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class SwapEventRecord(Base):
    """Completed swap (one row per executed leg)."""

    __tablename__ = "swap_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    route_hash: Mapped[str] = mapped_column(String(66), nullable=False, index=True)
    caller: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    asset_in: Mapped[str] = mapped_column(String(42), nullable=False)
    asset_out: Mapped[str] = mapped_column(String(42), nullable=False)
    # raw base-unit integers exceed every SQL numeric type
    amount_in: Mapped[str] = mapped_column(String(80), nullable=False)
    amount_out: Mapped[str] = mapped_column(String(80), nullable=False)
    backend: Mapped[str] = mapped_column(String(32), nullable=False)
    backend_address: Mapped[str] = mapped_column(String(42), nullable=False)
    used_fallback: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    timestamp: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
