"""Application configuration using pydantic-settings.

Slippage tiers and time windows used by the routing engine live here so a
deployment can tune them from the environment without code changes.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ROUTEX_",
        extra="ignore",
    )

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/routex.db",
        description="Database connection URL",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")
    dry_run: bool = Field(default=True, description="Deploy simulated backends on startup")

    # ======================
    # Admin / roles
    # ======================
    admin_token: str = Field(default="", description="Admin API token for protected endpoints")
    api_token: str = Field(
        default="", description="Token required on endpoints that act for an X-Caller address"
    )
    engine_address: str = Field(
        default="0x00000000000000000000000000000000000e0e0e",
        description="Address the engine custodies funds under",
    )
    owner_address: str = Field(
        default="0x000000000000000000000000000000000000a11c",
        description="Owner role address",
    )
    operator_secret: Optional[str] = Field(
        default=None, description="Pre-shared secret for route and backend registration"
    )

    # ======================
    # Quote service
    # ======================
    quote_api_url: Optional[str] = Field(
        default=None, description="HTTP quote service used instead of on-chain estimates"
    )
    quote_api_key: Optional[str] = Field(default=None, description="Quote service API key")
    quote_api_timeout: float = Field(default=10.0, description="Quote service timeout in seconds")

    # ======================
    # Slippage
    # ======================
    quote_validity_seconds: int = Field(default=30, description="Quote validity window")
    tight_buffer_bps: int = Field(default=20, description="Buffer applied to a fresh quote")
    max_slippage_bps: int = Field(default=2000, description="Upper bound for configured slippage")
    leg_fallback_slippage_bps: int = Field(
        default=200, description="Slippage for intermediate legs without configuration"
    )
    composite_quote_haircut_bps: int = Field(
        default=500, description="Haircut used as the estimate for composite routes"
    )
    default_stable_slippage_bps: int = Field(default=50, description="stable <-> stable")
    default_lst_slippage_bps: int = Field(default=100, description="LST <-> LST")
    default_btc_slippage_bps: int = Field(default=300, description="any pair touching BTC-wrapped")
    default_volatile_slippage_bps: int = Field(default=500, description="everything else")

    # ======================
    # Safety
    # ======================
    config_lock_seconds: int = Field(default=300, description="Configuration key reservation window")
    backend_gas_limit: int = Field(default=500_000, description="Gas ceiling for registered backends")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def engine_config(self) -> "EngineConfig":
        """Build the engine tuning parameters from these settings."""
        return EngineConfig(
            quote_validity_seconds=self.quote_validity_seconds,
            tight_buffer_bps=self.tight_buffer_bps,
            max_slippage_bps=self.max_slippage_bps,
            leg_fallback_slippage_bps=self.leg_fallback_slippage_bps,
            composite_quote_haircut_bps=self.composite_quote_haircut_bps,
            default_stable_slippage_bps=self.default_stable_slippage_bps,
            default_lst_slippage_bps=self.default_lst_slippage_bps,
            default_btc_slippage_bps=self.default_btc_slippage_bps,
            default_volatile_slippage_bps=self.default_volatile_slippage_bps,
            config_lock_seconds=self.config_lock_seconds,
            backend_gas_limit=self.backend_gas_limit,
        )

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_url": self._redact_url(self.database_url),
            "admin_token": "***" if self.admin_token else "(not set)",
            "api_token": "***" if self.api_token else "(not set)",
            "operator_secret": "***" if self.operator_secret else "(not set)",
            "quote_api_url": self.quote_api_url or "(not set)",
            "quote_api_key": "***" if self.quote_api_key else "(not set)",
            "engine_address": self.engine_address,
            "owner_address": self.owner_address,
            "slippage": {
                "quote_validity_seconds": self.quote_validity_seconds,
                "tight_buffer_bps": self.tight_buffer_bps,
                "max_slippage_bps": self.max_slippage_bps,
                "leg_fallback_slippage_bps": self.leg_fallback_slippage_bps,
            },
            "safety": {
                "config_lock_seconds": self.config_lock_seconds,
                "backend_gas_limit": self.backend_gas_limit,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@dataclass(frozen=True)
class EngineConfig:
    """Tuning parameters consumed by the routing engine."""

    quote_validity_seconds: int = 30
    tight_buffer_bps: int = 20
    max_slippage_bps: int = 2000
    leg_fallback_slippage_bps: int = 200
    composite_quote_haircut_bps: int = 500
    default_stable_slippage_bps: int = 50
    default_lst_slippage_bps: int = 100
    default_btc_slippage_bps: int = 300
    default_volatile_slippage_bps: int = 500
    config_lock_seconds: int = 300
    backend_gas_limit: int = 500_000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
