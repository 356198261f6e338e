"""Request and response bodies for the HTTP API.

Amounts are raw base-unit integers, sent and returned as strings.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from routex.assets import AssetCategory
from routex.routing.models import BackendKind, SwapResult


def _hex_bytes(value: str) -> bytes:
    value = value.strip()
    if value.startswith("0x"):
        value = value[2:]
    return bytes.fromhex(value)


class SwapBody(BaseModel):
    asset_in: str
    asset_out: str
    amount_in: int = Field(..., gt=0)
    backend: BackendKind
    min_amount_out: int = Field(default=0, ge=0)
    route_data: str = Field(default="", description="Hex-encoded path override")
    value: int = Field(default=0, ge=0, description="Native value sent with the swap")

    @field_validator("route_data")
    @classmethod
    def validate_route_data(cls, v: str) -> str:
        try:
            _hex_bytes(v)
        except ValueError:
            raise ValueError("route_data must be hex")
        return v

    def route_bytes(self) -> bytes:
        return _hex_bytes(self.route_data)


class AutoSwapBody(BaseModel):
    asset_in: str
    asset_out: str
    amount_in: int = Field(..., gt=0)
    min_amount_out: int = Field(default=0, ge=0)
    value: int = Field(default=0, ge=0)


class BackendSwapBody(BaseModel):
    backend: str
    asset_in: str
    asset_out: str
    amount_in: int = Field(..., gt=0)
    call_data: str = Field(..., description="Hex-encoded call data")
    secret: str

    def call_bytes(self) -> bytes:
        return _hex_bytes(self.call_data)


class SwapResponse(BaseModel):
    amount_out: str
    min_amount_out: str
    backend: BackendKind
    route_hash: str
    used_fallback: bool
    path: list[str]

    @classmethod
    def from_result(cls, result: SwapResult) -> "SwapResponse":
        return cls(
            amount_out=str(result.amount_out),
            min_amount_out=str(result.min_amount_out),
            backend=result.backend,
            route_hash=result.route_hash,
            used_fallback=result.used_fallback,
            path=result.path,
        )


class AmountResponse(BaseModel):
    amount_out: str


class RouteResponse(BaseModel):
    exists: bool
    kind: Optional[BackendKind] = None
    backend: Optional[str] = None
    route_data: Optional[str] = None


class SlippageResponse(BaseModel):
    bps: int
    source: str


class PoolStatusResponse(BaseModel):
    pool: str
    whitelisted: bool
    paused: bool


class BackendEntry(BaseModel):
    address: str
    name: str
    registered: bool


class SelectorEntry(BaseModel):
    selector: str
    signature: str
    blocked_attempts: int = 0


class SwapRecordEntry(BaseModel):
    route_hash: str
    caller: str
    asset_in: str
    asset_out: str
    amount_in: str
    amount_out: str
    backend: str
    used_fallback: bool
    timestamp: float


# ======================
# Admin
# ======================


class StepBody(BaseModel):
    action: str
    backend: str
    asset_in: str
    asset_out: str
    route_data: str = ""


class RouteBody(BaseModel):
    """Route configuration; fields used depend on ``kind``."""

    asset_in: str
    asset_out: str
    kind: BackendKind
    secret: str
    pool: Optional[str] = None
    fee: int = Field(default=0, ge=0)
    index_in: int = Field(default=0, ge=0)
    index_out: int = Field(default=1, ge=0)
    router: Optional[str] = None
    path: Optional[str] = None
    minter: Optional[str] = None
    steps: list[StepBody] = Field(default_factory=list)


class SlippageBody(BaseModel):
    asset_in: str
    asset_out: str
    bps: int = Field(..., ge=0)


class TokenBody(BaseModel):
    address: str
    decimals: int = Field(..., ge=0)
    category: AssetCategory
    supported: bool = True
    symbol: str = ""


class PoolBody(BaseModel):
    pool: str
    whitelisted: Optional[bool] = None
    paused: Optional[bool] = None


class PauseBody(BaseModel):
    """Empty body pauses the whole engine."""

    protocol: Optional[BackendKind] = None
    pool: Optional[str] = None


class BackendBody(BaseModel):
    address: str
    name: str = Field(..., min_length=1, max_length=100)
    secret: str


class WithdrawBody(BaseModel):
    asset: str
    amount: int = Field(..., gt=0)
    recipient: str
