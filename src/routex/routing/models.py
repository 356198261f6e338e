"""Route, quote and result types for the routing engine."""

import json
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import ClassVar, Optional, Union

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode

from routex.assets import ZERO_ADDRESS, normalize_address
from routex.errors import InvalidRouteError
from routex.routing.path import path_endpoints, reverse_path


class BackendKind(str, Enum):
    """Backend protocols a route can dispatch to."""

    DIRECT_POOL = "direct_pool"
    MULTI_HOP_PATH = "multi_hop_path"
    DIRECT_MINT = "direct_mint"
    COMPOSITE_STEPS = "composite_steps"


class StepAction(str, Enum):
    """Actions a composite route is built from."""

    WRAP = "wrap"
    UNWRAP = "unwrap"
    DIRECT_MINT = "direct_mint"
    SWAP = "swap"


def _is_empty_address(address: Optional[str]) -> bool:
    return not address or address.lower() == ZERO_ADDRESS


@dataclass(frozen=True)
class DirectPoolRoute:
    """Single pool, addressed by fee tier or by coin indices."""

    pool: str
    fee: int = 0
    index_in: int = 0
    index_out: int = 1

    kind: ClassVar[BackendKind] = BackendKind.DIRECT_POOL

    @property
    def backend_address(self) -> str:
        return self.pool

    def is_empty(self) -> bool:
        return _is_empty_address(self.pool)

    def reversed(self) -> "DirectPoolRoute":
        return replace(self, index_in=self.index_out, index_out=self.index_in)

    def route_data(self) -> bytes:
        return abi_encode(
            ["address", "uint24", "int128", "int128"],
            [self.pool, self.fee, self.index_in, self.index_out],
        )


@dataclass(frozen=True)
class MultiHopRoute:
    """Packed path executed through a router."""

    router: str
    path: bytes

    kind: ClassVar[BackendKind] = BackendKind.MULTI_HOP_PATH

    @property
    def backend_address(self) -> str:
        return self.router

    def is_empty(self) -> bool:
        return not self.path or _is_empty_address(self.router)

    def reversed(self) -> "MultiHopRoute":
        return replace(self, path=reverse_path(self.path))

    def endpoints(self) -> tuple[str, str]:
        return path_endpoints(self.path)

    def route_data(self) -> bytes:
        return self.path


@dataclass(frozen=True)
class DirectMintRoute:
    """Deposit of the native asset into a minting contract."""

    minter: str

    kind: ClassVar[BackendKind] = BackendKind.DIRECT_MINT

    @property
    def backend_address(self) -> str:
        return self.minter

    def is_empty(self) -> bool:
        return _is_empty_address(self.minter)

    def reversed(self) -> None:
        # minting is one-way
        return None

    def route_data(self) -> bytes:
        return bytes.fromhex(self.minter[2:])


@dataclass(frozen=True)
class CompositeStep:
    """One action in a composite route."""

    action: StepAction
    backend: str
    asset_in: str
    asset_out: str
    route_data: bytes = b""

    @classmethod
    def swap(
        cls,
        pool: str,
        asset_in: str,
        asset_out: str,
        fee: int = 0,
        index_in: int = 0,
        index_out: int = 1,
    ) -> "CompositeStep":
        """Build a pool swap step."""
        data = DirectPoolRoute(pool, fee, index_in, index_out).route_data()
        return cls(StepAction.SWAP, pool, asset_in, asset_out, data)

    def pool_route(self) -> DirectPoolRoute:
        """Decode the pool parameters of a swap step."""
        if self.action != StepAction.SWAP:
            raise InvalidRouteError(f"{self.action.value} step carries no pool route")
        pool, fee, index_in, index_out = abi_decode(
            ["address", "uint24", "int128", "int128"], self.route_data
        )
        return DirectPoolRoute(pool.lower(), fee, index_in, index_out)

    def to_dict(self) -> dict:
        return {
            "action": self.action.value,
            "backend": self.backend,
            "asset_in": self.asset_in,
            "asset_out": self.asset_out,
            "route_data": self.route_data.hex(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CompositeStep":
        return cls(
            action=StepAction(data["action"]),
            backend=normalize_address(data["backend"]),
            asset_in=normalize_address(data["asset_in"]),
            asset_out=normalize_address(data["asset_out"]),
            route_data=bytes.fromhex(data.get("route_data", "")),
        )


def encode_steps(steps: tuple[CompositeStep, ...]) -> bytes:
    return json.dumps([step.to_dict() for step in steps], separators=(",", ":")).encode()


def decode_steps(data: bytes) -> tuple[CompositeStep, ...]:
    """Decode JSON-encoded composite steps."""
    try:
        raw = json.loads(data.decode())
        return tuple(CompositeStep.from_dict(item) for item in raw)
    except (ValueError, KeyError, TypeError) as e:
        raise InvalidRouteError(f"Malformed composite steps: {e}")


@dataclass(frozen=True)
class CompositeRoute:
    """Ordered wrap/unwrap/mint/swap actions run as one operation."""

    steps: tuple[CompositeStep, ...]

    kind: ClassVar[BackendKind] = BackendKind.COMPOSITE_STEPS

    @property
    def backend_address(self) -> str:
        return self.steps[-1].backend if self.steps else ZERO_ADDRESS

    def is_empty(self) -> bool:
        return not self.steps

    def reversed(self) -> None:
        return None

    def route_data(self) -> bytes:
        return encode_steps(self.steps)


Route = Union[DirectPoolRoute, MultiHopRoute, DirectMintRoute, CompositeRoute]


def route_from_data(kind: BackendKind, route_data: bytes, backend: str = "") -> Route:
    """Rebuild a route from its kind and encoded route data."""
    if kind == BackendKind.DIRECT_POOL:
        pool, fee, index_in, index_out = abi_decode(
            ["address", "uint24", "int128", "int128"], route_data
        )
        return DirectPoolRoute(pool.lower(), fee, index_in, index_out)
    if kind == BackendKind.MULTI_HOP_PATH:
        return MultiHopRoute(backend.lower(), route_data)
    if kind == BackendKind.DIRECT_MINT:
        return DirectMintRoute("0x" + route_data.hex())
    return CompositeRoute(decode_steps(route_data))


@dataclass(frozen=True)
class SwapRequest:
    """A swap with an explicitly chosen backend."""

    asset_in: str
    asset_out: str
    amount_in: int
    backend: BackendKind
    min_amount_out: int = 0
    route_data: bytes = b""


@dataclass
class Quote:
    """Best-effort output estimate for one swap attempt."""

    expected_output: int
    valid: bool = True
    timestamp: float = field(default_factory=time.time)
    ttl_seconds: int = 30
    source: str = ""
    error: Optional[str] = None

    @classmethod
    def invalid(cls, reason: str, timestamp: float, source: str = "") -> "Quote":
        return cls(expected_output=0, valid=False, timestamp=timestamp, source=source, error=reason)

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_fresh(self, now: float) -> bool:
        """Valid, positive and not older than the validity window."""
        return self.valid and self.expected_output > 0 and self.age(now) <= self.ttl_seconds


class AttemptOutcome(str, Enum):
    """Outcome tag of a single execution attempt."""

    SUCCESS = "success"
    QUOTE_FAILURE = "quote_failure"
    EXECUTION_FAILURE = "execution_failure"


@dataclass
class AttemptResult:
    """Result of one primary or fallback attempt."""

    outcome: AttemptOutcome
    amount_out: int = 0
    min_amount_out: int = 0
    quote: Optional[Quote] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.outcome == AttemptOutcome.SUCCESS


@dataclass
class SwapResult:
    """What a completed swap returns to the caller."""

    amount_out: int
    min_amount_out: int
    backend: BackendKind
    route_hash: str
    used_fallback: bool = False
    path: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SwapCompleted:
    """Record emitted once per successful swap."""

    caller: str
    asset_in: str
    asset_out: str
    amount_in: int
    amount_out: int
    backend: BackendKind
    backend_address: str
    route_hash: str
    timestamp: float
    used_fallback: bool = False
