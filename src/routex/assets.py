"""Asset classification and decimal normalization."""

from dataclasses import dataclass
from enum import Enum

from eth_utils import is_address

from routex.errors import ValidationError

# Native chain asset placeholder (same convention as DEX aggregators)
NATIVE_ASSET = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"
NATIVE_DECIMALS = 18

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class AssetCategory(str, Enum):
    """Asset categories used for routing and default slippage."""

    STABLE = "stable"
    ETH_LST = "eth_lst"
    BTC_WRAPPED = "btc_wrapped"
    VOLATILE = "volatile"


@dataclass(frozen=True)
class AssetInfo:
    """Per-asset decimals, category and support flag."""

    address: str
    decimals: int
    category: AssetCategory
    supported: bool = True
    symbol: str = ""


NATIVE_ASSET_INFO = AssetInfo(
    address=NATIVE_ASSET,
    decimals=NATIVE_DECIMALS,
    category=AssetCategory.ETH_LST,
    supported=True,
    symbol="ETH",
)


def normalize_address(address: str) -> str:
    """Validate and lowercase an address."""
    if not isinstance(address, str) or not is_address(address):
        raise ValidationError(f"Invalid address: {address!r}", code="invalid_address")
    return address.lower()


def normalize_amount(amount: int, from_decimals: int, to_decimals: int) -> int:
    """Rescale an integer amount between decimal precisions.

    Scaling down truncates toward zero, so a round trip through a lower
    precision loses at most the truncated digits.
    """
    if from_decimals == to_decimals:
        return amount
    if from_decimals > to_decimals:
        return amount // 10 ** (from_decimals - to_decimals)
    return amount * 10 ** (to_decimals - from_decimals)


def apply_bps(amount: int, bps: int) -> int:
    """Reduce amount by ``bps`` basis points."""
    return amount * (10_000 - bps) // 10_000
