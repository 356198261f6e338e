"""Simulated backends for dry-run deployments and tests.

Rates are expressed in raw base units (output units per input unit), so a
pool between assets with different decimals carries the decimal shift in
its rate.
"""

import logging
from decimal import ROUND_DOWN, Decimal
from typing import Awaitable, Callable, Optional

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector

from routex.assets import NATIVE_ASSET
from routex.backends.base import MinterBackend, PathRouterBackend, PoolBackend
from routex.chain.contracts import ExternalContract
from routex.chain.state import InMemoryChain
from routex.errors import BackendError, OutOfGasError
from routex.routing.path import decode_path

logger = logging.getLogger(__name__)

SWAP_SIGNATURE = "swap(address,address,uint256,uint256)"
SWAP_SELECTOR = function_signature_to_4byte_selector(SWAP_SIGNATURE)

SwapHook = Callable[[], Awaitable[None]]


def _apply_rate(amount: int, rate: Decimal) -> int:
    return int((Decimal(amount) * rate).to_integral_value(rounding=ROUND_DOWN))


class _FailureKnobs:
    """Switches shared by simulated backends to script failures."""

    def __init__(self):
        self.quote_error: Optional[str] = None
        self.swap_error: Optional[str] = None
        self.fail_next_swaps = 0
        self.enforce_min_out = True
        self.misreport_output = 0
        self.on_swap: Optional[SwapHook] = None
        self.swap_count = 0

    async def before_swap(self) -> None:
        self.swap_count += 1
        if self.on_swap is not None:
            await self.on_swap()
        if self.fail_next_swaps > 0:
            self.fail_next_swaps -= 1
            raise BackendError(self.swap_error or "simulated swap failure")
        if self.swap_error:
            raise BackendError(self.swap_error)

    def check_quote(self) -> None:
        if self.quote_error:
            raise BackendError(self.quote_error)


class SimulatedPool(PoolBackend, _FailureKnobs):
    """Pool with fixed rates between its coins.

    ``quote_rate`` lets the estimate differ from the realised rate.
    """

    gas_cost = 120_000

    def __init__(
        self,
        address: str,
        coins: list[str],
        rate: Decimal = Decimal("1"),
        quote_rate: Optional[Decimal] = None,
        fee_tiers: Optional[list[int]] = None,
    ):
        PoolBackend.__init__(self, address)
        _FailureKnobs.__init__(self)
        self._coins = [coin.lower() for coin in coins]
        self.fee_tiers = fee_tiers
        self._rates: dict[tuple[str, str], Decimal] = {}
        self._quote_rates: dict[tuple[str, str], Decimal] = {}
        if len(self._coins) >= 2:
            self.set_rate(self._coins[0], self._coins[1], rate, quote_rate)

    @property
    def coins(self) -> list[str]:
        return list(self._coins)

    def set_rate(
        self,
        asset_in: str,
        asset_out: str,
        rate: Decimal,
        quote_rate: Optional[Decimal] = None,
    ) -> None:
        """Set the rate for a pair (and its inverse)."""
        a, b = asset_in.lower(), asset_out.lower()
        self._rates[(a, b)] = rate
        self._rates[(b, a)] = Decimal(1) / rate
        if quote_rate is not None:
            self._quote_rates[(a, b)] = quote_rate
            self._quote_rates[(b, a)] = Decimal(1) / quote_rate

    def _resolve(self, asset_in: str, asset_out: str, route) -> Decimal:
        a, b = asset_in.lower(), asset_out.lower()
        if a not in self._coins or b not in self._coins:
            raise BackendError(f"pool {self.address} does not hold {a} and {b}")
        # fee-tier pools ignore indices; index pools must match
        if self.fee_tiers is None:
            n = len(self._coins)
            if not (0 <= route.index_in < n and 0 <= route.index_out < n):
                raise BackendError("coin index out of range")
            if self._coins[route.index_in] != a or self._coins[route.index_out] != b:
                raise BackendError("coin indices do not match the assets")
        elif route.fee not in self.fee_tiers:
            raise BackendError(f"fee tier {route.fee} not available")
        rate = self._rates.get((a, b))
        if rate is None:
            raise BackendError(f"no liquidity for {a} -> {b}")
        return rate

    async def estimate_single(self, asset_in, asset_out, amount_in, route) -> int:
        self.check_quote()
        rate = self._resolve(asset_in, asset_out, route)
        rate = self._quote_rates.get((asset_in.lower(), asset_out.lower()), rate)
        return _apply_rate(amount_in, rate)

    async def swap(self, chain, sender, asset_in, asset_out, amount_in, min_amount_out, route) -> int:
        await self.before_swap()
        rate = self._resolve(asset_in, asset_out, route)
        amount_out = _apply_rate(amount_in, rate)
        if self.enforce_min_out and amount_out < min_amount_out:
            raise BackendError("Too little received")
        chain.transfer_from(asset_in, self.address, sender, self.address, amount_in)
        if chain.balance_of(asset_out, self.address) < amount_out:
            raise BackendError("insufficient pool liquidity")
        chain.transfer(asset_out, self.address, sender, amount_out)
        return amount_out + self.misreport_output


class SimulatedPathRouter(PathRouterBackend, _FailureKnobs):
    """Router that prices each hop of a path from a rate table."""

    gas_cost = 200_000

    def __init__(self, address: str):
        PathRouterBackend.__init__(self, address)
        _FailureKnobs.__init__(self)
        self._hops: dict[tuple[str, str, int], Decimal] = {}

    def set_hop(self, asset_in: str, asset_out: str, fee: int, rate: Decimal) -> None:
        a, b = asset_in.lower(), asset_out.lower()
        self._hops[(a, b, fee)] = rate
        self._hops[(b, a, fee)] = Decimal(1) / rate

    def _price(self, path: bytes, amount_in: int) -> int:
        assets, fees = decode_path(path)
        amount = amount_in
        for i, fee in enumerate(fees):
            rate = self._hops.get((assets[i], assets[i + 1], fee))
            if rate is None:
                raise BackendError(f"no pool for hop {assets[i]} -> {assets[i + 1]} ({fee})")
            amount = _apply_rate(amount, rate)
        return amount

    async def estimate_path(self, path: bytes, amount_in: int) -> int:
        self.check_quote()
        return self._price(path, amount_in)

    async def swap_path(self, chain, sender, path, amount_in, min_amount_out) -> int:
        await self.before_swap()
        assets, _ = decode_path(path)
        amount_out = self._price(path, amount_in)
        if self.enforce_min_out and amount_out < min_amount_out:
            raise BackendError("Too little received")
        chain.transfer_from(assets[0], self.address, sender, self.address, amount_in)
        if chain.balance_of(assets[-1], self.address) < amount_out:
            raise BackendError("insufficient router liquidity")
        chain.transfer(assets[-1], self.address, sender, amount_out)
        return amount_out + self.misreport_output


class SimulatedMinter(MinterBackend, _FailureKnobs):
    """Deposit native asset, receive shares at a fixed ratio."""

    gas_cost = 90_000

    def __init__(self, address: str, share_token: str, shares_per_unit: Decimal = Decimal("1")):
        MinterBackend.__init__(self, address)
        _FailureKnobs.__init__(self)
        self._share_token = share_token.lower()
        self.shares_per_unit = shares_per_unit
        self.total_deposited = 0

    @property
    def share_token(self) -> str:
        return self._share_token

    def export_state(self) -> dict:
        return {"total_deposited": self.total_deposited}

    def import_state(self, state: dict) -> None:
        self.total_deposited = state.get("total_deposited", 0)

    async def deposit(self, chain, sender, amount) -> int:
        await self.before_swap()
        chain.transfer(NATIVE_ASSET, sender, self.address, amount)
        shares = _apply_rate(amount, self.shares_per_unit)
        chain.mint(self._share_token, sender, shares)
        self.total_deposited += amount
        return shares + self.misreport_output


class SimulatedDex(ExternalContract, _FailureKnobs):
    """Raw-call backend accepting ``swap(address,address,uint256,uint256)``.

    Used behind the backend sandbox, where the engine only forwards opaque
    call data.
    """

    gas_cost = 150_000

    def __init__(self, address: str, rate: Decimal = Decimal("1")):
        ExternalContract.__init__(self, address)
        _FailureKnobs.__init__(self)
        self.rate = rate

    async def call(self, chain: InMemoryChain, sender: str, data: bytes, gas_limit: int) -> bytes:
        if self.gas_cost > gas_limit:
            raise OutOfGasError(self.gas_cost, gas_limit)
        if data[:4] != SWAP_SELECTOR:
            raise BackendError(f"unknown selector 0x{data[:4].hex()}")
        asset_in, asset_out, amount_in, min_out = abi_decode(
            ["address", "address", "uint256", "uint256"], data[4:]
        )
        await self.before_swap()
        amount_out = _apply_rate(amount_in, self.rate)
        if self.enforce_min_out and amount_out < min_out:
            raise BackendError("Too little received")
        chain.transfer_from(asset_in, self.address, sender, self.address, amount_in)
        chain.transfer(asset_out, self.address, sender, amount_out)
        logger.debug(f"SimulatedDex {self.address} swapped {amount_in} -> {amount_out}")
        return abi_encode(["uint256"], [amount_out + self.misreport_output])


def encode_dex_swap(asset_in: str, asset_out: str, amount_in: int, min_out: int) -> bytes:
    """Call data for ``SimulatedDex``."""
    return SWAP_SELECTOR + abi_encode(
        ["address", "address", "uint256", "uint256"],
        [asset_in, asset_out, amount_in, min_out],
    )
