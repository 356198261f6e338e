"""Execution sandbox for dynamically registered backends.

The engine forwards caller-supplied call data to a registered backend only
after the selector check, under a gas ceiling, and pays out what its balance
actually gained.
"""

import logging

from routex.assets import NATIVE_ASSET
from routex.chain.state import InMemoryChain
from routex.errors import (
    BackendCallError,
    BackendNotRegisteredError,
    InvalidAmountError,
    NoCodeError,
    OutOfGasError,
    SameAssetError,
    StateError,
    ValidationError,
)
from routex.routing.registry import BackendRegistration
from routex.routing.store import ConfigStore
from routex.safety import check_call_data

logger = logging.getLogger(__name__)


class BackendSandbox:
    """Registers backends and runs their swaps with balance-delta accounting."""

    def __init__(
        self,
        chain: InMemoryChain,
        store: ConfigStore,
        engine_address: str,
        gas_limit: int = 500_000,
    ):
        self.chain = chain
        self.store = store
        self.engine_address = engine_address.lower()
        self.gas_limit = gas_limit

    def register(self, address: str, name: str) -> BackendRegistration:
        """Register ``address``; it must host code."""
        if not self.chain.has_code(address):
            raise NoCodeError(f"No contract deployed at {address}")
        entry = self.store.backends.register(address, name)
        logger.info(f"Registered backend {name} at {entry.address}")
        return entry

    def remove(self, address: str) -> BackendRegistration:
        entry = self.store.backends.remove(address)
        logger.info(f"Removed backend {entry.name} at {entry.address}")
        return entry

    async def execute(
        self,
        backend: str,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        call_data: bytes,
        caller: str,
    ) -> int:
        """Run ``call_data`` against ``backend`` with funds pulled from ``caller``.

        Returns the output forwarded to the caller.
        """
        if not self.store.backends.is_registered(backend):
            raise BackendNotRegisteredError(f"Backend {backend} is not registered")
        check_call_data(call_data, backend)
        if amount_in <= 0:
            raise InvalidAmountError("Amount must be greater than zero")
        if asset_in.lower() == asset_out.lower():
            raise SameAssetError(f"Cannot route {asset_in} to itself")
        if NATIVE_ASSET in (asset_in.lower(), asset_out.lower()):
            raise ValidationError("Registered backends trade tokens only", code="native_not_supported")
        self.store.require_asset(asset_in)
        self.store.require_asset(asset_out)

        engine = self.engine_address
        contract = self.chain.get_contract(backend)
        if contract.gas_cost > self.gas_limit:
            exhausted = OutOfGasError(contract.gas_cost, self.gas_limit)
            logger.warning(f"Backend {backend} exceeds the gas ceiling: {exhausted}")
            raise BackendCallError(f"Backend call failed: {exhausted}") from exhausted

        self.chain.transfer_from(asset_in, engine, caller, engine, amount_in)
        in_before = self.chain.balance_of(asset_in, engine)
        out_before = self.chain.balance_of(asset_out, engine)

        self.chain.approve(asset_in, engine, contract.address, amount_in)
        try:
            await contract.call(self.chain, engine, bytes(call_data), self.gas_limit)
        except StateError:
            raise
        except Exception as e:
            logger.error(f"Backend {backend} call failed: {type(e).__name__}: {e}")
            raise BackendCallError(f"Backend call failed: {e}") from e
        finally:
            self.chain.approve(asset_in, engine, contract.address, 0)

        received = self.chain.balance_of(asset_out, engine) - out_before
        if received <= 0:
            raise BackendCallError(f"Backend {backend} delivered no {asset_out}")

        spent = in_before - self.chain.balance_of(asset_in, engine)
        unused = amount_in - spent
        if unused > 0:
            self.chain.transfer(asset_in, engine, caller, unused)

        self.chain.transfer(asset_out, engine, caller, received)
        logger.info(
            f"Backend swap via {backend}: {spent} {asset_in} -> {received} {asset_out}"
        )
        return received
