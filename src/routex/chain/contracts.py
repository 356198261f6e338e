"""Base contract type and the native asset wrapper."""

from typing import TYPE_CHECKING

from routex.assets import NATIVE_ASSET
from routex.errors import BackendError

if TYPE_CHECKING:
    from routex.chain.state import InMemoryChain


class ExternalContract:
    """Something deployed at an address that the engine can call into.

    Subclasses keep any mutable state that must roll back with a failed swap
    in ``export_state``/``import_state``; token balances already live in the
    chain.
    """

    gas_cost: int = 50_000

    def __init__(self, address: str):
        self.address = address.lower()

    def export_state(self) -> dict:
        return {}

    def import_state(self, state: dict) -> None:
        pass

    async def call(
        self,
        chain: "InMemoryChain",
        sender: str,
        data: bytes,
        gas_limit: int,
    ) -> bytes:
        """Raw call entry point used by the backend sandbox."""
        raise BackendError(f"{type(self).__name__} does not accept raw calls")


class WrappedNative(ExternalContract):
    """Wraps the native asset 1:1 into a token whose address is this contract."""

    gas_cost = 30_000

    @property
    def token(self) -> str:
        return self.address

    def deposit(self, chain: "InMemoryChain", sender: str, amount: int) -> None:
        chain.transfer(NATIVE_ASSET, sender, self.address, amount)
        chain.mint(self.address, sender, amount)

    def withdraw(self, chain: "InMemoryChain", sender: str, amount: int) -> None:
        chain.burn(self.address, sender, amount)
        chain.transfer(NATIVE_ASSET, self.address, sender, amount)
