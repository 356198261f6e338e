"""In-memory token and contract state.

Balances and allowances are keyed by asset address, so fungible tokens need
no deployed contract. Anything that behaves like a contract (pools, routers,
minters, the native wrapper) is deployed at an address and looked up here.
"""

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from routex.assets import normalize_address
from routex.chain.contracts import ExternalContract
from routex.errors import InsufficientBalanceError, InvalidAmountError, NoCodeError

logger = logging.getLogger(__name__)


@dataclass
class ChainSnapshot:
    """Point-in-time copy of balances, allowances and contract state."""

    balances: dict[tuple[str, str], int]
    allowances: dict[tuple[str, str, str], int]
    contract_state: dict[str, dict]


class InMemoryChain:
    """Balances, allowances and deployed contracts with snapshot/restore."""

    def __init__(self):
        self._balances: dict[tuple[str, str], int] = {}
        self._allowances: dict[tuple[str, str, str], int] = {}
        self._contracts: dict[str, ExternalContract] = {}

    # Contracts
    def deploy(self, contract: ExternalContract) -> ExternalContract:
        """Place a contract at its address."""
        address = normalize_address(contract.address)
        contract.address = address
        self._contracts[address] = contract
        logger.debug(f"Deployed {type(contract).__name__} at {address}")
        return contract

    def has_code(self, address: str) -> bool:
        return address.lower() in self._contracts

    def get_contract(self, address: str) -> ExternalContract:
        """Get the contract deployed at ``address``."""
        contract = self._contracts.get(address.lower())
        if contract is None:
            raise NoCodeError(f"No contract deployed at {address}")
        return contract

    # Balances
    def balance_of(self, asset: str, holder: str) -> int:
        return self._balances.get((asset.lower(), holder.lower()), 0)

    def mint(self, asset: str, holder: str, amount: int) -> None:
        """Credit ``amount`` of ``asset`` out of thin air."""
        if amount < 0:
            raise InvalidAmountError("Cannot mint a negative amount")
        key = (asset.lower(), holder.lower())
        self._balances[key] = self._balances.get(key, 0) + amount

    def burn(self, asset: str, holder: str, amount: int) -> None:
        key = (asset.lower(), holder.lower())
        balance = self._balances.get(key, 0)
        if balance < amount:
            raise InsufficientBalanceError(
                f"Insufficient balance to burn: have {balance}, need {amount}"
            )
        self._balances[key] = balance - amount

    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """Move ``amount`` of ``asset`` between holders."""
        if amount < 0:
            raise InvalidAmountError("Cannot transfer a negative amount")
        self.burn(asset, sender, amount)
        self.mint(asset, recipient, amount)

    # Allowances
    def approve(self, asset: str, owner: str, spender: str, amount: int) -> None:
        key = (asset.lower(), owner.lower(), spender.lower())
        if amount == 0:
            self._allowances.pop(key, None)
        else:
            self._allowances[key] = amount

    def allowance(self, asset: str, owner: str, spender: str) -> int:
        return self._allowances.get((asset.lower(), owner.lower(), spender.lower()), 0)

    def transfer_from(
        self, asset: str, spender: str, owner: str, recipient: str, amount: int
    ) -> None:
        """Move tokens on behalf of ``owner`` using the spender's allowance."""
        allowed = self.allowance(asset, owner, spender)
        if allowed < amount:
            raise InsufficientBalanceError(
                f"Insufficient allowance: {spender} may spend {allowed}, needs {amount}"
            )
        self.transfer(asset, owner, recipient, amount)
        self.approve(asset, owner, spender, allowed - amount)

    # Atomicity
    def snapshot(self) -> ChainSnapshot:
        return ChainSnapshot(
            balances=dict(self._balances),
            allowances=dict(self._allowances),
            contract_state={
                address: copy.deepcopy(contract.export_state())
                for address, contract in self._contracts.items()
            },
        )

    def restore(self, snapshot: ChainSnapshot) -> None:
        """Roll balances, allowances and contract state back to ``snapshot``."""
        self._balances = dict(snapshot.balances)
        self._allowances = dict(snapshot.allowances)
        for address, state in snapshot.contract_state.items():
            contract: Optional[ExternalContract] = self._contracts.get(address)
            if contract is not None:
                contract.import_state(copy.deepcopy(state))

    @contextmanager
    def atomic(self) -> Iterator["InMemoryChain"]:
        """Undo every state change made inside the block if it raises."""
        snapshot = self.snapshot()
        try:
            yield self
        except BaseException:
            self.restore(snapshot)
            logger.debug("Chain state restored after failure")
            raise
