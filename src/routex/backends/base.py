"""Abstract interfaces for external liquidity backends.

Backends are untrusted: the engine never relies on the amounts they return
and measures what actually arrived instead.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from routex.chain.contracts import ExternalContract

if TYPE_CHECKING:
    from routex.chain.state import InMemoryChain
    from routex.routing.models import DirectPoolRoute


class Estimator(ABC):
    """Read-only price estimation entry points."""

    @abstractmethod
    async def estimate_single(
        self,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        route: "DirectPoolRoute",
    ) -> int:
        """Expected output of a single-hop swap."""

    @abstractmethod
    async def estimate_path(self, path: bytes, amount_in: int) -> int:
        """Expected output of a packed multi-hop path."""


class PoolBackend(ExternalContract, Estimator):
    """Pool addressed by fee tier or by coin index."""

    @property
    @abstractmethod
    def coins(self) -> list[str]:
        """Assets held by the pool, in index order."""

    @abstractmethod
    async def swap(
        self,
        chain: "InMemoryChain",
        sender: str,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        min_amount_out: int,
        route: "DirectPoolRoute",
    ) -> int:
        """Pull ``amount_in`` from ``sender`` and pay out ``asset_out``.

        Returns the amount the pool claims to have sent.
        """

    async def estimate_path(self, path: bytes, amount_in: int) -> int:
        raise NotImplementedError(f"{type(self).__name__} does not quote paths")


class PathRouterBackend(ExternalContract, Estimator):
    """Router executing packed multi-hop paths."""

    @abstractmethod
    async def swap_path(
        self,
        chain: "InMemoryChain",
        sender: str,
        path: bytes,
        amount_in: int,
        min_amount_out: int,
    ) -> int:
        """Execute the path for ``sender``; returns the claimed output."""

    async def estimate_single(self, asset_in, asset_out, amount_in, route) -> int:
        raise NotImplementedError(f"{type(self).__name__} only quotes paths")


class MinterBackend(ExternalContract):
    """Accepts native asset deposits and mints derivative shares."""

    @property
    @abstractmethod
    def share_token(self) -> str:
        """Address of the minted share token."""

    @abstractmethod
    async def deposit(self, chain: "InMemoryChain", sender: str, amount: int) -> int:
        """Take ``amount`` of native asset from ``sender``; returns claimed shares."""
