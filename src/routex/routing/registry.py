"""Keyed route table and backend registration list."""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from routex.errors import AlreadyRegisteredError, BackendNotRegisteredError, InvalidRouteError
from routex.routing.models import Route

logger = logging.getLogger(__name__)

Pair = tuple[str, str]


class RouteRegistry:
    """Routes keyed by (asset_in, asset_out)."""

    def __init__(self):
        self._routes: dict[Pair, Route] = {}

    def set(self, asset_in: str, asset_out: str, route: Route) -> None:
        """Store a route; empty routes are rejected."""
        if route.is_empty():
            raise InvalidRouteError(f"Empty {route.kind.value} route for {asset_in} -> {asset_out}")
        self._routes[(asset_in.lower(), asset_out.lower())] = route

    def get(self, asset_in: str, asset_out: str) -> Optional[Route]:
        return self._routes.get((asset_in.lower(), asset_out.lower()))

    def remove(self, asset_in: str, asset_out: str) -> Optional[Route]:
        return self._routes.pop((asset_in.lower(), asset_out.lower()), None)

    def exists(self, asset_in: str, asset_out: str) -> bool:
        return (asset_in.lower(), asset_out.lower()) in self._routes

    def items(self) -> Iterator[tuple[Pair, Route]]:
        return iter(list(self._routes.items()))

    def __len__(self) -> int:
        return len(self._routes)


@dataclass
class BackendRegistration:
    """A dynamically registered backend."""

    address: str
    name: str
    registered: bool = True


class BackendRegistry:
    """Append-only list of registrations with O(1) swap-and-pop removal."""

    def __init__(self):
        self._entries: list[BackendRegistration] = []
        self._index: dict[str, int] = {}

    def register(self, address: str, name: str) -> BackendRegistration:
        address = address.lower()
        if address in self._index:
            raise AlreadyRegisteredError(f"Backend {address} already registered")
        entry = BackendRegistration(address=address, name=name)
        self._index[address] = len(self._entries)
        self._entries.append(entry)
        return entry

    def remove(self, address: str) -> BackendRegistration:
        """Remove by moving the last entry into the freed slot."""
        address = address.lower()
        position = self._index.pop(address, None)
        if position is None:
            raise BackendNotRegisteredError(f"Backend {address} is not registered")
        removed = self._entries[position]
        last = self._entries.pop()
        if last is not removed:
            self._entries[position] = last
            self._index[last.address] = position
        removed.registered = False
        return removed

    def is_registered(self, address: str) -> bool:
        return address.lower() in self._index

    def get(self, address: str) -> Optional[BackendRegistration]:
        position = self._index.get(address.lower())
        return None if position is None else self._entries[position]

    def entries(self) -> list[BackendRegistration]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
