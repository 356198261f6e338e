"""Concurrency control for engine entry points.

- ConfigLock: time-boxed reservation per configuration key, so two updates
  to the same key cannot interleave.
- ReentrancyGuard: rejects nested calls from within an in-progress entry
  point and serializes independent callers.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Callable, Hashable, Iterator

from routex.errors import ConfigLockedError, ReentrancyError

logger = logging.getLogger(__name__)


class ConfigLock:
    """Map from configuration key to reservation expiry.

    A reservation blocks other updates to the same key until it is released
    or its window elapses.
    """

    def __init__(self, window_seconds: float = 300.0, clock: Callable[[], float] = time.time):
        self.window_seconds = window_seconds
        self.clock = clock
        self._reservations: dict[Hashable, float] = {}

    def is_locked(self, key: Hashable) -> bool:
        expiry = self._reservations.get(key)
        return expiry is not None and expiry > self.clock()

    def reserve(self, key: Hashable, operation: str = "config_update") -> None:
        """Reserve ``key``; raises if another unexpired reservation holds it."""
        if self.is_locked(key):
            logger.warning(f"Config key {key} is reserved, rejecting {operation}")
            raise ConfigLockedError(f"Configuration {key} is locked by another update")
        self._reservations[key] = self.clock() + self.window_seconds
        logger.debug(f"Config key reserved {key}: {operation}")

    def release(self, key: Hashable) -> None:
        self._reservations.pop(key, None)

    @contextmanager
    def hold(self, key: Hashable, operation: str = "config_update") -> Iterator[None]:
        """Reserve ``key`` for the block; always released on exit."""
        self.reserve(key, operation)
        try:
            yield
        finally:
            self.release(key)
            logger.debug(f"Config key released {key}: {operation}")

    def clear(self) -> None:
        """Drop all reservations (useful for testing)."""
        self._reservations.clear()


class ReentrancyGuard:
    """Guard for state-mutating entry points.

    A nested call made while an entry point is running in the same logical
    flow (for example a backend calling back into the engine) raises
    ``ReentrancyError``. Independent callers wait their turn.
    """

    def __init__(self, name: str = "engine"):
        self.name = name
        self._lock = asyncio.Lock()
        self._entered: ContextVar[bool] = ContextVar(f"routex_guard_{name}_{id(self)}", default=False)

    @property
    def entered(self) -> bool:
        return self._entered.get()

    @asynccontextmanager
    async def enter(self, operation: str = "call") -> AsyncIterator[None]:
        if self._entered.get():
            logger.warning(f"Re-entrant call blocked on {self.name}: {operation}")
            raise ReentrancyError(f"Re-entrant call to {operation}")

        async with self._lock:
            token = self._entered.set(True)
            try:
                yield
            finally:
                self._entered.reset(token)
