"""Liquidity backends.

- base: abstract pool, path router, minter and estimator interfaces
- simulated: fixed-rate backends for dry-run deployments and tests
- remote: HTTP quote service used as a read-only estimator
"""

from routex.backends.base import Estimator, MinterBackend, PathRouterBackend, PoolBackend
from routex.backends.remote import RemoteEstimator
from routex.backends.simulated import (
    SimulatedDex,
    SimulatedMinter,
    SimulatedPathRouter,
    SimulatedPool,
    encode_dex_swap,
)

__all__ = [
    # Interfaces
    "Estimator",
    "PoolBackend",
    "PathRouterBackend",
    "MinterBackend",
    # Implementations
    "RemoteEstimator",
    "SimulatedPool",
    "SimulatedPathRouter",
    "SimulatedMinter",
    "SimulatedDex",
    "encode_dex_swap",
]
