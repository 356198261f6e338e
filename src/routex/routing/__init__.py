"""Routing module: route tables, quotes, slippage bounds and executors.

Backend kinds:
- DirectPool: one pool, addressed by fee tier or coin indices
- MultiHopPath: packed path through a router
- DirectMint: native asset deposit into a minting contract
- CompositeSteps: ordered wrap/unwrap/mint/swap actions
"""

from routex.routing.auto import AutoRouter, RouteLeg, RoutePlan, RouteStrategy
from routex.routing.executors import RouteExecutor
from routex.routing.models import (
    AttemptOutcome,
    AttemptResult,
    BackendKind,
    CompositeRoute,
    CompositeStep,
    DirectMintRoute,
    DirectPoolRoute,
    MultiHopRoute,
    Quote,
    Route,
    StepAction,
    SwapCompleted,
    SwapRequest,
    SwapResult,
)
from routex.routing.path import decode_path, encode_path, reverse_path
from routex.routing.quotes import QuoteService
from routex.routing.registry import BackendRegistration, BackendRegistry, RouteRegistry
from routex.routing.slippage import SlippagePolicy
from routex.routing.store import ConfigStore

__all__ = [
    # Models
    "AttemptOutcome",
    "AttemptResult",
    "BackendKind",
    "CompositeRoute",
    "CompositeStep",
    "DirectMintRoute",
    "DirectPoolRoute",
    "MultiHopRoute",
    "Quote",
    "Route",
    "StepAction",
    "SwapCompleted",
    "SwapRequest",
    "SwapResult",
    # Paths
    "encode_path",
    "decode_path",
    "reverse_path",
    # Services
    "AutoRouter",
    "RouteLeg",
    "RoutePlan",
    "RouteStrategy",
    "RouteExecutor",
    "QuoteService",
    "SlippagePolicy",
    # Configuration
    "BackendRegistration",
    "BackendRegistry",
    "ConfigStore",
    "RouteRegistry",
]
