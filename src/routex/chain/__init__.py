"""Token, allowance and contract state the engine operates on."""

from routex.chain.contracts import ExternalContract, WrappedNative
from routex.chain.state import ChainSnapshot, InMemoryChain

__all__ = [
    "ChainSnapshot",
    "ExternalContract",
    "InMemoryChain",
    "WrappedNative",
]
