"""Swap Engine.

Primary: quote-bounded execution through the configured route.
Fallback: one retry bounded by configured or category-default slippage.

Registered backends run in a sandbox: selector blacklist, gas ceiling and
balance-delta accounting.
"""

from routex.swap_engine.engine import SwapEngine
from routex.swap_engine.sandbox import BackendSandbox

__all__ = [
    "SwapEngine",
    "BackendSandbox",
]
