"""Utility modules for routex."""

from routex.utils.locks import ConfigLock, ReentrancyGuard

__all__ = ["ConfigLock", "ReentrancyGuard"]
