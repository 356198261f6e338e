"""Multi-protocol asset swap routing engine."""

__version__ = "0.1.0"
