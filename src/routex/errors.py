"""Named failure reasons raised by the routing engine.

Every error carries a stable ``code`` so callers (and the HTTP layer) can
surface a specific reason instead of a generic failure.
"""

from typing import Optional


class RoutexError(Exception):
    """Base class for all engine errors."""

    code = "routex_error"

    def __init__(self, message: str = "", code: Optional[str] = None):
        self.message = message or self.__class__.__doc__ or self.code
        if code:
            self.code = code
        super().__init__(self.message)


# ======================
# Input validation
# ======================


class ValidationError(RoutexError):
    """Request rejected before any external call."""

    code = "invalid_request"


class InvalidAmountError(ValidationError):
    """Amount must be greater than zero."""

    code = "invalid_amount"


class SameAssetError(ValidationError):
    """Input and output asset are the same."""

    code = "same_asset"


class CrossCategoryError(ValidationError):
    """Assets belong to different categories."""

    code = "cross_category"


class LengthMismatchError(ValidationError):
    """Batch arguments have different lengths."""

    code = "length_mismatch"


class InvalidRouteError(ValidationError):
    """Route configuration is empty or malformed."""

    code = "invalid_route"


class InvalidSlippageError(ValidationError):
    """Slippage tolerance above the system maximum."""

    code = "invalid_slippage"


# ======================
# Authorization
# ======================


class AuthorizationError(RoutexError):
    """Caller is not allowed to perform this operation."""

    code = "unauthorized"


class UnauthorizedError(AuthorizationError):
    """Caller lacks the required role."""

    code = "unauthorized"


class InvalidSecretError(AuthorizationError):
    """Operator secret does not match."""

    code = "invalid_secret"


# ======================
# Configuration absence
# ======================


class ConfigurationError(RoutexError):
    """Required configuration is missing."""

    code = "configuration_missing"


class NoRouteFoundError(ConfigurationError):
    """No route found for the asset pair."""

    code = "no_route_found"


class NoFallbackBoundError(ConfigurationError):
    """No fallback slippage bound available."""

    code = "no_fallback_bound"


class UnsupportedAssetError(ConfigurationError):
    """Asset is not supported."""

    code = "unsupported_asset"


class NoCodeError(ConfigurationError):
    """Address does not host executable code."""

    code = "no_code"


class AlreadyRegisteredError(ConfigurationError):
    """Backend already registered."""

    code = "already_registered"


# ======================
# Execution
# ======================


class ExecutionError(RoutexError):
    """Swap execution failed."""

    code = "execution_failed"


class SwapFailedError(ExecutionError):
    """Swap failed on the fallback path."""

    code = "swap_failed"


class InsufficientOutputError(ExecutionError):
    """Realised output below the minimum bound."""

    code = "insufficient_output"

    def __init__(self, amount_out: int, min_amount_out: int):
        self.amount_out = amount_out
        self.min_amount_out = min_amount_out
        super().__init__(f"Insufficient output: got {amount_out}, need at least {min_amount_out}")


class BackendCallError(ExecutionError):
    """Registered backend call failed."""

    code = "backend_call_failed"


class InsufficientBalanceError(ExecutionError):
    """Holder balance or allowance too low."""

    code = "insufficient_balance"


# ======================
# Security
# ======================


class SecurityError(RoutexError):
    """Security violation."""

    code = "security_violation"


class DangerousSelectorError(SecurityError):
    """Call data uses a blacklisted function selector."""

    code = "dangerous_selector"


class BackendNotRegisteredError(SecurityError):
    """Backend is not registered."""

    code = "backend_not_registered"


# ======================
# State / circuit breakers
# ======================


class StateError(RoutexError):
    """Operation not allowed in the current state."""

    code = "invalid_state"


class PausedError(StateError):
    """Engine is paused."""

    code = "paused"


class NotPausedError(StateError):
    """Engine must be paused for this operation."""

    code = "not_paused"


class ProtocolPausedError(StateError):
    """Protocol is paused."""

    code = "protocol_paused"


class PoolPausedError(StateError):
    """Pool is paused."""

    code = "pool_paused"


class PoolNotWhitelistedError(StateError):
    """Pool is not whitelisted."""

    code = "pool_not_whitelisted"


class ConfigLockedError(StateError):
    """Configuration key is reserved by another update."""

    code = "config_locked"


class ReentrancyError(StateError):
    """Nested call into a state-mutating entry point."""

    code = "reentrant_call"


# ======================
# Backends
# ======================


class BackendError(Exception):
    """Raised by an external backend; the engine treats it as untrusted failure."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class OutOfGasError(BackendError):
    """Backend call exceeded the gas ceiling."""

    def __init__(self, used: int, limit: int):
        self.used = used
        self.limit = limit
        super().__init__(f"out of gas: needs {used}, limit {limit}")
