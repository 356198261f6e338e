"""Security guards for dynamically registered backends.

Call data forwarded to a registered backend is opaque to the engine, so the
leading function selector is checked against a blacklist of signatures that
could destroy, take over or re-point a contract. Operator secrets are bound
to the engine address so a secret hash from one deployment cannot be
replayed against another.
"""

import hmac
import logging
from typing import Optional

from eth_utils import function_signature_to_4byte_selector, keccak

from routex.errors import DangerousSelectorError, InvalidSecretError, ValidationError

logger = logging.getLogger(__name__)

SELECTOR_SIZE = 4

# Signatures that must never reach a registered backend
DANGEROUS_SIGNATURES = [
    # self-destruction
    "selfdestruct(address)",
    "suicide(address)",
    "destroy()",
    "kill()",
    # delegated execution
    "delegatecall(address,bytes)",
    "callcode(address,bytes)",
    "execute(address,bytes)",
    "multicall(bytes[])",
    # contract creation
    "create(bytes)",
    "create2(bytes32,bytes)",
    "deploy(bytes)",
    # ownership / upgrades
    "transferOwnership(address)",
    "renounceOwnership()",
    "setOwner(address)",
    "upgradeTo(address)",
    "upgradeToAndCall(address,bytes)",
]

DANGEROUS_SELECTORS: dict[bytes, str] = {
    function_signature_to_4byte_selector(signature): signature
    for signature in DANGEROUS_SIGNATURES
}

# Counter for blocked attempts (for monitoring)
_blocked_attempts: dict[str, int] = {}


def log_blocked_attempt(signature: str, backend: str = "") -> None:
    """Record and log a rejected call."""
    _blocked_attempts[signature] = _blocked_attempts.get(signature, 0) + 1
    logger.warning(
        "SECURITY BLOCK: call to '%s' on backend %s rejected. Attempt #%d.",
        signature,
        backend or "unknown",
        _blocked_attempts[signature],
    )


def get_blocked_attempts() -> dict[str, int]:
    """Get count of blocked attempts per signature."""
    return _blocked_attempts.copy()


def reset_blocked_attempts() -> None:
    _blocked_attempts.clear()


def selector_of(call_data: bytes) -> bytes:
    """Leading 4-byte function selector."""
    if len(call_data) < SELECTOR_SIZE:
        raise ValidationError("Call data shorter than a function selector", code="invalid_call_data")
    return bytes(call_data[:SELECTOR_SIZE])


def check_call_data(call_data: bytes, backend: str = "") -> bytes:
    """Reject call data whose selector is blacklisted; returns the selector."""
    selector = selector_of(call_data)
    signature = DANGEROUS_SELECTORS.get(selector)
    if signature is not None:
        log_blocked_attempt(signature, backend)
        raise DangerousSelectorError(f"Call data uses blocked selector 0x{selector.hex()} ({signature})")
    return selector


def list_dangerous_selectors() -> list[dict]:
    return [
        {"selector": "0x" + selector.hex(), "signature": signature}
        for selector, signature in DANGEROUS_SELECTORS.items()
    ]


def hash_secret(secret: str, engine_address: str) -> bytes:
    """Hash of the operator secret bound to one engine deployment."""
    return keccak(secret.encode() + bytes.fromhex(engine_address.lower().removeprefix("0x")))


def verify_secret(secret: Optional[str], expected_hash: Optional[bytes], engine_address: str) -> None:
    """Raise unless ``secret`` matches the stored hash for this engine."""
    if expected_hash is None:
        raise InvalidSecretError("Operator secret is not configured")
    if not secret or not hmac.compare_digest(hash_secret(secret, engine_address), expected_hash):
        raise InvalidSecretError("Invalid operator secret")
