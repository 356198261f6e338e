"""Packed multi-hop path encoding.

Layout matches concentrated-liquidity routers:
``asset(20) | fee(3) | asset(20) | fee(3) | ... | asset(20)``.
"""

from routex.assets import normalize_address
from routex.errors import InvalidRouteError

ADDRESS_SIZE = 20
FEE_SIZE = 3
HOP_SIZE = ADDRESS_SIZE + FEE_SIZE
MAX_FEE = 2**24 - 1


def encode_path(assets: list[str], fees: list[int]) -> bytes:
    """Pack ``assets`` and the fee of each hop between them."""
    if len(assets) < 2 or len(fees) != len(assets) - 1:
        raise InvalidRouteError(
            f"Path needs n assets and n-1 fees, got {len(assets)} assets and {len(fees)} fees"
        )
    out = bytearray()
    for i, asset in enumerate(assets):
        out += bytes.fromhex(normalize_address(asset)[2:])
        if i < len(fees):
            if not 0 <= fees[i] <= MAX_FEE:
                raise InvalidRouteError(f"Fee out of range: {fees[i]}")
            out += fees[i].to_bytes(FEE_SIZE, "big")
    return bytes(out)


def decode_path(path: bytes) -> tuple[list[str], list[int]]:
    """Unpack a path into its assets and fees."""
    if len(path) < ADDRESS_SIZE + HOP_SIZE or (len(path) - ADDRESS_SIZE) % HOP_SIZE:
        raise InvalidRouteError(f"Malformed path of {len(path)} bytes")
    assets = []
    fees = []
    offset = 0
    while True:
        assets.append("0x" + path[offset:offset + ADDRESS_SIZE].hex())
        offset += ADDRESS_SIZE
        if offset == len(path):
            break
        fees.append(int.from_bytes(path[offset:offset + FEE_SIZE], "big"))
        offset += FEE_SIZE
    return assets, fees


def reverse_path(path: bytes) -> bytes:
    assets, fees = decode_path(path)
    return encode_path(list(reversed(assets)), list(reversed(fees)))


def path_endpoints(path: bytes) -> tuple[str, str]:
    """First and last asset of a path."""
    assets, _ = decode_path(path)
    return assets[0], assets[-1]
