"""Tests for asset normalization and the packed path codec."""

import pytest

from routex.assets import NATIVE_ASSET, apply_bps, normalize_address, normalize_amount
from routex.errors import InvalidRouteError, ValidationError
from routex.routing.path import decode_path, encode_path, path_endpoints, reverse_path

from conftest import DAI, USDC, USDT


class TestNormalizeAmount:
    """Tests for decimal rescaling."""

    def test_same_decimals_unchanged(self):
        assert normalize_amount(123_456, 18, 18) == 123_456

    def test_scale_up(self):
        assert normalize_amount(1_000_000, 6, 18) == 10**18

    def test_scale_down_truncates(self):
        assert normalize_amount(1_999_999_999_999, 18, 6) == 1

    def test_scale_down_to_zero(self):
        assert normalize_amount(10**11, 18, 6) == 0

    @pytest.mark.parametrize(
        "amount,low,high",
        [
            (1, 6, 18),
            (123_456_789, 8, 18),
            (10**30 + 7, 0, 36),
            (42, 18, 18),
        ],
    )
    def test_round_trip_through_higher_precision(self, amount, low, high):
        assert normalize_amount(normalize_amount(amount, low, high), high, low) == amount

    @pytest.mark.parametrize(
        "amount,high,low",
        [
            (1_234_567_890_123_456_789, 18, 6),
            (999, 8, 6),
            (10**18, 18, 0),
        ],
    )
    def test_round_trip_through_lower_precision_loses_remainder(self, amount, high, low):
        scale = 10 ** (high - low)
        assert normalize_amount(normalize_amount(amount, high, low), low, high) == amount - amount % scale


class TestHelpers:
    def test_apply_bps(self):
        assert apply_bps(10_000, 50) == 9_950
        assert apply_bps(10**18, 0) == 10**18
        assert apply_bps(10**18, 10_000) == 0

    def test_normalize_address_lowercases(self):
        assert normalize_address("0x" + "EE" * 20) == NATIVE_ASSET

    @pytest.mark.parametrize("bad", ["", "0x123", "not-an-address", None])
    def test_normalize_address_rejects(self, bad):
        with pytest.raises(ValidationError) as exc_info:
            normalize_address(bad)
        assert exc_info.value.code == "invalid_address"


class TestPath:
    """Tests for packed multi-hop paths."""

    def test_encode_layout(self):
        path = encode_path([USDC, USDT, DAI], [100, 3000])

        assert len(path) == 20 + 3 + 20 + 3 + 20
        assert path[20:23] == (100).to_bytes(3, "big")
        assert path[43:46] == (3000).to_bytes(3, "big")

    def test_decode(self):
        assets, fees = decode_path(encode_path([USDC, USDT, DAI], [100, 500]))

        assert assets == [USDC, USDT, DAI]
        assert fees == [100, 500]

    def test_reverse(self):
        reversed_path = reverse_path(encode_path([USDC, USDT, DAI], [100, 500]))

        assert decode_path(reversed_path) == ([DAI, USDT, USDC], [500, 100])

    def test_endpoints(self):
        assert path_endpoints(encode_path([USDC, USDT, DAI], [100, 500])) == (USDC, DAI)

    def test_fee_count_must_match(self):
        with pytest.raises(InvalidRouteError):
            encode_path([USDC, USDT], [100, 500])

    def test_fee_out_of_range(self):
        with pytest.raises(InvalidRouteError):
            encode_path([USDC, USDT], [2**24])

    @pytest.mark.parametrize("size", [0, 20, 42, 44])
    def test_decode_rejects_malformed(self, size):
        with pytest.raises(InvalidRouteError):
            decode_path(b"\x01" * size)
