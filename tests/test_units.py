"""Tests for address validation and exact amount conversion."""

from decimal import Decimal

import pytest

from smart_account_client.errors import ErrorKind, InvalidAddress, InvalidAmount
from smart_account_client.wallet.units import (
    coerce_amount,
    format_amount,
    is_address,
    normalize_address,
    parse_amount,
    to_checksum,
    truncate_address,
    validate_address,
)


class TestFormatAmount:
    def test_one_ether(self):
        assert format_amount(10**18, 18) == "1.0"

    def test_usdc(self):
        assert format_amount(2_500_000, 6) == "2.5"

    def test_zero(self):
        assert format_amount(0, 18) == "0.0"
        assert format_amount(0, 0) == "0.0"

    def test_smallest_unit(self):
        assert format_amount(1, 18) == "0.000000000000000001"
        assert format_amount(1, 6) == "0.000001"

    def test_zero_decimals(self):
        assert format_amount(42, 0) == "42.0"

    def test_trailing_zeros_trimmed(self):
        assert format_amount(1_230_000, 6) == "1.23"
        assert format_amount(10_000_000, 6) == "10.0"

    def test_large_value_keeps_precision(self):
        raw = 123456789012345678901234567890
        assert format_amount(raw, 18) == "123456789012.34567890123456789"

    def test_rejects_negative(self):
        with pytest.raises(InvalidAmount):
            format_amount(-1, 18)

    def test_rejects_float(self):
        with pytest.raises(InvalidAmount):
            format_amount(1.5, 18)

    def test_rejects_bad_decimals(self):
        with pytest.raises(InvalidAmount):
            format_amount(1, -1)
        with pytest.raises(InvalidAmount):
            format_amount(1, 256)


class TestRoundTrip:
    @pytest.mark.parametrize("decimals", [0, 1, 6, 8, 18])
    @pytest.mark.parametrize(
        "raw", [0, 1, 10, 1_000_000, 2_500_000, 10**18, 10**18 + 1, 99_990_000]
    )
    def test_parse_reverses_format(self, raw, decimals):
        assert parse_amount(format_amount(raw, decimals), decimals) == raw


class TestParseAmount:
    def test_whole_and_fraction(self):
        assert parse_amount("2.5", 6) == 2_500_000
        assert parse_amount("1", 18) == 10**18
        assert parse_amount(".5", 1) == 5
        assert parse_amount("3.", 2) == 300

    def test_strips_whitespace(self):
        assert parse_amount(" 0.01 ", 6) == 10_000

    def test_extra_trailing_zeros_are_allowed(self):
        assert parse_amount("1.500000000", 6) == 1_500_000

    def test_too_many_decimals(self):
        with pytest.raises(InvalidAmount):
            parse_amount("0.0000001", 6)

    @pytest.mark.parametrize("text", ["", "-1", "abc", "1e18", "1.2.3", "0x10"])
    def test_malformed(self, text):
        with pytest.raises(InvalidAmount) as exc_info:
            parse_amount(text, 18)
        assert exc_info.value.kind is ErrorKind.INVALID_AMOUNT


class TestCoerceAmount:
    def test_int_passes_through(self):
        assert coerce_amount(5, 6) == 5

    def test_string_is_parsed(self):
        assert coerce_amount("0.5", 6) == 500_000

    def test_decimal_is_parsed(self):
        assert coerce_amount(Decimal("0.00000001"), 18) == 10_000_000_000

    def test_negative_int(self):
        with pytest.raises(InvalidAmount):
            coerce_amount(-5, 6)

    def test_bool_rejected(self):
        with pytest.raises(InvalidAmount):
            coerce_amount(True, 6)

    def test_float_rejected(self):
        with pytest.raises(InvalidAmount):
            coerce_amount(0.1, 18)


class TestAddresses:
    def test_valid(self):
        assert is_address("0x" + "a" * 40)
        assert is_address("0x036CbD53842c5426634e7929541eC2318f3dCF7e")

    @pytest.mark.parametrize(
        "value",
        [
            "0x" + "a" * 39,
            "0x" + "a" * 41,
            "a" * 42,
            "0X" + "a" * 40,
            "0x" + "g" * 40,
            "",
            None,
            123,
        ],
    )
    def test_invalid(self, value):
        assert not is_address(value)
        with pytest.raises(InvalidAddress) as exc_info:
            validate_address(value, "recipient")
        assert exc_info.value.field == "recipient"
        assert exc_info.value.kind is ErrorKind.INVALID_ADDRESS

    def test_normalize(self):
        assert normalize_address("0x" + "AB" * 20) == "0x" + "ab" * 20

    def test_checksum(self):
        assert (
            to_checksum("0x036cbd53842c5426634e7929541ec2318f3dcf7e")
            == "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
        )

    def test_truncate(self):
        assert truncate_address("0x036CbD53842c5426634e7929541eC2318f3dCF7e") == "0x036C...CF7e"
