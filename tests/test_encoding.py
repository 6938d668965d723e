"""Tests for ABI call encoding."""

import pytest

from smart_account_client.errors import EncodingError, ErrorKind
from smart_account_client.wallet.encoding import (
    AbiFunction,
    encode_call,
    encode_call_hex,
    find_function,
)
from smart_account_client.wallet.tokens import ERC20_ABI, erc20_function

RECIPIENT = "0x" + "b" * 40
TOKEN = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"


def _word(hex_value: str) -> str:
    return hex_value.rjust(64, "0")


class TestAbiFunction:
    def test_signature_and_selector(self):
        fn = erc20_function("transfer")
        assert fn.signature == "transfer(address,uint256)"
        assert fn.selector.hex() == "a9059cbb"

    def test_approve_selector(self):
        assert erc20_function("approve").selector.hex() == "095ea7b3"

    def test_view_flag(self):
        assert erc20_function("balanceOf").is_view
        assert not erc20_function("transfer").is_view

    def test_find_missing_function(self):
        with pytest.raises(EncodingError):
            find_function(ERC20_ABI, "mint")

    def test_rejects_non_function_entry(self):
        with pytest.raises(EncodingError):
            AbiFunction.from_abi({"type": "event", "name": "Transfer", "inputs": []})

    def test_tuple_signature(self):
        fn = AbiFunction.from_abi(
            {
                "name": "execute",
                "type": "function",
                "inputs": [
                    {
                        "name": "call",
                        "type": "tuple",
                        "components": [
                            {"name": "to", "type": "address"},
                            {"name": "value", "type": "uint256"},
                        ],
                    },
                    {"name": "ids", "type": "uint256[]"},
                ],
            }
        )
        assert fn.signature == "execute((address,uint256),uint256[])"

    def test_round_trip_to_abi(self):
        fn = erc20_function("transferFrom")
        assert AbiFunction.from_abi(fn.to_abi()) == fn


class TestEncodeCall:
    def test_transfer_layout(self):
        data = encode_call_hex(erc20_function("transfer"), [RECIPIENT, 1000])
        assert data == "0xa9059cbb" + _word("b" * 40) + _word("3e8")

    def test_deterministic(self):
        fn = erc20_function("transfer")
        assert encode_call(fn, [RECIPIENT, 5]) == encode_call(fn, [RECIPIENT, 5])

    def test_accepts_raw_abi_entry(self):
        entry = next(e for e in ERC20_ABI if e["name"] == "approve")
        assert encode_call(entry, [RECIPIENT, 1]) == encode_call(
            erc20_function("approve"), [RECIPIENT, 1]
        )

    def test_address_case_does_not_matter(self):
        fn = erc20_function("transfer")
        assert encode_call(fn, [TOKEN, 1]) == encode_call(fn, [TOKEN.lower(), 1])
        assert encode_call(fn, ["0x" + "B" * 40, 1]) == encode_call(fn, [RECIPIENT, 1])

    def test_no_arguments(self):
        assert encode_call(erc20_function("decimals")).hex() == "313ce567"

    def test_missing_argument_names_parameter(self):
        with pytest.raises(EncodingError) as exc_info:
            encode_call(erc20_function("transfer"), [RECIPIENT])
        assert exc_info.value.parameter == "amount"
        assert "amount" in str(exc_info.value)
        assert exc_info.value.kind is ErrorKind.ENCODING_ERROR

    def test_extra_argument(self):
        with pytest.raises(EncodingError) as exc_info:
            encode_call(erc20_function("transfer"), [RECIPIENT, 1, 2])
        assert exc_info.value.parameter == "#2"

    def test_wrong_type_names_parameter(self):
        with pytest.raises(EncodingError) as exc_info:
            encode_call(erc20_function("transfer"), ["not-an-address", 1])
        assert exc_info.value.parameter == "recipient"

    def test_negative_uint(self):
        with pytest.raises(EncodingError) as exc_info:
            encode_call(erc20_function("approve"), [RECIPIENT, -1])
        assert exc_info.value.parameter == "amount"

    def test_unnamed_parameter_uses_position(self):
        fn = AbiFunction.from_abi(
            {"name": "f", "type": "function", "inputs": [{"name": "", "type": "bool"}]}
        )
        with pytest.raises(EncodingError) as exc_info:
            encode_call(fn, ["yes"])
        assert exc_info.value.parameter == "#0"
