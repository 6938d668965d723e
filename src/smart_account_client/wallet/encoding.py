"""Contract call encoding for any ABI function entry.

Arguments are checked against the described inputs (count, then type
compatibility per parameter) before anything is encoded, so a mismatch is
reported as an :class:`EncodingError` naming the offending parameter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from eth_abi import encode, is_encodable, is_encodable_type
from eth_utils import function_signature_to_4byte_selector

from smart_account_client.errors import EncodingError

logger = logging.getLogger("smart_account_client.wallet.encoding")


@dataclass(frozen=True)
class AbiParam:
    """One typed input or output of an ABI function."""

    name: str
    type: str
    components: tuple[AbiParam, ...] = ()

    @classmethod
    def from_abi(cls, entry: dict) -> AbiParam:
        return cls(
            name=entry.get("name", ""),
            type=entry["type"],
            components=tuple(cls.from_abi(c) for c in entry.get("components", ())),
        )

    @property
    def canonical_type(self) -> str:
        """Type string as used in signatures, with tuples expanded."""
        if self.type.startswith("tuple"):
            inner = ",".join(c.canonical_type for c in self.components)
            return f"({inner}){self.type[len('tuple'):]}"
        return self.type

    def to_abi(self) -> dict:
        entry: dict = {"name": self.name, "type": self.type}
        if self.components:
            entry["components"] = [c.to_abi() for c in self.components]
        return entry


@dataclass(frozen=True)
class AbiFunction:
    """Minimal description of a contract function: name and typed inputs."""

    name: str
    inputs: tuple[AbiParam, ...] = ()
    outputs: tuple[AbiParam, ...] = ()
    state_mutability: str = "nonpayable"

    @classmethod
    def from_abi(cls, entry: dict) -> AbiFunction:
        if entry.get("type", "function") != "function":
            raise EncodingError(f"ABI entry {entry.get('name')!r} is not a function")
        if not entry.get("name"):
            raise EncodingError("ABI function entry has no name")
        return cls(
            name=entry["name"],
            inputs=tuple(AbiParam.from_abi(p) for p in entry.get("inputs", ())),
            outputs=tuple(AbiParam.from_abi(p) for p in entry.get("outputs", ())),
            state_mutability=entry.get("stateMutability", "nonpayable"),
        )

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.canonical_type for p in self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    @property
    def is_view(self) -> bool:
        return self.state_mutability in ("view", "pure")

    def to_abi(self) -> dict:
        return {
            "name": self.name,
            "type": "function",
            "stateMutability": self.state_mutability,
            "inputs": [p.to_abi() for p in self.inputs],
            "outputs": [p.to_abi() for p in self.outputs],
        }


def find_function(abi: Iterable[dict], name: str) -> AbiFunction:
    """Return the first function entry called *name* from a JSON ABI."""
    for entry in abi:
        if entry.get("type", "function") == "function" and entry.get("name") == name:
            return AbiFunction.from_abi(entry)
    raise EncodingError(f"Function {name!r} not found in ABI")


def _param_label(param: AbiParam, index: int) -> str:
    return param.name or f"#{index}"


def _prepare(param: AbiParam, value: Any) -> Any:
    # Accept lower-case or checksummed hex; eth_abi rejects mixed case that
    # fails the EIP-55 check.
    if param.type == "address" and isinstance(value, str):
        return value.lower()
    return value


def encode_arguments(function: AbiFunction, args: Sequence[Any]) -> bytes:
    """ABI-encode *args* against the inputs of *function* (no selector)."""
    inputs = function.inputs
    if len(args) != len(inputs):
        if len(args) < len(inputs):
            missing = inputs[len(args)]
            label = _param_label(missing, len(args))
            raise EncodingError(
                f"{function.signature} expects {len(inputs)} arguments, got {len(args)}: "
                f"missing parameter '{label}'",
                parameter=label,
            )
        label = f"#{len(inputs)}"
        raise EncodingError(
            f"{function.signature} expects {len(inputs)} arguments, got {len(args)}: "
            f"unexpected argument {label}",
            parameter=label,
        )

    types: list[str] = []
    values: list[Any] = []
    for index, (param, raw) in enumerate(zip(inputs, args)):
        label = _param_label(param, index)
        abi_type = param.canonical_type
        if not is_encodable_type(abi_type):
            raise EncodingError(
                f"Parameter '{label}' has unsupported type {abi_type!r}",
                parameter=label,
            )
        value = _prepare(param, raw)
        if not is_encodable(abi_type, value):
            raise EncodingError(
                f"Argument for parameter '{label}' is not a valid {abi_type}: {raw!r}",
                parameter=label,
            )
        types.append(abi_type)
        values.append(value)

    return encode(types, values)


def encode_call(function: AbiFunction | dict, args: Sequence[Any] = ()) -> bytes:
    """Return selector + encoded arguments for calling *function* with *args*."""
    if isinstance(function, dict):
        function = AbiFunction.from_abi(function)
    data = function.selector + encode_arguments(function, list(args))
    logger.debug(f"Encoded {function.signature} call ({len(data)} bytes)")
    return data


def encode_call_hex(function: AbiFunction | dict, args: Sequence[Any] = ()) -> str:
    """Same as :func:`encode_call`, as a ``0x``-prefixed hex string."""
    return "0x" + encode_call(function, args).hex()
