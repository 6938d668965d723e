"""ERC-20 token metadata.

A :class:`TokenDescriptor` is either configured statically or resolved from
the token contract's ``name``/``symbol``/``decimals`` views. Fields that
cannot be read fall back to placeholders, which are display values only;
callers that convert amounts resolve with ``strict=True``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Iterable

from smart_account_client.errors import ReadFailure
from smart_account_client.wallet.encoding import AbiFunction, find_function
from smart_account_client.wallet.units import MAX_DECIMALS, normalize_address

if TYPE_CHECKING:
    from smart_account_client.wallet.capabilities import ChainReadClient

logger = logging.getLogger("smart_account_client.wallet.tokens")

UNKNOWN_TOKEN_NAME = "Unknown Token"
UNKNOWN_TOKEN_SYMBOL = "?"
DEFAULT_TOKEN_DECIMALS = 18


ERC20_ABI: list[dict] = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"internalType": "address", "name": "account", "type": "address"}],
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
    },
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"internalType": "address", "name": "spender", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
    },
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"internalType": "address", "name": "recipient", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
    },
    {
        "name": "transferFrom",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"internalType": "address", "name": "sender", "type": "address"},
            {"internalType": "address", "name": "recipient", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
    },
    {
        "name": "name",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"internalType": "string", "name": "", "type": "string"}],
    },
    {
        "name": "symbol",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"internalType": "string", "name": "", "type": "string"}],
    },
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"internalType": "uint8", "name": "", "type": "uint8"}],
    },
]


@lru_cache(maxsize=None)
def erc20_function(name: str) -> AbiFunction:
    """Return the parsed ERC-20 ABI entry called *name*."""
    return find_function(ERC20_ABI, name)


@dataclass(frozen=True, eq=False)
class TokenDescriptor:
    """Static metadata for a tracked fungible token.

    Two descriptors are equal when their addresses match case-insensitively.
    """

    address: str
    decimals: int
    symbol: str
    name: str

    @property
    def key(self) -> str:
        return self.address.lower()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TokenDescriptor):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


def placeholder_token(address: str) -> TokenDescriptor:
    return TokenDescriptor(
        address=address,
        decimals=DEFAULT_TOKEN_DECIMALS,
        symbol=UNKNOWN_TOKEN_SYMBOL,
        name=UNKNOWN_TOKEN_NAME,
    )


class TokenRegistry:
    """Per-session cache of token descriptors, keyed by lower-cased address."""

    def __init__(self, static_tokens: Iterable[TokenDescriptor] = ()) -> None:
        self._static: dict[str, TokenDescriptor] = {t.key: t for t in static_tokens}
        self._cache: dict[str, TokenDescriptor] = {}

    @property
    def tracked(self) -> list[TokenDescriptor]:
        """Statically configured tokens, in configuration order."""
        return list(self._static.values())

    def get(self, address: str) -> TokenDescriptor | None:
        key = normalize_address(address)
        return self._static.get(key) or self._cache.get(key)

    def clear(self) -> None:
        self._cache.clear()

    async def resolve(
        self, address: str, client: ChainReadClient | None, *, strict: bool = False
    ) -> TokenDescriptor:
        """Return the descriptor for *address*, reading it from chain if needed.

        Raises :class:`InvalidAddress` for a malformed address; every other
        failure degrades to placeholder values. With *strict*, a token whose
        ``decimals`` cannot be read raises :class:`ReadFailure` instead, since
        a placeholder would scale amounts. Only fully resolved descriptors
        are cached.
        """
        known = self.get(address)
        if known is not None:
            return known

        if client is None:
            if strict:
                raise ReadFailure(
                    f"Cannot read decimals of token {address}: no chain client is bound"
                )
            logger.warning(f"No chain client bound; using placeholders for token {address}")
            return placeholder_token(address)

        name, symbol, decimals = await asyncio.gather(
            client.read_contract(address, erc20_function("name")),
            client.read_contract(address, erc20_function("symbol")),
            client.read_contract(address, erc20_function("decimals")),
            return_exceptions=True,
        )

        complete = True
        if not isinstance(name, str) or not name:
            logger.warning(f"Could not read name() of token {address}: {name!r}")
            name, complete = UNKNOWN_TOKEN_NAME, False
        if not isinstance(symbol, str) or not symbol:
            logger.warning(f"Could not read symbol() of token {address}: {symbol!r}")
            symbol, complete = UNKNOWN_TOKEN_SYMBOL, False
        if (
            isinstance(decimals, bool)
            or not isinstance(decimals, int)
            or not 0 <= decimals <= MAX_DECIMALS
        ):
            if strict:
                raise ReadFailure(f"Could not read decimals() of token {address}: {decimals!r}")
            logger.warning(f"Could not read decimals() of token {address}: {decimals!r}")
            decimals, complete = DEFAULT_TOKEN_DECIMALS, False

        descriptor = TokenDescriptor(address=address, decimals=decimals, symbol=symbol, name=name)
        if complete:
            self._cache[descriptor.key] = descriptor
        return descriptor
