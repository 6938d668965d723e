"""Native and ERC-20 balance reads.

Balances are display data. Input errors (malformed addresses) are rejected
before any network call, but RPC failures on a token balance degrade to zero
with a warning, and in :meth:`BalanceReader.read_all` every balance degrades
independently of its siblings.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from smart_account_client.errors import ClientUnavailable, ReadFailure
from smart_account_client.wallet.capabilities import ChainReadClient
from smart_account_client.wallet.models import BalanceEntry
from smart_account_client.wallet.tokens import TokenDescriptor, erc20_function
from smart_account_client.wallet.units import format_amount, validate_address

logger = logging.getLogger("smart_account_client.wallet.balances")

WarningCallback = Callable[[str], None]

__all__ = ["BalanceReader", "BalanceSnapshot", "format_amount"]


@dataclass(frozen=True)
class BalanceSnapshot:
    """Result of one refresh: native balance plus one entry per token key."""

    native: BalanceEntry
    tokens: dict[str, BalanceEntry] = field(default_factory=dict)


class BalanceReader:
    """Reads balances through an injected :class:`ChainReadClient`."""

    def __init__(
        self,
        client: ChainReadClient | None,
        *,
        native_decimals: int = 18,
        on_warning: WarningCallback | None = None,
    ) -> None:
        self.client = client
        self.native_decimals = native_decimals
        self._on_warning = on_warning

    def _require_client(self) -> ChainReadClient:
        if self.client is None:
            raise ClientUnavailable("No chain client is bound")
        return self.client

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self._on_warning is not None:
            self._on_warning(message)

    async def read_native_balance(self, address: str) -> int:
        """Native balance of *address*.

        Raises :class:`ClientUnavailable` without a client and
        :class:`ReadFailure` when the RPC call fails.
        """
        validate_address(address)
        client = self._require_client()
        try:
            raw = await client.get_balance(address)
        except Exception as exc:
            raise ReadFailure(f"Failed to read native balance of {address}: {exc}") from exc
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            raise ReadFailure(f"Invalid native balance for {address}: {raw!r}")
        return raw

    async def read_token_balance(self, token_address: str, owner_address: str) -> int:
        """ERC-20 ``balanceOf(owner)``; zero with a warning if the read fails."""
        validate_address(token_address, "token address")
        validate_address(owner_address, "owner address")
        client = self._require_client()
        try:
            raw = await client.read_contract(
                token_address, erc20_function("balanceOf"), [owner_address]
            )
        except Exception as exc:
            self._warn(f"Failed to fetch balance of token {token_address}: {exc}")
            return 0
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            self._warn(f"Invalid balance of token {token_address}: {raw!r}")
            return 0
        return raw

    async def _native_entry(self, owner: str) -> BalanceEntry:
        raw = await self.read_native_balance(owner)
        return BalanceEntry(raw=raw, display=format_amount(raw, self.native_decimals))

    async def _token_entry(self, token: TokenDescriptor, owner: str) -> BalanceEntry:
        client = self._require_client()
        try:
            raw = await client.read_contract(
                token.address, erc20_function("balanceOf"), [owner]
            )
        except Exception as exc:
            raise ReadFailure(f"Failed to fetch {token.symbol} balance: {exc}") from exc
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            raise ReadFailure(f"Invalid {token.symbol} balance: {raw!r}")
        return BalanceEntry(raw=raw, display=format_amount(raw, token.decimals))

    async def read_all(
        self, owner: str, tokens: Iterable[TokenDescriptor] = ()
    ) -> BalanceSnapshot:
        """Read the native balance and every token balance concurrently.

        A failing read never blocks or invalidates the others; it turns into
        a degraded :class:`BalanceEntry` carrying the error text.
        """
        validate_address(owner, "owner address")
        tokens = list(tokens)
        results = await asyncio.gather(
            self._native_entry(owner),
            *(self._token_entry(token, owner) for token in tokens),
            return_exceptions=True,
        )

        entries: list[BalanceEntry] = []
        for label, result in zip(["native"] + [t.symbol for t in tokens], results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                self._warn(f"Balance read for {label} degraded: {result}")
                entries.append(BalanceEntry.degraded(str(result)))
            else:
                entries.append(result)

        return BalanceSnapshot(
            native=entries[0],
            tokens={token.key: entry for token, entry in zip(tokens, entries[1:])},
        )
