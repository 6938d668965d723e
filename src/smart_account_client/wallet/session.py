"""High-level account session used by presentation layers and the CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Awaitable, Callable, Iterable, Mapping, Optional

from smart_account_client.config import SessionConfig, TimeoutConfig
from smart_account_client.errors import (
    InvalidAddress,
    InvalidAmount,
    ProviderUnavailable,
    TransactionInFlight,
)
from smart_account_client.wallet.balances import BalanceReader, BalanceSnapshot
from smart_account_client.wallet.capabilities import (
    AuthProvider,
    ChainReadClient,
    SignerProvider,
    SmartAccount,
)
from smart_account_client.wallet.chains import Chain
from smart_account_client.wallet.models import (
    BalanceEntry,
    ExecutionPath,
    FeeMode,
    PendingTransaction,
    TransferKind,
)
from smart_account_client.wallet.submitter import TransactionSubmitter
from smart_account_client.wallet.tokens import TokenDescriptor, TokenRegistry
from smart_account_client.wallet.units import coerce_amount, format_amount, validate_address

logger = logging.getLogger("smart_account_client.wallet.session")


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AccountSnapshot:
    """Everything a presentation layer renders. Replaced, never mutated."""

    chain_id: int
    connected: bool = False
    address: Optional[str] = None
    native_balance: Optional[BalanceEntry] = None
    token_balances: Mapping[str, BalanceEntry] = field(default_factory=dict)
    last_transaction: Optional[PendingTransaction] = None
    user_info: Optional[dict] = None
    warnings: tuple[str, ...] = ()


def with_connection(
    snapshot: AccountSnapshot, address: str, user_info: dict | None
) -> AccountSnapshot:
    return replace(snapshot, connected=True, address=address, user_info=user_info)


def with_balances(
    snapshot: AccountSnapshot,
    address: str,
    balances: BalanceSnapshot,
    warnings: Iterable[str] = (),
) -> AccountSnapshot:
    return replace(
        snapshot,
        address=address,
        native_balance=balances.native,
        token_balances=dict(balances.tokens),
        warnings=tuple(warnings),
    )


def with_native_balance(snapshot: AccountSnapshot, entry: BalanceEntry) -> AccountSnapshot:
    return replace(snapshot, native_balance=entry)


def with_transaction(
    snapshot: AccountSnapshot, pending: PendingTransaction
) -> AccountSnapshot:
    return replace(snapshot, last_transaction=pending)


Observer = Callable[[AccountSnapshot], Awaitable[None]]


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class AccountSession:
    """Composes balance reads and transaction submission for one smart account.

    Collaborators are injected once and shared read-mostly; all mutable state
    lives in the session's :class:`AccountSnapshot`, and observers registered
    with :meth:`subscribe` receive every new snapshot.
    """

    def __init__(
        self,
        *,
        chain: Chain,
        chain_client: ChainReadClient | None = None,
        smart_account: SmartAccount | None = None,
        signer_provider: SignerProvider | None = None,
        auth: AuthProvider | None = None,
        tokens: Iterable[TokenDescriptor] | None = None,
        timeouts: TimeoutConfig | None = None,
        fee_mode: FeeMode = FeeMode.GASLESS,
    ) -> None:
        self.chain = chain
        self.smart_account = smart_account
        self.auth = auth
        self._custom_tokens = tokens is not None
        self.registry = TokenRegistry(chain.tokens if tokens is None else tokens)
        self._tracked: list[TokenDescriptor] = self.registry.tracked
        self._warnings: list[str] = []
        self.reader = BalanceReader(
            chain_client,
            native_decimals=chain.native_decimals,
            on_warning=self._warnings.append,
        )
        self.submitter = TransactionSubmitter(
            smart_account=smart_account,
            signer_provider=signer_provider,
            chain_client=chain_client,
            timeouts=timeouts,
            fee_mode=fee_mode,
            native_decimals=chain.native_decimals,
        )
        self._snapshot = AccountSnapshot(chain_id=chain.chain_id)
        self._observers: list[Observer] = []
        self._in_flight = False
        self._refresh_generation = 0

    @classmethod
    def from_config(
        cls,
        config: SessionConfig,
        *,
        chain_client: ChainReadClient | None = None,
        smart_account: SmartAccount | None = None,
        signer_provider: SignerProvider | None = None,
        auth: AuthProvider | None = None,
    ) -> AccountSession:
        return cls(
            chain=config.resolve_chain(),
            chain_client=chain_client,
            smart_account=smart_account,
            signer_provider=signer_provider,
            auth=auth,
            tokens=config.token_descriptors(),
            timeouts=config.timeouts,
            fee_mode=config.relay.fee_mode,
        )

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Register *callback* for snapshot changes; returns an unsubscribe function."""
        self._observers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return _unsubscribe

    async def _publish(self, snapshot: AccountSnapshot) -> None:
        self._snapshot = snapshot
        for callback in list(self._observers):
            try:
                await callback(snapshot)
            except Exception as e:
                logger.error(f"Session observer error: {e}")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> AccountSnapshot:
        return self._snapshot

    @property
    def address(self) -> str | None:
        return self._snapshot.address

    @property
    def chain_id(self) -> int:
        return self._snapshot.chain_id

    @property
    def connected(self) -> bool:
        return self._snapshot.connected

    @property
    def last_transaction(self) -> PendingTransaction | None:
        return self._snapshot.last_transaction

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def tracked_tokens(self) -> list[TokenDescriptor]:
        return list(self._tracked)

    @property
    def native_balance_display(self) -> str | None:
        entry = self._snapshot.native_balance
        return entry.display if entry else None

    def token_balance_display(self, token_address: str) -> str | None:
        entry = self._snapshot.token_balances.get(token_address.lower())
        return entry.display if entry else None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> AccountSnapshot:
        """Resolve the smart account address and user info, then refresh balances."""
        if self.smart_account is None:
            raise ProviderUnavailable("No smart account is bound")
        address = validate_address(
            await self.smart_account.get_address(), "smart account address"
        )

        user_info = None
        if self.auth is not None:
            try:
                user_info = self.auth.get_user_info()
            except Exception as e:
                logger.warning(f"Failed to load user info: {e}")

        await self._publish(with_connection(self._snapshot, address, user_info))
        logger.info(f"Connected smart account {address} on chain {self.chain_id}")
        await self.refresh()
        return self._snapshot

    async def disconnect(self) -> None:
        """Drop every piece of account state."""
        self._refresh_generation += 1
        self.registry.clear()
        self._tracked = self.registry.tracked
        await self._publish(AccountSnapshot(chain_id=self.chain.chain_id))
        logger.info("Session disconnected")

    async def switch_chain(
        self, chain: Chain, chain_client: ChainReadClient | None = None
    ) -> AccountSnapshot:
        """Rebind to *chain* and refresh balances for the current address."""
        self.chain = chain
        self.reader.client = chain_client
        self.reader.native_decimals = chain.native_decimals
        self.submitter.chain_client = chain_client
        self.submitter.native_decimals = chain.native_decimals
        if not self._custom_tokens:
            self.registry = TokenRegistry(chain.tokens)
            self._tracked = self.registry.tracked
        await self._publish(
            replace(
                self._snapshot,
                chain_id=chain.chain_id,
                native_balance=None,
                token_balances={},
            )
        )
        await self.refresh()
        return self._snapshot

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    async def track_token(self, token_address: str) -> TokenDescriptor:
        """Start tracking a token, resolving its metadata from chain if needed."""
        descriptor = await self.registry.resolve(token_address, self.reader.client)
        if descriptor not in self._tracked:
            self._tracked.append(descriptor)
        return descriptor

    async def refresh(self, address: str | None = None) -> AccountSnapshot:
        """Re-read the native balance and every tracked token balance.

        Reads run concurrently and degrade independently; a refresh that
        finishes after a newer one was started is discarded.
        """
        address = address or self._snapshot.address
        if address is None:
            logger.debug("Refresh skipped: no address bound")
            return self._snapshot
        validate_address(address)

        self._refresh_generation += 1
        generation = self._refresh_generation
        self._warnings.clear()
        balances = await self.reader.read_all(address, self._tracked)
        if generation != self._refresh_generation:
            logger.debug(f"Discarding stale balance refresh for {address}")
            return self._snapshot

        await self._publish(with_balances(self._snapshot, address, balances, self._warnings))
        return self._snapshot

    def _is_bound(self, address: str) -> bool:
        bound = self._snapshot.address
        return bound is not None and address.lower() == bound.lower()

    async def read_native_balance(self, address: str | None = None) -> int:
        """Read the native balance and update the cached entry on success."""
        address = address or self._snapshot.address
        if address is None:
            raise InvalidAddress(None)
        raw = await self.reader.read_native_balance(address)
        if self._is_bound(address):
            entry = BalanceEntry(raw=raw, display=format_amount(raw, self.chain.native_decimals))
            await self._publish(with_native_balance(self._snapshot, entry))
        return raw

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def _default_token(self) -> TokenDescriptor:
        if not self._tracked:
            raise InvalidAddress(None, "token address")
        return self._tracked[0]

    async def send_transfer(
        self,
        kind: TransferKind,
        path: ExecutionPath,
        recipient: str,
        amount: int | str | Decimal,
        token: str | None = None,
    ) -> PendingTransaction:
        """Validate and submit a native or token transfer.

        *amount* is a raw integer, or a display string parsed against the
        asset's decimals. Only one attempt may run per session at a time;
        a second call raises :class:`TransactionInFlight`. The session state
        changes only when the attempt succeeds.
        """
        kind = TransferKind(kind)
        path = ExecutionPath(path)
        validate_address(recipient, "recipient")
        if isinstance(amount, bool) or (isinstance(amount, int) and amount < 0):
            raise InvalidAmount(f"amount must be a non-negative integer, got {amount!r}")
        if token is not None:
            validate_address(token, "token address")

        if self._in_flight:
            raise TransactionInFlight("A transaction is already in flight for this session")
        self._in_flight = True
        try:
            descriptor: TokenDescriptor | None = None
            if kind is TransferKind.TOKEN:
                if token is None:
                    descriptor = self._default_token()
                else:
                    # placeholder decimals must never scale a display amount
                    descriptor = self.registry.get(token) or await self.registry.resolve(
                        token, self.reader.client, strict=not isinstance(amount, int)
                    )
                decimals = descriptor.decimals
            else:
                decimals = self.chain.native_decimals
            raw = coerce_amount(amount, decimals)

            pending = await self.submitter.transfer(
                kind,
                path,
                recipient,
                raw,
                token=descriptor,
                sender=self._snapshot.address,
            )
        finally:
            self._in_flight = False

        await self._publish(with_transaction(self._snapshot, pending))
        return pending
