"""Transaction submission through a smart account.

Each attempt runs through a small state machine::

    idle -> quote_requested -> quote_received -> submitted -> confirmed
                                                        \\-> failed

Two execution paths are supported and deliberately kept apart:

* :attr:`ExecutionPath.RELAY` asks the smart account for a fee quote and
  hands the quoted user operation to the relay. The attempt ends as soon as
  the relay returns a transaction hash; nothing waits for inclusion.
* :attr:`ExecutionPath.SIGNER` sends the call through a signer obtained from
  a wrapped provider and blocks until the transaction is confirmed.

Failures are terminal for the attempt and are never retried here: a quote
embeds the account nonce, so a blind retry risks a double submission.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from smart_account_client.config import TimeoutConfig
from smart_account_client.errors import (
    InvalidAddress,
    OperationTimeout,
    ProviderUnavailable,
    QuoteUnavailable,
    SubmissionFailure,
    WalletError,
)
from smart_account_client.wallet.capabilities import ChainReadClient, SignerProvider, SmartAccount
from smart_account_client.wallet.encoding import AbiFunction, encode_call_hex
from smart_account_client.wallet.models import (
    ExecutionPath,
    FeeMode,
    FeeQuote,
    PendingTransaction,
    TransactionIntent,
    TransactionStatus,
    TransferKind,
)
from smart_account_client.wallet.tokens import TokenDescriptor, erc20_function
from smart_account_client.wallet.units import coerce_amount, validate_address

logger = logging.getLogger("smart_account_client.wallet.submitter")


class SubmissionState(str, Enum):
    IDLE = "idle"
    QUOTE_REQUESTED = "quote_requested"
    QUOTE_RECEIVED = "quote_received"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


_TRANSITIONS: dict[SubmissionState, frozenset[SubmissionState]] = {
    SubmissionState.IDLE: frozenset(
        {SubmissionState.QUOTE_REQUESTED, SubmissionState.SUBMITTED, SubmissionState.FAILED}
    ),
    SubmissionState.QUOTE_REQUESTED: frozenset(
        {SubmissionState.QUOTE_RECEIVED, SubmissionState.FAILED}
    ),
    SubmissionState.QUOTE_RECEIVED: frozenset(
        {SubmissionState.SUBMITTED, SubmissionState.FAILED}
    ),
    SubmissionState.SUBMITTED: frozenset(
        {SubmissionState.CONFIRMED, SubmissionState.FAILED}
    ),
    SubmissionState.CONFIRMED: frozenset(),
    SubmissionState.FAILED: frozenset(),
}


@dataclass(frozen=True)
class ContractCall:
    """A contract call to dry-run from *account* before submitting it."""

    address: str
    function: AbiFunction
    args: Sequence[Any]
    account: str


StateCallback = Callable[[SubmissionState], None]


def _as_hex(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        text = bytes(value).hex()
        return text if text.startswith("0x") else "0x" + text
    return str(value)


class TransactionSubmitter:
    """Builds transfer intents and submits them through one of two paths."""

    def __init__(
        self,
        *,
        smart_account: SmartAccount | None = None,
        signer_provider: SignerProvider | None = None,
        chain_client: ChainReadClient | None = None,
        timeouts: TimeoutConfig | None = None,
        fee_mode: FeeMode = FeeMode.GASLESS,
        native_decimals: int = 18,
        on_state_change: StateCallback | None = None,
    ) -> None:
        self.smart_account = smart_account
        self.signer_provider = signer_provider
        self.chain_client = chain_client
        self.timeouts = timeouts or TimeoutConfig()
        self.fee_mode = FeeMode(fee_mode)
        self.native_decimals = native_decimals
        self._on_state_change = on_state_change
        self._state = SubmissionState.IDLE

    @property
    def state(self) -> SubmissionState:
        return self._state

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _set_state(self, state: SubmissionState) -> None:
        logger.debug(f"Submission state {self._state.value} -> {state.value}")
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _transition(self, state: SubmissionState) -> None:
        if state not in _TRANSITIONS[self._state]:
            raise RuntimeError(
                f"Illegal submission transition {self._state.value} -> {state.value}"
            )
        self._set_state(state)

    def _reset(self) -> None:
        if self._state is not SubmissionState.IDLE:
            self._set_state(SubmissionState.IDLE)

    # ------------------------------------------------------------------
    # Intent construction
    # ------------------------------------------------------------------

    def build_intent(
        self,
        kind: TransferKind,
        recipient: str,
        amount: int,
        token: TokenDescriptor | None = None,
    ) -> TransactionIntent:
        """Native transfer or ERC-20 ``transfer`` call for *amount* to *recipient*."""
        validate_address(recipient, "recipient")
        kind = TransferKind(kind)
        if kind is TransferKind.NATIVE:
            value = coerce_amount(amount, self.native_decimals)
            return TransactionIntent(to=recipient, value=value, data="0x")
        if token is None:
            raise InvalidAddress(None, "token address")
        value = coerce_amount(amount, token.decimals)
        data = encode_call_hex(erc20_function("transfer"), [recipient, value])
        return TransactionIntent(to=token.address, value=0, data=data)

    def build_approval(
        self, token: TokenDescriptor, spender: str, amount: int
    ) -> TransactionIntent:
        """ERC-20 ``approve(spender, amount)`` call on *token*."""
        validate_address(spender, "spender")
        value = coerce_amount(amount, token.decimals)
        data = encode_call_hex(erc20_function("approve"), [spender, value])
        return TransactionIntent(to=token.address, value=0, data=data)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def transfer(
        self,
        kind: TransferKind,
        path: ExecutionPath,
        recipient: str,
        amount: int,
        *,
        token: TokenDescriptor | None = None,
        sender: str | None = None,
    ) -> PendingTransaction:
        """Build and submit a transfer. Token transfers are simulated first
        when a chain client and the *sender* are known."""
        intent = self.build_intent(kind, recipient, amount, token)
        preflight = None
        if TransferKind(kind) is TransferKind.TOKEN and sender and self.chain_client is not None:
            preflight = ContractCall(
                address=token.address,  # type: ignore[union-attr]
                function=erc20_function("transfer"),
                args=[recipient, coerce_amount(amount, token.decimals)],  # type: ignore[union-attr]
                account=sender,
            )
        return await self.submit(intent, path, preflight=preflight)

    async def submit(
        self,
        intent: TransactionIntent,
        path: ExecutionPath,
        *,
        preflight: ContractCall | None = None,
    ) -> PendingTransaction:
        """Run one attempt for *intent* along *path*.

        Raises a :class:`WalletError` subclass on failure, after moving the
        state to ``failed``.
        """
        path = ExecutionPath(path)
        self._reset()
        logger.info(f"Submitting {path.value} transaction to {intent.to} (value={intent.value})")
        try:
            self._require_collaborator(path)
            if preflight is not None:
                await self._simulate(preflight)
            if path is ExecutionPath.RELAY:
                pending = await self._submit_relay(intent)
            else:
                pending = await self._submit_signer(intent)
        except WalletError as exc:
            self._set_state(SubmissionState.FAILED)
            logger.error(f"Transaction attempt failed ({exc.kind.value}): {exc}")
            raise
        logger.info(f"Transaction {pending.hash} {pending.status.value} via {path.value}")
        return pending

    def _require_collaborator(self, path: ExecutionPath) -> None:
        if path is ExecutionPath.RELAY and self.smart_account is None:
            raise ProviderUnavailable("No smart account is bound")
        if path is ExecutionPath.SIGNER and self.signer_provider is None:
            raise ProviderUnavailable("No signer provider is bound")

    async def _bounded(self, awaitable: Awaitable[Any], seconds: float, stage: str) -> Any:
        if not seconds:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=seconds)
        except asyncio.TimeoutError as exc:
            raise OperationTimeout(stage, seconds) from exc

    async def _call(self, stage: str, awaitable: Awaitable[Any], seconds: float) -> Any:
        try:
            return await self._bounded(awaitable, seconds, stage)
        except WalletError:
            raise
        except Exception as exc:
            raise SubmissionFailure(str(exc) or type(exc).__name__, stage=stage) from exc

    async def _simulate(self, call: ContractCall) -> None:
        assert self.chain_client is not None
        await self._call(
            "simulation",
            self.chain_client.simulate_contract(
                call.address, call.function, call.args, account=call.account
            ),
            self.timeouts.submit_seconds,
        )

    async def _submit_relay(self, intent: TransactionIntent) -> PendingTransaction:
        assert self.smart_account is not None
        self._transition(SubmissionState.QUOTE_REQUESTED)
        payload = await self._call(
            "quote",
            self.smart_account.get_fee_quotes(intent.to_request()),
            self.timeouts.quote_seconds,
        )
        quote = FeeQuote.from_response(payload, self.fee_mode)
        if quote is None:
            raise QuoteUnavailable("Fee quote did not include userOp and userOpHash")
        self._transition(SubmissionState.QUOTE_RECEIVED)

        handle = await self._call(
            "submission",
            self.smart_account.send_user_operation(quote.user_op, quote.user_op_hash),
            self.timeouts.submit_seconds,
        )
        tx_hash = _as_hex(handle)
        if not tx_hash:
            raise SubmissionFailure("Relay returned no transaction hash", stage="submission")
        self._transition(SubmissionState.SUBMITTED)

        return PendingTransaction(
            hash=tx_hash,
            status=TransactionStatus.SUBMITTED,
            path=ExecutionPath.RELAY,
            to=intent.to,
            value=intent.value,
            data=intent.data,
        )

    async def _submit_signer(self, intent: TransactionIntent) -> PendingTransaction:
        assert self.signer_provider is not None
        signer = await self._call(
            "signer", self.signer_provider.get_signer(), self.timeouts.submit_seconds
        )
        if signer is None:
            raise ProviderUnavailable("Provider returned no signer")

        handle = await self._call(
            "submission",
            signer.send_transaction(intent.to_request()),
            self.timeouts.submit_seconds,
        )
        tx_hash = _as_hex(getattr(handle, "hash", None))
        self._transition(SubmissionState.SUBMITTED)

        receipt = await self._call("confirmation", handle.wait(), self.timeouts.confirm_seconds)
        receipt = dict(receipt) if receipt else None
        if receipt is not None and receipt.get("status") in (0, "0x0"):
            raise SubmissionFailure(f"Transaction {tx_hash} reverted", stage="confirmation")
        if receipt is not None and not tx_hash:
            tx_hash = _as_hex(receipt.get("transactionHash"))
        self._transition(SubmissionState.CONFIRMED)

        return PendingTransaction(
            hash=tx_hash,
            status=TransactionStatus.CONFIRMED,
            path=ExecutionPath.SIGNER,
            to=intent.to,
            value=intent.value,
            data=intent.data,
            receipt=receipt,
        )
