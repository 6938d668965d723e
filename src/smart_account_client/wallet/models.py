"""Value objects passed between the reader, the submitter and the session."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TransferKind(str, Enum):
    NATIVE = "native"
    TOKEN = "token"


class ExecutionPath(str, Enum):
    """How a transfer is submitted.

    ``RELAY`` hands a quoted user operation to the relay and returns as soon
    as the relay accepts it. ``SIGNER`` goes through a signer and waits for
    on-chain inclusion before returning.
    """

    RELAY = "relay"
    SIGNER = "signer"


class TransactionStatus(str, Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class FeeMode(str, Enum):
    GASLESS = "gasless"
    NATIVE = "native"


# Key under which the relay returns the quote bundle for each fee mode.
FEE_QUOTE_KEYS: dict[FeeMode, str] = {
    FeeMode.GASLESS: "verifyingPaymasterGasless",
    FeeMode.NATIVE: "verifyingPaymasterNative",
}


# ---------------------------------------------------------------------------
# Intents and quotes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransactionIntent:
    """An unsigned ``{to, value, data}`` call."""

    to: str
    value: int = 0
    data: str = "0x"

    @property
    def is_native_transfer(self) -> bool:
        return self.data in ("", "0x")

    def to_request(self) -> dict:
        return {"to": self.to, "value": hex(self.value), "data": self.data or "0x"}


@dataclass(frozen=True)
class FeeQuote:
    """A constructed, unsigned user operation and its hash.

    Requested fresh for every attempt; a quote embeds the account nonce.
    """

    user_op: dict
    user_op_hash: str
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_response(
        cls, payload: dict | None, mode: FeeMode = FeeMode.GASLESS
    ) -> Optional[FeeQuote]:
        """Extract the quote bundle, or ``None`` when ``userOp`` or ``userOpHash`` is missing.

        Accepts a flat ``{userOp, userOpHash}`` payload as well as the relay's
        response where the bundle is nested under a per-fee-mode key.
        """
        if not isinstance(payload, dict):
            return None
        bundle = payload.get(FEE_QUOTE_KEYS[mode])
        if not isinstance(bundle, dict):
            bundle = payload
        user_op = bundle.get("userOp")
        user_op_hash = bundle.get("userOpHash")
        if not user_op or not user_op_hash:
            return None
        return cls(user_op=user_op, user_op_hash=str(user_op_hash), raw=payload)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class PendingTransaction(BaseModel):
    """The outcome of one transfer attempt."""

    hash: Optional[str] = None
    status: TransactionStatus = TransactionStatus.SUBMITTED
    path: ExecutionPath
    to: str
    value: int = 0
    data: str = "0x"
    receipt: Optional[dict[str, Any]] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class BalanceEntry:
    """One display-ready balance. ``error`` is set when the read degraded."""

    raw: int
    display: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def degraded(cls, error: str) -> BalanceEntry:
        return cls(raw=0, display="0.0", error=error)
