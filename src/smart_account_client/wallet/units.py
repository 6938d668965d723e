"""Address validation and exact amount conversion.

Amounts are plain ``int`` values in a token's smallest unit. Conversion to
and from display strings is done with integer arithmetic only, so nothing is
lost to floating-point rounding.
"""

from __future__ import annotations

import re
from decimal import Decimal

from web3 import Web3

from smart_account_client.errors import InvalidAddress, InvalidAmount

ADDRESS_LENGTH = 42  # "0x" + 40 hex characters
MAX_DECIMALS = 255  # decimals is a uint8 on ERC-20

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_AMOUNT_RE = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)$")


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


def is_address(value: object) -> bool:
    """Return True for a ``0x``-prefixed, 40 hex character string."""
    return isinstance(value, str) and _ADDRESS_RE.match(value) is not None


def validate_address(value: object, field: str = "address") -> str:
    """Return *value* unchanged, or raise :class:`InvalidAddress`."""
    if not is_address(value):
        raise InvalidAddress(value, field)
    return value  # type: ignore[return-value]


def normalize_address(value: str) -> str:
    """Lower-cased form used for comparisons and cache keys."""
    return validate_address(value).lower()


def to_checksum(value: str) -> str:
    """EIP-55 checksum form for display."""
    return Web3.to_checksum_address(normalize_address(value))


def truncate_address(value: str, head: int = 6, tail: int = 4) -> str:
    """Shorten an address for display, e.g. ``0x036C...CF7e``."""
    if len(value) <= head + tail:
        return value
    return f"{value[:head]}...{value[-tail:]}"


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------


def _check_decimals(decimals: int) -> None:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise InvalidAmount(f"decimals must be an integer, got {decimals!r}")
    if not 0 <= decimals <= MAX_DECIMALS:
        raise InvalidAmount(f"decimals must be between 0 and {MAX_DECIMALS}, got {decimals}")


def format_amount(raw: int, decimals: int) -> str:
    """Insert the decimal point into *raw* at *decimals* places.

    Trailing zeros of the fractional part are trimmed but at least one
    fractional digit is kept, so ``10**18`` at 18 decimals is ``"1.0"`` and
    ``2_500_000`` at 6 decimals is ``"2.5"``.
    """
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidAmount(f"amount must be an integer, got {raw!r}")
    if raw < 0:
        raise InvalidAmount(f"amount must be non-negative, got {raw}")
    _check_decimals(decimals)

    whole, fraction = divmod(raw, 10**decimals)
    if decimals == 0:
        return f"{whole}.0"
    fraction_text = str(fraction).rjust(decimals, "0").rstrip("0") or "0"
    return f"{whole}.{fraction_text}"


def parse_amount(text: str, decimals: int) -> int:
    """Parse a decimal display string into an integer amount.

    Raises :class:`InvalidAmount` for negative or malformed input and for
    values with more significant fractional digits than *decimals* allows.
    """
    _check_decimals(decimals)
    if not isinstance(text, str):
        raise InvalidAmount(f"amount must be a string, got {text!r}")
    cleaned = text.strip()
    if not _AMOUNT_RE.match(cleaned):
        raise InvalidAmount(f"Invalid amount: {text!r}")

    whole, _, fraction = cleaned.partition(".")
    fraction = fraction.rstrip("0")
    if len(fraction) > decimals:
        raise InvalidAmount(
            f"Amount {text!r} has more than {decimals} decimal places"
        )
    return int(whole or "0") * 10**decimals + int(fraction.ljust(decimals, "0") or "0")


def coerce_amount(value: int | str | Decimal, decimals: int) -> int:
    """Accept a raw ``int`` or a display string/Decimal and return the raw amount."""
    if isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise InvalidAmount(f"amount must be non-negative, got {value}")
        return value
    if isinstance(value, Decimal):
        if not value.is_finite() or value < 0:
            raise InvalidAmount(f"Invalid amount: {value}")
        return parse_amount(format(value, "f"), decimals)
    if isinstance(value, str):
        return parse_amount(value, decimals)
    raise InvalidAmount(f"Unsupported amount type: {type(value).__name__}")
