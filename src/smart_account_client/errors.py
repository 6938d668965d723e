"""Typed failures raised by the smart-account client.

Every error carries an :class:`ErrorKind` so that a presentation layer can
pick a message without inspecting free-text error strings.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_ADDRESS = "invalid_address"
    INVALID_AMOUNT = "invalid_amount"
    ENCODING_ERROR = "encoding_error"
    CLIENT_UNAVAILABLE = "client_unavailable"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    QUOTE_UNAVAILABLE = "quote_unavailable"
    READ_FAILURE = "read_failure"
    SUBMISSION_FAILURE = "submission_failure"
    TIMEOUT = "timeout"
    TRANSACTION_IN_FLIGHT = "transaction_in_flight"


class WalletError(Exception):
    """Base class for all client failures."""

    kind: ErrorKind = ErrorKind.SUBMISSION_FAILURE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidAddress(WalletError):
    kind = ErrorKind.INVALID_ADDRESS

    def __init__(self, value: object, field: str = "address") -> None:
        super().__init__(f"Invalid {field}: {value!r} is not a 0x-prefixed 40 hex character address")
        self.value = value
        self.field = field


class InvalidAmount(WalletError):
    kind = ErrorKind.INVALID_AMOUNT


class EncodingError(WalletError):
    """Raised when call arguments do not match an ABI function description."""

    kind = ErrorKind.ENCODING_ERROR

    def __init__(self, message: str, *, parameter: str | None = None) -> None:
        super().__init__(message)
        self.parameter = parameter


class ClientUnavailable(WalletError):
    kind = ErrorKind.CLIENT_UNAVAILABLE


class ProviderUnavailable(WalletError):
    kind = ErrorKind.PROVIDER_UNAVAILABLE


class QuoteUnavailable(WalletError):
    kind = ErrorKind.QUOTE_UNAVAILABLE


class ReadFailure(WalletError):
    """A chain read failed. Display reads degrade instead of propagating this."""

    kind = ErrorKind.READ_FAILURE


class SubmissionFailure(WalletError):
    """A transaction attempt failed at *stage*. Terminal for the attempt."""

    kind = ErrorKind.SUBMISSION_FAILURE

    def __init__(self, message: str, *, stage: str) -> None:
        super().__init__(message)
        self.stage = stage


class OperationTimeout(WalletError):
    kind = ErrorKind.TIMEOUT

    def __init__(self, stage: str, seconds: float) -> None:
        super().__init__(f"Timed out after {seconds:g}s waiting for {stage}")
        self.stage = stage
        self.seconds = seconds


class TransactionInFlight(WalletError):
    kind = ErrorKind.TRANSACTION_IN_FLIGHT


class RelayError(RuntimeError):
    """Raised by the relay JSON-RPC client when the relay returns an error."""

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code
