"""Interfaces of the collaborators the client is built on.

The client never talks to the network itself. It is handed objects that
satisfy these protocols: :mod:`smart_account_client.wallet.provider` and
:mod:`smart_account_client.wallet.relay` ship concrete bindings, and tests
substitute mocks.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from smart_account_client.wallet.encoding import AbiFunction


@runtime_checkable
class ChainReadClient(Protocol):
    async def get_balance(self, address: str) -> int:
        """Native balance of *address* in the chain's smallest unit."""

    async def read_contract(
        self, address: str, function: AbiFunction, args: Sequence[Any] = ()
    ) -> Any:
        """Call a view function and return its decoded result."""

    async def simulate_contract(
        self,
        address: str,
        function: AbiFunction,
        args: Sequence[Any] = (),
        *,
        account: str,
    ) -> Any:
        """Dry-run a state-changing call from *account*; raises on revert."""


@runtime_checkable
class SmartAccount(Protocol):
    async def get_address(self) -> str: ...

    async def get_fee_quotes(self, tx: dict) -> dict:
        """Return the relay's fee quote bundle for an unsigned intent."""

    async def send_user_operation(self, user_op: dict, user_op_hash: str) -> str:
        """Submit a quoted user operation and return its transaction handle."""


@runtime_checkable
class TransactionHandle(Protocol):
    hash: str

    async def wait(self) -> dict | None:
        """Block until the transaction is included and return its receipt."""


@runtime_checkable
class Signer(Protocol):
    async def send_transaction(self, tx: dict) -> TransactionHandle: ...


@runtime_checkable
class SignerProvider(Protocol):
    async def get_signer(self) -> Signer | None: ...


@runtime_checkable
class AuthProvider(Protocol):
    def get_user_info(self) -> dict | None:
        """Display-only profile data (``name``, ``avatar``) of the signed-in user."""
