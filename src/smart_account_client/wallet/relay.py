"""Account-abstraction relay bindings.

:class:`AARelayClient` implements the smart-account capability on top of the
relay's JSON-RPC API. :class:`AAWrapProvider` wraps a smart account into the
generic signer/provider capability, so ordinary ``send_transaction`` calls are
turned into quoted user operations and can be awaited until inclusion.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx

from smart_account_client.config import RelayConfig
from smart_account_client.errors import RelayError
from smart_account_client.wallet.capabilities import SmartAccount
from smart_account_client.wallet.models import FeeMode, FeeQuote
from smart_account_client.wallet.provider import Web3ChainClient
from smart_account_client.wallet.units import validate_address

logger = logging.getLogger("smart_account_client.wallet.relay")

HashSigner = Callable[[str], Awaitable[str]]


class AARelayClient:
    """Minimal async JSON-RPC client for the account-abstraction relay.

    Signing stays outside this client: the quoted ``userOpHash`` is handed
    to *sign_hash* (the owner's wallet) and the returned signature is
    attached before the operation is sent.
    """

    def __init__(
        self,
        url: str,
        *,
        chain_id: int,
        owner_address: str,
        project_id: str = "",
        server_key: str = "",
        account_name: str = "BICONOMY",
        account_version: str = "2.0.0",
        sign_hash: Optional[HashSigner] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._chain_id = chain_id
        self._owner_address = validate_address(owner_address, "owner address")
        self._auth = (project_id, server_key) if project_id else None
        self._account_name = account_name
        self._account_version = account_version
        self._sign_hash = sign_hash
        self._timeout = timeout
        self._transport = transport
        self._address: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: RelayConfig,
        *,
        chain_id: int,
        owner_address: str,
        sign_hash: Optional[HashSigner] = None,
    ) -> AARelayClient:
        return cls(
            config.url,
            chain_id=chain_id,
            owner_address=owner_address,
            project_id=config.project_id,
            server_key=config.server_key,
            account_name=config.account_name,
            account_version=config.account_version,
            sign_hash=sign_hash,
            timeout=config.request_timeout,
        )

    @property
    def account_config(self) -> dict:
        return {
            "name": self._account_name,
            "version": self._account_version,
            "ownerAddress": self._owner_address,
        }

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": int(time.time() * 1000),
            "chainId": self._chain_id,
            "method": method,
            "params": params,
        }
        async with httpx.AsyncClient(
            timeout=self._timeout, auth=self._auth, transport=self._transport
        ) as client:
            response = await client.post(
                self._url, params={"chainId": self._chain_id}, json=payload
            )
        if response.status_code >= 400:
            raise RelayError(
                f"Relay responded with HTTP {response.status_code}",
                code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise RelayError("Relay returned a body that is not JSON") from exc
        if not isinstance(data, dict):
            raise RelayError(f"Relay returned a non-object JSON-RPC body: {data!r}")
        if data.get("error"):
            error = data["error"]
            if not isinstance(error, dict):
                raise RelayError(str(error))
            raise RelayError(str(error.get("message") or "Relay error"), code=error.get("code"))
        return data.get("result")

    async def get_address(self) -> str:
        """Counterfactual smart account address of the owner (cached)."""
        if self._address is None:
            result = await self._rpc("particle_aa_getSmartAccount", [self.account_config])
            entry = result[0] if isinstance(result, list) and result else result
            address = entry.get("smartAccountAddress") if isinstance(entry, dict) else None
            if not address:
                raise RelayError("Relay returned no smart account address")
            self._address = validate_address(address, "smart account address")
        return self._address

    async def get_fee_quotes(self, tx: dict) -> dict:
        result = await self._rpc("particle_aa_getFeeQuotes", [self.account_config, [tx]])
        if not isinstance(result, dict):
            raise RelayError("Relay returned an invalid fee quote payload")
        return result

    async def send_user_operation(self, user_op: dict, user_op_hash: str) -> str:
        if self._sign_hash is None:
            raise RelayError("No signer configured for user operations")
        signature = await self._sign_hash(user_op_hash)
        signed = {**user_op, "signature": signature}
        result = await self._rpc("particle_aa_sendUserOp", [self.account_config, signed])
        if not isinstance(result, str) or not result:
            raise RelayError("Relay returned an invalid transaction hash")
        logger.info(f"User operation {user_op_hash} sent as {result}")
        return result


# ---------------------------------------------------------------------------
# Signer/provider wrapper
# ---------------------------------------------------------------------------


class SendTransactionMode(str, Enum):
    GASLESS = "gasless"
    USER_PAY_NATIVE = "user_pay_native"


_MODE_FEES: dict[SendTransactionMode, FeeMode] = {
    SendTransactionMode.GASLESS: FeeMode.GASLESS,
    SendTransactionMode.USER_PAY_NATIVE: FeeMode.NATIVE,
}


@dataclass
class RelayedTransaction:
    """Handle for a transaction sent through :class:`AASigner`."""

    hash: str
    _waiter: Callable[[str], Awaitable[Optional[dict]]]

    async def wait(self) -> Optional[dict]:
        return await self._waiter(self.hash)


class AASigner:
    """Signer that routes transactions through a smart account."""

    def __init__(
        self,
        smart_account: SmartAccount,
        chain_client: Web3ChainClient,
        mode: SendTransactionMode,
        confirm_timeout: float,
    ) -> None:
        self.smart_account = smart_account
        self.chain_client = chain_client
        self.mode = mode
        self.confirm_timeout = confirm_timeout

    async def send_transaction(self, tx: dict) -> RelayedTransaction:
        request = {"to": tx["to"], "value": tx.get("value", "0x0"), "data": tx.get("data") or "0x"}
        payload = await self.smart_account.get_fee_quotes(request)
        quote = FeeQuote.from_response(payload, _MODE_FEES[self.mode])
        if quote is None:
            raise RelayError(f"No {self.mode.value} fee quote available")
        tx_hash = await self.smart_account.send_user_operation(quote.user_op, quote.user_op_hash)
        return RelayedTransaction(hash=tx_hash, _waiter=self._wait)

    async def _wait(self, tx_hash: str) -> Optional[dict]:
        return await self.chain_client.wait_for_receipt(tx_hash, timeout=self.confirm_timeout)


class AAWrapProvider:
    """Signer provider bound to a smart account; the fee mode is a property of the provider."""

    def __init__(
        self,
        smart_account: SmartAccount | None,
        chain_client: Web3ChainClient,
        mode: SendTransactionMode = SendTransactionMode.GASLESS,
        *,
        confirm_timeout: float = 180.0,
    ) -> None:
        self.smart_account = smart_account
        self.chain_client = chain_client
        self.mode = SendTransactionMode(mode)
        self.confirm_timeout = confirm_timeout

    async def get_signer(self) -> AASigner | None:
        if self.smart_account is None:
            return None
        return AASigner(self.smart_account, self.chain_client, self.mode, self.confirm_timeout)
