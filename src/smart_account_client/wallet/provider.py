"""Web3 chain read client for EVM networks."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from web3 import AsyncWeb3, Web3
from web3.middleware import ExtraDataToPOAMiddleware

from smart_account_client.wallet.chains import Chain
from smart_account_client.wallet.encoding import AbiFunction

logger = logging.getLogger("smart_account_client.wallet.provider")


def _checksum_args(function: AbiFunction, args: Sequence[Any]) -> list[Any]:
    # web3 contract calls only accept checksummed address arguments
    converted = []
    for param, value in zip(function.inputs, args):
        if param.type == "address" and isinstance(value, str):
            value = Web3.to_checksum_address(value.lower())
        converted.append(value)
    converted.extend(args[len(function.inputs):])
    return converted


class Web3ChainClient:
    """:class:`ChainReadClient` backed by an ``AsyncWeb3`` instance."""

    def __init__(self, w3: AsyncWeb3, *, receipt_poll_interval: float = 2.0) -> None:
        self.w3 = w3
        self.receipt_poll_interval = receipt_poll_interval

    @classmethod
    def for_chain(cls, chain: Chain, rpc_url: str | None = None) -> Web3ChainClient:
        """Build a client for *chain*.

        Injects POA middleware for non-mainnet chains.
        """
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url or chain.rpc_url))

        # Base and the test networks carry extra data in block headers
        if chain.chain_id != 1:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        return cls(w3)

    def _contract(self, address: str, function: AbiFunction):
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address.lower()),
            abi=[function.to_abi()],
        )

    async def get_balance(self, address: str) -> int:
        checksum = Web3.to_checksum_address(address.lower())
        return int(await self.w3.eth.get_balance(checksum))

    async def read_contract(
        self, address: str, function: AbiFunction, args: Sequence[Any] = ()
    ) -> Any:
        contract = self._contract(address, function)
        call = getattr(contract.functions, function.name)(*_checksum_args(function, args))
        return await call.call()

    async def simulate_contract(
        self,
        address: str,
        function: AbiFunction,
        args: Sequence[Any] = (),
        *,
        account: str,
    ) -> Any:
        """Run the call with ``eth_call`` from *account*.

        A revert surfaces as web3's ``ContractLogicError``.
        """
        contract = self._contract(address, function)
        call = getattr(contract.functions, function.name)(*_checksum_args(function, args))
        result = await call.call({"from": Web3.to_checksum_address(account.lower())})
        logger.debug(f"Simulated {function.signature} on {address} from {account}: {result!r}")
        return result

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 180.0) -> dict:
        receipt = await self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=timeout, poll_latency=self.receipt_poll_interval
        )
        return dict(receipt)

