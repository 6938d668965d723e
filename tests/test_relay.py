"""Tests for the relay JSON-RPC client and the wrapped signer provider."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import OWNER, QUOTE, RECIPIENT, TX_HASH
from smart_account_client.config import RelayConfig
from smart_account_client.errors import InvalidAddress, RelayError
from smart_account_client.wallet.relay import (
    AARelayClient,
    AAWrapProvider,
    SendTransactionMode,
)

SMART_ACCOUNT = "0x" + "5" * 40


def _relay(handler, **kwargs):
    kwargs.setdefault("sign_hash", AsyncMock(return_value="0xsigned"))
    return AARelayClient(
        "https://relay.test/evm-chain",
        chain_id=84532,
        owner_address=OWNER,
        project_id="project",
        server_key="secret",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _result(value):
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": value})


class TestAARelayClient:
    async def test_get_address(self):
        requests = []

        def handler(request):
            requests.append(request)
            return _result([{"smartAccountAddress": SMART_ACCOUNT}])

        relay = _relay(handler)
        assert await relay.get_address() == SMART_ACCOUNT
        assert await relay.get_address() == SMART_ACCOUNT
        assert len(requests) == 1

        body = json.loads(requests[0].content)
        assert body["method"] == "particle_aa_getSmartAccount"
        assert body["chainId"] == 84532
        assert body["params"] == [
            {"name": "BICONOMY", "version": "2.0.0", "ownerAddress": OWNER}
        ]
        assert requests[0].url.params["chainId"] == "84532"
        assert requests[0].headers["authorization"].startswith("Basic ")

    async def test_get_address_missing(self):
        relay = _relay(lambda request: _result([]))
        with pytest.raises(RelayError):
            await relay.get_address()

    async def test_get_fee_quotes(self):
        requests = []
        tx = {"to": RECIPIENT, "value": "0x1", "data": "0x"}

        def handler(request):
            requests.append(json.loads(request.content))
            return _result({"verifyingPaymasterGasless": QUOTE})

        quotes = await _relay(handler).get_fee_quotes(tx)
        assert quotes["verifyingPaymasterGasless"]["userOpHash"] == "0xdeadbeef"
        assert requests[0]["method"] == "particle_aa_getFeeQuotes"
        assert requests[0]["params"][1] == [tx]

    async def test_send_user_operation_attaches_signature(self):
        requests = []

        def handler(request):
            requests.append(json.loads(request.content))
            return _result(TX_HASH)

        sign_hash = AsyncMock(return_value="0xsigned")
        relay = _relay(handler, sign_hash=sign_hash)
        tx_hash = await relay.send_user_operation(QUOTE["userOp"], QUOTE["userOpHash"])

        assert tx_hash == TX_HASH
        sign_hash.assert_awaited_once_with("0xdeadbeef")
        sent = requests[0]["params"][1]
        assert sent["signature"] == "0xsigned"
        assert sent["sender"] == OWNER
        assert requests[0]["method"] == "particle_aa_sendUserOp"

    async def test_send_without_signer(self):
        relay = _relay(lambda request: _result(TX_HASH), sign_hash=None)
        with pytest.raises(RelayError):
            await relay.send_user_operation(QUOTE["userOp"], QUOTE["userOpHash"])

    async def test_rpc_error(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "bad params"}},
            )

        with pytest.raises(RelayError) as exc_info:
            await _relay(handler).get_fee_quotes({"to": RECIPIENT})
        assert exc_info.value.code == -32602
        assert "bad params" in str(exc_info.value)

    async def test_http_error(self):
        with pytest.raises(RelayError) as exc_info:
            await _relay(lambda request: httpx.Response(503)).get_fee_quotes({"to": RECIPIENT})
        assert exc_info.value.code == 503

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json=["unexpected"]),
            httpx.Response(200, json="unexpected"),
            httpx.Response(200, content=b"<html>bad gateway</html>"),
            httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": "rate limited"}),
        ],
    )
    async def test_malformed_body(self, response):
        with pytest.raises(RelayError):
            await _relay(lambda request: response).get_fee_quotes({"to": RECIPIENT})

    def test_invalid_owner(self):
        with pytest.raises(InvalidAddress):
            AARelayClient("https://relay.test", chain_id=1, owner_address="0x12")

    def test_from_config(self):
        config = RelayConfig(project_id="p", server_key="k", account_version="1.0.0")
        relay = AARelayClient.from_config(config, chain_id=84532, owner_address=OWNER)
        assert relay.account_config["version"] == "1.0.0"


class TestAAWrapProvider:
    async def test_gasless_signer(self, smart_account):
        chain_client = AsyncMock()
        chain_client.wait_for_receipt.return_value = {"status": 1, "transactionHash": TX_HASH}
        provider = AAWrapProvider(smart_account, chain_client, confirm_timeout=5)

        signer = await provider.get_signer()
        handle = await signer.send_transaction({"to": RECIPIENT, "value": "0x1"})
        assert handle.hash == TX_HASH
        smart_account.get_fee_quotes.assert_awaited_once_with(
            {"to": RECIPIENT, "value": "0x1", "data": "0x"}
        )

        receipt = await handle.wait()
        assert receipt["status"] == 1
        chain_client.wait_for_receipt.assert_awaited_once_with(TX_HASH, timeout=5)

    async def test_user_pay_native_uses_native_quote(self, smart_account):
        smart_account.get_fee_quotes.return_value = {
            "verifyingPaymasterGasless": dict(QUOTE),
            "verifyingPaymasterNative": {"userOp": {"native": True}, "userOpHash": "0xnative"},
        }
        provider = AAWrapProvider(
            smart_account, AsyncMock(), SendTransactionMode.USER_PAY_NATIVE
        )
        signer = await provider.get_signer()
        await signer.send_transaction({"to": RECIPIENT})
        smart_account.send_user_operation.assert_awaited_once_with({"native": True}, "0xnative")

    async def test_missing_quote(self, smart_account):
        smart_account.get_fee_quotes.return_value = {"verifyingPaymasterGasless": {}}
        signer = await AAWrapProvider(smart_account, AsyncMock()).get_signer()
        with pytest.raises(RelayError):
            await signer.send_transaction({"to": RECIPIENT})
        smart_account.send_user_operation.assert_not_called()

    async def test_no_smart_account(self):
        assert await AAWrapProvider(None, AsyncMock()).get_signer() is None
