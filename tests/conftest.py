from unittest.mock import AsyncMock, MagicMock

import pytest

from smart_account_client.wallet.chains import USDC_BASE_SEPOLIA, get_chain

OWNER = "0x" + "A" * 40
RECIPIENT = "0x" + "b" * 40
TOKEN = USDC_BASE_SEPOLIA.address
TX_HASH = "0x" + "12" * 32

QUOTE = {"userOp": {"sender": OWNER, "nonce": "0x1"}, "userOpHash": "0xdeadbeef"}


@pytest.fixture()
def chain():
    return get_chain("base-sepolia")


@pytest.fixture()
def chain_client():
    client = AsyncMock()
    client.get_balance.return_value = 10**18
    client.read_contract.return_value = 2_500_000
    client.simulate_contract.return_value = True
    return client


@pytest.fixture()
def smart_account():
    account = AsyncMock()
    account.get_address.return_value = OWNER
    account.get_fee_quotes.return_value = dict(QUOTE)
    account.send_user_operation.return_value = TX_HASH
    return account


@pytest.fixture()
def tx_handle():
    handle = MagicMock()
    handle.hash = TX_HASH
    handle.wait = AsyncMock(return_value={"status": 1, "transactionHash": TX_HASH})
    return handle


@pytest.fixture()
def signer(tx_handle):
    s = MagicMock()
    s.send_transaction = AsyncMock(return_value=tx_handle)
    return s


@pytest.fixture()
def signer_provider(signer):
    provider = MagicMock()
    provider.get_signer = AsyncMock(return_value=signer)
    return provider
