"""Smart-account wallet layer.

Reads native and ERC-20 balances, encodes contract calls, and submits
transfers either as relayed user operations or through a signer bound to the
smart account. Network access is always delegated to injected collaborators
(see :mod:`smart_account_client.wallet.capabilities`).
"""
