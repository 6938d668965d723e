"""smart-account-client - balances and transfers for account-abstraction wallets."""

__version__ = "0.1.0"
