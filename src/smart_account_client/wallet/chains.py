"""Chain definitions for supported EVM networks."""

from __future__ import annotations

from dataclasses import dataclass, field

from smart_account_client.wallet.tokens import TokenDescriptor


@dataclass(frozen=True)
class Chain:
    """An EVM-compatible blockchain network."""

    name: str
    chain_id: int
    rpc_url: str
    native_symbol: str
    explorer_url: str
    native_decimals: int = 18
    tokens: tuple[TokenDescriptor, ...] = field(default=())


USDC_BASE_SEPOLIA = TokenDescriptor(
    address="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
    decimals=6,
    symbol="USDC",
    name="USD Coin",
)

USDC_BASE = TokenDescriptor(
    address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    decimals=6,
    symbol="USDC",
    name="USD Coin",
)


CHAINS: dict[str, Chain] = {
    "base-sepolia": Chain(
        name="base-sepolia",
        chain_id=84532,
        rpc_url="https://sepolia.base.org",
        native_symbol="ETH",
        explorer_url="https://sepolia.basescan.org",
        tokens=(USDC_BASE_SEPOLIA,),
    ),
    "base": Chain(
        name="base",
        chain_id=8453,
        rpc_url="https://mainnet.base.org",
        native_symbol="ETH",
        explorer_url="https://basescan.org",
        tokens=(USDC_BASE,),
    ),
    "ethereum": Chain(
        name="ethereum",
        chain_id=1,
        rpc_url="https://eth.llamarpc.com",
        native_symbol="ETH",
        explorer_url="https://etherscan.io",
    ),
    "sepolia": Chain(
        name="sepolia",
        chain_id=11155111,
        rpc_url="https://rpc.sepolia.org",
        native_symbol="ETH",
        explorer_url="https://sepolia.etherscan.io",
    ),
}


def get_chain(name: str) -> Chain:
    """Get a chain by name. Raises ``KeyError`` if not found."""
    if name not in CHAINS:
        raise KeyError(
            f"Unknown chain '{name}'. Available: {list_chain_names()}"
        )
    return CHAINS[name]


def list_chain_names() -> list[str]:
    """Return the names of all supported chains."""
    return list(CHAINS.keys())
