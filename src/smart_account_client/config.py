"""Configuration system for the smart-account client.

Loads settings from `.smart-account/config.yaml`, supports environment
variable expansion for credentials, and maps the configured chain and tokens
onto the built-in chain table.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from smart_account_client.wallet.chains import Chain, get_chain
from smart_account_client.wallet.models import FeeMode
from smart_account_client.wallet.tokens import TokenDescriptor
from smart_account_client.wallet.units import is_address


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class TokenConfig(BaseModel):
    """A tracked ERC-20 token. Missing metadata is read from chain."""

    address: str
    decimals: Optional[int] = None
    symbol: str = ""
    name: str = ""

    @field_validator("address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError(f"not a 0x-prefixed 40 hex character address: {value!r}")
        return value

    @property
    def is_complete(self) -> bool:
        return self.decimals is not None and bool(self.symbol)

    def to_descriptor(self) -> TokenDescriptor:
        return TokenDescriptor(
            address=self.address,
            decimals=self.decimals if self.decimals is not None else 18,
            symbol=self.symbol,
            name=self.name or self.symbol,
        )


class TimeoutConfig(BaseModel):
    """Upper bounds for each network wait, in seconds (0 = unlimited)."""

    quote_seconds: float = Field(default=30.0, ge=0)
    submit_seconds: float = Field(default=60.0, ge=0)
    confirm_seconds: float = Field(default=180.0, ge=0)


class RelayConfig(BaseModel):
    """Account-abstraction relay settings."""

    enabled: bool = False
    url: str = "https://rpc.particle.network/evm-chain"
    project_id: str = ""          # ${AA_PROJECT_ID}
    server_key: str = ""          # ${AA_SERVER_KEY}
    account_name: str = "BICONOMY"
    account_version: str = "2.0.0"
    fee_mode: FeeMode = FeeMode.GASLESS
    request_timeout: float = 30.0


class SessionConfig(BaseModel):
    """Root configuration object."""

    chain: str = "base-sepolia"
    rpc_url: Optional[str] = None  # Override the chain's public RPC endpoint
    tokens: Optional[list[TokenConfig]] = None  # None = the chain's known tokens
    relay: RelayConfig = Field(default_factory=RelayConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    log_level: str = "WARNING"

    @field_validator("chain")
    @classmethod
    def _check_chain(cls, value: str) -> str:
        try:
            get_chain(value)
        except KeyError as exc:
            raise ValueError(exc.args[0]) from exc
        return value

    def resolve_chain(self) -> Chain:
        return get_chain(self.chain)

    def resolve_rpc_url(self) -> str:
        return self.rpc_url or self.resolve_chain().rpc_url

    def token_descriptors(self) -> list[TokenDescriptor]:
        """Statically known tokens: configured ones, else the chain's defaults.

        Tokens configured without ``decimals`` or ``symbol`` are left out;
        they are resolved from chain via :meth:`tokens_to_resolve`.
        """
        if self.tokens is None:
            return list(self.resolve_chain().tokens)
        return [t.to_descriptor() for t in self.tokens if t.is_complete]

    def tokens_to_resolve(self) -> list[str]:
        if self.tokens is None:
            return []
        return [t.address for t in self.tokens if not t.is_complete]


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_config_path(base: Path | None = None) -> Path:
    """Return ``<base>/.smart-account/config.yaml`` (no auto-create).

    Parameters
    ----------
    base:
        Parent directory. Defaults to the current working directory.
    """
    if base is None:
        base = Path.cwd()
    return base / ".smart-account" / "config.yaml"


def load_config(path: Path) -> SessionConfig:
    """Load and validate a configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation. A missing file yields the defaults.
    """
    if not path.exists():
        return SessionConfig()
    raw_text = path.read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    expanded = _expand_env_recursive(raw_data)
    return SessionConfig.model_validate(expanded)


def save_config(config: SessionConfig, path: Path) -> None:
    """Serialize a :class:`SessionConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)
