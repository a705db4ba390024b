"""Canonical configuration surface for the Apex fleet backend."""
from __future__ import annotations

import re
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Literal, Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Free public Ethereum mainnet endpoints, highest preference first.
DEFAULT_RPC_URLS: tuple[str, ...] = (
    "https://ethereum-rpc.publicnode.com",
    "https://eth.drpc.org",
    "https://rpc.ankr.com/eth",
    "https://eth.llamarpc.com",
    "https://1rpc.io/eth",
    "https://eth-mainnet.public.blastapi.io",
)

_PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


class ApexSettings(BaseSettings):
    """Main Apex configuration.

    The signing key has no default. It must come from the environment
    (``APEX_SIGNER_PRIVATE_KEY`` or the legacy ``VAULT_PRIVATE_KEY``) or a
    secret store that populates it.
    """

    model_config = SettingsConfigDict(
        env_prefix="APEX_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
        hide_input_in_errors=True,
    )

    # Environment
    environment: Literal["dev", "test", "local", "staging", "prod"] = "dev"

    # HTTP server
    host: str = "0.0.0.0"
    port: int = Field(default=3001, validation_alias=AliasChoices("APEX_PORT", "PORT"))
    allowed_origins: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"
    log_json: Optional[bool] = None  # None = JSON everywhere except dev

    # Endpoint candidates in probing order
    rpc_urls: Annotated[List[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_RPC_URLS))
    chain_id: int = 1
    verify_chain_id: bool = False
    probe_timeout_seconds: float = Field(default=5.0, gt=0)
    rpc_timeout_seconds: float = Field(default=15.0, gt=0)
    connect_on_startup: bool = True

    # Signing credential and vault
    signer_private_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("APEX_SIGNER_PRIVATE_KEY", "VAULT_PRIVATE_KEY"),
    )
    vault_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("APEX_VAULT_ADDRESS", "VAULT_ADDRESS"),
    )

    # Withdrawal pipeline
    reserve_margin_eth: Decimal = Field(default=Decimal("0.005"), ge=0)
    default_gas_price_gwei: Decimal = Field(default=Decimal("30"), gt=0)
    transfer_gas_limit: int = Field(default=21000, gt=0)
    balance_check_attempts: int = Field(default=3, ge=1)
    confirmations_required: int = Field(default=1, ge=1)
    confirmation_timeout_seconds: float = Field(default=120.0, gt=0)
    confirmation_poll_interval_seconds: float = Field(default=2.0, ge=0)

    @field_validator("environment", mode="before")
    @classmethod
    def normalize_environment(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("rpc_urls", "allowed_origins", mode="before")
    @classmethod
    def parse_csv(cls, v):
        """Parse comma-separated lists from env vars."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("rpc_urls")
    @classmethod
    def require_endpoints(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("At least one RPC endpoint URL must be configured")
        return v

    @field_validator("signer_private_key", mode="before")
    @classmethod
    def validate_private_key(cls, v):
        if v is None:
            return None
        raw = v.get_secret_value() if isinstance(v, SecretStr) else str(v)
        raw = raw.strip()
        if not raw:
            return None
        if not _PRIVATE_KEY_RE.match(raw):
            # Never echo the value back.
            raise ValueError("signer private key must be 32 bytes of hex")
        return raw if raw.startswith("0x") else f"0x{raw}"

    @property
    def is_production(self) -> bool:
        return self.environment in ("staging", "prod")

    @property
    def use_json_logs(self) -> bool:
        if self.log_json is not None:
            return self.log_json
        return self.is_production

    @property
    def has_signer(self) -> bool:
        return self.signer_private_key is not None


@lru_cache
def load_settings(env_file: str | None = None) -> ApexSettings:
    """Load ApexSettings once per process to keep services consistent."""
    env_path = Path(env_file) if env_file else None
    if env_path is not None:
        return ApexSettings(_env_file=env_path)
    return ApexSettings()
