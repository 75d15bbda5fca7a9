"""
Shared configuration management for the Loop access control services.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Lit action allowed to decrypt playback keys, per network
PRODUCTION_LIT_ACTION_CID = "QmZ6gqoUscwGXm9rKbqwFSbECJtMMrsebbCDpkFGgvUScQ"
TEST_LIT_ACTION_CID = "QmUZfKDuZbzf3jotSKsxsyTxpPqibuUh5R82VzviS16Qmm"

# USDC deployments on Base and Base Sepolia
PRODUCTION_USDC_ADDRESS = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
TEST_USDC_ADDRESS = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"

ZERO_ADDRESS = "0x" + "0" * 40


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="LOOP_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment")
    log_level: str = Field(default="info", description="Log level")

    # Chain
    chain_name: Optional[str] = Field(default=None, description="Chain name used in conditions")
    token_placeholder: str = Field(default="TOKEN_PLACEHOLDER", description="Token id placeholder")
    lit_action_ipfs_cid: Optional[str] = Field(default=None, description="Authorized Lit action CID")

    # Contracts
    video_nft_address: str = Field(default=ZERO_ADDRESS, description="Platform video NFT contract")
    purchase_manager_address: str = Field(default=ZERO_ADDRESS, description="Purchase manager contract")
    usdc_address: Optional[str] = Field(default=None, description="USDC token contract")

    # Observability
    enable_metrics: bool = Field(default=True, description="Expose Prometheus metrics")

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def default_chain(self) -> str:
        """Chain name in the camel-cased form the policy verifier expects."""
        if self.chain_name:
            return self.chain_name
        return "base" if self.is_production else "baseSepolia"

    @property
    def action_ipfs_cid(self) -> str:
        if self.lit_action_ipfs_cid:
            return self.lit_action_ipfs_cid
        return PRODUCTION_LIT_ACTION_CID if self.is_production else TEST_LIT_ACTION_CID

    @property
    def usdc_contract(self) -> str:
        if self.usdc_address:
            return self.usdc_address
        return PRODUCTION_USDC_ADDRESS if self.is_production else TEST_USDC_ADDRESS


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)


@lru_cache(maxsize=1)
def get_settings() -> BaseConfig:
    """Get process-wide settings for code running outside a service."""
    return BaseConfig()
