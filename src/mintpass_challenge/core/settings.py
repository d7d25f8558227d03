"""Application settings and configuration.

This module defines all configuration options for the MintPass challenge
service. Settings are loaded from environment variables with sensible defaults.
"""

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CHAIN_PROVIDERS: dict[str, dict[str, Any]] = {
    "eth": {"urls": ["https://rpc.ankr.com/eth"], "chainId": 1},
    "base": {"urls": ["https://mainnet.base.org"], "chainId": 8453},
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    Mapping-valued settings (contract addresses, chain providers) are read
    as JSON objects.
    """

    # Application metadata
    app_name: str = Field(default="MintPass Challenge", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration for the challenge record store
    database_url: str = Field(
        default="sqlite:///./mintpass-challenge.db",
        alias="DATABASE_URL",
    )
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Challenge defaults
    default_chain_ticker: str = Field(default="base", alias="DEFAULT_CHAIN_TICKER")
    default_contract_addresses: dict[str, str] = Field(
        default={"base": "0x13d41d6B8EA5C86096bb7a94C3557FCF184491b9"},
        alias="DEFAULT_CONTRACT_ADDRESSES",
    )

    # Chain RPC access
    chain_providers: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        alias="CHAIN_PROVIDERS",
    )
    chain_rpc_timeout_seconds: float = Field(default=10.0, alias="CHAIN_RPC_TIMEOUT_SECONDS")
    chain_circuit_failure_threshold: int = Field(
        default=5,
        alias="CHAIN_CIRCUIT_FAILURE_THRESHOLD",
    )
    chain_circuit_recovery_seconds: float = Field(
        default=30.0,
        alias="CHAIN_CIRCUIT_RECOVERY_SECONDS",
    )

    # ENS resolution
    ens_registry_address: str = Field(
        default="0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e",
        alias="ENS_REGISTRY_ADDRESS",
    )
    ens_domain_suffixes: list[str] = Field(default=[".eth"], alias="ENS_DOMAIN_SUFFIXES")

    # Wallet proof format
    wallet_domain_separator: str = Field(
        default="plebbit-author-wallet",
        alias="WALLET_DOMAIN_SEPARATOR",
    )
    author_address_text_record: str = Field(
        default="plebbit-author-address",
        alias="AUTHOR_ADDRESS_TEXT_RECORD",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
