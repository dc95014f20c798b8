"""Application configuration."""
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, Union

from pydantic import SecretStr, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from web3 import Web3

from anoncheckin.core.constants import SEPOLIA_CHAIN_ID

# Keys written by the deployment script, mapped onto settings fields
DEPLOYMENT_KEYS = {
    "network": "RPC_URL",
    "contractAddress": "CONTRACT_ADDRESS",
    "deployer": "DEPLOYER_ADDRESS",
}


class DeploymentFileSettingsSource(PydanticBaseSettingsSource):
    """
    Settings source reading the JSON file produced by the deployment step.

    The file looks like::

        {"network": "https://...", "contractAddress": "0x...", "deployer": "0x..."}

    A missing file is not an error: the values can come from the
    environment instead.
    """

    def __init__(self, settings_cls: Type[BaseSettings], path: Union[str, Path]):
        super().__init__(settings_cls)
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.is_file():
            return {}
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        return {
            field: raw[key]
            for key, field in DEPLOYMENT_KEYS.items()
            if raw.get(key)
        }

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return self._load().get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return self._load()


class Settings(BaseSettings):
    """Application settings.

    Immutable once built; passed explicitly to the network, reader and
    submitter services.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # Deployment output (see DeploymentFileSettingsSource)
    DEPLOYMENT_FILE: str = "config.json"
    RPC_URL: str = "https://sepolia.drpc.org"
    CONTRACT_ADDRESS: Optional[str] = None
    DEPLOYER_ADDRESS: Optional[str] = None

    # Target network, used for wallet chain switching / registration
    CHAIN_ID: int = SEPOLIA_CHAIN_ID
    CHAIN_NAME: str = "Sepolia"
    NATIVE_CURRENCY_NAME: str = "Sepolia Ether"
    NATIVE_CURRENCY_SYMBOL: str = "ETH"
    NATIVE_CURRENCY_DECIMALS: int = 18
    BLOCK_EXPLORER_URL: str = "https://sepolia.etherscan.io"

    # Remote calls
    RPC_TIMEOUT: float = 30.0
    READ_RETRY_ATTEMPTS: int = 3
    READ_RETRY_BASE_DELAY: float = 1.0  # seconds, doubled after every failed attempt
    TX_CONFIRMATION_TIMEOUT: float = 120.0
    TX_POLL_INTERVAL: float = 1.0
    REGISTRY_MAX_WORKERS: int = 8  # concurrent getMeetingDetails reads per load

    # Server-side signing wallet; writes are disabled when unset
    SIGNER_PRIVATE_KEY: Optional[SecretStr] = None

    # Application
    APP_TITLE: str = "Anonymous Check-In"
    APP_DESCRIPTION: str = "Anonymous meeting attendance recorded on a public ledger"
    APP_VERSION: str = "1.0.0"

    # Environment
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS - Can be a list or comma-separated string
    CORS_ORIGINS: Union[list, str] = ["*"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("CONTRACT_ADDRESS", "DEPLOYER_ADDRESS", mode="before")
    @classmethod
    def checksum_address(cls, v):
        """Validate 20-byte hex addresses and normalise them to checksum form."""
        if v is None or v == "":
            return None
        if not Web3.is_address(v):
            raise ValueError(f"Invalid address: {v!r}")
        return Web3.to_checksum_address(v)

    @field_validator("SIGNER_PRIVATE_KEY", mode="before")
    @classmethod
    def empty_key_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("READ_RETRY_ATTEMPTS", "REGISTRY_MAX_WORKERS")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Layer the deployment file below env vars and .env."""
        path = init_settings.init_kwargs.get("DEPLOYMENT_FILE") or os.getenv(
            "DEPLOYMENT_FILE", "config.json"
        )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            DeploymentFileSettingsSource(settings_cls, path),
            file_secret_settings,
        )

    @property
    def can_sign(self) -> bool:
        return self.SIGNER_PRIVATE_KEY is not None

    def chain_parameters(self) -> Dict[str, Any]:
        """Parameters for a ``wallet_addEthereumChain`` request."""
        return {
            "chainId": hex(self.CHAIN_ID),
            "chainName": self.CHAIN_NAME,
            "rpcUrls": [self.RPC_URL],
            "nativeCurrency": {
                "name": self.NATIVE_CURRENCY_NAME,
                "symbol": self.NATIVE_CURRENCY_SYMBOL,
                "decimals": self.NATIVE_CURRENCY_DECIMALS,
            },
            "blockExplorerUrls": [self.BLOCK_EXPLORER_URL],
        }

    def validate_production_config(self) -> None:
        """Validate that production-critical settings are properly configured."""
        if self.ENVIRONMENT != "production":
            return

        issues = []
        if not self.CONTRACT_ADDRESS:
            issues.append("CONTRACT_ADDRESS must be set (run the deployment step first)")
        if self.CORS_ORIGINS == ["*"]:
            issues.append("CORS_ORIGINS should be restricted to specific domains")

        if issues:
            raise ValueError(
                "Production configuration errors:\n" +
                "\n".join(f"  - {issue}" for issue in issues)
            )


settings = Settings()
