"""Unit tests for settings loading."""
import json

import pytest
from pydantic import ValidationError

from anoncheckin.core.config import Settings
from anoncheckin.core.constants import SEPOLIA_CHAIN_ID
from tests.utils import CONTRACT, ORGANIZER, make_settings

CHECKSUM_CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("RPC_URL", "CONTRACT_ADDRESS", "DEPLOYER_ADDRESS", "DEPLOYMENT_FILE", "CHAIN_ID", "SIGNER_PRIVATE_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def deployment_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "network": "https://rpc.example.org",
        "contractAddress": CONTRACT,
        "deployer": ORGANIZER,
    }))
    return path


@pytest.mark.unit
class TestSettings:
    def test_defaults(self):
        settings = make_settings(CONTRACT_ADDRESS=None)

        assert settings.CHAIN_ID == SEPOLIA_CHAIN_ID
        assert settings.READ_RETRY_ATTEMPTS == 3
        assert settings.CONTRACT_ADDRESS is None
        assert settings.can_sign is False

    def test_address_is_checksummed(self):
        assert make_settings().CONTRACT_ADDRESS == CHECKSUM_CONTRACT

    def test_invalid_address_is_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(CONTRACT_ADDRESS="0x1234")

    def test_empty_address_means_unset(self):
        assert make_settings(CONTRACT_ADDRESS="").CONTRACT_ADDRESS is None

    def test_settings_are_frozen(self):
        settings = make_settings()
        with pytest.raises(ValidationError):
            settings.CHAIN_ID = 1

    def test_retry_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            make_settings(READ_RETRY_ATTEMPTS=0)

    def test_empty_signer_key_means_unset(self):
        assert make_settings(SIGNER_PRIVATE_KEY="").can_sign is False

    def test_signer_key_is_secret(self):
        settings = make_settings(SIGNER_PRIVATE_KEY="0x" + "11" * 32)

        assert settings.can_sign is True
        assert "11" * 32 not in repr(settings)

    def test_cors_origins_from_comma_separated_string(self):
        settings = make_settings(CORS_ORIGINS="https://a.example, https://b.example")
        assert settings.CORS_ORIGINS == ["https://a.example", "https://b.example"]

    def test_chain_parameters(self):
        params = make_settings().chain_parameters()

        assert params["chainId"] == hex(SEPOLIA_CHAIN_ID)
        assert params["nativeCurrency"]["decimals"] == 18
        assert params["rpcUrls"]


@pytest.mark.unit
class TestDeploymentFile:
    def test_values_read_from_deployment_file(self, deployment_file):
        settings = Settings(_env_file=None, DEPLOYMENT_FILE=str(deployment_file))

        assert settings.RPC_URL == "https://rpc.example.org"
        assert settings.CONTRACT_ADDRESS == CHECKSUM_CONTRACT
        assert settings.DEPLOYER_ADDRESS.lower() == ORGANIZER

    def test_explicit_values_win_over_file(self, deployment_file):
        settings = Settings(
            _env_file=None,
            DEPLOYMENT_FILE=str(deployment_file),
            RPC_URL="http://127.0.0.1:8545",
        )
        assert settings.RPC_URL == "http://127.0.0.1:8545"

    def test_environment_wins_over_file(self, deployment_file, monkeypatch):
        monkeypatch.setenv("RPC_URL", "http://node.internal:8545")

        settings = Settings(_env_file=None, DEPLOYMENT_FILE=str(deployment_file))

        assert settings.RPC_URL == "http://node.internal:8545"

    def test_deployment_file_from_environment(self, deployment_file, monkeypatch):
        monkeypatch.setenv("DEPLOYMENT_FILE", str(deployment_file))

        assert Settings(_env_file=None).CONTRACT_ADDRESS == CHECKSUM_CONTRACT

    def test_missing_file_is_not_an_error(self, tmp_path):
        settings = Settings(_env_file=None, DEPLOYMENT_FILE=str(tmp_path / "missing.json"))

        assert settings.CONTRACT_ADDRESS is None


@pytest.mark.unit
class TestProductionValidation:
    def test_development_is_not_validated(self):
        make_settings(CONTRACT_ADDRESS=None).validate_production_config()

    def test_production_requires_contract_and_cors(self):
        settings = make_settings(ENVIRONMENT="production", CONTRACT_ADDRESS=None)

        with pytest.raises(ValueError) as exc_info:
            settings.validate_production_config()
        assert "CONTRACT_ADDRESS" in str(exc_info.value)
        assert "CORS_ORIGINS" in str(exc_info.value)

    def test_valid_production_config(self):
        make_settings(
            ENVIRONMENT="production",
            CORS_ORIGINS="https://checkin.example",
        ).validate_production_config()
