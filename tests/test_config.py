# tests/test_config.py
"""
Tests for settings -> ServerConfiguration mapping and its invariants.
"""
import pytest
from unittest.mock import MagicMock
from pydantic import ValidationError

from solana_paywall.core.config import build_server_configuration
from solana_paywall.x402.constants import (
    SOLANA_DEVNET_RPC,
    SOLANA_MAINNET_RPC,
    USDC_DEVNET_MINT,
    USDC_MAINNET_MINT,
)
from solana_paywall.x402.types import ServerConfiguration

from solana_fixtures import RECIPIENT, FEE_PAYER, address


def settings_mock(**overrides) -> MagicMock:
    mocked = MagicMock()
    mocked.X402_RECIPIENT_ADDRESS = RECIPIENT
    mocked.X402_NETWORK = "devnet"
    mocked.X402_RPC_URL = None
    mocked.X402_ASSET_ADDRESS = None
    mocked.X402_DEFAULT_AMOUNT = "0.01"
    mocked.X402_DEFAULT_TIMEOUT_SECONDS = 60
    mocked.X402_FEE_PAYER = None
    mocked.X402_MAX_TRANSACTION_AGE_SECONDS = 300
    for key, value in overrides.items():
        setattr(mocked, key, value)
    return mocked


class TestServerConfiguration:
    """Test network-specific defaults and validation."""

    def test_devnet_defaults(self):
        config = ServerConfiguration(recipient_address=RECIPIENT)

        assert config.network == "devnet"
        assert config.asset_address == USDC_DEVNET_MINT
        assert config.rpc_url == SOLANA_DEVNET_RPC
        assert config.asset_decimals == 6
        assert config.default_amount == "0.01"
        assert config.default_timeout == 60
        assert config.fee_payer is None

    def test_mainnet_defaults(self):
        config = ServerConfiguration(recipient_address=RECIPIENT, network="mainnet-beta")

        assert config.asset_address == USDC_MAINNET_MINT
        assert config.rpc_url == SOLANA_MAINNET_RPC

    def test_explicit_overrides(self):
        custom_mint = address(70)
        config = ServerConfiguration(
            recipient_address=RECIPIENT,
            network="mainnet-beta",
            asset_address=custom_mint,
            rpc_url="https://rpc.example.com",
        )

        assert config.asset_address == custom_mint
        assert config.rpc_url == "https://rpc.example.com"

    def test_immutable(self):
        config = ServerConfiguration(recipient_address=RECIPIENT)

        with pytest.raises(ValidationError):
            config.recipient_address = FEE_PAYER

    def test_invalid_recipient(self):
        with pytest.raises(ValidationError):
            ServerConfiguration(recipient_address="0x1234567890abcdef")

    def test_invalid_network(self):
        with pytest.raises(ValidationError):
            ServerConfiguration(recipient_address=RECIPIENT, network="testnet")

    def test_invalid_default_amount(self):
        with pytest.raises(ValidationError):
            ServerConfiguration(recipient_address=RECIPIENT, default_amount="lots")


class TestBuildServerConfiguration:
    """Test building configuration from settings."""

    def test_from_settings(self):
        config = build_server_configuration(settings_mock(X402_FEE_PAYER=FEE_PAYER))

        assert config.recipient_address == RECIPIENT
        assert config.fee_payer == FEE_PAYER
        assert config.max_transaction_age_seconds == 300

    def test_custom_rpc(self):
        config = build_server_configuration(settings_mock(X402_RPC_URL="https://rpc.example.com/"))

        assert config.rpc_url == "https://rpc.example.com/"

    def test_missing_recipient(self):
        with pytest.raises(ValueError, match="X402_RECIPIENT_ADDRESS"):
            build_server_configuration(settings_mock(X402_RECIPIENT_ADDRESS=None))

    def test_empty_fee_payer_ignored(self):
        config = build_server_configuration(settings_mock(X402_FEE_PAYER=""))

        assert config.fee_payer is None

    def test_freshness_disabled(self):
        config = build_server_configuration(settings_mock(X402_MAX_TRANSACTION_AGE_SECONDS=None))

        assert config.max_transaction_age_seconds is None
