# solana_paywall/core/config.py
from typing import Literal, Optional
from pydantic_settings import BaseSettings
from pydantic import AnyHttpUrl # AnyHttpUrl stays in pydantic core
from functools import lru_cache
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "Solana x402 Paywall"
    API_V1_STR: str = "/api/v1"

    # x402 payment gating
    X402_ENABLED: bool = True
    X402_RECIPIENT_ADDRESS: Optional[str] = None  # Wallet that receives USDC
    X402_NETWORK: Literal["devnet", "mainnet-beta"] = "devnet"
    X402_RPC_URL: Optional[AnyHttpUrl] = None  # Falls back to the public RPC of X402_NETWORK
    X402_ASSET_ADDRESS: Optional[str] = None  # Falls back to the USDC mint of X402_NETWORK
    X402_DEFAULT_AMOUNT: str = "0.01"
    X402_DEFAULT_TIMEOUT_SECONDS: int = 60
    X402_FEE_PAYER: Optional[str] = None
    X402_MAX_TRANSACTION_AGE_SECONDS: Optional[int] = 300

    # Ledger RPC behaviour
    X402_RPC_TIMEOUT_SECONDS: float = 10.0
    X402_OWNER_LOOKUP_WORKERS: int = 4

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields from .env

@lru_cache() # Cache the settings object for performance
def get_settings() -> Settings:
    return Settings()

settings = get_settings()


def build_server_configuration(config: Settings) -> "ServerConfiguration":
    """
    Build the immutable x402 server configuration from settings.

    Args:
        config: Loaded application settings

    Returns:
        ServerConfiguration with network-specific defaults filled in

    Raises:
        ValueError: If the recipient address is missing or any address is invalid
    """
    from solana_paywall.x402.types import ServerConfiguration

    if not config.X402_RECIPIENT_ADDRESS:
        raise ValueError("X402_RECIPIENT_ADDRESS not configured")

    return ServerConfiguration(
        recipient_address=config.X402_RECIPIENT_ADDRESS,
        network=config.X402_NETWORK,
        asset_address=config.X402_ASSET_ADDRESS,
        default_amount=config.X402_DEFAULT_AMOUNT,
        default_timeout=config.X402_DEFAULT_TIMEOUT_SECONDS,
        fee_payer=config.X402_FEE_PAYER or None,
        rpc_url=str(config.X402_RPC_URL) if config.X402_RPC_URL else None,
        max_transaction_age_seconds=config.X402_MAX_TRANSACTION_AGE_SECONDS,
    )
