# solana_paywall/x402/constants.py
"""Solana network, token and x402 protocol constants."""

# x402 protocol
X402_VERSION = 1
SCHEME_EXACT = "exact"
X_PAYMENT_HEADER = "X-PAYMENT"
X_PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"

# Public RPC endpoints
SOLANA_DEVNET_RPC = "https://api.devnet.solana.com"
SOLANA_MAINNET_RPC = "https://api.mainnet-beta.solana.com"

# USDC mint addresses
USDC_DEVNET_MINT = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"
USDC_MAINNET_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

# Token decimals
SOL_DECIMALS = 9
USDC_DECIMALS = 6

SUPPORTED_NETWORKS = ("devnet", "mainnet-beta")

RPC_URLS = {
    "devnet": SOLANA_DEVNET_RPC,
    "mainnet-beta": SOLANA_MAINNET_RPC,
}

USDC_MINTS = {
    "devnet": USDC_DEVNET_MINT,
    "mainnet-beta": USDC_MAINNET_MINT,
}

# SPL token account layout: mint (32 bytes) followed by owner (32 bytes)
TOKEN_ACCOUNT_OWNER_OFFSET = 32
TOKEN_ACCOUNT_OWNER_END = 64

# Commitment used for every ledger read
COMMITMENT = "confirmed"

UNKNOWN_SENDER = "unknown"
