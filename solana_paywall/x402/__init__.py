# solana_paywall/x402/__init__.py
"""
x402 Payment Protocol Integration Module.

This module implements the server side of the x402 payment protocol for
USDC payments on Solana: describing the payment a resource requires and
verifying, against the ledger, that a claimed transaction paid it.

Key components:
- requirements: builds the 402 Payment Required body
- ledger: Solana JSON-RPC access (transactions, token account owners)
- verifier: decides whether a transaction is a sufficient payment
- gate: per-request decision (no claim / bad claim / rejected / admitted)
- middleware: FastAPI middleware applying the gate to protected routes

Configuration is loaded from environment variables via solana_paywall.core.config.
"""

__version__ = "0.1.0"
