# solana_paywall/x402/ledger.py
"""
Solana ledger access for payment verification.

The verifier only needs two questions answered, so it depends on the
small LedgerClient protocol below. SolanaRpcClient answers them over
JSON-RPC with requests; tests substitute in-memory fakes.
"""
import base64
import binascii
import logging
from typing import Any, Dict, List, Optional, Protocol

import requests
from requests.exceptions import RequestException
from solders.pubkey import Pubkey

from solana_paywall.x402.constants import (
    COMMITMENT,
    SOLANA_DEVNET_RPC,
    TOKEN_ACCOUNT_OWNER_END,
    TOKEN_ACCOUNT_OWNER_OFFSET,
)

logger = logging.getLogger(__name__)

DEFAULT_RPC_TIMEOUT_SECONDS = 10.0


class LedgerError(Exception):
    """The ledger could not be queried or returned something unusable."""


class LedgerClient(Protocol):
    def fetch_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        ...

    def fetch_account_state(self, address: str) -> Optional[bytes]:
        ...


class SolanaRpcClient:
    """LedgerClient backed by a Solana JSON-RPC endpoint."""

    def __init__(self, rpc_url: str = SOLANA_DEVNET_RPC, timeout: float = DEFAULT_RPC_TIMEOUT_SECONDS):
        self.rpc_url = rpc_url
        self.timeout = timeout

    def _call(self, method: str, params: List[Any]) -> Any:
        """
        Perform one JSON-RPC call.

        Returns:
            The "result" member of the response

        Raises:
            LedgerError: On transport failure, timeout, HTTP error,
                JSON-RPC error or a malformed response
        """
        logger.debug(f"Solana RPC {method} -> {self.rpc_url}")
        try:
            response = requests.post(
                self.rpc_url,
                json={
                    "jsonrpc": "2.0",
                    "id": 1,
                    "method": method,
                    "params": params,
                },
                timeout=self.timeout
            )
            response.raise_for_status()
            result = response.json()
        except RequestException as e:
            raise LedgerError(f"RPC request {method} failed: {e}") from e
        except ValueError as e:
            raise LedgerError(f"RPC response for {method} is not valid JSON: {e}") from e

        if not isinstance(result, dict):
            raise LedgerError(f"Invalid RPC response for {method}: expected an object")

        if "error" in result:
            raise LedgerError(f"RPC error: {result['error']}")

        if "result" not in result:
            raise LedgerError(f"Invalid RPC response: missing 'result' field")

        return result["result"]

    def fetch_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        """Fetch a confirmed transaction, or None if the ledger does not know it."""
        tx = self._call(
            "getTransaction",
            [
                signature,
                {
                    "commitment": COMMITMENT,
                    "encoding": "json",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if tx is not None and not isinstance(tx, dict):
            raise LedgerError("Invalid getTransaction result: expected an object")
        return tx

    def fetch_account_state(self, address: str) -> Optional[bytes]:
        """Fetch raw account data, or None if the account does not exist."""
        result = self._call(
            "getAccountInfo",
            [address, {"commitment": COMMITMENT, "encoding": "base64"}],
        )
        if not isinstance(result, dict):
            raise LedgerError("Invalid getAccountInfo result: expected an object")

        value = result.get("value")
        if value is None:
            return None

        try:
            data = value["data"]
            encoded = data[0] if isinstance(data, list) else data
            return base64.b64decode(encoded, validate=True)
        except (KeyError, IndexError, TypeError, binascii.Error) as e:
            raise LedgerError(f"Invalid account data for {address}: {e}") from e


def check_transaction_shape(tx: Any) -> Dict[str, Any]:
    """
    Check the parts of a getTransaction result that verification reads.

    Raises:
        LedgerError: If the transaction, its meta, its token balance entries
            or its block time have an unexpected type
    """
    if not isinstance(tx, dict):
        raise LedgerError("Malformed transaction: expected an object")

    meta = tx.get("meta")
    if meta is not None and not isinstance(meta, dict):
        raise LedgerError("Malformed transaction meta: expected an object")

    for field in ("preTokenBalances", "postTokenBalances"):
        entries = (meta or {}).get(field)
        if entries is None:
            continue
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            raise LedgerError(f"Malformed {field}: expected a list of objects")

    loaded = (meta or {}).get("loadedAddresses")
    if loaded is not None and not isinstance(loaded, dict):
        raise LedgerError("Malformed loadedAddresses: expected an object")

    block_time = tx.get("blockTime")
    if block_time is not None and (isinstance(block_time, bool) or not isinstance(block_time, int)):
        raise LedgerError(f"Malformed blockTime: {block_time!r}")

    return tx


def transaction_account_keys(tx: Dict[str, Any]) -> List[str]:
    """
    Return the full account key list of a transaction.

    Versioned transactions load extra addresses from lookup tables; those
    follow the static keys, writable first, exactly as token balance
    account indexes count them.

    Raises:
        LedgerError: If the transaction has no account key list
    """
    try:
        keys = list(tx["transaction"]["message"]["accountKeys"])
    except (KeyError, TypeError) as e:
        raise LedgerError(f"Transaction has no account keys: {e}") from e

    loaded = (tx.get("meta") or {}).get("loadedAddresses") or {}
    keys.extend(loaded.get("writable") or [])
    keys.extend(loaded.get("readonly") or [])
    return keys


def token_account_owner(data: Optional[bytes]) -> Optional[str]:
    """Read the owner wallet of an SPL token account from its raw data."""
    if data is None or len(data) < TOKEN_ACCOUNT_OWNER_END:
        return None
    return str(Pubkey.from_bytes(bytes(data[TOKEN_ACCOUNT_OWNER_OFFSET:TOKEN_ACCOUNT_OWNER_END])))
