# solana_paywall/x402/verifier.py
"""
Ledger-backed payment verification.

Given a transaction signature, decides whether that transaction moved at
least the expected amount of the configured asset into a token account
owned by the configured recipient.

Verification steps (each one can reject):
1. Transaction must exist at "confirmed" commitment
2. Transaction must have executed without error
3. Transaction must be recent enough (block time vs. max age)
4. A token account owned by the recipient must have been credited
5. The credited amount must cover the expected amount

All amounts are compared in the asset's smallest unit.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from solana_paywall.x402.constants import UNKNOWN_SENDER
from solana_paywall.x402.ledger import (
    LedgerClient,
    LedgerError,
    check_transaction_shape,
    token_account_owner,
    transaction_account_keys,
)
from solana_paywall.x402.types import (
    ServerConfiguration,
    VerificationErrorKind,
    VerificationResult,
)
from solana_paywall.x402.units import AmountLike, from_smallest_unit, to_smallest_unit

logger = logging.getLogger(__name__)

DEFAULT_OWNER_LOOKUP_WORKERS = 4

# Sentinel for "use the configured maximum age"
_CONFIGURED = object()


@dataclass(frozen=True)
class Credit:
    """A positive balance change on the configured asset."""
    account_index: int
    account_address: str
    amount: int


def _token_balances(entries: Optional[List[Dict[str, Any]]], mint: str) -> Dict[int, int]:
    """
    Map account index -> raw balance for the given mint.

    Raw amounts come from uiTokenAmount.amount, an integer string in the
    asset's smallest unit.
    """
    balances: Dict[int, int] = {}
    for entry in entries or []:
        if entry.get("mint") != mint:
            continue
        try:
            index = int(entry["accountIndex"])
            raw = int(entry["uiTokenAmount"]["amount"])
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"Malformed token balance entry: {e}") from e
        balances[index] = raw
    return balances


def _ordered_post_indexes(entries: Optional[List[Dict[str, Any]]], mint: str) -> List[int]:
    return [int(e["accountIndex"]) for e in entries or [] if e.get("mint") == mint]


def find_credits(tx: Dict[str, Any], mint: str) -> List[Credit]:
    """
    Return the accounts whose balance of the mint increased, in the order
    they appear in the post-execution balances.
    """
    meta = tx.get("meta") or {}
    pre = _token_balances(meta.get("preTokenBalances"), mint)
    post = _token_balances(meta.get("postTokenBalances"), mint)
    keys = transaction_account_keys(tx)

    credits = []
    for index in _ordered_post_indexes(meta.get("postTokenBalances"), mint):
        delta = post[index] - pre.get(index, 0)
        if delta <= 0:
            continue
        if index >= len(keys):
            logger.warning(f"Token balance refers to unknown account index {index}")
            continue
        credits.append(Credit(account_index=index, account_address=keys[index], amount=delta))
    return credits


def find_debit_account(tx: Dict[str, Any], mint: str, exclude_index: int) -> Optional[str]:
    """Return the first account (other than exclude_index) whose balance of the mint decreased."""
    meta = tx.get("meta") or {}
    pre = _token_balances(meta.get("preTokenBalances"), mint)
    post = _token_balances(meta.get("postTokenBalances"), mint)
    keys = transaction_account_keys(tx)

    for entry in meta.get("preTokenBalances") or []:
        if entry.get("mint") != mint:
            continue
        index = int(entry["accountIndex"])
        if index == exclude_index:
            continue
        if pre[index] > post.get(index, 0) and index < len(keys):
            return keys[index]
    return None


def resolve_owner(ledger: LedgerClient, token_account: str) -> Optional[str]:
    """Resolve the wallet that owns a token account; None when it cannot be resolved."""
    try:
        return token_account_owner(ledger.fetch_account_state(token_account))
    except LedgerError as e:
        logger.warning(f"Could not resolve owner of token account {token_account}: {e}")
        return None


def resolve_owners(
    ledger: LedgerClient,
    token_accounts: List[str],
    max_workers: int = DEFAULT_OWNER_LOOKUP_WORKERS,
) -> List[Optional[str]]:
    """
    Resolve several token account owners concurrently.

    Results are returned in the same order as token_accounts.
    """
    if not token_accounts:
        return []
    if len(token_accounts) == 1 or max_workers <= 1:
        return [resolve_owner(ledger, account) for account in token_accounts]

    with ThreadPoolExecutor(max_workers=min(max_workers, len(token_accounts))) as executor:
        return list(executor.map(lambda account: resolve_owner(ledger, account), token_accounts))


def _check_freshness(tx: Dict[str, Any], max_age_seconds: int, now: float) -> Optional[str]:
    block_time = tx.get("blockTime")
    if block_time is None:
        return "Transaction block time unavailable; cannot check freshness"

    age = now - int(block_time)
    if age > max_age_seconds:
        return f"Transaction too old. Age {int(age)}s exceeds maximum {max_age_seconds}s"
    return None


def verify_payment(
    config: ServerConfiguration,
    ledger: LedgerClient,
    signature: str,
    expected_amount: Optional[AmountLike] = None,
    max_age_seconds: Any = _CONFIGURED,
    now: Optional[float] = None,
    max_workers: int = DEFAULT_OWNER_LOOKUP_WORKERS,
) -> VerificationResult:
    """
    Verify that a transaction pays the configured recipient.

    Args:
        config: Server configuration (recipient, asset, decimals)
        ledger: Ledger client used for the transaction and account lookups
        signature: Transaction signature claimed as payment
        expected_amount: Required amount in the asset's decimal unit;
            defaults to config.default_amount
        max_age_seconds: Reject transactions older than this; defaults to
            config.max_transaction_age_seconds, None disables the check
        now: Current unix time (for tests); defaults to time.time()
        max_workers: Thread pool size for owner lookups

    Returns:
        VerificationResult, valid or carrying the rejection reason

    Raises:
        ValueError: If expected_amount is not a valid amount
    """
    expected = expected_amount if expected_amount is not None else config.default_amount
    expected_raw = to_smallest_unit(expected, config.asset_decimals)
    if max_age_seconds is _CONFIGURED:
        max_age_seconds = config.max_transaction_age_seconds

    mint = config.asset_address

    try:
        tx = ledger.fetch_transaction(signature)
        if not tx:
            return VerificationResult.invalid(
                VerificationErrorKind.NOT_FOUND, "Transaction not found", signature
            )

        tx = check_transaction_shape(tx)
        meta = tx.get("meta") or {}
        if meta.get("err"):
            return VerificationResult.invalid(
                VerificationErrorKind.EXECUTION_FAILED, "Transaction failed", signature
            )

        if max_age_seconds is not None:
            stale_reason = _check_freshness(tx, max_age_seconds, now if now is not None else time.time())
            if stale_reason:
                return VerificationResult.invalid(VerificationErrorKind.STALE, stale_reason, signature)

        credits = find_credits(tx, mint)
        owners = resolve_owners(ledger, [c.account_address for c in credits], max_workers)

        match: Optional[Credit] = None
        for credit, owner in zip(credits, owners):
            if owner == config.recipient_address:
                match = credit
                break

        if match is None:
            return VerificationResult.invalid(
                VerificationErrorKind.NO_QUALIFYING_TRANSFER,
                "No qualifying transfer to recipient found",
                signature,
            )

        from_address = UNKNOWN_SENDER
        debit_account = find_debit_account(tx, mint, match.account_index)
        if debit_account:
            from_address = resolve_owner(ledger, debit_account) or UNKNOWN_SENDER

        if match.amount < expected_raw:
            return VerificationResult.invalid(
                VerificationErrorKind.INSUFFICIENT_AMOUNT,
                f"Insufficient amount. Expected {expected_raw}, got {match.amount}",
                signature,
            )

        return VerificationResult(
            valid=True,
            amount=from_smallest_unit(match.amount, config.asset_decimals),
            from_address=from_address,
            to_address=config.recipient_address,
            signature=signature,
        )

    except LedgerError as e:
        logger.error(f"x402: Ledger query failed while verifying {signature}: {e}")
        return VerificationResult.invalid(
            VerificationErrorKind.TRANSPORT_FAILURE, f"Verification failed: {e}", signature
        )
