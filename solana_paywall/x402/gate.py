# solana_paywall/x402/gate.py
"""
Per-request access decision for x402-protected resources.

No claim -> 402 with the payment requirement.
Undecodable claim -> 402 with a processing error.
Claim that fails verification -> 402 with the verifier's reason.
Claim that verifies -> admitted.
"""
import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from solana_paywall.x402.ledger import LedgerClient
from solana_paywall.x402.requirements import create_402_response
from solana_paywall.x402.types import (
    PaymentClaim,
    ProtectedRoute,
    ProtocolResponse,
    ServerConfiguration,
    VerificationErrorKind,
    VerificationResult,
)
from solana_paywall.x402.units import network_identifier
from solana_paywall.x402.verifier import DEFAULT_OWNER_LOOKUP_WORKERS, verify_payment

logger = logging.getLogger(__name__)

class MalformedClaimError(ValueError):
    """The X-PAYMENT header could not be decoded into a payment claim."""


@dataclass(frozen=True)
class GateDecision:
    admitted: bool
    verification: Optional[VerificationResult] = None
    response: Optional[ProtocolResponse] = None
    error_kind: Optional[VerificationErrorKind] = None


def decode_payment_header(header_value: Optional[str]) -> PaymentClaim:
    """
    Decode the X-PAYMENT header into a PaymentClaim.

    Args:
        header_value: Base64-encoded JSON payment payload

    Returns:
        The decoded PaymentClaim

    Raises:
        MalformedClaimError: If the header is empty, not base64, not a JSON
            object, or carries no valid transaction signature
    """
    if not header_value or not header_value.strip():
        raise MalformedClaimError("empty payment header")

    try:
        decoded = base64.b64decode(header_value.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise MalformedClaimError(f"invalid base64: {e}") from e

    try:
        payload = json.loads(decoded)
    except json.JSONDecodeError as e:
        raise MalformedClaimError(f"invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedClaimError("payment payload must be a JSON object")

    try:
        return PaymentClaim.model_validate(payload)
    except ValidationError as e:
        reasons = "; ".join(err["msg"] for err in e.errors())
        raise MalformedClaimError(f"invalid payment payload: {reasons}") from e


def encode_payment_response(result: VerificationResult, network: str) -> str:
    """
    Encode a successful verification for the X-PAYMENT-RESPONSE header.

    Returns:
        Base64-encoded JSON string
    """
    response_dict = {
        "success": result.valid,
        "transaction": result.signature,
        "network": network_identifier(network),
        "payer": result.from_address,
    }
    response_json = json.dumps(response_dict)
    return base64.b64encode(response_json.encode("utf-8")).decode("ascii")


def evaluate_payment(
    config: ServerConfiguration,
    ledger: LedgerClient,
    header_value: Optional[str],
    route: ProtectedRoute,
    resource: Optional[str] = None,
    max_workers: int = DEFAULT_OWNER_LOOKUP_WORKERS,
) -> GateDecision:
    """
    Decide whether a request carrying header_value may access route.

    Args:
        config: Server configuration
        ledger: Ledger client used for verification
        header_value: Raw X-PAYMENT header, or None when absent
        route: The protected route being accessed
        resource: Resource identifier for the requirement; defaults to
            route.resource, then route.path
        max_workers: Thread pool size for owner lookups

    Returns:
        GateDecision; when not admitted, response holds the 402 body
    """
    resource_id = resource or route.resource or route.path

    def payment_required(error: Optional[str] = None) -> ProtocolResponse:
        return create_402_response(
            config,
            resource=resource_id,
            description=route.description,
            amount=route.amount,
            mime_type=route.mime_type,
            timeout=route.timeout,
            error=error,
            method=route.method,
        )

    if not header_value:
        logger.info(f"x402: No X-PAYMENT header for {resource_id}, returning 402")
        return GateDecision(admitted=False, response=payment_required())

    try:
        claim = decode_payment_header(header_value)
    except MalformedClaimError as e:
        logger.warning(f"x402: Invalid X-PAYMENT header for {resource_id}: {e}")
        return GateDecision(
            admitted=False,
            response=payment_required(f"Payment processing error: {e}"),
            error_kind=VerificationErrorKind.MALFORMED_CLAIM,
        )

    result = verify_payment(
        config,
        ledger,
        claim.signature,
        expected_amount=route.amount,
        max_workers=max_workers,
    )

    if not result.valid:
        logger.warning(f"x402: Payment verification failed for {claim.signature}: {result.error}")
        return GateDecision(
            admitted=False,
            verification=result,
            response=payment_required(result.error or "Payment verification failed"),
            error_kind=result.error_kind,
        )

    logger.info(f"x402: Payment {claim.signature} verified from {result.from_address} ({result.amount})")
    return GateDecision(admitted=True, verification=result)
