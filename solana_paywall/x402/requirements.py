# solana_paywall/x402/requirements.py
"""
Payment requirement builder.

Turns the server configuration plus a resource description into the
x402 402 Payment Required body. Pure: no I/O, no state.
"""
import logging
from typing import Any, Dict, Optional

from solana_paywall.x402.constants import SCHEME_EXACT, X402_VERSION
from solana_paywall.x402.types import PaymentRequirement, ProtocolResponse, ServerConfiguration
from solana_paywall.x402.units import AmountLike, network_identifier, to_smallest_unit

logger = logging.getLogger(__name__)


def default_output_schema(method: str = "GET") -> Dict[str, Any]:
    """Describe how the protected resource is accessed."""
    return {
        "input": {
            "type": "http",
            "method": method.upper(),
            "discoverable": True,
        }
    }


def create_payment_requirement(
    config: ServerConfiguration,
    resource: str,
    description: str,
    amount: Optional[AmountLike] = None,
    mime_type: str = "application/json",
    timeout: Optional[int] = None,
    method: str = "GET",
    output_schema: Optional[Dict[str, Any]] = None,
) -> PaymentRequirement:
    """
    Create the PaymentRequirement for a resource.

    Args:
        config: Server configuration (recipient, asset, network)
        resource: Identifier or URL of the protected resource
        description: Human-readable description shown to the payer
        amount: Price in the asset's decimal unit; defaults to config.default_amount
        mime_type: MIME type of the protected response
        timeout: Maximum timeout in seconds; defaults to config.default_timeout
        method: HTTP method advertised in the output schema
        output_schema: Overrides the default output schema

    Returns:
        PaymentRequirement with the amount in smallest units

    Raises:
        ValueError: If the amount is not a valid non-negative number
    """
    price = amount if amount is not None else config.default_amount
    max_amount = to_smallest_unit(price, config.asset_decimals)

    return PaymentRequirement(
        scheme=SCHEME_EXACT,
        network=network_identifier(config.network),
        max_amount_required=str(max_amount),
        resource=resource,
        description=description,
        mime_type=mime_type,
        pay_to=config.recipient_address,
        max_timeout_seconds=timeout or config.default_timeout,
        asset=config.asset_address,
        output_schema=output_schema if output_schema is not None else default_output_schema(method),
        extra={"feePayer": config.fee_payer} if config.fee_payer else None,
    )


def create_402_response(
    config: ServerConfiguration,
    resource: str,
    description: str,
    amount: Optional[AmountLike] = None,
    mime_type: str = "application/json",
    timeout: Optional[int] = None,
    error: Optional[str] = None,
    method: str = "GET",
    output_schema: Optional[Dict[str, Any]] = None,
) -> ProtocolResponse:
    """
    Create an x402 Payment Required response body.

    The error message, when given, is shown to the payer after a failed
    verification so they can retry with a corrected payment.
    """
    requirement = create_payment_requirement(
        config,
        resource=resource,
        description=description,
        amount=amount,
        mime_type=mime_type,
        timeout=timeout,
        method=method,
        output_schema=output_schema,
    )

    return ProtocolResponse(
        x402_version=X402_VERSION,
        accepts=[requirement],
        error=error,
    )


def create_402(
    recipient_address: str,
    resource: str,
    description: str,
    amount: Optional[AmountLike] = None,
    network: str = "devnet",
) -> ProtocolResponse:
    """Build a 402 body without keeping a configuration around."""
    config = ServerConfiguration(recipient_address=recipient_address, network=network)
    return create_402_response(config, resource=resource, description=description, amount=amount)
