# solana_paywall/api/endpoints/payments.py
from fastapi import APIRouter, HTTPException, Request, Body
from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse
import logging

from solana_paywall.core.config import settings, build_server_configuration
from solana_paywall.api.models.payment import PaymentRequiredRequest, VerifyPaymentRequest
from solana_paywall.x402.ledger import SolanaRpcClient
from solana_paywall.x402.requirements import create_402_response
from solana_paywall.x402.types import VerificationResult
from solana_paywall.x402.verifier import verify_payment

logger = logging.getLogger(__name__)

router = APIRouter()


def _server_config():
    try:
        return build_server_configuration(settings)
    except ValueError as e:
        logger.error(f"Invalid x402 configuration: {e}")
        raise HTTPException(
            status_code=503,
            detail=f"Payment configuration unavailable: {e}"
        )


@router.post("/require", status_code=402)
async def require_payment(request: Request, body: PaymentRequiredRequest = Body(...)) -> JSONResponse:
    """
    Return an x402 Payment Required response for the given amount.

    Returns:
        JSONResponse: 402 with the protocol response body

    Raises:
        HTTPException: 503 if the server is not configured for payments
    """
    config = _server_config()
    resource = body.resourceId or str(request.url)

    payment = create_402_response(
        config,
        resource=resource,
        description=body.description,
        amount=body.amount,
        mime_type=body.mimeType,
        timeout=body.timeout,
    )
    logger.info(f"Payment requirement issued for {resource}: {body.amount} USDC")
    return JSONResponse(status_code=402, content=payment.to_dict())


@router.post("/verify", response_model=VerificationResult, response_model_by_alias=True)
async def verify(body: VerifyPaymentRequest = Body(...)) -> VerificationResult:
    """
    Verify a Solana USDC payment transaction against the configured recipient.

    Returns:
        VerificationResult: valid flag plus amount/sender/recipient or the rejection reason

    Raises:
        HTTPException: 503 if the server is not configured for payments
    """
    config = _server_config()
    ledger = SolanaRpcClient(rpc_url=config.rpc_url, timeout=settings.X402_RPC_TIMEOUT_SECONDS)

    result = await run_in_threadpool(
        verify_payment,
        config,
        ledger,
        body.signature,
        body.expectedAmount,
        body.maxAge,
        None,
        settings.X402_OWNER_LOOKUP_WORKERS,
    )

    if result.valid:
        logger.info(f"Payment {body.signature} verified: {result.amount} USDC from {result.from_address}")
    else:
        logger.warning(f"Payment {body.signature} rejected: {result.error}")
    return result
