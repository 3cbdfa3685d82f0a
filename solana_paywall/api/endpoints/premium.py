# solana_paywall/api/endpoints/premium.py
from fastapi import APIRouter
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/premium", summary="Paid content", tags=["premium"])
async def get_premium_content():
    """
    Example resource gated by the x402 middleware.
    Only reached once a valid X-PAYMENT header has been verified.
    """
    logger.info("Premium content served")
    return {"content": "Thank you for your payment!", "status": "paid"}
