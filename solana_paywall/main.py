# solana_paywall/main.py
from fastapi import FastAPI
from solana_paywall.core.config import settings
from solana_paywall.api.endpoints import payments, premium
from solana_paywall.x402.middleware import X402Middleware
import logging

# Configure basic logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json" # Standard location for OpenAPI spec
)

# Gate protected routes on verified Solana payments
app.add_middleware(X402Middleware)

# Include the API router(s)
# The prefix ensures all routes start with /api/v1
app.include_router(payments.router, prefix=f"{settings.API_V1_STR}/x402", tags=["x402"])
app.include_router(premium.router, prefix=f"{settings.API_V1_STR}", tags=["premium"])

@app.get("/", summary="Health Check", tags=["default"])
def read_root():
    """ Basic health check endpoint. """
    logger.info("Root endpoint '/' accessed.")
    return {
        "status": "ok",
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "x402_enabled": settings.X402_ENABLED,
        "network": settings.X402_NETWORK,
    }
