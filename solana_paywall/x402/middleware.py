# solana_paywall/x402/middleware.py
"""
FastAPI middleware for x402 payment verification.

This module provides HTTP middleware that:
1. Intercepts requests to protected endpoints
2. Checks if payment is required (X402_ENABLED)
3. Verifies the X-PAYMENT header against the Solana ledger
4. Returns 402 Payment Required when needed

Ledger lookups are blocking, so the access gate runs in the threadpool.
"""
import logging
from typing import Callable, List, Optional, Sequence

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from solana_paywall.core.config import settings, build_server_configuration
from solana_paywall.x402.constants import X_PAYMENT_HEADER, X_PAYMENT_RESPONSE_HEADER
from solana_paywall.x402.gate import evaluate_payment, encode_payment_response
from solana_paywall.x402.ledger import LedgerClient, SolanaRpcClient
from solana_paywall.x402.types import ProtectedRoute, ProtocolResponse, ServerConfiguration

logger = logging.getLogger(__name__)

# Protected endpoints configuration
# These endpoints require x402 payment when X402_ENABLED=true
PROTECTED_ROUTES: List[ProtectedRoute] = [
    ProtectedRoute(
        method="GET",
        path="/api/v1/premium",
        description="Premium content",
    ),
]


def find_protected_route(
    method: str,
    path: str,
    routes: Sequence[ProtectedRoute] = PROTECTED_ROUTES,
) -> Optional[ProtectedRoute]:
    """Return the protected route matching the request, if any."""
    for route in routes:
        if route.matches(method, path):
            return route
    return None


def create_402_json_response(body: ProtocolResponse) -> JSONResponse:
    """
    Create an HTTP 402 Payment Required response.

    Args:
        body: The x402 protocol response to send

    Returns:
        JSONResponse with 402 status and payment details
    """
    return JSONResponse(
        status_code=402,
        content=body.to_dict(),
        headers={"Content-Type": "application/json"}
    )


class X402Middleware(BaseHTTPMiddleware):
    """
    x402 payment verification middleware for FastAPI.

    When X402_ENABLED=true, this middleware:
    - Checks if the endpoint requires payment
    - Verifies the claimed Solana transaction on protected endpoints
    - Returns HTTP 402 with payment requirements if no valid payment

    When X402_ENABLED=false, all requests pass through unchanged.
    """

    def __init__(
        self,
        app,
        routes: Optional[Sequence[ProtectedRoute]] = None,
        ledger_client: Optional[LedgerClient] = None,
        server_config: Optional[ServerConfiguration] = None,
    ):
        super().__init__(app)
        self.routes = list(routes) if routes is not None else PROTECTED_ROUTES
        self._ledger_client = ledger_client
        self._server_config = server_config

    @property
    def server_config(self) -> ServerConfiguration:
        """Lazy initialization of the server configuration."""
        if self._server_config is None:
            self._server_config = build_server_configuration(settings)
        return self._server_config

    @property
    def ledger_client(self) -> LedgerClient:
        """Lazy initialization of the ledger client."""
        if self._ledger_client is None:
            self._ledger_client = SolanaRpcClient(
                rpc_url=self.server_config.rpc_url,
                timeout=settings.X402_RPC_TIMEOUT_SECONDS,
            )
        return self._ledger_client

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response]
    ) -> Response:
        """
        Process the request through x402 payment verification.

        Flow:
        1. Check if x402 is enabled
        2. Check if endpoint is protected
        3. If no X-PAYMENT header, return 402 with payment requirements
        4. If X-PAYMENT header present, verify the transaction on-chain
        5. If valid, process request and add X-PAYMENT-RESPONSE header
        """
        # Skip if x402 is disabled
        if not settings.X402_ENABLED:
            return await call_next(request)

        # Skip if not a protected endpoint
        route = find_protected_route(request.method, request.url.path, self.routes)
        if route is None:
            return await call_next(request)

        logger.info(f"x402: Processing protected request: {request.method} {request.url.path}")

        try:
            config = self.server_config
            ledger = self.ledger_client
        except ValueError as e:
            logger.error(f"x402: Invalid payment configuration: {e}")
            return JSONResponse(
                status_code=503,
                content={"error": "Service temporarily unavailable", "detail": str(e)}
            )

        decision = await run_in_threadpool(
            evaluate_payment,
            config,
            ledger,
            request.headers.get(X_PAYMENT_HEADER),
            route,
            route.resource or str(request.url),
            settings.X402_OWNER_LOOKUP_WORKERS,
        )

        if not decision.admitted:
            return create_402_json_response(decision.response)

        response = await call_next(request)
        response.headers[X_PAYMENT_RESPONSE_HEADER] = encode_payment_response(
            decision.verification, config.network
        )
        return response
