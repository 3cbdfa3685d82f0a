# solana_paywall/api/models/payment.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional

from solana_paywall.x402.units import parse_amount


class PaymentRequiredRequest(BaseModel):
    """
    Request model for building a 402 Payment Required response.
    Amount is expressed in USDC (e.g. 0.01), not smallest units.
    """
    amount: str = Field(..., description="Amount in USDC required to access the resource.", example="0.01")
    resourceId: Optional[str] = Field(None, description="Optional unique identifier for the protected resource.", example="premium-content-001")
    description: str = Field("Payment required", description="Human-readable description shown to the payer.")
    mimeType: str = Field("application/json", description="MIME type of the protected resource.")
    timeout: Optional[int] = Field(None, description="Maximum timeout in seconds (defaults to server setting).", ge=1)

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v):
        parse_amount(v)
        return str(v)


class VerifyPaymentRequest(BaseModel):
    """
    Request model for verifying a Solana USDC payment transaction.
    """
    signature: str = Field(..., description="Solana transaction signature to verify.", min_length=1)
    expectedAmount: str = Field(..., description="Expected payment amount in USDC.", example="0.01")
    maxAge: int = Field(300, description="Maximum age of transaction in seconds (prevents replay attacks).", ge=60, le=3600)

    @field_validator("expectedAmount", mode="before")
    @classmethod
    def validate_expected_amount(cls, v):
        parse_amount(v)
        return str(v)
