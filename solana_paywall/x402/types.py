# solana_paywall/x402/types.py
"""
Data model for the x402 paywall.

Wire models keep snake_case attributes with the camelCase aliases of the
x402 protocol; serialize them with model_dump(by_alias=True).
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator
from solders.pubkey import Pubkey
from solders.signature import Signature

from solana_paywall.x402.constants import (
    RPC_URLS,
    SCHEME_EXACT,
    USDC_DECIMALS,
    USDC_MINTS,
    X402_VERSION,
)
from solana_paywall.x402.units import parse_amount


def _validate_pubkey(value: str, field_name: str) -> str:
    try:
        Pubkey.from_string(value)
    except Exception as e:  # solders raises its own parse errors
        raise ValueError(f"{field_name} is not a valid Solana address: {value!r}") from e
    return value


class VerificationErrorKind(str, Enum):
    """Why a payment claim was rejected."""
    NOT_FOUND = "not_found"
    EXECUTION_FAILED = "execution_failed"
    STALE = "stale"
    NO_QUALIFYING_TRANSFER = "no_qualifying_transfer"
    INSUFFICIENT_AMOUNT = "insufficient_amount"
    MALFORMED_CLAIM = "malformed_claim"
    TRANSPORT_FAILURE = "transport_failure"


class ServerConfiguration(BaseModel):
    """
    Immutable configuration shared by the requirement builder, the verifier
    and the access gate.

    Asset and RPC endpoint default to the USDC mint and public RPC of the
    selected network unless given explicitly.
    """
    recipient_address: str
    network: Literal["devnet", "mainnet-beta"] = "devnet"
    asset_address: str
    asset_decimals: int = Field(USDC_DECIMALS, ge=0, le=18)
    default_amount: str = "0.01"
    default_timeout: int = Field(60, gt=0)
    fee_payer: Optional[str] = None
    rpc_url: str
    max_transaction_age_seconds: Optional[int] = Field(300, gt=0)

    class Config:
        frozen = True

    @model_validator(mode="before")
    @classmethod
    def fill_network_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        network = data.get("network") or "devnet"
        data["network"] = network
        if not data.get("asset_address"):
            data["asset_address"] = USDC_MINTS.get(network)
        if not data.get("rpc_url"):
            data["rpc_url"] = RPC_URLS.get(network)
        return data

    @field_validator("recipient_address", "asset_address")
    @classmethod
    def check_address(cls, v: str, info) -> str:
        return _validate_pubkey(v, info.field_name)

    @field_validator("fee_payer")
    @classmethod
    def check_fee_payer(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _validate_pubkey(v, "fee_payer")

    @field_validator("default_amount")
    @classmethod
    def check_default_amount(cls, v: str) -> str:
        parse_amount(v)
        return v


class PaymentRequirement(BaseModel):
    """One acceptable way to pay for a resource."""
    scheme: str = SCHEME_EXACT
    network: str
    max_amount_required: str = Field(..., alias="maxAmountRequired")
    resource: str
    description: str
    mime_type: str = Field("application/json", alias="mimeType")
    pay_to: str = Field(..., alias="payTo")
    max_timeout_seconds: int = Field(..., alias="maxTimeoutSeconds")
    asset: str
    output_schema: Optional[Dict[str, Any]] = Field(None, alias="outputSchema")
    extra: Optional[Dict[str, Any]] = None

    class Config:
        populate_by_name = True

    @field_validator("max_amount_required")
    @classmethod
    def check_integer_string(cls, v: str) -> str:
        if not v.isdigit():
            raise ValueError(f"maxAmountRequired must be a non-negative integer string, got {v!r}")
        return v


class ProtocolResponse(BaseModel):
    """The x402 402 Payment Required response body."""
    x402_version: int = Field(X402_VERSION, alias="x402Version")
    accepts: List[PaymentRequirement]
    error: Optional[str] = None

    class Config:
        populate_by_name = True

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation; "error" is left out when there is none."""
        body = self.model_dump(by_alias=True)
        if body.get("error") is None:
            body.pop("error", None)
        return body


class VerificationResult(BaseModel):
    """Outcome of checking a transaction against the configured requirement."""
    valid: bool
    amount: Optional[Decimal] = None
    from_address: Optional[str] = Field(None, alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    signature: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[VerificationErrorKind] = Field(None, alias="errorKind")

    class Config:
        populate_by_name = True

    @field_serializer("amount", when_used="json-unless-none")
    def amount_as_number(self, v: Decimal) -> float:
        """JSON carries the amount as a number, e.g. 0.01."""
        return float(v)

    @classmethod
    def invalid(
        cls,
        kind: VerificationErrorKind,
        error: str,
        signature: Optional[str] = None,
    ) -> "VerificationResult":
        return cls(valid=False, error=error, error_kind=kind, signature=signature)


class PaymentClaim(BaseModel):
    """
    Decoded X-PAYMENT header.

    The signature may arrive either as payload.signature (x402 payload
    envelope) or as a top-level signature; the nested one wins.
    """
    signature: str
    x402_version: Optional[int] = Field(None, alias="x402Version")
    scheme: Optional[str] = None
    network: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    class Config:
        populate_by_name = True
        extra = "allow"

    @model_validator(mode="before")
    @classmethod
    def lift_signature(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        payload = data.get("payload")
        if isinstance(payload, dict) and payload.get("signature"):
            data = dict(data)
            data["signature"] = payload["signature"]
        return data

    @field_validator("signature")
    @classmethod
    def check_signature(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("signature must not be empty")
        try:
            Signature.from_string(v)
        except Exception as e:
            raise ValueError(f"signature is not a valid transaction signature: {v!r}") from e
        return v


class ProtectedRoute(BaseModel):
    """A route that requires payment, and what it costs."""
    method: str = "GET"
    path: str
    description: str = "Protected resource"
    amount: Optional[str] = None
    mime_type: str = "application/json"
    resource: Optional[str] = None
    timeout: Optional[int] = None

    @field_validator("method")
    @classmethod
    def upper_method(cls, v: str) -> str:
        return v.upper()

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_amount(v)
        return v

    def matches(self, method: str, path: str) -> bool:
        """Method must match exactly; path matches as a prefix, ignoring trailing slashes."""
        if method.upper() != self.method:
            return False
        return path.rstrip("/").startswith(self.path.rstrip("/"))
