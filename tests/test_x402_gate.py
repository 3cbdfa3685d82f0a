# tests/test_x402_gate.py
"""
Unit tests for X-PAYMENT decoding and the per-request access decision.
"""
import base64
import json

import pytest

from solana_paywall.x402.gate import (
    decode_payment_header,
    encode_payment_response,
    evaluate_payment,
    MalformedClaimError,
)
from solana_paywall.x402.ledger import LedgerError
from solana_paywall.x402.types import ProtectedRoute, VerificationErrorKind, VerificationResult

from solana_fixtures import (
    NOW,
    PAYER,
    RECIPIENT,
    FakeLedger,
    make_config,
    payment_header,
    signature,
    simple_transfer,
)

SIG = signature(8)
ROUTE = ProtectedRoute(method="GET", path="/api/v1/premium", description="Premium content", amount="0.01")


def encode(obj) -> str:
    return base64.b64encode(json.dumps(obj).encode()).decode()


class TestDecodePaymentHeader:
    """Test X-PAYMENT header decoding."""

    def test_nested_signature(self):
        """Signature under payload.signature."""
        claim = decode_payment_header(payment_header(SIG, nested=True))

        assert claim.signature == SIG
        assert claim.x402_version == 1
        assert claim.network == "solana-devnet"

    def test_top_level_signature(self):
        """Signature at the top level."""
        claim = decode_payment_header(payment_header(SIG, nested=False))

        assert claim.signature == SIG

    def test_nested_signature_wins(self):
        claim = decode_payment_header(encode({"signature": signature(1), "payload": {"signature": SIG}}))

        assert claim.signature == SIG

    def test_extra_metadata_kept(self):
        claim = decode_payment_header(encode({"signature": SIG, "memo": "order-42"}))

        assert claim.model_extra["memo"] == "order-42"

    @pytest.mark.parametrize("header", [
        "",
        "   ",
        "not-valid-base64!!!",
        base64.b64encode(b"not json").decode(),
        base64.b64encode(b"[1, 2, 3]").decode(),
        base64.b64encode(b"\xff\xfe").decode(),
    ])
    def test_undecodable(self, header):
        with pytest.raises(MalformedClaimError):
            decode_payment_header(header)

    def test_missing_signature(self):
        with pytest.raises(MalformedClaimError, match="invalid payment payload"):
            decode_payment_header(encode({"x402Version": 1, "payload": {}}))

    def test_invalid_signature(self):
        with pytest.raises(MalformedClaimError):
            decode_payment_header(encode({"signature": "0xabc123"}))

    def test_malformed_claim_is_value_error(self):
        assert issubclass(MalformedClaimError, ValueError)


class TestEncodePaymentResponse:
    """Test X-PAYMENT-RESPONSE header encoding."""

    def test_encode(self):
        result = VerificationResult(valid=True, amount="0.01", from_address=PAYER, to_address=RECIPIENT, signature=SIG)

        decoded = json.loads(base64.b64decode(encode_payment_response(result, "devnet")))

        assert decoded == {
            "success": True,
            "transaction": SIG,
            "network": "solana-devnet",
            "payer": PAYER,
        }


class TestEvaluatePayment:
    """Test the access gate state machine."""

    def test_no_header_returns_requirement(self):
        decision = evaluate_payment(make_config(), FakeLedger(), None, ROUTE)

        assert decision.admitted is False
        body = decision.response.to_dict()
        assert "error" not in body
        assert body["accepts"][0]["maxAmountRequired"] == "10000"
        assert body["accepts"][0]["resource"] == "/api/v1/premium"

    def test_resource_override(self):
        decision = evaluate_payment(make_config(), FakeLedger(), None, ROUTE, resource="https://example.com/api/v1/premium")

        assert decision.response.accepts[0].resource == "https://example.com/api/v1/premium"

    def test_malformed_header(self):
        """Bad base64 never raises; it yields a 402 body with a processing error."""
        decision = evaluate_payment(make_config(), FakeLedger(), "%%%not-base64%%%", ROUTE)

        assert decision.admitted is False
        assert decision.error_kind == VerificationErrorKind.MALFORMED_CLAIM
        assert decision.response.error.startswith("Payment processing error")

    def test_valid_payment_admitted(self, monkeypatch):
        monkeypatch.setattr("solana_paywall.x402.verifier.time.time", lambda: NOW)
        ledger = FakeLedger(transactions={SIG: simple_transfer(amount_raw=10_000)})

        decision = evaluate_payment(make_config(), ledger, payment_header(SIG), ROUTE)

        assert decision.admitted is True
        assert decision.response is None
        assert decision.verification.from_address == PAYER

    def test_insufficient_payment_rejected(self, monkeypatch):
        monkeypatch.setattr("solana_paywall.x402.verifier.time.time", lambda: NOW)
        ledger = FakeLedger(transactions={SIG: simple_transfer(amount_raw=10_000)})
        route = ROUTE.model_copy(update={"amount": "0.02"})

        decision = evaluate_payment(make_config(), ledger, payment_header(SIG), route)

        assert decision.admitted is False
        assert decision.error_kind == VerificationErrorKind.INSUFFICIENT_AMOUNT
        assert decision.response.error == "Insufficient amount. Expected 20000, got 10000"
        assert decision.response.accepts[0].max_amount_required == "20000"

    def test_unknown_transaction_rejected(self):
        decision = evaluate_payment(make_config(), FakeLedger(), payment_header(SIG), ROUTE)

        assert decision.admitted is False
        assert decision.response.error == "Transaction not found"

    def test_transport_failure_rejected(self):
        ledger = FakeLedger(transaction_error=LedgerError("timeout"))

        decision = evaluate_payment(make_config(), ledger, payment_header(SIG), ROUTE)

        assert decision.admitted is False
        assert decision.error_kind == VerificationErrorKind.TRANSPORT_FAILURE
        assert "timeout" in decision.response.error
