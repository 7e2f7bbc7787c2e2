"""Tests for the error hierarchy - codes, categories and user-facing notifications."""

from realtoken.core.domain_types import OperationKind, Severity
from realtoken.core.errors import (
    AuthProviderError, ErrorCategory, ErrorContext, LedgerRejectionError,
    OperationInFlightError, RealTokenError, StaleViewError, TransportError,
    UnauthenticatedError,
)


def test_all_errors_share_base():
    for err in (
        UnauthenticatedError("buy"),
        TransportError("boom", "timeout"),
        LedgerRejectionError("nope"),
        OperationInFlightError(),
    ):
        assert isinstance(err, RealTokenError)


def test_ledger_rejection_keeps_reason_verbatim():
    err = LedgerRejectionError("insufficient tokens", OperationKind.BUY)
    assert err.reason == "insufficient tokens"
    assert err.code == "LEDGER_REJECTED"
    message, severity = err.to_notification()
    assert "insufficient tokens" in message
    assert message.startswith("Purchase failed")
    assert severity == Severity.ERROR


def test_transport_error_distinct_from_rejection():
    err = TransportError("connect refused", "connection_error", retry_after_ms=2000)
    assert err.category == ErrorCategory.TRANSPORT
    assert err.category != LedgerRejectionError("x").category
    assert err.transport_error_type == "connection_error"
    assert err.context.retry_after_ms == 2000
    assert "Transport error" in err.user_message
    assert err.recoverable


def test_stale_view_mentions_stale():
    err = StaleViewError(OperationKind.TRANSFER, TransportError("x", "timeout"))
    assert err.code == "STALE_VIEW"
    assert "stale" in err.user_message
    assert err.user_message.startswith("Transfer")


def test_auth_provider_cancelled():
    assert AuthProviderError("UserInterrupt", cancelled=True).code == "AUTH_CANCELLED"
    failed = AuthProviderError("denied")
    assert failed.code == "AUTH_FAILED"
    assert "denied" in failed.user_message


def test_log_extra_carries_context():
    err = UnauthenticatedError(
        "buyTokens", ErrorContext(principal_id="p", property_id=3),
    )
    extra = err.to_log_extra()
    assert extra == {
        "error_code": "UNAUTHENTICATED",
        "principal_id": "p",
        "property_id": 3,
        "operation": "buyTokens",
    }
