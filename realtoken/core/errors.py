"""Error Hierarchy - typed, categorized exceptions for every client failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Ledger rejections never share a category with transport failures
    - to_notification() produces the user-facing (message, Severity) pair
    - Ledger rejection reasons are surfaced verbatim

Design Decisions:
    - Single hierarchy with RealTokenError base: services catch one type at the boundary
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone

from realtoken.core.domain_types import OperationKind, Severity


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    UNAUTHENTICATED = "unauthenticated"
    TRANSPORT = "transport"
    LEDGER_REJECTION = "ledger_rejection"
    STALE_VIEW = "stale_view"
    AUTH_PROVIDER = "auth_provider"
    VALIDATION = "validation"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    principal_id: str | None = None
    property_id: int | None = None
    operation: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


_OPERATION_LABELS = {
    OperationKind.BUY: "Purchase",
    OperationKind.TRANSFER: "Transfer",
}


def _label(operation: OperationKind | None) -> str:
    return _OPERATION_LABELS.get(operation, "Operation") if operation else "Operation"


class RealTokenError(Exception):
    """Base exception for all RealToken client errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    @property
    def recoverable(self) -> bool:
        return self.severity in (ErrorSeverity.INFO, ErrorSeverity.WARNING)

    @property
    def user_message(self) -> str:
        return self.context.user_message or self.message

    def to_notification(self) -> tuple[str, Severity]:
        """Convert to the (message, severity) pair shown to the user."""
        return self.user_message, Severity.ERROR

    def to_log_extra(self) -> dict:
        """Structured fields for logger.*(extra=...)."""
        return {
            "error_code": self.code,
            "principal_id": self.context.principal_id,
            "property_id": self.context.property_id,
            "operation": self.context.operation,
        }


# ─── Session Errors ─────────────────────────────────────────────

class UnauthenticatedError(RealTokenError):
    """An operation requiring a session was invoked with none bound."""
    def __init__(self, operation: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.operation = ctx.operation or operation
        ctx.user_message = ctx.user_message or "You must connect before continuing."
        super().__init__(
            f"No authenticated session bound for '{operation}'",
            "UNAUTHENTICATED", ErrorCategory.UNAUTHENTICATED,
            ErrorSeverity.WARNING, ctx,
        )


class AuthProviderError(RealTokenError):
    """Identity provider reported an error, or the user cancelled the handshake."""
    def __init__(
        self, message: str, cancelled: bool = False, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.operation = ctx.operation or "login"
        ctx.user_message = ctx.user_message or (
            "Login cancelled." if cancelled else f"Login failed: {message}"
        )
        super().__init__(
            message,
            "AUTH_CANCELLED" if cancelled else "AUTH_FAILED",
            ErrorCategory.AUTH_PROVIDER, ErrorSeverity.WARNING, ctx,
        )
        self.cancelled = cancelled


class SessionBusyError(RealTokenError):
    """A login or logout is already in flight."""
    def __init__(self, operation: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.operation = ctx.operation or operation
        ctx.user_message = ctx.user_message or (
            "Another login or logout is already in progress."
        )
        super().__init__(
            f"Cannot start '{operation}': session change already in flight",
            "SESSION_BUSY", ErrorCategory.CONFLICT, ErrorSeverity.WARNING, ctx,
        )


# ─── Operation Errors ───────────────────────────────────────────

class OperationValidationError(RealTokenError):
    """Client-side advisory check rejected an operation before submission."""
    def __init__(
        self, message: str, field: str, code: str = "VALIDATION_ERROR",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.VALIDATION, ErrorSeverity.WARNING, context,
        )
        self.field = field


class OperationInFlightError(RealTokenError):
    """A buy/transfer is already submitting or reconciling."""
    def __init__(self, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.user_message = ctx.user_message or (
            "Another operation is already in progress."
        )
        super().__init__(
            "Operation rejected: another operation is in flight",
            "OPERATION_IN_FLIGHT", ErrorCategory.CONFLICT, ErrorSeverity.WARNING, ctx,
        )


class LedgerRejectionError(RealTokenError):
    """Remote ledger explicitly refused a buy/transfer. Reason kept verbatim."""
    def __init__(
        self, reason: str, operation: OperationKind | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        if operation:
            ctx.operation = ctx.operation or operation.value
        ctx.user_message = ctx.user_message or f"{_label(operation)} failed: {reason}"
        super().__init__(
            reason, "LEDGER_REJECTED", ErrorCategory.LEDGER_REJECTION,
            ErrorSeverity.ERROR, ctx,
        )
        self.reason = reason
        self.operation = operation


class StaleViewError(RealTokenError):
    """Mutation was accepted but the reconciliation refresh failed."""
    def __init__(
        self, operation: OperationKind, cause: Exception,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.operation = ctx.operation or operation.value
        ctx.user_message = ctx.user_message or (
            f"{_label(operation)} was accepted, but the view may be stale: "
            "refreshing from the ledger failed."
        )
        super().__init__(
            f"{operation.value} applied but refresh failed: {cause}",
            "STALE_VIEW", ErrorCategory.STALE_VIEW, ErrorSeverity.WARNING, ctx,
        )
        self.operation = operation
        self.cause = cause


# ─── Infrastructure Errors ──────────────────────────────────────

class TransportError(RealTokenError):
    """Network-level failure reaching the remote service. Retryable by the user."""
    def __init__(
        self,
        message: str,
        transport_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        ctx.user_message = ctx.user_message or (
            "Transport error: the ledger service could not be reached. Please retry."
        )
        super().__init__(
            f"Transport error ({transport_error_type}): {message}",
            "TRANSPORT_ERROR", ErrorCategory.TRANSPORT, ErrorSeverity.WARNING, ctx,
        )
        self.transport_error_type = transport_error_type
