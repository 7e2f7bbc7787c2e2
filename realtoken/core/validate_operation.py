"""Operation Validation - advisory client-side checks before a buy/transfer is submitted.

Invariants:
    - validate_operation is PURE: returns an error or None, never raises, never mutates
    - Checks run against cached snapshots only; the ledger remains authoritative
    - For transfers the recipient is checked before the balance

Design Decisions:
    - Separated from the orchestrator: checks are testable without an event loop
"""

from realtoken.core.domain_types import OperationKind
from realtoken.core.errors import ErrorContext, OperationValidationError
from realtoken.core.operations import PendingOperation
from realtoken.core.snapshots import CatalogSnapshot, LedgerSnapshot


def _ctx(op: PendingOperation) -> ErrorContext:
    return ErrorContext(property_id=op.property_id, operation=op.kind.value)


def validate_amount(op: PendingOperation) -> OperationValidationError | None:
    """Rule 1: amount is a positive whole number of tokens."""
    amount = op.amount
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        return OperationValidationError(
            f"Invalid amount: {amount!r}. Amount must be a positive whole number of tokens.",
            "amount", "INVALID_AMOUNT", _ctx(op),
        )
    return None


def validate_purchase(
    op: PendingOperation, catalog: CatalogSnapshot,
) -> OperationValidationError | None:
    """Rule 2: buy needs a known property with enough available tokens."""
    prop = catalog.get(op.property_id)
    if prop is None:
        return OperationValidationError(
            f"Unknown property: {op.property_id} is not in the catalog.",
            "property_id", "UNKNOWN_PROPERTY", _ctx(op),
        )
    if op.amount > prop.available_tokens:
        return OperationValidationError(
            f"Insufficient available tokens: requested {op.amount}, "
            f"only {prop.available_tokens} available for '{prop.title}'.",
            "amount", "INSUFFICIENT_AVAILABLE_TOKENS", _ctx(op),
        )
    return None


def validate_transfer(
    op: PendingOperation, ledger: LedgerSnapshot,
) -> OperationValidationError | None:
    """Rule 3: transfer needs a non-blank recipient and enough cached balance."""
    if op.recipient is None or not op.recipient.strip():
        return OperationValidationError(
            "Invalid recipient: a recipient principal is required.",
            "recipient", "INVALID_RECIPIENT", _ctx(op),
        )
    balance = ledger.balance_for(op.property_id)
    if op.amount > balance:
        return OperationValidationError(
            f"Insufficient balance: requested {op.amount}, you hold {balance} "
            f"tokens of property {op.property_id}.",
            "amount", "INSUFFICIENT_BALANCE", _ctx(op),
        )
    return None


def validate_operation(
    op: PendingOperation, catalog: CatalogSnapshot, ledger: LedgerSnapshot,
) -> OperationValidationError | None:
    """Run every applicable rule; first failure wins."""
    error = validate_amount(op)
    if error:
        return error
    if op.kind == OperationKind.BUY:
        return validate_purchase(op, catalog)
    return validate_transfer(op, ledger)
