"""Ledger Schemas - balance rows, mutation results and transaction history records.

Invariants:
    - TokenHolding.amount is non-negative
    - LedgerResult is either accepted (reason None) or rejected (reason non-empty)
    - Reason strings kept verbatim from the ledger

Design Decisions:
    - LedgerResult.from_wire mirrors the ledger's Result variant ({"ok": ...} / {"err": ...})
"""

from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class TokenHolding(BaseModel):
    """One getUserTokens row: tokens of one property held by the caller."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    property_id: int = Field(
        ge=0, validation_alias=AliasChoices("property_id", "propertyId"),
    )
    amount: int = Field(ge=0)


class LedgerResult(BaseModel):
    """Outcome of buyTokens / transferTokens."""
    model_config = ConfigDict(frozen=True)

    accepted: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> "LedgerResult":
        return cls(accepted=True)

    @classmethod
    def rejected(cls, reason: str) -> "LedgerResult":
        return cls(accepted=False, reason=reason)

    @classmethod
    def from_wire(cls, payload: object) -> "LedgerResult":
        """Parse {"ok": <any>} or {"err": <reason>}. Raises ValueError otherwise."""
        if not isinstance(payload, dict):
            raise ValueError(f"ledger result must be an object, got {type(payload).__name__}")
        if "ok" in payload:
            return cls.ok()
        if "err" in payload:
            reason = payload["err"]
            if isinstance(reason, dict) and len(reason) == 1:
                # Variant-typed error, e.g. {"InsufficientTokens": null}
                reason = next(iter(reason))
            reason = str(reason) if reason is not None else ""
            return cls.rejected(reason or "rejected by ledger")
        raise ValueError(f"ledger result has neither 'ok' nor 'err': {list(payload)}")


class TransactionRecord(BaseModel):
    """One entry of getUserTransactionHistory."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    kind: str = Field(validation_alias=AliasChoices("kind", "txType", "type"))
    property_id: int = Field(
        ge=0, validation_alias=AliasChoices("property_id", "propertyId"),
    )
    amount: int = Field(ge=0)
    counterparty: str | None = Field(
        None, validation_alias=AliasChoices("counterparty", "to", "recipient"),
    )
    timestamp: datetime | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def unwrap_variant(cls, v: object) -> object:
        if isinstance(v, dict) and len(v) == 1:
            return next(iter(v))
        return v

    @field_validator("timestamp", mode="before")
    @classmethod
    def from_nanoseconds(cls, v: object) -> object:
        """Ledger clocks report integer nanoseconds since epoch."""
        if isinstance(v, int) and not isinstance(v, bool):
            return datetime.fromtimestamp(v / 1_000_000_000, tz=timezone.utc)
        return v
