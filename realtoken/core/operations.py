"""Operations - the transient buy/transfer request and its settled outcome.

Invariants:
    - PendingOperation lives for exactly one orchestrated call and is never persisted
    - recipient is set iff kind == TRANSFER
    - OperationOutcome.phases records every phase the operation passed through,
      ending in SETTLED
"""

from dataclasses import dataclass

from realtoken.core.domain_types import (
    OperationKind, OperationPhase, OperationStatus, PropertyId, TokenAmount,
)
from realtoken.core.errors import RealTokenError


@dataclass(frozen=True)
class PendingOperation:
    kind: OperationKind
    property_id: PropertyId
    amount: TokenAmount
    recipient: str | None = None
    generation: int = 0

    @classmethod
    def buy(cls, property_id: int, amount: int, generation: int = 0) -> "PendingOperation":
        return cls(OperationKind.BUY, PropertyId(property_id), TokenAmount(amount),
                   None, generation)

    @classmethod
    def transfer(
        cls, property_id: int, amount: int, recipient: str, generation: int = 0,
    ) -> "PendingOperation":
        return cls(OperationKind.TRANSFER, PropertyId(property_id), TokenAmount(amount),
                   recipient, generation)


@dataclass(frozen=True)
class OperationOutcome:
    operation: PendingOperation
    status: OperationStatus
    phases: tuple[OperationPhase, ...]
    error: RealTokenError | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == OperationStatus.SUCCEEDED

    @property
    def applied(self) -> bool:
        """Ledger accepted the mutation (view may still be stale)."""
        return self.status in (OperationStatus.SUCCEEDED, OperationStatus.APPLIED_STALE)

    @property
    def reached_network(self) -> bool:
        return OperationPhase.SUBMITTING in self.phases
