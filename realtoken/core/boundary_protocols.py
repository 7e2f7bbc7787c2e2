"""Boundary Protocols - contracts between the services and the external collaborators.

Invariants:
    - Services depend on these Protocols; only the composition root (marketplace)
      imports the concrete adapters
    - Login completion is a single awaited LoginOutcome, never a callback
    - LedgerGateway calls raise UnauthenticatedError / TransportError; ledger
      rejections come back as LedgerResult(accepted=False)

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - Async in Protocol: implementations do IO; the pure core never awaits them
"""

from dataclasses import dataclass
from typing import Protocol

from realtoken.core.domain_types import PrincipalId
from realtoken.schemas.ledger import LedgerResult, TransactionRecord
from realtoken.schemas.property import Property


@dataclass(frozen=True)
class Identity:
    """An authenticated identity as issued by the identity provider."""
    principal_id: PrincipalId
    credential: str | None = None


@dataclass(frozen=True)
class LoginOutcome:
    """Structured result of one login handshake: identity XOR error."""
    identity: Identity | None = None
    error: str | None = None
    cancelled: bool = False

    @classmethod
    def success(cls, identity: Identity) -> "LoginOutcome":
        return cls(identity=identity)

    @classmethod
    def failure(cls, error: str, cancelled: bool = False) -> "LoginOutcome":
        return cls(error=error, cancelled=cancelled)

    @property
    def ok(self) -> bool:
        return self.identity is not None


class IdentityProvider(Protocol):
    """Contract for the external identity provider - implemented by infrastructure."""
    async def login(self) -> LoginOutcome: ...
    def is_authenticated(self) -> bool: ...
    def current_identity(self) -> Identity | None: ...
    async def logout(self) -> None: ...


class LedgerGateway(Protocol):
    """Contract for the session-bound remote client - implemented by infrastructure."""
    generation: int

    async def fetch_properties(self) -> list[Property]: ...
    async def fetch_balances(self) -> dict[int, int]: ...
    async def buy(self, property_id: int, amount: int) -> LedgerResult: ...
    async def transfer(
        self, property_id: int, amount: int, recipient: str,
    ) -> LedgerResult: ...
    async def fetch_property(self, property_id: int) -> Property | None: ...
    async def fetch_transaction_history(self) -> list[TransactionRecord]: ...
    async def fetch_user_balance(self) -> int: ...
    async def aclose(self) -> None: ...
