"""Session State - authentication lifecycle of the single client session.

Invariants:
    - principal_id is non-null iff status == AUTHENTICATED
    - generation increments on every identity change (authenticate, reset)
    - Mutated only by the session manager; everything else reads it

Design Decisions:
    - Pure dataclass passed explicitly to client factory, caches and orchestrator,
      never a module-level singleton
    - generation is the stamp used to drop results of superseded sessions
"""

from dataclasses import dataclass

from realtoken.core.domain_types import PrincipalId, SessionStatus


@dataclass
class Session:
    """Per-process session state - pure dataclass, no IO."""

    status: SessionStatus = SessionStatus.ANONYMOUS
    principal_id: PrincipalId | None = None

    # Opaque bearer credential issued by the identity provider
    credential: str | None = None

    generation: int = 0

    @property
    def is_authenticated(self) -> bool:
        return self.status == SessionStatus.AUTHENTICATED

    @property
    def is_authenticating(self) -> bool:
        return self.status == SessionStatus.AUTHENTICATING

    @property
    def is_consistent(self) -> bool:
        return (self.principal_id is not None) == self.is_authenticated

    def begin_authentication(self) -> None:
        """ANONYMOUS -> AUTHENTICATING. No identity is bound yet."""
        self.status = SessionStatus.AUTHENTICATING
        self.principal_id = None
        self.credential = None

    def authenticate(self, principal_id: PrincipalId, credential: str | None) -> int:
        """Bind a new identity. Returns the new generation."""
        if not principal_id:
            raise ValueError("principal_id must be non-empty")
        self.status = SessionStatus.AUTHENTICATED
        self.principal_id = principal_id
        self.credential = credential
        self.generation += 1
        return self.generation

    def reset(self) -> int:
        """Back to ANONYMOUS. Bumps generation only if an identity was bound."""
        was_bound = self.principal_id is not None
        self.status = SessionStatus.ANONYMOUS
        self.principal_id = None
        self.credential = None
        if was_bound:
            self.generation += 1
        return self.generation

    def is_live(self, generation: int) -> bool:
        """True if `generation` is the currently authenticated identity."""
        return self.is_authenticated and self.generation == generation
