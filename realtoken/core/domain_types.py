"""Domain Types - rich types that replace bare primitives across the codebase.

Invariants:
    - PrincipalId wraps the opaque identity string, never parsed client-side
    - PropertyId is the ledger's integer id; TokenAmount is a whole number of tokens
    - All valid states encoded as Enums, no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and log records without custom encoders
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

PrincipalId = NewType("PrincipalId", str)
PropertyId = NewType("PropertyId", int)


# ─── Value Types ─────────────────────────────────────────────────

TokenAmount = NewType("TokenAmount", int)   # >= 0 in balances, > 0 in operations


# ─── Enums ───────────────────────────────────────────────────────

class SessionStatus(str, Enum):
    """Authentication lifecycle of the single client session."""
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class PropertyStatus(str, Enum):
    """Listing status as reported by the catalog."""
    AVAILABLE = "available"
    UNDER_CONSTRUCTION = "under_construction"
    SOLD_OUT = "sold_out"


class Severity(str, Enum):
    """Notification severity shown to the user."""
    SUCCESS = "success"
    ERROR = "error"


class OperationKind(str, Enum):
    """State-mutating ledger operations."""
    BUY = "buy"
    TRANSFER = "transfer"


class OperationPhase(str, Enum):
    """Orchestrator state machine: IDLE -> SUBMITTING -> RECONCILING -> SETTLED."""
    IDLE = "idle"
    SUBMITTING = "submitting"
    RECONCILING = "reconciling"
    SETTLED = "settled"


class OperationStatus(str, Enum):
    """Terminal result of one orchestrated operation."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    APPLIED_STALE = "applied_stale"   # accepted by the ledger, refresh failed
    DISCARDED = "discarded"           # response arrived for a superseded session
