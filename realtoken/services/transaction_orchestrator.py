"""Transaction Orchestrator - drives buy/transfer through submit and mandatory reconciliation.

Invariants:
    - Phases: IDLE -> SUBMITTING -> RECONCILING -> SETTLED; every outcome records
      the phases it passed through
    - At most one operation in flight per live session generation; a second
      call settles as failed without touching the network
    - Caches are never adjusted arithmetically; after an accepted mutation both
      are refreshed from the ledger, concurrently and unconditionally, with
      reads issued after the acknowledgement
    - A ledger rejection settles as failed with the reason verbatim, caches untouched
    - Accepted but refresh failed settles as APPLIED_STALE, never as failed
    - A response arriving for a superseded session is DISCARDED: no refresh,
      no notification
"""

import asyncio
import logging
from collections.abc import Callable

from realtoken.core.boundary_protocols import LedgerGateway
from realtoken.core.domain_types import (
    OperationKind, OperationPhase, OperationStatus, Severity,
)
from realtoken.core.errors import (
    ErrorContext, LedgerRejectionError, OperationInFlightError,
    RealTokenError, StaleViewError, UnauthenticatedError,
)
from realtoken.core.operations import OperationOutcome, PendingOperation
from realtoken.core.session_state import Session
from realtoken.core.validate_operation import validate_operation
from realtoken.schemas.ledger import LedgerResult
from realtoken.services.notification_queue import NotificationQueue
from realtoken.services.snapshot_cache import CatalogCache, LedgerCache

logger = logging.getLogger(__name__)


class TransactionOrchestrator:
    """Runs one buy or transfer at a time through submit, reconcile and settle."""

    def __init__(
        self,
        session: Session,
        client_provider: Callable[[], LedgerGateway | None],
        catalog: CatalogCache,
        ledger: LedgerCache,
        notifications: NotificationQueue,
    ):
        self._session = session
        self._client_provider = client_provider
        self._catalog = catalog
        self._ledger = ledger
        self._notifications = notifications
        self._pending: PendingOperation | None = None
        self._phase = OperationPhase.IDLE
        self.last_outcome: OperationOutcome | None = None

    @property
    def busy(self) -> bool:
        """True while an operation of the live session is submitting or reconciling."""
        pending = self._pending
        return pending is not None and self._session.is_live(pending.generation)

    @property
    def phase(self) -> OperationPhase:
        return self._phase if self.busy else OperationPhase.IDLE

    async def buy(self, property_id: int, amount: int) -> OperationOutcome:
        return await self._run(
            PendingOperation.buy(property_id, amount, self._session.generation),
        )

    async def transfer(
        self, property_id: int, amount: int, recipient: str | None,
    ) -> OperationOutcome:
        if isinstance(recipient, str):
            recipient = recipient.strip()
        return await self._run(PendingOperation.transfer(
            property_id, amount, recipient, self._session.generation,
        ))

    async def _run(self, op: PendingOperation) -> OperationOutcome:
        phases: list[OperationPhase] = []
        ctx = self._context(op)

        client = self._client_provider()
        if client is None or not self._session.is_live(client.generation):
            return self._settle(
                op, OperationStatus.FAILED, phases,
                UnauthenticatedError(op.kind.value, ctx),
            )
        if self.busy:
            return self._settle(
                op, OperationStatus.FAILED, phases, OperationInFlightError(ctx),
            )
        error = validate_operation(op, self._catalog.snapshot, self._ledger.snapshot)
        if error is not None:
            return self._settle(op, OperationStatus.FAILED, phases, error)

        self._pending = op
        try:
            self._enter(OperationPhase.SUBMITTING, phases)
            try:
                result = await self._submit(client, op)
            except RealTokenError as e:
                if not self._session.is_live(op.generation):
                    return self._discard(op, phases)
                return self._settle(op, OperationStatus.FAILED, phases, e)

            if not self._session.is_live(op.generation):
                return self._discard(op, phases)
            if not result.accepted:
                return self._settle(
                    op, OperationStatus.FAILED, phases,
                    LedgerRejectionError(result.reason, op.kind, ctx),
                )

            self._enter(OperationPhase.RECONCILING, phases)
            refresh_error = await self._reconcile()
            if not self._session.is_live(op.generation):
                return self._discard(op, phases)
            if refresh_error is not None:
                return self._settle(
                    op, OperationStatus.APPLIED_STALE, phases,
                    StaleViewError(op.kind, refresh_error, ctx),
                )
            return self._settle(op, OperationStatus.SUCCEEDED, phases)
        finally:
            if self._pending is op:
                self._pending = None
                self._phase = OperationPhase.IDLE

    async def _submit(self, client: LedgerGateway, op: PendingOperation) -> LedgerResult:
        logger.info(
            f"Submitting {op.kind.value} of {op.amount} tokens",
            extra={
                "operation": op.kind.value,
                "property_id": op.property_id,
                "generation": op.generation,
            },
        )
        if op.kind == OperationKind.BUY:
            return await client.buy(op.property_id, op.amount)
        return await client.transfer(op.property_id, op.amount, op.recipient)

    async def _reconcile(self) -> RealTokenError | None:
        """Refresh both caches; return the first refresh failure, if any.

        Reads are always issued after the acknowledgement: a fetch already in
        flight may have been answered before the mutation and is not joined.
        """
        results = await asyncio.gather(
            self._catalog.refresh(fresh=True),
            self._ledger.refresh(fresh=True),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, RealTokenError):
                raise result
        for result in results:
            if isinstance(result, RealTokenError):
                return result
        return None

    def _enter(self, phase: OperationPhase, phases: list[OperationPhase]) -> None:
        self._phase = phase
        phases.append(phase)

    def _settle(
        self,
        op: PendingOperation,
        status: OperationStatus,
        phases: list[OperationPhase],
        error: RealTokenError | None = None,
    ) -> OperationOutcome:
        phases.append(OperationPhase.SETTLED)
        outcome = OperationOutcome(op, status, tuple(phases), error)
        self.last_outcome = outcome

        if error is None:
            logger.info(
                f"{op.kind.value} settled: {status.value}",
                extra={"operation": op.kind.value, "property_id": op.property_id},
            )
            self._notifications.emit(self._success_message(op), Severity.SUCCESS)
        else:
            logger.warning(
                f"{op.kind.value} settled: {status.value}: {error.message}",
                extra=error.to_log_extra(),
            )
            self._notifications.emit_error(error)
        return outcome

    def _discard(
        self, op: PendingOperation, phases: list[OperationPhase],
    ) -> OperationOutcome:
        phases.append(OperationPhase.SETTLED)
        logger.info(
            f"Discarded {op.kind.value} response from superseded session",
            extra={
                "operation": op.kind.value,
                "property_id": op.property_id,
                "generation": op.generation,
            },
        )
        return OperationOutcome(op, OperationStatus.DISCARDED, tuple(phases))

    def _success_message(self, op: PendingOperation) -> str:
        if op.kind == OperationKind.TRANSFER:
            return f"{op.amount} tokens transferred"
        prop = self._catalog.snapshot.get(op.property_id)
        title = prop.title if prop is not None else f"property {op.property_id}"
        return f"Purchase successful: {op.amount} tokens of {title}"

    def _context(self, op: PendingOperation) -> ErrorContext:
        return ErrorContext(
            principal_id=self._session.principal_id,
            property_id=op.property_id,
            operation=op.kind.value,
        )
