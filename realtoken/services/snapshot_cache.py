"""Snapshot Caches - read-through caches of the remote catalog and the caller's balances.

Invariants:
    - No write path: the only way in is refresh(), the only way out is clear()
    - A refresh swaps in a new immutable snapshot in one assignment
    - Concurrent refresh() calls for the same generation share one fetch and
      observe the same snapshot, unless fresh=True forces a new read
    - A snapshot from an earlier read never replaces one from a later read
    - Results and failures from a superseded generation are logged and dropped
    - A failed refresh for the live generation keeps the previous snapshot and raises

Design Decisions:
    - asyncio.shield around the shared task: one cancelled caller does not
      cancel the fetch for the others
"""

import asyncio
import logging
from collections.abc import Callable

from realtoken.core.boundary_protocols import LedgerGateway
from realtoken.core.errors import ErrorContext, RealTokenError, UnauthenticatedError
from realtoken.core.session_state import Session
from realtoken.core.snapshots import CatalogSnapshot, LedgerSnapshot

logger = logging.getLogger(__name__)

ClientProvider = Callable[[], LedgerGateway | None]


class SnapshotCache:
    """Base read-through cache. Subclasses define the empty snapshot and the load."""

    name = "snapshot"

    def __init__(self, session: Session, client_provider: ClientProvider):
        self._session = session
        self._client_provider = client_provider
        self._snapshot = self._empty()
        self._inflight: asyncio.Task | None = None
        self._inflight_generation: int | None = None
        # Reads are numbered in issue order; a snapshot never replaces a newer one
        self._sequence = 0
        self._applied_sequence = 0

    @property
    def snapshot(self):
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._snapshot.generation

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def refresh(self, fresh: bool = False):
        """Fetch and swap in a fresh snapshot, joining a fetch already in flight.

        With fresh=True an in-flight fetch is never joined: a new read is issued,
        so the result reflects server state as of this call. An older fetch that
        completes later is dropped.
        """
        client = self._client_provider()
        if client is None or not self._session.is_live(client.generation):
            raise UnauthenticatedError(
                f"{self.name}.refresh",
                ErrorContext(principal_id=self._session.principal_id),
            )
        generation = client.generation
        task = self._inflight
        if (
            fresh
            or task is None
            or task.done()
            or self._inflight_generation != generation
        ):
            self._sequence += 1
            task = asyncio.create_task(
                self._fetch(client, generation, self._sequence),
            )
            self._inflight = task
            self._inflight_generation = generation
        else:
            logger.debug(
                f"Joining in-flight {self.name} refresh",
                extra={"cache": self.name, "generation": generation},
            )
        return await asyncio.shield(task)

    def clear(self) -> None:
        self._snapshot = self._empty()
        self._inflight = None
        self._inflight_generation = None

    async def _fetch(self, client: LedgerGateway, generation: int, sequence: int):
        try:
            snapshot = await self._load(client, generation)
        except RealTokenError as e:
            if not self._session.is_live(generation):
                logger.info(
                    f"Dropped {self.name} refresh failure from superseded session: {e}",
                    extra={"cache": self.name, "generation": generation},
                )
                return self._snapshot
            logger.warning(
                f"{self.name} refresh failed: {e}",
                extra={"cache": self.name, "generation": generation, **e.to_log_extra()},
            )
            raise
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None
                self._inflight_generation = None

        if not self._session.is_live(generation):
            logger.info(
                f"Dropped {self.name} snapshot from superseded session",
                extra={"cache": self.name, "generation": generation},
            )
            return self._snapshot
        if sequence < self._applied_sequence:
            logger.debug(
                f"Dropped {self.name} snapshot overtaken by a newer read",
                extra={"cache": self.name, "generation": generation},
            )
            return self._snapshot
        self._applied_sequence = sequence
        self._snapshot = snapshot
        self._on_swap(snapshot)
        return snapshot

    def _empty(self):
        raise NotImplementedError

    async def _load(self, client: LedgerGateway, generation: int):
        raise NotImplementedError

    def _on_swap(self, snapshot) -> None:
        pass


class CatalogCache(SnapshotCache):
    """Cached property catalog."""

    name = "catalog"

    def _empty(self) -> CatalogSnapshot:
        return CatalogSnapshot()

    async def _load(self, client: LedgerGateway, generation: int) -> CatalogSnapshot:
        return CatalogSnapshot.build(await client.fetch_properties(), generation)

    def _on_swap(self, snapshot: CatalogSnapshot) -> None:
        for property_id in snapshot.inconsistent_ids:
            logger.warning(
                "Catalog anomaly: available + sold tokens != total tokens",
                extra={"cache": self.name, "property_id": property_id},
            )
        for property_id in snapshot.duplicate_ids:
            logger.warning(
                "Catalog anomaly: duplicate property id",
                extra={"cache": self.name, "property_id": property_id},
            )
        logger.debug(
            f"Catalog refreshed: {len(snapshot)} properties",
            extra={"cache": self.name, "generation": snapshot.generation},
        )


class LedgerCache(SnapshotCache):
    """Cached token balances of the authenticated principal."""

    name = "ledger"

    def _empty(self) -> LedgerSnapshot:
        return LedgerSnapshot()

    async def _load(self, client: LedgerGateway, generation: int) -> LedgerSnapshot:
        return LedgerSnapshot.build(await client.fetch_balances(), generation)
