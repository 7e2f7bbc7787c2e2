"""Marketplace - composition root wiring session, caches, orchestrator and notifications.

Invariants:
    - One Session per Marketplace, injected explicitly into every collaborator
    - Boundary methods never raise RealTokenError; failures become notifications
    - Views read cached snapshots only and never touch the network
    - Buy/transfer controls are disabled while an operation is in flight
"""

import asyncio
import logging
from collections.abc import Mapping

import httpx

from realtoken.config import Settings, get_settings
from realtoken.core import portfolio
from realtoken.core.boundary_protocols import IdentityProvider
from realtoken.core.domain_types import PrincipalId
from realtoken.core.errors import (
    AuthProviderError, ErrorContext, RealTokenError, UnauthenticatedError,
)
from realtoken.core.operations import OperationOutcome
from realtoken.core.session_state import Session
from realtoken.infrastructure.identity_provider import HttpIdentityProvider
from realtoken.infrastructure.ledger_client import LedgerClient
from realtoken.infrastructure.observability import setup_logging
from realtoken.schemas.ledger import TransactionRecord
from realtoken.schemas.property import Property
from realtoken.services.notification_queue import Notification, NotificationQueue
from realtoken.services.session_manager import ClientFactory, SessionManager
from realtoken.services.snapshot_cache import CatalogCache, LedgerCache
from realtoken.services.transaction_orchestrator import TransactionOrchestrator

logger = logging.getLogger(__name__)


class Marketplace:
    """Application state of one client process."""

    def __init__(
        self,
        provider: IdentityProvider,
        client_factory: ClientFactory,
        notification_display_seconds: float = 3.0,
    ):
        self.session = Session()
        self.notifications = NotificationQueue(notification_display_seconds)
        self._provider = provider
        self.catalog = CatalogCache(self.session, lambda: self.sessions.client)
        self.ledger = LedgerCache(self.session, lambda: self.sessions.client)
        self.sessions = SessionManager(
            self.session, provider, client_factory, self.notifications,
            caches=(self.catalog, self.ledger),
        )
        self.orchestrator = TransactionOrchestrator(
            self.session, lambda: self.sessions.client,
            self.catalog, self.ledger, self.notifications,
        )

    # ─── Session ──────────────────────────────────────────────────

    async def start(self) -> bool:
        """Adopt an existing provider session and load both caches. True if restored."""
        try:
            restored = await self.sessions.restore()
        except RealTokenError as e:
            self.notifications.emit_error(e)
            return False
        except Exception as e:
            self._provider_broke("restore", e)
            return False
        if restored:
            await self.refresh()
        return restored

    async def connect(self) -> PrincipalId | None:
        try:
            principal = await self.sessions.login()
        except AuthProviderError:
            # Already notified by the session manager
            return None
        except RealTokenError as e:
            self.notifications.emit_error(e)
            return None
        except Exception as e:
            self._provider_broke("login", e)
            return None
        await self.refresh()
        return principal

    async def disconnect(self) -> None:
        try:
            await self.sessions.logout()
        except RealTokenError as e:
            self.notifications.emit_error(e)

    async def refresh(self) -> bool:
        """Refresh catalog and balances concurrently. False if either failed."""
        results = await asyncio.gather(
            self.catalog.refresh(), self.ledger.refresh(), return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors:
            if not isinstance(error, RealTokenError):
                raise error
        if errors:
            self.notifications.emit_error(errors[0])
            return False
        return True

    # ─── Operations ───────────────────────────────────────────────

    async def buy(self, property_id: int, amount: int) -> OperationOutcome:
        return await self.orchestrator.buy(property_id, amount)

    async def transfer(
        self, property_id: int, amount: int, recipient: str | None,
    ) -> OperationOutcome:
        return await self.orchestrator.transfer(property_id, amount, recipient)

    async def property_details(self, property_id: int) -> Property | None:
        client = self.sessions.client
        if client is None:
            self.notifications.emit_error(UnauthenticatedError(
                "property_details", ErrorContext(property_id=property_id),
            ))
            return None
        try:
            return await client.fetch_property(property_id)
        except RealTokenError as e:
            self.notifications.emit_error(e)
            return None

    async def transaction_history(self) -> list[TransactionRecord]:
        client = self.sessions.client
        if client is None:
            self.notifications.emit_error(UnauthenticatedError("transaction_history"))
            return []
        try:
            return await client.fetch_transaction_history()
        except RealTokenError as e:
            self.notifications.emit_error(e)
            return []

    async def user_balance(self) -> int | None:
        """Account balance the ledger reports for the caller, or None on failure."""
        client = self.sessions.client
        if client is None:
            self.notifications.emit_error(UnauthenticatedError("user_balance"))
            return None
        try:
            return await client.fetch_user_balance()
        except RealTokenError as e:
            self.notifications.emit_error(e)
            return None

    async def aclose(self) -> None:
        await self.sessions.aclose()
        self.notifications.clear()
        close = getattr(self._provider, "aclose", None)
        if close is not None:
            await close()

    def _provider_broke(self, operation: str, e: Exception) -> None:
        logger.error(
            f"Identity provider raised during {operation}: {e}",
            exc_info=True, extra={"operation": operation},
        )
        self.notifications.emit_error(
            AuthProviderError(
                str(e) or type(e).__name__, context=ErrorContext(operation=operation),
            ),
        )

    # ─── Views ────────────────────────────────────────────────────

    @property
    def principal_id(self) -> PrincipalId | None:
        return self.session.principal_id

    @property
    def notification(self) -> Notification | None:
        return self.notifications.current

    @property
    def busy(self) -> bool:
        return self.orchestrator.busy

    @property
    def properties(self) -> tuple[Property, ...]:
        return self.catalog.snapshot.properties

    @property
    def balances(self) -> Mapping[int, int]:
        return self.ledger.snapshot.balances

    def balance_for(self, property_id: int) -> int:
        return self.ledger.snapshot.balance_for(property_id)

    @property
    def total_tokens(self) -> int:
        return portfolio.total_tokens(self.ledger.snapshot)

    @property
    def holdings_value(self) -> float:
        return portfolio.holdings_value(self.catalog.snapshot, self.ledger.snapshot)

    def can_purchase(self, property_id: int) -> bool:
        if not self.session.is_authenticated or self.orchestrator.busy:
            return False
        prop = self.catalog.snapshot.get(property_id)
        return prop is not None and portfolio.is_purchasable(prop)

    def can_transfer(self, property_id: int) -> bool:
        if not self.session.is_authenticated or self.orchestrator.busy:
            return False
        return self.balance_for(property_id) > 0

    def purchase_quote(self, property_id: int, amount: int) -> float | None:
        prop = self.catalog.snapshot.get(property_id)
        if prop is None:
            return None
        return portfolio.purchase_cost(prop, amount)

    def sale_progress(self, property_id: int) -> float | None:
        prop = self.catalog.snapshot.get(property_id)
        if prop is None:
            return None
        return portfolio.sale_progress(prop)


def create_marketplace(
    settings: Settings | None = None,
    identity_provider: IdentityProvider | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Marketplace:
    """Build a Marketplace from settings. `transport` is shared by both HTTP adapters."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)

    provider = identity_provider or HttpIdentityProvider(
        settings.identity_url,
        settings.identity_client_id,
        settings.identity_secret,
        settings.collection_id,
        timeout_seconds=settings.request_timeout_seconds,
        transport=transport,
    )

    def client_factory(session: Session) -> LedgerClient:
        return LedgerClient(
            session,
            settings.ledger_url,
            settings.collection_id,
            timeout_seconds=settings.request_timeout_seconds,
            max_retries=settings.read_max_retries,
            base_delay_ms=settings.retry_base_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
            transport=transport,
        )

    logger.info(
        f"Marketplace configured for network '{settings.network}'",
        extra={"operation": "startup"},
    )
    return Marketplace(provider, client_factory, settings.notification_display_seconds)
