"""Session Manager - owns the authentication lifecycle and the session-bound ledger client.

Invariants:
    - Exactly one login/logout/restore in flight; a second raises SessionBusyError
    - Never left AUTHENTICATING: failure, cancellation or any exception resets to ANONYMOUS
    - A new ledger client is built for every new identity, after the session is bound
    - logout tears down locally first (session, client, caches); the provider
      logout is best effort
"""

import logging
from collections.abc import Callable, Iterable

from realtoken.core.boundary_protocols import Identity, IdentityProvider, LedgerGateway
from realtoken.core.domain_types import PrincipalId, Severity
from realtoken.core.errors import AuthProviderError, ErrorContext, SessionBusyError
from realtoken.core.session_state import Session
from realtoken.services.notification_queue import NotificationQueue
from realtoken.services.snapshot_cache import SnapshotCache

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Session], LedgerGateway]


class SessionManager:
    """Drives login, logout and restore, and owns the ledger client bound to the live session."""

    def __init__(
        self,
        session: Session,
        provider: IdentityProvider,
        client_factory: ClientFactory,
        notifications: NotificationQueue,
        caches: Iterable[SnapshotCache] = (),
    ):
        self.session = session
        self._provider = provider
        self._client_factory = client_factory
        self._notifications = notifications
        self._caches = tuple(caches)
        self._client: LedgerGateway | None = None
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def client(self) -> LedgerGateway | None:
        """The ledger client for the live session, or None."""
        client = self._client
        if client is not None and self.session.is_live(client.generation):
            return client
        return None

    async def login(self) -> PrincipalId:
        if self.session.is_authenticated:
            return self.session.principal_id
        self._acquire("login")
        try:
            self.session.begin_authentication()
            outcome = await self._provider.login()
            if not outcome.ok:
                error = AuthProviderError(
                    outcome.error or "unknown error", cancelled=outcome.cancelled,
                )
                self.session.reset()
                logger.warning(
                    f"Login failed: {error.message}", extra=error.to_log_extra(),
                )
                self._notifications.emit_error(error)
                raise error
            principal = await self._bind(outcome.identity)
            self._notifications.emit(f"Connected as {principal}", Severity.SUCCESS)
            return principal
        finally:
            if self.session.is_authenticating:
                self.session.reset()
            self._busy = False

    async def restore(self) -> bool:
        """Adopt an identity the provider already holds. Returns True if one was adopted."""
        if self.session.is_authenticated:
            return True
        if not self._provider.is_authenticated():
            return False
        identity = self._provider.current_identity()
        if identity is None:
            return False
        self._acquire("restore")
        try:
            await self._bind(identity)
        finally:
            self._busy = False
        return True

    async def logout(self) -> None:
        self._acquire("logout")
        try:
            principal = self.session.principal_id
            generation = self.session.reset()
            client, self._client = self._client, None
            for cache in self._caches:
                cache.clear()
            if client is not None:
                await client.aclose()
            if principal is None:
                return
            logger.info(
                "Session ended",
                extra={"principal_id": principal, "generation": generation},
            )
            try:
                await self._provider.logout()
            except Exception as e:
                logger.warning(
                    f"Identity provider logout failed: {e}",
                    extra={"principal_id": principal, "operation": "logout"},
                )
            self._notifications.emit("Disconnected", Severity.SUCCESS)
        finally:
            self._busy = False

    async def aclose(self) -> None:
        """Release the ledger client without ending the provider session."""
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def _bind(self, identity: Identity) -> PrincipalId:
        old, self._client = self._client, None
        generation = self.session.authenticate(identity.principal_id, identity.credential)
        self._client = self._client_factory(self.session)
        if old is not None:
            await old.aclose()
        for cache in self._caches:
            cache.clear()
        logger.info(
            "Session bound",
            extra={"principal_id": identity.principal_id, "generation": generation},
        )
        return identity.principal_id

    def _acquire(self, operation: str) -> None:
        if self._busy:
            raise SessionBusyError(
                operation, ErrorContext(principal_id=self.session.principal_id),
            )
        self._busy = True
