"""HTTP Identity Provider - login/logout exchange against the external identity service.

Invariants:
    - login() always resolves to a LoginOutcome; provider errors never raise
    - {"error": "UserInterrupt"} is a cancellation, not a failure
    - is_authenticated() is synchronous and does no IO (expiry checked on a monotonic clock)
    - logout() forgets the identity locally first; the remote call is best effort
"""

import logging
import time

import httpx

from realtoken.core.boundary_protocols import Identity, LoginOutcome
from realtoken.core.domain_types import PrincipalId

logger = logging.getLogger(__name__)

USER_INTERRUPT = "UserInterrupt"


class HttpIdentityProvider:
    """IdentityProvider backed by the identity service's JSON endpoints."""

    def __init__(
        self,
        identity_url: str,
        client_id: str,
        secret: str,
        collection_id: str,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        identity: Identity | None = None,
    ):
        self.client_id = client_id
        self.collection_id = collection_id
        self._secret = secret
        self._identity = identity
        self._expires_at: float | None = None
        self._http = httpx.AsyncClient(
            base_url=f"{identity_url.rstrip('/')}/api/v1",
            timeout=timeout_seconds,
            transport=transport,
        )

    async def login(self) -> LoginOutcome:
        try:
            response = await self._http.post("/login", json={
                "client_id": self.client_id,
                "secret": self._secret,
                "collection_id": self.collection_id,
            })
        except httpx.HTTPError as e:
            logger.warning(f"Identity provider unreachable: {e}", extra={"operation": "login"})
            return LoginOutcome.failure(f"identity provider unreachable: {e}")

        if response.status_code in (401, 403):
            return LoginOutcome.failure("invalid client credentials")
        try:
            data = response.json()
        except ValueError:
            return LoginOutcome.failure(
                f"malformed identity response (HTTP {response.status_code})",
            )
        if not isinstance(data, dict):
            return LoginOutcome.failure("malformed identity response")

        error = data.get("error")
        if error == USER_INTERRUPT:
            return LoginOutcome.failure(USER_INTERRUPT, cancelled=True)
        if error:
            return LoginOutcome.failure(str(error))
        if response.status_code >= 400:
            return LoginOutcome.failure(f"HTTP {response.status_code}")

        principal = data.get("principal")
        if not principal:
            return LoginOutcome.failure("identity response carried no principal")

        expires_in = data.get("expires_in")
        try:
            lifetime = float(expires_in) if expires_in else None
        except (TypeError, ValueError):
            logger.warning(
                f"Identity response carried an unreadable expires_in: {expires_in!r}",
                extra={"principal_id": principal, "operation": "login"},
            )
            return LoginOutcome.failure("malformed identity response: expires_in")
        self._expires_at = time.monotonic() + lifetime if lifetime is not None else None
        self._identity = Identity(PrincipalId(str(principal)), data.get("token"))
        logger.info(
            "Identity provider issued a session",
            extra={"principal_id": principal, "operation": "login"},
        )
        return LoginOutcome.success(self._identity)

    def is_authenticated(self) -> bool:
        if self._identity is None:
            return False
        return self._expires_at is None or time.monotonic() < self._expires_at

    def current_identity(self) -> Identity | None:
        return self._identity if self.is_authenticated() else None

    async def logout(self) -> None:
        identity, self._identity, self._expires_at = self._identity, None, None
        headers = {}
        if identity is not None and identity.credential:
            headers["Authorization"] = f"Bearer {identity.credential}"
        try:
            await self._http.post("/logout", headers=headers)
        except httpx.HTTPError as e:
            logger.warning(
                f"Identity provider logout failed: {e}", extra={"operation": "logout"},
            )

    async def aclose(self) -> None:
        await self._http.aclose()
