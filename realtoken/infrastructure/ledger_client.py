"""Resilient Ledger Client - session-bound httpx client for the remote ledger RPC contract.

Invariants:
    - A client is bound to exactly one session generation at construction; the
      identity headers are baked in and never mutated
    - Every call fails fast with UnauthenticatedError if the bound generation is
      no longer the live authenticated session (checked before each attempt)
    - Reads: transient errors (connect, timeout, 5xx) and 429 retried with
      exponential backoff and jitter, max `max_retries` retries
    - Writes (buyTokens, transferTokens): single attempt, never retried
    - 401/403 -> UnauthenticatedError; other 4xx and undecodable bodies -> TransportError
    - Ledger rejections are returned as LedgerResult(accepted=False), never raised

Design Decisions:
    - Wrapper over raw httpx.AsyncClient: retry and error mapping live here, not in services
    - ±25% jitter on backoff, Retry-After honoured when present
"""

import asyncio
import random
import logging

import httpx

from realtoken.core.errors import (
    ErrorContext, TransportError, UnauthenticatedError,
)
from realtoken.core.session_state import Session
from realtoken.schemas.ledger import LedgerResult, TokenHolding, TransactionRecord
from realtoken.schemas.property import Property

logger = logging.getLogger(__name__)


class LedgerClient:
    """Capability-gated transport for catalog/balance reads and buy/transfer writes."""

    def __init__(
        self,
        session: Session,
        base_url: str,
        collection_id: str,
        *,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        base_delay_ms: int = 500,
        max_delay_ms: int = 8_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._session = session
        self.generation: int | None = (
            session.generation if session.is_authenticated else None
        )
        self.principal_id = session.principal_id
        self.collection_id = collection_id
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self._closed = False
        self._active = 0

        headers = {"Content-Type": "application/json"}
        if self.generation is not None:
            headers["X-Principal-Id"] = str(session.principal_id)
            if session.credential:
                headers["Authorization"] = f"Bearer {session.credential}"
        self._http = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/api/v1/collections/{collection_id}",
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    @property
    def is_bound(self) -> bool:
        return (
            not self._closed
            and self.generation is not None
            and self._session.is_live(self.generation)
        )

    # Reads

    async def fetch_properties(self) -> list[Property]:
        payload = await self._call("getProperties", {}, retry=True)
        records = self._expect_list("getProperties", payload)
        try:
            return [Property.model_validate(r) for r in records]
        except ValueError as e:
            raise self._malformed("getProperties", e) from e

    async def fetch_balances(self) -> dict[int, int]:
        """getUserTokens as {property_id: amount}. Later rows win for a repeated id."""
        payload = await self._call("getUserTokens", {}, retry=True)
        records = self._expect_list("getUserTokens", payload)
        try:
            holdings = [TokenHolding.model_validate(r) for r in records]
        except ValueError as e:
            raise self._malformed("getUserTokens", e) from e
        return {h.property_id: h.amount for h in holdings}

    async def fetch_property(self, property_id: int) -> Property | None:
        payload = await self._call(
            "getPropertyDetails", {"propertyId": property_id}, retry=True,
        )
        if isinstance(payload, list):
            # Candid opt encoding: [] or [record]
            payload = payload[0] if payload else None
        if payload is None:
            return None
        try:
            return Property.model_validate(payload)
        except ValueError as e:
            raise self._malformed("getPropertyDetails", e) from e

    async def fetch_transaction_history(self) -> list[TransactionRecord]:
        payload = await self._call("getUserTransactionHistory", {}, retry=True)
        records = self._expect_list("getUserTransactionHistory", payload)
        try:
            return [TransactionRecord.model_validate(r) for r in records]
        except ValueError as e:
            raise self._malformed("getUserTransactionHistory", e) from e

    async def fetch_user_balance(self) -> int:
        """getUserBalance: the caller's account balance. nat64 may arrive as a digit string."""
        payload = await self._call("getUserBalance", {}, retry=True)
        if isinstance(payload, str) and payload.isdigit():
            return int(payload)
        if isinstance(payload, int) and not isinstance(payload, bool) and payload >= 0:
            return payload
        raise self._malformed(
            "getUserBalance",
            ValueError(f"expected a natural number, got {payload!r}"),
        )

    # Writes

    async def buy(self, property_id: int, amount: int) -> LedgerResult:
        payload = await self._call(
            "buyTokens", {"propertyId": property_id, "amount": amount}, retry=False,
        )
        return self._parse_result("buyTokens", payload)

    async def transfer(
        self, property_id: int, amount: int, recipient: str,
    ) -> LedgerResult:
        payload = await self._call(
            "transferTokens",
            {"propertyId": property_id, "amount": amount, "recipient": recipient},
            retry=False,
        )
        return self._parse_result("transferTokens", payload)

    async def aclose(self) -> None:
        """Unbind the client. Requests already on the wire are allowed to finish."""
        if self._closed:
            return
        self._closed = True
        if self._active == 0:
            await self._http.aclose()

    # Internals

    async def _post(self, method: str, args: dict) -> httpx.Response:
        self._active += 1
        try:
            return await self._http.post(f"/{method}", json=args)
        finally:
            self._active -= 1
            if self._closed and self._active == 0:
                await self._http.aclose()

    async def _call(self, method: str, args: dict, *, retry: bool):
        attempts = self.max_retries + 1 if retry else 1
        for attempt in range(attempts):
            self._ensure_bound(method)
            try:
                response = await self._post(method, args)
            except httpx.TimeoutException as e:
                await self._handle_transient_error(
                    e, "timeout", method, attempt, attempts,
                )
                continue
            except httpx.TransportError as e:
                await self._handle_transient_error(
                    e, "connection_error", method, attempt, attempts,
                )
                continue

            status = response.status_code
            if status in (401, 403):
                raise UnauthenticatedError(method, self._context(
                    method, debug_info={"status_code": status},
                ))
            if status == 429:
                await self._handle_rate_limit(response, method, attempt, attempts)
                continue
            if status >= 500:
                await self._handle_transient_error(
                    RuntimeError(f"HTTP {status}"), "server_error",
                    method, attempt, attempts,
                )
                continue
            if status >= 400:
                raise TransportError(
                    f"HTTP {status} from {method}", "client_error",
                    context=self._context(method, debug_info={"status_code": status}),
                )

            try:
                payload = response.json()
            except ValueError as e:
                raise self._malformed(method, e) from e
            self._log_success(method, attempt)
            return payload
        # Unreachable: the handlers raise on the last attempt
        raise TransportError(
            f"{method} exhausted retries", "connection_error",
            context=self._context(method),
        )

    def _ensure_bound(self, method: str) -> None:
        if not self.is_bound:
            raise UnauthenticatedError(method, self._context(method))

    def _context(self, method: str, **kwargs) -> ErrorContext:
        return ErrorContext(
            principal_id=self.principal_id, operation=method, **kwargs,
        )

    def _expect_list(self, method: str, payload) -> list:
        if not isinstance(payload, list):
            raise self._malformed(
                method, ValueError(f"expected a list, got {type(payload).__name__}"),
            )
        return payload

    def _parse_result(self, method: str, payload) -> LedgerResult:
        try:
            return LedgerResult.from_wire(payload)
        except ValueError as e:
            raise self._malformed(method, e) from e

    def _malformed(self, method: str, e: Exception) -> TransportError:
        logger.error(
            f"Malformed ledger response from {method}: {e}",
            extra={"operation": method, "generation": self.generation},
        )
        return TransportError(
            f"malformed response from {method}: {e}", "malformed_response",
            context=self._context(method),
        )

    def _log_success(self, method: str, attempt: int) -> None:
        logger.debug(
            f"Ledger call {method} succeeded",
            extra={
                "operation": method,
                "attempt": attempt + 1,
                "generation": self.generation,
            },
        )

    async def _handle_rate_limit(
        self, response: httpx.Response, method: str, attempt: int, attempts: int,
    ) -> None:
        """Handle 429 with retry or raise."""
        retry_after_ms = self._extract_retry_after(response)
        if attempt >= attempts - 1:
            raise TransportError(
                f"rate limit exceeded on {method}", "rate_limit",
                retry_after_ms=retry_after_ms, context=self._context(method),
            )
        delay = retry_after_ms or self._backoff(attempt)
        logger.warning(
            f"Rate limit hit on {method}, retry after {delay}ms (attempt {attempt + 1})",
            extra={"operation": method, "attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    async def _handle_transient_error(
        self, e: Exception, error_type: str, method: str,
        attempt: int, attempts: int,
    ) -> None:
        """Handle transient errors with retry or raise."""
        if attempt >= attempts - 1:
            raise TransportError(
                f"{method} failed after {attempts} attempt(s): {e}", error_type,
                context=self._context(method),
            ) from e
        delay = self._backoff(attempt)
        logger.warning(
            f"Transient error on {method}, retry after {delay}ms: {e}",
            extra={"operation": method, "attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, response: httpx.Response) -> int | None:
        """Extract Retry-After header (returns milliseconds)."""
        val = response.headers.get("retry-after")
        if val and val.isdigit():
            return int(val) * 1000
        return None
