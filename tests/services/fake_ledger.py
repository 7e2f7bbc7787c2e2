"""Fake Ledger - in-process ledger and identity service behind httpx.MockTransport.

Invariants:
    - Speaks the same JSON contract as the remote ledger (method per path,
      camelCase bodies, {"ok": null} / {"err": reason} results)
    - Every request is recorded in `calls` before any gate or failure applies
    - Injected failures are consumed in order, one per request to that method
    - Gates (asyncio.Event) hold a request before it is served; holds keep an
      already computed response until the test releases them

Design Decisions:
    - One handler for both hosts: ledger.test and identity.test, routed by host,
      so a single transport can be shared by both adapters
    - Failure markers "connect" / "timeout" raise the matching httpx exception;
      integers become HTTP error responses
"""

import asyncio
import json
from dataclasses import dataclass, field

import httpx

from tests.core.factories import property_record

IDENTITY_HOST = "identity.test"


@dataclass
class LedgerCall:
    method: str
    body: dict
    principal: str | None
    authorization: str | None


@dataclass
class FakeLedger:
    properties: dict[int, dict] = field(default_factory=dict)
    balances: dict[str, dict[int, int]] = field(default_factory=dict)
    history: dict[str, list[dict]] = field(default_factory=dict)
    calls: list[LedgerCall] = field(default_factory=list)
    failures: dict[str, list] = field(default_factory=dict)
    gates: dict[str, asyncio.Event] = field(default_factory=dict)
    rejections: dict[str, str] = field(default_factory=dict)
    holds: dict[str, asyncio.Event] = field(default_factory=dict)
    account_balances: dict[str, int] = field(default_factory=dict)

    # Identity service side
    principal: str = "alice-principal"
    token: str = "alice-token"
    identity_error: str | None = None
    identity_response: dict | None = None
    login_gate: asyncio.Event | None = None
    logins: int = 0
    logouts: int = 0

    @classmethod
    def with_catalog(cls, *records: dict) -> "FakeLedger":
        return cls(properties={r["id"]: dict(r) for r in records})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def count(self, method: str) -> int:
        return sum(1 for c in self.calls if c.method == method)

    def fail_next(self, method: str, *failures) -> None:
        self.failures.setdefault(method, []).extend(failures)

    def gate(self, method: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[method] = event
        return event

    def hold(self, method: str) -> asyncio.Event:
        """Delay delivery of the next response to `method` after it is computed."""
        event = asyncio.Event()
        self.holds[method] = event
        return event

    def balance(self, principal: str, property_id: int) -> int:
        return self.balances.get(principal, {}).get(property_id, 0)

    # -- Transport handler -----------------------------------------------------

    async def handle(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == IDENTITY_HOST:
            return await self._handle_identity(request)

        method = request.url.path.rsplit("/", 1)[-1]
        body = json.loads(request.content or b"{}")
        principal = request.headers.get("x-principal-id")
        self.calls.append(LedgerCall(
            method, body, principal, request.headers.get("authorization"),
        ))

        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()

        queued = self.failures.get(method)
        if queued:
            failure = queued.pop(0)
            if failure == "connect":
                raise httpx.ConnectError("connection refused", request=request)
            if failure == "timeout":
                raise httpx.ReadTimeout("timed out", request=request)
            if failure == "garbage":
                return httpx.Response(200, content=b"<html>")
            return httpx.Response(failure, json={"error": "injected"})

        if principal is None or request.headers.get("authorization") is None:
            return httpx.Response(401, json={"error": "unauthenticated"})

        handler = getattr(self, f"_{method}", None)
        if handler is None:
            return httpx.Response(404, json={"error": f"unknown method {method}"})
        payload = handler(principal, body)
        held = self.holds.pop(method, None)
        if held is not None:
            await held.wait()
        return httpx.Response(200, json=payload)

    # -- Ledger methods --------------------------------------------------------

    def _getProperties(self, principal, body):
        return [dict(p) for p in self.properties.values()]

    def _getUserTokens(self, principal, body):
        return [
            {"propertyId": pid, "amount": amount}
            for pid, amount in self.balances.get(principal, {}).items()
        ]

    def _getPropertyDetails(self, principal, body):
        prop = self.properties.get(body["propertyId"])
        return [dict(prop)] if prop is not None else []

    def _getUserTransactionHistory(self, principal, body):
        return list(self.history.get(principal, []))

    def _getUserBalance(self, principal, body):
        return self.account_balances.get(principal, 0)

    def _buyTokens(self, principal, body):
        if "buyTokens" in self.rejections:
            return {"err": self.rejections.pop("buyTokens")}
        pid, amount = body["propertyId"], body["amount"]
        prop = self.properties.get(pid)
        if prop is None:
            return {"err": "property not found"}
        if amount > prop["availableTokens"]:
            return {"err": "insufficient tokens"}
        prop["availableTokens"] -= amount
        prop["soldTokens"] += amount
        if prop["availableTokens"] == 0:
            prop["status"] = {"agotado": None}
        held = self.balances.setdefault(principal, {})
        held[pid] = held.get(pid, 0) + amount
        self.history.setdefault(principal, []).append(
            {"kind": "purchase", "propertyId": pid, "amount": amount},
        )
        return {"ok": None}

    def _transferTokens(self, principal, body):
        if "transferTokens" in self.rejections:
            return {"err": self.rejections.pop("transferTokens")}
        pid, amount, recipient = body["propertyId"], body["amount"], body["recipient"]
        held = self.balances.setdefault(principal, {})
        if held.get(pid, 0) < amount:
            return {"err": "insufficient balance"}
        held[pid] -= amount
        theirs = self.balances.setdefault(recipient, {})
        theirs[pid] = theirs.get(pid, 0) + amount
        self.history.setdefault(principal, []).append(
            {"kind": "transfer", "propertyId": pid, "amount": amount, "to": recipient},
        )
        return {"ok": None}

    # -- Identity service ------------------------------------------------------

    async def _handle_identity(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/logout"):
            self.logouts += 1
            return httpx.Response(200, json={})
        self.logins += 1
        if self.login_gate is not None:
            await self.login_gate.wait()
        if self.identity_error is not None:
            return httpx.Response(200, json={"error": self.identity_error})
        if self.identity_response is not None:
            return httpx.Response(200, json=self.identity_response)
        return httpx.Response(200, json={
            "principal": self.principal,
            "token": self.token,
            "expires_in": 3600,
        })


def default_catalog() -> FakeLedger:
    """Property 1 fully available, property 2 half sold."""
    return FakeLedger.with_catalog(
        property_record(id=1, available=10, sold=0, token_price=100.0),
        property_record(id=2, available=50, sold=50, token_price=20.0),
    )
