"""Stub Gateway - in-memory LedgerGateway for cache and session tests without HTTP."""

import asyncio

from tests.core.factories import make_property


class StubGateway:
    """Scripted LedgerGateway. `gate` holds reads open; `error` makes reads raise."""

    def __init__(self, generation: int, properties=None, balances=None):
        self.generation = generation
        self.properties = list(properties if properties is not None else [make_property(id=1)])
        self.balances = dict(balances or {})
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None
        self.property_calls = 0
        self.balance_calls = 0
        self.closed = False

    async def _wait(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def fetch_properties(self):
        self.property_calls += 1
        await self._wait()
        return list(self.properties)

    async def fetch_balances(self):
        self.balance_calls += 1
        await self._wait()
        return dict(self.balances)

    async def aclose(self):
        self.closed = True


class GatewayFactory:
    """client_factory for SessionManager that records every gateway it builds."""

    def __init__(self):
        self.built: list[StubGateway] = []

    def __call__(self, session) -> StubGateway:
        gateway = StubGateway(session.generation)
        self.built.append(gateway)
        return gateway
