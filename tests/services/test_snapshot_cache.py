"""Tests for CatalogCache / LedgerCache - coalescing, atomic swap, generation checks.

Tests cover:
    - refresh() without a live client raises UnauthenticatedError
    - Concurrent refreshes share one fetch and return the same snapshot
    - Failure for the live generation keeps the previous snapshot and raises
    - Results and failures from a superseded generation are dropped
    - A forced fresh read is never overwritten by an older read finishing later
    - clear() resets to empty; anomalies are logged, not raised
"""

import asyncio
import logging

import pytest

from realtoken.core.domain_types import PrincipalId
from realtoken.core.errors import TransportError, UnauthenticatedError
from realtoken.core.session_state import Session
from realtoken.services.snapshot_cache import CatalogCache, LedgerCache

from tests.core.factories import make_property
from tests.services.stub_gateway import StubGateway


def _bound(**kwargs):
    session = Session()
    gen = session.authenticate(PrincipalId("alice"), "tok")
    gateway = StubGateway(gen, **kwargs)
    return session, gateway


async def _settle():
    for _ in range(3):
        await asyncio.sleep(0)


async def test_refresh_without_client_raises():
    cache = CatalogCache(Session(), lambda: None)
    with pytest.raises(UnauthenticatedError):
        await cache.refresh()


async def test_refresh_swaps_snapshot():
    session, gateway = _bound()
    cache = CatalogCache(session, lambda: gateway)
    before = cache.snapshot
    after = await cache.refresh()
    assert before.is_empty
    assert after is cache.snapshot
    assert after.get(1) is not None
    assert after.generation == session.generation


async def test_concurrent_refreshes_coalesce():
    session, gateway = _bound()
    gateway.gate = asyncio.Event()
    cache = CatalogCache(session, lambda: gateway)

    t1 = asyncio.create_task(cache.refresh())
    t2 = asyncio.create_task(cache.refresh())
    await _settle()
    assert cache.refreshing
    gateway.gate.set()
    s1, s2 = await asyncio.gather(t1, t2)

    assert s1 is s2
    assert gateway.property_calls == 1
    assert not cache.refreshing


async def test_sequential_refreshes_fetch_again():
    session, gateway = _bound()
    cache = LedgerCache(session, lambda: gateway)
    await cache.refresh()
    await cache.refresh()
    assert gateway.balance_calls == 2


async def test_fresh_refresh_does_not_join_and_wins_over_older_read():
    session, gateway = _bound(balances={1: 1})
    cache = LedgerCache(session, lambda: gateway)
    release = asyncio.Event()
    answered = dict(gateway.balances)

    async def answered_before_release():
        gateway.balance_calls += 1
        await release.wait()
        return answered

    gateway.fetch_balances = answered_before_release
    older = asyncio.create_task(cache.refresh())
    await _settle()
    assert cache.refreshing
    del gateway.fetch_balances
    gateway.balances = {1: 4}

    newer = await cache.refresh(fresh=True)
    assert gateway.balance_calls == 2
    assert newer.balance_for(1) == 4

    release.set()
    await older
    assert cache.snapshot is newer
    assert cache.snapshot.balance_for(1) == 4


async def test_failure_keeps_previous_snapshot():
    session, gateway = _bound(balances={1: 4})
    cache = LedgerCache(session, lambda: gateway)
    first = await cache.refresh()

    gateway.error = TransportError("down", "connection_error")
    with pytest.raises(TransportError):
        await cache.refresh()
    assert cache.snapshot is first
    assert cache.snapshot.balance_for(1) == 4


async def test_superseded_result_dropped():
    session, gateway = _bound(balances={1: 4})
    gateway.gate = asyncio.Event()
    cache = LedgerCache(session, lambda: gateway)

    task = asyncio.create_task(cache.refresh())
    await _settle()
    session.reset()
    cache.clear()
    gateway.gate.set()
    result = await task

    assert result.is_empty
    assert cache.snapshot.is_empty


async def test_superseded_failure_dropped():
    session, gateway = _bound()
    gateway.gate = asyncio.Event()
    gateway.error = TransportError("down", "connection_error")
    cache = CatalogCache(session, lambda: gateway)

    task = asyncio.create_task(cache.refresh())
    await _settle()
    session.reset()
    gateway.gate.set()
    result = await task
    assert result.is_empty


async def test_new_generation_does_not_join_old_fetch():
    session, old = _bound()
    old.gate = asyncio.Event()
    current = {"gateway": old}
    cache = CatalogCache(session, lambda: current["gateway"])

    stale = asyncio.create_task(cache.refresh())
    await _settle()
    session.reset()
    gen = session.authenticate(PrincipalId("bob"), "tok2")
    fresh = StubGateway(gen, properties=[make_property(id=7)])
    current["gateway"] = fresh

    snapshot = await cache.refresh()
    assert snapshot.get(7) is not None
    assert fresh.property_calls == 1

    old.gate.set()
    await stale
    assert cache.snapshot is snapshot


async def test_clear_resets_to_empty():
    session, gateway = _bound()
    cache = CatalogCache(session, lambda: gateway)
    await cache.refresh()
    cache.clear()
    cache.clear()
    assert cache.snapshot.is_empty


async def test_catalog_anomalies_logged(caplog):
    session, gateway = _bound(properties=[
        make_property(id=1, available=3, sold=3, total=10),
        make_property(id=2),
        make_property(id=2),
    ])
    cache = CatalogCache(session, lambda: gateway)
    with caplog.at_level(logging.WARNING, logger="realtoken.services.snapshot_cache"):
        snapshot = await cache.refresh()
    assert len(snapshot) == 3
    messages = [r.getMessage() for r in caplog.records]
    assert any("available + sold" in m for m in messages)
    assert any("duplicate property id" in m for m in messages)
