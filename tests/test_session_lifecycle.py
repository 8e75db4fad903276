import asyncio

import pytest

from safetriage.models.intake import IntakeRecord
from safetriage.services.session_lifecycle import SessionLifecycleManager
from safetriage.services.session_store import StoreUnavailable


def test_sweep_with_nothing_expired_returns_zero(memory_store):
    manager = SessionLifecycleManager(memory_store)

    async def scenario():
        await memory_store.set("s1", IntakeRecord(free_text="cough"))
        return await manager.sweep()

    assert asyncio.run(scenario()).deleted_count == 0


def test_sweep_removes_expired_sessions(memory_store, clock):
    manager = SessionLifecycleManager(memory_store)

    async def scenario():
        await memory_store.set("s1", IntakeRecord(free_text="cough"))
        await memory_store.set("s2", IntakeRecord(free_text="fever"))
        clock.advance(minutes=45)
        await memory_store.set("s3", IntakeRecord(free_text="rash"))
        result = await manager.sweep()
        stats = await manager.stats()
        return result, stats

    result, stats = asyncio.run(scenario())

    assert result.deleted_count == 2
    assert (stats.active_count, stats.expired_count) == (1, 0)


def test_periodic_sweep_survives_store_failures(memory_store, monkeypatch):
    manager = SessionLifecycleManager(memory_store)
    calls = []

    async def flaky_sweep(now=None):
        calls.append(now)
        if len(calls) == 1:
            raise StoreUnavailable("database down")
        return 0

    monkeypatch.setattr(memory_store, "sweep_expired", flaky_sweep)

    async def scenario():
        task = asyncio.create_task(manager.run_periodic(0.01))
        while len(calls) < 2:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(asyncio.wait_for(scenario(), timeout=5))

    assert len(calls) >= 2
