import asyncio
from datetime import timedelta
from types import SimpleNamespace

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from safetriage.models.intake import IntakeRecord
from safetriage.models.triage import Slot
from safetriage.services.session_store import MongoSessionStore, StoreUnavailable


def _matches(doc, query):
    for key, condition in query.items():
        value = doc.get(key)
        if isinstance(condition, dict):
            if "$lte" in condition and not value <= condition["$lte"]:
                return False
            if "$gt" in condition and not value > condition["$gt"]:
                return False
        elif value != condition:
            return False
    return True


class FakeCollection:
    """Just enough of a motor collection for the session store."""

    def __init__(self):
        self.docs = {}

    async def find_one(self, query):
        for doc in self.docs.values():
            if _matches(doc, query):
                return dict(doc, _id="object-id")
        return None

    async def replace_one(self, query, document, upsert=False):
        self.docs[query["session_id"]] = dict(document)

    async def delete_one(self, query):
        for key, doc in list(self.docs.items()):
            if _matches(doc, query):
                del self.docs[key]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query):
        matching = [k for k, d in self.docs.items() if _matches(d, query)]
        for key in matching:
            del self.docs[key]
        return SimpleNamespace(deleted_count=len(matching))

    async def count_documents(self, query):
        return sum(1 for d in self.docs.values() if _matches(d, query))


class BrokenCollection:
    async def find_one(self, query):
        raise ServerSelectionTimeoutError("no servers available")

    async def replace_one(self, query, document, upsert=False):
        raise ServerSelectionTimeoutError("no servers available")


@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def mongo_store(clock, collection):
    async def factory():
        return collection

    return MongoSessionStore(ttl=timedelta(minutes=30), clock=clock, collection_factory=factory)


@pytest.fixture(params=["memory", "mongo"])
def store(request, memory_store, mongo_store):
    return memory_store if request.param == "memory" else mongo_store


def test_record_is_live_within_ttl(store, clock):
    async def scenario():
        await store.set("s1", IntakeRecord(free_text="headache", awaiting=Slot.SEVERITY))
        clock.advance(minutes=29)
        return await store.get("s1")

    record = asyncio.run(scenario())

    assert record.free_text == "headache"
    assert record.awaiting == Slot.SEVERITY


def test_expired_record_is_absent_and_removed(store, clock):
    async def scenario():
        await store.set("s1", IntakeRecord(free_text="headache"))
        clock.advance(minutes=31)
        first = await store.get("s1")
        stats = await store.stats()
        return first, stats

    first, stats = asyncio.run(scenario())

    assert first is None
    assert stats.active_count == 0
    assert stats.expired_count == 0


def test_write_slides_expiry_forward(store, clock):
    async def scenario():
        await store.set("s1", IntakeRecord(free_text="cough"))
        clock.advance(minutes=20)
        await store.set("s1", IntakeRecord(free_text="cough", severity=3))
        clock.advance(minutes=20)
        return await store.get("s1")

    record = asyncio.run(scenario())

    assert record is not None
    assert record.severity == 3


def test_set_stamps_expiry_from_call_time(store, clock):
    record = asyncio.run(store.set("s1", IntakeRecord(free_text="cough")))

    assert record.updated_at == clock.now
    assert record.expires_at == clock.now + timedelta(minutes=30)
    assert record.state.updated_at == clock.now


def test_delete(store):
    async def scenario():
        await store.set("s1", IntakeRecord(free_text="cough"))
        deleted = await store.delete("s1")
        again = await store.delete("s1")
        return deleted, again, await store.get("s1")

    assert asyncio.run(scenario()) == (True, False, None)


def test_sweep_and_stats(store, clock):
    async def scenario():
        await store.set("old", IntakeRecord(free_text="a"))
        clock.advance(minutes=25)
        await store.set("new", IntakeRecord(free_text="b"))
        clock.advance(minutes=10)
        before = await store.stats()
        deleted = await store.sweep_expired()
        after = await store.stats()
        return before, deleted, after

    before, deleted, after = asyncio.run(scenario())

    assert (before.active_count, before.expired_count) == (1, 1)
    assert deleted == 1
    assert (after.active_count, after.expired_count) == (1, 0)


def test_mongo_document_keeps_native_expiry(mongo_store, collection, clock):
    asyncio.run(mongo_store.set("s1", IntakeRecord(free_text="rash"), user_id="u-1"))

    doc = collection.docs["s1"]
    assert doc["expires_at"] == clock.now + timedelta(minutes=30)
    assert doc["user_id"] == "u-1"
    assert doc["state"]["free_text"] == "rash"


def test_get_after_concurrent_sweep_returns_none(store, clock):
    async def scenario():
        await store.set("s1", IntakeRecord(free_text="rash"))
        clock.advance(minutes=31)
        swept = await store.sweep_expired()
        return swept, await store.get("s1")

    assert asyncio.run(scenario()) == (1, None)


def test_store_failure_raises_store_unavailable(clock):
    async def factory():
        return BrokenCollection()

    store = MongoSessionStore(clock=clock, collection_factory=factory)

    with pytest.raises(StoreUnavailable):
        asyncio.run(store.get("s1"))
    with pytest.raises(StoreUnavailable):
        asyncio.run(store.set("s1", IntakeRecord(free_text="x")))


def test_uninitialized_database_raises_store_unavailable(clock):
    store = MongoSessionStore(clock=clock)

    with pytest.raises(StoreUnavailable):
        asyncio.run(store.get("s1"))


def test_malformed_mongo_document_is_discarded(mongo_store, collection):
    collection.docs["s1"] = {"session_id": "s1", "state": {"severity": "very bad"}}

    assert asyncio.run(mongo_store.get("s1")) is None
    assert "s1" not in collection.docs
