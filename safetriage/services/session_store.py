"""Session persistence with a sliding expiry window.

Every write stamps ``expires_at = now + ttl``. A record past its expiry is
treated as absent: ``get`` returns None and deletes it on the spot, whether or
not the periodic sweep has reached it yet.

Writes are full-record overwrites. Two concurrent turns on one session are
last-write-wins; turns from a single user are expected to be sequential.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional
from pydantic import ValidationError
from pymongo.errors import PyMongoError
from safetriage.config.database import get_sessions_collection
from safetriage.config.settings import settings
from safetriage.models.intake import IntakeRecord, utc_now
from safetriage.models.session import SessionRecord, SessionStats
import logging

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class StoreUnavailable(RuntimeError):
    """The backing store could not be reached or refused the operation."""


class SessionStore(ABC):
    """Keyed intake-record store with lazy expiry."""

    def __init__(self, ttl: Optional[timedelta] = None, clock: Clock = utc_now):
        self.ttl = ttl or timedelta(minutes=settings.session_ttl_minutes)
        self.clock = clock

    @abstractmethod
    async def get(self, session_id: str) -> Optional[IntakeRecord]:
        """Return the live record, or None when missing or expired."""

    @abstractmethod
    async def set(
        self, session_id: str, state: IntakeRecord, user_id: Optional[str] = None
    ) -> SessionRecord:
        """Overwrite the record and slide its expiry forward from now."""

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Remove a record. Returns True when something was deleted."""

    @abstractmethod
    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Delete every record expired at ``now``; returns how many."""

    @abstractmethod
    async def stats(self, now: Optional[datetime] = None) -> SessionStats:
        """Count live and expired-but-not-yet-removed records."""

    async def ping(self) -> bool:
        return True


class InMemorySessionStore(SessionStore):
    """Process-local store for development and tests."""

    def __init__(self, ttl: Optional[timedelta] = None, clock: Clock = utc_now):
        super().__init__(ttl=ttl, clock=clock)
        self._records: Dict[str, SessionRecord] = {}

    async def get(self, session_id: str) -> Optional[IntakeRecord]:
        record = self._records.get(session_id)
        if record is None:
            return None
        if record.is_expired(self.clock()):
            self._records.pop(session_id, None)
            logger.info(f"Session {session_id} expired on read")
            return None
        return record.state

    async def set(
        self, session_id: str, state: IntakeRecord, user_id: Optional[str] = None
    ) -> SessionRecord:
        record = SessionRecord.stamped(
            session_id, state, now=self.clock(), ttl=self.ttl, user_id=user_id
        )
        self._records[session_id] = record
        return record

    async def delete(self, session_id: str) -> bool:
        return self._records.pop(session_id, None) is not None

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        now = now or self.clock()
        expired = [key for key, r in self._records.items() if r.is_expired(now)]
        for key in expired:
            self._records.pop(key, None)
        return len(expired)

    async def stats(self, now: Optional[datetime] = None) -> SessionStats:
        now = now or self.clock()
        expired = sum(1 for r in self._records.values() if r.is_expired(now))
        return SessionStats(
            active_count=len(self._records) - expired, expired_count=expired
        )


class MongoSessionStore(SessionStore):
    """Store backed by the MongoDB sessions collection.

    The collection also carries a TTL index on ``expires_at``; MongoDB's
    background removal is coarse, so expiry is still enforced here.
    """

    def __init__(
        self,
        ttl: Optional[timedelta] = None,
        clock: Clock = utc_now,
        collection_factory: Callable[[], Awaitable] = get_sessions_collection,
    ):
        super().__init__(ttl=ttl, clock=clock)
        self._collection_factory = collection_factory

    async def _collection(self):
        try:
            return await self._collection_factory()
        except RuntimeError as e:
            raise StoreUnavailable(str(e)) from e

    @staticmethod
    def _to_document(record: SessionRecord) -> dict:
        return {
            "session_id": record.session_id,
            "user_id": record.user_id,
            "state": record.state.model_dump(mode="json"),
            "updated_at": record.updated_at,
            "expires_at": record.expires_at,
        }

    async def get(self, session_id: str) -> Optional[IntakeRecord]:
        collection = await self._collection()
        now = self.clock()
        try:
            doc = await collection.find_one({"session_id": session_id})
            if not doc:
                return None
            doc.pop("_id", None)
            try:
                record = SessionRecord.model_validate(doc)
            except ValidationError as e:
                # Unreadable document: drop it so the session starts over
                logger.error(f"Discarding malformed session {session_id}: {e}")
                await collection.delete_one({"session_id": session_id})
                return None
            if record.is_expired(now):
                # Only remove it if no writer refreshed it in the meantime
                await collection.delete_one(
                    {"session_id": session_id, "expires_at": {"$lte": now}}
                )
                logger.info(f"Session {session_id} expired on read")
                return None
        except PyMongoError as e:
            logger.error(f"Failed to read session {session_id}: {e}")
            raise StoreUnavailable(f"session read failed: {e}") from e
        return record.state

    async def set(
        self, session_id: str, state: IntakeRecord, user_id: Optional[str] = None
    ) -> SessionRecord:
        collection = await self._collection()
        record = SessionRecord.stamped(
            session_id, state, now=self.clock(), ttl=self.ttl, user_id=user_id
        )
        try:
            await collection.replace_one(
                {"session_id": session_id}, self._to_document(record), upsert=True
            )
        except PyMongoError as e:
            logger.error(f"Failed to write session {session_id}: {e}")
            raise StoreUnavailable(f"session write failed: {e}") from e
        return record

    async def delete(self, session_id: str) -> bool:
        collection = await self._collection()
        try:
            result = await collection.delete_one({"session_id": session_id})
        except PyMongoError as e:
            logger.error(f"Failed to delete session {session_id}: {e}")
            raise StoreUnavailable(f"session delete failed: {e}") from e
        return result.deleted_count > 0

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        collection = await self._collection()
        now = now or self.clock()
        try:
            result = await collection.delete_many({"expires_at": {"$lte": now}})
        except PyMongoError as e:
            logger.error(f"Session sweep failed: {e}")
            raise StoreUnavailable(f"session sweep failed: {e}") from e
        return result.deleted_count

    async def stats(self, now: Optional[datetime] = None) -> SessionStats:
        collection = await self._collection()
        now = now or self.clock()
        try:
            active = await collection.count_documents({"expires_at": {"$gt": now}})
            expired = await collection.count_documents({"expires_at": {"$lte": now}})
        except PyMongoError as e:
            logger.error(f"Session stats failed: {e}")
            raise StoreUnavailable(f"session stats failed: {e}") from e
        return SessionStats(active_count=active, expired_count=expired)

    async def ping(self) -> bool:
        collection = await self._collection()
        try:
            await collection.database.command("ping")
        except PyMongoError as e:
            logger.error(f"MongoDB ping failed: {e}")
            return False
        return True


def build_session_store(backend: Optional[str] = None) -> SessionStore:
    """Create the store named by ``backend`` (defaults to settings)."""
    backend = (backend or settings.session_backend).lower()
    if backend == "memory":
        return InMemorySessionStore()
    if backend == "mongo":
        return MongoSessionStore()
    raise ValueError(f"Unknown session backend: {backend}")


# Global store instance
_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get or create the configured SessionStore instance."""
    global _session_store
    if _session_store is None:
        _session_store = build_session_store()
        logger.info(f"Session store backend: {type(_session_store).__name__}")
    return _session_store


def reset_session_store(store: Optional[SessionStore] = None):
    """Replace the global store (None forces a rebuild on next use)."""
    global _session_store
    _session_store = store
