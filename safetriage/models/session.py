"""Persisted session document."""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime, timedelta
from safetriage.models.base import CamelModel
from safetriage.models.intake import IntakeRecord


class SessionRecord(BaseModel):
    """Triage session document as written to the store."""

    session_id: str
    user_id: Optional[str] = None
    state: IntakeRecord
    updated_at: datetime
    expires_at: datetime

    @classmethod
    def stamped(
        cls,
        session_id: str,
        state: IntakeRecord,
        now: datetime,
        ttl: timedelta,
        user_id: Optional[str] = None,
    ) -> "SessionRecord":
        """Build a record whose expiry slides forward from ``now``."""
        return cls(
            session_id=session_id,
            user_id=user_id,
            state=state.model_copy(update={"updated_at": now}),
            updated_at=now,
            expires_at=now + ttl,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class SessionStats(CamelModel):
    active_count: int
    expired_count: int


class SweepResult(CamelModel):
    deleted_count: int
