"""Intake turn orchestration: store read, merge, decision, store write."""

from typing import Optional
from safetriage.agents.decision_engine import DecisionEngine, get_decision_engine
from safetriage.agents.intake_machine import advance
from safetriage.agents.triage_narrator import TriageNarrator, get_triage_narrator
from safetriage.models.intake import IntakeComplete, IntakeRecord, TurnPayload
from safetriage.models.messages import TurnResponse
from safetriage.models.verdict import TriageVerdict
from safetriage.services.session_store import SessionStore, get_session_store
import logging

logger = logging.getLogger(__name__)


class IntakeService:
    """Service for running intake conversations.

    Store failures propagate as ``StoreUnavailable``; a turn is never applied
    to a fresh record just because the existing one could not be read.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        engine: Optional[DecisionEngine] = None,
        narrator: Optional[TriageNarrator] = None,
    ):
        self._store = store
        self._engine = engine
        self._narrator = narrator

    @property
    def store(self) -> SessionStore:
        return self._store or get_session_store()

    @property
    def engine(self) -> DecisionEngine:
        return self._engine or get_decision_engine()

    @property
    def narrator(self) -> TriageNarrator:
        return self._narrator or get_triage_narrator()

    async def handle_turn(
        self, session_id: str, turn: TurnPayload, user_id: Optional[str] = None
    ) -> TurnResponse:
        """
        Apply one turn to a session.

        Args:
            session_id: Session identifier
            turn: Free text and structured fields from the user
            user_id: Optional owner recorded on the session

        Returns:
            TurnResponse with either the next prompt or the verdict

        Raises:
            IntakeValidationError: if the merged record is invalid
            StoreUnavailable: if the session store cannot be reached
        """
        record = await self.store.get(session_id)
        if record is None:
            logger.info(f"Starting intake for session {session_id}")

        outcome = advance(record, turn)
        await self.store.set(session_id, outcome.record, user_id=user_id)

        if not isinstance(outcome, IntakeComplete):
            logger.info(f"Session {session_id} awaiting {outcome.awaiting.value}")
            return TurnResponse(
                session_id=session_id,
                status="awaiting",
                awaiting=outcome.awaiting,
                prompt=outcome.prompt,
            )

        verdict = await self.decide(outcome.record)
        logger.info(
            f"Session {session_id} complete: {verdict.urgency_tier.value} "
            f"({verdict.system_action.value})"
        )
        return TurnResponse(session_id=session_id, status="complete", verdict=verdict)

    async def decide(self, record: IntakeRecord) -> TriageVerdict:
        """Deterministic verdict, plus narrative when augmentation is on."""
        verdict = self.engine.decide(record)
        return await self.narrator.narrate(verdict, record)

    async def get_state(self, session_id: str) -> Optional[IntakeRecord]:
        return await self.store.get(session_id)

    async def clear(self, session_id: str) -> bool:
        cleared = await self.store.delete(session_id)
        if cleared:
            logger.info(f"Cleared session {session_id}")
        return cleared


# Global service instance
_intake_service: Optional[IntakeService] = None


def get_intake_service() -> IntakeService:
    """Get or create IntakeService instance."""
    global _intake_service
    if _intake_service is None:
        _intake_service = IntakeService()
    return _intake_service
