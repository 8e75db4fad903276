"""Triage API endpoints.

Intake conversations, one-shot decisions, prescription screening, lab report
extraction and session maintenance.
"""

from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Path, status
from safetriage.api.dependencies import (
    get_intake,
    get_lifecycle_manager,
    verify_cron_secret,
)
from safetriage.models.intake import TurnPayload
from safetriage.models.messages import (
    ClearResponse,
    IntakeStateResponse,
    SystemPromptResponse,
    TurnResponse,
)
from safetriage.models.prescription import PrescriptionReport, PrescriptionRequest
from safetriage.models.report import ReportExtraction, ReportExtractionRequest
from safetriage.models.session import SessionStats, SweepResult
from safetriage.models.verdict import DecisionRequest, TriageVerdict
from safetriage.services.intake_service import IntakeService
from safetriage.services.prompt_settings import get_prompt_settings_service
from safetriage.services.session_lifecycle import SessionLifecycleManager
from safetriage.tools.drug_interactions import check_prescription
from safetriage.tools.report_extractor import extract_report_values
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/triage", tags=["Triage"])

SessionId = Annotated[
    str, Path(min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_.:-]+$")
]


@router.post(
    "/intake/{session_id}/turn",
    response_model=TurnResponse,
    response_model_exclude_none=True,
)
async def intake_turn(
    turn: TurnPayload,
    session_id: SessionId,
    intake: IntakeService = Depends(get_intake),
):
    """
    Submit one intake turn.

    Returns the next question while mandatory slots are missing, and the
    triage verdict once they are all answered or skipped.
    """
    return await intake.handle_turn(session_id, turn)


@router.get("/intake/{session_id}", response_model=IntakeStateResponse)
async def get_intake_state(
    session_id: SessionId,
    intake: IntakeService = Depends(get_intake),
):
    """Get the current intake record for a session."""
    record = await intake.get_state(session_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
        )
    return IntakeStateResponse(session_id=session_id, state=record)


@router.delete("/intake/{session_id}", response_model=ClearResponse)
async def clear_intake(
    session_id: SessionId,
    intake: IntakeService = Depends(get_intake),
):
    """Discard a session's intake record."""
    cleared = await intake.clear(session_id)
    return ClearResponse(session_id=session_id, cleared=cleared)


@router.post("/decide", response_model=TriageVerdict, response_model_exclude_none=True)
async def decide(
    request: DecisionRequest,
    intake: IntakeService = Depends(get_intake),
):
    """One-shot triage decision without a session."""
    return await intake.decide(request.to_record())


@router.post("/prescriptions/check", response_model=PrescriptionReport)
async def check_prescription_safety(request: PrescriptionRequest):
    """Screen a new prescription against current medications."""
    return check_prescription(request)


@router.post("/reports/extract", response_model=ReportExtraction)
async def extract_report(request: ReportExtractionRequest):
    """Extract structured lab values from OCR/PDF text."""
    return extract_report_values(request.text)


@router.get(
    "/maintenance/cleanup",
    response_model=SweepResult,
    dependencies=[Depends(verify_cron_secret)],
)
async def cleanup_expired_sessions(
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle_manager),
):
    """Delete expired sessions. Intended for a scheduled job."""
    return await lifecycle.sweep()


@router.get(
    "/maintenance/stats",
    response_model=SessionStats,
    dependencies=[Depends(verify_cron_secret)],
)
async def session_stats(
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle_manager),
):
    """Counts of live and expired sessions."""
    return await lifecycle.stats()


@router.get("/settings/system-prompt", response_model=SystemPromptResponse)
async def get_system_prompt():
    """Current narrator system prompt (cached)."""
    return await get_prompt_settings_service().get_system_prompt()
