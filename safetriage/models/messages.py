"""API request and response models."""

from pydantic import Field
from typing import Literal, Optional
from safetriage.models.base import CamelModel
from safetriage.models.intake import IntakeRecord
from safetriage.models.triage import Slot
from safetriage.models.verdict import TriageVerdict


class TurnResponse(CamelModel):
    """Result of one intake turn."""

    session_id: str
    status: Literal["awaiting", "complete"]
    awaiting: Optional[Slot] = None
    prompt: Optional[str] = None
    verdict: Optional[TriageVerdict] = None


class IntakeStateResponse(CamelModel):
    session_id: str
    state: IntakeRecord


class ClearResponse(CamelModel):
    session_id: str
    cleared: bool


class SystemPromptResponse(CamelModel):
    system_prompt: str
    cached: bool = False
    source: str = Field(default="default", description="database or default")
