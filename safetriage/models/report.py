"""Lab report extraction models."""

from pydantic import Field
from typing import List, Optional
from safetriage.models.base import CamelModel
from safetriage.models.triage import ValueFlag


class ReferenceRange(CamelModel):
    low: Optional[float] = None
    high: Optional[float] = None


class ParsedValue(CamelModel):
    """A structured value recovered from one report line."""

    name: str
    value: Optional[float] = None
    unit: Optional[str] = None
    reference_range: Optional[ReferenceRange] = None
    flag: Optional[ValueFlag] = None


class ReportExtractionRequest(CamelModel):
    text: str = Field(default="", max_length=200_000)


class ReportExtraction(CamelModel):
    values: List[ParsedValue] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
