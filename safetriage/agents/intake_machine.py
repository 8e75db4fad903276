"""Multi-turn intake state machine.

The conversation state is an ``IntakeStage``. ``next_stage`` is the whole
transition function: it scans the slots in their fixed order and returns the
first one that is neither skipped nor populated, or ``COMPLETE``.

Merge rules for a turn:

* Structured fields supplied on the turn overwrite earlier values for the same
  slot (the user corrected themselves).
* Free text only ever feeds ``free_text``. The exception is a short answer to
  the slot currently awaited ("7/10", "about 3 days", "I'm 45"): when that
  slot is still empty the answer fills it. Text that says more than the bare
  answer is also appended to ``free_text`` so red flags in it are still seen.
* Fields that were not asked for are accepted all the same; slot order only
  decides what is asked next.
"""

import re
from typing import Callable, Dict, Optional, Tuple
from pydantic import ValidationError
from safetriage.models.intake import (
    IntakeComplete,
    IntakeOutcome,
    IntakeRecord,
    PromptNeeded,
    TurnPayload,
)
from safetriage.models.triage import SLOT_ORDER, IntakeStage, Slot
import logging

logger = logging.getLogger(__name__)


class IntakeValidationError(ValueError):
    """A turn could not be merged into a valid intake record."""


SLOT_PROMPTS = {
    Slot.SYMPTOMS: "What symptom or health concern would you like to discuss today?",
    Slot.SEVERITY: "On a scale of 1 to 10, how severe is it right now?",
    Slot.DURATION: "How long have you been experiencing this?",
    Slot.AGE: "How old are you?",
}

_SLOT_FIELD = {
    Slot.SEVERITY: "severity",
    Slot.DURATION: "duration_hours",
    Slot.AGE: "age_years",
}

_FILLER = re.compile(
    r"\b(?:about|around|approximately|roughly|maybe|like|i'?m|im|i|am|it'?s|its|"
    r"is|for|the|past|last|old|years? old|yrs? old|aged?)\b|[\s.,!?~-]"
)

_TIME_UNITS = r"minutes?|mins?|hours?|hrs?|h|days?|d|weeks?|wks?|months?"

_SEVERITY_RE = re.compile(
    r"(?<![\d.])(10|[1-9])(?:\s*(?:/|out of)\s*10)?(?![\d.])"
    r"(?!\s*(?:" + _TIME_UNITS + r"|years?|yrs?)\b)"
)

_DURATION_RE = re.compile(
    r"(?:(?<![\d.])(\d+(?:\.\d+)?)\s*|\b(half an?|an?|one)\s+)"
    r"(" + _TIME_UNITS + r")\b"
)
_DURATION_HOURS = {
    "m": 1 / 60,
    "h": 1,
    "d": 24,
    "w": 168,
    "mo": 720,
}

_AGE_MONTHS_RE = re.compile(r"(?<![\d.])(\d{1,2})\s*(?:months?|mos?)\b(?:\s*old)?")
_AGE_RE = re.compile(r"(?<![\d.])(\d{1,3})(?:\s*(?:years?|yrs?|y/?o))?(?![\d.])")


def _duration_unit_hours(unit: str) -> float:
    if unit.startswith("mo"):
        return _DURATION_HOURS["mo"]
    if unit.startswith("mi") or unit == "m":
        return _DURATION_HOURS["m"]
    return _DURATION_HOURS[unit[0]]


def parse_severity(text: str) -> Optional[Tuple[int, Tuple[int, int]]]:
    match = _SEVERITY_RE.search(text)
    if not match:
        return None
    return int(match.group(1)), match.span()


def parse_duration_hours(text: str) -> Optional[Tuple[float, Tuple[int, int]]]:
    match = _DURATION_RE.search(text)
    if not match:
        return None
    number, word, unit = match.group(1), match.group(2), match.group(3)
    if number is not None:
        amount = float(number)
    elif word.startswith("half"):
        amount = 0.5
    else:
        amount = 1.0
    hours = round(amount * _duration_unit_hours(unit), 4)
    if not 0 <= hours <= 8760:
        return None
    return hours, match.span()


def parse_age_years(text: str) -> Optional[Tuple[float, Tuple[int, int]]]:
    match = _AGE_MONTHS_RE.search(text)
    if match:
        return round(int(match.group(1)) / 12, 4), match.span()
    match = _AGE_RE.search(text)
    if not match:
        return None
    age = int(match.group(1))
    if age > 120:
        return None
    return float(age), match.span()


_SLOT_PARSERS: Dict[Slot, Callable[[str], Optional[Tuple[float, Tuple[int, int]]]]] = {
    Slot.SEVERITY: parse_severity,
    Slot.DURATION: parse_duration_hours,
    Slot.AGE: parse_age_years,
}


def _is_bare_answer(text: str, span: Tuple[int, int]) -> bool:
    leftover = text[: span[0]] + " " + text[span[1]:]
    return not _FILLER.sub("", leftover)


def next_stage(record: IntakeRecord) -> IntakeStage:
    """Total transition function over the fixed slot order."""
    for slot in SLOT_ORDER:
        if record.is_skipped(slot) or record.is_populated(slot):
            continue
        return IntakeStage.awaiting(slot)
    return IntakeStage.COMPLETE


def merge_turn(record: Optional[IntakeRecord], turn: TurnPayload) -> IntakeRecord:
    """Merge one turn into the record (a new one when ``record`` is None)."""
    merged = record.model_dump() if record is not None else {}
    updates = turn.explicit_fields()

    text = " ".join((turn.text or "").split())
    if text:
        append_text = True
        awaiting = record.awaiting if record is not None else None
        if (
            awaiting in _SLOT_PARSERS
            and _SLOT_FIELD[awaiting] not in updates
            and not record.is_populated(awaiting)
        ):
            parsed = _SLOT_PARSERS[awaiting](text.lower())
            if parsed is not None:
                value, span = parsed
                updates[_SLOT_FIELD[awaiting]] = value
                append_text = not _is_bare_answer(text.lower(), span)
                logger.info(f"Parsed free-text answer for slot {awaiting.value}")
        if append_text:
            previous = merged.get("free_text")
            updates["free_text"] = f"{previous}\n{text}" if previous else text

    merged.update(updates)
    try:
        return IntakeRecord.model_validate(merged)
    except ValidationError as e:
        raise IntakeValidationError(str(e)) from e


def advance(record: Optional[IntakeRecord], turn: TurnPayload) -> IntakeOutcome:
    """
    Apply one turn and decide the next step.

    Args:
        record: Current intake record, or None for a new session
        turn: The user's turn

    Returns:
        PromptNeeded with the next awaited slot, or IntakeComplete

    Raises:
        IntakeValidationError: if the merged record is invalid
    """
    merged = merge_turn(record, turn)
    stage = next_stage(merged)

    if stage == IntakeStage.COMPLETE:
        return IntakeComplete(record=merged.model_copy(update={"awaiting": None}))

    slot = stage.slot
    return PromptNeeded(
        awaiting=slot,
        prompt=SLOT_PROMPTS[slot],
        record=merged.model_copy(update={"awaiting": slot}),
    )
