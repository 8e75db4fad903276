from itertools import product

import pytest
from pydantic import ValidationError

from safetriage.agents.intake_machine import (
    IntakeValidationError,
    advance,
    merge_turn,
    next_stage,
    parse_age_years,
    parse_duration_hours,
    parse_severity,
)
from safetriage.models.intake import IntakeComplete, IntakeRecord, PromptNeeded, TurnPayload
from safetriage.models.triage import SLOT_ORDER, IntakeStage, Slot


def test_new_session_asks_for_symptoms_first():
    outcome = advance(None, TurnPayload())

    assert isinstance(outcome, PromptNeeded)
    assert outcome.awaiting == Slot.SYMPTOMS
    assert outcome.record.awaiting == Slot.SYMPTOMS
    assert "symptom" in outcome.prompt.lower()


def test_conversation_walks_slots_in_order():
    outcome = advance(None, TurnPayload(text="I have a headache"))
    assert outcome.awaiting == Slot.SEVERITY

    outcome = advance(outcome.record, TurnPayload(text="7/10"))
    assert outcome.awaiting == Slot.DURATION
    assert outcome.record.severity == 7
    assert outcome.record.free_text == "I have a headache"

    outcome = advance(outcome.record, TurnPayload(text="about 3 days"))
    assert outcome.awaiting == Slot.AGE
    assert outcome.record.duration_hours == 72

    outcome = advance(outcome.record, TurnPayload(text="I'm 45"))
    assert isinstance(outcome, IntakeComplete)
    assert outcome.record.age_years == 45
    assert outcome.record.awaiting is None


def test_out_of_order_fields_are_accepted():
    outcome = advance(None, TurnPayload(text="cough", age_years=30, duration_hours=10))

    assert outcome.awaiting == Slot.SEVERITY
    assert outcome.record.age_years == 30
    assert outcome.record.duration_hours == 10

    outcome = advance(outcome.record, TurnPayload(severity=4))
    assert isinstance(outcome, IntakeComplete)


def test_explicit_field_overwrites_previous_value():
    record = IntakeRecord(free_text="back pain", severity=7)

    merged = merge_turn(record, TurnPayload(severity=4))

    assert merged.severity == 4


def test_free_text_never_overwrites_structured_field():
    record = IntakeRecord(free_text="back pain", severity=7, awaiting=Slot.DURATION)

    merged = merge_turn(record, TurnPayload(text="2"))

    assert merged.severity == 7
    assert merged.duration_hours is None
    assert merged.free_text == "back pain\n2"


def test_answer_with_extra_detail_keeps_text_for_red_flag_checks():
    record = IntakeRecord(free_text="feeling unwell", awaiting=Slot.SEVERITY)

    merged = merge_turn(record, TurnPayload(text="8, and now I have chest pain"))

    assert merged.severity == 8
    assert "chest pain" in merged.free_text


def test_duration_text_is_not_taken_as_severity():
    record = IntakeRecord(free_text="sore throat", awaiting=Slot.SEVERITY)

    merged = merge_turn(record, TurnPayload(text="it started 3 days ago"))

    assert merged.severity is None
    assert merged.free_text.endswith("it started 3 days ago")


def test_skipped_slots_are_not_requested():
    outcome = advance(
        None,
        TurnPayload(text="itchy rash", skip_severity=True, skip_duration=True, skip_age=True),
    )

    assert isinstance(outcome, IntakeComplete)


def test_merged_record_is_validated():
    record = IntakeRecord(free_text="nausea", pregnant=True)

    with pytest.raises(IntakeValidationError):
        merge_turn(record, TurnPayload(sex_at_birth="male"))


def test_turn_payload_rejects_out_of_range_values():
    with pytest.raises(ValidationError):
        TurnPayload(severity=11)
    with pytest.raises(ValidationError):
        TurnPayload(age_years=-1)
    with pytest.raises(ValidationError):
        TurnPayload(duration_hours=9000)


def test_next_stage_is_total_over_slot_combinations():
    for populated, skipped in product(product([True, False], repeat=4), product([True, False], repeat=3)):
        record = IntakeRecord(
            free_text="symptom" if populated[0] else None,
            severity=5 if populated[1] else None,
            duration_hours=12 if populated[2] else None,
            age_years=40 if populated[3] else None,
            skip_severity=skipped[0],
            skip_duration=skipped[1],
            skip_age=skipped[2],
        )
        satisfied = [populated[0]] + [p or s for p, s in zip(populated[1:], skipped)]

        stage = next_stage(record)

        if all(satisfied):
            assert stage == IntakeStage.COMPLETE
        else:
            first_open = SLOT_ORDER[satisfied.index(False)]
            assert stage == IntakeStage.awaiting(first_open)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("7", 7),
        ("10/10", 10),
        ("maybe 6 out of 10", 6),
        ("15", None),
        ("for 2 days", None),
    ],
)
def test_parse_severity(text, expected):
    parsed = parse_severity(text)
    assert (parsed[0] if parsed else None) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("3 days", 72),
        ("for 2 weeks", 336),
        ("half an hour", 0.5),
        ("an hour", 1),
        ("45 minutes", 0.75),
        ("i had it yesterday", None),
        ("5", None),
    ],
)
def test_parse_duration_hours(text, expected):
    parsed = parse_duration_hours(text)
    assert (parsed[0] if parsed else None) == expected


@pytest.mark.parametrize(
    "text,expected",
    [("i'm 45", 45), ("6 months old", 0.5), ("72 years", 72), ("130", None)],
)
def test_parse_age_years(text, expected):
    parsed = parse_age_years(text)
    assert (parsed[0] if parsed else None) == expected
