import pytest

from safetriage.models.triage import ValueFlag
from safetriage.tools.report_extractor import (
    extract_report_values,
    iter_report_values,
    parse_line,
    resolve_analyte,
)

SAMPLE_REPORT = """
CITY DIAGNOSTIC LABORATORY
Patient: Jane Example        Page 1 of 2
Collected 03/01/2026

Hgb: 10.2 g/dL (12.0-15.5)
WBC 7.1 x10^9/L
Platelets 250,000 /uL
Glucose 130 mg/dL ref 70-99
Total Cholesterol 180 mg/dL <200
Sodium: pending
Comment: sample slightly haemolysed
"""


def test_sample_report():
    result = extract_report_values(SAMPLE_REPORT)
    by_name = {v.name: v for v in result.values}

    assert list(by_name) == [
        "hemoglobin",
        "white blood cells",
        "platelets",
        "glucose",
        "total cholesterol",
        "sodium",
    ]

    hemoglobin = by_name["hemoglobin"]
    assert hemoglobin.value == 10.2
    assert hemoglobin.unit == "g/dL"
    assert (hemoglobin.reference_range.low, hemoglobin.reference_range.high) == (12.0, 15.5)
    assert hemoglobin.flag == ValueFlag.LOW

    assert by_name["white blood cells"].flag == ValueFlag.NORMAL
    assert by_name["glucose"].flag == ValueFlag.HIGH
    assert by_name["total cholesterol"].reference_range.high == 200
    assert by_name["total cholesterol"].flag == ValueFlag.NORMAL

    platelets = by_name["platelets"]
    assert platelets.value == 250000
    assert platelets.reference_range is None
    assert platelets.flag is None

    assert by_name["sodium"].value is None
    assert by_name["sodium"].flag == ValueFlag.UNPARSEABLE_SKIP

    assert "platelets: reference range missing; interpretation may be limited." in result.warnings
    assert "sodium: value could not be read." in result.warnings


def test_extraction_is_idempotent():
    assert extract_report_values(SAMPLE_REPORT) == extract_report_values(SAMPLE_REPORT)


@pytest.mark.parametrize(
    "label,expected",
    [
        ("Hgb", "hemoglobin"),
        ("HAEMOGLOBIN", "hemoglobin"),
        ("Hemoglobin (HGB)", "hemoglobin"),
        ("SGPT", "alt"),
        ("HbA1c", "hba1c"),
    ],
)
def test_alias_resolution(label, expected):
    assert resolve_analyte(label) == (expected, True)


def test_unknown_label_with_inline_range_is_kept():
    value = parse_line("Zinc 60 ug/dL (70-120)")

    assert value.name == "zinc"
    assert value.flag == ValueFlag.LOW


def test_noise_lines_are_skipped():
    noise = "Page 3 of 4\nDr. Smith 555 1234\n»»» ### \nReport date 2026"

    assert list(iter_report_values(noise)) == []


def test_default_range_not_applied_across_units():
    value = parse_line("Glucose 5.4 mmol/L")

    assert value.reference_range is None
    assert value.flag is None


def test_decimal_comma():
    value = parse_line("Potassium 4,2 mmol/L")

    assert value.value == 4.2
    assert value.flag == ValueFlag.NORMAL


def test_empty_text_warns():
    result = extract_report_values("   \n  ")

    assert result.values == []
    assert result.warnings == ["No text extracted."]


def test_nothing_recognized_is_not_an_error():
    result = extract_report_values("Thank you for choosing our clinic.")

    assert result.values == []
    assert result.warnings == ["No recognizable lab values found."]


def test_long_whitespace_runs_are_collapsed():
    assert list(iter_report_values("Hgb" + " " * 10_000 + "x")) == []

    value = parse_line("Hgb" + " " * 10_000 + "10.2 g/dL")
    assert value.name == "hemoglobin"
    assert value.value == 10.2


def test_overlong_lines_are_treated_as_noise():
    assert parse_line("Glucose 130 mg/dL " + "x" * 1_000) is None
    assert extract_report_values("word " * 40_000).warnings == [
        "No recognizable lab values found."
    ]
