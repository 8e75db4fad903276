"""Lab Report Value Extractor Tool.

Best-effort recovery of ``name value unit (range)`` lines from OCR or PDF
text. Noisy lines are skipped, never fatal, and an empty result simply means
nothing was recognized.

A line yields a value when its name is a known analyte (directly or through
``ANALYTE_ALIASES``) or when it carries its own reference range. Everything
else ("Page 1 of 2", dates, addresses) is treated as noise.
"""

import re
from typing import Iterator, List, Optional, Tuple
from safetriage.models.report import ParsedValue, ReferenceRange, ReportExtraction
from safetriage.models.triage import ValueFlag
import logging

logger = logging.getLogger(__name__)


# Report spelling -> canonical analyte name
ANALYTE_ALIASES = {
    "hgb": "hemoglobin",
    "hb": "hemoglobin",
    "haemoglobin": "hemoglobin",
    "hemoglobin": "hemoglobin",
    "hct": "hematocrit",
    "pcv": "hematocrit",
    "haematocrit": "hematocrit",
    "hematocrit": "hematocrit",
    "wbc": "white blood cells",
    "tlc": "white blood cells",
    "white blood cells": "white blood cells",
    "white blood cell count": "white blood cells",
    "white cell count": "white blood cells",
    "leukocytes": "white blood cells",
    "rbc": "red blood cells",
    "red blood cells": "red blood cells",
    "red blood cell count": "red blood cells",
    "plt": "platelets",
    "platelet count": "platelets",
    "platelets": "platelets",
    "glucose": "glucose",
    "blood glucose": "glucose",
    "fasting glucose": "glucose",
    "fasting blood sugar": "glucose",
    "fbs": "glucose",
    "hba1c": "hba1c",
    "a1c": "hba1c",
    "glycated hemoglobin": "hba1c",
    "creatinine": "creatinine",
    "serum creatinine": "creatinine",
    "cr": "creatinine",
    "bun": "blood urea nitrogen",
    "urea nitrogen": "blood urea nitrogen",
    "blood urea nitrogen": "blood urea nitrogen",
    "na": "sodium",
    "sodium": "sodium",
    "k": "potassium",
    "potassium": "potassium",
    "ca": "calcium",
    "calcium": "calcium",
    "chol": "total cholesterol",
    "cholesterol": "total cholesterol",
    "total cholesterol": "total cholesterol",
    "ldl": "ldl cholesterol",
    "ldl cholesterol": "ldl cholesterol",
    "ldl-c": "ldl cholesterol",
    "hdl": "hdl cholesterol",
    "hdl cholesterol": "hdl cholesterol",
    "hdl-c": "hdl cholesterol",
    "tg": "triglycerides",
    "triglycerides": "triglycerides",
    "alt": "alt",
    "sgpt": "alt",
    "alanine aminotransferase": "alt",
    "ast": "ast",
    "sgot": "ast",
    "aspartate aminotransferase": "ast",
    "tsh": "tsh",
    "thyroid stimulating hormone": "tsh",
    "ferritin": "ferritin",
    "vitamin d": "vitamin d",
    "vit d": "vitamin d",
    "vitamin b12": "vitamin b12",
    "b12": "vitamin b12",
    "crp": "c-reactive protein",
    "c-reactive protein": "c-reactive protein",
}

# Adult default reference ranges: canonical name -> (low, high, unit)
DEFAULT_RANGES = {
    "hemoglobin": (12.0, 17.5, "g/dl"),
    "hematocrit": (36.0, 50.0, "%"),
    "white blood cells": (4.0, 11.0, "10^9/l"),
    "red blood cells": (4.0, 5.9, "10^12/l"),
    "platelets": (150.0, 400.0, "10^9/l"),
    "glucose": (70.0, 99.0, "mg/dl"),
    "hba1c": (4.0, 5.6, "%"),
    "creatinine": (0.6, 1.3, "mg/dl"),
    "blood urea nitrogen": (7.0, 20.0, "mg/dl"),
    "sodium": (135.0, 145.0, "mmol/l"),
    "potassium": (3.5, 5.1, "mmol/l"),
    "calcium": (8.5, 10.5, "mg/dl"),
    "total cholesterol": (0.0, 200.0, "mg/dl"),
    "ldl cholesterol": (0.0, 100.0, "mg/dl"),
    "hdl cholesterol": (40.0, 100.0, "mg/dl"),
    "triglycerides": (0.0, 150.0, "mg/dl"),
    "alt": (7.0, 56.0, "u/l"),
    "ast": (10.0, 40.0, "u/l"),
    "tsh": (0.4, 4.0, "miu/l"),
    "ferritin": (20.0, 300.0, "ng/ml"),
    "vitamin d": (30.0, 100.0, "ng/ml"),
    "vitamin b12": (200.0, 900.0, "pg/ml"),
    "c-reactive protein": (0.0, 10.0, "mg/l"),
}

# Unit spellings that mean the same thing as the default-range unit
_UNIT_EQUIVALENTS = {
    "meq/l": "mmol/l",
    "iu/l": "u/l",
    "uiu/ml": "miu/l",
    "µiu/ml": "miu/l",
    "miu/ml": "miu/l",
    "x10^9/l": "10^9/l",
    "10^3/ul": "10^9/l",
    "x10^3/ul": "10^9/l",
    "k/ul": "10^9/l",
    "x10^12/l": "10^12/l",
    "10^6/ul": "10^12/l",
    "x10^6/ul": "10^12/l",
    "m/ul": "10^12/l",
}

# One word at a time, single spaces only, so a label cannot swallow whitespace runs
_NAME = r"[A-Za-z][A-Za-z0-9\-/.()']*(?: [A-Za-z0-9\-/.()']+)*?"

MAX_LINE_CHARS = 500

_NUMBER = r"\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+,\d{1,2}(?!\d)|\d+(?:\.\d+)?"

LINE_PATTERN = re.compile(
    r"^(?P<name>" + _NAME + r") ?(?:[:=] ?| )"
    r"(?:[<>]=?\s*)?(?P<value>" + _NUMBER + r")"
    r"(?:\s*(?P<unit>(?!(?:ref|reference|range|normal|to)\b)"
    r"(?:(?:x\s?)?10\^\d+/[A-Za-zµ]+|[A-Za-zµ%/][A-Za-zµ%/0-9.^]*)))?"
    r"(?:\s*[\[(]?\s*(?:(?:ref(?:erence)?|normal)(?:\s*range)?\s*[:=]?\s*)?"
    r"(?:(?P<low>" + _NUMBER + r")\s*(?:-|–|to)\s*(?P<high>" + _NUMBER + r")"
    r"|(?P<upper_op><=?|≤)\s*(?P<upper>" + _NUMBER + r")"
    r"|(?P<lower_op>>=?|≥)\s*(?P<lower>" + _NUMBER + r"))\s*[\])]?)?",
    re.IGNORECASE,
)

NON_NUMERIC_PATTERN = re.compile(
    r"^(?P<name>" + _NAME + r") ?[:=] ?(?P<raw>[^\d\s<>].*)$"
)

_TRAILING_NOISE = re.compile(r"[\s.:\-/]+$")
_BRACKETED = re.compile(r"\s*\([^)]*\)\s*")


def _to_float(text: str) -> float:
    if re.fullmatch(r"\d+,\d{1,2}", text):
        return float(text.replace(",", "."))
    return float(text.replace(",", ""))


def _name_key(raw_name: str) -> str:
    name = _TRAILING_NOISE.sub("", raw_name.strip().lower())
    return " ".join(name.split())


def resolve_analyte(raw_name: str) -> Tuple[str, bool]:
    """
    Resolve a report label to a canonical analyte name.

    Returns:
        (name, known). Unknown labels are returned lowercased.
    """
    key = _name_key(raw_name)
    if key in ANALYTE_ALIASES:
        return ANALYTE_ALIASES[key], True
    # "Hemoglobin (HGB)" or "HGB (Hemoglobin)"
    without_brackets = _name_key(_BRACKETED.sub(" ", key))
    if without_brackets in ANALYTE_ALIASES:
        return ANALYTE_ALIASES[without_brackets], True
    for inner in re.findall(r"\(([^)]*)\)", key):
        inner_key = _name_key(inner)
        if inner_key in ANALYTE_ALIASES:
            return ANALYTE_ALIASES[inner_key], True
    return key, False


def _units_compatible(unit: Optional[str], default_unit: str) -> bool:
    if not unit:
        return True
    normalized = unit.lower().replace(" ", "")
    normalized = _UNIT_EQUIVALENTS.get(normalized, normalized)
    return normalized == default_unit


def classify(value: float, reference_range: ReferenceRange) -> ValueFlag:
    if reference_range.low is not None and value < reference_range.low:
        return ValueFlag.LOW
    if reference_range.high is not None and value > reference_range.high:
        return ValueFlag.HIGH
    return ValueFlag.NORMAL


def _inline_range(match: "re.Match[str]") -> Optional[ReferenceRange]:
    if match.group("low") is not None:
        low, high = _to_float(match.group("low")), _to_float(match.group("high"))
        if low > high:
            low, high = high, low
        return ReferenceRange(low=low, high=high)
    if match.group("upper") is not None:
        return ReferenceRange(high=_to_float(match.group("upper")))
    if match.group("lower") is not None:
        return ReferenceRange(low=_to_float(match.group("lower")))
    return None


def parse_line(line: str) -> Optional[ParsedValue]:
    """Parse one logical line; None when it is not a recognizable value.

    Whitespace runs are collapsed first and lines longer than
    ``MAX_LINE_CHARS`` afterwards are treated as noise.
    """
    line = " ".join(line.split())
    if not line or len(line) > MAX_LINE_CHARS:
        return None
    match = LINE_PATTERN.match(line)
    if match:
        name, known = resolve_analyte(match.group("name"))
        reference_range = _inline_range(match)
        if not known and reference_range is None:
            return None

        unit = match.group("unit")
        if reference_range is None and name in DEFAULT_RANGES:
            low, high, default_unit = DEFAULT_RANGES[name]
            if _units_compatible(unit, default_unit):
                reference_range = ReferenceRange(low=low, high=high)

        value = _to_float(match.group("value"))
        return ParsedValue(
            name=name,
            value=value,
            unit=unit,
            reference_range=reference_range,
            flag=classify(value, reference_range) if reference_range else None,
        )

    match = NON_NUMERIC_PATTERN.match(line)
    if match:
        name, known = resolve_analyte(match.group("name"))
        if known:
            return ParsedValue(name=name, flag=ValueFlag.UNPARSEABLE_SKIP)
    return None


def iter_report_values(text: str) -> Iterator[ParsedValue]:
    """Lazily yield values, one logical line at a time."""
    for line in (text or "").splitlines():
        line = line.strip()
        if not line:
            continue
        parsed = parse_line(line)
        if parsed is not None:
            yield parsed


def extract_report_values(text: str) -> ReportExtraction:
    """
    Extract structured lab values from report text.

    Args:
        text: Raw text produced by OCR or PDF extraction

    Returns:
        ReportExtraction with the parsed values and human-readable warnings
    """
    if not text or not text.strip():
        return ReportExtraction(warnings=["No text extracted."])

    values: List[ParsedValue] = list(iter_report_values(text))
    warnings: List[str] = []
    if not values:
        warnings.append("No recognizable lab values found.")

    for value in values:
        if value.flag == ValueFlag.UNPARSEABLE_SKIP:
            warnings.append(f"{value.name}: value could not be read.")
        elif value.reference_range is None:
            warnings.append(
                f"{value.name}: reference range missing; interpretation may be limited."
            )

    logger.info(f"Report extraction: {len(values)} values, {len(warnings)} warnings")
    return ReportExtraction(values=values, warnings=warnings)
