"""Red flag detection for emergency symptoms."""

import re
from typing import Iterable, List, Optional, Pattern, Tuple


# Emergency symptom phrases by category. Matching is case-insensitive, on word
# boundaries, and tolerates a missing apostrophe ("cant breathe").
RED_FLAG_PHRASES = {
    "cardiac_emergency": (
        "chest pain",
        "crushing chest pain",
        "chest pressure",
        "pressure in chest",
        "chest tightness",
        "heart attack",
        "pain radiating to arm",
        "pain radiating to jaw",
    ),
    "respiratory_emergency": (
        "can't breathe",
        "cannot breathe",
        "unable to breathe",
        "difficulty breathing",
        "gasping for air",
        "choking",
        "blue lips",
        "lips turning blue",
    ),
    "neurological_emergency": (
        "stroke",
        "face drooping",
        "facial droop",
        "arm weakness",
        "slurred speech",
        "sudden numbness",
        "sudden confusion",
        "loss of consciousness",
        "passed out",
        "unconscious",
        "unresponsive",
        "seizure",
        "convulsion",
        "worst headache of my life",
        "thunderclap headache",
        "sudden severe headache",
    ),
    "psychiatric_emergency": (
        "suicidal",
        "want to die",
        "kill myself",
        "end my life",
        "better off dead",
    ),
    "bleeding_emergency": (
        "severe bleeding",
        "uncontrolled bleeding",
        "bleeding won't stop",
        "vomiting blood",
        "coughing blood",
        "blood in vomit",
        "black tarry stool",
    ),
    "abdominal_emergency": (
        "severe abdominal pain",
        "severe stomach pain",
        "rigid abdomen",
    ),
    "allergic_emergency": (
        "anaphylaxis",
        "severe allergic reaction",
        "throat closing",
        "throat swelling",
        "tongue swelling",
        "swollen tongue",
    ),
    "poisoning_emergency": (
        "overdose",
        "took too many pills",
        "poisoning",
    ),
    "obstetric_emergency": (
        "heavy vaginal bleeding",
        "water broke early",
    ),
}

# Combinations that signal an emergency even when each term alone is mild.
# Every group must be present; any term within a group satisfies it.
EMERGENCY_COMBINATIONS = {
    "chest_pain_with_breathing_difficulty": (
        ("chest pain", "chest pressure", "chest tightness"),
        ("shortness of breath", "short of breath", "breathless", "trouble breathing"),
    ),
    "chest_pain_with_sweating": (
        ("chest pain", "chest pressure"),
        ("sweating", "sweaty", "clammy"),
    ),
    "headache_with_stiff_neck": (
        ("headache",),
        ("stiff neck", "neck stiffness"),
    ),
    "fever_with_confusion": (
        ("fever",),
        ("confusion", "confused", "disoriented"),
    ),
    "rash_with_fever_and_stiff_neck": (
        ("rash",),
        ("fever",),
        ("stiff neck", "neck stiffness"),
    ),
    "swelling_with_breathing_difficulty": (
        ("swelling", "swollen", "hives"),
        ("shortness of breath", "trouble breathing", "wheezing"),
    ),
    "pregnancy_with_bleeding": (
        ("pregnant", "pregnancy"),
        ("bleeding",),
    ),
    "diabetic_with_confusion": (
        ("diabetic", "diabetes"),
        ("confusion", "confused"),
    ),
}

MAX_SEVERITY_SUDDEN_ONSET_HOURS = 6
YOUNG_INFANT_AGE_YEARS = 0.25

CONFIGURED_KEYWORD_RULE = "red_flag.configured_keyword"


def normalize_text(text: str) -> str:
    """Lowercase, unify apostrophes and collapse whitespace."""
    text = text.lower().replace("’", "'").replace("`", "'")
    return " ".join(text.split())


def phrase_pattern(phrase: str) -> Pattern[str]:
    body = re.escape(normalize_text(phrase)).replace("'", "'?")
    return re.compile(r"\b" + body + r"\b")


_CATEGORY_PATTERNS: List[Tuple[str, Tuple[Pattern[str], ...]]] = [
    (category, tuple(phrase_pattern(p) for p in phrases))
    for category, phrases in RED_FLAG_PHRASES.items()
]
_COMBINATION_PATTERNS: List[Tuple[str, Tuple[Tuple[Pattern[str], ...], ...]]] = [
    (name, tuple(tuple(phrase_pattern(t) for t in group) for group in groups))
    for name, groups in EMERGENCY_COMBINATIONS.items()
]
_FEVER = phrase_pattern("fever")


def all_red_flag_phrases(extra_phrases: Iterable[str] = ()) -> List[str]:
    """Every phrase that alone triggers the circuit breaker."""
    phrases = [p for group in RED_FLAG_PHRASES.values() for p in group]
    phrases.extend(extra_phrases)
    return phrases


def detect_red_flags(
    text: Optional[str],
    severity: Optional[int] = None,
    duration_hours: Optional[float] = None,
    age_years: Optional[float] = None,
    extra_patterns: Iterable[Pattern[str]] = (),
) -> List[str]:
    """
    Detect emergency red flags.

    Args:
        text: Free-text symptom description
        severity: Reported severity 1-10
        duration_hours: Reported symptom duration
        age_years: Patient age
        extra_patterns: Compiled configured phrases (see ``phrase_pattern``)

    Returns:
        Matched rule ids in priority order (empty when nothing matched)
    """
    normalized = normalize_text(text or "")
    matched: List[str] = []

    for category, patterns in _CATEGORY_PATTERNS:
        if any(p.search(normalized) for p in patterns):
            matched.append(f"red_flag.{category}")

    for name, groups in _COMBINATION_PATTERNS:
        if all(any(p.search(normalized) for p in group) for group in groups):
            matched.append(f"red_flag.combination.{name}")

    if (
        severity == 10
        and duration_hours is not None
        and duration_hours <= MAX_SEVERITY_SUDDEN_ONSET_HOURS
    ):
        matched.append("red_flag.structured.max_severity_sudden_onset")

    if (
        age_years is not None
        and age_years < YOUNG_INFANT_AGE_YEARS
        and _FEVER.search(normalized)
    ):
        matched.append("red_flag.structured.febrile_young_infant")

    if any(p.search(normalized) for p in extra_patterns):
        matched.append(CONFIGURED_KEYWORD_RULE)

    return matched


def get_red_flag_description(rule_id: str) -> str:
    """Get human-readable description of a red flag rule."""
    descriptions = {
        "cardiac_emergency": "possible heart-related emergency",
        "respiratory_emergency": "severe breathing difficulty",
        "neurological_emergency": "possible stroke or severe neurological event",
        "psychiatric_emergency": "mental health crisis",
        "bleeding_emergency": "severe or internal bleeding",
        "abdominal_emergency": "severe abdominal emergency",
        "allergic_emergency": "severe allergic reaction",
        "poisoning_emergency": "possible overdose or poisoning",
        "obstetric_emergency": "pregnancy emergency",
        "max_severity_sudden_onset": "sudden onset of maximum-severity symptoms",
        "febrile_young_infant": "fever in a young infant",
        "configured_keyword": "configured emergency keyword",
    }
    key = rule_id.rsplit(".", 1)[-1]
    if key in descriptions:
        return descriptions[key]
    return key.replace("_", " ")
