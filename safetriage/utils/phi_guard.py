"""Redaction of direct identifiers before text leaves the service."""

import re
from dataclasses import dataclass
from typing import Tuple

# Ordered so that longer, more specific patterns are replaced first.
_PHI_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    ("email", re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE)),
    ("ssn", re.compile(r"\b\d{3}-\d{2}-\d{4}\b")),
    ("phone", re.compile(r"(?<!\d)(?:\+?\d{1,3}[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?!\d)")),
    ("date", re.compile(r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b")),
    ("mrn", re.compile(r"\b(?:mrn|medical record(?: number)?)\s*[:#]?\s*[A-Z0-9-]{4,}\b", re.IGNORECASE)),
    ("address", re.compile(
        r"\b\d{1,5}\s+(?:[A-Z][a-z]+\s){1,3}(?:street|st|avenue|ave|road|rd|lane|ln|drive|dr|boulevard|blvd)\b",
        re.IGNORECASE,
    )),
)


@dataclass(frozen=True)
class RedactionResult:
    text: str
    found: Tuple[str, ...]

    @property
    def has_phi(self) -> bool:
        return bool(self.found)


def redact_phi(text: str) -> RedactionResult:
    """Replace direct identifiers with ``[REDACTED_<KIND>]`` markers."""
    found = []
    for kind, pattern in _PHI_PATTERNS:
        text, count = pattern.subn(f"[REDACTED_{kind.upper()}]", text)
        if count:
            found.append(kind)
    return RedactionResult(text=text, found=tuple(found))
