"""Tools package for prescription screening and report extraction."""

from safetriage.tools.drug_interactions import check_prescription, normalize_drug_name
from safetriage.tools.report_extractor import extract_report_values, iter_report_values

__all__ = [
    "check_prescription",
    "normalize_drug_name",
    "extract_report_values",
    "iter_report_values",
]
