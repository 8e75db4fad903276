"""SafeTriage: deterministic symptom triage and medication safety screening."""
