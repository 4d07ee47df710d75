"""Severity normalization (storage) and formatting (display)."""

from helpdesk.models.ticket import SEVERITY_LEVELS

_BY_INITIAL = {level[0]: level for level in SEVERITY_LEVELS}

DEFAULT_SEVERITY = "LOW"


def normalize_severity(value) -> str:
    """Map any input to LOW | MEDIUM | HIGH | CRITICAL. Never raises."""
    if value is None:
        return DEFAULT_SEVERITY
    text = str(value).strip().upper()
    if not text:
        return DEFAULT_SEVERITY
    if text in SEVERITY_LEVELS:
        return text
    return _BY_INITIAL.get(text[0], DEFAULT_SEVERITY)


def format_severity(stored) -> str:
    """Title-case display value; unknown stored values show as ``Low``."""
    text = str(stored).strip().upper() if stored is not None else ""
    if text in SEVERITY_LEVELS:
        return text.title()
    return "Low"
