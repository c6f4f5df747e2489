"""Status normalization and coloring utilities.

Status names are compared trimmed and case-insensitive everywhere a user
supplied list (exclusions) meets tracker data.
"""

from __future__ import annotations

from collections.abc import Iterable

from .config import STATUS_COLORS, UNKNOWN_STATUS_COLOR


def clean_status_name(value: str | None) -> str:
    """Sanitize status string, converting null-like values to "Unknown".

    Parameters
    ----------
    value : str | None
        Raw status string.

    Returns
    -------
    str
        Trimmed status string or "Unknown" for empty/null values.
    """
    if not value:
        return "Unknown"
    text = str(value).strip()
    if not text:
        return "Unknown"
    if text.lower() in {"nan", "none", "null"}:
        return "Unknown"
    return text


def status_key(value: str | None) -> str:
    """Comparison key for a status name (trimmed, lowercase)."""
    return str(value or "").strip().lower()


def status_key_set(values: Iterable[str] | None) -> frozenset[str]:
    return frozenset(k for k in (status_key(v) for v in values or ()) if k)


def status_color(value: str | None) -> str:
    """Palette color for a status, gray for unknown statuses."""
    return STATUS_COLORS.get(clean_status_name(value), UNKNOWN_STATUS_COLOR)
