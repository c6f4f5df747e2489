"""Load and expose the holiday calendar from YAML (with fallbacks)."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .config import FALLBACK_HOLIDAYS

_CACHE: frozenset[str] | None = None

logger = logging.getLogger(__name__)


def load_holidays(base_path: str | Path | None = None) -> frozenset[str]:
    """Return the configured holidays as ``YYYY-MM-DD`` strings.

    The set is read once from ``holidays.yaml`` next to the package root and
    cached; a missing or malformed file falls back to ``FALLBACK_HOLIDAYS``.
    """
    global _CACHE
    if _CACHE is not None and base_path is None:
        return _CACHE
    base = Path(base_path or Path(__file__).resolve().parent.parent)
    yaml_path = base / "holidays.yaml"
    if not yaml_path.exists():
        holidays = frozenset(FALLBACK_HOLIDAYS)
    else:
        try:
            data = yaml.safe_load(yaml_path.read_text()) or {}
            entries = data.get("holidays") or []
            holidays = frozenset(str(d).strip() for d in entries if str(d).strip())
        except (yaml.YAMLError, OSError, AttributeError) as exc:
            logger.warning("Could not read %s, using built-in holidays: %s", yaml_path, exc)
            holidays = frozenset(FALLBACK_HOLIDAYS)
    if base_path is None:
        _CACHE = holidays
    return holidays


def clear_holiday_cache() -> None:
    global _CACHE
    _CACHE = None
