"""Helpers for reading sample-row dictionaries returned by the audit engine."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterable, List, Optional

LINE_KEY = "__line__"
UNKNOWN_ROW = "n/a"

_INTEGER_PATTERN = re.compile(r"[+-]?\d+")


def row_id(sample: Dict[str, Any]) -> str:
    """Return the row identifier stored under the reserved ``__line__`` key."""
    value = sample.get(LINE_KEY)
    if value is None:
        return UNKNOWN_ROW
    return str(value)


def render_sample(sample: Dict[str, Any]) -> str:
    """Render a whole sample row as compact JSON, keeping column order."""
    return json.dumps(sample, ensure_ascii=False, separators=(",", ":"), default=str)


def parse_row_number(value: str) -> Optional[int]:
    """Parse a row id as a base-10 integer, or None when it is not one."""
    candidate = value.strip()
    if not _INTEGER_PATTERN.fullmatch(candidate):
        return None
    return int(candidate, 10)


def has_blank_field(sample: Dict[str, Any], columns: Iterable[str]) -> bool:
    """True if any of the given columns is absent or falsy in the sample."""
    return any(not sample.get(column) for column in columns)


def split_csv_values(raw: str) -> List[str]:
    """Split a comma-separated string, trimming tokens and dropping empty ones."""
    return [token.strip() for token in raw.split(",") if token.strip()]
