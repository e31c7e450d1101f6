"""Tolerant parsers for the semi-structured text printed by host tools.

Every helper here accepts whatever text it is given and degrades to ``None``
or an empty container instead of raising, so a tool whose output format has
drifted produces "N/A" cells rather than a crash.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence

_LEADING_INT = re.compile(r"^\s*(\d[\d,]*)")
_COUNT = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMGT])?\s*$", re.IGNORECASE)
_COUNT_SCALE = {"": 1, "K": 1000, "M": 1000**2, "G": 1000**3, "T": 1000**4}


def parse_int(value: Optional[str]) -> Optional[int]:
    """Return the leading integer of ``value`` ("1,234 hours" -> 1234)."""
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def parse_count(value: Optional[str]) -> int:
    """Parse a zpool error counter, expanding suffixes such as ``1.2K``."""
    if not value:
        return 0
    match = _COUNT.match(value)
    if not match:
        return 0
    scale = _COUNT_SCALE[(match.group(2) or "").upper()]
    return int(float(match.group(1)) * scale)


def parse_tabbed_rows(text: str, columns: Sequence[str]) -> List[Dict[str, str]]:
    """Parse the tab-separated ``-H`` output of ``zpool list`` / ``zfs list``.

    Short rows are padded with empty strings.
    """
    rows: List[Dict[str, str]] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        cells = line.split("\t")
        cells += [""] * (len(columns) - len(cells))
        rows.append({column: cells[index].strip() for index, column in enumerate(columns)})
    return rows
