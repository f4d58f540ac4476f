from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence, Tuple

from .fields import FIELD_ALIASES

MISSING = -1


def normalize_header_cell(cell: str) -> str:
    """'Deep link to reservation ' -> 'deep_link_to_reservation'."""
    return (cell or "").strip().lower().replace(" ", "_")


def resolve_header(
    header: Sequence[str],
    aliases: Mapping[str, Tuple[str, ...]] = FIELD_ALIASES,
) -> Dict[str, int]:
    """Map every canonical field to its column index, or -1 when absent.

    Aliases are tried in declared order; for each alias the leftmost matching
    column wins.
    """
    positions: Dict[str, int] = {}
    for idx, cell in enumerate(header or ()):
        positions.setdefault(normalize_header_cell(cell), idx)

    resolved: Dict[str, int] = {}
    for field, names in aliases.items():
        resolved[field] = MISSING
        for alias in names:
            if alias in positions:
                resolved[field] = positions[alias]
                break
    return resolved


def cell(row: Sequence[str], indices: Mapping[str, int], field: str) -> Optional[str]:
    """Cell value for ``field`` or None when the column is missing or empty."""
    idx = indices.get(field, MISSING)
    if idx == MISSING or idx >= len(row):
        return None
    value = (row[idx] or "").strip()
    return value or None
