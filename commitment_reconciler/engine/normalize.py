"""Canonicalisation of parsed commitments.

``normalize`` is total over every source variant and idempotent:
normalize(normalize(x)) == normalize(x). Region URLs are cut to their last
path segment, timestamps are re-emitted as UTC with second precision, negative
integers are clamped to 0 and unset values stay None.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Tuple

from ..config import AZURE_TERM_ALIASES, AZURE_TERMS, GCP_PLANS
from ..errors import ParseError, ReconcileError, unknown_plan_warning
from ..models import AZURE, GCP, Commitment, to_commitment
from .diagnostics import Diagnostics

_TIMESTAMP_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[Tt ](?P<h>\d{2}):(?P<m>\d{2})(?::(?P<s>\d{2})(?:\.\d+)?)?)?"
    r"\s*(?P<tz>[Zz]|[+-]\d{2}:?\d{2})?$"
)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def normalize_region(region: Optional[str]) -> Optional[str]:
    if region is None:
        return None
    short = region.strip().rsplit("/", 1)[-1]
    return short or None


def _parse_offset(tz: Optional[str]) -> timezone:
    if not tz or tz in ("Z", "z"):
        return timezone.utc
    sign = -1 if tz[0] == "-" else 1
    digits = tz[1:].replace(":", "")
    return timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:])))


def normalize_timestamp(value: Optional[str], field_name: str) -> Optional[str]:
    """RFC3339 (or date-only) -> 'YYYY-MM-DDTHH:MM:SSZ'. Naive values are UTC."""
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    m = _TIMESTAMP_RE.match(text)
    if not m:
        raise ParseError(field_name, value)
    try:
        parsed = datetime.strptime(m.group("date"), "%Y-%m-%d").replace(
            hour=int(m.group("h") or 0),
            minute=int(m.group("m") or 0),
            second=int(m.group("s") or 0),
            tzinfo=_parse_offset(m.group("tz")),
        )
    except ValueError:
        raise ParseError(field_name, value) from None
    return parsed.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def clamp_non_negative(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    return max(0, int(value))


def normalize_plan(
    provider: str,
    plan: Optional[str],
    name: str,
    diagnostics: Optional[Diagnostics] = None,
) -> Optional[str]:
    if plan is None:
        return None
    text = plan.strip()
    if not text:
        return None
    if provider == AZURE:
        canonical = AZURE_TERM_ALIASES.get(text.upper(), text.upper())
        if canonical in AZURE_TERMS:
            return canonical
    elif provider == GCP and text.upper() in GCP_PLANS:
        return text.upper()
    if diagnostics is not None:
        diagnostics.warn(unknown_plan_warning(provider, text, name))
    return text


def normalize_status(status: Optional[str]) -> Optional[str]:
    if status is None:
        return None
    text = status.strip().upper()
    return text or None


def normalize(record: Any, diagnostics: Optional[Diagnostics] = None) -> Commitment:
    """Return the canonical form of any parsed record. Raises ParseError."""
    c = to_commitment(record)
    name = (c.name or "").strip()
    if not name:
        raise ParseError("name", c.name, message="commitment name is required")
    provider = (c.provider or "").strip().lower()
    return replace(
        c,
        name=name,
        provider=provider,
        region=normalize_region(c.region),
        plan=normalize_plan(provider, c.plan, name, diagnostics),
        start_timestamp=normalize_timestamp(c.start_timestamp, "start_timestamp"),
        end_timestamp=normalize_timestamp(c.end_timestamp, "end_timestamp"),
        cpu_cores=clamp_non_negative(c.cpu_cores),
        memory_mib=clamp_non_negative(c.memory_mib),
        count=clamp_non_negative(c.count),
        status=normalize_status(c.status),
    )


def normalize_all(
    records: List[Any],
    diagnostics: Optional[Diagnostics] = None,
) -> Tuple[List[Commitment], List[ReconcileError]]:
    out: List[Commitment] = []
    errors: List[ReconcileError] = []
    for record in records:
        try:
            out.append(normalize(record, diagnostics))
        except ParseError as exc:
            if exc.row is None:
                exc.row = getattr(record, "row", None)
            errors.append(exc)
    return out, errors
