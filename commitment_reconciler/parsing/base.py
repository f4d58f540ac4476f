from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass, field
from typing import IO, Any, Iterator, List, Optional, Sequence, Union

from ..errors import ParseError

TextSource = Union[str, IO[str]]
JsonSource = Union[str, bytes, IO[str], list, dict]


@dataclass
class ParseOutcome:
    """Records that parsed plus every per-record error, in input order."""

    records: List[Any] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def extend(self, other: "ParseOutcome") -> "ParseOutcome":
        self.records.extend(other.records)
        self.errors.extend(other.errors)
        return self


def parse_int(raw: Any, field_name: str, *, row: Optional[int] = None) -> Optional[int]:
    """Signed integer or None for an absent value."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ParseError(field_name, raw, row=row)
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        raise ParseError(field_name, raw, row=row) from None


def opt_str(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def iter_csv_rows(source: TextSource) -> Iterator[List[str]]:
    handle = io.StringIO(source) if isinstance(source, str) else source
    yield from csv.reader(handle)


def is_blank(row: Sequence[str]) -> bool:
    return not any((c or "").strip() for c in row)


def load_json(source: JsonSource) -> Any:
    if isinstance(source, (list, dict)):
        return source
    try:
        if isinstance(source, (str, bytes)):
            return json.loads(source)
        return json.load(source)
    except json.JSONDecodeError as exc:
        raise ParseError("json", None, message=f"invalid JSON input: {exc}") from exc
