"""Error and warning taxonomy for a reconcile cycle.

Errors are exceptions so parsers and the matcher can raise them; the cycle
collects them into its report instead of letting them escape. Warnings are
plain records and never change the outcome of a cycle, only the report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import BODY_EXCERPT_CHARS


class ReconcileError(Exception):
    """Base class for everything the engine reports as an error."""

    kind = "error"
    # Set when the failing call belongs to a commitment that already exists remotely.
    remote_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind, "message": str(self)}
        if self.remote_id:
            out["remote_id"] = self.remote_id
        return out


class ParseError(ReconcileError):
    """Malformed row/object: bad integer, bad timestamp, unknown provider, missing field."""

    kind = "parse_error"

    def __init__(self, field: str, raw: Any, *, row: Optional[int] = None, message: str = "") -> None:
        self.field = field
        self.raw = raw
        self.row = row
        where = f" (row {row})" if row is not None else ""
        super().__init__(message or f"cannot parse {field}={raw!r}{where}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "field": self.field, "raw": self.raw, "row": self.row}


class ProviderUndeterminedError(ParseError):
    """CSV row with neither an explicit provider nor an Azure deep link."""

    kind = "provider_undetermined"

    def __init__(self, row: int, record: Optional[List[str]] = None) -> None:
        self.record = list(record or [])
        super().__init__(
            "provider",
            None,
            row=row,
            message=f"reservation provider could not be determined (row {row}): {self.record}",
        )


class InvalidConfigError(ReconcileError):
    kind = "invalid_config"

    def __init__(self, matcher: Any, reason: str) -> None:
        self.matcher = matcher
        self.reason = reason
        super().__init__(f"invalid commitment config {matcher}: {reason}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "matcher": str(self.matcher), "reason": self.reason}


class UnmatchedConfigError(ReconcileError):
    """A user config matched no imported commitment. Fatal for the cycle."""

    kind = "unmatched_config"

    def __init__(self, matcher: Any) -> None:
        self.matcher = matcher
        super().__init__(f"commitment config {matcher} did not match any commitment")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "matcher": str(self.matcher)}


class DuplicateConfigError(ReconcileError):
    kind = "duplicate_config"

    def __init__(self, matcher: Any, reason: str = "duplicate configuration") -> None:
        self.matcher = matcher
        super().__init__(f"{reason} for {matcher}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "matcher": str(self.matcher)}


class DuplicateCommitmentError(ReconcileError):
    kind = "duplicate_commitment"

    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__(f"duplicate commitment import for {key}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "key": str(self.key)}


class ImmutableFieldDriftError(ReconcileError):
    """Remote immutable field differs from the desired one. The record is skipped."""

    kind = "immutable_drift"

    def __init__(self, id: Optional[str], field: str, desired: Any = None, observed: Any = None) -> None:
        self.id = id
        self.field = field
        self.desired = desired
        self.observed = observed
        super().__init__(
            f"commitment {id}: immutable field '{field}' drifted "
            f"(desired={desired!r}, observed={observed!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "id": self.id,
            "field": self.field,
            "desired": self.desired,
            "observed": self.observed,
        }


class APIError(ReconcileError):
    """Non-success HTTP status from the control plane."""

    kind = "api_error"

    def __init__(self, status: int, body: str, *, expected: Optional[int] = None, context: str = "") -> None:
        self.status = status
        self.body = body or ""
        self.expected = expected
        self.context = context
        prefix = f"{context}: " if context else ""
        super().__init__(
            f"{prefix}expected status code {expected}, received: status={status} "
            f"body={self.body_excerpt}"
        )

    @property
    def body_excerpt(self) -> str:
        return self.body[:BODY_EXCERPT_CHARS]

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "status": self.status,
            "expected": self.expected,
            "body": self.body_excerpt,
        }


class TransportError(ReconcileError):
    """Connectivity or deadline failure. Aborts the cycle."""

    kind = "transport_error"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


# ---------------------------------------------------------------------
# Warnings
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ReconcileWarning:
    kind: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **self.details}


def duplicate_match_warning(matcher: Any, attached: Any, others: List[Any]) -> ReconcileWarning:
    return ReconcileWarning(
        kind="duplicate_match",
        message=f"config {matcher} matched {len(others) + 1} commitments; attached to {attached}",
        details={"matcher": str(matcher), "attached": str(attached), "others": [str(o) for o in others]},
    )


def orphan_warning(id: Optional[str], key: Any) -> ReconcileWarning:
    return ReconcileWarning(
        kind="orphan",
        message=f"remote commitment {id} ({key}) is not present in the inputs",
        details={"id": id, "key": str(key)},
    )


def unknown_plan_warning(provider: str, plan: str, name: str) -> ReconcileWarning:
    return ReconcileWarning(
        kind="unknown_plan",
        message=f"{provider} commitment '{name}' has unknown plan/term {plan!r}; kept verbatim",
        details={"provider": provider, "plan": plan, "name": name},
    )
