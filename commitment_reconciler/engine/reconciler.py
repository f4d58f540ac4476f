"""Plan and apply: converge the control plane to the desired commitment set.

``plan`` is a pure diff between desired and observed records. ``apply`` runs
the intents against an InventoryAPI, one kind group at a time
(DELETE -> CREATE -> UPDATE), with at most ``concurrency`` calls in flight per
group. Per-intent API failures are recorded and the cycle carries on; a
TransportError stops further submissions.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..api.base import ApiResponse, InventoryAPI
from ..api.payloads import commitment_import_payload, commitment_update_payload
from ..config import DEFAULT_CALL_TIMEOUT, DEFAULT_CONCURRENCY
from ..errors import (
    APIError,
    DuplicateCommitmentError,
    ImmutableFieldDriftError,
    ReconcileError,
    ReconcileWarning,
    TransportError,
    orphan_warning,
)
from ..models import Commitment, DesiredCommitment, identity_key, key_for

_LOGGER = logging.getLogger(__name__)

# Report name -> Commitment attribute.
IMMUTABLE_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("start_timestamp", "start_timestamp"),
    ("end_timestamp", "end_timestamp"),
    ("cpu", "cpu_cores"),
    ("memory_mb", "memory_mib"),
    ("plan", "plan"),
    ("type", "type"),
)

EXPECTED_STATUS = {"CREATE": 201, "UPDATE": 200, "DELETE": 204, "ASSIGN": 200}


class IntentKind(str, Enum):
    DELETE = "DELETE"
    CREATE = "CREATE"
    UPDATE = "UPDATE"


KIND_ORDER: Tuple[IntentKind, ...] = (IntentKind.DELETE, IntentKind.CREATE, IntentKind.UPDATE)


@dataclass(frozen=True)
class Intent:
    kind: IntentKind
    key: Tuple[str, ...]
    desired: Optional[DesiredCommitment] = None
    remote_id: Optional[str] = None
    changes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        if self.desired is not None:
            return str(key_for(self.desired.commitment))
        return self.remote_id or "/".join(self.key)


@dataclass
class Plan:
    intents: List[Intent] = field(default_factory=list)
    drift: List[ImmutableFieldDriftError] = field(default_factory=list)
    warnings: List[ReconcileWarning] = field(default_factory=list)
    # Desired records with the observed counterpart attached.
    desired: List[DesiredCommitment] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.intents

    def by_kind(self, kind: IntentKind) -> List[Intent]:
        return [i for i in self.intents if i.kind == kind]

    def counts(self) -> Dict[str, int]:
        return {k.value: len(self.by_kind(k)) for k in KIND_ORDER}


class OutcomeStatus(str, Enum):
    OK = "OK"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class IntentOutcome:
    intent: Intent
    status: OutcomeStatus
    remote_id: Optional[str] = None
    error: Optional[ReconcileError] = None


@dataclass
class ApplyReport:
    outcomes: List[IntentOutcome] = field(default_factory=list)
    aborted: bool = False
    cancelled: bool = False
    abort_reason: Optional[str] = None

    def _with(self, status: OutcomeStatus) -> List[IntentOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def completed(self) -> List[IntentOutcome]:
        return self._with(OutcomeStatus.OK)

    @property
    def failed(self) -> List[IntentOutcome]:
        return self._with(OutcomeStatus.FAILED)

    @property
    def skipped(self) -> List[IntentOutcome]:
        return self._with(OutcomeStatus.SKIPPED)

    @property
    def errors(self) -> List[ReconcileError]:
        return [o.error for o in self.outcomes if o.error is not None]


# ---------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------
def _matcher_identity(c: Commitment) -> Tuple[str, ...]:
    key = key_for(c)
    return (c.provider, key.name, key.region or "", key.type or "")


def _usage_equal(a: Optional[float], b: Optional[float]) -> bool:
    if a is None or b is None:
        return a is b
    return round(a, 2) == round(b, 2)


def _assignments_equal(desired: Sequence[str], observed: Optional[Sequence[str]], ordered: bool) -> bool:
    observed = tuple(observed or ())
    if ordered:
        return tuple(desired) == observed
    return sorted(desired) == sorted(observed)


def immutable_drift(desired: Commitment, observed: Commitment) -> List[ImmutableFieldDriftError]:
    drift = []
    for report_name, attr in IMMUTABLE_FIELDS:
        want, have = getattr(desired, attr), getattr(observed, attr)
        if want is not None and have is not None and want != have:
            drift.append(ImmutableFieldDriftError(observed.id, report_name, want, have))
    return drift


def mutable_changes(desired: DesiredCommitment, observed: Commitment) -> Dict[str, Any]:
    """Fields the config sets that differ from the observed record."""
    cfg = desired.config
    if cfg is None:
        return {}
    changes: Dict[str, Any] = {}
    if cfg.allowed_usage is not None and not _usage_equal(cfg.allowed_usage, observed.allowed_usage):
        changes["allowed_usage"] = cfg.allowed_usage
    if cfg.prioritization is not None and cfg.prioritization != observed.prioritization:
        changes["prioritization"] = cfg.prioritization
    if cfg.status is not None and cfg.status != observed.status:
        changes["status"] = cfg.status
    if cfg.scaling_strategy is not None and cfg.scaling_strategy != observed.scaling_strategy:
        changes["scaling_strategy"] = cfg.scaling_strategy
    if cfg.assignments is not None:
        prioritized = cfg.prioritization if cfg.prioritization is not None else bool(observed.prioritization)
        if not _assignments_equal(cfg.assignments, observed.assignments, prioritized):
            changes["assignments"] = tuple(cfg.assignments)
    return changes


def plan(
    desired: Sequence[DesiredCommitment],
    observed: Sequence[Commitment],
    *,
    authoritative: bool = False,
) -> Plan:
    """Diff desired against observed. Raises DuplicateCommitmentError."""
    seen_keys: Dict[Tuple[str, ...], int] = {}
    for d in desired:
        k = identity_key(d.commitment)
        if k in seen_keys:
            raise DuplicateCommitmentError("/".join(k))
        seen_keys[k] = 1

    by_provider_id: Dict[Tuple[str, ...], int] = {}
    by_matcher: Dict[Tuple[str, ...], int] = {}
    for i, o in enumerate(observed):
        if o.provider_id:
            by_provider_id.setdefault((o.provider, o.provider_id), i)
        by_matcher.setdefault(_matcher_identity(o), i)

    result = Plan()
    claimed: Dict[int, bool] = {}
    creates: List[Intent] = []
    updates: List[Intent] = []

    for d in desired:
        c = d.commitment
        key = identity_key(c)
        if c.provider_id:
            idx = by_provider_id.get((c.provider, c.provider_id))
        else:
            idx = by_matcher.get(_matcher_identity(c))
        if idx is not None and idx in claimed:
            idx = None

        if idx is None:
            creates.append(Intent(IntentKind.CREATE, key, desired=d))
            result.desired.append(d)
            continue

        claimed[idx] = True
        o = observed[idx]
        result.desired.append(replace(d, remote_id=o.id, observed=o))

        drift = immutable_drift(c, o)
        if drift:
            result.drift.extend(drift)
            continue

        changes = mutable_changes(d, o)
        if changes:
            updates.append(Intent(IntentKind.UPDATE, key, desired=d, remote_id=o.id, changes=changes))

    deletes: List[Intent] = []
    for i, o in enumerate(observed):
        if i in claimed:
            continue
        key = identity_key(o)
        if authoritative:
            deletes.append(Intent(IntentKind.DELETE, key, remote_id=o.id))
        else:
            result.warnings.append(orphan_warning(o.id, "/".join(key)))

    result.intents = deletes + creates + updates
    return result


# ---------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------
def _failed(intent: Intent, exc: ReconcileError) -> IntentOutcome:
    return IntentOutcome(intent, OutcomeStatus.FAILED, remote_id=exc.remote_id or intent.remote_id, error=exc)


class Reconciler:
    def __init__(
        self,
        api: InventoryAPI,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        authoritative: bool = False,
    ) -> None:
        self.api = api
        self.concurrency = max(1, int(concurrency))
        self.call_timeout = call_timeout
        self.authoritative = authoritative

    def plan(self, desired: Sequence[DesiredCommitment], observed: Sequence[Commitment]) -> Plan:
        return plan(desired, observed, authoritative=self.authoritative)

    async def call_with_deadline(self, coro: Awaitable[ApiResponse], what: str) -> ApiResponse:
        try:
            return await asyncio.wait_for(coro, timeout=self.call_timeout)
        except asyncio.TimeoutError:
            raise TransportError(f"{what}: deadline of {self.call_timeout}s exceeded") from None

    def _check(self, resp: ApiResponse, expected: int, what: str) -> None:
        if resp.status_code != expected:
            raise APIError(resp.status_code, resp.body, expected=expected, context=what)

    async def _execute(self, intent: Intent) -> IntentOutcome:
        what = f"{intent.kind.value} {intent.label}"
        if intent.kind == IntentKind.DELETE:
            resp = await self.call_with_deadline(self.api.delete_commitment(intent.remote_id), what)
            self._check(resp, EXPECTED_STATUS["DELETE"], what)
            return IntentOutcome(intent, OutcomeStatus.OK, remote_id=intent.remote_id)

        if intent.kind == IntentKind.CREATE:
            d = intent.desired
            payload = commitment_import_payload(d.commitment, d.config)
            resp = await self.call_with_deadline(self.api.create_commitment(payload), what)
            self._check(resp, EXPECTED_STATUS["CREATE"], what)
            remote_id = resp.data.get("id") if isinstance(resp.data, dict) else None
            if remote_id and d.config is not None and d.config.assignments is not None:
                try:
                    resp = await self.call_with_deadline(
                        self.api.replace_commitment_assignments(remote_id, list(d.config.assignments)), what
                    )
                    self._check(resp, EXPECTED_STATUS["ASSIGN"], what)
                except (APIError, TransportError) as exc:
                    # The commitment exists now; keep its id on the failed outcome.
                    exc.remote_id = remote_id
                    raise
            return IntentOutcome(intent, OutcomeStatus.OK, remote_id=remote_id)

        changes = dict(intent.changes)
        assignments = changes.pop("assignments", None)
        if changes:
            resp = await self.call_with_deadline(
                self.api.update_commitment(intent.remote_id, commitment_update_payload(changes)), what
            )
            self._check(resp, EXPECTED_STATUS["UPDATE"], what)
        if assignments is not None:
            resp = await self.call_with_deadline(
                self.api.replace_commitment_assignments(intent.remote_id, list(assignments)), what
            )
            self._check(resp, EXPECTED_STATUS["ASSIGN"], what)
        return IntentOutcome(intent, OutcomeStatus.OK, remote_id=intent.remote_id)

    async def apply(self, plan: Plan, cancel: Optional[asyncio.Event] = None) -> ApplyReport:
        report = ApplyReport()
        stop = asyncio.Event()
        sem = asyncio.Semaphore(self.concurrency)

        def halted() -> bool:
            return stop.is_set() or (cancel is not None and cancel.is_set())

        async def run(intent: Intent) -> IntentOutcome:
            async with sem:
                if halted():
                    return IntentOutcome(intent, OutcomeStatus.SKIPPED)
                try:
                    outcome = await self._execute(intent)
                except APIError as exc:
                    _LOGGER.error("%s", exc)
                    return _failed(intent, exc)
                except TransportError as exc:
                    _LOGGER.error("Transport failure, aborting apply: %s", exc)
                    if not stop.is_set():
                        report.abort_reason = str(exc)
                    stop.set()
                    return _failed(intent, exc)
                _LOGGER.info("%s %s -> OK", intent.kind.value, intent.label)
                return outcome

        for kind in KIND_ORDER:
            group = plan.by_kind(kind)
            if not group:
                continue
            if halted():
                report.outcomes.extend(IntentOutcome(i, OutcomeStatus.SKIPPED) for i in group)
                continue
            _LOGGER.info("Applying %d %s intent(s)", len(group), kind.value)
            report.outcomes.extend(await asyncio.gather(*(run(i) for i in group)))

        report.aborted = stop.is_set()
        report.cancelled = cancel is not None and cancel.is_set()
        return report
