"""One reconcile cycle: parse -> normalize -> match -> plan -> apply.

Pre-plan failures (bad records, bad configs, duplicate imports) end the cycle
in ``Aborted`` before any call is made against the InventoryAPI. The cycle
returns a CycleReport; mapping it to a process exit code is left to the host.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..api.base import InventoryAPI
from ..config import DEFAULT_CALL_TIMEOUT, DEFAULT_CONCURRENCY
from ..errors import (
    APIError,
    DuplicateCommitmentError,
    ReconcileError,
    ReconcileWarning,
    TransportError,
)
from ..models import AZURE, GCP, Commitment, CommitmentConfig, DesiredCommitment, identity_key, to_commitment
from ..parsing import parse_azure_csv, parse_gcp_imports, parse_remote_commitments
from ..parsing.base import JsonSource, ParseOutcome, TextSource
from ..utils.trace import TraceLogger
from .diagnostics import Diagnostics
from .matcher import match_configs
from .normalize import normalize_all
from .projector import project, sort_projections
from .reconciler import ApplyReport, IntentKind, Plan, Reconciler

_LOGGER = logging.getLogger(__name__)


class CycleState(str, Enum):
    IDLE = "Idle"
    PARSING = "Parsing"
    NORMALIZING = "Normalizing"
    MATCHING = "Matching"
    PLANNING = "Planning"
    APPLYING = "Applying"
    DONE = "Done"
    PARTIAL_FAILURE = "PartialFailure"
    ABORTED = "Aborted"


TERMINAL_STATES = (CycleState.DONE, CycleState.PARTIAL_FAILURE, CycleState.ABORTED)


@dataclass
class CycleInputs:
    gcp_cuds: Optional[JsonSource] = None
    azure_csv: Optional[TextSource] = None
    configs: Sequence[CommitmentConfig] = ()

    @property
    def providers(self) -> Set[str]:
        out = set()
        if self.gcp_cuds is not None:
            out.add(GCP)
        if self.azure_csv is not None:
            out.add(AZURE)
        return out


@dataclass
class CycleReport:
    state: CycleState
    errors: List[ReconcileError] = field(default_factory=list)
    warnings: List[ReconcileWarning] = field(default_factory=list)
    plan: Optional[Plan] = None
    apply: Optional[ApplyReport] = None
    desired: List[DesiredCommitment] = field(default_factory=list)
    projections: List[Dict[str, Any]] = field(default_factory=list)
    dry_run: bool = False

    @property
    def completed(self) -> int:
        return len(self.apply.completed) if self.apply else 0

    @property
    def skipped(self) -> int:
        return len(self.apply.skipped) if self.apply else 0

    @property
    def failed(self) -> int:
        return len(self.apply.failed) if self.apply else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "dry_run": self.dry_run,
            "plan": self.plan.counts() if self.plan else None,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "commitments": self.projections,
        }


class ReconcileCycle:
    def __init__(
        self,
        api: InventoryAPI,
        *,
        authoritative: bool = False,
        concurrency: int = DEFAULT_CONCURRENCY,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        dry_run: bool = False,
        trace: Optional[TraceLogger] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        self.reconciler = Reconciler(
            api,
            concurrency=concurrency,
            call_timeout=call_timeout,
            authoritative=authoritative,
        )
        self.dry_run = dry_run
        self.trace = trace
        self.cancel = cancel
        self.state = CycleState.IDLE
        self.history: List[CycleState] = [CycleState.IDLE]
        self.diagnostics = Diagnostics()

    @property
    def api(self) -> InventoryAPI:
        return self.reconciler.api

    def _enter(self, state: CycleState) -> None:
        _LOGGER.debug("Cycle %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _trace(self, phase: str, payload: Dict[str, Any]) -> None:
        if self.trace is not None:
            self.trace.log(phase, payload)

    def _finish(self, state: CycleState, **kwargs: Any) -> CycleReport:
        self._enter(state)
        report = CycleReport(
            state=state,
            errors=list(self.diagnostics.errors),
            warnings=list(self.diagnostics.warnings),
            dry_run=self.dry_run,
            **kwargs,
        )
        self._trace("phase7_result", report.to_dict())
        _LOGGER.info(
            "Cycle finished: %s (errors=%d, warnings=%d)", state.value, len(report.errors), len(report.warnings)
        )
        return report

    def _abort(self, errors: Sequence[ReconcileError], **kwargs: Any) -> CycleReport:
        self.diagnostics.extend_errors(list(errors))
        return self._finish(CycleState.ABORTED, **kwargs)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def _parse(self, inputs: CycleInputs) -> ParseOutcome:
        outcome = ParseOutcome()
        if inputs.gcp_cuds is not None:
            outcome.extend(parse_gcp_imports(inputs.gcp_cuds))
        if inputs.azure_csv is not None:
            outcome.extend(parse_azure_csv(inputs.azure_csv))
        return outcome

    async def _observe(self, providers: Set[str]) -> Tuple[List[Commitment], List[ReconcileError]]:
        calls = self.reconciler
        commitments = await calls.call_with_deadline(self.api.list_commitments(), "list commitments")
        if commitments.status_code != 200:
            return [], [APIError(commitments.status_code, commitments.body, expected=200, context="list commitments")]
        assignments = await calls.call_with_deadline(self.api.list_commitment_assignments(), "list assignments")
        if assignments.status_code != 200:
            return [], [APIError(assignments.status_code, assignments.body, expected=200, context="list assignments")]

        parsed = parse_remote_commitments(commitments.data, assignments.data)
        if parsed.errors:
            return [], list(parsed.errors)
        observed, errors = normalize_all(
            [r for r in parsed.records if r.provider in providers], self.diagnostics
        )
        return observed, errors

    def _settle(self, plan: Plan, applied: Optional[ApplyReport]) -> List[DesiredCommitment]:
        """Attach the ids returned by CREATE calls (even ones whose assignment step failed)."""
        created: Dict[Tuple[str, ...], str] = {}
        if applied is not None:
            for o in applied.outcomes:
                if o.intent.kind == IntentKind.CREATE and o.remote_id:
                    created[o.intent.key] = o.remote_id
        out = []
        for d in plan.desired:
            rid = created.get(identity_key(d.commitment))
            out.append(replace(d, remote_id=rid) if rid else d)
        return out

    async def run(self, inputs: CycleInputs) -> CycleReport:
        if self.state != CycleState.IDLE:
            raise RuntimeError("a ReconcileCycle instance runs exactly once")

        self._enter(CycleState.PARSING)
        parsed = self._parse(inputs)
        self._trace("phase1_parsing", {"records": len(parsed.records), "errors": [e.to_dict() for e in parsed.errors]})
        if parsed.errors:
            return self._abort(parsed.errors)
        input_order = [to_commitment(r).provider_id for r in parsed.records]

        self._enter(CycleState.NORMALIZING)
        commitments, errors = normalize_all(parsed.records, self.diagnostics)
        self._trace("phase2_normalizing", {"commitments": len(commitments), "errors": [e.to_dict() for e in errors]})
        if errors:
            return self._abort(errors)

        self._enter(CycleState.MATCHING)
        matched = match_configs(commitments, inputs.configs, self.diagnostics)
        self._trace(
            "phase3_matching",
            {
                "configs": len(inputs.configs),
                "attached": sum(1 for d in matched.desired if d.config is not None),
                "errors": [e.to_dict() for e in matched.errors],
            },
        )
        if matched.errors:
            return self._abort(matched.errors)

        self._enter(CycleState.PLANNING)
        try:
            observed, errors = await self._observe(inputs.providers)
        except TransportError as exc:
            return self._abort([exc])
        self._trace("phase4_observing", {"observed": len(observed), "errors": [e.to_dict() for e in errors]})
        if errors:
            return self._abort(errors)

        try:
            plan = self.reconciler.plan(matched.desired, observed)
        except DuplicateCommitmentError as exc:
            return self._abort([exc])
        for w in plan.warnings:
            self.diagnostics.warn(w)
        self.diagnostics.extend_errors(list(plan.drift))
        if plan.drift:
            self.diagnostics.warn(
                ReconcileWarning(
                    kind="immutable_drift",
                    message=f"{len(plan.drift)} immutable field difference(s); affected commitments were skipped",
                )
            )
        self._trace(
            "phase5_planning",
            {"intents": plan.counts(), "drift": [d.to_dict() for d in plan.drift]},
        )

        desired = self._settle(plan, None)
        if self.dry_run:
            return self._finish(
                CycleState.DONE,
                plan=plan,
                desired=desired,
                projections=sort_projections([project(d) for d in desired], input_order),
            )

        self._enter(CycleState.APPLYING)
        applied = await self.reconciler.apply(plan, cancel=self.cancel)
        self.diagnostics.extend_errors(applied.errors)
        self._trace(
            "phase6_apply",
            {
                "completed": len(applied.completed),
                "failed": len(applied.failed),
                "skipped": len(applied.skipped),
                "abort_reason": applied.abort_reason,
            },
        )

        desired = self._settle(plan, applied)
        projections = sort_projections([project(d) for d in desired], input_order)
        if applied.aborted or applied.cancelled:
            final = CycleState.ABORTED
        elif applied.failed:
            final = CycleState.PARTIAL_FAILURE
        else:
            final = CycleState.DONE
        return self._finish(final, plan=plan, apply=applied, desired=desired, projections=projections)


async def run_cycle(api: InventoryAPI, inputs: CycleInputs, **kwargs: Any) -> CycleReport:
    return await ReconcileCycle(api, **kwargs).run(inputs)
