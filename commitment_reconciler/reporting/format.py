from __future__ import annotations

from typing import Any, Dict, List

from ..engine.cycle import CycleReport
from ..engine.reconciler import OutcomeStatus


def _md_escape(v: Any) -> str:
    s = "-" if v is None else str(v)
    # Escape pipes so Markdown tables don't break
    return s.replace("|", "\\|").replace("\n", " ").strip()


def _usage(v: Any) -> str:
    if v is None:
        return "-"
    return f"{float(v):.2f}"


def render_plan_table(report: CycleReport) -> str:
    rows = [
        "| Intent | Commitment | Remote id | Changes | Outcome |",
        "|---|---|---|---|---|",
    ]
    if report.plan is None:
        return "\n".join(rows)

    outcomes = {id(o.intent): o for o in (report.apply.outcomes if report.apply else [])}
    for intent in report.plan.intents:
        outcome = outcomes.get(id(intent))
        if outcome is None:
            result = "planned" if report.dry_run else "-"
        elif outcome.status == OutcomeStatus.FAILED:
            result = f"FAILED ({getattr(outcome.error, 'status', 'transport')})"
        else:
            result = outcome.status.value
        changes = ", ".join(f"{k}={v}" for k, v in intent.changes.items()) or "-"
        rows.append(
            f"| {intent.kind.value} | {_md_escape(intent.label)} | {_md_escape(outcome.remote_id if outcome else intent.remote_id)} "
            f"| {_md_escape(changes)} | {result} |"
        )
    return "\n".join(rows)


def render_commitments_table(projections: List[Dict[str, Any]]) -> str:
    rows = [
        "| Name | Provider | Region | Type | CPU | Memory (MiB) | Count | Plan | Status | Allowed usage | Prioritization |",
        "|---|---|---|---|---|---|---|---|---|---|---|",
    ]
    for p in projections:
        rows.append(
            "| {name} | {provider} | {region} | {type} | {cpu} | {mem} | {count} | {plan} | {status} | {usage} | {prio} |".format(
                name=_md_escape(p.get("name")),
                provider=_md_escape(p.get("provider")),
                region=_md_escape(p.get("region")),
                type=_md_escape(p.get("type")),
                cpu=_md_escape(p.get("cpu")),
                mem=_md_escape(p.get("memory_mb")),
                count=_md_escape(p.get("count")),
                plan=_md_escape(p.get("plan")),
                status=_md_escape(p.get("status")),
                usage=_usage(p.get("allowed_usage")),
                prio=_md_escape(p.get("prioritization")),
            )
        )
    return "\n".join(rows)


def render_issues_table(report: CycleReport) -> str:
    rows = [
        "| Severity | Kind | Details |",
        "|---|---|---|",
    ]
    for e in report.errors:
        rows.append(f"| error | {e.kind} | {_md_escape(str(e))} |")
    for w in report.warnings:
        rows.append(f"| warning | {w.kind} | {_md_escape(w.message)} |")
    return "\n".join(rows)


def render_report(report: CycleReport) -> str:
    parts = [
        "# Commitments reconcile report",
        "",
        f"**Result:** {report.state.value}" + (" (dry run)" if report.dry_run else ""),
        f"**Completed:** {report.completed} | **Failed:** {report.failed} | **Skipped:** {report.skipped}",
        "",
        "## Plan",
        "",
        render_plan_table(report),
        "",
        "## Commitments",
        "",
        render_commitments_table(report.projections),
    ]
    if report.errors or report.warnings:
        parts += ["", "## Errors and warnings", "", render_issues_table(report)]
    return "\n".join(parts) + "\n"
