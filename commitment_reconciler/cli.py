#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Commitments reconciler - CLI

Flow:
- Reads a GCP CUD JSON export and/or an Azure Reservations CSV export.
- Reads optional commitment configs (YAML/JSON) with allowed_usage /
  prioritization / status / assignments overrides.
- Runs one reconcile cycle against the control plane inventory API.
- Prints a summary, writes report.md + report.json + trace.jsonl under runs/<prefix>/.

Exit codes: 0 Done, 2 PartialFailure, 1 Aborted.
The generic reservations mode (--reservations-csv) overwrites the
organization's legacy reservation list instead.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from .api.client import CommitmentsClient
from .config import (
    API_URL,
    DEFAULT_AUTHORITATIVE,
    DEFAULT_CALL_TIMEOUT,
    DEFAULT_CONCURRENCY,
    DEFAULT_LOG_LEVEL,
    RUNS_DIR,
    TRACE_ENABLED,
)
from .configs import load_configs
from .engine.cycle import CycleInputs, CycleReport, CycleState, ReconcileCycle
from .engine.reservations import overwrite_generic_reservations
from .errors import InvalidConfigError, ReconcileError
from .parsing import open_input, parse_generic_csv
from .reporting.format import render_report
from .utils.trace import build_trace_logger

console = Console()
_LOGGER = logging.getLogger("commitment_reconciler")

EXIT_CODES = {
    CycleState.DONE: 0,
    CycleState.PARTIAL_FAILURE: 2,
    CycleState.ABORTED: 1,
}


# --------------------------------------------------------------------
# Argument parsing
# --------------------------------------------------------------------
def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="commitments-reconcile",
        description=(
            "Reconcile GCP CUDs and Azure reservations with the control plane inventory.\n\n"
            "Parses the provider exports, applies your commitment configs and converges\n"
            "the remote commitments (create / update / optional delete)."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--gcp-cuds", type=str, default=None, help="GCP CUD JSON export ('-' for stdin).")
    parser.add_argument("--azure-csv", type=str, default=None, help="Azure Reservations CSV export ('-' for stdin).")
    parser.add_argument("--configs", type=str, default=None, help="Commitment configs file (.yaml/.yml/.json).")
    parser.add_argument(
        "--reservations-csv",
        type=str,
        default=None,
        help="Legacy generic reservations CSV; overwrites the organization's reservations.",
    )
    parser.add_argument(
        "--organization-id",
        type=str,
        default=None,
        help="Organization id (required with --reservations-csv).",
    )
    parser.add_argument("--api-url", type=str, default=API_URL, help="Control plane base URL.")
    parser.add_argument(
        "--authoritative",
        action="store_true",
        default=DEFAULT_AUTHORITATIVE,
        help="Delete remote commitments that are absent from the inputs (default: only report them).",
    )
    parser.add_argument("--dry-run", action="store_true", help="Plan only; make no changes.")
    parser.add_argument("--concurrency", type=int, default=DEFAULT_CONCURRENCY, help="Max in-flight API calls.")
    parser.add_argument(
        "--call-timeout", type=float, default=DEFAULT_CALL_TIMEOUT, help="Per-call deadline in seconds."
    )
    parser.add_argument(
        "--output-prefix",
        type=str,
        default=datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S"),
        help="Run folder name under runs/.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=DEFAULT_LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level.",
    )
    parser.add_argument("--no-trace", action="store_true", help="Do not write trace.jsonl.")
    return parser.parse_args(argv)


def _read(path: Optional[str]) -> Optional[str]:
    if path is None:
        return None
    with open_input(path) as handle:
        return handle.read()


def print_summary(report: CycleReport) -> None:
    color = {"Done": "green", "PartialFailure": "yellow", "Aborted": "red"}.get(report.state.value, "white")
    console.print(f"[bold {color}]Cycle result: {report.state.value}[/bold {color}]")
    if report.plan is not None:
        table = Table(title="Intents")
        table.add_column("Kind")
        table.add_column("Commitment")
        table.add_column("Remote id")
        for intent in report.plan.intents:
            table.add_row(intent.kind.value, intent.label, intent.remote_id or "-")
        console.print(table)
    console.print(f"completed={report.completed} failed={report.failed} skipped={report.skipped}")
    for e in report.errors:
        console.print(f"[red]  - {e.kind}: {e}[/red]")
    for w in report.warnings:
        console.print(f"[yellow]  - {w.kind}: {w.message}[/yellow]")


async def _run_reservations(args: argparse.Namespace) -> int:
    outcome = parse_generic_csv(_read(args.reservations_csv))
    if outcome.errors:
        for e in outcome.errors:
            console.print(f"[red]  - {e.kind}: {e}[/red]")
        return 1
    if args.dry_run:
        console.print(f"[cyan]Dry run: would overwrite {len(outcome.records)} reservation(s).[/cyan]")
        return 0
    async with CommitmentsClient(args.api_url) as client:
        try:
            sent = await overwrite_generic_reservations(
                client, args.organization_id, outcome.records, call_timeout=args.call_timeout
            )
        except ReconcileError as exc:
            console.print(f"[red]{exc}[/red]")
            return 1
    console.print(f"[green]Overwrote {sent} reservation(s).[/green]")
    return 0


async def _run_cycle(args: argparse.Namespace, run_dir: Path, trace_enabled: bool) -> CycleReport:
    configs = load_configs(args.configs) if args.configs else []
    inputs = CycleInputs(gcp_cuds=_read(args.gcp_cuds), azure_csv=_read(args.azure_csv), configs=configs)

    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        _LOGGER.debug("Signal handlers not supported; Ctrl+C will not cancel gracefully")

    trace = build_trace_logger(run_dir / "trace.jsonl", enabled=trace_enabled, cycle_id=args.output_prefix)
    trace.log("phase0_setup", {"api_url": args.api_url, "authoritative": args.authoritative, "dry_run": args.dry_run})

    async with CommitmentsClient(args.api_url) as client:
        cycle = ReconcileCycle(
            client,
            authoritative=args.authoritative,
            concurrency=args.concurrency,
            call_timeout=args.call_timeout,
            dry_run=args.dry_run,
            trace=trace,
            cancel=cancel,
        )
        return await cycle.run(inputs)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)

    run_dir = Path(RUNS_DIR) / args.output_prefix
    run_dir.mkdir(parents=True, exist_ok=True)

    log_handlers: list[logging.Handler] = [logging.StreamHandler()]
    console_log_path = run_dir / "console.log"
    log_handlers.append(logging.FileHandler(console_log_path, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=log_handlers,
    )
    _LOGGER.debug("CLI arguments: %s", args)

    if args.reservations_csv:
        if not args.organization_id:
            console.print("[red]--organization-id is required with --reservations-csv.[/red]")
            sys.exit(1)
        try:
            sys.exit(asyncio.run(_run_reservations(args)))
        except OSError as exc:
            console.print(f"[red]Cannot read input: {exc}[/red]")
            sys.exit(1)

    if not args.gcp_cuds and not args.azure_csv:
        console.print("[red]Nothing to reconcile: pass --gcp-cuds and/or --azure-csv.[/red]")
        sys.exit(1)

    console.print("[bold]Commitments reconciler[/bold]\n")
    try:
        report = asyncio.run(_run_cycle(args, run_dir, TRACE_ENABLED and not args.no_trace))
    except InvalidConfigError as exc:
        console.print(f"[red]Invalid commitment configs: {exc}[/red]")
        sys.exit(1)
    except OSError as exc:
        # Missing or unreadable --gcp-cuds / --azure-csv / --configs file.
        console.print(f"[red]Cannot read input: {exc}[/red]")
        sys.exit(1)

    print_summary(report)

    md_path = run_dir / "report.md"
    with open(md_path, "w", encoding="utf-8") as f:
        f.write(render_report(report))
    json_path = run_dir / "report.json"
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2, ensure_ascii=False, default=str)
    console.print(f"[green]Saved report to {md_path} and {json_path}[/green]")
    _LOGGER.info("Run artifacts in %s", run_dir)

    sys.exit(EXIT_CODES[report.state])


if __name__ == "__main__":
    main()
