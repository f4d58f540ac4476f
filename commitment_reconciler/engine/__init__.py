from .cycle import CycleInputs, CycleReport, CycleState, ReconcileCycle, run_cycle
from .diagnostics import Diagnostics
from .matcher import MatchResult, match_configs
from .normalize import normalize, normalize_all
from .projector import project, serialize_azure_csv, serialize_gcp_cuds, sort_projections
from .reconciler import ApplyReport, Intent, IntentKind, Plan, Reconciler, plan
from .reservations import fetch_generic_reservations, overwrite_generic_reservations

__all__ = [
    "CycleInputs",
    "CycleReport",
    "CycleState",
    "ReconcileCycle",
    "run_cycle",
    "Diagnostics",
    "MatchResult",
    "match_configs",
    "normalize",
    "normalize_all",
    "project",
    "serialize_azure_csv",
    "serialize_gcp_cuds",
    "sort_projections",
    "ApplyReport",
    "Intent",
    "IntentKind",
    "Plan",
    "Reconciler",
    "plan",
    "fetch_generic_reservations",
    "overwrite_generic_reservations",
]
