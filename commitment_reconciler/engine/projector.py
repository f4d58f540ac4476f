"""Reconciled records -> flat attribute dicts, and back to raw provider formats.

Unset values project to None, never to 0 or "". Configured settings win over
observed ones; computed fields come from the import and fall back to what the
control plane reports.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Dict, List, Optional, Sequence, Union

from ..models import AZURE, GCP, Commitment, DesiredCommitment


def _first(*values: Any) -> Any:
    for v in values:
        if v is not None:
            return v
    return None


def project_assignments(clusters: Optional[Sequence[str]], prioritization: Optional[bool]) -> Optional[List[Dict[str, Any]]]:
    if clusters is None:
        return None
    return [
        {"cluster_id": cluster, "priority": (i + 1) if prioritization else None}
        for i, cluster in enumerate(clusters)
    ]


def project(record: Union[DesiredCommitment, Commitment]) -> Dict[str, Any]:
    if isinstance(record, Commitment):
        record = DesiredCommitment(commitment=record)
    c = record.commitment
    o = record.observed or Commitment(name=c.name, provider=c.provider)
    cfg = record.config

    prioritization = _first(cfg.prioritization if cfg else None, o.prioritization, c.prioritization)
    clusters = _first(cfg.assignments if cfg else None, o.assignments, c.assignments)
    out: Dict[str, Any] = {
        "id": _first(record.remote_id, o.id, c.id),
        "provider": c.provider,
        "provider_id": _first(c.provider_id, o.provider_id),
        "name": c.name,
        "region": _first(c.region, o.region),
        "type": _first(c.type, o.type),
        "cpu": _first(c.cpu_cores, o.cpu_cores),
        "memory_mb": _first(c.memory_mib, o.memory_mib),
        "count": _first(c.count, o.count),
        "plan": _first(c.plan, o.plan),
        "status": _first(cfg.status if cfg else None, o.status, c.status),
        "allowed_usage": _first(cfg.allowed_usage if cfg else None, o.allowed_usage, c.allowed_usage),
        "prioritization": prioritization,
        "scaling_strategy": _first(cfg.scaling_strategy if cfg else None, o.scaling_strategy, c.scaling_strategy),
        "assignments": project_assignments(clusters, prioritization),
        "start_timestamp": _first(c.start_timestamp, o.start_timestamp),
        "end_timestamp": _first(c.end_timestamp, o.end_timestamp),
        "provider_status": _first(c.provider_status, o.provider_status),
    }
    if c.provider == GCP:
        out["cud_id"] = out["provider_id"]
        out["cud_status"] = out["provider_status"]
    elif c.provider == AZURE:
        out["reservation_id"] = out["provider_id"]
        out["reservation_status"] = out["provider_status"]
        out["instance_type"] = out["type"]
        out["scope"] = _first(c.scope, o.scope)
        out["scope_subscription"] = _first(c.scope_subscription, o.scope_subscription)
        out["scope_resource_group"] = _first(c.scope_resource_group, o.scope_resource_group)
    return out


def sort_projections(projections: List[Dict[str, Any]], input_order: Sequence[Optional[str]]) -> List[Dict[str, Any]]:
    """Order by position of provider_id in the inputs; unknown ids last, by id."""
    order = {pid: i for i, pid in enumerate(input_order) if pid is not None}

    def rank(p: Dict[str, Any]):
        pid = p.get("provider_id")
        if pid in order:
            return (0, order[pid], "")
        return (1, 0, pid or "")

    return sorted(projections, key=rank)


# ---------------------------------------------------------------------
# Serialization back to provider formats
# ---------------------------------------------------------------------
def serialize_gcp_cuds(projections: Sequence[Dict[str, Any]]) -> str:
    cuds = []
    for p in projections:
        resources = []
        if p.get("cpu") is not None:
            resources.append({"type": "VCPU", "amount": str(p["cpu"])})
        if p.get("memory_mb") is not None:
            resources.append({"type": "MEMORY", "amount": str(p["memory_mb"])})
        cud = {
            "id": p.get("provider_id"),
            "name": p.get("name"),
            "plan": p.get("plan"),
            "region": p.get("region"),
            "resources": resources,
            "startTimestamp": p.get("start_timestamp"),
            "endTimestamp": p.get("end_timestamp"),
            "status": p.get("provider_status"),
            "type": p.get("type"),
        }
        cuds.append({k: v for k, v in cud.items() if v is not None})
    return json.dumps(cuds, indent=2)


AZURE_CSV_COLUMNS = (
    ("Name", "name"),
    ("Reservation Id", "provider_id"),
    ("Status", "provider_status"),
    ("Purchase date", "start_timestamp"),
    ("Expiration date", "end_timestamp"),
    ("Term", "plan"),
    ("Scope", "scope"),
    ("Scope subscription", "scope_subscription"),
    ("Scope resource group", "scope_resource_group"),
    ("Product name", "type"),
    ("Region", "region"),
    ("Quantity", "count"),
)

AZURE_PORTAL_LINK = "https://portal.azure.com#resource/providers/microsoft.capacity/reservations/{id}/overview"


def serialize_azure_csv(projections: Sequence[Dict[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow([header for header, _ in AZURE_CSV_COLUMNS] + ["Deep link to reservation"])
    for p in projections:
        row = ["" if p.get(attr) is None else str(p[attr]) for _, attr in AZURE_CSV_COLUMNS]
        row.append(AZURE_PORTAL_LINK.format(id=p.get("provider_id") or ""))
        writer.writerow(row)
    return buf.getvalue()
