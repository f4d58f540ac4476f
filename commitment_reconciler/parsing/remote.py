"""Control-plane commitment objects -> RemoteCommitment records.

The list endpoint returns ``{"commitments": [...]}`` and the assignments
endpoint ``{"commitmentsAssignments": [...]}``. Commitments carry either a
``gcpResourceCudContext`` or an ``azureReservationContext``; anything else is
not ours and is skipped.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..errors import ParseError
from ..models import AZURE, GCP, RemoteCommitment
from .base import ParseOutcome, opt_str, parse_int

_LOGGER = logging.getLogger(__name__)


def round_usage(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return round(float(value), 2)
    except (TypeError, ValueError):
        raise ParseError("allowed_usage", value) from None


def group_assignments(assignments: Iterable[Dict[str, Any]]) -> Dict[str, List[Tuple[Optional[int], int, str]]]:
    grouped: Dict[str, List[Tuple[Optional[int], int, str]]] = defaultdict(list)
    for i, a in enumerate(assignments or ()):
        if not isinstance(a, dict):
            continue
        commitment_id = opt_str(a.get("commitmentId"))
        cluster_id = opt_str(a.get("clusterId"))
        if not commitment_id or not cluster_id:
            continue
        grouped[commitment_id].append((a.get("priority"), i, cluster_id))
    return grouped


def _ordered_clusters(entries: List[Tuple[Optional[int], int, str]]) -> Tuple[str, ...]:
    # Priority order when the control plane sent one, otherwise response order.
    ranked = sorted(entries, key=lambda e: (e[0] is None, e[0] if e[0] is not None else 0, e[1]))
    return tuple(cluster for _, _, cluster in ranked)


def parse_remote_object(obj: Dict[str, Any], clusters: Tuple[str, ...] = ()) -> Optional[RemoteCommitment]:
    gcp = obj.get("gcpResourceCudContext")
    azure = obj.get("azureReservationContext")
    if not isinstance(gcp, dict) and not isinstance(azure, dict):
        return None

    remote_id = opt_str(obj.get("id"))
    if remote_id is None:
        raise ParseError("id", obj.get("id"), message="remote commitment without id")

    common = dict(
        id=remote_id,
        name=opt_str(obj.get("name")) or "",
        region=opt_str(obj.get("region")),
        start_date=opt_str(obj.get("startDate")),
        end_date=opt_str(obj.get("endDate")),
        status=opt_str(obj.get("status")),
        allowed_usage=round_usage(obj.get("allowedUsage")),
        prioritization=obj.get("prioritization"),
        scaling_strategy=opt_str(obj.get("scalingStrategy")),
        assignments=clusters,
    )
    if isinstance(gcp, dict):
        return RemoteCommitment(
            provider=GCP,
            provider_id=opt_str(gcp.get("cudId")),
            type=opt_str(gcp.get("type")),
            plan=opt_str(gcp.get("plan")),
            cpu=parse_int(gcp.get("cpu"), "cpu"),
            memory_mb=parse_int(gcp.get("memoryMb"), "memory_mb"),
            provider_status=opt_str(gcp.get("status")),
            **common,
        )
    return RemoteCommitment(
        provider=AZURE,
        provider_id=opt_str(azure.get("id")),
        type=opt_str(azure.get("instanceType")),
        plan=opt_str(azure.get("plan")),
        count=parse_int(azure.get("count"), "count"),
        provider_status=opt_str(azure.get("status")),
        scope=opt_str(azure.get("scope")),
        scope_subscription=opt_str(azure.get("scopeSubscription")),
        scope_resource_group=opt_str(azure.get("scopeResourceGroup")),
        **common,
    )


def parse_remote_commitments(
    commitments: Any,
    assignments: Any = None,
) -> ParseOutcome:
    """Parse list-endpoint payloads (either the envelope or the bare list)."""
    if isinstance(commitments, dict):
        commitments = commitments.get("commitments") or []
    if isinstance(assignments, dict):
        assignments = assignments.get("commitmentsAssignments") or []

    by_commitment = group_assignments(assignments or [])
    outcome = ParseOutcome()
    for i, obj in enumerate(commitments or [], start=1):
        if not isinstance(obj, dict):
            outcome.errors.append(ParseError("commitment", obj, row=i))
            continue
        try:
            clusters = _ordered_clusters(by_commitment.get(str(obj.get("id")), []))
            record = parse_remote_object(obj, clusters)
        except ParseError as exc:
            exc.row = i
            outcome.errors.append(exc)
            continue
        if record is not None:
            outcome.records.append(record)

    _LOGGER.debug("Observed %d remote commitments", len(outcome.records))
    return outcome
