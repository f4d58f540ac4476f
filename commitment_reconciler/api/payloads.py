"""Canonical records -> control-plane JSON bodies (camelCase)."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ..config import AZURE_TERM_ALIASES, DEFAULT_SCALING_STRATEGY
from ..models import AZURE, GCP, Commitment, CommitmentConfig, GenericReservation

_TERM_NAMES = {term: name for name, term in AZURE_TERM_ALIASES.items()}


def wire_status(status: Optional[str]) -> Optional[str]:
    """'ACTIVE' -> 'Active'."""
    if status is None:
        return None
    return status.capitalize()


def _drop_none(obj: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in obj.items() if v is not None}


def _str_or_none(value: Optional[int]) -> Optional[str]:
    return None if value is None else str(value)


def commitment_import_payload(commitment: Commitment, config: Optional[CommitmentConfig] = None) -> Dict[str, Any]:
    """CommitmentImport body for a CREATE intent, including the config overrides."""
    body: Dict[str, Any] = {
        "name": commitment.name,
        "region": commitment.region,
        "startDate": commitment.start_timestamp,
        "endDate": commitment.end_timestamp,
        "scalingStrategy": DEFAULT_SCALING_STRATEGY,
    }
    if config is not None:
        body.update(commitment_update_payload(config_changes(config)))

    if commitment.provider == GCP:
        body["gcpResourceCudContext"] = _drop_none(
            {
                "cudId": commitment.provider_id,
                "cpu": _str_or_none(commitment.cpu_cores),
                "memoryMb": _str_or_none(commitment.memory_mib),
                "plan": commitment.plan,
                "status": commitment.provider_status,
                "type": commitment.type,
            }
        )
    elif commitment.provider == AZURE:
        body["azureReservationContext"] = _drop_none(
            {
                "id": commitment.provider_id,
                "count": commitment.count,
                "instanceType": commitment.type,
                "plan": _TERM_NAMES.get(commitment.plan or "", commitment.plan),
                "scope": commitment.scope,
                "scopeResourceGroup": commitment.scope_resource_group,
                "scopeSubscription": commitment.scope_subscription,
                "status": commitment.provider_status,
            }
        )
    return _drop_none(body)


def config_changes(config: CommitmentConfig) -> Dict[str, Any]:
    """Mutable settings the config actually sets (assignments excluded)."""
    changes = {
        "allowed_usage": config.allowed_usage,
        "prioritization": config.prioritization,
        "status": config.status,
        "scaling_strategy": config.scaling_strategy,
    }
    return _drop_none(changes)


def commitment_update_payload(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """CommitmentUpdate body; only the changed fields are sent."""
    body: Dict[str, Any] = {}
    if "allowed_usage" in changes:
        body["allowedUsage"] = changes["allowed_usage"]
    if "prioritization" in changes:
        body["prioritization"] = changes["prioritization"]
    if "status" in changes:
        body["status"] = wire_status(changes["status"])
    if "scaling_strategy" in changes:
        body["scalingStrategy"] = changes["scaling_strategy"]
    return body


def generic_reservation_payload(reservation: GenericReservation) -> Dict[str, Any]:
    return _drop_none(
        {
            "name": reservation.name,
            "provider": reservation.provider,
            "region": reservation.region,
            "instanceType": reservation.instance_type,
            "price": reservation.price,
            "count": reservation.count,
            "startDate": reservation.start_date,
            "endDate": reservation.end_date,
            "zoneId": reservation.zone_id,
            "zoneName": reservation.zone_name,
        }
    )
