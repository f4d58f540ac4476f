"""Typed records that flow through a reconcile cycle.

Parsers emit one of the tagged source variants (GCPImport, AzureImport,
RemoteCommitment, GenericReservation). Before matching they are collapsed
into the canonical Commitment via ``to_commitment``; ``key_for`` builds the
matcher key for any of them.

``None`` always means "unset". It is kept distinct from ``0`` / ``""`` all the
way through to the projector.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import singledispatch
from typing import Optional, Tuple

GCP = "gcp"
AZURE = "azure"


@dataclass(frozen=True)
class MatcherKey:
    """(name, region, type) join key.

    Region is compared case-insensitively on its last path segment, type
    case-sensitively. On the config side a ``None`` region/type is a wildcard.
    """

    name: str
    region: Optional[str] = None
    type: Optional[str] = None

    def __post_init__(self) -> None:
        if self.region is not None:
            object.__setattr__(self, "region", self.region.strip().rsplit("/", 1)[-1].lower())

    def matches(self, other: "MatcherKey") -> bool:
        if self.name != other.name:
            return False
        if self.region is not None and self.region != other.region:
            return False
        if self.type is not None and self.type != other.type:
            return False
        return True

    def __str__(self) -> str:
        return f"(name={self.name!r}, region={self.region or '*'}, type={self.type or '*'})"


@dataclass(frozen=True)
class Commitment:
    name: str
    provider: str
    id: Optional[str] = None
    provider_id: Optional[str] = None
    type: Optional[str] = None
    region: Optional[str] = None
    plan: Optional[str] = None
    start_timestamp: Optional[str] = None
    end_timestamp: Optional[str] = None
    cpu_cores: Optional[int] = None
    memory_mib: Optional[int] = None
    count: Optional[int] = None
    status: Optional[str] = None
    provider_status: Optional[str] = None
    # Control-plane settings, populated on observed records only.
    allowed_usage: Optional[float] = None
    prioritization: Optional[bool] = None
    scaling_strategy: Optional[str] = None
    assignments: Optional[Tuple[str, ...]] = None
    # Azure reservation scope.
    scope: Optional[str] = None
    scope_subscription: Optional[str] = None
    scope_resource_group: Optional[str] = None


@dataclass(frozen=True)
class CommitmentConfig:
    """User override for one commitment, joined by its matcher key."""

    matcher: MatcherKey
    prioritization: Optional[bool] = None
    allowed_usage: Optional[float] = None
    status: Optional[str] = None
    scaling_strategy: Optional[str] = None
    # Cluster ids; order is the priority order when prioritization is enabled.
    assignments: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class DesiredCommitment:
    commitment: Commitment
    config: Optional[CommitmentConfig] = None
    # Filled in after observation / apply.
    remote_id: Optional[str] = None
    observed: Optional[Commitment] = None


# ---------------------------------------------------------------------
# Source variants
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class GCPImport:
    name: str
    id: Optional[str] = None
    plan: Optional[str] = None
    region: Optional[str] = None
    type: Optional[str] = None
    cpu: Optional[int] = None
    memory_mb: Optional[int] = None
    start_timestamp: Optional[str] = None
    end_timestamp: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class AzureImport:
    row: int
    name: Optional[str] = None
    reservation_id: Optional[str] = None
    region: Optional[str] = None
    instance_type: Optional[str] = None
    quantity: Optional[int] = None
    term: Optional[str] = None
    status: Optional[str] = None
    purchase_date: Optional[str] = None
    expiration_date: Optional[str] = None
    scope: Optional[str] = None
    scope_subscription: Optional[str] = None
    scope_resource_group: Optional[str] = None
    deep_link: Optional[str] = None


@dataclass(frozen=True)
class RemoteCommitment:
    id: str
    provider: str
    name: str
    provider_id: Optional[str] = None
    region: Optional[str] = None
    type: Optional[str] = None
    plan: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    cpu: Optional[int] = None
    memory_mb: Optional[int] = None
    count: Optional[int] = None
    status: Optional[str] = None
    provider_status: Optional[str] = None
    allowed_usage: Optional[float] = None
    prioritization: Optional[bool] = None
    scaling_strategy: Optional[str] = None
    assignments: Tuple[str, ...] = field(default_factory=tuple)
    scope: Optional[str] = None
    scope_subscription: Optional[str] = None
    scope_resource_group: Optional[str] = None


@dataclass(frozen=True)
class GenericReservation:
    """Legacy provider-agnostic reservation row (overwrite semantics)."""

    row: int
    provider: str
    name: Optional[str] = None
    region: Optional[str] = None
    instance_type: Optional[str] = None
    price: Optional[str] = None
    count: Optional[int] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    zone_id: Optional[str] = None
    zone_name: Optional[str] = None


# ---------------------------------------------------------------------
# Variant operations
# ---------------------------------------------------------------------
@singledispatch
def to_commitment(record) -> Commitment:
    raise TypeError(f"Unsupported commitment record: {type(record).__name__}")


@to_commitment.register
def _(record: Commitment) -> Commitment:
    return record


@to_commitment.register
def _(record: GCPImport) -> Commitment:
    return Commitment(
        name=record.name,
        provider=GCP,
        provider_id=record.id,
        type=record.type,
        region=record.region,
        plan=record.plan,
        start_timestamp=record.start_timestamp,
        end_timestamp=record.end_timestamp,
        cpu_cores=record.cpu,
        memory_mib=record.memory_mb,
        provider_status=record.status,
    )


@to_commitment.register
def _(record: AzureImport) -> Commitment:
    return Commitment(
        name=record.name or "",
        provider=AZURE,
        provider_id=record.reservation_id,
        type=record.instance_type,
        region=record.region,
        plan=record.term,
        start_timestamp=record.purchase_date,
        end_timestamp=record.expiration_date,
        count=record.quantity,
        provider_status=record.status,
        scope=record.scope,
        scope_subscription=record.scope_subscription,
        scope_resource_group=record.scope_resource_group,
    )


@to_commitment.register
def _(record: RemoteCommitment) -> Commitment:
    return Commitment(
        id=record.id,
        name=record.name,
        provider=record.provider,
        provider_id=record.provider_id,
        type=record.type,
        region=record.region,
        plan=record.plan,
        start_timestamp=record.start_date,
        end_timestamp=record.end_date,
        cpu_cores=record.cpu,
        memory_mib=record.memory_mb,
        count=record.count,
        status=record.status,
        provider_status=record.provider_status,
        allowed_usage=record.allowed_usage,
        prioritization=record.prioritization,
        scaling_strategy=record.scaling_strategy,
        assignments=tuple(record.assignments),
        scope=record.scope,
        scope_subscription=record.scope_subscription,
        scope_resource_group=record.scope_resource_group,
    )


@singledispatch
def key_for(record) -> MatcherKey:
    return key_for(to_commitment(record))


@key_for.register
def _(record: Commitment) -> MatcherKey:
    return MatcherKey(name=record.name, region=record.region or "", type=record.type or "")


@key_for.register
def _(record: GenericReservation) -> MatcherKey:
    return MatcherKey(name=record.name or "", region=record.region or "", type=record.instance_type or "")


def identity_key(commitment: Commitment) -> Tuple[str, ...]:
    """Reconciler key: (provider, provider_id), else the matcher key."""
    if commitment.provider_id:
        return (commitment.provider, commitment.provider_id)
    key = key_for(commitment)
    return (commitment.provider, key.name, key.region or "", key.type or "")


__all__ = [
    "GCP",
    "AZURE",
    "MatcherKey",
    "Commitment",
    "CommitmentConfig",
    "DesiredCommitment",
    "GCPImport",
    "AzureImport",
    "RemoteCommitment",
    "GenericReservation",
    "to_commitment",
    "key_for",
    "identity_key",
]
