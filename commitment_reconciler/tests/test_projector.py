import json

from commitment_reconciler.engine.normalize import normalize
from commitment_reconciler.engine.projector import (
    project,
    serialize_azure_csv,
    serialize_gcp_cuds,
    sort_projections,
)
from commitment_reconciler.models import AZURE, Commitment, CommitmentConfig, DesiredCommitment, MatcherKey
from commitment_reconciler.parsing import parse_azure_csv, parse_gcp_imports


def _normalized(outcome):
    assert outcome.ok
    return [normalize(r) for r in outcome.records]


def test_gcp_projection_fields(gcp_cud):
    c = _normalized(parse_gcp_imports([gcp_cud]))[0]
    p = project(c)

    assert p["cud_id"] == "123456789"
    assert p["cpu"] == 10
    assert p["memory_mb"] == 20480
    assert p["region"] == "us-central1"
    assert p["status"] is None
    assert p["cud_status"] == "ACTIVE"
    assert p["assignments"] is None
    assert p["id"] is None


def test_unset_is_not_zero():
    p = project(Commitment(name="n", provider=AZURE, count=0))
    assert p["count"] == 0
    assert p["cpu"] is None
    assert p["memory_mb"] is None
    assert p["allowed_usage"] is None


def test_config_wins_over_observed():
    c = Commitment(name="n", provider=AZURE, region="eastus")
    observed = Commitment(
        name="n", provider=AZURE, id="cmt-7", allowed_usage=1.0, status="ACTIVE", assignments=("x",)
    )
    cfg = CommitmentConfig(
        matcher=MatcherKey(name="n"), allowed_usage=0.4, prioritization=True, assignments=("b", "a")
    )
    p = project(DesiredCommitment(commitment=c, config=cfg, remote_id="cmt-7", observed=observed))

    assert p["id"] == "cmt-7"
    assert p["allowed_usage"] == 0.4
    assert p["status"] == "ACTIVE"
    assert p["assignments"] == [
        {"cluster_id": "b", "priority": 1},
        {"cluster_id": "a", "priority": 2},
    ]


def test_unprioritized_assignments_have_no_priority():
    c = Commitment(name="n", provider=AZURE, assignments=("a",), prioritization=False)
    assert project(c)["assignments"] == [{"cluster_id": "a", "priority": None}]


def test_gcp_serialization_round_trips(gcp_cud):
    first = _normalized(parse_gcp_imports([gcp_cud]))
    text = serialize_gcp_cuds([project(c) for c in first])

    assert json.loads(text)[0]["resources"] == [
        {"type": "VCPU", "amount": "10"},
        {"type": "MEMORY", "amount": "20480"},
    ]
    assert _normalized(parse_gcp_imports(text)) == first


def test_gcp_serialization_omits_unset_resources(gcp_cud):
    gcp_cud["resources"] = []
    first = _normalized(parse_gcp_imports([gcp_cud]))
    cud = json.loads(serialize_gcp_cuds([project(c) for c in first]))[0]
    assert cud["resources"] == []
    assert _normalized(parse_gcp_imports([cud]))[0].cpu_cores is None


def test_azure_serialization_round_trips(azure_csv):
    first = _normalized(parse_azure_csv(azure_csv))
    text = serialize_azure_csv([project(c) for c in first])

    assert text.splitlines()[0].endswith("Deep link to reservation")
    assert _normalized(parse_azure_csv(text)) == first


def test_sort_by_input_order_unknown_last():
    projections = [{"provider_id": "z"}, {"provider_id": "b"}, {"provider_id": None}, {"provider_id": "a"}]
    ordered = sort_projections(projections, ["b", "a"])
    assert [p["provider_id"] for p in ordered] == ["b", "a", None, "z"]
