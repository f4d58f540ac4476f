import asyncio

import pytest

from conftest import FakeInventoryAPI, remote_gcp

from commitment_reconciler.engine.normalize import normalize
from commitment_reconciler.engine.reconciler import OutcomeStatus, Reconciler
from commitment_reconciler.errors import APIError, TransportError
from commitment_reconciler.models import CommitmentConfig, DesiredCommitment, MatcherKey
from commitment_reconciler.parsing import parse_remote_commitments
from commitment_reconciler.parsing.gcp import parse_gcp_object

pytestmark = pytest.mark.anyio


def _desired(gcp_cud, n=None, **config):
    obj = dict(gcp_cud) if n is None else dict(gcp_cud, id=str(n), name=f"cud-{n}")
    commitment = normalize(parse_gcp_object(obj))
    cfg = None
    if config:
        matcher = MatcherKey(name=commitment.name, region=commitment.region, type=commitment.type)
        cfg = CommitmentConfig(matcher=matcher, **config)
    return DesiredCommitment(commitment=commitment, config=cfg)


def _observe(api: FakeInventoryAPI):
    outcome = parse_remote_commitments({"commitments": api.commitments}, {"commitmentsAssignments": api.assignments})
    return [normalize(r) for r in outcome.records]


async def test_create_sends_import_payload(fake_api, gcp_cud):
    reconciler = Reconciler(fake_api)
    p = reconciler.plan([_desired(gcp_cud, allowed_usage=0.7, status="ACTIVE")], [])
    report = await reconciler.apply(p)

    assert [o.status for o in report.outcomes] == [OutcomeStatus.OK]
    assert report.outcomes[0].remote_id == "cmt-1"
    created = fake_api.commitments[0]
    assert created["name"] == "test-cud"
    assert created["region"] == "us-central1"
    assert created["allowedUsage"] == 0.7
    assert created["status"] == "Active"
    assert created["scalingStrategy"] == "Default"
    assert created["gcpResourceCudContext"] == {
        "cudId": "123456789",
        "cpu": "10",
        "memoryMb": "20480",
        "plan": "TWELVE_MONTHS",
        "status": "ACTIVE",
        "type": "COMPUTE_OPTIMIZED_C2D",
    }


async def test_create_then_assign(fake_api, gcp_cud):
    reconciler = Reconciler(fake_api)
    p = reconciler.plan([_desired(gcp_cud, prioritization=True, assignments=("c2", "c1"))], [])
    await reconciler.apply(p)

    assert fake_api.mutations == [
        ("create_commitment", "test-cud"),
        ("replace_commitment_assignments", "cmt-1"),
    ]
    assert [(a["clusterId"], a["priority"]) for a in fake_api.assignments] == [("c2", 1), ("c1", 2)]


async def test_second_plan_after_apply_is_empty(fake_api, gcp_cud):
    reconciler = Reconciler(fake_api)
    desired = [
        _desired(gcp_cud, allowed_usage=0.7, assignments=("a", "b")),
        _desired(gcp_cud, 2),
    ]
    report = await reconciler.apply(reconciler.plan(desired, _observe(fake_api)))
    assert len(report.completed) == 2

    again = reconciler.plan(desired, _observe(fake_api))
    assert again.empty
    assert again.drift == []


async def test_update_only_sends_changed_fields(gcp_cud):
    api = FakeInventoryAPI([remote_gcp()])
    reconciler = Reconciler(api)
    p = reconciler.plan([_desired(gcp_cud, allowed_usage=0.25)], _observe(api))
    await reconciler.apply(p)

    assert api.mutations == [("update_commitment", "cmt-1")]
    assert api.commitments[0]["allowedUsage"] == 0.25
    assert api.commitments[0]["status"] == "Active"


async def test_assignment_only_update_skips_patch(gcp_cud):
    api = FakeInventoryAPI([remote_gcp()])
    reconciler = Reconciler(api)
    p = reconciler.plan([_desired(gcp_cud, assignments=("x",))], _observe(api))
    await reconciler.apply(p)
    assert api.mutations == [("replace_commitment_assignments", "cmt-1")]


async def test_authoritative_delete(gcp_cud):
    api = FakeInventoryAPI([remote_gcp(), remote_gcp("cmt-9", name="old", context={"cudId": "9"})])
    reconciler = Reconciler(api, authoritative=True)
    report = await reconciler.apply(reconciler.plan([_desired(gcp_cud)], _observe(api)))

    assert api.mutations == [("delete_commitment", "cmt-9")]
    assert [c["id"] for c in api.commitments] == ["cmt-1"]
    assert report.completed[0].remote_id == "cmt-9"


async def test_api_failure_is_recorded_and_others_continue(fake_api, gcp_cud):
    fake_api.fail_on[("create_commitment", "cud-2")] = 500
    reconciler = Reconciler(fake_api)
    p = reconciler.plan([_desired(gcp_cud, n) for n in (1, 2, 3)], [])
    report = await reconciler.apply(p)

    assert not report.aborted
    assert len(report.completed) == 2
    assert len(report.failed) == 1
    err = report.failed[0].error
    assert isinstance(err, APIError)
    assert err.status == 500
    assert err.expected == 201
    assert "boom" in err.body_excerpt
    assert sorted(c["name"] for c in fake_api.commitments) == ["cud-1", "cud-3"]


async def test_transport_error_aborts_remaining_work(gcp_cud):
    api = FakeInventoryAPI([remote_gcp()])
    api.transport_fail_on.add(("create_commitment", "cud-1"))
    reconciler = Reconciler(api, concurrency=1)
    desired = [_desired(gcp_cud, n) for n in (1, 2, 3)] + [_desired(gcp_cud, allowed_usage=0.1)]
    report = await reconciler.apply(reconciler.plan(desired, _observe(api)))

    assert report.aborted
    assert "connection reset" in report.abort_reason
    assert isinstance(report.failed[0].error, TransportError)
    # cud-2, cud-3 and the update were never submitted
    assert len(report.skipped) == 3
    assert api.mutations == [("create_commitment", "cud-1")]


async def test_cancel_before_apply_skips_everything(fake_api, gcp_cud):
    cancel = asyncio.Event()
    cancel.set()
    reconciler = Reconciler(fake_api)
    report = await reconciler.apply(reconciler.plan([_desired(gcp_cud, n) for n in (1, 2)], []), cancel)

    assert report.cancelled
    assert len(report.skipped) == 2
    assert fake_api.mutations == []


async def test_concurrency_is_bounded(fake_api, gcp_cud):
    fake_api.delay = 0.01
    reconciler = Reconciler(fake_api, concurrency=2)
    report = await reconciler.apply(reconciler.plan([_desired(gcp_cud, n) for n in range(6)], []))

    assert len(report.completed) == 6
    assert fake_api.max_in_flight == 2


async def test_call_deadline_becomes_transport_error(fake_api, gcp_cud):
    fake_api.delay = 0.5
    reconciler = Reconciler(fake_api, call_timeout=0.01)
    report = await reconciler.apply(reconciler.plan([_desired(gcp_cud)], []))

    assert report.aborted
    assert isinstance(report.failed[0].error, TransportError)
    assert "deadline" in str(report.failed[0].error)


async def test_failed_assignment_after_create_keeps_remote_id(fake_api, gcp_cud):
    fake_api.fail_on[("replace_commitment_assignments", "cmt-1")] = 500
    reconciler = Reconciler(fake_api)
    report = await reconciler.apply(reconciler.plan([_desired(gcp_cud, assignments=("c1",))], []))

    assert len(report.failed) == 1
    failed = report.failed[0]
    assert failed.remote_id == "cmt-1"
    assert isinstance(failed.error, APIError)
    assert failed.error.remote_id == "cmt-1"
    assert [c["id"] for c in fake_api.commitments] == ["cmt-1"]
