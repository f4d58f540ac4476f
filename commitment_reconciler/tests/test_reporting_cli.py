import json

import pytest

from conftest import FakeInventoryAPI

from commitment_reconciler import cli
from commitment_reconciler.engine.cycle import CycleInputs, run_cycle
from commitment_reconciler.reporting.format import render_report


class FakeClient(FakeInventoryAPI):
    instances = []

    def __init__(self, *args, **kwargs):
        super().__init__()
        FakeClient.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None


@pytest.fixture
def fake_client(monkeypatch, tmp_path):
    FakeClient.instances = []
    monkeypatch.setattr(cli, "CommitmentsClient", FakeClient)
    monkeypatch.setattr(cli, "RUNS_DIR", str(tmp_path / "runs"))
    return FakeClient


def _exit_code(argv):
    with pytest.raises(SystemExit) as exc:
        cli.main(argv)
    return exc.value.code


@pytest.mark.anyio
async def test_render_report_dry_run(fake_api, gcp_cud):
    report = await run_cycle(fake_api, CycleInputs(gcp_cuds=[gcp_cud]), dry_run=True)
    text = render_report(report)

    assert "**Result:** Done (dry run)" in text
    assert "| CREATE |" in text
    assert "| planned |" in text
    assert "| test-cud | gcp | us-central1 | COMPUTE_OPTIMIZED_C2D | 10 | 20480 |" in text


@pytest.mark.anyio
async def test_render_report_lists_errors(fake_api, gcp_cud):
    fake_api.fail_on[("create_commitment", "test-cud")] = 409
    report = await run_cycle(fake_api, CycleInputs(gcp_cuds=[gcp_cud]))
    text = render_report(report)

    assert "FAILED (409)" in text
    assert "## Errors and warnings" in text
    assert "| error | api_error |" in text


def test_cli_done_writes_reports(fake_client, tmp_path, gcp_cud):
    cuds = tmp_path / "cuds.json"
    cuds.write_text(json.dumps([gcp_cud]), encoding="utf-8")
    configs = tmp_path / "configs.yaml"
    configs.write_text("- match_name: test-cud\n  match_region: us-central1\n  allowed_usage: 0.5\n")

    code = _exit_code(["--gcp-cuds", str(cuds), "--configs", str(configs), "--output-prefix", "t1"])

    assert code == 0
    run_dir = tmp_path / "runs" / "t1"
    data = json.loads((run_dir / "report.json").read_text(encoding="utf-8"))
    assert data["state"] == "Done"
    assert data["commitments"][0]["allowed_usage"] == 0.5
    assert (run_dir / "report.md").exists()
    assert (run_dir / "trace.jsonl").exists()
    assert fake_client.instances[0].commitments[0]["allowedUsage"] == 0.5


def test_cli_partial_failure_exit_code(fake_client, monkeypatch, tmp_path, azure_csv):
    original = FakeClient.__init__

    def failing_init(self, *args, **kwargs):
        original(self, *args, **kwargs)
        self.fail_on[("create_commitment", "VM_RI_02")] = 500

    monkeypatch.setattr(FakeClient, "__init__", failing_init)
    path = tmp_path / "reservations.csv"
    path.write_text(azure_csv, encoding="utf-8")

    assert _exit_code(["--azure-csv", str(path), "--output-prefix", "t2"]) == 2


def test_cli_aborted_exit_code(fake_client, tmp_path, gcp_cud):
    gcp_cud["resources"][0]["amount"] = "invalid"
    cuds = tmp_path / "cuds.json"
    cuds.write_text(json.dumps([gcp_cud]), encoding="utf-8")

    assert _exit_code(["--gcp-cuds", str(cuds), "--output-prefix", "t3", "--no-trace"]) == 1
    assert fake_client.instances[0].calls == []
    assert not (tmp_path / "runs" / "t3" / "trace.jsonl").exists()


def test_cli_requires_an_input(fake_client):
    assert _exit_code(["--output-prefix", "t4"]) == 1


def test_cli_invalid_configs(fake_client, tmp_path, gcp_cud):
    cuds = tmp_path / "cuds.json"
    cuds.write_text(json.dumps([gcp_cud]), encoding="utf-8")
    configs = tmp_path / "configs.yaml"
    configs.write_text("- match_name: test-cud\n  allowed_usage: 3\n")

    assert _exit_code(["--gcp-cuds", str(cuds), "--configs", str(configs), "--output-prefix", "t5"]) == 1


def test_cli_generic_reservations_overwrite(fake_client, tmp_path):
    path = tmp_path / "generic.csv"
    path.write_text("name,provider,region,instance_type,count\nr1,aws,us-east-1,m5.large,2\n", encoding="utf-8")

    code = _exit_code(
        ["--reservations-csv", str(path), "--organization-id", "org-1", "--output-prefix", "t6"]
    )

    assert code == 0
    sent = fake_client.instances[0].reservations["org-1"]
    assert sent == [{"name": "r1", "provider": "aws", "region": "us-east-1", "instanceType": "m5.large", "count": 2}]


def test_cli_generic_reservations_needs_organization(fake_client, tmp_path):
    path = tmp_path / "generic.csv"
    path.write_text("name,provider\nr1,aws\n", encoding="utf-8")
    assert _exit_code(["--reservations-csv", str(path), "--output-prefix", "t7"]) == 1


def test_cli_missing_input_file(fake_client, tmp_path):
    missing = tmp_path / "nope.json"
    assert _exit_code(["--gcp-cuds", str(missing), "--output-prefix", "t8"]) == 1
    assert fake_client.instances == []


def test_cli_malformed_configs_file(fake_client, tmp_path, gcp_cud):
    cuds = tmp_path / "cuds.json"
    cuds.write_text(json.dumps([gcp_cud]), encoding="utf-8")
    configs = tmp_path / "configs.yaml"
    configs.write_text("commitment_configs: [unclosed\n", encoding="utf-8")

    assert _exit_code(["--gcp-cuds", str(cuds), "--configs", str(configs), "--output-prefix", "t9"]) == 1
    assert fake_client.instances == []


def test_cli_missing_generic_reservations_file(fake_client, tmp_path):
    missing = tmp_path / "generic.csv"
    code = _exit_code(
        ["--reservations-csv", str(missing), "--organization-id", "org-1", "--output-prefix", "t10"]
    )
    assert code == 1
    assert fake_client.instances == []
