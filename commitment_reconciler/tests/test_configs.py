import json

import pytest

from commitment_reconciler.configs import load_configs, parse_config, parse_configs
from commitment_reconciler.errors import InvalidConfigError
from commitment_reconciler.models import MatcherKey

YAML_CONFIGS = """
commitment_configs:
  - match_name: test-cud
    match_region: us-central1
    match_type: COMPUTE_OPTIMIZED_C2D
    allowed_usage: 0.7
    prioritization: true
    status: Active
    scaling_strategy: cpubased
    assignments:
      - cluster-a
      - cluster_id: cluster-b
  - matcher:
      name: VM_RI_01
      region: EastUS
"""


def test_load_yaml(tmp_path):
    path = tmp_path / "configs.yaml"
    path.write_text(YAML_CONFIGS, encoding="utf-8")
    configs = load_configs(path)

    assert len(configs) == 2
    first, second = configs
    assert first.matcher == MatcherKey(name="test-cud", region="us-central1", type="COMPUTE_OPTIMIZED_C2D")
    assert first.allowed_usage == 0.7
    assert first.prioritization is True
    assert first.status == "ACTIVE"
    assert first.scaling_strategy == "CPUBased"
    assert first.assignments == ("cluster-a", "cluster-b")

    assert second.matcher.region == "eastus"
    assert second.matcher.type is None
    assert second.allowed_usage is None
    assert second.assignments is None


def test_load_json_bare_list(tmp_path):
    path = tmp_path / "configs.json"
    path.write_text(json.dumps([{"match_name": "a", "match_region": "eastus", "status": "inactive"}]))
    configs = load_configs(path)
    assert configs[0].status == "INACTIVE"


def test_unsupported_suffix(tmp_path):
    path = tmp_path / "configs.toml"
    path.write_text("")
    with pytest.raises(InvalidConfigError):
        load_configs(path)


def test_empty_document_means_no_configs():
    assert parse_configs(None) == []
    assert parse_configs({"configs": []}) == []


@pytest.mark.parametrize(
    "entry",
    [
        {"match_region": "eastus"},
        {"match_name": "a", "allowed_usage": 1.2},
        {"match_name": "a", "allowed_usage": "lots"},
        {"match_name": "a", "allowed_usage": True},
        {"match_name": "a", "status": "Paused"},
        {"match_name": "a", "scaling_strategy": "Fastest"},
        {"match_name": "a", "prioritization": "yes"},
        {"match_name": "a", "assignments": "cluster-a"},
        {"match_name": "a", "assignments": [{"priority": 1}]},
        {"matcher": "a"},
    ],
)
def test_invalid_entries(entry):
    with pytest.raises(InvalidConfigError):
        parse_config(entry)


def test_error_names_the_entry_position():
    with pytest.raises(InvalidConfigError) as exc:
        parse_configs([{"match_name": "ok"}, "not-a-mapping"])
    assert "configs[1]" in str(exc.value)


@pytest.mark.parametrize(
    "name, text",
    [
        ("configs.yaml", "commitment_configs: [unclosed\n"),
        ("configs.json", '[{"match_name": "a",'),
    ],
)
def test_malformed_file_is_an_invalid_config(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    with pytest.raises(InvalidConfigError) as exc:
        load_configs(path)
    assert "cannot parse config file" in str(exc.value)
