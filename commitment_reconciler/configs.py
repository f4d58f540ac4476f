"""Loader for user commitment configs (YAML or JSON).

Accepted shapes:

    commitment_configs:            # or "configs", or a bare top-level list
      - match_name: test-cud
        match_region: us-central1
        match_type: COMPUTE_OPTIMIZED_C2D
        allowed_usage: 0.7
        prioritization: true
        status: Active
        scaling_strategy: Default
        assignments: [cluster-a, {cluster_id: cluster-b}]

A nested ``matcher: {name, region, type}`` block may replace the match_* keys.
Invalid entries raise InvalidConfigError with the entry's position.
"""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .config import COMMITMENT_STATUSES, SCALING_STRATEGIES
from .errors import InvalidConfigError
from .models import CommitmentConfig, MatcherKey


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _matcher(obj: Dict[str, Any], *, ctx: str) -> MatcherKey:
    block = obj.get("matcher")
    if block is not None:
        if isinstance(block, list) and len(block) == 1:
            block = block[0]
        if not isinstance(block, dict):
            raise InvalidConfigError(ctx, "matcher must be an object")
        name, region, typ = block.get("name"), block.get("region"), block.get("type")
    else:
        name, region, typ = obj.get("match_name"), obj.get("match_region"), obj.get("match_type")

    name = _opt_str(name)
    if name is None:
        raise InvalidConfigError(ctx, "matcher name is required")
    return MatcherKey(name=name, region=_opt_str(region), type=_opt_str(typ))


def _assignments(raw: Any, *, ctx: str) -> Optional[Tuple[str, ...]]:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise InvalidConfigError(ctx, "assignments must be a list")
    out: List[str] = []
    for item in raw:
        if isinstance(item, dict):
            item = item.get("cluster_id") or item.get("clusterId")
        cluster = _opt_str(item)
        if cluster is None:
            raise InvalidConfigError(ctx, "assignment without cluster_id")
        out.append(cluster)
    return tuple(out)


def canonical_status(value: Any, *, ctx: Any) -> Optional[str]:
    status = _opt_str(value)
    if status is None:
        return None
    upper = status.upper()
    if upper not in COMMITMENT_STATUSES:
        raise InvalidConfigError(ctx, f"status must be one of Active/Inactive, got {status!r}")
    return upper


def canonical_scaling_strategy(value: Any, *, ctx: Any) -> Optional[str]:
    strategy = _opt_str(value)
    if strategy is None:
        return None
    for known in SCALING_STRATEGIES:
        if known.lower() == strategy.lower():
            return known
    raise InvalidConfigError(ctx, f"scaling_strategy must be one of {', '.join(SCALING_STRATEGIES)}")


def check_allowed_usage(value: Any, *, ctx: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidConfigError(ctx, "allowed_usage must be a number")
    try:
        usage = float(value)
    except (TypeError, ValueError):
        raise InvalidConfigError(ctx, f"allowed_usage must be a number, got {value!r}") from None
    if not 0.0 <= usage <= 1.0:
        raise InvalidConfigError(ctx, f"allowed_usage must be within [0, 1], got {usage}")
    return usage


def parse_config(obj: Any, *, ctx: str = "config") -> CommitmentConfig:
    if not isinstance(obj, dict):
        raise InvalidConfigError(ctx, "config entry must be a mapping")
    matcher = _matcher(obj, ctx=ctx)
    prioritization = obj.get("prioritization")
    if prioritization is not None and not isinstance(prioritization, bool):
        raise InvalidConfigError(matcher, "prioritization must be a boolean")
    return CommitmentConfig(
        matcher=matcher,
        prioritization=prioritization,
        allowed_usage=check_allowed_usage(obj.get("allowed_usage"), ctx=matcher),
        status=canonical_status(obj.get("status"), ctx=matcher),
        scaling_strategy=canonical_scaling_strategy(obj.get("scaling_strategy"), ctx=matcher),
        assignments=_assignments(obj.get("assignments"), ctx=str(matcher)),
    )


def validate_config(config: CommitmentConfig) -> None:
    """Re-check a config built in code (the loader already enforces this)."""
    if not (config.matcher.name or "").strip():
        raise InvalidConfigError(config.matcher, "matcher name is required")
    check_allowed_usage(config.allowed_usage, ctx=config.matcher)
    canonical_status(config.status, ctx=config.matcher)
    canonical_scaling_strategy(config.scaling_strategy, ctx=config.matcher)


def canonical_config(config: CommitmentConfig) -> CommitmentConfig:
    """Validated copy with status / scaling strategy in canonical casing."""
    validate_config(config)
    return replace(
        config,
        status=canonical_status(config.status, ctx=config.matcher),
        scaling_strategy=canonical_scaling_strategy(config.scaling_strategy, ctx=config.matcher),
    )


def parse_configs(data: Any) -> List[CommitmentConfig]:
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("commitment_configs", data.get("configs", []))
    if not isinstance(data, list):
        raise InvalidConfigError("configs", "top-level configs must be a list")
    return [parse_config(item, ctx=f"configs[{i}]") for i, item in enumerate(data)]


def load_configs(path: Union[str, Path]) -> List[CommitmentConfig]:
    path = Path(path)
    raw = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(raw)
        elif path.suffix.lower() == ".json":
            data = json.loads(raw)
        else:
            raise InvalidConfigError(str(path), "unsupported config file type (expected .yaml, .yml or .json)")
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise InvalidConfigError(str(path), f"cannot parse config file: {exc}") from exc
    return parse_configs(data)
