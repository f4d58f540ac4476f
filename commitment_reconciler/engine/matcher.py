"""Join user CommitmentConfigs to imported commitments by (name, region, type).

Configs are processed in declaration order and commitments are considered in
parser output order, so "first" is always well defined. Every config error is
collected so the cycle can report them together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..configs import canonical_config
from ..errors import (
    DuplicateConfigError,
    InvalidConfigError,
    ReconcileError,
    UnmatchedConfigError,
    duplicate_match_warning,
)
from ..models import GCP, Commitment, CommitmentConfig, DesiredCommitment, MatcherKey, key_for
from .diagnostics import Diagnostics

_LOGGER = logging.getLogger(__name__)


def _describe(commitment: Commitment, position: int) -> str:
    # Candidates share the matcher key; the provider id and input position tell them apart.
    return f"{commitment.provider}/{commitment.provider_id or '-'} (input #{position + 1})"


@dataclass
class MatchResult:
    desired: List[DesiredCommitment] = field(default_factory=list)
    errors: List[ReconcileError] = field(default_factory=list)


def match_configs(
    commitments: Sequence[Commitment],
    configs: Sequence[CommitmentConfig],
    diagnostics: Optional[Diagnostics] = None,
) -> MatchResult:
    keys: List[MatcherKey] = [key_for(c) for c in commitments]
    attached: Dict[int, CommitmentConfig] = {}
    seen: Dict[MatcherKey, int] = {}
    result = MatchResult()

    for position, config in enumerate(configs):
        matcher = config.matcher
        try:
            config = canonical_config(config)
        except InvalidConfigError as exc:
            result.errors.append(exc)
            continue

        if matcher in seen:
            result.errors.append(DuplicateConfigError(matcher))
            continue
        seen[matcher] = position

        candidates = [i for i, key in enumerate(keys) if matcher.matches(key)]
        if not candidates:
            result.errors.append(UnmatchedConfigError(matcher))
            continue

        if matcher.region is None and any(commitments[i].provider == GCP for i in candidates):
            result.errors.append(InvalidConfigError(matcher, "region is required for GCP commitments"))
            continue

        unclaimed = [i for i in candidates if i not in attached]
        if not unclaimed:
            result.errors.append(
                DuplicateConfigError(matcher, "commitment already assigned to a configuration")
            )
            continue

        chosen = unclaimed[0]
        attached[chosen] = config
        if len(candidates) > 1 and diagnostics is not None:
            others = [_describe(commitments[i], i) for i in candidates if i != chosen]
            diagnostics.warn(duplicate_match_warning(matcher, _describe(commitments[chosen], chosen), others))
        _LOGGER.debug("Config %s attached to %s", matcher, keys[chosen])

    result.desired = [
        DesiredCommitment(commitment=c, config=attached.get(i)) for i, c in enumerate(commitments)
    ]
    return result
