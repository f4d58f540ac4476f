from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..errors import ReconcileError, ReconcileWarning

_LOGGER = logging.getLogger(__name__)


@dataclass
class Diagnostics:
    """Per-cycle channel for warnings and non-raised errors."""

    warnings: List[ReconcileWarning] = field(default_factory=list)
    errors: List[ReconcileError] = field(default_factory=list)

    def warn(self, warning: ReconcileWarning) -> None:
        _LOGGER.warning("%s", warning.message)
        self.warnings.append(warning)

    def error(self, error: ReconcileError) -> None:
        _LOGGER.error("%s", error)
        self.errors.append(error)

    def extend_errors(self, errors: List[ReconcileError]) -> None:
        for e in errors:
            self.error(e)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "warnings": [w.to_dict() for w in self.warnings],
            "errors": [e.to_dict() for e in self.errors],
        }
