"""Append-only JSONL trace of a reconcile cycle, one event per phase."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class TraceLogger:
    path: Path
    enabled: bool = True
    cycle_id: Optional[str] = None
    _ready: bool = field(default=False, init=False, repr=False)

    def _ensure_parent(self) -> None:
        if not self._ready:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._ready = True

    def log(self, phase: str, payload: Dict[str, Any], *, commitment_key: Optional[str] = None) -> None:
        if not self.enabled:
            return
        self._ensure_parent()
        event: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "phase": phase,
            "payload": payload,
        }
        if self.cycle_id:
            event["cycle_id"] = self.cycle_id
        if commitment_key:
            event["commitment_key"] = commitment_key

        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")

    def read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as handle:
            return [json.loads(line) for line in handle if line.strip()]


def build_trace_logger(path: Path | str, enabled: bool = True, cycle_id: Optional[str] = None) -> TraceLogger:
    return TraceLogger(Path(path), enabled=enabled, cycle_id=cycle_id)


__all__ = ["TraceLogger", "build_trace_logger"]
