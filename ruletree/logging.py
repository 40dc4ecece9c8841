"""Structured logging for validation passes.

Captures, per validation run:
- Layer start/end timestamps (structural, semantic)
- Duration per layer
- Error and warning counts per layer
- Run-level totals
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LayerLog:
    """Log entry for one validation layer."""
    layer: str
    status: str  # "started", "completed"
    timestamp: float = field(default_factory=time.time)
    duration_ms: float | None = None
    error_count: int = 0
    warning_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        d = {
            "layer": self.layer,
            "status": self.status,
            "timestamp": self.timestamp,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
        }
        if self.duration_ms is not None:
            d["duration_ms"] = round(self.duration_ms, 3)
        if self.metadata:
            d["metadata"] = self.metadata
        return d


@dataclass
class ValidationLog:
    """Aggregated log for one validation run."""
    rule_id: str
    strict: bool = False
    draft: bool = False
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    status: str = "running"
    layers: list[LayerLog] = field(default_factory=list)

    @property
    def total_duration_ms(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at) * 1000

    @property
    def error_count(self) -> int:
        return sum(layer.error_count for layer in self.layers)

    @property
    def warning_count(self) -> int:
        return sum(layer.warning_count for layer in self.layers)

    def finish(self, status: str = "valid") -> None:
        self.finished_at = time.time()
        self.status = status

    def to_dict(self) -> dict:
        d = {
            "rule_id": self.rule_id,
            "strict": self.strict,
            "draft": self.draft,
            "started_at": self.started_at,
            "status": self.status,
            "layers": [layer.to_dict() for layer in self.layers],
            "error_count": self.error_count,
            "warning_count": self.warning_count,
        }
        if self.finished_at:
            d["finished_at"] = self.finished_at
            d["total_duration_ms"] = round(self.total_duration_ms, 3)
        return d

    def to_json(self, pretty: bool = False) -> str:
        indent = 2 if pretty else None
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def summary(self) -> str:
        duration = f"{self.total_duration_ms:.1f}ms" if self.total_duration_ms is not None else "running"
        mode = ", ".join(m for m, on in (("strict", self.strict), ("draft", self.draft)) if on) or "default"
        lines = [
            f"Rule: {self.rule_id or '?'} [{self.status}] ({mode})",
            f"Duration: {duration}",
            f"Errors: {self.error_count}, warnings: {self.warning_count}",
            "─" * 50,
        ]
        for layer in self.layers:
            dur = f"{layer.duration_ms:.1f}ms" if layer.duration_ms is not None else "—"
            icon = "✅" if layer.status == "completed" and not layer.error_count else "❌"
            lines.append(f"  {icon} {layer.layer} [{dur}] {layer.error_count} error(s)")
        return "\n".join(lines)


class ValidationLogger:
    """Tracks the layers of one validation run."""

    def __init__(self, rule_id: str = "", strict: bool = False, draft: bool = False):
        self.log = ValidationLog(rule_id=rule_id, strict=strict, draft=draft)
        self._starts: dict[str, float] = {}

    def start_layer(self, layer: str, **metadata) -> None:
        self._starts[layer] = time.time()
        self.log.layers.append(LayerLog(layer=layer, status="started", metadata=metadata))

    def complete_layer(self, layer: str, error_count: int = 0, warning_count: int = 0) -> None:
        entry = self._find(layer)
        if entry:
            entry.status = "completed"
            entry.error_count = error_count
            entry.warning_count = warning_count
            start = self._starts.get(layer)
            if start:
                entry.duration_ms = (time.time() - start) * 1000

    def finish(self, status: str | None = None) -> ValidationLog:
        if status is None:
            status = "invalid" if self.log.error_count else "valid"
        self.log.finish(status)
        return self.log

    def _find(self, layer: str) -> LayerLog | None:
        for entry in reversed(self.log.layers):
            if entry.layer == layer:
                return entry
        return None
