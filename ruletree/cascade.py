"""Collapse cascades of related errors for display.

One broken node often yields a shape complaint on the node itself plus the
precise complaints on its children. The children say what to fix, so the
parent's shape error is hidden. The validator never filters; this is for
the presentation layer only.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import SHAPE_MISMATCH, ValidationError


@dataclass
class FilterResult:
    errors: list[ValidationError] = field(default_factory=list)
    suppressed_count: int = 0

    @property
    def has_hidden_errors(self) -> bool:
        return self.suppressed_count > 0


def filter_cascading(errors: list[ValidationError]) -> FilterResult:
    """Drop duplicates and parent shape errors explained by their descendants.

    Order is preserved.
    """
    if not errors:
        return FilterResult([], 0)

    unique: list[ValidationError] = []
    seen: set[ValidationError] = set()
    for error in errors:
        if error not in seen:
            seen.add(error)
            unique.append(error)

    paths = {e.path or "" for e in unique}
    kept = [
        e for e in unique
        if not (e.error_type == SHAPE_MISMATCH and _has_descendant(e.path or "", paths))
    ]
    return FilterResult(kept, len(errors) - len(kept))


def _has_descendant(path: str, paths: set[str]) -> bool:
    if path in ("", "$"):
        return any(p not in ("", "$") for p in paths)
    return any(p.startswith(path + ".") or p.startswith(path + "[") for p in paths)
