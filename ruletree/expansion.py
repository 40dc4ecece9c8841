"""Expansion state: which tree nodes the editor shows open or closed.

One ``ExpansionState`` belongs to one editing session. It stores explicit
per-path overrides and resolves every other path through a default policy:

- a new document (``is_new=True``) shows every node expanded;
- a loaded document shows only the root container (``"<structure>-0"``)
  expanded and every other node collapsed.

The root container is a policy floor rather than a toggle target:
``collapse_all`` clears overrides and switches the default to collapsed,
which still leaves the root resolving to expanded.

Not safe for concurrent mutation; the owning session serializes access.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from .paths import is_ancestor, root_path


@dataclass
class ExpansionState:
    """Per-path expanded/collapsed store with a default-visibility policy."""
    root_structure_type: str
    is_new: bool
    _overrides: dict[str, bool] = field(default_factory=dict, init=False, repr=False)
    _default_expanded: bool = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._default_expanded = self.is_new

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    @property
    def root_path(self) -> str:
        return root_path(self.root_structure_type)

    @property
    def overrides(self) -> Mapping[str, bool]:
        return MappingProxyType(self._overrides)

    def default_for(self, path: str) -> bool:
        """What ``path`` resolves to when it has no explicit entry."""
        if self._default_expanded:
            return True
        return path == self.root_path

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_expanded(self, path: str) -> bool:
        if path in self._overrides:
            return self._overrides[path]
        return self.default_for(path)

    def expanded_paths(self, paths: Iterable[str]) -> list[str]:
        """The subset of ``paths`` that currently resolve to expanded, in order."""
        return [p for p in paths if self.is_expanded(p)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_expansion(self, path: str, expanded: bool) -> None:
        self._overrides[path] = bool(expanded)

    def toggle_expansion(self, path: str) -> bool:
        """Flip the resolved value of ``path``, store it, and return it."""
        value = not self.is_expanded(path)
        self._overrides[path] = value
        return value

    def expand_all(self) -> None:
        self._overrides.clear()
        self._default_expanded = True

    def collapse_all(self) -> None:
        self._overrides.clear()
        self._default_expanded = False

    def reset(self, root_structure_type: str, is_new: bool) -> None:
        """Forget every override and start over for another document or mode."""
        self.root_structure_type = root_structure_type
        self.is_new = is_new
        self._overrides.clear()
        self._default_expanded = is_new

    def discard_subtree(self, path: str) -> int:
        """Drop overrides for ``path`` and everything beneath it.

        Used after a node is deleted so stale entries do not leak onto the
        node that later takes over its path. Returns how many were dropped.
        """
        stale = [p for p in self._overrides if p == path or is_ancestor(path, p)]
        for p in stale:
            del self._overrides[p]
        return len(stale)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Serializable state for external storage."""
        return {
            "rootStructureType": self.root_structure_type,
            "isNew": self.is_new,
            "defaultExpanded": self._default_expanded,
            "overrides": dict(self._overrides),
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> ExpansionState:
        state = cls(
            root_structure_type=data["rootStructureType"],
            is_new=bool(data["isNew"]),
        )
        if data.get("defaultExpanded") is not None:
            state._default_expanded = bool(data["defaultExpanded"])
        state._overrides.update({str(k): bool(v) for k, v in (data.get("overrides") or {}).items()})
        return state
