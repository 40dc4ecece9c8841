"""Naming engine: hierarchical display names derived from path keys.

Names follow the pattern ``"<Label> <parent number>.<ordinal>"``::

    Condition Group 2
      Condition 2.1
      Condition 2.2

Every function here is pure: it reads only its arguments and returns a new
name (or a renamed copy of a tree). Given the same tree shape the output is
always the same, and ``renumber_tree`` is idempotent.
"""

from __future__ import annotations

import copy
import re
from typing import Any, Iterable, TypeVar

from .errors import NamingContractError
from .nodes import (
    CASE,
    CONDITION,
    CONDITION_GROUP,
    EXPRESSION,
    WHEN_CLAUSE,
)
from .paths import depth, iter_node_paths, parent_number, position_in_parent

TYPE_LABELS: dict[str, str] = {
    "condition": "Condition",
    "conditionGroup": "Condition Group",
    "ruleRef": "Condition",
    "expression": "Expression",
    "expressionGroup": "Expression Group",
}

_DEFAULT_LABELS = frozenset(TYPE_LABELS.values())

_NAME_RE = re.compile(r"^(?P<label>.+?)(?:\s+(?P<number>\d+(?:\.\d+)*))?\s*$")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Name parsing
# ---------------------------------------------------------------------------

def type_label(node_type: str) -> str:
    try:
        return TYPE_LABELS[node_type]
    except KeyError:
        raise NamingContractError(f"No naming label for node type '{node_type}'") from None


def split_name(name: str) -> tuple[str, str | None]:
    """Split ``"Condition Group 2.1"`` into ``("Condition Group", "2.1")``."""
    m = _NAME_RE.match(name or "")
    if not m:
        return "", None
    return m.group("label"), m.group("number")


def is_default_name(name: str) -> bool:
    """True when ``name`` was generated by this engine rather than typed by a user."""
    label, _ = split_name(name)
    return label in _DEFAULT_LABELS


def format_name(label: str, parent_num: str, ordinal: int) -> str:
    prefix = f"{parent_num}." if parent_num else ""
    return f"{label} {prefix}{ordinal}"


def positional_name(node_type: str, path: str) -> str:
    """Name derived purely from the position encoded in ``path``."""
    label = type_label(node_type)
    position = position_in_parent(path)
    if position is None:
        return label
    return format_name(label, parent_number(path), position)


# ---------------------------------------------------------------------------
# Names for edits
# ---------------------------------------------------------------------------

def next_number_at_path(path: str, siblings: Iterable[Any] = ()) -> int:
    """One past the highest sibling ordinal numbered under the same parent.

    Siblings whose names carry foreign numbering (or none) are ignored.
    """
    scope = parent_number(path)
    highest = 0
    for sibling in siblings:
        _, number = split_name(_sibling_name(sibling))
        if number is None:
            continue
        head, _, last = number.rpartition(".")
        if head != scope:
            continue
        highest = max(highest, int(last))
    return highest + 1


def name_for_new(node_type: str, path: str, siblings: Iterable[Any] = ()) -> str:
    """Name for a node about to be inserted at ``path``."""
    siblings = list(siblings)
    if depth(path) <= 1 and siblings:
        raise NamingContractError("The root container has no siblings", path=path)
    label = type_label(node_type)
    return format_name(label, parent_number(path), next_number_at_path(path, siblings))


def rename_on_type_change(
    current_name: str,
    old_type: str,
    new_type: str,
    path: str = "",
    node_id: str | None = None,
) -> str:
    """Swap the type label of a generated name, keeping its number.

    Names a user typed are kept as-is. A node switched to a rule reference
    takes the referenced rule's id once one is selected.
    """
    new_label = type_label(new_type)
    if new_type == "ruleRef" and node_id:
        return str(node_id)
    label, number = split_name(current_name)
    if current_name and label in _DEFAULT_LABELS:
        if number:
            return f"{new_label} {number}"
        return positional_name(new_type, path)
    if current_name and old_type != "ruleRef":
        return current_name
    return positional_name(new_type, path)


def result_name(when_index: int) -> str:
    return f"Result {when_index + 1}"


def else_name() -> str:
    return "Else"


# ---------------------------------------------------------------------------
# Whole-tree pass
# ---------------------------------------------------------------------------

def renumber_tree(tree: T, keep_custom: bool = False) -> T:
    """Return a copy of ``tree`` with every name re-derived from its position.

    Nodes are visited in document order. With ``keep_custom`` names a user
    typed survive and only generated names are rewritten.
    """
    renamed = copy.deepcopy(tree)
    for path, node in iter_node_paths(renamed):
        kind = node.kind
        if kind in (CONDITION, CONDITION_GROUP):
            node.name = _rename(node.name, positional_name(kind, path), keep_custom)
        elif kind == WHEN_CLAUSE:
            when = node.when
            when.name = _rename(when.name, positional_name(when.kind, path), keep_custom)
            index = (position_in_parent(path) or 1) - 1
            node.result_name = _rename(node.result_name, result_name(index), keep_custom)
            if node.then.kind == EXPRESSION:
                node.then.name = node.result_name
        elif kind == CASE:
            node.else_name = _rename(node.else_name, else_name(), keep_custom)
            if node.else_clause is not None and node.else_clause.kind == EXPRESSION:
                node.else_clause.name = node.else_name
    return renamed


def _rename(current: str | None, canonical: str, keep_custom: bool) -> str:
    if keep_custom and current and not _is_generated(current):
        return current
    return canonical


def _is_generated(name: str) -> bool:
    label, _ = split_name(name)
    return label in _DEFAULT_LABELS or label in ("Result", "Else")


def _sibling_name(sibling: Any) -> str:
    if sibling is None:
        return ""
    if isinstance(sibling, str):
        return sibling
    if isinstance(sibling, dict):
        return sibling.get("name") or ""
    name = getattr(sibling, "name", None)
    if name is None and not hasattr(sibling, "name"):
        raise NamingContractError(f"Sibling of type {type(sibling).__name__} has no name")
    return name or ""


# ---------------------------------------------------------------------------
# Session service
# ---------------------------------------------------------------------------

class Namer:
    """Naming operations bundled for one editing session.

    Holds no state; it exists so a session can hand a single object to
    whatever needs names.
    """

    def name_for_new(self, node_type: str, path: str, siblings: Iterable[Any] = ()) -> str:
        return name_for_new(node_type, path, siblings)

    def next_number_at_path(self, path: str, siblings: Iterable[Any] = ()) -> int:
        return next_number_at_path(path, siblings)

    def rename(
        self,
        current_name: str,
        old_type: str,
        new_type: str,
        path: str = "",
        node_id: str | None = None,
    ) -> str:
        return rename_on_type_change(current_name, old_type, new_type, path, node_id)

    def result_name(self, when_index: int) -> str:
        return result_name(when_index)

    def else_name(self) -> str:
        return else_name()

    def renumber(self, tree: T, keep_custom: bool = False) -> T:
        return renumber_tree(tree, keep_custom)
