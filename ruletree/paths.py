"""Path keys: positional addresses for nodes in a rule tree.

A path key is an ordered sequence of ``(tag, index)`` pairs serialized as
alternating tokens joined by ``-``::

    condition-0-conditionGroup-1-condition-0

Keys identify a structural position at a point in time. They are recomputed
after every structural edit and never stored on nodes.

The algebra helpers (``parent_ordinal_chain``, ``parent_number``,
``position_in_parent``) are lenient: malformed input yields an empty number or
``None``. ``PathKey.parse`` is strict and raises ``PathError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from .errors import PathError
from .nodes import (
    CASE,
    CONDITION,
    CONDITION_GROUP,
    EXPRESSION,
    EXPRESSION_GROUP,
    WHEN_CLAUSE,
    Node,
    Rule,
)

SEPARATOR = "-"


# ---------------------------------------------------------------------------
# Strict codec
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PathKey:
    """A parsed path key."""
    segments: tuple[tuple[str, int], ...]

    @classmethod
    def parse(cls, raw: str) -> PathKey:
        if not raw:
            raise PathError("Empty path key")
        tokens = raw.split(SEPARATOR)
        if len(tokens) % 2:
            raise PathError(f"Path key has an odd number of tokens: {raw!r}")
        segments = []
        for i in range(0, len(tokens), 2):
            tag, index = tokens[i], tokens[i + 1]
            if not tag:
                raise PathError(f"Empty tag at token {i}", path=raw)
            if not index.isdigit():
                raise PathError(f"Index {index!r} is not a non-negative integer", path=raw)
            segments.append((tag, int(index)))
        return cls(tuple(segments))

    @classmethod
    def root(cls, tag: str) -> PathKey:
        return cls(((tag, 0),))

    def __str__(self) -> str:
        return SEPARATOR.join(f"{tag}{SEPARATOR}{index}" for tag, index in self.segments)

    @property
    def depth(self) -> int:
        return len(self.segments)

    @property
    def last(self) -> tuple[str, int]:
        return self.segments[-1]

    def child(self, tag: str, index: int) -> PathKey:
        if SEPARATOR in tag or not tag:
            raise PathError(f"Invalid tag {tag!r}")
        if index < 0:
            raise PathError(f"Negative index {index}")
        return PathKey(self.segments + ((tag, index),))

    def parent(self) -> PathKey | None:
        if len(self.segments) <= 1:
            return None
        return PathKey(self.segments[:-1])

    def is_ancestor_of(self, other: PathKey) -> bool:
        n = len(self.segments)
        return len(other.segments) > n and other.segments[:n] == self.segments


# ---------------------------------------------------------------------------
# String helpers
# ---------------------------------------------------------------------------

def root_path(structure: str) -> str:
    """Path of the root container for a document of the given structure."""
    return f"{structure}{SEPARATOR}0"


def join_path(segments: Iterable[tuple[str, int]]) -> str:
    """Serialize ``(tag, index)`` pairs; an empty sequence gives ``""``."""
    return SEPARATOR.join(f"{tag}{SEPARATOR}{index}" for tag, index in segments)


def child_path(path: str, tag: str, index: int) -> str:
    """Path of the ``index``-th ``tag`` child under ``path``."""
    if SEPARATOR in tag or not tag:
        raise PathError(f"Invalid tag {tag!r}")
    suffix = f"{tag}{SEPARATOR}{index}"
    return f"{path}{SEPARATOR}{suffix}" if path else suffix


def parent_path(path: str) -> str:
    """Drop the last ``(tag, index)`` pair; empty for root or malformed keys."""
    tokens = path.split(SEPARATOR) if path else []
    if len(tokens) <= 2:
        return ""
    return SEPARATOR.join(tokens[:-2])


def depth(path: str) -> int:
    return len(path.split(SEPARATOR)) // 2 if path else 0


def is_ancestor(ancestor: str, path: str) -> bool:
    return bool(ancestor) and path.startswith(ancestor + SEPARATOR)


# ---------------------------------------------------------------------------
# Numbering algebra
# ---------------------------------------------------------------------------

def parent_ordinal_chain(path: str) -> list[int]:
    """1-based sibling numbers for each ``(tag, index)`` pair along ``path``.

    A missing or non-numeric index halts the chain at that segment.
    """
    if not path:
        return []
    tokens = path.split(SEPARATOR)
    chain: list[int] = []
    for i in range(0, len(tokens), 2):
        index = tokens[i + 1] if i + 1 < len(tokens) else None
        if index is None or not index.isdigit():
            break
        chain.append(int(index) + 1)
    return chain


def parent_number(path: str) -> str:
    """Dotted number of the enclosing numbered ancestor.

    The root container carries no number, so both self and root are dropped:
    ``condition-0-condition-1-condition-2`` -> ``"2"``.
    """
    chain = parent_ordinal_chain(path)
    if len(chain) <= 2:
        return ""
    return ".".join(str(n) for n in chain[1:-1])


def position_in_parent(path: str) -> int | None:
    """1-based position of the node among its siblings; None at the root."""
    chain = parent_ordinal_chain(path)
    if len(chain) <= 1 or len(chain) != depth(path):
        return None
    return chain[-1]


def child_number(path: str) -> str:
    """The number a node at ``path`` passes down to its own children."""
    position = position_in_parent(path)
    if position is None:
        return ""
    pn = parent_number(path)
    return f"{pn}.{position}" if pn else str(position)


# ---------------------------------------------------------------------------
# Tree walk
# ---------------------------------------------------------------------------

def iter_node_paths(root: Rule | Node, root_tag: str | None = None) -> Iterator[tuple[str, Node]]:
    """Yield ``(path, node)`` for every node in document order.

    A node comes before its children and children follow list order. For a
    ``Rule`` the root tag is the document structure.
    """
    if isinstance(root, Rule):
        if root.definition is None:
            return
        yield from _walk(root.definition, root_path(root.structure))
        return
    tag = root_tag or _default_tag(root)
    yield from _walk(root, root_path(tag))


def _default_tag(node: Node) -> str:
    if node.kind == CASE:
        return "case"
    if node.kind in (EXPRESSION, EXPRESSION_GROUP):
        return "expression"
    return "condition"


def _walk(node: Node, path: str) -> Iterator[tuple[str, Node]]:
    yield path, node
    if node.kind == WHEN_CLAUSE:
        # The WHEN condition shares the clause's path, so its children
        # number under the clause ("Condition 1" -> "Condition 1.1").
        yield from _walk_children(node.when, path)
        yield from _walk(node.then, child_path(path, "then", 0))
    else:
        yield from _walk_children(node, path)


def _walk_children(node: Node, path: str) -> Iterator[tuple[str, Node]]:
    kind = node.kind
    if kind == CONDITION_GROUP:
        if node.rule_ref is None:
            for i, child in enumerate(node.conditions):
                yield from _walk(child, child_path(path, child.kind, i))
    elif kind == CONDITION:
        if node.rule_ref is None:
            if node.left is not None:
                yield from _walk(node.left, child_path(path, "left", 0))
            if isinstance(node.right, list):
                for j, operand in enumerate(node.right):
                    yield from _walk(operand, child_path(path, "right", j))
            elif node.right is not None:
                yield from _walk(node.right, child_path(path, "right", 0))
    elif kind == EXPRESSION_GROUP:
        for i, expr in enumerate(node.expressions):
            yield from _walk(expr, child_path(path, "expression", i))
    elif kind == EXPRESSION:
        if node.function is not None:
            for i, arg in enumerate(node.function.args):
                if arg.value is not None:
                    yield from _walk(arg.value, child_path(path, "arg", i))
    elif kind == CASE:
        for i, clause in enumerate(node.when_clauses):
            yield from _walk(clause, child_path(path, "when", i))
        if node.else_clause is not None:
            yield from _walk(node.else_clause, child_path(path, "else", 0))
