"""Editing session: one document plus the services that keep it consistent.

The host creates one session per open document and passes it to whatever
edits the tree. The session owns the expansion state and hands out the
naming and validation services; there is no module-level state.
"""

from __future__ import annotations

from typing import Callable

from .catalog import Catalog
from .errors import PathError
from .expansion import ExpansionState
from .factories import default_condition, default_condition_group, default_rule_ref_condition
from .logging import ValidationLogger
from .naming import Namer
from .nodes import CASE, CONDITION, CONDITION_GROUP, WHEN_CLAUSE, Condition, ConditionGroup, Node, Rule, RuleRef
from .paths import PathKey, child_number, child_path, iter_node_paths, parent_path, root_path
from .validator import ValidationResult, Validator

CONDITION_TYPES = (CONDITION, CONDITION_GROUP, "ruleRef")


class EditingSession:
    """Single-owner handle over a rule being edited.

    Edits mutate ``rule`` in place, so references the host holds into the
    tree stay live. Not safe for concurrent use; serialize calls from the host.
    """

    def __init__(self, rule: Rule, is_new: bool = True, catalog: Catalog | None = None):
        self.catalog = catalog or Catalog.default()
        self.namer = Namer()
        self.validator = Validator(self.catalog)
        self.rule = rule
        self.is_new = is_new
        self.expansion = ExpansionState(rule.structure, is_new)

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------

    def load(self, rule: Rule, is_new: bool = False) -> None:
        """Switch to another document, forgetting all expansion overrides."""
        self.rule = rule
        self.is_new = is_new
        self.expansion.reset(rule.structure, is_new)

    def expand_all(self) -> None:
        """Expand everything; a loaded document now behaves like a new one."""
        self.is_new = True
        self.expansion.reset(self.rule.structure, True)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def root_path(self) -> str:
        return root_path(self.rule.structure)

    def paths(self) -> list[str]:
        return [path for path, _ in iter_node_paths(self.rule)]

    def node_at(self, path: str) -> Node:
        for node_path, node in iter_node_paths(self.rule):
            if node_path == path:
                return node
        raise PathError("No node at path", path=path)

    def visible_paths(self) -> list[str]:
        """Paths whose ancestors are all expanded, in document order."""
        visible: list[str] = []
        open_paths: set[str] = set()
        for path, _ in iter_node_paths(self.rule):
            parent = parent_path(path)
            if parent and parent not in open_paths:
                continue
            visible.append(path)
            if self.expansion.is_expanded(path):
                open_paths.add(path)
        return visible

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def insert_condition(self, group_path: str, node_type: str = CONDITION, index: int | None = None) -> str:
        """Add a condition, group or rule reference to a group; return its path."""
        if node_type not in CONDITION_TYPES:
            raise PathError(f"Cannot insert a node of type {node_type!r}", path=group_path)
        group = self._condition_at(group_path)[0]
        if not isinstance(group, ConditionGroup) or group.rule_ref is not None:
            raise PathError("Conditions can only be added to a condition group", path=group_path)

        position = len(group.conditions) if index is None else max(0, min(index, len(group.conditions)))
        path = child_path(group_path, _condition_tag(node_type), position)
        name = self.namer.name_for_new(node_type, path, group.conditions)
        shifted = position < len(group.conditions)
        if shifted:
            # Later siblings move; overrides keyed by their old paths are stale
            for i in range(position, len(group.conditions)):
                self.expansion.discard_subtree(child_path(group_path, group.conditions[i].kind, i))
        group.conditions.insert(position, self._new_condition(node_type, name, path))
        if shifted:
            self.renumber(keep_custom=True)
        return path

    def remove_child(self, path: str) -> Condition | ConditionGroup:
        """Remove the condition at ``path`` from its group and renumber."""
        parent = parent_path(path)
        if not parent:
            raise PathError("The root container cannot be removed", path=path)
        group = self._condition_at(parent)[0]
        if not isinstance(group, ConditionGroup):
            raise PathError("Only children of a condition group can be removed", path=path)
        tag, index = PathKey.parse(path).last
        if index >= len(group.conditions) or group.conditions[index].kind != tag:
            raise PathError("No node at path", path=path)

        for i in range(index, len(group.conditions)):
            self.expansion.discard_subtree(child_path(parent, group.conditions[i].kind, i))
        removed = group.conditions.pop(index)
        self.renumber(keep_custom=True)
        return removed

    def change_type(self, path: str, new_type: str, rule_id: str | None = None) -> Condition | ConditionGroup:
        """Replace the condition at ``path`` with a fresh node of ``new_type``.

        Generated names keep their number under the new label; names a user
        typed are kept. A rule reference takes the referenced rule's id.
        """
        if new_type not in CONDITION_TYPES:
            raise PathError(f"Cannot change a condition into {new_type!r}", path=path)
        node, replace = self._condition_at(path)
        old_type = "ruleRef" if node.rule_ref is not None else node.kind
        new_path = self._retagged_path(path, new_type)
        name = self.namer.rename(node.name, old_type, new_type, new_path, rule_id)
        replacement = self._new_condition(new_type, name, new_path, rule_id)
        replace(replacement)

        was_expanded = self.expansion.overrides.get(path)
        self.expansion.discard_subtree(path)
        if was_expanded is not None:
            self.expansion.set_expansion(new_path, was_expanded)
        return replacement

    def renumber(self, keep_custom: bool = False) -> Rule:
        """Re-derive names from positions, updating the current tree in place."""
        renamed = self.namer.renumber(self.rule, keep_custom)
        for (_, node), (_, fresh) in zip(iter_node_paths(self.rule), iter_node_paths(renamed)):
            if node.kind == WHEN_CLAUSE:
                node.when.name = fresh.when.name
                node.result_name = fresh.result_name
            elif node.kind == CASE:
                node.else_name = fresh.else_name
            elif hasattr(node, "name"):
                node.name = fresh.name
        return self.rule

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, strict: bool = False, draft: bool = False) -> ValidationResult:
        logger = ValidationLogger(rule_id=self.rule.id or "", strict=strict, draft=draft)
        return self.validator.validate(self.rule, strict=strict, draft=draft, logger=logger)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_condition(
        self, node_type: str, name: str, path: str, rule_id: str | None = None,
    ) -> Condition | ConditionGroup:
        if node_type == CONDITION_GROUP:
            return default_condition_group(name, self.catalog, child_prefix=child_number(path))
        if node_type == "ruleRef":
            node = default_rule_ref_condition(name)
            if rule_id:
                node.rule_ref = self._rule_ref(rule_id)
            return node
        return default_condition(name, self.catalog)

    def _retagged_path(self, path: str, new_type: str) -> str:
        """Where the node at ``path`` lives once it becomes ``new_type``.

        Group children are keyed by their type; the root and WHEN conditions
        keep their container's key.
        """
        tag, index = PathKey.parse(path).last
        if path == self.root_path or tag not in (CONDITION, CONDITION_GROUP):
            return path
        return child_path(parent_path(path), _condition_tag(new_type), index)

    def _rule_ref(self, rule_id: str) -> RuleRef:
        entry = self.catalog.rule(rule_id)
        if entry is None:
            return RuleRef(id=rule_id)
        return RuleRef(
            id=entry.id,
            uuid=entry.uuid,
            version=max(entry.versions) if entry.versions else 1,
            return_type=entry.return_type,
            rule_type=entry.rule_type,
        )

    def _condition_at(self, path: str) -> tuple[Condition | ConditionGroup, Callable[[Node], None]]:
        """The condition node at ``path`` and a function that replaces it."""
        node = self.node_at(path)
        if node.kind == WHEN_CLAUSE:
            # A WHEN condition is addressed by its clause's path
            clause = node

            def replace_when(new: Node) -> None:
                clause.when = new
            return clause.when, replace_when

        if node.kind not in (CONDITION, CONDITION_GROUP):
            raise PathError(f"Node at path is a {node.kind}, not a condition", path=path)

        if path == self.root_path:
            def replace_root(new: Node) -> None:
                self.rule.definition = new
            return node, replace_root

        container = self.node_at(parent_path(path))
        group = container.when if container.kind == WHEN_CLAUSE else container
        index = PathKey.parse(path).last[1]

        def replace_child(new: Node) -> None:
            group.conditions[index] = new
        return node, replace_child


def _condition_tag(node_type: str) -> str:
    return CONDITION_GROUP if node_type == CONDITION_GROUP else CONDITION
