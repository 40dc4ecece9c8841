"""Rule tree node definitions and their JSON wire codec.

Nodes form a closed tagged union. Each dataclass carries a ``kind`` tag and
engines dispatch on that tag; the classes hold shape only. Nodes are owned by
their parent container (no back-references, no sharing) and are mutated in
place by the editing layer, so they are not frozen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from .errors import DocumentError

# ---------------------------------------------------------------------------
# Tags and vocabularies
# ---------------------------------------------------------------------------

CONDITION = "condition"
CONDITION_GROUP = "conditionGroup"
EXPRESSION = "expression"
EXPRESSION_GROUP = "expressionGroup"
WHEN_CLAUSE = "whenClause"
CASE = "case"

STRUCTURES = ("condition", "expression", "case")
CONJUNCTIONS = ("AND", "OR")
EXPRESSION_SOURCES = ("value", "field", "function", "ruleRef")


# ---------------------------------------------------------------------------
# Value payloads
# ---------------------------------------------------------------------------

@dataclass
class RuleRef:
    """A by-value reference to another rule (never a live pointer)."""
    id: str | None = None
    uuid: str | None = None
    version: int = 1
    return_type: str = "boolean"
    rule_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "uuid": self.uuid,
            "version": self.version,
            "returnType": self.return_type,
        }
        if self.rule_type is not None:
            d["ruleType"] = self.rule_type
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> RuleRef:
        return cls(
            id=d.get("id"),
            uuid=d.get("uuid"),
            version=d.get("version", 1),
            return_type=d.get("returnType", "boolean"),
            rule_type=d.get("ruleType"),
        )


@dataclass
class FunctionArg:
    """A named function argument whose value is an operand."""
    name: str
    value: Operand | None = None


@dataclass
class FunctionCall:
    """Function name plus its ordered arguments."""
    name: str
    args: list[FunctionArg] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Expression nodes
# ---------------------------------------------------------------------------

@dataclass
class Expression:
    """Leaf operand: a literal value, a field, a function call or a rule reference."""
    kind: ClassVar[str] = EXPRESSION

    source: str
    return_type: str
    value: Any = None
    field: str | None = None
    function: FunctionCall | None = None
    rule_ref: RuleRef | None = None
    name: str | None = None


@dataclass
class ExpressionGroup:
    """Operands combined left to right by ``operators``."""
    kind: ClassVar[str] = EXPRESSION_GROUP

    return_type: str
    expressions: list[Expression | ExpressionGroup] = field(default_factory=list)
    operators: list[str] = field(default_factory=list)

    @property
    def is_singleton(self) -> bool:
        return len(self.expressions) == 1 and not self.operators


Operand = Union[Expression, ExpressionGroup]


# ---------------------------------------------------------------------------
# Condition nodes
# ---------------------------------------------------------------------------

@dataclass
class Condition:
    """A single boolean comparison ``left operator right``."""
    kind: ClassVar[str] = CONDITION

    name: str
    left: Operand | None = None
    operator: str | None = None
    # None for unary operators, a list for between / in
    right: Operand | list[Operand] | None = None
    return_type: str = "boolean"
    rule_ref: RuleRef | None = None
    id: str | None = None


@dataclass
class ConditionGroup:
    """Conditions joined by one conjunction, optionally negated."""
    kind: ClassVar[str] = CONDITION_GROUP

    name: str
    conjunction: str = "AND"
    not_: bool = False
    conditions: list[Condition | ConditionGroup] = field(default_factory=list)
    return_type: str = "boolean"
    rule_ref: RuleRef | None = None
    id: str | None = None


# ---------------------------------------------------------------------------
# Case nodes
# ---------------------------------------------------------------------------

@dataclass
class WhenClause:
    """One case branch: when ``when`` holds, the result is ``then``."""
    kind: ClassVar[str] = WHEN_CLAUSE

    when: Condition | ConditionGroup
    then: Operand
    result_name: str | None = None


@dataclass
class CaseExpression:
    """Ordered WHEN clauses with an ELSE fallback."""
    kind: ClassVar[str] = CASE

    when_clauses: list[WhenClause] = field(default_factory=list)
    else_clause: Operand | None = None
    else_name: str | None = None


Node = Union[Condition, ConditionGroup, Expression, ExpressionGroup, WhenClause, CaseExpression]


# ---------------------------------------------------------------------------
# Rule document
# ---------------------------------------------------------------------------

@dataclass
class Rule:
    """Top-level rule document."""
    structure: str
    return_type: str
    rule_type: str
    uuid: str | None = None
    version: int = 1
    metadata: dict[str, Any] = field(default_factory=dict)
    definition: Node | None = None

    @property
    def id(self) -> str | None:
        return self.metadata.get("id")

    def to_dict(self) -> dict[str, Any]:
        return {
            "structure": self.structure,
            "returnType": self.return_type,
            "ruleType": self.rule_type,
            "uuId": self.uuid,
            "version": self.version,
            "metadata": dict(self.metadata),
            "definition": node_to_dict(self.definition) if self.definition is not None else None,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Rule:
        if not isinstance(d, dict):
            raise DocumentError("Rule document must be an object", path="$")
        for key in ("structure", "returnType", "ruleType"):
            if key not in d:
                raise DocumentError(f"Rule document missing '{key}'", path=key)
        definition = d.get("definition")
        return cls(
            structure=d["structure"],
            return_type=d["returnType"],
            rule_type=d["ruleType"],
            uuid=d.get("uuId", d.get("uuid")),
            version=d.get("version", 1),
            metadata=dict(d.get("metadata") or {}),
            definition=node_from_dict(definition, "definition") if definition else None,
        )


# ---------------------------------------------------------------------------
# Codec: dict -> node
# ---------------------------------------------------------------------------

def node_from_dict(d: Any, path: str = "$") -> Node:
    """Decode one wire object, inferring its variant from the type tag and keys."""
    if not isinstance(d, dict):
        raise DocumentError("Node must be an object", path=path)
    if "whenClauses" in d:
        return _case_from_dict(d, path)
    tag = d.get("type")
    if tag == CONDITION_GROUP or (tag is None and "conditions" in d):
        return _group_from_dict(d, path)
    if tag == CONDITION or (tag is None and "left" in d):
        return _condition_from_dict(d, path)
    if tag == EXPRESSION_GROUP:
        return _expression_group_from_dict(d, path)
    if tag in EXPRESSION_SOURCES:
        return _expression_from_dict(d, path)
    raise DocumentError(f"Unknown node type {tag!r}", path=path)


def _operand_from_dict(d: Any, path: str) -> Operand | None:
    if d is None:
        return None
    node = node_from_dict(d, path)
    if not isinstance(node, (Expression, ExpressionGroup)):
        raise DocumentError("Expected an expression or expression group", path=path)
    return node


def _expression_from_dict(d: dict[str, Any], path: str) -> Expression:
    function = None
    fn = d.get("function")
    if isinstance(fn, dict):
        args = [
            FunctionArg(
                name=a.get("name", ""),
                value=_operand_from_dict(a.get("value"), f"{path}.function.args[{i}].value"),
            )
            for i, a in enumerate(fn.get("args") or [])
        ]
        function = FunctionCall(name=fn.get("name", ""), args=args)
    ref = d.get("ruleRef")
    return Expression(
        source=d["type"],
        return_type=d.get("returnType", ""),
        value=d.get("value"),
        field=d.get("field"),
        function=function,
        rule_ref=RuleRef.from_dict(ref) if isinstance(ref, dict) else None,
        name=d.get("name"),
    )


def _expression_group_from_dict(d: dict[str, Any], path: str) -> ExpressionGroup:
    return ExpressionGroup(
        return_type=d.get("returnType", ""),
        expressions=[
            _operand_from_dict(e, f"{path}.expressions[{i}]")
            for i, e in enumerate(d.get("expressions") or [])
        ],
        operators=list(d.get("operators") or []),
    )


def _condition_from_dict(d: dict[str, Any], path: str) -> Condition:
    right = d.get("right")
    if isinstance(right, list):
        right = [_operand_from_dict(r, f"{path}.right[{j}]") for j, r in enumerate(right)]
    else:
        right = _operand_from_dict(right, f"{path}.right")
    ref = d.get("ruleRef")
    return Condition(
        name=d.get("name", ""),
        left=_operand_from_dict(d.get("left"), f"{path}.left"),
        operator=d.get("operator"),
        right=right,
        return_type=d.get("returnType", "boolean"),
        rule_ref=RuleRef.from_dict(ref) if isinstance(ref, dict) else None,
        id=d.get("id"),
    )


def _group_from_dict(d: dict[str, Any], path: str) -> ConditionGroup:
    children = []
    for i, c in enumerate(d.get("conditions") or []):
        child = node_from_dict(c, f"{path}.conditions[{i}]")
        if not isinstance(child, (Condition, ConditionGroup)):
            raise DocumentError("Condition groups hold conditions only", path=f"{path}.conditions[{i}]")
        children.append(child)
    ref = d.get("ruleRef")
    return ConditionGroup(
        name=d.get("name", ""),
        conjunction=d.get("conjunction", "AND"),
        not_=bool(d.get("not", False)),
        conditions=children,
        return_type=d.get("returnType", "boolean"),
        rule_ref=RuleRef.from_dict(ref) if isinstance(ref, dict) else None,
        id=d.get("id"),
    )


def _case_from_dict(d: dict[str, Any], path: str) -> CaseExpression:
    clauses = []
    for i, wc in enumerate(d.get("whenClauses") or []):
        wpath = f"{path}.whenClauses[{i}]"
        if not isinstance(wc, dict) or "when" not in wc or "then" not in wc:
            raise DocumentError("WHEN clause needs 'when' and 'then'", path=wpath)
        when = node_from_dict(wc["when"], f"{wpath}.when")
        if not isinstance(when, (Condition, ConditionGroup)):
            raise DocumentError("WHEN must be a condition", path=f"{wpath}.when")
        clauses.append(WhenClause(
            when=when,
            then=_operand_from_dict(wc["then"], f"{wpath}.then"),
            result_name=wc.get("resultName"),
        ))
    return CaseExpression(
        when_clauses=clauses,
        else_clause=_operand_from_dict(d.get("elseClause"), f"{path}.elseClause"),
        else_name=d.get("elseResultName", d.get("elseName")),
    )


# ---------------------------------------------------------------------------
# Codec: node -> dict
# ---------------------------------------------------------------------------

def node_to_dict(node: Node) -> dict[str, Any]:
    """Encode a node back to its wire object."""
    if node.kind == EXPRESSION:
        return _expression_to_dict(node)
    if node.kind == EXPRESSION_GROUP:
        return {
            "type": EXPRESSION_GROUP,
            "returnType": node.return_type,
            "expressions": [node_to_dict(e) for e in node.expressions],
            "operators": list(node.operators),
        }
    if node.kind == CONDITION:
        return _condition_to_dict(node)
    if node.kind == CONDITION_GROUP:
        return _group_to_dict(node)
    if node.kind == WHEN_CLAUSE:
        d: dict[str, Any] = {"when": node_to_dict(node.when), "then": node_to_dict(node.then)}
        if node.result_name is not None:
            d["resultName"] = node.result_name
        return d
    if node.kind == CASE:
        d = {"whenClauses": [node_to_dict(wc) for wc in node.when_clauses]}
        if node.else_clause is not None:
            d["elseClause"] = node_to_dict(node.else_clause)
        if node.else_name is not None:
            d["elseResultName"] = node.else_name
        return d
    raise DocumentError(f"Cannot encode node of kind {node.kind!r}")


def _expression_to_dict(expr: Expression) -> dict[str, Any]:
    d: dict[str, Any] = {"type": expr.source, "returnType": expr.return_type}
    if expr.name is not None:
        d["name"] = expr.name
    if expr.source == "value":
        d["value"] = expr.value
    elif expr.source == "field":
        d["field"] = expr.field
    elif expr.source == "function" and expr.function is not None:
        d["function"] = {
            "name": expr.function.name,
            "args": [
                {"name": a.name, "value": node_to_dict(a.value) if a.value is not None else None}
                for a in expr.function.args
            ],
        }
    elif expr.source == "ruleRef" and expr.rule_ref is not None:
        d["ruleRef"] = expr.rule_ref.to_dict()
    return d


def _condition_to_dict(cond: Condition) -> dict[str, Any]:
    d: dict[str, Any] = {"type": CONDITION, "returnType": cond.return_type, "name": cond.name}
    if cond.id is not None:
        d["id"] = cond.id
    if cond.rule_ref is not None:
        d["ruleRef"] = cond.rule_ref.to_dict()
        return d
    d["left"] = node_to_dict(cond.left) if cond.left is not None else None
    d["operator"] = cond.operator
    if isinstance(cond.right, list):
        d["right"] = [node_to_dict(r) for r in cond.right]
    else:
        d["right"] = node_to_dict(cond.right) if cond.right is not None else None
    return d


def _group_to_dict(group: ConditionGroup) -> dict[str, Any]:
    d: dict[str, Any] = {"type": CONDITION_GROUP, "returnType": group.return_type, "name": group.name}
    if group.id is not None:
        d["id"] = group.id
    if group.rule_ref is not None:
        d["ruleRef"] = group.rule_ref.to_dict()
        return d
    d["conjunction"] = group.conjunction
    d["not"] = group.not_
    d["conditions"] = [node_to_dict(c) for c in group.conditions]
    return d
