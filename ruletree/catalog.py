"""Catalog: read-only lookup of types, operators, fields, functions and rules.

The catalog is what the validator and the factories consult to know which
operators a return type allows, which fields and functions exist and which
rules may be referenced. It is supplied by the host application; ruletree
never mutates it.

Catalogs can be written in YAML::

    fields:
      PERSON.AGE: number
    functions:
      DATE.DIFF:
        returnType: number
        args:
          - {name: units, type: text}
          - {name: date1, type: date}
          - {name: date2, type: date}
    rules:
      IS_ADULT: {returnType: boolean, ruleType: Validation, versions: [1, 2]}

Sections that are left out fall back to the built-in defaults. An empty
``fields``, ``functions`` or ``rules`` table means the universe is unknown and
references against it are not checked.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import CatalogError

# Symbols accepted in ExpressionGroup.operators and their operator names
OPERATOR_SYMBOLS: dict[str, str] = {
    "+": "add",
    "-": "subtract",
    "*": "multiply",
    "/": "divide",
    "&": "concat",
    "&&": "and",
    "||": "or",
}


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TypeSpec:
    """Operators allowed for one return type."""
    name: str
    expression_operators: frozenset[str] = frozenset()
    condition_operators: frozenset[str] = frozenset()
    default_condition_operator: str = "equal"


@dataclass(frozen=True)
class OperatorSpec:
    """Right-operand cardinality of a condition operator.

    ``cardinality`` is exact (0, 1 or 2). ``min_cardinality`` /
    ``max_cardinality`` describe list operators such as ``in``.
    """
    name: str
    cardinality: int | None = 1
    min_cardinality: int | None = None
    max_cardinality: int | None = None

    @property
    def is_list(self) -> bool:
        return self.min_cardinality is not None or self.max_cardinality is not None


@dataclass(frozen=True)
class ArgSpec:
    name: str
    type: str | None = None


@dataclass(frozen=True)
class FunctionSpec:
    """Signature of a catalog function."""
    name: str
    return_type: str
    args: tuple[ArgSpec, ...] = ()
    dynamic_args: bool = False
    min_args: int = 0
    max_args: int | None = None
    arg_type: str | None = None


@dataclass(frozen=True)
class RuleEntry:
    """A rule that other rules may reference."""
    id: str
    return_type: str
    rule_type: str | None = None
    uuid: str | None = None
    versions: tuple[int, ...] = ()


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Catalog:
    """Read-only lookup interface consumed by validation and factories."""
    types: dict[str, TypeSpec] = field(default_factory=dict)
    operators: dict[str, OperatorSpec] = field(default_factory=dict)
    fields: dict[str, str] = field(default_factory=dict)
    functions: dict[str, FunctionSpec] = field(default_factory=dict)
    rules: dict[str, RuleEntry] = field(default_factory=dict)
    rule_types: frozenset[str] = frozenset()
    default_field: str = "TABLE1.NUMBER_FIELD_01"

    @classmethod
    def default(cls) -> Catalog:
        return catalog_from_dict(DEFAULT_CATALOG)

    @property
    def return_types(self) -> frozenset[str]:
        return frozenset(self.types)

    def type_spec(self, return_type: str) -> TypeSpec | None:
        return self.types.get(return_type)

    def operator_name(self, symbol: str) -> str:
        """Map an expression operator symbol to its name; names pass through."""
        return OPERATOR_SYMBOLS.get(symbol, symbol)

    def field_type(self, name: str) -> str | None:
        return self.fields.get(name)

    def function(self, name: str) -> FunctionSpec | None:
        return self.functions.get(name)

    def rule(self, rule_id: str) -> RuleEntry | None:
        return self.rules.get(rule_id)

    def default_condition_operator(self, return_type: str) -> str:
        spec = self.types.get(return_type)
        return spec.default_condition_operator if spec else "equal"


# ---------------------------------------------------------------------------
# Built-in defaults
# ---------------------------------------------------------------------------

_COMPARISON = ["equal", "not_equal", "greater", "greater_or_equal", "less", "less_or_equal"]
_EMPTINESS = ["is_empty", "is_not_empty"]

DEFAULT_CATALOG: dict[str, Any] = {
    "defaultField": "TABLE1.NUMBER_FIELD_01",
    "types": {
        "number": {
            "expressionOperators": ["add", "subtract", "multiply", "divide"],
            "conditionOperators": _COMPARISON + ["between", "not_between", "in", "not_in"] + _EMPTINESS,
            "defaultConditionOperator": "equal",
        },
        "text": {
            "expressionOperators": ["concat"],
            "conditionOperators": [
                "equal", "not_equal", "contains", "not_contains",
                "starts_with", "ends_with", "in", "not_in",
            ] + _EMPTINESS,
            "defaultConditionOperator": "equal",
        },
        "date": {
            "expressionOperators": [],
            "conditionOperators": _COMPARISON + ["between", "not_between"] + _EMPTINESS,
            "defaultConditionOperator": "equal",
        },
        "boolean": {
            "expressionOperators": ["and", "or"],
            "conditionOperators": ["equal", "not_equal"] + _EMPTINESS,
            "defaultConditionOperator": "equal",
        },
    },
    "operators": {
        **{name: {"cardinality": 1} for name in _COMPARISON},
        "contains": {"cardinality": 1},
        "not_contains": {"cardinality": 1},
        "starts_with": {"cardinality": 1},
        "ends_with": {"cardinality": 1},
        "between": {"cardinality": 2},
        "not_between": {"cardinality": 2},
        "in": {"minCardinality": 1},
        "not_in": {"minCardinality": 1},
        "is_empty": {"cardinality": 0},
        "is_not_empty": {"cardinality": 0},
    },
    "functions": {
        "MATH.ADD": {
            "returnType": "number",
            "dynamicArgs": True,
            "argSpec": {"minArgs": 2, "maxArgs": 10, "type": "number"},
        },
        "MATH.ROUND": {
            "returnType": "number",
            "args": [{"name": "number", "type": "number"}, {"name": "digits", "type": "number"}],
        },
        "DATE.DIFF": {
            "returnType": "number",
            "args": [
                {"name": "units", "type": "text"},
                {"name": "date1", "type": "date"},
                {"name": "date2", "type": "date"},
            ],
        },
        "DATE.TODAY": {"returnType": "date", "args": []},
        "TEXT.CASE": {
            "returnType": "text",
            "args": [{"name": "text", "type": "text"}, {"name": "case", "type": "text"}],
        },
        "TEXT.CONCAT": {
            "returnType": "text",
            "dynamicArgs": True,
            "argSpec": {"minArgs": 2, "type": "text"},
        },
    },
    "ruleTypes": ["Reporting", "Validation", "Transformation", "Aggregation", "Condition", "List"],
}


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def catalog_from_dict(data: dict[str, Any], base: dict[str, Any] | None = None) -> Catalog:
    """Build a catalog from its wire mapping; missing sections come from ``base``."""
    if not isinstance(data, dict):
        raise CatalogError("Catalog root must be a mapping")
    merged = dict(base or {})
    merged.update({k: v for k, v in data.items() if v is not None})
    try:
        return Catalog(
            types={name: _type_spec(name, spec or {}) for name, spec in (merged.get("types") or {}).items()},
            operators={
                name: _operator_spec(name, spec or {})
                for name, spec in (merged.get("operators") or {}).items()
            },
            fields={str(k): str(v) for k, v in (merged.get("fields") or {}).items()},
            functions={
                name: _function_spec(name, spec or {})
                for name, spec in (merged.get("functions") or {}).items()
            },
            rules={str(rid): _rule_entry(str(rid), spec or {}) for rid, spec in (merged.get("rules") or {}).items()},
            rule_types=frozenset(merged.get("ruleTypes") or ()),
            default_field=merged.get("defaultField", "TABLE1.NUMBER_FIELD_01"),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise CatalogError(f"Malformed catalog: {exc}") from exc


def catalog_from_yaml(source: str) -> Catalog:
    """Parse a YAML catalog, layering it over the built-in defaults."""
    try:
        data = yaml.safe_load(source)
    except yaml.YAMLError as exc:
        raise CatalogError(f"Invalid YAML: {exc}") from exc
    if data is None:
        data = {}
    return catalog_from_dict(data, base=DEFAULT_CATALOG)


def load_catalog(path: str | Path) -> Catalog:
    path = Path(path)
    try:
        source = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogError(f"Cannot read catalog: {exc}", path=str(path)) from exc
    return catalog_from_yaml(source)


def _type_spec(name: str, spec: dict[str, Any]) -> TypeSpec:
    return TypeSpec(
        name=name,
        expression_operators=frozenset(spec.get("expressionOperators") or ()),
        condition_operators=frozenset(spec.get("conditionOperators") or ()),
        default_condition_operator=spec.get("defaultConditionOperator", "equal"),
    )


def _operator_spec(name: str, spec: dict[str, Any]) -> OperatorSpec:
    if "minCardinality" in spec or "maxCardinality" in spec:
        return OperatorSpec(
            name=name,
            cardinality=None,
            min_cardinality=spec.get("minCardinality", 0),
            max_cardinality=spec.get("maxCardinality"),
        )
    return OperatorSpec(name=name, cardinality=int(spec.get("cardinality", 1)))


def _function_spec(name: str, spec: dict[str, Any]) -> FunctionSpec:
    arg_spec = spec.get("argSpec") or {}
    return FunctionSpec(
        name=name,
        return_type=spec["returnType"],
        args=tuple(ArgSpec(name=a["name"], type=a.get("type")) for a in spec.get("args") or ()),
        dynamic_args=bool(spec.get("dynamicArgs", False)),
        min_args=int(arg_spec.get("minArgs", 0)),
        max_args=arg_spec.get("maxArgs"),
        arg_type=arg_spec.get("type"),
    )


def _rule_entry(rule_id: str, spec: dict[str, Any]) -> RuleEntry:
    return RuleEntry(
        id=rule_id,
        return_type=spec.get("returnType", "boolean"),
        rule_type=spec.get("ruleType"),
        uuid=spec.get("uuid"),
        versions=tuple(int(v) for v in spec.get("versions") or ()),
    )
