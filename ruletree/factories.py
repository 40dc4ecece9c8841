"""Factories for well-formed default nodes.

Every node the editing layer creates starts from one of these, so a tree
never holds a partially initialized shape.
"""

from __future__ import annotations

from typing import Any

from .catalog import Catalog
from .nodes import (
    CaseExpression,
    Condition,
    ConditionGroup,
    Expression,
    ExpressionGroup,
    FunctionCall,
    Rule,
    RuleRef,
    WhenClause,
)

TYPE_DEFAULTS: dict[str, Any] = {
    "number": 0,
    "text": "",
    "boolean": False,
    "date": None,
}


def default_value_for_type(return_type: str) -> Any:
    return TYPE_DEFAULTS.get(return_type)


def default_expression(
    source: str = "value",
    return_type: str = "number",
    value: Any = None,
    name: str | None = None,
) -> Expression:
    """A bare operand of the given source kind."""
    if source == "field":
        return Expression(source="field", return_type=return_type, field=value, name=name)
    if source == "ruleRef":
        return Expression(
            source="ruleRef",
            return_type=return_type,
            rule_ref=RuleRef(return_type=return_type),
            name=name,
        )
    if source == "function":
        return Expression(
            source="function",
            return_type=return_type,
            function=FunctionCall(name=value or ""),
            name=name,
        )
    if value is None:
        value = default_value_for_type(return_type)
    return Expression(source="value", return_type=return_type, value=value, name=name)


def default_expression_group(return_type: str = "number", value: Any = None) -> ExpressionGroup:
    """A one-operand group, equivalent to its sole expression."""
    return ExpressionGroup(
        return_type=return_type,
        expressions=[default_expression("value", return_type, value)],
        operators=[],
    )


def default_condition(name: str, catalog: Catalog | None = None, return_type: str = "number") -> Condition:
    catalog = catalog or Catalog.default()
    return Condition(
        name=name,
        left=default_expression("field", return_type, catalog.default_field),
        operator=catalog.default_condition_operator(return_type),
        right=default_expression("value", return_type),
    )


def default_condition_group(
    name: str,
    catalog: Catalog | None = None,
    children: list[Condition | ConditionGroup] | None = None,
    conjunction: str = "AND",
    child_prefix: str = "",
) -> ConditionGroup:
    """A group holding ``children`` or, by default, two fresh conditions."""
    if children is None:
        prefix = f"{child_prefix}." if child_prefix else ""
        children = [
            default_condition(f"Condition {prefix}1", catalog),
            default_condition(f"Condition {prefix}2", catalog),
        ]
    return ConditionGroup(name=name, conjunction=conjunction, not_=False, conditions=children)


def default_rule_ref_condition(name: str) -> Condition:
    """A condition backed by a not-yet-selected rule reference."""
    return Condition(name=name, rule_ref=RuleRef(return_type="boolean"))


def default_when_clause(
    condition_name: str,
    result_name: str,
    return_type: str,
    catalog: Catalog | None = None,
) -> WhenClause:
    return WhenClause(
        when=default_condition(condition_name, catalog),
        then=default_expression("value", return_type, name=result_name),
        result_name=result_name,
    )


def default_case(return_type: str, catalog: Catalog | None = None) -> CaseExpression:
    return CaseExpression(
        when_clauses=[default_when_clause("Condition 1", "Result 1", return_type, catalog)],
        else_clause=default_expression("value", return_type, name="Else"),
        else_name="Else",
    )


def default_rule(
    structure: str,
    return_type: str | None = None,
    rule_type: str = "Reporting",
    catalog: Catalog | None = None,
) -> Rule:
    """A fresh rule document for the given structure."""
    if structure == "condition":
        definition = default_condition("Condition", catalog)
        return_type = "boolean"
    elif structure == "case":
        return_type = return_type or "text"
        definition = default_case(return_type, catalog)
    else:
        return_type = return_type or "number"
        definition = default_expression_group(return_type)
    return Rule(
        structure=structure,
        return_type=return_type,
        rule_type=rule_type,
        version=1,
        metadata={"id": "", "description": ""},
        definition=definition,
    )
