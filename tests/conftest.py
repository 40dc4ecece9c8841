"""Shared fixtures for ruletree tests."""

import copy
import json

import pytest

from ruletree.catalog import catalog_from_yaml
from ruletree.nodes import Rule
from ruletree.validator import Validator


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

CATALOG_YAML = '''
fields:
  PERSON.AGE: number
  PERSON.NAME: text
  PERSON.BIRTH_DATE: date
  PERSON.ACTIVE: boolean
  ORDER.TOTAL: number
rules:
  IS_ADULT:
    returnType: boolean
    ruleType: Validation
    uuid: 9f1c2b7e-4d6a-4e0b-8a53-1f2e3d4c5b6a
    versions: [1, 2]
  ORDER_SCORE:
    returnType: number
    ruleType: Reporting
    uuid: 2a8d6c4e-0b1f-4c3d-9e7a-6b5c4d3e2f10
    versions: [1]
'''


@pytest.fixture
def catalog():
    return catalog_from_yaml(CATALOG_YAML)


@pytest.fixture
def validator(catalog):
    return Validator(catalog)


# ---------------------------------------------------------------------------
# Sample rule documents
# ---------------------------------------------------------------------------

CONDITION_RULE = {
    "structure": "condition",
    "returnType": "boolean",
    "ruleType": "Validation",
    "uuId": "5b0f3c1e-1d2a-4c8e-9f61-2a7d9b3e4c10",
    "version": 1,
    "metadata": {"id": "ADULT_BIG_SPENDERS", "description": "Adults with a qualifying order"},
    "definition": {
        "type": "conditionGroup",
        "returnType": "boolean",
        "name": "Condition Group",
        "conjunction": "AND",
        "not": False,
        "conditions": [
            {
                "type": "condition",
                "returnType": "boolean",
                "name": "Condition 1",
                "left": {
                    "type": "expressionGroup",
                    "returnType": "number",
                    "expressions": [{"type": "field", "returnType": "number", "field": "PERSON.AGE"}],
                    "operators": [],
                },
                "operator": "greater_or_equal",
                "right": {
                    "type": "expressionGroup",
                    "returnType": "number",
                    "expressions": [{"type": "value", "returnType": "number", "value": 18}],
                    "operators": [],
                },
            },
            {
                "type": "conditionGroup",
                "returnType": "boolean",
                "name": "Condition Group 2",
                "conjunction": "OR",
                "not": False,
                "conditions": [
                    {
                        "type": "condition",
                        "returnType": "boolean",
                        "name": "Condition 2.1",
                        "left": {"type": "field", "returnType": "number", "field": "ORDER.TOTAL"},
                        "operator": "between",
                        "right": [
                            {"type": "value", "returnType": "number", "value": 100},
                            {"type": "value", "returnType": "number", "value": 500},
                        ],
                    },
                    {
                        "type": "condition",
                        "returnType": "boolean",
                        "name": "Condition 2.2",
                        "left": {"type": "field", "returnType": "text", "field": "PERSON.NAME"},
                        "operator": "is_not_empty",
                        "right": None,
                    },
                ],
            },
        ],
    },
}

EXPRESSION_RULE = {
    "structure": "expression",
    "returnType": "number",
    "ruleType": "Reporting",
    "uuId": "c3e9a1b2-7f4d-4a6e-b8c0-d1e2f3a4b5c6",
    "version": 2,
    "metadata": {
        "id": "AGE_IN_DAYS_SCORE",
        "description": "Age in days scaled by the order score",
        "owner": "analytics",
    },
    "definition": {
        "type": "expressionGroup",
        "returnType": "number",
        "expressions": [
            {
                "type": "function",
                "returnType": "number",
                "function": {
                    "name": "DATE.DIFF",
                    "args": [
                        {"name": "units", "value": {"type": "value", "returnType": "text", "value": "days"}},
                        {"name": "date1", "value": {"type": "field", "returnType": "date", "field": "PERSON.BIRTH_DATE"}},
                        {
                            "name": "date2",
                            "value": {
                                "type": "function",
                                "returnType": "date",
                                "function": {"name": "DATE.TODAY", "args": []},
                            },
                        },
                    ],
                },
            },
            {"type": "value", "returnType": "number", "value": 10},
            {
                "type": "ruleRef",
                "returnType": "number",
                "ruleRef": {
                    "id": "ORDER_SCORE",
                    "uuid": "2a8d6c4e-0b1f-4c3d-9e7a-6b5c4d3e2f10",
                    "version": 1,
                    "returnType": "number",
                },
            },
        ],
        "operators": ["+", "*"],
    },
}

CASE_RULE = {
    "structure": "case",
    "returnType": "text",
    "ruleType": "Transformation",
    "uuId": "7d2e4f60-8a1b-4c3d-a5e6-f7081a2b3c4d",
    "version": 1,
    "metadata": {"id": "AGE_BAND", "description": "Label customers by age"},
    "definition": {
        "whenClauses": [
            {
                "when": {
                    "type": "condition",
                    "returnType": "boolean",
                    "name": "Condition 1",
                    "left": {"type": "field", "returnType": "number", "field": "PERSON.AGE"},
                    "operator": "less",
                    "right": {"type": "value", "returnType": "number", "value": 18},
                },
                "then": {"type": "value", "returnType": "text", "name": "Result 1", "value": "minor"},
                "resultName": "Result 1",
            },
            {
                "when": {
                    "type": "conditionGroup",
                    "returnType": "boolean",
                    "name": "Condition Group 2",
                    "conjunction": "AND",
                    "not": False,
                    "conditions": [
                        {
                            "type": "condition",
                            "returnType": "boolean",
                            "name": "Condition 2.1",
                            "ruleRef": {
                                "id": "IS_ADULT",
                                "uuid": "9f1c2b7e-4d6a-4e0b-8a53-1f2e3d4c5b6a",
                                "version": 2,
                                "returnType": "boolean",
                            },
                        },
                        {
                            "type": "condition",
                            "returnType": "boolean",
                            "name": "Condition 2.2",
                            "left": {"type": "field", "returnType": "boolean", "field": "PERSON.ACTIVE"},
                            "operator": "equal",
                            "right": {"type": "value", "returnType": "boolean", "value": True},
                        },
                    ],
                },
                "then": {"type": "value", "returnType": "text", "name": "Result 2", "value": "active adult"},
                "resultName": "Result 2",
            },
        ],
        "elseClause": {"type": "value", "returnType": "text", "name": "Else", "value": "other"},
        "elseResultName": "Else",
    },
}


@pytest.fixture
def condition_doc():
    return copy.deepcopy(CONDITION_RULE)


@pytest.fixture
def expression_doc():
    return copy.deepcopy(EXPRESSION_RULE)


@pytest.fixture
def case_doc():
    return copy.deepcopy(CASE_RULE)


@pytest.fixture
def condition_rule():
    return Rule.from_dict(copy.deepcopy(CONDITION_RULE))


@pytest.fixture
def case_rule():
    return Rule.from_dict(copy.deepcopy(CASE_RULE))


@pytest.fixture
def rule_file(tmp_path):
    """Write a document to a temp JSON file and return its path."""
    def _write(doc, name="rule.json"):
        path = tmp_path / name
        path.write_text(json.dumps(doc), encoding="utf-8")
        return str(path)
    return _write
