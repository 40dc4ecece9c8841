"""Structural and semantic validator for rule documents.

Works on parsed data (dicts from JSON), not on live node objects, so it can
report on documents the node codec would refuse to decode. Every problem is
returned as an addressed ``ValidationError``; nothing is raised for bad data.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .catalog import Catalog
from .errors import (
    ADVISORY_TYPES,
    ARRAY_LENGTH_MISMATCH,
    INVALID_OPERATOR,
    MISSING_FIELD,
    NAMING_CONVENTION,
    SEMANTIC_TYPES,
    SHAPE_MISMATCH,
    STRUCTURAL_TYPES,
    TYPE_MISMATCH,
    UNRESOLVED_REFERENCE,
    UNUSED_BRANCH,
    ValidationError,
)
from .logging import ValidationLog, ValidationLogger
from .nodes import (
    CONDITION,
    CONDITION_GROUP,
    CONJUNCTIONS,
    EXPRESSION_GROUP,
    EXPRESSION_SOURCES,
    STRUCTURES,
    Rule,
)
from .paths import child_path, root_path
from .sourcemap import build_source_map

# Top-level fields every rule document carries
REQUIRED_FIELDS = ("structure", "returnType", "ruleType", "uuId", "version", "metadata", "definition")
REQUIRED_METADATA = ("id", "description")

# Python types accepted for literal values of each return type
_VALUE_TYPES: dict[str, tuple[type, ...]] = {
    "number": (int, float),
    "text": (str,),
    "boolean": (bool,),
    "date": (str,),
}


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class ValidationResult:
    """Ordered findings of one validation run: structural first, then semantic."""
    issues: list[ValidationError] = field(default_factory=list)
    log: ValidationLog | None = None

    @property
    def errors(self) -> list[ValidationError]:
        return [e for e in self.issues if not e.is_warning]

    @property
    def warnings(self) -> list[ValidationError]:
        return [e for e in self.issues if e.is_warning]

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def by_key(self) -> dict[str | None, list[ValidationError]]:
        """Group findings by the path key of the node they belong to."""
        grouped: dict[str | None, list[ValidationError]] = {}
        for issue in self.issues:
            grouped.setdefault(issue.key, []).append(issue)
        return grouped

    def by_category(self) -> dict[str, list[ValidationError]]:
        """Errors (not warnings) split into structural, semantic and advisory tags."""
        categories = (
            ("structural", STRUCTURAL_TYPES),
            ("semantic", SEMANTIC_TYPES),
            ("advisory", ADVISORY_TYPES),
        )
        return {
            name: [e for e in self.errors if e.error_type in types]
            for name, types in categories
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

class Validator:
    """Validates rule documents against the node grammar and a catalog."""

    def __init__(self, catalog: Catalog | None = None):
        self.catalog = catalog or Catalog.default()

    def validate(
        self,
        document: Any = None,
        raw_source: str | None = None,
        strict: bool = False,
        draft: bool = False,
        logger: ValidationLogger | None = None,
    ) -> ValidationResult:
        """Run both layers and return every finding (empty errors = valid).

        ``draft`` tolerates incomplete edits (empty operand slots, empty
        child lists). ``strict`` turns advisory findings into errors. When
        both are set, draft decides completeness and strict everything else.

        With ``raw_source`` every finding also carries the ``line`` of its
        path in that text. ``document``, when given, is what gets validated;
        otherwise ``raw_source`` is parsed.
        """
        source_map = None
        if raw_source is not None:
            try:
                parsed = json.loads(raw_source)
            except (TypeError, ValueError) as exc:
                # An unparsable text next to a given document only costs the lines
                if document is None:
                    issue = ValidationError(
                        SHAPE_MISMATCH, "$", f"Document is not valid JSON: {exc}",
                        line=getattr(exc, "lineno", None),
                    )
                    if logger:
                        logger.start_layer("structural")
                        logger.complete_layer("structural", error_count=1)
                    return ValidationResult([issue], log=self._finish(logger))
            else:
                source_map = build_source_map(raw_source)
                if document is None:
                    document = parsed
        if isinstance(document, Rule):
            document = document.to_dict()

        issues: list[ValidationError] = []
        if logger:
            logger.start_layer("structural")
        structural = _StructuralPass(self.catalog, strict, draft).run(document)
        issues += structural
        if logger:
            logger.complete_layer("structural", *_counts(structural))

        if isinstance(document, dict):
            if logger:
                logger.start_layer("semantic")
            semantic = _SemanticPass(self.catalog, strict, draft).run(document)
            issues += semantic
            if logger:
                logger.complete_layer("semantic", *_counts(semantic))

        if source_map is not None:
            for issue in issues:
                issue.line = source_map.line_for(issue.path)
        return ValidationResult(issues, log=self._finish(logger))

    def _finish(self, logger: ValidationLogger | None) -> ValidationLog | None:
        return logger.finish() if logger else None


def _counts(issues: list[ValidationError]) -> tuple[int, int]:
    warnings = sum(1 for i in issues if i.is_warning)
    return len(issues) - warnings, warnings


def _root_tag(doc: dict[str, Any]) -> str:
    structure = doc.get("structure")
    if structure in STRUCTURES:
        return structure
    definition = doc.get("definition")
    if isinstance(definition, dict):
        if "whenClauses" in definition:
            return "case"
        if definition.get("type") == EXPRESSION_GROUP or definition.get("type") in EXPRESSION_SOURCES:
            return "expression"
    return "condition"


def _group_child_tag(child: Any) -> str:
    if isinstance(child, dict):
        tag = child.get("type")
        if tag in (CONDITION, CONDITION_GROUP):
            return tag
        if "conditions" in child:
            return CONDITION_GROUP
    return CONDITION


def _is_condition_group(d: dict[str, Any]) -> bool:
    return d.get("type") == CONDITION_GROUP or (d.get("type") is None and "conditions" in d)


def _type_name(value: Any) -> str:
    return type(value).__name__


# ---------------------------------------------------------------------------
# Shared pass machinery
# ---------------------------------------------------------------------------

class _Pass:
    def __init__(self, catalog: Catalog, strict: bool, draft: bool):
        self.catalog = catalog
        self.strict = strict
        self.draft = draft
        self.issues: list[ValidationError] = []

    def _error(self, error_type: str, path: str, message: str, key: str | None = None, **details) -> None:
        self.issues.append(ValidationError(error_type, path, message, key=key, details=details or None))

    def _advisory(self, error_type: str, path: str, message: str, key: str | None = None, **details) -> None:
        severity = "error" if self.strict else "warning"
        self.issues.append(ValidationError(
            error_type, path, message, key=key, severity=severity, details=details or None,
        ))

    def _incomplete(self, path: str, message: str, key: str | None = None) -> None:
        """A slot the user has not filled in yet; tolerated in draft mode."""
        if not self.draft:
            self._error(MISSING_FIELD, path, message, key=key)


# ---------------------------------------------------------------------------
# Structural layer
# ---------------------------------------------------------------------------

class _StructuralPass(_Pass):
    """Presence and shape of every field against the closed node grammar."""

    def run(self, doc: Any) -> list[ValidationError]:
        if not isinstance(doc, dict):
            self._error(SHAPE_MISMATCH, "$", f"Rule document must be an object, got {_type_name(doc)}")
            return self.issues
        self._validate_document_fields(doc)
        self._validate_metadata(doc)
        self._validate_definition(doc)
        return self.issues

    def _validate_document_fields(self, doc: dict[str, Any]) -> None:
        for name in REQUIRED_FIELDS:
            if name == "uuId":
                present = "uuId" in doc or "uuid" in doc
                if not present:
                    self._error(MISSING_FIELD, "uuId", "Rule document is missing 'uuId'")
                elif doc.get("uuId", doc.get("uuid")) is None:
                    # Unsaved documents have no uuid yet
                    self._incomplete("uuId", "Rule has no uuId yet")
                continue
            if doc.get(name) is None:
                self._error(MISSING_FIELD, name, f"Rule document is missing '{name}'")

        structure = doc.get("structure")
        if structure is not None and structure not in STRUCTURES:
            self._error(
                SHAPE_MISMATCH, "structure",
                f"Unknown structure {structure!r}. Valid structures: {', '.join(STRUCTURES)}",
            )
        for name in ("returnType", "ruleType"):
            value = doc.get(name)
            if value is not None and not isinstance(value, str):
                self._error(SHAPE_MISMATCH, name, f"'{name}' must be a string, got {_type_name(value)}")
        version = doc.get("version")
        if version is not None and (isinstance(version, bool) or not isinstance(version, int) or version < 1):
            self._error(SHAPE_MISMATCH, "version", f"'version' must be a positive integer, got {version!r}")

    def _validate_metadata(self, doc: dict[str, Any]) -> None:
        metadata = doc.get("metadata")
        if metadata is None:
            return
        if not isinstance(metadata, dict):
            self._error(SHAPE_MISMATCH, "metadata", f"'metadata' must be an object, got {_type_name(metadata)}")
            return
        for name in REQUIRED_METADATA:
            path = f"metadata.{name}"
            if name not in metadata or metadata[name] is None:
                self._error(MISSING_FIELD, path, f"Rule metadata is missing '{name}'")
            elif not isinstance(metadata[name], str):
                self._error(SHAPE_MISMATCH, path, f"'{path}' must be a string, got {_type_name(metadata[name])}")

    def _validate_definition(self, doc: dict[str, Any]) -> None:
        definition = doc.get("definition")
        if definition is None:
            return
        if not isinstance(definition, dict):
            self._error(SHAPE_MISMATCH, "definition", f"'definition' must be an object, got {_type_name(definition)}")
            return
        tag = _root_tag(doc)
        key = root_path(tag)
        if tag == "case":
            self._check_case(definition, "definition", key)
        elif tag == "expression":
            self._check_operand(definition, "definition", key)
        else:
            self._check_condition_like(definition, "definition", key)

    # -- conditions ---------------------------------------------------------

    def _check_condition_like(self, d: Any, path: str, key: str) -> None:
        if not isinstance(d, dict):
            self._error(SHAPE_MISMATCH, path, f"Expected a condition object, got {_type_name(d)}", key)
            return
        if _is_condition_group(d):
            self._check_group(d, path, key)
        elif d.get("type") == CONDITION or (d.get("type") is None and ("left" in d or "ruleRef" in d)):
            self._check_condition(d, path, key)
        else:
            self._error(
                SHAPE_MISMATCH, path,
                f"Expected a condition or condition group, got type {d.get('type')!r}", key,
            )

    def _check_group(self, d: dict[str, Any], path: str, key: str) -> None:
        if d.get("ruleRef") is not None:
            self._check_rule_ref(d["ruleRef"], f"{path}.ruleRef", key)
            return
        conjunction = d.get("conjunction")
        if conjunction is None:
            self._error(MISSING_FIELD, f"{path}.conjunction", "Condition group is missing 'conjunction'", key)
        elif conjunction not in CONJUNCTIONS:
            self._error(
                SHAPE_MISMATCH, f"{path}.conjunction",
                f"Conjunction must be one of {', '.join(CONJUNCTIONS)}, got {conjunction!r}", key,
            )
        if "not" in d and not isinstance(d["not"], bool):
            self._error(SHAPE_MISMATCH, f"{path}.not", f"'not' must be a boolean, got {_type_name(d['not'])}", key)

        conditions = d.get("conditions")
        if conditions is None:
            self._error(MISSING_FIELD, f"{path}.conditions", "Condition group is missing 'conditions'", key)
            return
        if not isinstance(conditions, list):
            self._error(SHAPE_MISMATCH, f"{path}.conditions", "'conditions' must be a list", key)
            return
        if not conditions and not self.draft:
            self._error(ARRAY_LENGTH_MISMATCH, f"{path}.conditions", "Condition group has no conditions", key)
        for i, child in enumerate(conditions):
            self._check_condition_like(
                child, f"{path}.conditions[{i}]", child_path(key, _group_child_tag(child), i),
            )

    def _check_condition(self, d: dict[str, Any], path: str, key: str) -> None:
        if d.get("ruleRef") is not None:
            if d.get("left") is not None:
                self._error(SHAPE_MISMATCH, path, "A condition cannot hold both 'ruleRef' and 'left'", key)
            self._check_rule_ref(d["ruleRef"], f"{path}.ruleRef", key)
            return
        self._check_operand(d.get("left"), f"{path}.left", child_path(key, "left", 0))

        operator = d.get("operator")
        if operator is None:
            self._incomplete(f"{path}.operator", "Condition has no operator", key)
        elif not isinstance(operator, str):
            self._error(SHAPE_MISMATCH, f"{path}.operator", f"Operator must be a string, got {_type_name(operator)}", key)

        right = d.get("right")
        if isinstance(right, list):
            for j, operand in enumerate(right):
                self._check_operand(operand, f"{path}.right[{j}]", child_path(key, "right", j))
        elif right is not None:
            self._check_operand(right, f"{path}.right", child_path(key, "right", 0))

    def _check_rule_ref(self, ref: Any, path: str, key: str) -> None:
        if not isinstance(ref, dict):
            self._error(SHAPE_MISMATCH, path, f"'ruleRef' must be an object, got {_type_name(ref)}", key)
            return
        if not ref.get("id"):
            self._incomplete(f"{path}.id", "No rule selected for this reference", key)
        version = ref.get("version")
        if version is not None and (isinstance(version, bool) or not isinstance(version, int)):
            self._error(SHAPE_MISMATCH, f"{path}.version", f"Rule version must be an integer, got {version!r}", key)

    # -- expressions --------------------------------------------------------

    def _check_operand(self, d: Any, path: str, key: str) -> None:
        if d is None:
            self._incomplete(path, "Operand slot is empty", key)
            return
        if not isinstance(d, dict):
            self._error(SHAPE_MISMATCH, path, f"Operand must be an object, got {_type_name(d)}", key)
            return
        tag = d.get("type")
        if tag is None:
            self._error(MISSING_FIELD, f"{path}.type", "Operand is missing 'type'", key)
        elif tag == EXPRESSION_GROUP:
            self._check_expression_group(d, path, key)
        elif tag in EXPRESSION_SOURCES:
            self._check_expression(d, path, key)
        else:
            self._error(
                SHAPE_MISMATCH, f"{path}.type",
                f"Unknown expression type {tag!r}. Valid types: {', '.join(EXPRESSION_SOURCES)}, {EXPRESSION_GROUP}",
                key,
            )

    def _check_expression_group(self, d: dict[str, Any], path: str, key: str) -> None:
        if d.get("returnType") is None:
            self._error(MISSING_FIELD, f"{path}.returnType", "Expression group is missing 'returnType'", key)
        expressions = d.get("expressions")
        if expressions is None:
            self._error(MISSING_FIELD, f"{path}.expressions", "Expression group is missing 'expressions'", key)
            return
        if not isinstance(expressions, list):
            self._error(SHAPE_MISMATCH, f"{path}.expressions", "'expressions' must be a list", key)
            return
        operators = d.get("operators", [])
        if not isinstance(operators, list):
            self._error(SHAPE_MISMATCH, f"{path}.operators", "'operators' must be a list", key)
            operators = None

        if not expressions:
            if not self.draft:
                self._error(ARRAY_LENGTH_MISMATCH, f"{path}.expressions", "Expression group has no expressions", key)
        elif operators is not None and len(operators) != len(expressions) - 1:
            self._error(
                ARRAY_LENGTH_MISMATCH, f"{path}.operators",
                f"Expected {len(expressions) - 1} operator(s) for {len(expressions)} expression(s), "
                f"got {len(operators)}",
                key,
            )
        for i, op in enumerate(operators or []):
            if not isinstance(op, str):
                self._error(SHAPE_MISMATCH, f"{path}.operators[{i}]", f"Operator must be a string, got {op!r}", key)
        for i, expr in enumerate(expressions):
            self._check_operand(expr, f"{path}.expressions[{i}]", child_path(key, "expression", i))

    def _check_expression(self, d: dict[str, Any], path: str, key: str) -> None:
        if d.get("returnType") is None:
            self._error(MISSING_FIELD, f"{path}.returnType", "Expression is missing 'returnType'", key)
        source = d["type"]
        if source == "value":
            if d.get("value") is None:
                self._incomplete(f"{path}.value", "Value is empty", key)
        elif source == "field":
            name = d.get("field")
            if not name:
                self._incomplete(f"{path}.field", "No field selected", key)
            elif not isinstance(name, str):
                self._error(SHAPE_MISMATCH, f"{path}.field", f"Field must be a string, got {_type_name(name)}", key)
        elif source == "function":
            self._check_function(d.get("function"), f"{path}.function", key)
        else:
            ref = d.get("ruleRef")
            if ref is None:
                self._incomplete(f"{path}.ruleRef", "No rule selected for this reference", key)
            else:
                self._check_rule_ref(ref, f"{path}.ruleRef", key)

    def _check_function(self, fn: Any, path: str, key: str) -> None:
        if fn is None:
            self._incomplete(path, "No function selected", key)
            return
        if not isinstance(fn, dict):
            self._error(SHAPE_MISMATCH, path, f"'function' must be an object, got {_type_name(fn)}", key)
            return
        if not fn.get("name"):
            self._incomplete(f"{path}.name", "No function selected", key)
        args = fn.get("args", [])
        if not isinstance(args, list):
            self._error(SHAPE_MISMATCH, f"{path}.args", "'args' must be a list", key)
            return
        for i, arg in enumerate(args):
            arg_path = f"{path}.args[{i}]"
            if not isinstance(arg, dict):
                self._error(SHAPE_MISMATCH, arg_path, f"Function argument must be an object, got {_type_name(arg)}", key)
                continue
            if not arg.get("name"):
                self._error(MISSING_FIELD, f"{arg_path}.name", "Function argument is missing 'name'", key)
            self._check_operand(arg.get("value"), f"{arg_path}.value", child_path(key, "arg", i))

    # -- case ---------------------------------------------------------------

    def _check_case(self, d: dict[str, Any], path: str, key: str) -> None:
        clauses = d.get("whenClauses")
        if clauses is None:
            self._error(MISSING_FIELD, f"{path}.whenClauses", "Case is missing 'whenClauses'", key)
        elif not isinstance(clauses, list):
            self._error(SHAPE_MISMATCH, f"{path}.whenClauses", "'whenClauses' must be a list", key)
        else:
            if not clauses and not self.draft:
                self._error(ARRAY_LENGTH_MISMATCH, f"{path}.whenClauses", "Case has no WHEN clauses", key)
            for i, clause in enumerate(clauses):
                self._check_when_clause(clause, f"{path}.whenClauses[{i}]", child_path(key, "when", i))
        if d.get("elseClause") is not None:
            self._check_operand(d["elseClause"], f"{path}.elseClause", child_path(key, "else", 0))

    def _check_when_clause(self, clause: Any, path: str, key: str) -> None:
        if not isinstance(clause, dict):
            self._error(SHAPE_MISMATCH, path, f"WHEN clause must be an object, got {_type_name(clause)}", key)
            return
        if clause.get("when") is None:
            self._error(MISSING_FIELD, f"{path}.when", "WHEN clause is missing 'when'", key)
        else:
            # The WHEN condition shares its clause's key
            self._check_condition_like(clause["when"], f"{path}.when", key)
        if "then" not in clause:
            self._error(MISSING_FIELD, f"{path}.then", "WHEN clause is missing 'then'", key)
        else:
            self._check_operand(clause["then"], f"{path}.then", child_path(key, "then", 0))


# ---------------------------------------------------------------------------
# Semantic layer
# ---------------------------------------------------------------------------

class _SemanticPass(_Pass):
    """Types, operators and references; skips whatever is structurally broken."""

    def run(self, doc: dict[str, Any]) -> list[ValidationError]:
        self._validate_rule_types(doc)
        definition = doc.get("definition")
        if isinstance(definition, dict):
            tag = _root_tag(doc)
            key = root_path(tag)
            declared = doc.get("returnType") if isinstance(doc.get("returnType"), str) else None
            if tag == "case":
                evaluated = self._check_case(definition, "definition", key, declared)
            elif tag == "expression":
                evaluated = self._operand_type(definition, "definition", key)
            else:
                self._check_condition_like(definition, "definition", key)
                evaluated = "boolean"
            if declared and evaluated and declared != evaluated:
                self._advisory(
                    TYPE_MISMATCH, "returnType",
                    f"Rule declares return type {declared} but its definition evaluates to {evaluated}",
                    declared=declared, evaluated=evaluated,
                )
        return self.issues

    def _validate_rule_types(self, doc: dict[str, Any]) -> None:
        return_type = doc.get("returnType")
        if isinstance(return_type, str) and self.catalog.types and return_type not in self.catalog.types:
            self._error(
                TYPE_MISMATCH, "returnType",
                f"Unknown return type '{return_type}'. Valid types: {', '.join(sorted(self.catalog.types))}",
            )
        rule_type = doc.get("ruleType")
        if isinstance(rule_type, str) and self.catalog.rule_types and rule_type not in self.catalog.rule_types:
            self._error(UNRESOLVED_REFERENCE, "ruleType", f"Unknown rule type '{rule_type}'")

    # -- conditions ---------------------------------------------------------

    def _check_condition_like(self, d: Any, path: str, key: str) -> None:
        if not isinstance(d, dict):
            return
        if _is_condition_group(d):
            self._check_group(d, path, key)
        elif d.get("type") == CONDITION or "left" in d or "ruleRef" in d:
            self._check_condition(d, path, key)

    def _check_group(self, d: dict[str, Any], path: str, key: str) -> None:
        if isinstance(d.get("ruleRef"), dict):
            self._check_rule_ref(d["ruleRef"], f"{path}.ruleRef", key, expected="boolean")
            return
        conditions = d.get("conditions")
        if not isinstance(conditions, list):
            return
        self._check_sibling_names(conditions, path, key)
        for i, child in enumerate(conditions):
            self._check_condition_like(
                child, f"{path}.conditions[{i}]", child_path(key, _group_child_tag(child), i),
            )

    def _check_condition(self, d: dict[str, Any], path: str, key: str) -> None:
        return_type = d.get("returnType")
        if return_type is not None and return_type != "boolean":
            self._error(TYPE_MISMATCH, f"{path}.returnType", f"Conditions return boolean, not {return_type!r}", key)
        if isinstance(d.get("ruleRef"), dict):
            self._check_rule_ref(d["ruleRef"], f"{path}.ruleRef", key, expected="boolean")
            return

        left_type = self._operand_type(d.get("left"), f"{path}.left", child_path(key, "left", 0))
        operator = d.get("operator")
        if isinstance(operator, str):
            self._check_condition_operator(operator, left_type, path, key)
            self._check_cardinality(operator, d.get("right"), path, key)

        right = d.get("right")
        operands = (
            [(r, f"{path}.right[{j}]", child_path(key, "right", j)) for j, r in enumerate(right)]
            if isinstance(right, list)
            else [(right, f"{path}.right", child_path(key, "right", 0))]
        )
        for operand, right_path, right_key in operands:
            right_type = self._operand_type(operand, right_path, right_key)
            if left_type and right_type and right_type != left_type:
                self._error(
                    TYPE_MISMATCH, right_path,
                    f"Right operand evaluates to {right_type} but the left operand is {left_type}",
                    right_key, left=left_type, right=right_type,
                )

    def _check_condition_operator(self, operator: str, left_type: str | None, path: str, key: str) -> None:
        if self.catalog.operators and operator not in self.catalog.operators:
            self._error(INVALID_OPERATOR, f"{path}.operator", f"Unknown condition operator '{operator}'", key)
            return
        spec = self.catalog.type_spec(left_type) if left_type else None
        if spec is not None and operator not in spec.condition_operators:
            self._error(
                INVALID_OPERATOR, f"{path}.operator",
                f"Operator '{operator}' cannot compare {left_type} operands",
                key, operator=operator, type=left_type,
            )

    def _check_cardinality(self, operator: str, right: Any, path: str, key: str) -> None:
        spec = self.catalog.operators.get(operator)
        if spec is None:
            return
        if right is None:
            count = 0
        elif isinstance(right, list):
            count = len(right)
        else:
            count = 1
        if spec.is_list:
            low, high = spec.min_cardinality or 0, spec.max_cardinality
            ok = count >= low and (high is None or count <= high)
            expected = f"at least {low}" if high is None else f"{low} to {high}"
        else:
            ok = count == spec.cardinality
            expected = str(spec.cardinality)
        if ok:
            return
        if count == 0:
            self._incomplete(f"{path}.right", f"Operator '{operator}' needs {expected} right operand(s)", key)
            return
        self._error(
            ARRAY_LENGTH_MISMATCH, f"{path}.right",
            f"Operator '{operator}' takes {expected} right operand(s), got {count}",
            key, operator=operator, count=count,
        )

    def _check_sibling_names(self, conditions: list[Any], path: str, key: str) -> None:
        seen: dict[str, int] = {}
        for i, child in enumerate(conditions):
            if not isinstance(child, dict):
                continue
            name = child.get("name")
            name_path = f"{path}.conditions[{i}].name"
            child_key = child_path(key, _group_child_tag(child), i)
            if not isinstance(name, str) or not name.strip():
                self._advisory(NAMING_CONVENTION, name_path, "Condition has no name", child_key)
                continue
            if name in seen:
                self._advisory(
                    NAMING_CONVENTION, name_path,
                    f"Name '{name}' is already used by condition {seen[name] + 1} of this group",
                    child_key,
                )
            else:
                seen[name] = i

    # -- expressions --------------------------------------------------------

    def _operand_type(self, d: Any, path: str, key: str) -> str | None:
        """Check an operand and return the type it evaluates to, if known."""
        if not isinstance(d, dict):
            return None
        tag = d.get("type")
        if tag == EXPRESSION_GROUP:
            return self._group_type(d, path, key)
        if tag in EXPRESSION_SOURCES:
            return self._expression_type(d, path, key)
        return None

    def _group_type(self, d: dict[str, Any], path: str, key: str) -> str | None:
        declared = d.get("returnType") if isinstance(d.get("returnType"), str) else None
        expressions = d.get("expressions")
        if not isinstance(expressions, list) or not expressions:
            return declared
        operators = d.get("operators") if isinstance(d.get("operators"), list) else []

        # A one-operand group is its sole expression
        if len(expressions) == 1 and not operators:
            return self._operand_type(expressions[0], f"{path}.expressions[0]", child_path(key, "expression", 0))

        types = [
            self._operand_type(e, f"{path}.expressions[{i}]", child_path(key, "expression", i))
            for i, e in enumerate(expressions)
        ]
        if declared is None:
            return None
        if not self._known_type(declared, f"{path}.returnType", key):
            return None

        spec = self.catalog.type_spec(declared)
        for i, symbol in enumerate(operators):
            if not isinstance(symbol, str):
                continue
            name = self.catalog.operator_name(symbol)
            if spec is not None and name not in spec.expression_operators:
                self._error(
                    INVALID_OPERATOR, f"{path}.operators[{i}]",
                    f"Operator '{symbol}' is not valid for {declared} expressions",
                    key, operator=symbol, type=declared,
                )

        mismatched = {i: t for i, t in enumerate(types) if t and t != declared}
        if mismatched:
            found = ", ".join(sorted(set(mismatched.values())))
            self._error(
                TYPE_MISMATCH, path,
                f"Operand(s) {', '.join(str(i + 1) for i in mismatched)} evaluate to {found} "
                f"but the group returns {declared}",
                key, declared=declared, operands={str(i): t for i, t in mismatched.items()},
            )
        return declared

    def _expression_type(self, d: dict[str, Any], path: str, key: str) -> str | None:
        declared = d.get("returnType") if isinstance(d.get("returnType"), str) else None
        if declared is not None and not self._known_type(declared, f"{path}.returnType", key):
            return None
        source = d["type"]
        if source == "value":
            self._check_literal(d.get("value"), declared, path, key)
        elif source == "field":
            self._check_field(d.get("field"), declared, path, key)
        elif source == "function":
            if isinstance(d.get("function"), dict):
                self._check_function(d["function"], declared, f"{path}.function", key)
        elif isinstance(d.get("ruleRef"), dict):
            self._check_rule_ref(d["ruleRef"], f"{path}.ruleRef", key, expected=declared)
        return declared

    def _known_type(self, return_type: str, path: str, key: str) -> bool:
        if not self.catalog.types or return_type in self.catalog.types:
            return True
        self._error(TYPE_MISMATCH, path, f"Unknown return type '{return_type}'", key)
        return False

    def _check_literal(self, value: Any, declared: str | None, path: str, key: str) -> None:
        if value is None or declared not in _VALUE_TYPES:
            return
        accepted = _VALUE_TYPES[declared]
        # bool is an int subclass; keep it out of numbers
        if isinstance(value, bool) and declared != "boolean":
            ok = False
        else:
            ok = isinstance(value, accepted)
        if not ok:
            self._error(
                TYPE_MISMATCH, f"{path}.value",
                f"Value {value!r} is not a {declared}", key, declared=declared,
            )

    def _check_field(self, name: Any, declared: str | None, path: str, key: str) -> None:
        if not isinstance(name, str) or not name or not self.catalog.fields:
            return
        field_type = self.catalog.field_type(name)
        if field_type is None:
            self._error(UNRESOLVED_REFERENCE, f"{path}.field", f"Unknown field '{name}'", key)
        elif declared and field_type != declared:
            self._error(
                TYPE_MISMATCH, f"{path}.field",
                f"Field '{name}' is {field_type} but the expression returns {declared}",
                key, field=name, declared=declared,
            )

    def _check_function(self, fn: dict[str, Any], declared: str | None, path: str, key: str) -> None:
        name = fn.get("name")
        args = fn.get("args") if isinstance(fn.get("args"), list) else []
        arg_types = [
            self._operand_type(
                a.get("value") if isinstance(a, dict) else None,
                f"{path}.args[{i}].value", child_path(key, "arg", i),
            )
            for i, a in enumerate(args)
        ]
        if not isinstance(name, str) or not name or not self.catalog.functions:
            return
        spec = self.catalog.function(name)
        if spec is None:
            self._error(UNRESOLVED_REFERENCE, f"{path}.name", f"Unknown function '{name}'", key)
            return
        if declared and spec.return_type != declared:
            self._error(
                TYPE_MISMATCH, path,
                f"Function '{name}' returns {spec.return_type} but the expression returns {declared}",
                key, function=name, declared=declared,
            )

        if spec.dynamic_args:
            high = spec.max_args
            if len(args) < spec.min_args or (high is not None and len(args) > high):
                expected = f"at least {spec.min_args}" if high is None else f"{spec.min_args} to {high}"
                self._error(
                    ARRAY_LENGTH_MISMATCH, f"{path}.args",
                    f"Function '{name}' takes {expected} argument(s), got {len(args)}", key,
                )
            expected_types = [spec.arg_type] * len(args)
        else:
            if len(args) != len(spec.args):
                self._error(
                    ARRAY_LENGTH_MISMATCH, f"{path}.args",
                    f"Function '{name}' takes {len(spec.args)} argument(s), got {len(args)}", key,
                )
            for i, (arg, arg_spec) in enumerate(zip(args, spec.args)):
                arg_name = arg.get("name") if isinstance(arg, dict) else None
                if arg_name and arg_name != arg_spec.name:
                    self._error(
                        UNRESOLVED_REFERENCE, f"{path}.args[{i}].name",
                        f"Argument {i + 1} of '{name}' should be '{arg_spec.name}', got '{arg_name}'", key,
                    )
            expected_types = [a.type for a in spec.args]

        for i, (actual, expected) in enumerate(zip(arg_types, expected_types)):
            if actual and expected and actual != expected:
                self._error(
                    TYPE_MISMATCH, f"{path}.args[{i}].value",
                    f"Argument {i + 1} of '{name}' must be {expected}, got {actual}",
                    child_path(key, "arg", i),
                )

    def _check_rule_ref(self, ref: dict[str, Any], path: str, key: str, expected: str | None = None) -> None:
        ref_type = ref.get("returnType")
        if expected and isinstance(ref_type, str) and ref_type != expected:
            self._error(
                TYPE_MISMATCH, f"{path}.returnType",
                f"Referenced rule returns {ref_type} but {expected} is required", key,
            )
        rule_id = ref.get("id")
        if not isinstance(rule_id, str) or not rule_id or not self.catalog.rules:
            return
        entry = self.catalog.rule(rule_id)
        if entry is None:
            self._error(UNRESOLVED_REFERENCE, f"{path}.id", f"Unknown rule '{rule_id}'", key)
            return
        version = ref.get("version")
        if entry.versions and isinstance(version, int) and version not in entry.versions:
            self._error(
                UNRESOLVED_REFERENCE, f"{path}.version",
                f"Rule '{rule_id}' has no version {version}", key,
            )
        if isinstance(ref_type, str) and entry.return_type != ref_type:
            self._error(
                TYPE_MISMATCH, f"{path}.returnType",
                f"Rule '{rule_id}' returns {entry.return_type}, reference says {ref_type}", key,
            )

    # -- case ---------------------------------------------------------------

    def _check_case(self, d: dict[str, Any], path: str, key: str, declared: str | None) -> str | None:
        clauses = d.get("whenClauses")
        seen: dict[str, int] = {}
        for i, clause in enumerate(clauses if isinstance(clauses, list) else []):
            if not isinstance(clause, dict):
                continue
            clause_path = f"{path}.whenClauses[{i}]"
            clause_key = child_path(key, "when", i)
            when = clause.get("when")
            self._check_condition_like(when, f"{clause_path}.when", clause_key)
            if isinstance(when, dict):
                signature = json.dumps(_strip_names(when), sort_keys=True, default=str)
                if signature in seen:
                    self._advisory(
                        UNUSED_BRANCH, clause_path,
                        f"WHEN clause {i + 1} repeats clause {seen[signature] + 1} and can never match",
                        clause_key,
                    )
                else:
                    seen[signature] = i
            self._check_result(
                clause.get("then"), declared, f"{clause_path}.then", child_path(clause_key, "then", 0),
            )
        if d.get("elseClause") is not None:
            self._check_result(d["elseClause"], declared, f"{path}.elseClause", child_path(key, "else", 0))
        return declared

    def _check_result(self, operand: Any, declared: str | None, path: str, key: str) -> None:
        result_type = self._operand_type(operand, path, key)
        if declared and result_type and result_type != declared:
            self._error(
                TYPE_MISMATCH, path,
                f"Result evaluates to {result_type} but the rule returns {declared}",
                key, declared=declared, evaluated=result_type,
            )


def _strip_names(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _strip_names(v) for k, v in value.items() if k not in ("name", "id")}
    if isinstance(value, list):
        return [_strip_names(v) for v in value]
    return value
