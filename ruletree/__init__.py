"""ruletree: path addressing, naming, expansion state and validation for rule trees."""

from .cascade import FilterResult, filter_cascading
from .catalog import Catalog, catalog_from_dict, catalog_from_yaml, load_catalog
from .errors import (
    CatalogError,
    DocumentError,
    NamingContractError,
    PathError,
    RuleTreeError,
    ValidationError,
)
from .expansion import ExpansionState
from .factories import (
    default_case,
    default_condition,
    default_condition_group,
    default_expression,
    default_expression_group,
    default_rule,
    default_rule_ref_condition,
    default_when_clause,
)
from .logging import ValidationLog, ValidationLogger
from .naming import (
    Namer,
    else_name,
    name_for_new,
    next_number_at_path,
    rename_on_type_change,
    renumber_tree,
    result_name,
)
from .nodes import (
    CaseExpression,
    Condition,
    ConditionGroup,
    Expression,
    ExpressionGroup,
    FunctionArg,
    FunctionCall,
    Rule,
    RuleRef,
    WhenClause,
    node_from_dict,
    node_to_dict,
)
from .paths import (
    PathKey,
    child_path,
    iter_node_paths,
    join_path,
    parent_number,
    parent_ordinal_chain,
    parent_path,
    position_in_parent,
    root_path,
)
from .session import EditingSession
from .sourcemap import SourceMap, build_source_map
from .validator import ValidationResult, Validator

__all__ = [
    "Rule",
    "Condition",
    "ConditionGroup",
    "Expression",
    "ExpressionGroup",
    "WhenClause",
    "CaseExpression",
    "RuleRef",
    "FunctionCall",
    "FunctionArg",
    "node_from_dict",
    "node_to_dict",
    "default_rule",
    "default_condition",
    "default_condition_group",
    "default_rule_ref_condition",
    "default_expression",
    "default_expression_group",
    "default_when_clause",
    "default_case",
    "PathKey",
    "root_path",
    "child_path",
    "parent_path",
    "parent_ordinal_chain",
    "parent_number",
    "position_in_parent",
    "iter_node_paths",
    "join_path",
    "Namer",
    "name_for_new",
    "next_number_at_path",
    "rename_on_type_change",
    "renumber_tree",
    "result_name",
    "else_name",
    "ExpansionState",
    "Validator",
    "ValidationResult",
    "ValidationLogger",
    "ValidationLog",
    "filter_cascading",
    "FilterResult",
    "Catalog",
    "catalog_from_dict",
    "catalog_from_yaml",
    "load_catalog",
    "EditingSession",
    "SourceMap",
    "build_source_map",
    "RuleTreeError",
    "PathError",
    "NamingContractError",
    "CatalogError",
    "DocumentError",
    "ValidationError",
]
