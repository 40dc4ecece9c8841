"""CLI for ruletree: validate rule documents and inspect their names and paths."""

from __future__ import annotations

import argparse
import json
import sys

from .cascade import filter_cascading
from .catalog import Catalog, load_catalog
from .errors import RuleTreeError
from .logging import ValidationLogger
from .naming import positional_name, renumber_tree
from .nodes import CASE, CONDITION, CONDITION_GROUP, WHEN_CLAUSE, Rule
from .paths import iter_node_paths, parent_number, position_in_parent
from .validator import Validator


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="ruletree",
        description="Validate and inspect rule tree documents",
    )
    sub = parser.add_subparsers(dest="command")

    # validate
    validate_p = sub.add_parser("validate", help="Validate a rule document")
    validate_p.add_argument("file", help="Rule document (JSON)")
    validate_p.add_argument("--catalog", help="Catalog file (YAML)")
    validate_p.add_argument("--strict", action="store_true", help="Treat advisory findings as errors")
    validate_p.add_argument("--draft", action="store_true", help="Tolerate incomplete edits")
    validate_p.add_argument("--json", action="store_true", dest="as_json", help="Print the result as JSON")
    validate_p.add_argument("--filter", action="store_true", help="Hide cascading errors")
    validate_p.add_argument("--log", action="store_true", help="Print the validation log summary")

    # names
    names_p = sub.add_parser("names", help="Show renumbered display names by path key")
    names_p.add_argument("file", help="Rule document (JSON)")

    # paths
    paths_p = sub.add_parser("paths", help="Show every path key with its numbering")
    paths_p.add_argument("file", help="Rule document (JSON)")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        source = _read_file(args.file)
        if args.command == "validate":
            catalog = load_catalog(args.catalog) if args.catalog else Catalog.default()
            return _cmd_validate(
                source,
                catalog,
                strict=args.strict,
                draft=args.draft,
                as_json=args.as_json,
                filtered=args.filter,
                show_log=args.log,
            )
        elif args.command == "names":
            return _cmd_names(source)
        elif args.command == "paths":
            return _cmd_paths(source)
    except FileNotFoundError:
        print(f"Error: file not found: {args.file}", file=sys.stderr)
        return 1
    except RuleTreeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def _read_file(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


def _load_rule(source: str) -> Rule:
    try:
        data = json.loads(source)
    except ValueError as exc:
        raise RuleTreeError(f"Invalid JSON: {exc}") from exc
    return Rule.from_dict(data)


def _cmd_validate(
    source: str,
    catalog: Catalog,
    strict: bool = False,
    draft: bool = False,
    as_json: bool = False,
    filtered: bool = False,
    show_log: bool = False,
) -> int:
    logger = ValidationLogger(strict=strict, draft=draft)
    result = Validator(catalog).validate(raw_source=source, strict=strict, draft=draft, logger=logger)

    errors = result.errors
    suppressed = 0
    if filtered:
        outcome = filter_cascading(errors)
        errors, suppressed = outcome.errors, outcome.suppressed_count

    if as_json:
        payload = result.to_dict()
        payload["errors"] = [e.to_dict() for e in errors]
        if filtered:
            payload["suppressed"] = suppressed
        print(json.dumps(payload, indent=2))
    else:
        for e in errors:
            print(f"  {_line_prefix(e)}{e.error_type}: {e}", file=sys.stderr)
        for w in result.warnings:
            print(f"  {_line_prefix(w)}warning {w.error_type}: {w}", file=sys.stderr)
        if suppressed:
            print(f"  ({suppressed} related error(s) hidden)", file=sys.stderr)
        if result.valid:
            print(f"Valid: {len(result.warnings)} warning(s)")
        else:
            counts = ", ".join(f"{len(found)} {name}" for name, found in result.by_category().items())
            print(f"Invalid: {counts}", file=sys.stderr)
    if show_log and result.log is not None:
        print(result.log.summary(), file=sys.stderr)
    return 0 if result.valid else 1


def _line_prefix(error) -> str:
    return f"line {error.line}: " if error.line is not None else ""


def _cmd_names(source: str) -> int:
    rule = renumber_tree(_load_rule(source))
    for path, node in iter_node_paths(rule):
        if node.kind == WHEN_CLAUSE:
            name = f"{node.when.name} -> {node.result_name}"
        elif node.kind == CASE:
            name = f"else -> {node.else_name}"
        else:
            name = getattr(node, "name", None)
        if name:
            print(f"{path}  {name}")
    return 0


def _cmd_paths(source: str) -> int:
    rule = _load_rule(source)
    for path, node in iter_node_paths(rule):
        position = position_in_parent(path)
        label = ""
        if node.kind in (CONDITION, CONDITION_GROUP):
            label = positional_name(node.kind, path)
        print(f"{path}  kind={node.kind}  parent={parent_number(path) or '-'}  "
              f"position={position if position is not None else '-'}  {label}".rstrip())
    return 0


if __name__ == "__main__":
    sys.exit(main())
