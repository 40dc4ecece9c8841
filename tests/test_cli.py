"""Tests for ruletree.cli."""

import json

from conftest import CATALOG_YAML

from ruletree.cli import main


class TestCliValidate:

    def test_valid_document(self, rule_file, condition_doc, capsys):
        rc = main(["validate", rule_file(condition_doc)])
        assert rc == 0
        assert "Valid: 0 warning(s)" in capsys.readouterr().out

    def test_invalid_document(self, rule_file, condition_doc, capsys):
        del condition_doc["metadata"]["description"]
        rc = main(["validate", rule_file(condition_doc)])
        assert rc == 1
        err = capsys.readouterr().err
        assert "MISSING_FIELD" in err
        assert "metadata.description" in err

    def test_json_output(self, rule_file, condition_doc, capsys):
        del condition_doc["metadata"]["description"]
        rc = main(["validate", "--json", rule_file(condition_doc)])
        assert rc == 1
        payload = json.loads(capsys.readouterr().out)
        assert payload["valid"] is False
        assert [(e["type"], e["path"]) for e in payload["errors"]] == [("MISSING_FIELD", "metadata.description")]

    def test_errors_carry_source_lines(self, tmp_path, condition_doc, capsys):
        condition_doc["definition"]["conditions"][0]["operator"] = "contains"
        path = tmp_path / "rule.json"
        source = json.dumps(condition_doc, indent=2)
        path.write_text(source, encoding="utf-8")
        expected = next(i for i, line in enumerate(source.splitlines(), 1) if '"operator": "contains"' in line)

        assert main(["validate", "--json", str(path)]) == 1
        assert json.loads(capsys.readouterr().out)["errors"][0]["line"] == expected

        assert main(["validate", str(path)]) == 1
        err = capsys.readouterr().err
        assert f"line {expected}: INVALID_OPERATOR" in err
        assert "Invalid: 0 structural, 1 semantic, 0 advisory" in err

    def test_invalid_json(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        rc = main(["validate", "--json", str(path)])
        assert rc == 1
        payload = json.loads(capsys.readouterr().out)
        assert payload["errors"][0]["type"] == "SHAPE_MISMATCH"
        assert payload["errors"][0]["path"] == "$"

    def test_catalog_resolves_references(self, rule_file, condition_doc, tmp_path, capsys):
        catalog_path = tmp_path / "catalog.yaml"
        catalog_path.write_text(CATALOG_YAML, encoding="utf-8")
        condition_doc["definition"]["conditions"][0]["left"]["expressions"][0]["field"] = "PERSON.HEIGHT"

        assert main(["validate", rule_file(condition_doc)]) == 0
        capsys.readouterr()

        rc = main(["validate", "--catalog", str(catalog_path), rule_file(condition_doc)])
        assert rc == 1
        assert "UNRESOLVED_REFERENCE" in capsys.readouterr().err

    def test_filter_hides_duplicates(self, rule_file, condition_doc, capsys):
        condition_doc["definition"]["conditions"][1]["conditions"][0]["left"] = "ORDER.TOTAL"
        rc = main(["validate", "--filter", "--json", rule_file(condition_doc)])
        assert rc == 1
        payload = json.loads(capsys.readouterr().out)
        assert "suppressed" in payload
        assert payload["errors"]

    def test_draft_tolerates_empty_slots(self, rule_file, condition_doc):
        condition_doc["definition"]["conditions"][0]["right"] = None
        assert main(["validate", rule_file(condition_doc)]) == 1
        assert main(["validate", "--draft", rule_file(condition_doc)]) == 0

    def test_log_summary(self, rule_file, condition_doc, capsys):
        rc = main(["validate", "--log", rule_file(condition_doc)])
        assert rc == 0
        err = capsys.readouterr().err
        assert "structural" in err
        assert "semantic" in err

    def test_missing_file(self, capsys):
        rc = main(["validate", "/nonexistent/rule.json"])
        assert rc == 1
        assert "file not found" in capsys.readouterr().err

    def test_missing_catalog(self, rule_file, condition_doc, capsys):
        rc = main(["validate", "--catalog", "/nonexistent/catalog.yaml", rule_file(condition_doc)])
        assert rc == 1
        assert "Cannot read catalog" in capsys.readouterr().err


class TestCliNames:

    def test_condition_names(self, rule_file, condition_doc, capsys):
        rc = main(["names", rule_file(condition_doc)])
        assert rc == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert lines == [
            "condition-0  Condition Group",
            "condition-0-condition-0  Condition 1",
            "condition-0-conditionGroup-1  Condition Group 2",
            "condition-0-conditionGroup-1-condition-0  Condition 2.1",
            "condition-0-conditionGroup-1-condition-1  Condition 2.2",
        ]

    def test_names_are_renumbered(self, rule_file, condition_doc, capsys):
        condition_doc["definition"]["conditions"][1]["name"] = "Condition Group 7"
        main(["names", rule_file(condition_doc)])
        assert "condition-0-conditionGroup-1  Condition Group 2" in capsys.readouterr().out

    def test_case_names(self, rule_file, case_doc, capsys):
        rc = main(["names", rule_file(case_doc)])
        assert rc == 0
        out = capsys.readouterr().out
        assert "case-0  else -> Else" in out
        assert "case-0-when-0  Condition 1 -> Result 1" in out
        assert "case-0-when-1  Condition Group 2 -> Result 2" in out
        assert "case-0-when-1-condition-0  Condition 2.1" in out
        assert "case-0-when-1-then-0  Result 2" in out

    def test_invalid_json(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("[", encoding="utf-8")
        rc = main(["names", str(path)])
        assert rc == 1
        assert "Invalid JSON" in capsys.readouterr().err

    def test_undecodable_document(self, rule_file, capsys):
        rc = main(["names", rule_file({"returnType": "boolean", "ruleType": "Validation"})])
        assert rc == 1
        assert "structure" in capsys.readouterr().err


class TestCliPaths:

    def test_paths(self, rule_file, condition_doc, capsys):
        rc = main(["paths", rule_file(condition_doc)])
        assert rc == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert lines[0] == "condition-0  kind=conditionGroup  parent=-  position=-  Condition Group"
        assert (
            "condition-0-conditionGroup-1-condition-0  kind=condition  parent=2  position=1  Condition 2.1"
            in lines
        )
        assert "condition-0-condition-0-left-0  kind=expressionGroup  parent=1  position=1" in lines


class TestCliNoCommand:

    def test_no_command(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()
