"""Tests for ruletree.session."""

import pytest

from ruletree.errors import MISSING_FIELD, PathError
from ruletree.factories import default_rule
from ruletree.nodes import Condition, ConditionGroup
from ruletree.session import EditingSession


@pytest.fixture
def session(condition_rule, catalog):
    return EditingSession(condition_rule, is_new=False, catalog=catalog)


@pytest.fixture
def case_session(case_rule, catalog):
    return EditingSession(case_rule, is_new=False, catalog=catalog)


def _names(session):
    return [
        (path, node.name)
        for path, node in ((p, session.node_at(p)) for p in session.paths())
        if isinstance(node, (Condition, ConditionGroup))
    ]


class TestLookup:

    def test_root_path(self, session, case_session):
        assert session.root_path == "condition-0"
        assert case_session.root_path == "case-0"

    def test_node_at(self, session):
        assert session.node_at("condition-0-conditionGroup-1").name == "Condition Group 2"
        assert session.node_at("condition-0-conditionGroup-1-condition-1").name == "Condition 2.2"

    def test_node_at_missing(self, session):
        with pytest.raises(PathError):
            session.node_at("condition-0-condition-9")

    def test_paths_in_document_order(self, session):
        paths = session.paths()
        assert paths[0] == "condition-0"
        assert paths.index("condition-0-condition-0") < paths.index("condition-0-conditionGroup-1")


class TestVisibility:

    def test_loaded_document_shows_root_children(self, session):
        assert session.visible_paths() == [
            "condition-0",
            "condition-0-condition-0",
            "condition-0-conditionGroup-1",
        ]

    def test_expanding_a_group_reveals_children(self, session):
        session.expansion.toggle_expansion("condition-0-conditionGroup-1")
        assert session.visible_paths() == [
            "condition-0",
            "condition-0-condition-0",
            "condition-0-conditionGroup-1",
            "condition-0-conditionGroup-1-condition-0",
            "condition-0-conditionGroup-1-condition-1",
        ]

    def test_collapsed_root_hides_everything_below(self, session):
        session.expansion.set_expansion("condition-0", False)
        assert session.visible_paths() == ["condition-0"]

    def test_expand_all_shows_every_path(self, session):
        session.expand_all()
        assert session.is_new is True
        assert session.visible_paths() == session.paths()

    def test_load_resets_expansion(self, session, case_rule):
        session.expansion.set_expansion("condition-0-conditionGroup-1", True)
        session.load(case_rule)
        assert dict(session.expansion.overrides) == {}
        assert session.expansion.root_structure_type == "case"
        assert session.visible_paths() == ["case-0", "case-0-when-0", "case-0-when-1", "case-0-else-0"]


class TestInsert:

    def test_append_condition(self, session):
        path = session.insert_condition("condition-0")
        assert path == "condition-0-condition-2"
        assert session.node_at(path).name == "Condition 3"

    def test_append_group_names_its_children(self, session):
        path = session.insert_condition("condition-0-conditionGroup-1", "conditionGroup")
        assert path == "condition-0-conditionGroup-1-conditionGroup-2"
        group = session.node_at(path)
        assert group.name == "Condition Group 2.3"
        assert [c.name for c in group.conditions] == ["Condition 2.3.1", "Condition 2.3.2"]

    def test_insert_in_middle_renumbers(self, session):
        session.expansion.set_expansion("condition-0-conditionGroup-1", True)
        path = session.insert_condition("condition-0", "conditionGroup", index=0)
        assert path == "condition-0-conditionGroup-0"
        assert _names(session) == [
            ("condition-0", "Condition Group"),
            ("condition-0-conditionGroup-0", "Condition Group 1"),
            ("condition-0-conditionGroup-0-condition-0", "Condition 1.1"),
            ("condition-0-conditionGroup-0-condition-1", "Condition 1.2"),
            ("condition-0-condition-1", "Condition 2"),
            ("condition-0-conditionGroup-2", "Condition Group 3"),
            ("condition-0-conditionGroup-2-condition-0", "Condition 3.1"),
            ("condition-0-conditionGroup-2-condition-1", "Condition 3.2"),
        ]
        assert "condition-0-conditionGroup-1" not in session.expansion.overrides

    def test_insert_keeps_custom_names(self, session):
        session.node_at("condition-0-condition-0").name = "Adults only"
        session.insert_condition("condition-0", index=0)
        assert session.node_at("condition-0-condition-1").name == "Adults only"

    def test_insert_renames_in_place(self, session, condition_rule):
        group = condition_rule.definition.conditions[1]
        session.insert_condition("condition-0", index=0)
        assert session.rule is condition_rule
        assert session.renumber() is condition_rule
        assert group.name == "Condition Group 3"
        assert [c.name for c in group.conditions] == ["Condition 3.1", "Condition 3.2"]

    def test_renumber_updates_case_names_in_place(self, case_session, case_rule):
        clause = case_rule.definition.when_clauses[1]
        clause.when.name = "Condition Group 9"
        clause.result_name = "Result 9"
        case_rule.definition.else_name = "Else 4"
        case_session.renumber()
        assert case_session.rule is case_rule
        assert clause.when.name == "Condition Group 2"
        assert clause.result_name == "Result 2"
        assert case_rule.definition.else_name == "Else"

    def test_insert_rule_reference(self, session):
        path = session.insert_condition("condition-0", "ruleRef")
        node = session.node_at(path)
        assert node.rule_ref is not None
        assert node.left is None

    def test_insert_into_when_group(self, case_session):
        path = case_session.insert_condition("case-0-when-1")
        assert path == "case-0-when-1-condition-2"
        assert case_session.node_at(path).name == "Condition 2.3"

    def test_insert_into_condition_fails(self, session):
        with pytest.raises(PathError):
            session.insert_condition("condition-0-condition-0")

    def test_insert_unknown_type_fails(self, session):
        with pytest.raises(PathError):
            session.insert_condition("condition-0", "expression")


class TestRemove:

    def test_remove_renumbers_siblings(self, session):
        removed = session.remove_child("condition-0-condition-0")
        assert removed.name == "Condition 1"
        assert _names(session) == [
            ("condition-0", "Condition Group"),
            ("condition-0-conditionGroup-0", "Condition Group 1"),
            ("condition-0-conditionGroup-0-condition-0", "Condition 1.1"),
            ("condition-0-conditionGroup-0-condition-1", "Condition 1.2"),
        ]

    def test_remove_discards_stale_overrides(self, session):
        session.expansion.set_expansion("condition-0-conditionGroup-1", True)
        session.expansion.set_expansion("condition-0-conditionGroup-1-condition-0", True)
        session.remove_child("condition-0-condition-0")
        assert dict(session.expansion.overrides) == {}

    def test_remove_root_fails(self, session):
        with pytest.raises(PathError):
            session.remove_child("condition-0")

    def test_remove_out_of_range(self, session):
        with pytest.raises(PathError):
            session.remove_child("condition-0-condition-5")

    def test_remove_tag_must_match(self, session):
        with pytest.raises(PathError):
            session.remove_child("condition-0-conditionGroup-0")
        assert len(session.rule.definition.conditions) == 2


class TestChangeType:

    def test_condition_to_group(self, session):
        group = session.change_type("condition-0-condition-0", "conditionGroup")
        assert group.name == "Condition Group 1"
        assert [c.name for c in group.conditions] == ["Condition 1.1", "Condition 1.2"]
        assert session.node_at("condition-0-conditionGroup-0") is group

    def test_group_to_condition(self, session):
        cond = session.change_type("condition-0-conditionGroup-1", "condition")
        assert cond.name == "Condition 2"
        assert session.node_at("condition-0-condition-1") is cond

    def test_to_rule_reference_uses_catalog(self, session):
        node = session.change_type("condition-0-condition-0", "ruleRef", rule_id="IS_ADULT")
        assert node.name == "IS_ADULT"
        assert node.rule_ref.id == "IS_ADULT"
        assert node.rule_ref.version == 2
        assert node.rule_ref.uuid == "9f1c2b7e-4d6a-4e0b-8a53-1f2e3d4c5b6a"

    def test_custom_name_survives(self, session):
        session.node_at("condition-0-condition-0").name = "Adults only"
        node = session.change_type("condition-0-condition-0", "conditionGroup")
        assert node.name == "Adults only"

    def test_expansion_follows_new_path(self, session):
        session.expansion.set_expansion("condition-0-conditionGroup-1", True)
        session.expansion.set_expansion("condition-0-conditionGroup-1-condition-0", True)
        session.change_type("condition-0-conditionGroup-1", "condition")
        assert dict(session.expansion.overrides) == {"condition-0-condition-1": True}

    def test_when_condition(self, case_session):
        node = case_session.change_type("case-0-when-0", "conditionGroup")
        assert node.name == "Condition Group 1"
        assert case_session.rule.definition.when_clauses[0].when is node

    def test_root_condition(self):
        rule = default_rule("condition")
        session = EditingSession(rule)
        node = session.change_type("condition-0", "conditionGroup")
        assert session.rule.definition is node
        assert node.name == "Condition Group"

    def test_expression_node_is_not_a_condition(self, session):
        with pytest.raises(PathError):
            session.change_type("condition-0-condition-0-left-0", "condition")


class TestValidate:

    def test_valid_session(self, session):
        result = session.validate()
        assert result.valid
        assert result.log.rule_id == "ADULT_BIG_SPENDERS"
        assert result.log.status == "valid"
        assert [layer.layer for layer in result.log.layers] == ["structural", "semantic"]

    def test_new_condition_is_incomplete_until_filled(self, session):
        path = session.insert_condition("condition-0", "ruleRef")
        result = session.validate()
        assert [(e.error_type, e.key) for e in result.errors] == [(MISSING_FIELD, path)]
        assert session.validate(draft=True).valid
