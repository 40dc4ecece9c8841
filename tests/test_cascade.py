"""Tests for ruletree.cascade."""

from ruletree.cascade import filter_cascading
from ruletree.errors import (
    MISSING_FIELD,
    SHAPE_MISMATCH,
    TYPE_MISMATCH,
    ValidationError,
)


def _err(error_type, path, message="problem"):
    return ValidationError(error_type, path, message)


class TestFilterCascading:

    def test_empty(self):
        result = filter_cascading([])
        assert result.errors == []
        assert result.suppressed_count == 0
        assert not result.has_hidden_errors

    def test_duplicates_dropped(self):
        first = _err(MISSING_FIELD, "metadata.description")
        result = filter_cascading([first, _err(MISSING_FIELD, "metadata.description")])
        assert result.errors == [first]
        assert result.suppressed_count == 1
        assert result.has_hidden_errors

    def test_same_path_different_message_kept(self):
        errors = [_err(TYPE_MISMATCH, "definition", "a"), _err(TYPE_MISMATCH, "definition", "b")]
        assert filter_cascading(errors).errors == errors

    def test_parent_shape_error_hidden_by_child(self):
        parent = _err(SHAPE_MISMATCH, "definition.conditions[0]")
        child = _err(MISSING_FIELD, "definition.conditions[0].left")
        result = filter_cascading([parent, child])
        assert result.errors == [child]
        assert result.suppressed_count == 1

    def test_indexed_descendant(self):
        parent = _err(SHAPE_MISMATCH, "definition.conditions")
        child = _err(MISSING_FIELD, "definition.conditions[1].name")
        assert filter_cascading([parent, child]).errors == [child]

    def test_sibling_prefix_is_not_a_descendant(self):
        errors = [
            _err(SHAPE_MISMATCH, "definition.conditions[1]"),
            _err(MISSING_FIELD, "definition.conditions[10].left"),
        ]
        assert filter_cascading(errors).errors == errors

    def test_document_level_shape_error(self):
        root = _err(SHAPE_MISMATCH, "$")
        other = _err(MISSING_FIELD, "metadata")
        assert filter_cascading([root, other]).errors == [other]
        assert filter_cascading([root]).errors == [root]

    def test_other_parent_errors_kept(self):
        errors = [
            _err(TYPE_MISMATCH, "definition"),
            _err(TYPE_MISMATCH, "definition.expressions[0]"),
        ]
        assert filter_cascading(errors).errors == errors

    def test_order_preserved(self):
        errors = [
            _err(MISSING_FIELD, "version"),
            _err(SHAPE_MISMATCH, "definition.left"),
            _err(MISSING_FIELD, "uuId"),
        ]
        assert filter_cascading(errors).errors == errors

    def test_validator_output(self, validator, condition_doc):
        condition_doc["definition"]["conditions"][0]["left"] = "PERSON.AGE"
        errors = validator.validate(condition_doc).errors
        filtered = filter_cascading(errors + errors)
        assert filtered.errors == errors
        assert filtered.suppressed_count == len(errors)
