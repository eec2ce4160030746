"""Tests for agileflow.lib.validate module."""

import pytest

from agileflow.lib.validate import (
    SchemaValidationError,
    is_valid,
    load_schema,
    validate,
    validate_before_write,
)


def _index(**ideas):
    return {"schema_version": "1.0.0", "ideas": ideas, "reports": {}, "next_id": 1}


def _idea(idea_id="IDEA-0001", **overrides):
    idea = {
        "id": idea_id,
        "title": "Add caching",
        "status": "pending",
        "occurrences": [{"report": "ideation-20260101.md", "date": "2026-01-01"}],
    }
    idea.update(overrides)
    return idea


class TestLoadSchema:
    def test_unknown_schema(self):
        with pytest.raises(SchemaValidationError, match="Schema file not found"):
            load_schema("no-such-schema")

    def test_known_schemas_load(self):
        for name in ("ideation-index", "status", "bus-message"):
            assert load_schema(name)["type"] == "object"


class TestIdeationIndexSchema:
    def test_valid_index(self):
        validate(_index(**{"IDEA-0001": _idea()}), "ideation-index")

    def test_bad_idea_key(self):
        assert not is_valid(_index(**{"IDEA-1": _idea("IDEA-1")}), "ideation-index")

    def test_bad_status(self):
        assert not is_valid(_index(**{"IDEA-0001": _idea(status="done")}), "ideation-index")

    def test_empty_occurrences(self):
        assert not is_valid(_index(**{"IDEA-0001": _idea(occurrences=[])}), "ideation-index")

    def test_error_carries_path(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            validate(_index(**{"IDEA-0001": _idea(status="done")}), "ideation-index")
        assert exc_info.value.path == "ideas.IDEA-0001.status"


class TestBusMessageSchema:
    def test_requires_from_type_at(self):
        assert is_valid({"from": "a", "type": "status", "at": "2026-01-01T00:00:00Z"}, "bus-message")
        assert not is_valid({"from": "a", "type": "status"}, "bus-message")

    def test_task_id_must_be_string(self):
        msg = {"from": "a", "type": "status", "at": "x", "task_id": 12}
        assert not is_valid(msg, "bus-message")


class TestValidateBeforeWrite:
    def test_message_names_file(self, tmp_path):
        with pytest.raises(SchemaValidationError, match="Refusing to write"):
            validate_before_write({"ideas": {}}, "ideation-index", tmp_path / "index.json")
