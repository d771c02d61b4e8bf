"""Unit tests for the OpenAPI description loader."""

from pathlib import Path

import pytest

from ms365_mcp.exceptions import SpecLoadError
from ms365_mcp.openapi.loader import OperationTable, find_operation, load_spec

MINIMAL_SPEC = """
openapi: 3.0.4
paths:
  /me/messages/{message-id}:
    parameters:
      - name: message-id
        in: path
        required: true
        schema:
          type: string
    get:
      summary: Get message
      parameters:
        - $ref: '#/components/parameters/select'
    delete:
      summary: Delete message
components:
  parameters:
    select:
      name: $select
      in: query
      schema:
        type: array
        items:
          type: string
"""


@pytest.fixture
def minimal_spec_path(tmp_path: Path) -> Path:
    path = tmp_path / "openapi.yaml"
    path.write_text(MINIMAL_SPEC)
    return path


@pytest.mark.unit
class TestLoadSpec:
    """Tests for load_spec()."""

    def test_should_index_paths_and_methods(self, minimal_spec_path: Path) -> None:
        """Verify every path/method pair is in the table."""
        table = load_spec(minimal_spec_path)

        assert set(table.paths["/me/messages/{message-id}"]) == {"get", "delete"}
        assert len(table) == 2

    def test_should_merge_path_level_parameters(self, minimal_spec_path: Path) -> None:
        """Verify path-level parameters reach each operation."""
        table = load_spec(minimal_spec_path)
        operation = table.paths["/me/messages/{message-id}"]["delete"]

        assert [p.name for p in operation.parameters_in("path")] == ["message-id"]

    def test_should_resolve_parameter_references(self, minimal_spec_path: Path) -> None:
        """Verify $ref parameters are replaced by their component."""
        table = load_spec(minimal_spec_path)
        operation = table.paths["/me/messages/{message-id}"]["get"]
        query = operation.parameters_in("query")

        assert [p.name for p in query] == ["$select"]
        assert query[0].param_schema["type"] == "array"

    def test_should_raise_when_file_missing(self, tmp_path: Path) -> None:
        """Verify a missing description raises SpecLoadError."""
        with pytest.raises(SpecLoadError, match="not found"):
            load_spec(tmp_path / "missing.yaml")

    def test_should_raise_on_invalid_yaml(self, tmp_path: Path) -> None:
        """Verify unparsable YAML raises SpecLoadError."""
        path = tmp_path / "broken.yaml"
        path.write_text("paths: [unclosed")

        with pytest.raises(SpecLoadError):
            load_spec(path)

    def test_should_raise_without_paths(self, tmp_path: Path) -> None:
        """Verify a document with no paths section is rejected."""
        path = tmp_path / "empty.yaml"
        path.write_text("openapi: 3.0.4\n")

        with pytest.raises(SpecLoadError, match="no paths"):
            load_spec(path)


@pytest.mark.unit
class TestFindOperation:
    """Tests for find_operation()."""

    def test_should_find_operation_case_insensitively(self, minimal_spec_path: Path) -> None:
        """Verify the method is matched in any case."""
        table = load_spec(minimal_spec_path)

        operation = find_operation(table, "/me/messages/{message-id}", "GET")

        assert operation is not None
        assert operation.summary == "Get message"

    def test_should_return_none_for_unknown_method(self, minimal_spec_path: Path) -> None:
        """Verify a missing method yields None."""
        table = load_spec(minimal_spec_path)

        assert find_operation(table, "/me/messages/{message-id}", "patch") is None

    def test_should_return_none_for_unknown_path(self, caplog: pytest.LogCaptureFixture) -> None:
        """Verify a missing path yields None and a warning."""
        assert find_operation(OperationTable(), "/nowhere", "get") is None
        assert "not found" in caplog.text
