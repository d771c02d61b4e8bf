"""Unit tests for friendly parameter names."""

import pytest

from ms365_mcp.openapi.param_mapper import ParamMapping, create_friendly_param_name


@pytest.mark.unit
class TestCreateFriendlyParamName:
    """Tests for create_friendly_param_name()."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("$filter", "filter"),
            ("$top", "top"),
            ("startDateTime", "startDateTime"),
            ("$$odd", "$odd"),
        ],
    )
    def test_should_strip_one_leading_dollar(self, name: str, expected: str) -> None:
        """Verify only a single leading $ is removed."""
        assert create_friendly_param_name(name) == expected

    def test_should_round_trip_with_prefix(self) -> None:
        """Verify re-prefixing restores OData names."""
        for name in ("$select", "$expand", "$orderby"):
            assert "$" + create_friendly_param_name(name) == name


@pytest.mark.unit
class TestParamMapping:
    """Tests for ParamMapping."""

    def test_should_map_friendly_to_original(self) -> None:
        """Verify registered names resolve to their wire names."""
        mapping = ParamMapping()
        mapping.register("filter", "$filter")

        assert mapping.to_original("filter") == "$filter"
        assert "filter" in mapping

    def test_should_pass_through_unknown_names(self) -> None:
        """Verify unregistered names map to themselves."""
        assert ParamMapping().to_original("startDateTime") == "startDateTime"

    def test_should_keep_mappings_per_instance(self) -> None:
        """Verify two tools never share a mapping."""
        first, second = ParamMapping(), ParamMapping()
        first.register("top", "$top")

        assert len(first) == 1
        assert len(second) == 0
