"""Unit tests for the marker variants."""

from __future__ import annotations

import pytest

from devicetest.model.markers import (
    DataRowMarker,
    DeploymentConfigurationMarker,
    ManifestError,
    MarkerKind,
    TestClassMarker,
    TestOnRealHardwareMarker,
    TraitsMarker,
    of_kind,
    parse_marker,
    parse_markers,
)


class TestParseMarker:
    """Tests for converting manifest dicts into markers."""

    def test_test_class_defaults(self):
        """A bare test_class marker shares setup and instance."""
        marker = parse_marker({"kind": "test_class"})
        assert marker == TestClassMarker()
        assert marker.kind is MarkerKind.TEST_CLASS
        assert not marker.create_instance_per_test_method
        assert not marker.setup_cleanup_per_test_method

    def test_test_class_flags(self):
        """Lifecycle flags are read from the entry."""
        marker = parse_marker({
            "kind": "test_class",
            "create_instance_per_test_method": True,
            "setup_cleanup_per_test_method": True,
        })
        assert marker.create_instance_per_test_method
        assert marker.setup_cleanup_per_test_method

    def test_data_row_arguments(self):
        """Data row keeps the display form of its arguments."""
        assert parse_marker({"kind": "data_row", "arguments": "(1,1)"}) == DataRowMarker("(1,1)")

    def test_real_hardware_description(self):
        """Real hardware target description is optional."""
        assert parse_marker({"kind": "test_on_real_hardware"}).description == ""
        marker = parse_marker({"kind": "test_on_real_hardware", "description": "ESP32"})
        assert marker == TestOnRealHardwareMarker("ESP32")

    def test_traits_and_keys(self):
        """List fields become tuples; a single string is accepted."""
        assert parse_marker({"kind": "traits", "traits": ["a", "b"]}) == TraitsMarker(("a", "b"))
        marker = parse_marker({"kind": "deployment_configuration", "keys": "Serial port"})
        assert marker == DeploymentConfigurationMarker(("Serial port",))

    def test_unknown_kind_rejected(self):
        """Unknown kinds raise ManifestError."""
        with pytest.raises(ManifestError, match="unknown marker kind"):
            parse_marker({"kind": "ignore_this_test"})

    def test_non_mapping_rejected(self):
        """A marker must be a dict."""
        with pytest.raises(ManifestError):
            parse_marker("test_method")

    def test_invalid_list_field_rejected(self):
        """Traits must be strings."""
        with pytest.raises(ManifestError, match="traits"):
            parse_marker({"kind": "traits", "traits": [1, 2]})

    def test_manifest_error_is_value_error(self):
        """Callers can catch manifest problems as ValueError."""
        assert issubclass(ManifestError, ValueError)


class TestParseMarkers:
    """Tests for marker lists."""

    def test_missing_list_is_empty(self):
        """None gives no markers."""
        assert parse_markers(None) == []

    def test_not_a_list(self):
        """Markers must be given as a list."""
        with pytest.raises(ManifestError):
            parse_markers({"kind": "setup"})

    def test_of_kind_keeps_order(self):
        """of_kind filters and keeps declaration order."""
        markers = parse_markers([
            {"kind": "data_row", "arguments": "(1)"},
            {"kind": "test_method"},
            {"kind": "data_row", "arguments": "(2)"},
        ])
        rows = of_kind(markers, MarkerKind.DATA_ROW)
        assert [r.arguments for r in rows] == ["(1)", "(2)"]
