"""Shared pytest fixtures: a discovery manifest with one assembly of sample tests."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from devicetest.model.collection import TestCaseCollection
from devicetest.model.selection import TestCaseSelection

ASSEMBLY = "bin/SampleTests.pe"

SAMPLE_MANIFEST: dict[str, Any] = {
    "assemblies": [
        {
            "path": ASSEMBLY,
            "markers": [{"kind": "test_on_virtual_device"}],
            "classes": [
                {
                    # Shared setup and cleanup for all tests of the class
                    "name": "SampleTests.WithSetupCleanup",
                    "source": {"path": "WithSetupCleanup.cs", "line": 8},
                    "markers": [{"kind": "test_class"}],
                    "methods": [
                        {
                            "name": "TestMethod",
                            "source": {"path": "WithSetupCleanup.cs", "line": 12},
                            "markers": [
                                {"kind": "test_method"},
                                {"kind": "traits", "traits": ["Smoke"]},
                            ],
                        },
                        {
                            "name": "TestMethod1",
                            "markers": [
                                {"kind": "data_row", "arguments": "(1,1)"},
                                {"kind": "data_row", "arguments": "(2,2)"},
                            ],
                        },
                        {
                            "name": "Setup",
                            "markers": [
                                {"kind": "setup"},
                                {"kind": "deployment_configuration", "keys": ["Serial port"]},
                            ],
                        },
                        {"name": "Cleanup", "markers": [{"kind": "cleanup"}]},
                    ],
                },
                {
                    "name": "SampleTests.TwoMethods",
                    "static": True,
                    "markers": [{"kind": "test_class"}],
                    "methods": [
                        {"name": "Test", "markers": [{"kind": "test_method"}]},
                        {"name": "Test2", "markers": [{"kind": "test_method"}]},
                    ],
                },
                {
                    "name": "SampleTests.NotATestClass",
                    "methods": [
                        {"name": "Helper", "markers": [{"kind": "test_method"}]},
                    ],
                },
                {
                    # Setup and cleanup around every test method
                    "name": "SampleTests.PerMethodLifecycle",
                    "markers": [
                        {
                            "kind": "test_class",
                            "create_instance_per_test_method": True,
                            "setup_cleanup_per_test_method": True,
                        },
                    ],
                    "methods": [
                        {
                            "name": "TestOnDeviceWithSomeFile",
                            "markers": [
                                {"kind": "test_method"},
                                {"kind": "deployment_configuration", "keys": ["Some file"]},
                            ],
                        },
                    ],
                },
            ],
        },
    ],
}


@pytest.fixture
def sample_manifest() -> dict[str, Any]:
    return copy.deepcopy(SAMPLE_MANIFEST)


@pytest.fixture
def sample_collection(sample_manifest: dict[str, Any]) -> TestCaseCollection:
    return TestCaseCollection(sample_manifest)


@pytest.fixture
def sample_selection(sample_collection: TestCaseCollection) -> TestCaseSelection:
    """All six sample test cases, in discovery order.

    TestMethod, TestMethod1(1,1), TestMethod1(2,2), Test, Test2 and
    TestOnDeviceWithSomeFile.
    """
    (selection,) = sample_collection.selections()
    return selection
