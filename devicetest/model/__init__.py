"""Test case model: groups, test cases, selections and discovery manifests."""

from devicetest.model.collection import TestCaseCollection, load_manifest
from devicetest.model.group import (
    InstantiationType,
    LifecycleMethod,
    SourceLocation,
    TestCaseGroup,
)
from devicetest.model.markers import ManifestError, Marker, MarkerKind, parse_marker
from devicetest.model.selection import NOT_SELECTED, SelectedTestCase, TestCaseSelection
from devicetest.model.test_case import DeviceType, TestCase

__all__ = [
    "DeviceType",
    "InstantiationType",
    "LifecycleMethod",
    "ManifestError",
    "Marker",
    "MarkerKind",
    "NOT_SELECTED",
    "SelectedTestCase",
    "SourceLocation",
    "TestCase",
    "TestCaseCollection",
    "TestCaseGroup",
    "TestCaseSelection",
    "load_manifest",
    "parse_marker",
]
