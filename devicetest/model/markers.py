"""Declarative test markers as a closed set of tagged variants.

Discovery reports the markers it found on an assembly, class or method
as plain dicts (``{"kind": "data_row", "arguments": "(1,1)"}``).  Each
recognised kind maps to one small frozen dataclass that carries only the
fields the test case model consumes.  Unknown kinds are rejected so that a
manifest produced by a newer discovery tool fails loudly instead of
silently dropping tests.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, ClassVar, Union


class ManifestError(ValueError):
    """Raised when a discovery manifest cannot be interpreted."""


class MarkerKind(enum.Enum):
    """All marker kinds the test case model understands."""

    TEST_CLASS = "test_class"
    TEST_METHOD = "test_method"
    DATA_ROW = "data_row"
    SETUP = "setup"
    CLEANUP = "cleanup"
    TEST_ON_VIRTUAL_DEVICE = "test_on_virtual_device"
    TEST_ON_REAL_HARDWARE = "test_on_real_hardware"
    TRAITS = "traits"
    DEPLOYMENT_CONFIGURATION = "deployment_configuration"


@dataclass(frozen=True)
class TestClassMarker:
    """Marks a class as a test class and fixes its lifecycle policy."""

    kind: ClassVar[MarkerKind] = MarkerKind.TEST_CLASS

    create_instance_per_test_method: bool = False
    setup_cleanup_per_test_method: bool = False


@dataclass(frozen=True)
class TestMethodMarker:
    kind: ClassVar[MarkerKind] = MarkerKind.TEST_METHOD


@dataclass(frozen=True)
class DataRowMarker:
    """One data row; ``arguments`` is the display form, e.g. ``(1,1)``."""

    kind: ClassVar[MarkerKind] = MarkerKind.DATA_ROW

    arguments: str = ""


@dataclass(frozen=True)
class SetupMarker:
    kind: ClassVar[MarkerKind] = MarkerKind.SETUP


@dataclass(frozen=True)
class CleanupMarker:
    kind: ClassVar[MarkerKind] = MarkerKind.CLEANUP


@dataclass(frozen=True)
class TestOnVirtualDeviceMarker:
    kind: ClassVar[MarkerKind] = MarkerKind.TEST_ON_VIRTUAL_DEVICE


@dataclass(frozen=True)
class TestOnRealHardwareMarker:
    """Run on real hardware; ``description`` names the target (optional)."""

    kind: ClassVar[MarkerKind] = MarkerKind.TEST_ON_REAL_HARDWARE

    description: str = ""


@dataclass(frozen=True)
class TraitsMarker:
    kind: ClassVar[MarkerKind] = MarkerKind.TRAITS

    traits: tuple[str, ...] = ()


@dataclass(frozen=True)
class DeploymentConfigurationMarker:
    """Keys of the external deployment configuration a method needs."""

    kind: ClassVar[MarkerKind] = MarkerKind.DEPLOYMENT_CONFIGURATION

    keys: tuple[str, ...] = ()


Marker = Union[
    TestClassMarker,
    TestMethodMarker,
    DataRowMarker,
    SetupMarker,
    CleanupMarker,
    TestOnVirtualDeviceMarker,
    TestOnRealHardwareMarker,
    TraitsMarker,
    DeploymentConfigurationMarker,
]


def _string_tuple(entry: dict[str, Any], key: str) -> tuple[str, ...]:
    value = entry.get(key, [])
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ManifestError(f"marker field '{key}' must be a list of strings: {entry}")
    return tuple(value)


def parse_marker(entry: dict[str, Any]) -> Marker:
    """Convert one manifest marker dict into its tagged variant.

    Args:
        entry: Dict with at least a ``kind`` key.

    Returns:
        The marker dataclass for the kind.

    Raises:
        ManifestError: If the entry is not a dict or the kind is unknown.
    """
    if not isinstance(entry, dict):
        raise ManifestError(f"marker must be a mapping, got: {entry!r}")
    raw_kind = entry.get("kind")
    try:
        kind = MarkerKind(raw_kind)
    except ValueError:
        raise ManifestError(f"unknown marker kind: {raw_kind!r}") from None

    if kind is MarkerKind.TEST_CLASS:
        return TestClassMarker(
            create_instance_per_test_method=bool(
                entry.get("create_instance_per_test_method", False)
            ),
            setup_cleanup_per_test_method=bool(
                entry.get("setup_cleanup_per_test_method", False)
            ),
        )
    if kind is MarkerKind.TEST_METHOD:
        return TestMethodMarker()
    if kind is MarkerKind.DATA_ROW:
        return DataRowMarker(arguments=str(entry.get("arguments", "")))
    if kind is MarkerKind.SETUP:
        return SetupMarker()
    if kind is MarkerKind.CLEANUP:
        return CleanupMarker()
    if kind is MarkerKind.TEST_ON_VIRTUAL_DEVICE:
        return TestOnVirtualDeviceMarker()
    if kind is MarkerKind.TEST_ON_REAL_HARDWARE:
        return TestOnRealHardwareMarker(description=str(entry.get("description", "")))
    if kind is MarkerKind.TRAITS:
        return TraitsMarker(traits=_string_tuple(entry, "traits"))
    return DeploymentConfigurationMarker(keys=_string_tuple(entry, "keys"))


def parse_markers(entries: Any) -> list[Marker]:
    """Parse a (possibly missing) list of marker dicts."""
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ManifestError(f"markers must be a list, got: {entries!r}")
    return [parse_marker(e) for e in entries]


def of_kind(markers: list[Marker], kind: MarkerKind) -> list[Marker]:
    """Markers of one kind, in declaration order."""
    return [m for m in markers if m.kind is kind]
