"""Expand a discovery manifest into test case groups, test cases and selections.

Discovery of markers in compiled test assemblies happens elsewhere; its
outcome is handed over as a manifest (a JSON or YAML document) that lists,
per assembly, the classes and methods with the markers found on them::

    assemblies:
      - path: bin/Sample.Tests.pe
        markers: [{kind: test_on_virtual_device}]
        classes:
          - name: Sample.Tests.WithSetup
            markers: [{kind: test_class}]
            methods:
              - name: Setup
                markers: [{kind: setup}]
              - name: TestMethod
                markers: [{kind: data_row, arguments: "(1,1)"},
                          {kind: data_row, arguments: "(2,2)"}]

Assembly markers apply to every class, class markers to every method.
A class is a test class only if it has a ``test_class`` marker.  The
position of a class in the list is its group index, the position of a
method among the class's members is its member (test) index, unless the
manifest gives an explicit ``index``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

import yaml

from devicetest.model.group import (
    InstantiationType,
    LifecycleMethod,
    SourceLocation,
    TestCaseGroup,
)
from devicetest.model.markers import (
    CleanupMarker,
    DataRowMarker,
    DeploymentConfigurationMarker,
    ManifestError,
    Marker,
    MarkerKind,
    SetupMarker,
    TestClassMarker,
    TestOnRealHardwareMarker,
    TraitsMarker,
    of_kind,
    parse_markers,
)
from devicetest.model.selection import TestCaseSelection
from devicetest.model.test_case import DeviceType, TestCase

logger = logging.getLogger(__name__)

_LIFECYCLE_KINDS = frozenset({
    MarkerKind.SETUP,
    MarkerKind.CLEANUP,
    MarkerKind.DEPLOYMENT_CONFIGURATION,
})


def load_manifest(path: str | Path) -> dict[str, Any]:
    """Read a discovery manifest from a ``.json``, ``.yaml`` or ``.yml`` file.

    Raises:
        ManifestError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise ManifestError(f"cannot read manifest {path}: {e}") from e
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ManifestError(f"malformed manifest {path}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestError(f"manifest {path} must contain a mapping")
    return data


def _integer(value: Any, what: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ManifestError(f"{what} must be an integer, got: {value!r}") from None


def _source_location(entry: dict[str, Any]) -> SourceLocation | None:
    source = entry.get("source")
    if source is None:
        return None
    if not isinstance(source, dict) or "path" not in source:
        raise ManifestError(f"source must be a mapping with a path: {source!r}")
    line = _integer(source.get("line", 0), "source line")
    return SourceLocation(path=str(source["path"]), line=line)


def _where(location: SourceLocation | None, fallback: str) -> str:
    return location.for_message() if location is not None else fallback


def _traits(markers: list[Marker]) -> set[str]:
    result: set[str] = set()
    for marker in of_kind(markers, MarkerKind.TRAITS):
        assert isinstance(marker, TraitsMarker)
        result.update(marker.traits)
    return result


def _real_hardware(markers: list[Marker]) -> list[str] | None:
    """Descriptions of real hardware targets, or None if not targeted."""
    found = of_kind(markers, MarkerKind.TEST_ON_REAL_HARDWARE)
    if not found:
        return None
    descriptions: list[str] = []
    for marker in found:
        assert isinstance(marker, TestOnRealHardwareMarker)
        if marker.description and marker.description not in descriptions:
            descriptions.append(marker.description)
    return descriptions


class TestCaseCollection:
    """All test cases discovered in one or more test assemblies.

    Test cases are grouped in one ``TestCaseSelection`` per assembly and
    device type, in discovery order.
    """

    def __init__(
        self,
        manifest: dict[str, Any],
        allow_real_hardware: bool = True,
    ) -> None:
        self.allow_real_hardware = allow_real_hardware
        self._selections: list[TestCaseSelection] = []

        assemblies = manifest.get("assemblies")
        if not isinstance(assemblies, list):
            raise ManifestError("manifest must have an 'assemblies' list")
        for assembly in assemblies:
            if not isinstance(assembly, dict) or "path" not in assembly:
                raise ManifestError(f"assembly entry must have a path: {assembly!r}")
            self._add_assembly(assembly)

    @classmethod
    def from_file(
        cls, path: str | Path, allow_real_hardware: bool = True,
    ) -> TestCaseCollection:
        return cls(load_manifest(path), allow_real_hardware=allow_real_hardware)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def assembly_file_paths(self) -> list[str]:
        paths: list[str] = []
        for selection in self._selections:
            if selection.assembly_file_path not in paths:
                paths.append(selection.assembly_file_path)
        return paths

    @property
    def test_cases(self) -> list[TestCase]:
        return [tc for s in self._selections for tc in s.test_cases]

    def selections(self) -> list[TestCaseSelection]:
        """All discovered test cases, none of them explicitly selected."""
        return list(self._selections)

    def select(
        self, requested: Iterable[tuple[str, str, str]],
    ) -> list[TestCaseSelection]:
        """Build selections for explicitly requested test cases.

        Args:
            requested: ``(assembly_file_path, fully_qualified_name,
                display_name)`` triples.  The position of a triple is the
                selection index of the matching test case.

        Returns:
            One selection per assembly and device type that has at least
            one requested test case.  Requests that match no discovered
            test case are logged and skipped.
        """
        lookup: dict[tuple[str, str, str], tuple[TestCaseSelection, TestCase]] = {}
        for selection in self._selections:
            for tc in selection.test_cases:
                key = (selection.assembly_file_path, tc.fully_qualified_name, tc.display_name)
                lookup[key] = (selection, tc)

        chosen: dict[int, tuple[TestCaseSelection, dict[int, int]]] = {}
        for index, key in enumerate(requested):
            match = lookup.get(tuple(key))
            if match is None:
                logger.info(
                    "Test case '%s' from '%s' is no longer available", key[1], key[0],
                )
                continue
            selection, tc = match
            _, indices = chosen.setdefault(id(selection), (selection, {}))
            indices[id(tc)] = index

        result: list[TestCaseSelection] = []
        for source in self._selections:
            if id(source) not in chosen:
                continue
            _, indices = chosen[id(source)]
            selected = TestCaseSelection(source.assembly_file_path, source.device_type)
            for tc in source.test_cases:
                if id(tc) in indices:
                    selected.add(tc, indices[id(tc)])
            result.append(selected)
        return result

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    def _add_assembly(self, assembly: dict[str, Any]) -> None:
        assembly_path = str(assembly["path"])
        assembly_markers = parse_markers(assembly.get("markers"))
        virtual = TestCaseSelection(assembly_path, DeviceType.VIRTUAL_DEVICE)
        hardware = TestCaseSelection(assembly_path, DeviceType.REAL_HARDWARE)

        for group_index, cls_entry in enumerate(assembly.get("classes") or []):
            if not isinstance(cls_entry, dict) or "name" not in cls_entry:
                raise ManifestError(f"class entry must have a name: {cls_entry!r}")
            self._add_class(
                assembly_path, assembly_markers,
                _integer(cls_entry.get("index", group_index), "class index"), cls_entry,
                virtual, hardware,
            )

        if len(virtual) > 0:
            self._selections.append(virtual)
        if len(hardware) > 0 and self.allow_real_hardware:
            self._selections.append(hardware)

    def _add_class(
        self,
        assembly_path: str,
        assembly_markers: list[Marker],
        group_index: int,
        cls_entry: dict[str, Any],
        virtual: TestCaseSelection,
        hardware: TestCaseSelection,
    ) -> None:
        class_name = str(cls_entry["name"])
        class_location = _source_location(cls_entry)
        class_markers = parse_markers(cls_entry.get("markers"))
        test_class_markers = of_kind(class_markers, MarkerKind.TEST_CLASS)
        if not test_class_markers:
            return
        if len(test_class_markers) > 1:
            logger.warning(
                "%s: Only one test class marker is allowed. "
                "Only the first one is used, subsequent markers are ignored.",
                _where(class_location, class_name),
            )
        test_class = test_class_markers[0]
        assert isinstance(test_class, TestClassMarker)

        if cls_entry.get("static", False):
            instantiation = InstantiationType.NO_INSTANTIATION
        elif test_class.create_instance_per_test_method:
            instantiation = InstantiationType.INSTANTIATE_PER_TEST_METHOD
        else:
            instantiation = InstantiationType.INSTANTIATE_FOR_ALL_METHODS

        inherited = assembly_markers + class_markers
        setup_methods: list[LifecycleMethod] = []
        cleanup_methods: list[LifecycleMethod] = []
        # (member index, method entry, markers, location) of test methods;
        # test cases need the finished group, so they are created last.
        test_methods: list[tuple[int, dict[str, Any], list[Marker], SourceLocation | None]] = []

        for member_index, method in enumerate(cls_entry.get("methods") or []):
            if not isinstance(method, dict) or "name" not in method:
                raise ManifestError(f"method entry must have a name: {method!r}")
            member_index = _integer(method.get("index", member_index), "method index")
            location = _source_location(method)
            where = _where(location, f"{class_name}.{method['name']}")
            markers = parse_markers(method.get("markers"))
            if not markers:
                continue

            deployment = of_kind(markers, MarkerKind.DEPLOYMENT_CONFIGURATION)
            if len(deployment) > 1:
                logger.warning(
                    "%s: Only one deployment configuration marker is allowed. "
                    "The first marker will be used.", where,
                )
            keys: tuple[str, ...] = ()
            if deployment:
                assert isinstance(deployment[0], DeploymentConfigurationMarker)
                keys = deployment[0].keys

            is_setup = any(isinstance(m, SetupMarker) for m in markers)
            is_cleanup = any(isinstance(m, CleanupMarker) for m in markers)
            if is_setup or is_cleanup:
                if any(m.kind not in _LIFECYCLE_KINDS for m in markers):
                    logger.warning(
                        "%s: No other markers are allowed on a setup or cleanup "
                        "method. Extra markers are ignored.", where,
                    )
                if is_setup:
                    if setup_methods:
                        logger.warning(
                            "%s: Only one setup method is used; '%s' is ignored.",
                            where, method["name"],
                        )
                    setup_methods.append(
                        LifecycleMethod(str(method["name"]), member_index, location, keys)
                    )
                    keys = ()
                if is_cleanup:
                    if cleanup_methods:
                        logger.warning(
                            "%s: Only one cleanup method is used; '%s' is ignored.",
                            where, method["name"],
                        )
                    if keys:
                        logger.error(
                            "%s: A cleanup method cannot require deployment "
                            "configuration - the marker is ignored.", where,
                        )
                    cleanup_methods.append(
                        LifecycleMethod(str(method["name"]), member_index, location)
                    )
                continue

            if of_kind(markers, MarkerKind.TEST_METHOD) or of_kind(markers, MarkerKind.DATA_ROW):
                test_methods.append((member_index, method, markers, location))

        group = TestCaseGroup(
            group_index=group_index,
            fully_qualified_name=class_name,
            instantiation=instantiation,
            setup_cleanup_per_test_method=test_class.setup_cleanup_per_test_method,
            setup_methods=tuple(setup_methods),
            cleanup_methods=tuple(cleanup_methods),
        )

        previous_display_names: set[str] = set()
        for member_index, method, markers, location in test_methods:
            self._add_test_cases(
                assembly_path, group, inherited, member_index, method,
                markers, location, previous_display_names, virtual, hardware,
            )

    def _add_test_cases(
        self,
        assembly_path: str,
        group: TestCaseGroup,
        inherited: list[Marker],
        member_index: int,
        method: dict[str, Any],
        markers: list[Marker],
        location: SourceLocation | None,
        previous_display_names: set[str],
        virtual: TestCaseSelection,
        hardware: TestCaseSelection,
    ) -> None:
        method_name = str(method["name"])
        fully_qualified_name = f"{group.fully_qualified_name}.{method_name}"
        all_markers = inherited + markers

        on_virtual = bool(of_kind(all_markers, MarkerKind.TEST_ON_VIRTUAL_DEVICE))
        hardware_targets = _real_hardware(all_markers)
        if not on_virtual and hardware_targets is None:
            logger.debug(
                "%s: Method, class and assembly have no markers to indicate on "
                "what device the test should be run. The defaults will be used.",
                _where(location, fully_qualified_name),
            )
            on_virtual = True
            hardware_targets = []
        device_type_count = int(on_virtual) + int(hardware_targets is not None)

        categories = _traits(all_markers)
        keys: tuple[str, ...] = ()
        deployment = of_kind(markers, MarkerKind.DEPLOYMENT_CONFIGURATION)
        if deployment:
            assert isinstance(deployment[0], DeploymentConfigurationMarker)
            keys = deployment[0].keys

        data_rows = [m for m in markers if isinstance(m, DataRowMarker)]
        if data_rows:
            # The arguments are left out if there is only one data row
            rows = [
                (index, "" if len(data_rows) == 1 else row.arguments)
                for index, row in enumerate(data_rows)
            ]
        else:
            rows = [(-1, "")]

        for data_row_index, arguments in rows:
            display_name = f"{method_name}{arguments}"
            suffix = 2
            while display_name in previous_display_names:
                display_name = f"{method_name}{arguments} #{suffix}"
                suffix += 1
            previous_display_names.add(display_name)

            if on_virtual:
                device = DeviceType.VIRTUAL_DEVICE
                virtual.add(TestCase(
                    test_index=member_index,
                    data_row_index=data_row_index,
                    group=group,
                    assembly_file_path=assembly_path,
                    fully_qualified_name=fully_qualified_name,
                    display_name=(
                        f"{display_name} [{device.value}]"
                        if device_type_count > 1 else display_name
                    ),
                    device_type=device,
                    categories=frozenset(categories | {device.category}),
                    source_location=location,
                    required_configuration_keys=keys,
                ))
            if hardware_targets is not None:
                device = DeviceType.REAL_HARDWARE
                hardware_categories = categories | {device.category}
                hardware_categories.update(f"@{d}" for d in hardware_targets)
                hardware.add(TestCase(
                    test_index=member_index,
                    data_row_index=data_row_index,
                    group=group,
                    assembly_file_path=assembly_path,
                    fully_qualified_name=fully_qualified_name,
                    display_name=(
                        f"{display_name} [{device.value}]"
                        if device_type_count > 1 else display_name
                    ),
                    device_type=device,
                    categories=frozenset(hardware_categories),
                    source_location=location,
                    required_configuration_keys=keys,
                ))
