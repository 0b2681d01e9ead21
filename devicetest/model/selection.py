"""A selection of test cases to run on a single (type of) device."""

from __future__ import annotations

from dataclasses import dataclass, field

from devicetest.model.group import TestCaseGroup
from devicetest.model.test_case import DeviceType, TestCase

# Selection index of a test case that was not explicitly requested
NOT_SELECTED = -1


@dataclass
class SelectedTestCase:
    """Entry of a selection; only ``selection_index`` may change."""

    test_case: TestCase
    selection_index: int = NOT_SELECTED


@dataclass
class TestCaseSelection:
    """Ordered test cases from one assembly for one device type.

    The test cases keep the order in which they were discovered.  The
    selection index correlates a case with the request that selected it;
    it is ``NOT_SELECTED`` when the selection was built from all
    discovered test cases.
    """

    assembly_file_path: str
    device_type: DeviceType = DeviceType.VIRTUAL_DEVICE
    entries: list[SelectedTestCase] = field(default_factory=list)

    def add(self, test_case: TestCase, selection_index: int = NOT_SELECTED) -> None:
        """Append a test case to the selection."""
        self.entries.append(SelectedTestCase(test_case, selection_index))

    @property
    def test_cases(self) -> list[TestCase]:
        return [e.test_case for e in self.entries]

    @property
    def groups(self) -> list[TestCaseGroup]:
        """Distinct groups of the selected test cases, in discovery order."""
        seen: dict[int, TestCaseGroup] = {}
        for entry in self.entries:
            seen.setdefault(id(entry.test_case.group), entry.test_case.group)
        return list(seen.values())

    def __len__(self) -> int:
        return len(self.entries)

    def _entry(self, test_case: TestCase) -> SelectedTestCase:
        for entry in self.entries:
            if entry.test_case is test_case:
                return entry
        raise KeyError(f"{test_case!r} is not part of the selection")

    def selection_index_of(self, test_case: TestCase) -> int:
        return self._entry(test_case).selection_index

    def set_selection_index(self, test_case: TestCase, selection_index: int) -> None:
        self._entry(test_case).selection_index = selection_index

    def find_group(self, fully_qualified_name: str) -> TestCaseGroup | None:
        """Group of a selected test case with the given class name."""
        for entry in self.entries:
            if entry.test_case.group.fully_qualified_name == fully_qualified_name:
                return entry.test_case.group
        return None

    def test_cases_of(self, group: TestCaseGroup) -> list[TestCase]:
        return [e.test_case for e in self.entries if e.test_case.group is group]

    def find_test_cases(
        self,
        fully_qualified_name: str,
        data_row_index: int = -1,
        group: TestCaseGroup | None = None,
    ) -> list[TestCase]:
        """Selected test cases for a method name and data row index.

        Args:
            fully_qualified_name: ``{class}.{method}`` name of the method.
            data_row_index: Data row index, -1 for a method without rows.
            group: If given, only test cases of this group match.

        Returns:
            Matching test cases in selection order (possibly empty).
        """
        return [
            e.test_case
            for e in self.entries
            if e.test_case.fully_qualified_name == fully_qualified_name
            and e.test_case.data_row_index == data_row_index
            and (group is None or e.test_case.group is group)
        ]
