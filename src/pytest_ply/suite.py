"""Suites of tests and run selections.

A suite represents one request file or one registered case class.
Suites own their tests in insertion order and never nest.
"""

from typing import TYPE_CHECKING, Literal, Protocol

from pytest_ply.errors import DiscoveryError
from pytest_ply.models import SchemaModel

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

if TYPE_CHECKING:
    from pytest_ply.cases import CaseCall
    from pytest_ply.names import TestType
    from pytest_ply.runtime import Runtime
    from pytest_ply.schema.results import Outcome, Result


class PlyTest(Protocol):
    """Common shape of request, case and workflow tests."""

    @property
    def name(self) -> str: ...

    @property
    def type(self) -> 'TestType': ...

    @property
    def start_line(self) -> int: ...

    @property
    def end_line(self) -> int | None: ...


class RunAll(SchemaModel):
    """Run every test of a suite."""

    kind: Literal['all'] = 'all'


class RunNamed(SchemaModel):
    """Run one test by name."""

    name: str


class RunSelected(SchemaModel):
    """Run the named tests in suite order."""

    names: tuple[str, ...]


type Selection = RunAll | RunNamed | RunSelected


class Listener(Protocol):
    """Receiver of run progress notifications."""

    def start(self, path: str) -> None:
        """A test identified by `path` is about to run."""
        ...

    def outcome(self, path: str, outcome: 'Outcome') -> None:
        """A test identified by `path` has finished."""
        ...


class Suite[T: PlyTest]:
    """Ordered collection of uniquely named tests."""

    def __init__(self, name: str, type_: 'TestType', path: str, runtime: 'Runtime', *,
                 start_line: int = 0,
                 end_line: int | None = None,
                 class_name: str | None = None,
                 skip: bool = False,
                 tests: 'Iterable[T]' = ()) -> None:
        """Initialize a suite.

        Args:
            name: Suite name.
            type_: Type of the suite tests.
            path: Suite path relative to the tests location, forward slashes.
            runtime: Runtime exclusively owned by the suite.
            start_line: First line of the suite in its source, zero-based.
            end_line: Last line of the suite in its source, zero-based.
            class_name: Name of the suite class of case suites.
            skip: Whether callers should exclude the suite.
            tests: Initial tests.
        """
        self.name = name
        self.type = type_
        self.path = path
        self.runtime = runtime

        self.start_line = start_line
        self.end_line = end_line
        self.class_name = class_name
        self.skip = skip

        self._tests: dict[str, T] = {}
        for test in tests:
            self.add(test)

    def __repr__(self) -> str:
        """String represenatation."""
        return f'{type(self).__name__}({self.path!r}, tests={list(self._tests)!r})'

    def __len__(self) -> int:
        """Number of tests."""
        return len(self._tests)

    def __iter__(self) -> 'Iterator[T]':
        """Iterate tests in insertion order."""
        return iter(self._tests.values())

    def __contains__(self, name: object) -> bool:
        """Check whether a test name exists."""
        return name in self._tests

    def add(self, test: T) -> None:
        """Add a test, replacing a test of the same name in place."""
        self._tests[test.name] = test

    def get(self, name: str) -> T | None:
        """Return a test by name."""
        return self._tests.get(name)

    def all(self) -> list[T]:
        """Return all tests in insertion order."""
        return list(self._tests.values())

    def test_path(self, name: str) -> str:
        """Identity of a test used in notifications."""
        return f'{self.path}#{name}'

    def _require(self, name: str) -> T:
        """Return a test by name or fail."""
        if (test := self._tests.get(name)) is None:
            raise DiscoveryError(f'Test not found: {name}', context={
                'filename': self.path,
                'test_name': name,
            })

        return test

    def select(self, selection: Selection) -> list[T]:
        """Resolve a selection into tests.

        Raises:
            DiscoveryError: If a selected name does not exist.
        """
        match selection:
            case RunAll():
                return self.all()
            case RunNamed(name=name):
                return [self._require(name)]
            case RunSelected(names=names):
                for name in names:
                    self._require(name)
                return [test for test in self._tests.values() if test.name in names]

        raise TypeError(f'Unsupported selection {selection!r}')  # pragma: no cover

    def run(self, selection: Selection | None = None, *,
            parent: 'CaseCall | None' = None,
            listener: Listener | None = None) -> list['Result']:
        """Run tests of the suite.

        Args:
            selection: Tests to run, all by default.
            parent: Handle of the running case driving this suite.
            listener: Receiver of progress notifications.

        Returns:
            Results of the tests that ran, in order.
        """
        from pytest_ply.core.runner import SuiteRunner  # noqa: PLC0415

        runner = SuiteRunner(self, parent=parent, listener=listener)

        return runner.run(selection or RunAll())
