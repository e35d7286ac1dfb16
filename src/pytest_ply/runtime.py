"""Per-suite runtime state.

A `Runtime` is exclusively owned by one suite and must never be shared
between concurrently running suites.
"""

from logging import getLogger
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from yaml import safe_load

from pytest_ply.client import HttpxClient
from pytest_ply.errors import ConfigurationError
from pytest_ply.names import RESULTS, REQUEST_SUFFIXES
from pytest_ply.retrieval import Retrieval, Storage

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path
    from typing import Self

if TYPE_CHECKING:
    from pytest_ply.cases import CaseRegistry
    from pytest_ply.client import HttpClient
    from pytest_ply.options import Options
    from pytest_ply.values import RuntimeValue

logger = getLogger(__name__)

RESULT_SUFFIX = '.yaml'


def suite_name(path: str) -> str:
    """Base name of a suite file without its suffix."""
    name = PurePosixPath(path).name
    for suffix in (*REQUEST_SUFFIXES, '.py', '.yaml', '.yml'):
        if name.endswith(suffix):
            return name[:-len(suffix)]

    return name


class ResultPaths:
    """Locations of the expected and actual results of a suite."""

    def __init__(self, expected: Retrieval, actual: Storage) -> None:
        """Initialize the result paths.

        Args:
            expected: Expected results, read-only unless created.
            actual: Actual results written by the run.
        """
        self.expected = expected
        self.actual = actual

    @classmethod
    def create(cls, options: 'Options', path: str, name: str | None = None) -> 'Self':
        """Derive result locations from a suite path.

        Results of `<dir>/<name>.ply.yaml` go to
        `<expected root>/<dir>/<name>.yaml` and `<actual root>/<dir>/<name>.yaml`.

        Args:
            options: Resolved runtime options.
            path: Suite path relative to the tests location.
            name: Result file base name, derived from the path by default.

        Returns:
            Result paths of the suite.
        """
        relative = PurePosixPath(path)
        parent = relative.parent.as_posix()
        filename = f'{name or suite_name(path)}{RESULT_SUFFIX}'

        parts = [options.expected_root.rstrip('/')]
        if parent != '.':
            parts.append(parent)
        parts.append(filename)

        actual = options.actual_root
        if parent != '.':
            actual = actual / parent

        return cls(
            expected=Retrieval('/'.join(parts)),
            actual=Storage(actual / filename),
        )

    def expected_storage(self) -> Storage:
        """Writable view of a local expected location.

        Raises:
            ConfigurationError: If the expected location is remote.
        """
        if self.expected.is_remote:
            raise ConfigurationError(f'Remote expected location is read-only: {self.expected.location}')

        return Storage(self.expected.path)


def load_values(files: 'Iterable[Path]') -> dict[str, 'RuntimeValue']:
    """Merge JSON or YAML values files, later files win.

    Raises:
        ConfigurationError: If a file does not hold a mapping.
    """
    values: dict[str, Any] = {}
    for path in files:
        with path.open('rt', encoding='utf-8') as content:
            loaded = safe_load(content)
        if loaded is None:
            continue
        if not isinstance(loaded, dict):
            raise ConfigurationError(f'Values file {path.as_posix()} must contain an object')
        logger.debug('Values loaded from %s', path.as_posix())
        values.update(loaded)

    return values


class Runtime:
    """Mutable state of one suite run."""

    def __init__(self, options: 'Options', retrieval: Retrieval, paths: ResultPaths, *,
                 values: 'dict[str, RuntimeValue] | None' = None,
                 client: 'HttpClient | None' = None) -> None:
        """Initialize the runtime.

        Args:
            options: Resolved runtime options.
            retrieval: Source of the suite.
            paths: Expected and actual result locations.
            values: Initial substitution values.
            client: HTTP client, an `HttpxClient` configured from options
                by default.
        """
        self.options = options
        self.retrieval = retrieval
        self.paths = paths

        self.values: dict[str, RuntimeValue] = dict(values or {})
        self.results: dict[str, RuntimeValue] = {}

        self.client: HttpClient = client or HttpxClient(timeout=options.timeout)

        #: Registry providing the live instance of a case suite.
        self.registry: CaseRegistry | None = None
        #: Live suite instance of a case suite.
        self.instance: object | None = None

    @property
    def context(self) -> dict[str, 'RuntimeValue']:
        """Substitution values including results recorded so far."""
        return {**self.values, RESULTS: self.results}

    def close(self) -> None:
        """Release the HTTP client of the suite."""
        self.client.close()
