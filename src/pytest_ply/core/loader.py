"""Discovery of request suites and case suites.

Request files (`*.ply.yaml`) map request names to definitions; each file
becomes one request suite. Case suites are built from classes registered
in a `CaseRegistry`.
"""

from concurrent.futures import ThreadPoolExecutor
from fnmatch import fnmatch
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError
from yaml.error import MarkedYAMLError

from pytest_ply.cases import registry as default_registry
from pytest_ply.client import HttpxClient
from pytest_ply.codec import load, positions
from pytest_ply.errors import DiscoveryError
from pytest_ply.retrieval import Retrieval
from pytest_ply.runtime import ResultPaths, Runtime, load_values, suite_name
from pytest_ply.schema.requests import Request
from pytest_ply.subst import lines
from pytest_ply.suite import Suite

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

if TYPE_CHECKING:
    from pytest_ply.cases import Case, CaseRegistry
    from pytest_ply.client import HttpClient
    from pytest_ply.options import Options
    from pytest_ply.values import RuntimeValue

logger = getLogger(__name__)

#: Upper bound of files loaded concurrently.
MAX_WORKERS = 8


def end_line(source: list[str], start: int, end: int | None = None) -> int:
    """Last meaningful line of a definition.

    Trailing blank and comment lines are not part of the definition.

    Args:
        source: Lines of the source file.
        start: Zero-based first line of the definition.
        end: Zero-based last candidate line, end of file by default.

    Returns:
        Zero-based last line.
    """
    if end is None:
        end = len(source) - 1

    while end > start:
        line = source[end].strip()
        if line and not line.startswith('#'):
            break
        end -= 1

    return end


class BaseLoader:
    """Shared suite construction."""

    def __init__(self, options: 'Options', *,
                 values: 'dict[str, RuntimeValue] | None' = None,
                 client_factory: 'Callable[[], HttpClient] | None' = None) -> None:
        """Initialize the loader.

        Args:
            options: Resolved runtime options.
            values: Initial values, read from `values_files` by default.
            client_factory: Factory of per-suite HTTP clients.
        """
        self.options = options
        self.values = values if values is not None else load_values(options.values_files)
        self.client_factory = client_factory or self._make_client

    def _make_client(self) -> 'HttpClient':
        """Default HTTP client of a suite."""
        return HttpxClient(timeout=self.options.timeout)

    def relative(self, path: str | Path) -> str:
        """Suite path relative to the tests location, forward slashes."""
        path = Path(path)
        try:
            return path.resolve().relative_to(self.options.tests_location.resolve()).as_posix()
        except ValueError:
            return path.name

    def is_ignored(self, path: str) -> bool:
        """Whether a suite path matches any ignore pattern."""
        return any(fnmatch(path, pattern) for pattern in self.options.ignore)

    def runtime(self, source: str | Path, path: str, name: str | None = None) -> Runtime:
        """Create the runtime exclusively owned by a new suite."""
        return Runtime(
            self.options,
            Retrieval(source),
            ResultPaths.create(self.options, path, name),
            values=self.values,
            client=self.client_factory(),
        )


class RequestLoader(BaseLoader):
    """Loader of request files."""

    def load(self, paths: 'Iterable[str | Path]') -> list[Suite[Request]]:
        """Load request files concurrently.

        Args:
            paths: Request file paths.

        Returns:
            One suite per file, in the order of `paths`.

        Raises:
            DiscoveryError: If any file is missing or invalid.
        """
        with ThreadPoolExecutor(max_workers=MAX_WORKERS) as executor:
            return list(executor.map(self.load_suite, paths))

    def load_suite(self, source: str | Path) -> Suite[Request]:
        """Load one request file.

        Raises:
            DiscoveryError: If the file is missing or invalid.
        """
        path = self.relative(source)
        filename = Path(source).as_posix()

        retrieval = Retrieval(source)
        if (text := retrieval.read()) is None:
            raise DiscoveryError(f'Can not retrieve {filename}')

        source_lines = lines(text)

        suite: Suite[Request] = Suite(
            suite_name(path),
            'request',
            path,
            self.runtime(source, path),
            start_line=0,
            end_line=len(source_lines) - 1,
            skip=self.is_ignored(path),
        )

        for request in self.parse(text, filename=filename):
            suite.add(request)

        logger.debug('Loaded %d requests from %s', len(suite), filename)

        return suite

    @staticmethod
    def parse(text: str, *, filename: str | None = None) -> list[Request]:
        """Parse request definitions with their line ranges.

        Args:
            text: Request file contents.
            filename: Source file name for error messages.

        Returns:
            Requests in file order.

        Raises:
            DiscoveryError: If the text is not valid YAML or a definition
                does not match the request model.
        """
        try:
            data = load(text)
            ranges = positions(text)
        except MarkedYAMLError as base:
            raise DiscoveryError.from_yaml_error(base, filename=filename) from base

        if data is None:
            return []

        if not isinstance(data, dict):
            raise DiscoveryError('Request file must map names to requests', context={
                'filename': filename,
            })

        source = lines(text)
        starts = [
            position.start
            for path, position in ranges.items()
            if len(path) == 1
        ]

        requests = []
        for index, (name, definition) in enumerate(data.items()):
            start = starts[index]
            end = end_line(source, start, starts[index + 1] - 1 if index + 1 < len(starts) else None)

            if not isinstance(definition, dict):
                raise DiscoveryError('Request must be a mapping', context={
                    'filename': filename,
                    'line_num': start,
                    'test_name': f'{name}',
                })

            try:
                requests.append(Request.model_validate({
                    **definition,
                    'name': f'{name}',
                    'start_line': start,
                    'end_line': end,
                }))
            except ValidationError as base:
                raise DiscoveryError.from_pydantic_error(
                    base,
                    data=definition,
                    filename=filename,
                    line_num=start,
                    test_name=f'{name}',
                ) from base

        return requests


class CaseLoader(BaseLoader):
    """Loader of registered case suites."""

    def __init__(self, options: 'Options', registry: 'CaseRegistry | None' = None,
                 **kwargs: 'RuntimeValue') -> None:
        """Initialize the loader.

        Args:
            options: Resolved runtime options.
            registry: Registry of suite classes, the default one if omitted.
            **kwargs: Keyword `BaseLoader` arguments.
        """
        super().__init__(options, **kwargs)
        self.registry = registry or default_registry

    def load(self) -> list[Suite['Case']]:
        """Build one suite per registered class.

        Returns:
            Case suites in registration order.
        """
        suites = []
        for name, cls in self.registry.suites().items():
            source, start, end = self.registry.source(cls)
            path = self.relative(source or cls.__module__)

            runtime = self.runtime(source or path, path, name)
            runtime.registry = self.registry

            suites.append(Suite(
                name,
                'case',
                path,
                runtime,
                start_line=start,
                end_line=end,
                class_name=cls.__qualname__,
                skip=self.is_ignored(path),
                tests=self.registry.cases(cls),
            ))

        return suites
