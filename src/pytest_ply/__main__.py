"""Command-line interface of pytest-ply.

Runs request files and registered case suites outside of pytest and
prints the JSON Schema of request files.
"""

import logging
from importlib import import_module
from pathlib import Path
from typing import TYPE_CHECKING

from click import Choice, echo, group, option, secho
from click import Path as PathParam
from click import argument

from pytest_ply.core.loader import CaseLoader, RequestLoader
from pytest_ply.jsonschema import SchemaGenerator
from pytest_ply.names import REQUEST_SUFFIXES
from pytest_ply.options import NoExpectedPolicy, Options
from pytest_ply.schema.results import ResultStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

if TYPE_CHECKING:
    from pytest_ply.schema.results import Outcome
    from pytest_ply.suite import Suite

COLORS = {
    ResultStatus.PASSED: 'green',
    ResultStatus.FAILED: 'red',
    ResultStatus.ERRORED: 'red',
    ResultStatus.NOT_VERIFIED: 'yellow',
}

InputPath = PathParam(
    exists=True,
    readable=True,
    path_type=Path,
)


class ConsoleListener:
    """Listener printing one line per outcome."""

    def __init__(self) -> None:
        """Initialize outcome counters."""
        self.counts: dict[ResultStatus, int] = dict.fromkeys(ResultStatus, 0)

    def start(self, path: str) -> None:
        """Nothing to print before a test."""

    def outcome(self, path: str, outcome: 'Outcome') -> None:
        """Print the outcome of a test with its diff."""
        self.counts[outcome.status] += 1

        line = f'{outcome.status}: {path}'
        if outcome.message:
            line += f' ({outcome.message})'

        secho(line, fg=COLORS.get(outcome.status))
        if outcome.diff:
            echo(outcome.diff)

    @property
    def passed(self) -> bool:
        """Whether every reported test passed."""
        return all(
            not count
            for status, count in self.counts.items()
            if status != ResultStatus.PASSED
        )


def request_files(paths: 'Iterable[Path]') -> list[Path]:
    """Expand directories into the request files they contain."""
    files = []
    for path in paths:
        if path.is_dir():
            files.extend(sorted(
                candidate
                for candidate in path.rglob('*')
                if candidate.name.endswith(REQUEST_SUFFIXES)
            ))
        else:
            files.append(path)

    return files


@group(help='Command-line utilities for pytest-ply.')
def cli() -> None:
    """Root CLI group for pytest-ply tools."""
    return None


@cli.command(
    name='run',
    help='Run request files and case suites, verify their results.',
)
@argument('paths', nargs=-1, type=InputPath)
@option('-c', '--cases', 'modules', multiple=True,
        help='Module registering case suites, may be repeated.')
@option('--tests', 'tests_location', type=PathParam(file_okay=False, path_type=Path),
        help='Root directory of suite paths.')
@option('--expected', 'expected_location', help='Expected results root, a directory or an URL.')
@option('--actual', 'actual_location', type=PathParam(file_okay=False, path_type=Path),
        help='Actual results root directory.')
@option('--no-expected', type=Choice([policy.value for policy in NoExpectedPolicy]),
        help='Behavior when expected results do not exist.')
@option('--values', 'values_files', multiple=True, type=InputPath,
        help='JSON or YAML values file, may be repeated.')
@option('--bail', is_flag=True, default=None, help='Stop a suite after its first not passed test.')
@option('-v', '--verbose', is_flag=True, default=None, help='Enable debug logging.')
def run(paths: tuple[Path, ...], modules: tuple[str, ...], **kwargs: object) -> None:
    """Run suites and exit with a non-zero status unless all passed.

    Args:
        paths: Request files or directories.
        modules: Modules registering case suites.
        **kwargs: Options overriding environment settings.
    """
    overrides = {
        key: value
        for key, value in kwargs.items()
        if value not in (None, (), False)
    }
    options = Options(**overrides)

    logging.basicConfig(
        level=logging.DEBUG if options.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )
    logging.captureWarnings(True)

    for module in modules:
        import_module(module)

    suites: list[Suite] = []
    suites.extend(RequestLoader(options).load(request_files(paths)))
    if modules:
        suites.extend(CaseLoader(options).load())

    listener = ConsoleListener()
    for suite in suites:
        try:
            if suite.skip:
                echo(f'Skipped: {suite.path}')
                continue
            suite.run(listener=listener)
        finally:
            suite.runtime.close()

    summary = ', '.join(
        f'{count} {status}'
        for status, count in listener.counts.items()
        if count
    )
    echo(summary or 'No tests')

    if not listener.passed:
        raise SystemExit(1)


@cli.command(
    name='schema',
    help='Print the request file JSON Schema to standard output.',
)
def print_schema() -> None:
    """Generate and print the JSON Schema."""
    echo(SchemaGenerator.make_schema())


if __name__ == '__main__':
    cli()
