"""Tests for discovery of request suites."""

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from pytest_ply.core.loader import RequestLoader, end_line
from pytest_ply.errors import DiscoveryError
from pytest_ply.options import Options

if TYPE_CHECKING:
    from pyfakefs.fake_filesystem import FakeFilesystem

REQUESTS = '''\
# movies
first:
  url: ${baseUrl}/movies
  method: GET

# second request
second:
  url: ${baseUrl}/movies
  method: POST
  body: |-
    {"title": "Casablanca"}
'''


def test_load_suite(fs: 'FakeFilesystem') -> None:
    """Load a request file with line ranges and result locations."""
    fs.create_file('/tests/api/movies.ply.yaml', contents=REQUESTS)

    loader = RequestLoader(Options(tests_location=Path('/tests')))
    suite = loader.load_suite('/tests/api/movies.ply.yaml')

    assert suite.name == 'movies'
    assert suite.type == 'request'
    assert suite.path == 'api/movies.ply.yaml'
    assert suite.skip is False
    assert (suite.start_line, suite.end_line) == (0, 11)
    assert [(test.name, test.start_line, test.end_line) for test in suite] == [
        ('first', 1, 3),
        ('second', 6, 10),
    ]
    assert suite.get('second').body == '{"title": "Casablanca"}'
    assert suite.runtime.paths.expected.location == '/tests/results/expected/api/movies.yaml'
    assert suite.runtime.paths.actual.location == '/tests/results/actual/api/movies.yaml'


def test_load_suite_result_locations(fs: 'FakeFilesystem') -> None:
    """Result roots follow options."""
    fs.create_file('/tests/movies.ply.yml', contents=REQUESTS)

    loader = RequestLoader(Options(
        tests_location=Path('/tests'),
        expected_location='https://results.test/expected/',
        actual_location=Path('/out'),
    ))
    suite = loader.load_suite(Path('/tests/movies.ply.yml'))

    assert suite.runtime.paths.expected.location == 'https://results.test/expected/movies.yaml'
    assert suite.runtime.paths.expected.is_remote
    assert suite.runtime.paths.actual.location == '/out/movies.yaml'


def test_load_many(fs: 'FakeFilesystem') -> None:
    """Load several files keeping their order."""
    for name in ('b', 'a', 'c'):
        fs.create_file(f'/tests/{name}.ply.yaml', contents=REQUESTS)

    loader = RequestLoader(Options(tests_location=Path('/tests')))
    suites = loader.load([f'/tests/{name}.ply.yaml' for name in ('b', 'a', 'c')])

    assert [suite.name for suite in suites] == ['b', 'a', 'c']
    assert len({id(suite.runtime) for suite in suites}) == 3


def test_load_ignored(fs: 'FakeFilesystem') -> None:
    """Suites matching ignore patterns are marked as skipped."""
    fs.create_file('/tests/api/movies.ply.yaml', contents=REQUESTS)
    fs.create_file('/tests/admin/users.ply.yaml', contents=REQUESTS)

    loader = RequestLoader(Options(tests_location=Path('/tests'), ignore=['admin/*']))
    movies, users = loader.load(['/tests/api/movies.ply.yaml', '/tests/admin/users.ply.yaml'])

    assert movies.skip is False
    assert users.skip is True


def test_load_values_files(fs: 'FakeFilesystem') -> None:
    """Values files are merged in order."""
    fs.create_file('/tests/values.yaml', contents='baseUrl: https://a.test\ntitle: Casablanca\n')
    fs.create_file('/tests/values.json', contents='{"baseUrl": "https://b.test"}')

    loader = RequestLoader(Options(
        tests_location=Path('/tests'),
        values_files=[Path('/tests/values.yaml'), Path('/tests/values.json')],
    ))

    assert loader.values == {'baseUrl': 'https://b.test', 'title': 'Casablanca'}


def test_load_missing_file(fs: 'FakeFilesystem') -> None:  # noqa: ARG001
    """Missing files can not be loaded."""
    loader = RequestLoader(Options(tests_location=Path('/tests')))

    with pytest.raises(DiscoveryError, match='Can not retrieve /tests/missing.ply.yaml'):
        loader.load_suite('/tests/missing.ply.yaml')


def test_parse_empty() -> None:
    """An empty file has no requests."""
    assert RequestLoader.parse('') == []
    assert RequestLoader.parse('# nothing yet\n') == []


def test_parse_scalar_headers() -> None:
    """Unquoted numbers in headers are accepted."""
    [request] = RequestLoader.parse(
        'count:\n  url: https://api.test\n  method: GET\n  headers:\n    X-Count: 5\n',
    )

    assert request.headers == {'X-Count': '5'}


@pytest.mark.parametrize('text, message', (
    pytest.param('first: [\n', 'Invalid YAML', id='yaml'),
    pytest.param('- first\n', 'Request file must map names to requests', id='not a mapping'),
    pytest.param('first: 42\n', 'Request must be a mapping', id='not a request'),
    pytest.param('first:\n  method: GET\n', 'url: Field required', id='missing url'),
    pytest.param(
        'first:\n  url: https://api.test\n  method: GET\n  colour: red\n',
        'colour: Extra inputs are not permitted',
        id='extra field',
    ),
    pytest.param(
        'first:\n  url: https://api.test\n  method: GET\n  headers: [a]\n',
        'headers: Input should be a valid dictionary',
        id='headers type',
    ),
))
def test_parse_invalid(text: str, message: str) -> None:
    """Report invalid request files."""
    with pytest.raises(DiscoveryError) as error:
        RequestLoader.parse(text, filename='movies.ply.yaml')

    assert error.value.message.startswith(message)
    assert 'movies.ply.yaml' in str(error.value)


def test_parse_error_location() -> None:
    """Validation errors point to the offending request."""
    text = 'first:\n  url: https://api.test\n  method: GET\nsecond:\n  method: GET\n'

    with pytest.raises(DiscoveryError) as error:
        RequestLoader.parse(text, filename='movies.ply.yaml')

    assert error.value.context is not None
    assert error.value.context.get('line_num') == 3
    assert error.value.context.get('test_name') == 'second'
    assert "on test 'second'" in str(error.value)


@pytest.mark.parametrize('source, start, end, expected', (
    pytest.param(['a:', '  b: 1', '', '# c'], 0, None, 1, id='trailing comment'),
    pytest.param(['a:', '  b: 1', '', 'd:'], 0, 2, 1, id='bounded'),
    pytest.param(['a: 1'], 0, None, 0, id='single line'),
))
def test_end_line(source: list[str], start: int, end: int | None, expected: int) -> None:
    """Find the last meaningful line of a definition."""
    assert end_line(source, start, end) == expected
