"""Tests for template substitution."""

import logging

import pytest

from pytest_ply.context import ContextDict
from pytest_ply.errors import ExpressionError
from pytest_ply.subst import lines, resolve, resolve_line

VALUES = {
    'baseUrl': 'https://api.test',
    'id': 42,
    'ratio': 2.0,
    'flag': False,
    'nothing': None,
    'movie': {'title': 'Casablanca', 'year': 1942},
    'tags': ['drama', 'romance'],
    '__ply_results': {
        'first': {
            'response': {
                'status': {'code': 201, 'message': 'Created'},
                'body': {'id': 7},
            },
        },
    },
}


@pytest.mark.parametrize('template, expected', (
    pytest.param('no placeholders', 'no placeholders', id='plain'),
    pytest.param('${baseUrl}/movies/${id}', 'https://api.test/movies/42', id='url'),
    pytest.param('${id + 1}', '43', id='arithmetic'),
    pytest.param('${ratio}', '2', id='integral float'),
    pytest.param('${flag}', 'false', id='boolean'),
    pytest.param('${nothing}', 'null', id='null'),
    pytest.param('${movie}', '{"title":"Casablanca","year":1942}', id='object'),
    pytest.param('${tags}', '["drama","romance"]', id='array'),
    pytest.param("${movie.title + '}'}", 'Casablanca}', id='brace in string'),
    pytest.param('${@first.response.body.id}', '7', id='prior result'),
    pytest.param('${@.first.response.body.id}', '7', id='prior result property'),
    pytest.param("${@['first'].response.status.code}", '201', id='prior result index'),
    pytest.param('${~^\\d+$}', '${~^\\d+$}', id='regex literal'),
    pytest.param('id: ${~\\d+} of ${id}', 'id: ${~\\d+} of 42', id='regex and value'),
))
def test_resolve_line(template: str, expected: str) -> None:
    """Resolve placeholders of a single line."""
    assert resolve_line(template, ContextDict(VALUES)) == expected


def test_resolve_line_unterminated() -> None:
    """Report a placeholder without closing brace."""
    with pytest.raises(ExpressionError, match=r'^Unterminated expression at 4$'):
        resolve_line('url ${baseUrl', ContextDict(VALUES))


def test_resolve_multiline() -> None:
    """Resolve every line and normalize line endings."""
    template = 'first ${id}\r\nsecond ${movie.year}\rthird'

    assert resolve(template, VALUES) == 'first 42\nsecond 1942\nthird'


def test_resolve_keeps_failing_line(caplog: pytest.LogCaptureFixture) -> None:
    """A failing expression leaves its own line unchanged."""
    template = 'id: ${id}\nname: ${movie.director}\nyear: ${movie.year}'

    with caplog.at_level(logging.ERROR, logger='pytest_ply.subst'):
        resolved = resolve(template, VALUES)

    assert resolved == 'id: 42\nname: ${movie.director}\nyear: 1942'
    assert len(caplog.records) == 1
    assert 'name: ${movie.director}' in caplog.records[0].getMessage()
    assert "Cannot read 'director' of object" in caplog.records[0].getMessage()


def test_resolve_without_results() -> None:
    """Prior results references stay unresolved until results exist."""
    assert resolve('${@first.id}', {'__ply_results': {}}) == '${@first.id}'


def test_resolve_does_not_mutate_values() -> None:
    """Resolution never changes the provided values."""
    values = {'items': [1, 2]}

    resolve("${items.slice(0, 1).join('-')}", values)

    assert values == {'items': [1, 2]}


@pytest.mark.parametrize('text, expected', (
    pytest.param('a\nb', ['a', 'b'], id='lf'),
    pytest.param('a\r\nb', ['a', 'b'], id='crlf'),
    pytest.param('a\rb', ['a', 'b'], id='cr'),
    pytest.param('a\n', ['a', ''], id='trailing'),
))
def test_lines(text: str, expected: list[str]) -> None:
    """Split text on any line ending."""
    assert lines(text) == expected


@pytest.mark.parametrize('line', (
    pytest.param('x ${' + '(' * 5000 + '1' + ')' * 5000 + '}', id='deep nesting'),
    pytest.param("x ${'a' * 1000000000000}", id='string repetition'),
    pytest.param('x ${' + ' + '.join(['1'] * 20000) + '}', id='long chain'),
))
def test_resolve_keeps_unevaluable_line(line: str, caplog: pytest.LogCaptureFixture) -> None:
    """Lines that can not be evaluated pass through, the rest still resolves."""
    with caplog.at_level(logging.ERROR, logger='pytest_ply.subst'):
        resolved = resolve(f'{line}\nid: ${{id}}', VALUES)

    assert resolved == f'{line}\nid: 42'
    assert len(caplog.records) == 1
