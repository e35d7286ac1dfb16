"""Tests for the YAML codec."""

import pytest

from pytest_ply.codec import LineRange, dump, load, positions
from pytest_ply.values import sort_keys


def test_dump_keeps_order() -> None:
    """Dump mappings in insertion order with block style."""
    text = dump({'b': 1, 'a': {'d': [1, 2], 'c': {}}})

    assert text == (
        'b: 1\n'
        'a:\n'
        '  d:\n'
        '  - 1\n'
        '  - 2\n'
        '  c: {}\n'
    )


def test_dump_literal_blocks() -> None:
    """Multi-line strings become literal blocks."""
    text = dump({'body': 'first\nsecond'})

    assert text == 'body: |-\n  first\n  second\n'
    assert load(text) == {'body': 'first\nsecond'}


def test_dump_unicode() -> None:
    """Non-ASCII text is written as is."""
    assert dump({'title': 'Amélie'}) == 'title: Amélie\n'


def test_positions() -> None:
    """Map key paths to zero-based line ranges."""
    text = (
        'first:\n'
        '  a: 1\n'
        '  b:\n'
        '  - x\n'
        '  - y\n'
        'second: 2\n'
    )

    ranges = positions(text)

    assert ranges[('first',)] == LineRange(0, 4)
    assert ranges[('first', 'a')] == LineRange(1, 1)
    assert ranges[('first', 'b', 0)] == LineRange(3, 3)
    assert ranges[('first', 'b', 1)] == LineRange(4, 4)
    assert ranges[('second',)] == LineRange(5, 5)


def test_positions_empty() -> None:
    """An empty document has no positions."""
    assert positions('') == {}


@pytest.mark.parametrize('response', (
    pytest.param({
        'status': {'code': 200, 'message': 'OK'},
        'headers': {'content-type': 'application/json'},
        'body': {
            'title': 'Casablanca',
            'credits': [
                {'role': 'Rick', 'name': 'Bogart', 'awards': []},
                {'role': 'Ilsa', 'name': 'Bergman', 'awards': ['Oscar']},
            ],
            'rating': 4.5,
            'released': True,
            'sequel': None,
        },
    }, id='nested objects and arrays'),
    pytest.param({
        'status': {'code': 200, 'message': 'OK'},
        'headers': {},
        'body': {
            'plot': 'Rick meets Ilsa.\nThey part in Lisbon.\n',
            'notes': [{'text': 'first\nsecond', 'draft': False}, None],
            'code': '007',
            'answer': 'yes',
            'empty': '',
        },
    }, id='multi-line and ambiguous scalars'),
    pytest.param({
        'status': {'code': 204, 'message': 'No Content'},
        'headers': {'x-ids': '1,2'},
        'body': [[{'z': 1, 'a': {'y': None, 'b': [True, 1.25]}}]],
    }, id='nested arrays'),
))
def test_dump_load_sorted_response(response: dict) -> None:
    """A sorted response reads back equal to itself."""
    value = sort_keys(response)

    assert load(dump(value)) == value
