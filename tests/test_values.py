"""Tests for runtime values and the evaluation context."""

from types import MappingProxyType

import pytest

from pytest_ply.context import ContextDict
from pytest_ply.errors import ExpressionError, NoResultsFound
from pytest_ply.values import normalize, sort_keys, stringify


@pytest.mark.parametrize('value, expected', (
    pytest.param(None, 'null', id='none'),
    pytest.param(True, 'true', id='true'),
    pytest.param(False, 'false', id='false'),
    pytest.param(42, '42', id='int'),
    pytest.param(42.0, '42', id='integral float'),
    pytest.param(4.5, '4.5', id='float'),
    pytest.param('text', 'text', id='str'),
    pytest.param({'b': 1, 'a': [True, None]}, '{"b":1,"a":[true,null]}', id='mapping'),
    pytest.param(('x', 2), '["x",2]', id='tuple'),
    pytest.param({'name': 'Amélie'}, '{"name":"Amélie"}', id='unicode'),
))
def test_stringify(value: object, expected: str) -> None:
    """Render values as template text."""
    assert stringify(value) == expected


def test_normalize_mapping_like() -> None:
    """Normalize mapping-like objects and tuples into plain values."""
    value = MappingProxyType({'items': (1, 2), 'nested': MappingProxyType({'a': None})})

    assert normalize(value) == {'items': [1, 2], 'nested': {'a': None}}


def test_normalize_rejects_non_string_keys() -> None:
    """Mapping keys must be strings."""
    with pytest.raises(TypeError, match='as mapping key'):
        normalize({1: 'one'})


def test_normalize_rejects_unsupported() -> None:
    """Arbitrary objects are not values."""
    with pytest.raises(TypeError, match='unsupported type'):
        normalize({'value': object()})


def test_sort_keys_recursive() -> None:
    """Sort mapping keys at every level, keep sequence order."""
    value = {'b': [{'z': 1, 'y': 2}], 'a': {'d': 1, 'c': 2}}

    ordered = sort_keys(value)

    assert list(ordered) == ['a', 'b']
    assert list(ordered['a']) == ['c', 'd']
    assert list(ordered['b'][0]) == ['y', 'z']


def test_context_is_read_only() -> None:
    """Context bindings can not be changed after creation."""
    context = ContextDict({'a': 1}, b=2)

    assert dict(context) == {'a': 1, 'b': 2}
    assert len(context) == 2

    with pytest.raises(TypeError):
        context['c'] = 3  # type: ignore[index]


def test_context_lookup() -> None:
    """Resolve free variables of expressions."""
    context = ContextDict({'a': None, '__ply_results': {'first': {}}})

    assert context.lookup('a') is None
    assert context.lookup('__ply_results') == {'first': {}}

    with pytest.raises(ExpressionError, match=r'^b is not defined$'):
        context.lookup('b')


@pytest.mark.parametrize('values', (
    pytest.param({}, id='missing'),
    pytest.param({'__ply_results': {}}, id='empty'),
))
def test_context_lookup_without_results(values: dict) -> None:
    """Prior results must exist to be referenced."""
    with pytest.raises(NoResultsFound):
        ContextDict(values).lookup('__ply_results')
