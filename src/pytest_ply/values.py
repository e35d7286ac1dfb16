"""Core type definitions for runtime values.

This module defines the value type system shared by the substitution
engine, the request/response model and the result serializer.

It also provides utilities for recursively normalizing arbitrary runtime
objects into plain values, canonically ordering mapping keys and rendering
values as template text.
"""

from collections.abc import Mapping, Sequence
from datetime import date, datetime, timedelta
from json import dumps
from typing import Any

#: Scalars represent atomic values that can be consumed directly by
#: encoders, the expression evaluator and the verifier.
type Scalar = date | datetime | timedelta | str | bytes | int | float | bool

#: A value is a scalar or a nested structure of scalars. Values are what
#: results are made of once decoded from JSON or YAML.
type Value = Scalar | Sequence['Value'] | Mapping[str, 'Value'] | None

#: A value in runtime represents any Python object received from
# external libraries, user-defined code, or YAML loaders prior to
# normalization into a strict `Value`.
type RuntimeValue = Any

MAPPINGS = (dict,)
SCALARS = (date, datetime, timedelta, str, bytes, int, float, bool)
SEQUENCES = (list, tuple, set)


def _normalize_key(value: RuntimeValue) -> str:
    """Validate and normalize a mapping key.

    Args:
        value: Candidate mapping key.

    Returns:
        The validated key as a string.

    Raises:
        TypeError: If the provided key is not a string.
    """
    if not isinstance(value, str):
        raise TypeError(f'Can not use {value!r} as mapping key')

    return value


def normalize(value: RuntimeValue) -> Value:
    """Recursively normalize a runtime value into a `Value`.

    Mapping-like objects (for example, `httpx.Headers`) become plain
    dictionaries, tuples and sets become lists.

    Args:
        value: Runtime value to normalize.

    Returns:
        A fully normalized value.

    Raises:
        TypeError: If the value type is unsupported.
    """
    if value is None:
        return None

    if isinstance(value, SCALARS):
        return value

    if isinstance(value, Mapping):
        return {
           _normalize_key(key): normalize(item)
           for key, item in value.items()
        }

    if isinstance(value, SEQUENCES):
        return [
            normalize(item)
            for item in value
        ]

    raise TypeError(f'{value!r} has unsupported type')


def sort_keys(value: Value) -> Value:
    """Return a copy of a value with mapping keys canonically ordered.

    Ordering is applied recursively through nested mappings and
    sequences. Sequence order is preserved.

    Args:
        value: A normalized value.

    Returns:
        The value with all mapping keys sorted.
    """
    if isinstance(value, MAPPINGS):
        return {
            key: sort_keys(value[key])
            for key in sorted(value)
        }

    if isinstance(value, SEQUENCES):
        return [sort_keys(item) for item in value]

    return value


def stringify(value: RuntimeValue) -> str:
    """Render a value as template text.

    Booleans and `None` use their JSON spelling, integral floats lose
    the fractional part and containers are rendered as compact JSON.

    Args:
        value: Value to render.

    Returns:
        Text representation of the value.
    """
    if value is None:
        return 'null'

    if isinstance(value, bool):
        return 'true' if value else 'false'

    if isinstance(value, float) and value.is_integer():
        return f'{int(value)}'

    if isinstance(value, (MAPPINGS, SEQUENCES)):
        return dumps(normalize(value), ensure_ascii=False, separators=(',', ':'), default=str)

    return f'{value}'
