"""Immutable evaluation context for template expressions.

The context is a read-only snapshot of substitution values taken when a
template is resolved. Every top-level key is available to expressions as
a free variable of the same name.
"""

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from pytest_ply.errors import ExpressionError, NoResultsFound
from pytest_ply.names import RESULTS

if TYPE_CHECKING:
    from pytest_ply.values import RuntimeValue


class ContextDict(Mapping[str, 'RuntimeValue']):
    """Read-only mapping of variable names to values.

    The snapshot is shallow: top-level bindings can not be added,
    replaced or removed after creation. Nested values are never mutated
    by the expression evaluator.
    """

    def __init__(self, values: 'Mapping[str, RuntimeValue] | None' = None, /,
                 **kwargs: 'RuntimeValue') -> None:
        """Initialize the snapshot.

        Args:
            values: Initial bindings.
            **kwargs: Additional bindings overriding `values`.
        """
        self._values = MappingProxyType({**(values or {}), **kwargs})

    def __getitem__(self, key: str) -> 'RuntimeValue':
        """Return a binding by name."""
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        """Iterate binding names."""
        return iter(self._values)

    def __len__(self) -> int:
        """Return number of bindings."""
        return len(self._values)

    def __repr__(self) -> str:
        """String represenatation."""
        return f'{type(self).__name__}({dict(self._values)!r})'

    def lookup(self, name: str) -> 'RuntimeValue':
        """Resolve a free variable of an expression.

        Args:
            name: Variable name.

        Returns:
            The bound value.

        Raises:
            NoResultsFound: If prior results are referenced but none exist.
            ExpressionError: If the name is not bound.
        """
        if name == RESULTS:
            results = self._values.get(RESULTS)
            if not results:
                raise NoResultsFound
            return results

        if name not in self._values:
            raise ExpressionError(f'{name} is not defined')

        return self._values[name]
