"""Programmatic case tests.

Cases are methods of suite classes registered with decorators:

```python
from pytest_ply import case, suite


@suite('movie crud')
class MovieCrud:

    @case('update rating')
    def update_rating(self, call):
        call.values['rating'] = 5
        call.run(requests, 'updateMovie', 'getMovie')
```

Every case receives a `CaseCall` handle. Request suites run through the
handle are recorded under the case and verified with it.
"""

from inspect import getsourcelines, getsourcefile, isfunction
from typing import TYPE_CHECKING, Any, Literal

from pydantic import Field

from pytest_ply.errors import DiscoveryError
from pytest_ply.models import SchemaModel
from pytest_ply.suite import RunAll, RunNamed, RunSelected

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from pytest_ply.runtime import Runtime
    from pytest_ply.schema.results import Result
    from pytest_ply.suite import Suite
    from pytest_ply.values import RuntimeValue

SUITE_ATTRIBUTE = '__ply_suite__'
CASE_ATTRIBUTE = '__ply_case__'


class CaseCall:
    """Handle passed to a running case or workflow.

    Request suites run through the handle render their results into
    `buffer` at `indent` and are verified together with the case.
    """

    def __init__(self, runtime: 'Runtime', name: str, *, indent: int = 0) -> None:
        """Initialize the handle.

        Args:
            runtime: Runtime of the suite owning the case.
            name: Case name.
            indent: Indentation of nested results.
        """
        self.runtime = runtime
        self.name = name
        self.indent = indent

        #: Values passed to nested suites, seeded from the case runtime.
        self.values: dict[str, RuntimeValue] = dict(runtime.values)
        #: Rendered nested results.
        self.buffer: list[str] = []
        #: Nested results by test name.
        self.results: dict[str, RuntimeValue] = {}

    def run(self, suite: 'Suite', *names: str) -> list['Result']:
        """Run tests of a request suite as part of the case.

        Args:
            suite: Request suite.
            *names: Tests to run, all when empty.

        Returns:
            Results of the nested tests.
        """
        match names:
            case ():
                selection = RunAll()
            case (name,):
                selection = RunNamed(name=name)
            case _:
                selection = RunSelected(names=names)

        return suite.run(selection, parent=self)

    @property
    def text(self) -> str:
        """Rendered nested results."""
        return ''.join(self.buffer)


class Case(SchemaModel):
    """Case test: a method of a registered suite class."""

    type: Literal['case'] = 'case'

    name: str
    method: str
    start_line: int = 0
    end_line: int | None = None

    def invoke(self, call: CaseCall) -> None:
        """Call the case method on the live suite instance.

        Raises:
            DiscoveryError: If the method does not exist.
        """
        instance = call.runtime.instance
        if (method := getattr(instance, self.method, None)) is None:
            raise DiscoveryError(f'Case method {self.method} not found in {type(instance).__name__}')

        method(call)


class Workflow(SchemaModel):
    """Compound test running selected requests of a request suite."""

    type: Literal['workflow'] = 'workflow'

    name: str
    requests: Any = Field(exclude=True)
    steps: tuple[str, ...] = ()
    start_line: int = 0
    end_line: int | None = None

    def invoke(self, call: CaseCall) -> None:
        """Run the steps nested under the workflow."""
        call.run(self.requests, *self.steps)


class CaseRegistry:
    """Registry of suite classes with case methods."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._suites: dict[str, type] = {}

    def __contains__(self, name: object) -> bool:
        """Check whether a suite name is registered."""
        return name in self._suites

    def suite[C: type](self, name: str | None = None) -> 'Callable[[C], C]':
        """Register a class as a case suite.

        Args:
            name: Suite name, the class name by default.
        """
        def decorator(cls: C) -> C:
            suite_name = name or cls.__name__
            setattr(cls, SUITE_ATTRIBUTE, suite_name)
            self._suites[suite_name] = cls
            return cls

        return decorator

    @staticmethod
    def case[F: Callable[..., Any]](name: str | None = None) -> 'Callable[[F], F]':
        """Mark a method of a suite class as a case.

        Args:
            name: Case name, the method name by default.
        """
        def decorator(func: F) -> F:
            setattr(func, CASE_ATTRIBUTE, name or func.__name__)
            return func

        return decorator

    def suites(self) -> dict[str, type]:
        """Registered suite classes by suite name."""
        return dict(self._suites)

    def get(self, name: str) -> type:
        """Return a suite class by suite name.

        Raises:
            DiscoveryError: If the suite is not registered.
        """
        if (cls := self._suites.get(name)) is None:
            raise DiscoveryError(f'Suite class not found: {name}')

        return cls

    def instance(self, name: str) -> object:
        """Create a live instance of a suite class."""
        return self.get(name)()

    @staticmethod
    def cases(cls: type) -> list[Case]:
        """Collect cases of a suite class in definition order."""
        cases = []
        for attribute, member in vars(cls).items():
            if not isfunction(member) or not hasattr(member, CASE_ATTRIBUTE):
                continue

            lines, start = getsourcelines(member)
            cases.append(Case(
                name=getattr(member, CASE_ATTRIBUTE),
                method=attribute,
                start_line=start - 1,
                end_line=start + len(lines) - 2,
            ))

        return cases

    @staticmethod
    def source(cls: type) -> tuple[str | None, int, int]:
        """Source file and zero-based line range of a suite class."""
        lines, start = getsourcelines(cls)
        return getsourcefile(cls), start - 1, start + len(lines) - 2


#: Registry used by the `suite` and `case` decorators.
registry = CaseRegistry()

suite = registry.suite
case = registry.case
