"""Pytest items reporting outcomes of a suite run.

The suite runs once, when its first item runs. Every item then reports
the outcome of its own request:

- `Passed` passes;
- `Failed` raises an `AssertionError` carrying the diff;
- `Errored` raises a `PlyError`;
- `Not Verified` and requests left unrun after bail are skipped.
"""

from typing import TYPE_CHECKING

import pytest

from pytest_ply.errors import ErrorContext, PlyError
from pytest_ply.schema.results import ResultStatus

if TYPE_CHECKING:
    from typing import Any

if TYPE_CHECKING:
    from _pytest._code.code import ExceptionInfo, TerminalRepr

if TYPE_CHECKING:
    from pytest_ply.schema.results import Result
    from pytest_ply.suite import Suite

BAILED_MESSAGE = 'Not run after a previous request did not pass'


class SuiteSession:
    """Lazily executed suite shared by the items of one file."""

    def __init__(self, suite: 'Suite') -> None:
        """Initialize the session.

        Args:
            suite: Suite to run.
        """
        self.suite = suite
        self._results: dict[str, Result] | None = None

    def result(self, name: str) -> 'Result | None':
        """Result of a test, running the suite on first access."""
        if self._results is None:
            try:
                self._results = {
                    result.name: result
                    for result in self.suite.run()
                }
            finally:
                self.suite.runtime.close()

        return self._results.get(name)


class RequestItem(pytest.Item):
    """Pytest item reporting the outcome of one request."""

    def __init__(self, *, suite_session: SuiteSession, start_line: int = 0,
                 **kwargs: 'Any') -> None:
        """Initialize a pytest item.

        Args:
            suite_session: Session of the owning suite.
            start_line: Zero-based first line of the request.
            **kwargs: Keyword pytest.Item arguments.
        """
        super().__init__(**kwargs)

        self.suite_session = suite_session
        self.start_line = start_line

    def runtest(self) -> None:
        """Report the outcome of the request."""
        result = self.suite_session.result(self.name)
        if result is None:
            pytest.skip(BAILED_MESSAGE)

        outcome = result.outcome
        match outcome.status:
            case ResultStatus.PASSED:
                return
            case ResultStatus.NOT_VERIFIED:
                pytest.skip(outcome.message)
            case ResultStatus.FAILED:
                message = outcome.message
                if outcome.diff:
                    message += f'\n{outcome.diff}'
                raise AssertionError(message)
            case _:
                raise PlyError(outcome.message, context=ErrorContext(
                    filename=f'{self.path}',
                    line_num=self.start_line,
                    test_name=self.name,
                ))

    def repr_failure(self, excinfo: 'ExceptionInfo[BaseException]') -> 'str | TerminalRepr':
        """Report failures without the plugin traceback."""
        if isinstance(excinfo.value, (AssertionError, PlyError)):
            return f'{excinfo.value}'

        return super().repr_failure(excinfo)

    def reportinfo(self) -> tuple[str, int, str]:
        """Location of the request in its file."""
        return f'{self.path}', self.start_line, self.name
