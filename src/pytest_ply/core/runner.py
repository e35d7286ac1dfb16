"""Sequential execution of suite tests.

For each selected test the runner submits it, renders and stores the
actual result, records it for later `${@...}` references, verifies it
against the expected document and notifies the listener. Per-test
errors become `Errored` outcomes; suite setup errors propagate.
"""

from datetime import datetime
from logging import getLogger
from typing import TYPE_CHECKING

from pytest_ply.cases import CaseCall, registry
from pytest_ply.core.renderer import Rendered, ResultRenderer
from pytest_ply.core.verifier import Verifier
from pytest_ply.errors import ConfigurationError
from pytest_ply.options import NoExpectedPolicy
from pytest_ply.schema.results import Outcome, Result, ResultStatus

if TYPE_CHECKING:
    from pytest_ply.cases import Case, Workflow
    from pytest_ply.schema.requests import Request
    from pytest_ply.suite import Listener, Selection, Suite
    from pytest_ply.values import RuntimeValue

logger = getLogger(__name__)

NESTED_MESSAGE = 'Verified with enclosing case'
SKIPPED_MESSAGE = 'Verification skipped'
CREATED_MESSAGE = 'Expected result created'
NOT_FOUND_MESSAGE = 'Expected result not found'


class SuiteRunner:
    """One run of a suite."""

    def __init__(self, suite: 'Suite', *,
                 parent: CaseCall | None = None,
                 listener: 'Listener | None' = None) -> None:
        """Initialize the run.

        Args:
            suite: Suite to run.
            parent: Handle of the running case driving this suite.
            listener: Receiver of progress notifications.
        """
        self.suite = suite
        self.runtime = suite.runtime
        self.options = suite.runtime.options

        self.parent = parent
        self.listener = listener

        self.renderer = ResultRenderer(self.options)

        self.expected: str | None = None
        self.created = False
        self.offset = 0

        self.saved: 'tuple[dict[str, RuntimeValue], dict[str, RuntimeValue]] | None' = None

    @property
    def nested(self) -> bool:
        """Whether the suite runs inside a case."""
        return self.parent is not None

    def setup(self) -> None:
        """Prepare the suite before any test runs.

        Raises:
            ConfigurationError: If expected results should be created at
                a remote location.
            DiscoveryError: If the suite class of a case suite is missing.
        """
        paths = self.runtime.paths

        if self.suite.type == 'case':
            self.runtime.instance = (self.runtime.registry or registry).instance(self.suite.name)

        if self.parent is not None:
            self.saved = (self.runtime.values, self.runtime.results)
            self.runtime.values = {**self.runtime.values, **self.parent.values}
            self.runtime.results = dict(self.parent.results)
            return

        if self.options.no_expected == NoExpectedPolicy.CREATE_EXPECTED and paths.expected.is_remote:
            raise ConfigurationError(
                f'Can not create expected results at remote location {paths.expected.location}',
            )

        paths.actual.remove()
        self.runtime.results = {}
        self.expected = paths.expected.read()

    def run(self, selection: 'Selection') -> list[Result]:
        """Run selected tests strictly in order.

        Args:
            selection: Tests to run.

        Returns:
            Results of the tests that ran. With `bail` enabled, tests
            after the first not passed one produce no result.
        """
        tests = self.suite.select(selection)

        self.setup()

        results = []
        try:
            for test in tests:
                path = self.suite.test_path(test.name)
                if self.listener:
                    self.listener.start(path)

                result = self.run_test(test)
                results.append(result)

                logger.info('%s %s %s', path, result.status, result.outcome.message)
                if self.listener:
                    self.listener.outcome(path, result.outcome)

                if self.options.bail and not self.nested and result.status != ResultStatus.PASSED:
                    logger.info('Bail out of %s after %s', self.suite.path, test.name)
                    break
        finally:
            self.teardown()

        return results

    def teardown(self) -> None:
        """Give a nested suite back the values it had before the run."""
        if self.saved is not None:
            self.runtime.values, self.runtime.results = self.saved
            self.saved = None

    def run_test(self, test: 'Request | Case | Workflow') -> Result:
        """Run, record and verify one test."""
        try:
            if test.type == 'request':
                result, rendered = self.run_request(test)  # type: ignore[arg-type]
            else:
                result, rendered = self.run_compound(test)  # type: ignore[arg-type]

            self.store(rendered)
            outcome = self.check(rendered)

        except Exception as error:  # noqa: BLE001
            logger.debug('Test %s errored', test.name, exc_info=error)
            return Result(name=test.name, outcome=Outcome.errored(f'{error}'))

        return result.with_outcome(outcome)

    def run_request(self, test: 'Request') -> tuple[Result, Rendered]:
        """Submit a request and record its result."""
        result = test.run(self.runtime)

        indent = self.parent.indent if self.parent is not None else 0
        rendered = self.renderer.render(result, indent=indent)

        self.record(test.name, self.renderer.content(result))

        return result, rendered

    def run_compound(self, test: 'Case | Workflow') -> tuple[Result, Rendered]:
        """Invoke a case or a workflow and record its nested results."""
        indent = self.parent.indent if self.parent is not None else 0

        call = CaseCall(self.runtime, test.name, indent=indent + self.options.pretty_indent)

        submitted = datetime.now()  # noqa: DTZ005
        test.invoke(call)

        label = self.renderer.render_label(test.name, submitted, indent=indent)
        text = label.text + call.text

        self.record(test.name, call.results)

        return Result(name=test.name), Rendered(text, text.count('\n'))

    def record(self, name: str, content: 'RuntimeValue') -> None:
        """Make a result available to later `${@...}` references."""
        self.runtime.results = {**self.runtime.results, name: content}
        if self.parent is not None:
            self.parent.results[name] = content

    def store(self, rendered: Rendered) -> None:
        """Write rendered actual results."""
        if self.parent is not None:
            self.parent.buffer.append(rendered.text)
            return

        self.runtime.paths.actual.append(rendered.text)

    def check(self, rendered: Rendered) -> Outcome:
        """Verify a rendered result or apply the no-expected policy."""
        offset = self.offset
        self.offset += rendered.lines

        if self.parent is not None:
            return Outcome.not_verified(NESTED_MESSAGE)

        expected = self.runtime.paths.expected
        if self.expected is None:
            match self.options.no_expected:
                case NoExpectedPolicy.NO_VERIFY:
                    return Outcome.not_verified(SKIPPED_MESSAGE)
                case NoExpectedPolicy.CREATE_EXPECTED:
                    return self.create(rendered)
                case _:
                    return Outcome.failed(f'{NOT_FOUND_MESSAGE}: {expected.location}')

        verifier = Verifier(self.expected, offset, location=expected.location)

        return verifier.verify(
            rendered.text,
            self.runtime.context,
            actual_line=offset,
        )

    def create(self, rendered: Rendered) -> Outcome:
        """Write a rendered result as expected result."""
        storage = self.runtime.paths.expected_storage()
        if self.created:
            storage.append(rendered.text)
        else:
            storage.write(rendered.text)
            self.created = True

        return Outcome.not_verified(CREATED_MESSAGE)
