"""Pytest plugin and runner for API tests with expected results.

The `pytest_ply` package runs declarative HTTP requests and
programmatic cases, records actual results as YAML and verifies them
against expected results kept alongside the tests.

Key features:
- `${...}` expressions resolved against values and prior results;
- request files collected as pytest items;
- line-accurate diffs between expected and actual results;
- cases composing request suites with `@suite` and `@case`.
"""

from pytest_ply.cases import CaseCall, case, suite

__all__ = (
    'CaseCall',
    'case',
    'suite',
)
