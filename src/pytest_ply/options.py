"""Resolved runtime options.

Options are read once per run from keyword arguments (command line,
pytest options) and `PLY_*` environment variables, in that order of
precedence.
"""

from enum import StrEnum
from pathlib import Path

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from pytest_ply.models import SettingsModel


class NoExpectedPolicy(StrEnum):
    """Behavior when the expected-results document does not exist."""

    DEFAULT = 'default'
    NO_VERIFY = 'no-verify'
    CREATE_EXPECTED = 'create-expected'


class Options(SettingsModel):
    """Runtime options of a suite run."""

    model_config = SettingsConfigDict(
        env_prefix='PLY_',
        frozen=True,
        extra='ignore',
    )

    tests_location: Path = Field(
        default=Path('.'),
        description='Root directory of suite paths.',
    )
    expected_location: str | None = Field(
        default=None,
        description='Expected results root, a local path or an URL.',
    )
    actual_location: Path | None = Field(
        default=None,
        description='Actual results root.',
    )

    bail: bool = Field(
        default=False,
        description='Stop a suite on the first not passed test.',
    )
    no_expected: NoExpectedPolicy = Field(
        default=NoExpectedPolicy.DEFAULT,
        description='Behavior when expected results do not exist.',
    )

    response_headers: list[str] | None = Field(
        default=None,
        description='Allow-list of recorded response headers.',
    )
    response_body_sorted_keys: bool = Field(
        default=True,
        description='Sort object keys of recorded response bodies.',
    )
    pretty_indent: int = Field(
        default=2,
        ge=1,
        description='Indentation of recorded results.',
    )

    values_files: list[Path] = Field(
        default_factory=list,
        description='JSON or YAML files merged into initial values.',
    )
    ignore: list[str] = Field(
        default_factory=list,
        description='Glob patterns of suites to skip.',
    )

    timeout: float = Field(
        default=30.0,
        gt=0,
        description='HTTP timeout in seconds.',
    )
    verbose: bool = Field(
        default=False,
        description='Enable debug logging.',
    )

    @property
    def expected_root(self) -> str:
        """Expected results root, `<tests>/results/expected` by default."""
        if self.expected_location:
            return self.expected_location

        return (self.tests_location / 'results' / 'expected').as_posix()

    @property
    def actual_root(self) -> Path:
        """Actual results root, `<tests>/results/actual` by default."""
        if self.actual_location is not None:
            return self.actual_location

        return self.tests_location / 'results' / 'actual'
