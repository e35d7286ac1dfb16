"""Pytest plugin collecting request files as test suites.

This module integrates `pytest-ply` with pytest by:
- registering custom command-line options;
- resolving shared runtime `Options`;
- collecting request files as suites of pytest items.

Files named `*.ply.yaml` or `*.ply.yml` are collected. Each request
becomes one pytest item; the suite runs once per file.
"""

from typing import TYPE_CHECKING

from pytest_ply.names import REQUEST_SUFFIXES
from pytest_ply.options import NoExpectedPolicy

from .spec import RequestSpec

if TYPE_CHECKING:
    from pathlib import Path

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.config.argparsing import Parser
    from _pytest.nodes import Node


def pytest_addoption(parser: 'Parser') -> None:
    """Register pytest command-line options for pytest-ply.

    Args:
        parser: Pytest argument parser.
    """
    group = parser.getgroup('ply', 'API tests with expected results')
    group.addoption(
        '--ply-bail',
        action='store_true',
        dest='ply_bail',
        default=False,
        help='Stop running a request file after its first not passed request.',
    )
    group.addoption(
        '--ply-no-expected',
        action='store',
        dest='ply_no_expected',
        choices=[policy.value for policy in NoExpectedPolicy],
        default=None,
        help=(
            'Behavior when expected results do not exist: '
            'fail (default), skip verification or create them from actual results.'
        ),
    )
    group.addoption(
        '--ply-expected',
        action='store',
        dest='ply_expected',
        default=None,
        help='Expected results root, a directory or an URL.',
    )
    group.addoption(
        '--ply-actual',
        action='store',
        dest='ply_actual',
        default=None,
        help='Actual results root directory.',
    )


def pytest_configure(config: 'Config') -> None:
    """Configure pytest-ply integration.

    This hook resolves runtime options from command-line arguments and
    `PLY_*` environment variables and attaches them to the pytest
    configuration object as `config.ply_options`.

    Args:
        config: Pytest configuration object.
    """
    from pytest_ply.options import Options  # noqa: PLC0415

    overrides = {
        'bail': config.getoption('ply_bail', default=False) or None,
        'no_expected': config.getoption('ply_no_expected', default=None),
        'expected_location': config.getoption('ply_expected', default=None),
        'actual_location': config.getoption('ply_actual', default=None),
    }

    config.ply_options = Options(  # type: ignore[attr-defined]
        tests_location=config.rootpath,
        **{
            key: value
            for key, value in overrides.items()
            if value is not None
        },
    )


def pytest_collect_file(parent: 'Node', file_path: 'Path') -> RequestSpec | None:
    """Collect request files.

    Args:
        parent: Parent pytest collection node.
        file_path: Path to the file being considered.

    Returns:
        A `RequestSpec` collector for request files, otherwise `None`.
    """
    if file_path.name.endswith(REQUEST_SUFFIXES):
        return RequestSpec.from_parent(
            parent,
            path=file_path,
        )

    return None
