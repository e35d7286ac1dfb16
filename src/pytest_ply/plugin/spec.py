"""Pytest collector of request files.

Each collected file is loaded into a request suite and converted into
one `RequestItem` per request. All items of a file share one
`SuiteSession`, so the suite runs once, in file order.
"""

from typing import TYPE_CHECKING

import pytest

from pytest_ply.core.loader import RequestLoader

from .case import RequestItem, SuiteSession

if TYPE_CHECKING:
    from collections.abc import Iterable


class RequestSpec(pytest.File):
    """Pytest file collector for request files."""

    def collect(self) -> 'Iterable[RequestItem]':
        """Collect one pytest item per request.

        Suites matching an ignore pattern produce no items.

        Returns:
            Iterable of `RequestItem` instances for pytest execution.

        Raises:
            DiscoveryError: If the request file is not valid.
        """
        loader = RequestLoader(self.config.ply_options)  # type: ignore[attr-defined]
        suite = loader.load_suite(self.path)
        if suite.skip:
            return

        session = SuiteSession(suite)
        for request in suite:
            yield RequestItem.from_parent(
                self,
                name=request.name,
                suite_session=session,
                start_line=request.start_line,
            )
