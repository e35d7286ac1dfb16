"""Discovery, rendering, verification and execution of suites."""

from .loader import CaseLoader, RequestLoader
from .renderer import Rendered, ResultRenderer
from .runner import SuiteRunner
from .verifier import Verifier

__all__ = (
    'CaseLoader',
    'Rendered',
    'RequestLoader',
    'ResultRenderer',
    'SuiteRunner',
    'Verifier',
)
