"""Request, response and result models."""

from .requests import Request
from .responses import Response, Status
from .results import Outcome, RecordedRequest, Result, ResultStatus

__all__ = (
    'Outcome',
    'RecordedRequest',
    'Request',
    'Response',
    'Result',
    'ResultStatus',
    'Status',
)
