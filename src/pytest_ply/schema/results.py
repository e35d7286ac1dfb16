"""Test results and outcomes."""

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import Field

from pytest_ply.models import SchemaModel
from pytest_ply.schema.responses import Response  # noqa: TC001
from pytest_ply.values import RuntimeValue

if TYPE_CHECKING:
    from typing import Self


class RecordedRequest(SchemaModel):
    """Request as actually submitted.

    Values are resolved, header names are lower-cased and the
    `Authorization` header is never present.
    """

    name: str
    url: str
    method: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: RuntimeValue = None
    submitted: datetime | None = None


class ResultStatus(StrEnum):
    """Lifecycle state of a test result.

    Results start as `PENDING` and end in exactly one of the other states.
    """

    PENDING = 'Pending'
    PASSED = 'Passed'
    FAILED = 'Failed'
    ERRORED = 'Errored'
    NOT_VERIFIED = 'Not Verified'


class Outcome(SchemaModel):
    """Verdict of one test in one run."""

    status: ResultStatus = ResultStatus.PENDING
    message: str = ''
    diff: str | None = None

    @classmethod
    def passed(cls) -> 'Self':
        """Successful verification."""
        return cls(status=ResultStatus.PASSED)

    @classmethod
    def failed(cls, message: str, diff: str | None = None) -> 'Self':
        """Verification found differences or nothing to compare with."""
        return cls(status=ResultStatus.FAILED, message=message, diff=diff)

    @classmethod
    def errored(cls, message: str) -> 'Self':
        """Test could not be run or verified."""
        return cls(status=ResultStatus.ERRORED, message=message)

    @classmethod
    def not_verified(cls, message: str) -> 'Self':
        """Test was run without verification."""
        return cls(status=ResultStatus.NOT_VERIFIED, message=message)


class Result(SchemaModel):
    """Result of running one test."""

    name: str
    request: RecordedRequest | None = None
    response: Response | None = None
    outcome: Outcome = Field(default_factory=Outcome)

    @property
    def status(self) -> ResultStatus:
        """Status of the outcome."""
        return self.outcome.status

    def with_outcome(self, outcome: Outcome) -> 'Result':
        """Return a copy of the result carrying the outcome."""
        return self.model_copy(update={'outcome': outcome})
