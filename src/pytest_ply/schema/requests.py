"""Declarative HTTP request tests.

A request file maps test names to request definitions:

```yaml
createMovie:
  url: ${baseUrl}/movies
  method: POST
  headers:
    Content-Type: application/json
  body: |-
    {"title": "${title}"}
```

The url, the method, header values and the body are templates resolved
against runtime values at submission time. Scalar header values such as
`X-Count: 5` are read as text. `Authorization` is sent as written.
"""

from datetime import datetime
from logging import getLogger
from time import perf_counter
from typing import TYPE_CHECKING, Literal

from pydantic import Field, PrivateAttr, field_validator

from pytest_ply.client import HttpxClient
from pytest_ply.errors import InvalidRequest
from pytest_ply.models import SchemaModel
from pytest_ply.names import AUTHORIZATION, METHODS, URL_SCHEMES
from pytest_ply.schema.contents import materialize
from pytest_ply.schema.responses import Response, Status
from pytest_ply.schema.results import RecordedRequest, Result
from pytest_ply.subst import resolve
from pytest_ply.values import stringify

if TYPE_CHECKING:
    from collections.abc import Mapping

if TYPE_CHECKING:
    from pytest_ply.client import Exchange, HttpClient
    from pytest_ply.runtime import Runtime
    from pytest_ply.values import RuntimeValue

logger = getLogger(__name__)

MASK = '********'


def is_authorization(name: str) -> bool:
    """Check whether a header carries credentials."""
    return name.lower() == AUTHORIZATION.lower()


class Request(SchemaModel):
    """Request test definition."""

    type: Literal['request'] = Field(
        default='request',
        exclude=True,
    )

    name: str = Field(
        title='Request name',
        description='Unique name of the request within its suite.',
    )
    url: str = Field(
        title='URL',
        description='Absolute `http` or `https` URL, may contain expressions.',
    )
    method: str = Field(
        title='HTTP method',
        description='One of the supported HTTP methods, case-insensitive.',
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        title='Request headers',
        description='Header values may contain expressions.',
    )
    body: str | None = Field(
        default=None,
        title='Request body',
        description='Body text, may contain expressions.',
    )

    start_line: int = Field(
        default=0,
        exclude=True,
        title='First line of the definition, zero-based.',
    )
    end_line: int | None = Field(
        default=None,
        exclude=True,
        title='Last line of the definition, zero-based.',
    )

    _submitted: datetime | None = PrivateAttr(default=None)

    @field_validator('url', 'method', mode='after')
    @classmethod
    def strip(cls, value: str) -> str:
        """Trim surrounding whitespace."""
        return value.strip()

    @field_validator('headers', mode='before')
    @classmethod
    def scalar_headers(cls, value: object) -> object:
        """Read number and boolean header values as text."""
        if not isinstance(value, dict):
            return value

        return {
            name: stringify(item) if isinstance(item, (bool, int, float)) else item
            for name, item in value.items()
        }

    @property
    def submitted(self) -> datetime | None:
        """Time of the last submission within a suite run."""
        return self._submitted

    def prepare(self, values: 'Mapping[str, RuntimeValue]') -> tuple[RecordedRequest, str | None]:
        """Resolve all templates of the request.

        Args:
            values: Substitution values.

        Returns:
            The request as it will be recorded and the body text to send.

        Raises:
            InvalidRequest: If the URL or the method is not supported.
        """
        url = resolve(self.url, values)
        if not url.startswith(URL_SCHEMES):
            raise InvalidRequest(f'Invalid url: {url}')

        method = resolve(self.method, values).strip().upper()
        if method not in METHODS:
            raise InvalidRequest(f'Unsupported method: {method}')

        headers = {
            name: resolve(value, values)
            for name, value in self.headers.items()
            if not is_authorization(name)
        }

        body = None
        if self.body is not None:
            body = resolve(self.body, values)

        recorded = RecordedRequest(
            name=self.name,
            url=url,
            method=method,
            headers=headers,
            body=materialize(body, name=self.name),
            submitted=self._submitted,
        )

        return recorded, body

    def exchange(self, values: 'Mapping[str, RuntimeValue]',
                 client: 'HttpClient') -> tuple[RecordedRequest, Response]:
        """Resolve and send the request.

        The `Authorization` header is sent verbatim and never logged
        or recorded.

        Args:
            values: Substitution values.
            client: HTTP client performing the exchange.

        Returns:
            The recorded request and the received response.
        """
        before = perf_counter()

        recorded, body = self.prepare(values)

        headers = dict(recorded.headers)
        headers.update(
            (name, value)
            for name, value in self.headers.items()
            if is_authorization(name)
        )

        logger.debug(
            'Request %r: %s %s %r', self.name, recorded.method, recorded.url,
            {name: MASK if is_authorization(name) else value for name, value in headers.items()},
        )

        received: Exchange = client.send(recorded.method, recorded.url, headers, body)

        response = Response(
            status=Status(code=received.status, message=received.message),
            headers=received.headers,
            body=materialize(received.body or None, strict=False),
            time=round((perf_counter() - before) * 1000),
        )

        logger.debug('Response %r: %s %s', self.name, received.status, received.message)

        return recorded, response

    def submit(self, values: 'Mapping[str, RuntimeValue]',
               client: 'HttpClient | None' = None) -> Response:
        """Send the request without recording or verifying anything.

        Useful for preparing or cleaning up server state around cases.

        Args:
            values: Substitution values.
            client: HTTP client, a temporary `HttpxClient` when omitted.

        Returns:
            The unfiltered response.
        """
        if client is not None:
            return self.exchange(values, client)[1]

        transient = HttpxClient()
        try:
            return self.exchange(values, transient)[1]
        finally:
            transient.close()

    def run(self, runtime: 'Runtime') -> Result:
        """Submit the request as a test of a suite run.

        Args:
            runtime: Runtime of the owning suite.

        Returns:
            A pending result with the recorded request and the
            filtered response.
        """
        self._submitted = datetime.now()  # noqa: DTZ005
        logger.info('Request %r submitted at %s', self.name, self._submitted.isoformat(sep=' ', timespec='milliseconds'))

        recorded, response = self.exchange(runtime.context, runtime.client)

        return Result(
            name=self.name,
            request=recorded.model_copy(update={
                'headers': {name.lower(): value for name, value in recorded.headers.items()},
            }),
            response=response.filtered(runtime.options),
        )
