"""HTTP transport used to submit requests.

The engine talks to the network through the `HttpClient` protocol only.
The default implementation wraps `httpx.Client`; tests substitute an
in-memory client or an `httpx.MockTransport`.
"""

from logging import getLogger
from typing import TYPE_CHECKING, Protocol

import httpx

from pytest_ply.errors import SubmissionError
from pytest_ply.models import SchemaModel

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = getLogger(__name__)


class Exchange(SchemaModel):
    """Raw outcome of a single HTTP exchange."""

    status: int
    message: str = ''
    headers: dict[str, str] = {}
    body: str = ''
    elapsed: float | None = None


class HttpClient(Protocol):
    """Anything able to perform one HTTP exchange."""

    def send(self, method: str, url: str, headers: 'Mapping[str, str]',
             body: str | None = None) -> Exchange:
        """Send a request and return the raw response."""
        ...

    def close(self) -> None:
        """Release resources held by the client."""
        ...


class HttpxClient:
    """`HttpClient` backed by a lazily created `httpx.Client`."""

    def __init__(self, *, timeout: float = 30.0, follow_redirects: bool = True,
                 transport: httpx.BaseTransport | None = None) -> None:
        """Initialize the client.

        Args:
            timeout: Timeout of each exchange, seconds.
            follow_redirects: Follow HTTP redirects.
            transport: Optional transport replacing the network one.
        """
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.transport = transport

        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Underlying `httpx.Client`, created on first use."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                follow_redirects=self.follow_redirects,
                transport=self.transport,
            )

        return self._client

    def send(self, method: str, url: str, headers: 'Mapping[str, str]',
             body: str | None = None) -> Exchange:
        """Perform one HTTP exchange.

        Args:
            method: Upper-case HTTP method.
            url: Absolute request URL.
            headers: Outgoing request headers.
            body: Optional request body text.

        Returns:
            The received response.

        Raises:
            SubmissionError: On any transport failure.
        """
        try:
            response = self.client.request(
                method,
                url,
                headers=dict(headers),
                content=body.encode('utf-8') if body is not None else None,
            )
        except httpx.HTTPError as base:
            raise SubmissionError(f'{method} {url} failed: {base}') from base

        logger.debug('Received %s %s from %s', response.status_code, response.reason_phrase, url)

        return Exchange(
            status=response.status_code,
            message=response.reason_phrase,
            headers=dict(response.headers.items()),
            body=response.text,
            elapsed=response.elapsed.total_seconds() * 1000,
        )

    def close(self) -> None:
        """Release pooled connections."""
        if self._client is not None:
            self._client.close()
            self._client = None
