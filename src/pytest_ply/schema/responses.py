"""Recorded HTTP responses."""

from typing import TYPE_CHECKING

from pydantic import Field

from pytest_ply.models import SchemaModel
from pytest_ply.values import RuntimeValue, normalize, sort_keys

if TYPE_CHECKING:
    from pytest_ply.options import Options


class Status(SchemaModel):
    """HTTP status line."""

    code: int
    message: str = ''


class Response(SchemaModel):
    """Response as recorded in results.

    The body is a mapping when the received text is a JSON object,
    otherwise the text itself. `time` is the elapsed time in
    milliseconds and is never compared.
    """

    status: Status
    headers: dict[str, str] = Field(default_factory=dict)
    body: RuntimeValue = None
    time: float | None = None

    def filtered(self, options: 'Options') -> 'Response':
        """Apply recording options to the response.

        Header names are lower-cased and reduced to the configured
        allow-list (all headers, sorted by name, when it is unset).
        Object bodies get their keys sorted unless disabled.

        Args:
            options: Resolved runtime options.

        Returns:
            A filtered copy of the response.
        """
        received = {
            name.lower(): value
            for name, value in self.headers.items()
        }

        wanted = sorted(received)
        if options.response_headers is not None:
            wanted = [name.lower() for name in options.response_headers]

        headers = {
            name: received[name]
            for name in wanted
            if name in received
        }

        body = self.body
        if isinstance(body, dict) and options.response_body_sorted_keys:
            body = sort_keys(normalize(body))

        return self.model_copy(update={
            'headers': headers,
            'body': body,
        })
