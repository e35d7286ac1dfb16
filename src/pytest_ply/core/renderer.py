"""Rendering of results into actual-results YAML.

Each request result becomes one top-level block keyed by the test name:

```yaml
getMovie:  # 2024-01-02 03:04:05.678
  request:
    url: https://example.com/movies/42
    method: GET
    headers: {}
  response:  # 12 ms
    status:
      code: 200
      message: OK
    headers:
      content-type: application/json
    body:
      id: 42
```

The trailing comments carry the submission time and the elapsed time.
They are ignored on load and are never compared.
"""

from typing import TYPE_CHECKING, NamedTuple

from pytest_ply.codec import dump, positions

if TYPE_CHECKING:
    from datetime import datetime

if TYPE_CHECKING:
    from pytest_ply.options import Options
    from pytest_ply.schema.results import Result
    from pytest_ply.values import RuntimeValue


class Rendered(NamedTuple):
    """Rendered block of results."""

    #: YAML text ending with a newline.
    text: str
    #: Number of lines the block occupies.
    lines: int


def timestamp(value: 'datetime') -> str:
    """Format a submission time as `YYYY-MM-DD HH:MM:SS.mmm`."""
    return value.isoformat(sep=' ', timespec='milliseconds')


def indent_block(text: str, indent: int) -> str:
    """Indent all lines of a block except its final empty line."""
    if not indent:
        return text

    prefix = ' ' * indent
    lines = text.split('\n')

    return '\n'.join([
        *(f'{prefix}{line}' for line in lines[:-1]),
        lines[-1],
    ])


class ResultRenderer:
    """Serializer of results into annotated YAML blocks."""

    def __init__(self, options: 'Options') -> None:
        """Initialize the renderer.

        Args:
            options: Resolved runtime options.
        """
        self.options = options

    def content(self, result: 'Result') -> dict[str, 'RuntimeValue']:
        """Plain representation of a result as recorded.

        Bookkeeping fields of the request and the response time are
        stripped; absent bodies are omitted.
        """
        content: dict[str, RuntimeValue] = {}

        if (request := result.request) is not None:
            content['request'] = {
                'url': request.url,
                'method': request.method,
                'headers': request.headers,
            }
            if request.body is not None:
                content['request']['body'] = request.body

        if (response := result.response) is not None:
            content['response'] = {
                'status': {
                    'code': response.status.code,
                    'message': response.status.message,
                },
                'headers': response.headers,
            }
            if response.body is not None:
                content['response']['body'] = response.body

        return content

    def render(self, result: 'Result', *, indent: int = 0) -> Rendered:
        """Render a request result.

        Args:
            result: Result with the recorded request and response.
            indent: Indentation of the whole block.

        Returns:
            Rendered annotated block.
        """
        text = dump({result.name: self.content(result)}, self.options.pretty_indent)
        lines = text.split('\n')

        ranges = positions(text)

        request = result.request
        if request is not None and request.submitted is not None:
            first = ranges[(result.name,)].start
            lines[first] += f'  # {timestamp(request.submitted)}'

        response = result.response
        if response is not None and response.time is not None:
            line = ranges[(result.name, 'response')].start
            lines[line] += f'  # {response.time:.0f} ms'

        text = indent_block('\n'.join(lines), indent)

        return Rendered(text, text.count('\n'))

    def render_label(self, name: str, submitted: 'datetime | None' = None, *,
                     indent: int = 0) -> Rendered:
        """Render the label line of a compound test.

        Nested results of the test follow the label one indentation
        level deeper.
        """
        text = dump({name: None}, self.options.pretty_indent)
        text = text.replace(': null\n', ':\n', 1)
        if submitted is not None:
            text = f'{text[:-1]}  # {timestamp(submitted)}\n'

        text = indent_block(text, indent)

        return Rendered(text, text.count('\n'))
