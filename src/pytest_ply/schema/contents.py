"""Body content handling.

Request and response bodies are kept as text unless they look like a
JSON object: a body starting with `{` is materialized into a mapping
when it parses.
"""

from json import JSONDecodeError, loads
from warnings import warn

from pytest_ply.errors import ParseWarning
from pytest_ply.values import Value

OBJECT_OPENER = '{'


def materialize(text: str | None, *, name: str | None = None,
                strict: bool = True) -> Value:
    """Turn body text into a JSON object when possible.

    Args:
        text: Body text.
        name: Name of the owning test, for the warning message.
        strict: Emit a `ParseWarning` when the body looks like JSON but
            does not parse. Response bodies are materialized quietly.

    Returns:
        Parsed mapping, the original text, or `None` for no body.
    """
    if text is None or not text.startswith(OBJECT_OPENER):
        return text

    try:
        return loads(text)

    except JSONDecodeError as base:
        if strict:
            warn(
                f'Request {name!r} has unparseable body treated as string: {base}',
                category=ParseWarning,
                stacklevel=2,
            )

    return text
