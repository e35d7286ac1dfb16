"""Template substitution for request and expected-result text.

Templates are plain text with `${expression}` placeholders. Each line is
resolved independently against the same context: a failing expression
only leaves its own line unresolved and never aborts the template.

Two markers receive special treatment before evaluation:

- `${~...}` introduces a regular-expression literal that is kept
  verbatim so that the verifier can match it later;
- `${@...}` references results recorded earlier in the suite run via
  the reserved `__ply_results` binding.
"""

from logging import getLogger
from re import compile as regexp
from typing import TYPE_CHECKING

from pytest_ply.context import ContextDict
from pytest_ply.errors import ExpressionError
from pytest_ply.expressions import Expression
from pytest_ply.names import RESULTS
from pytest_ply.values import stringify

if TYPE_CHECKING:
    from collections.abc import Mapping

if TYPE_CHECKING:
    from pytest_ply.values import RuntimeValue

logger = getLogger(__name__)

OPENER = '${'
REGEX_OPENER = '${~'

#: `${@name...}`, an implicit property access on prior results.
_RESULTS_PROPERTY = regexp(r'\$\{@(?=[A-Za-z_$])')
#: `${@.name...}` or `${@['name']...}`.
_RESULTS_REFERENCE = regexp(r'\$\{@')

_LINE_BREAK = regexp(r'\r\n?')


def lines(text: str) -> list[str]:
    """Split text into lines with all line endings normalized to `\\n`."""
    return _LINE_BREAK.sub('\n', text).split('\n')


def _find_closing(line: str, start: int) -> int:
    """Find the brace closing an expression opened before `start`.

    Braces inside quoted strings are ignored.

    Returns:
        Index of the closing brace or `-1`.
    """
    quote: str | None = None
    position = start
    while position < len(line):
        char = line[position]
        if quote:
            if char == '\\':
                position += 1
            elif char == quote:
                quote = None
        elif char in '\'"':
            quote = char
        elif char == '}':
            return position
        position += 1

    return -1


def _rewrite_results(line: str) -> str:
    """Point `${@` references to the reserved prior-results binding."""
    line = _RESULTS_PROPERTY.sub(f'${{{RESULTS}.', line)
    return _RESULTS_REFERENCE.sub(f'${{{RESULTS}', line)


def resolve_line(line: str, context: ContextDict) -> str:
    """Resolve all placeholders of a single line.

    Args:
        line: Template line without line breaks.
        context: Evaluation context.

    Returns:
        The line with every placeholder replaced by its value.

    Raises:
        ExpressionError: If any placeholder fails to compile or evaluate.
    """
    line = _rewrite_results(line)

    parts: list[str] = []
    position = 0
    while (start := line.find(OPENER, position)) >= 0:
        if line.startswith(REGEX_OPENER, start):
            parts.append(line[position:start + len(REGEX_OPENER)])
            position = start + len(REGEX_OPENER)
            continue

        end = _find_closing(line, start + len(OPENER))
        if end < 0:
            raise ExpressionError(f'Unterminated expression at {start}')

        parts.append(line[position:start])
        parts.append(stringify(Expression(line[start + len(OPENER):end])(context)))
        position = end + 1

    parts.append(line[position:])

    return ''.join(parts)


def resolve(template: str, context: 'Mapping[str, RuntimeValue]') -> str:
    """Resolve `${...}` placeholders in a template.

    Never raises: a line whose evaluation fails is logged and passed
    through unchanged, other lines are unaffected.

    Args:
        template: Template text, any line endings.
        context: Values available to expressions by their top-level names.

    Returns:
        Resolved text joined with `\\n`.
    """
    snapshot = context if isinstance(context, ContextDict) else ContextDict(context)

    resolved = []
    for line in lines(template):
        try:
            resolved.append(resolve_line(line, snapshot))
        except ExpressionError as error:
            logger.error('Error in expression:\n%s\n** %s **', line, error.message)
            logger.debug('Expression context: %r', snapshot)
            resolved.append(line)

    return '\n'.join(resolved)
