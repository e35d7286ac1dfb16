"""Verification of actual results against expected results.

The expected document holds one block per test, keyed by the test name
at the same indentation as the actual block. The block is resolved with
the substitution engine (prior results included), then both blocks are
compared structurally.

Expected strings may embed regular expressions as `${~pattern}`:

```yaml
  response:
    headers:
      date: ${~.*}
    body:
      id: ${~[0-9]+}
```

Such a string matches when the whole actual value, rendered as text,
matches the pattern made of its escaped literal parts and the embedded
expressions.
"""

from contextlib import suppress
from difflib import SequenceMatcher
from logging import getLogger
from re import VERBOSE
from re import compile as regexp
from re import error as RegexError  # noqa: N812
from re import escape
from typing import TYPE_CHECKING

from pytest_ply.codec import load, positions
from pytest_ply.errors import VerificationError
from pytest_ply.schema.results import Outcome
from pytest_ply.subst import REGEX_OPENER, lines, resolve
from pytest_ply.values import MAPPINGS, SEQUENCES, stringify

if TYPE_CHECKING:
    from collections.abc import Mapping
    from re import Pattern

if TYPE_CHECKING:
    from pytest_ply.codec import KeyPath
    from pytest_ply.values import RuntimeValue

logger = getLogger(__name__)

NOT_FOUND = 'Expected result not found'
DIFF_CONTEXT = 3

#: A mapping key line: indentation, then a plain or quoted key.
_KEY_LINE = regexp(r'''
    ^(?P<indent>[ ]*)
    (?P<key>
        "(?:[^"\\]|\\.)*"
        |'(?:[^']|'')*'
        |[^\s#'"-][^#]*?
    )
    [ ]*:(?:\s|$)
''', flags=VERBOSE)

#: A key-only line followed by a trailing annotation comment.
_ANNOTATION = regexp(r'''^(\s*[^\s#'"][^'"#]*:)\s+#.*$''')


def _is_content(line: str) -> bool:
    """Check that a line is neither blank nor a comment."""
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith('#')


def _indent_of(line: str) -> int:
    """Number of leading spaces."""
    return len(line) - len(line.lstrip(' '))


def _unquote(key: str) -> str:
    """Plain text of a possibly quoted YAML key."""
    if key.startswith(("'", '"')):
        return f'{load(key)}'

    return key


def parse_key(line: str) -> tuple[str, int] | None:
    """Extract the key and the indentation of a mapping key line."""
    if (match := _KEY_LINE.match(line)) is None:
        return None

    return _unquote(match.group('key')), len(match.group('indent'))


def find_closing(text: str, start: int) -> int:
    """Find the brace closing a pattern, nested braces included.

    Returns:
        Index of the closing brace or `-1`.
    """
    depth = 0
    position = start
    while position < len(text):
        char = text[position]
        if char == '\\':
            position += 1
        elif char == '{':
            depth += 1
        elif char == '}':
            if not depth:
                return position
            depth -= 1
        position += 1

    return -1


def make_pattern(text: str) -> 'Pattern[str]':
    """Compile an expected string with embedded `${~pattern}` segments.

    Raises:
        VerificationError: If a segment is unterminated or invalid.
    """
    parts: list[str] = []
    position = 0
    while (start := text.find(REGEX_OPENER, position)) >= 0:
        end = find_closing(text, start + len(REGEX_OPENER))
        if end < 0:
            raise VerificationError(f'Unterminated regular expression: {text}')
        parts.append(escape(text[position:start]))
        parts.append(text[start + len(REGEX_OPENER):end])
        position = end + 1

    parts.append(escape(text[position:]))

    try:
        return regexp(''.join(parts))
    except RegexError as base:
        raise VerificationError(f'Invalid regular expression in {text!r}: {base}') from base


def matches(expected: 'RuntimeValue', actual: 'RuntimeValue') -> bool:
    """Compare two scalars, honoring embedded regular expressions."""
    if isinstance(expected, str) and REGEX_OPENER in expected:
        return make_pattern(expected).fullmatch(stringify(actual)) is not None

    if isinstance(expected, bool) or isinstance(actual, bool):
        return type(expected) is type(actual) and expected == actual

    return expected == actual


def first_difference(expected: 'RuntimeValue', actual: 'RuntimeValue',
                     path: 'KeyPath' = ()) -> 'KeyPath | None':
    """Find the first path where two values differ.

    Args:
        expected: Expected value.
        actual: Actual value.
        path: Path of the compared values.

    Returns:
        The differing path or `None` when the values are equal.
    """
    if isinstance(expected, MAPPINGS) and isinstance(actual, MAPPINGS):
        for key, item in expected.items():
            if key not in actual:
                return (*path, f'{key}')
            if (difference := first_difference(item, actual[key], (*path, f'{key}'))) is not None:
                return difference
        for key in actual:
            if key not in expected:
                return (*path, f'{key}')
        return None

    if isinstance(expected, SEQUENCES) and isinstance(actual, SEQUENCES):
        for index in range(max(len(expected), len(actual))):
            if index >= len(expected) or index >= len(actual):
                return (*path, index)
            if (difference := first_difference(expected[index], actual[index], (*path, index))) is not None:
                return difference
        return None

    if isinstance(expected, (MAPPINGS, SEQUENCES)) or isinstance(actual, (MAPPINGS, SEQUENCES)):
        return path

    return None if matches(expected, actual) else path


def format_path(path: 'KeyPath') -> str:
    """Render a key path as `a.b[0].c`."""
    text = ''
    for part in path:
        if isinstance(part, int):
            text += f'[{part}]'
        else:
            text += f'.{part}' if text else part

    return text


def _range(start: int, length: int) -> str:
    """Unified diff range of zero-based `start`."""
    beginning = start + 1
    if length == 1:
        return f'{beginning}'
    if not length:
        beginning -= 1

    return f'{beginning},{length}'


def unified_diff(expected: list[str], actual: list[str], *,
                 expected_start: int = 0, actual_start: int = 0,
                 expected_name: str = 'expected',
                 actual_name: str = 'actual') -> str:
    """Unified diff with hunk ranges offset to document lines.

    Args:
        expected: Expected block lines.
        actual: Actual block lines.
        expected_start: Zero-based line of the expected block in its document.
        actual_start: Zero-based line of the actual block in its document.
        expected_name: Label of the expected document.
        actual_name: Label of the actual document.

    Returns:
        Diff text, empty when the blocks are equal.
    """
    output: list[str] = []
    for group in SequenceMatcher(None, expected, actual).get_grouped_opcodes(DIFF_CONTEXT):
        if not output:
            output.append(f'--- {expected_name}')
            output.append(f'+++ {actual_name}')

        first, last = group[0], group[-1]
        expected_range = _range(expected_start + first[1], last[2] - first[1])
        actual_range = _range(actual_start + first[3], last[4] - first[3])
        output.append(f'@@ -{expected_range} +{actual_range} @@')

        for tag, i1, i2, j1, j2 in group:
            if tag == 'equal':
                output.extend(f' {line}' for line in expected[i1:i2])
                continue
            if tag in {'replace', 'delete'}:
                output.extend(f'-{line}' for line in expected[i1:i2])
            if tag in {'replace', 'insert'}:
                output.extend(f'+{line}' for line in actual[j1:j2])

    return '\n'.join(output)


def strip_annotation(line: str) -> str:
    """Remove a trailing comment from a key-only line."""
    return _ANNOTATION.sub(r'\1', line)


class Verifier:
    """Comparison of rendered actual blocks with an expected document."""

    def __init__(self, expected_text: str, start_line: int = 0, *,
                 location: str | None = None) -> None:
        """Initialize the verifier.

        Args:
            expected_text: Whole expected-results document.
            start_line: Zero-based line to start searching blocks from.
            location: Expected document location, for messages.
        """
        self.expected = lines(expected_text)
        self.start_line = start_line
        self.location = location or 'expected'

    def find_block(self, key: str, indent: int) -> tuple[int, int] | None:
        """Locate the expected block of a key.

        The search starts at `start_line` and falls back to the whole
        document.

        Returns:
            Zero-based `[start, end)` line range of the block or `None`.
        """
        for offset in dict.fromkeys((min(self.start_line, len(self.expected)), 0)):
            for index in range(offset, len(self.expected)):
                if parse_key(self.expected[index]) == (key, indent):
                    return index, self._block_end(index, indent)

        return None

    def _block_end(self, start: int, indent: int) -> int:
        """End of the block starting at a key line, trailing comments excluded."""
        end = start + 1
        while end < len(self.expected):
            line = self.expected[end]
            if _is_content(line) and _indent_of(line) <= indent:
                break
            end += 1

        while end > start + 1 and not _is_content(self.expected[end - 1]):
            end -= 1

        return end

    def verify(self, actual_yaml: str, values: 'Mapping[str, RuntimeValue]', *,
               actual_line: int = 0) -> Outcome:
        """Verify an actual block.

        Args:
            actual_yaml: Rendered actual block.
            values: Substitution values, prior results included.
            actual_line: Zero-based line of the block in the actual document.

        Returns:
            `Passed`, `Failed` with a diff, or `Errored`.
        """
        try:
            return self._verify(actual_yaml, values, actual_line)

        except Exception as error:  # noqa: BLE001
            logger.debug('Verification error', exc_info=error)
            return Outcome.errored(f'{error}')

    def _verify(self, actual_yaml: str, values: 'Mapping[str, RuntimeValue]',
                actual_line: int) -> Outcome:
        """Verify an actual block, raising on evaluation errors."""
        actual = lines(actual_yaml)
        while actual and not actual[-1].strip():
            actual.pop()

        head = next((line for line in actual if _is_content(line)), None)
        if head is None or (parsed := parse_key(head)) is None:
            raise VerificationError('Actual result has no key')

        key, indent = parsed
        if (block := self.find_block(key, indent)) is None:
            return Outcome.failed(NOT_FOUND)

        start, end = block
        expected = lines(resolve('\n'.join(self.expected[start:end]), values))

        expected_value = self._load(expected, indent)
        actual_value = self._load(actual, indent)
        if not isinstance(expected_value, MAPPINGS) or key not in expected_value:
            raise VerificationError(f'Invalid expected result of {key!r}')

        difference = first_difference(expected_value[key], actual_value.get(key), (key,))
        if difference is None:
            return Outcome.passed()

        line_num = start + self._line_of(expected, indent, difference) + 1
        message = f'Results differ from line {line_num} at {format_path(difference)!r}'

        diff = unified_diff(
            self._diffable(expected, actual),
            [strip_annotation(line) for line in actual],
            expected_start=start,
            actual_start=actual_line,
            expected_name=self.location,
        )

        return Outcome.failed(message, diff or None)

    @staticmethod
    def _dedent(block: list[str], indent: int) -> str:
        """Remove the block indentation from all lines."""
        prefix = ' ' * indent
        return '\n'.join(
            line[indent:] if line.startswith(prefix) else line.lstrip(' ')
            for line in block
        )

    def _load(self, block: list[str], indent: int) -> 'RuntimeValue':
        """Parse a block into a value."""
        value = load(self._dedent(block, indent))
        if value is None:
            return {}

        return value

    def _line_of(self, block: list[str], indent: int, path: 'KeyPath') -> int:
        """Zero-based line of a path within a block, nearest parent if missing."""
        ranges = positions(self._dedent(block, indent))
        while path:
            if path in ranges:
                return ranges[path].start
            path = path[:-1]

        return 0

    @staticmethod
    def _diffable(expected: list[str], actual: list[str]) -> list[str]:
        """Expected lines prepared for diffing.

        Lines holding regular expressions that match the actual line at
        the same position are replaced by that line.
        """
        prepared = []
        for index, line in enumerate(expected):
            if REGEX_OPENER in line and index < len(actual):
                candidate = strip_annotation(actual[index])
                with suppress(VerificationError):
                    if make_pattern(line).fullmatch(candidate):
                        line = candidate
            prepared.append(strip_annotation(line))

        return prepared
