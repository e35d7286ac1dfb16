"""Core exception hierarchy.

This module defines base error and warning types used across the library
to report discovery failures, invalid requests, transport errors,
verification problems and configuration mistakes in a structured way.
"""

from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml import dump
from yaml.error import MarkedYAMLError

from pytest_ply.values import MAPPINGS, SCALARS, SEQUENCES

if TYPE_CHECKING:
    from typing import Self

if TYPE_CHECKING:
    from pydantic import ValidationError

SNIPPET_ELLIPSIS = f' ...{linesep}'
SNIPPET_INDENT = 2

FORMAT_REPLACER = '<runtime object>'
FORMAT_FILENAME = '<unicode string>'
FORMAT_INDENT = 4


class ErrorContext(TypedDict, total=False):
    """Container describing contextual information for error formatting.

    All fields are optional; the formatter adapts output based on
    provided values.
    """

    #: Name of the source file where the error occurred.
    filename: str | None

    #: Zero-based line number in the source file.
    line_num: int | None
    #: Zero-based column number in the source file.
    column_num: int | None

    #: Name of the test where the error occurred.
    test_name: str | None

    #: Underlying exception that triggered formatting.
    error: Exception | None

    #: Element associated with the error.
    element: Any


class ErrorFormatter:
    """Utility class for formatting errors.

    This formatter is responsible for producing human-readable
    error messages with optional source location and YAML-based
    contextual snippets.
    """

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Format an error message using contextual information.

        Args:
            message: Base human-readable error message.
            context: Optional error context with location and data.

        Returns:
            A fully formatted error message suitable for display.
        """
        if not context:
            return message

        message += linesep
        message += cls.get_location_string(context, indent=FORMAT_INDENT)
        message += cls.get_snippet_string(context, indent=FORMAT_INDENT * 2)

        return message

    @classmethod
    def get_location_string(cls, context: ErrorContext, *,
                            indent: str | int | None = None) -> str:
        """Format source location information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location string including filename, line,
            column and test name when available.
        """
        indent = cls._ensure_indent(indent)

        filename = context.get('filename')
        if not filename:
            filename = FORMAT_FILENAME

        message = f'{indent}in "{filename}"'
        if (line_num := context.get('line_num')) is not None:
            line_num += 1
            message += f', line {line_num}'
            if (column_num := context.get('column_num')) is not None:
                column_num += 1
                message += f', column {column_num}'
        message += linesep

        if test_name := context.get('test_name'):
            message += f'{indent}on test {test_name!r}{linesep}'

        return message

    @classmethod
    def get_snippet_string(cls, context: ErrorContext, *,
                           indent: str | int | None = None) -> str:
        """Generate a formatted snippet illustrating the error context.

        Args:
            context: Error context containing element or exception data.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted multi-line snippet string, or an empty string
            if no snippet data is available.
        """
        indent = cls._ensure_indent(indent)

        if (error := context.get('error')) and isinstance(error, MarkedYAMLError):
            snippet = error.problem_mark.get_snippet(indent=0) if error.problem_mark else ''
            return cls._make_indent(snippet or '', indent)

        if element := context.get('element'):
            snippet = f'{indent}{SNIPPET_ELLIPSIS}'
            snippet += cls._make_yaml(element, indent)
            snippet += linesep
            return snippet

        return ''

    @classmethod
    def _filter_unsafe(cls, value: Any) -> Any:  # noqa: ANN401
        """Recursively sanitize values for safe YAML serialization.

        Non-scalar and non-container objects are replaced with
        a placeholder to prevent leaking opaque data.

        Args:
            value: Arbitrary value to sanitize.

        Returns:
            A YAML-safe representation of the value.
        """
        if value is None or isinstance(value, SCALARS):
            return value

        if isinstance(value, MAPPINGS):
            return {
                key: cls._filter_unsafe(item)
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [
                cls._filter_unsafe(item)
                for item in value
            ]

        return FORMAT_REPLACER

    @classmethod
    def _make_yaml(cls, value: Any, indent: str = '') -> str:  # noqa: ANN401
        """Serialize a value to an indented YAML string."""
        data = dump(
            cls._filter_unsafe(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
        )

        return cls._make_indent(data, indent)

    @staticmethod
    def _make_indent(value: str, indent: str) -> str:
        """Apply indentation to a multi-line string.

        Empty or whitespace-only lines are omitted.
        """
        if not indent:
            return value

        return linesep.join(
            f'{indent}{line}'
            for line in value.splitlines()
            if line.strip()
        )

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation input."""
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class ParseWarning(UserWarning):
    """Warning emitted when a body looks like JSON but can not be parsed.

    The body is kept as a plain string and execution continues.
    """


class PlyError(Exception, ErrorFormatter):
    """Base exception for all pytest-ply errors.

    All custom exceptions raised by the library inherit from
    this class to allow unified error handling by callers.
    """

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional location data.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """String represenatation."""
        return self.format(self.message, self.context)


class DiscoveryError(PlyError):
    """Error raised when a suite, class, method or test can not be found.

    Also raised for request files that are not valid YAML or do not
    match the request model. Fatal to the affected suite only.
    """

    @classmethod
    def from_yaml_error(cls, error: MarkedYAMLError, *,
                        filename: str | None = None) -> 'Self':
        """Create a discovery error from a YAML parsing failure.

        Args:
            error: Exception raised by the YAML parser.
            filename: Source file name replacing the one of the stream.

        Returns:
            DiscoveryError carrying the position of the YAML problem.
        """
        error_context = ErrorContext(error=error, filename=filename)
        if mark := error.problem_mark:
            error_context.update(
                filename=filename or mark.name,
                line_num=mark.line,
                column_num=mark.column,
            )

        message = 'Invalid YAML'
        if error.problem:
            message += f'{linesep}{' ' * FORMAT_INDENT}{error.problem}'

        return cls(message, context=error_context)

    @classmethod
    def from_pydantic_error(cls, error: 'ValidationError', *,
                            data: Any = None,  # noqa: ANN401
                            filename: str | None = None,
                            line_num: int | None = None,
                            test_name: str | None = None) -> 'Self':
        """Create a discovery error from a Pydantic validation failure.

        The message is taken from the first reported validation issue and
        prefixed with its field location.

        Args:
            error: ValidationError raised by Pydantic.
            data: Raw element data.
            filename: Name of the source file where the error occurred.
            line_num: Zero-based line of the element in the source file.
            test_name: Name of the offending test.

        Returns:
            DiscoveryError representing the validation failure.
        """
        error_context = ErrorContext(
            filename=filename,
            line_num=line_num,
            test_name=test_name,
            error=error,
            element=data,
        )

        for item in error.errors(include_url=False, include_input=False):
            location = '.'.join(f'{part}' for part in item['loc'])
            if location:
                return cls(f'{location}: {item['msg']}', context=error_context)
            return cls(item['msg'], context=error_context)

        return cls('Validation error', context=error_context)  # pragma: no cover


class InvalidRequest(PlyError):
    """Error raised when a resolved request has a bad URL or method.

    Raised before any network I/O takes place.
    """


class SubmissionError(PlyError):
    """Error raised when the HTTP transport fails."""


class VerificationError(PlyError):
    """Error raised when expected results can not be evaluated or compared."""


class ConfigurationError(PlyError):
    """Error raised for inconsistent runtime configuration.

    For example, creating expected results is requested while the
    expected location is remote.
    """


class ExpressionError(PlyError):
    """Error raised when a template expression can not be evaluated."""


class NoResultsFound(ExpressionError):
    """Error raised when prior results are referenced before any exist."""

    def __init__(self, message: str = 'No results found', **kwargs: Any) -> None:  # noqa: ANN401
        """Initialize the error with a default message."""
        super().__init__(message, **kwargs)
