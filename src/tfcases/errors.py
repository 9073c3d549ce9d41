"""Core exception hierarchy.

This module defines the error and warning types used across the library
to report module parsing issues, configuration validation failures,
coverage gaps and evaluation failures in a structured way.
"""

from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml import dump
from yaml.error import MarkedYAMLError

from tfcases.values import MAPPINGS, SCALARS, SEQUENCES

if TYPE_CHECKING:
    from collections.abc import Iterable
    from importlib.metadata import EntryPoint
    from typing import Self

if TYPE_CHECKING:
    from pydantic_core import ErrorDetails, ValidationError

if TYPE_CHECKING:
    from tfcases.schema import CoverageGap

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

    #: Name of the scenario being processed.
    scenario: str | None
    #: Zero-based position of the assertion within the scenario.
    assertion_num: int | None

    #: Underlying exception that triggered formatting.
    error: Exception | None

    #: Element associated with the error, rendered as a YAML snippet.
    element: Any


class ErrorFormatter:
    """Utility class for formatting workflow errors.

    Produces human-readable messages with optional source location
    and a YAML snippet of the failing element.
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
        """Format source and scenario location information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location string.
        """
        indent = cls._ensure_indent(indent)

        filename = context.get('filename') or FORMAT_FILENAME

        message = f'{indent}in "{filename}"'
        if (line_num := context.get('line_num')) is not None:
            message += f', line {line_num + 1}'
            if (column_num := context.get('column_num')) is not None:
                message += f', column {column_num + 1}'
        message += linesep

        if scenario := context.get('scenario'):
            message += f'{indent}on scenario "{scenario}"'
            if (assertion_num := context.get('assertion_num')) is not None:
                message += f', assertion {assertion_num + 1}'
            message += linesep

        return message

    @classmethod
    def get_snippet_string(cls, context: ErrorContext, *,
                           indent: str | int | None = None) -> str:
        """Generate a formatted snippet illustrating the error context.

        Args:
            context: Error context containing element or exception data.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted multi-line snippet, or an empty string.
        """
        indent = cls._ensure_indent(indent)

        if (error := context.get('error')) and isinstance(error, MarkedYAMLError):
            snippet = ''
            if error.problem_mark is not None:
                snippet = error.problem_mark.get_snippet(indent=0) or ''
            return cls._make_indent(snippet, indent)

        if element := context.get('element'):
            snippet = f'{indent}{SNIPPET_ELLIPSIS}'
            snippet += cls._make_yaml(element, indent)
            snippet += linesep
            return snippet

        return ''

    @classmethod
    def _filter_unsafe(cls, value: Any) -> Any:  # noqa: ANN401
        """Recursively replace non-serializable objects with a placeholder."""
        if value is None or isinstance(value, SCALARS):
            return value

        if isinstance(value, MAPPINGS):
            return {
                key: cls._filter_unsafe(item)
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [cls._filter_unsafe(item) for item in value]

        return FORMAT_REPLACER

    @classmethod
    def _make_yaml(cls, value: Any, indent: str = '') -> str:  # noqa: ANN401
        """Serialize a sanitized value to an indented YAML string."""
        data = dump(
            cls._filter_unsafe(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
        )

        return cls._make_indent(data, indent)

    @staticmethod
    def _make_indent(value: str, indent: str) -> str:
        """Apply indentation to a multi-line string, dropping blank lines."""
        if not indent:
            return value

        return linesep.join(
            f'{indent}{line}'
            for line in value.splitlines()
            if line.strip()
        )

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation input to a string."""
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class PluginWarning(UserWarning):
    """Warning emitted for non-fatal plugin-related issues."""


class CoverageWarning(UserWarning):
    """Warning emitted for unacknowledged coverage gaps.

    Coverage gaps are branches or outputs that can not be asserted on
    under plan-only evaluation. They are never suppressed: in relaxed
    mode they are reported through this warning, in strict mode they
    raise `CoverageGapError`.
    """


class TfCasesError(Exception, ErrorFormatter):
    """Base exception for all tfcases errors."""

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional location values.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return self.format(self.message, self.context)


class PluginError(TfCasesError):
    """Error raised for fatal plugin-related failures in strict mode."""

    def __init__(self, message: str, *,
                 entrypoint: 'EntryPoint | None' = None) -> None:
        """Initialize a plugin error.

        Args:
            message: Human-readable error description.
            entrypoint: Optional plugin entry point associated with the error.
        """
        self.entrypoint = entrypoint

        super().__init__(message)


class InterfaceError(TfCasesError):
    """Error raised when a module interface can not be extracted.

    Covers unreadable module directories, HCL syntax errors and
    dependency cycles between locals.
    """

    @classmethod
    def from_hcl_error(cls, filename: str, error: Exception) -> 'Self':
        """Create an interface error from an HCL parser failure.

        Args:
            filename: File that failed to parse.
            error: Exception raised by the parser.

        Returns:
            InterfaceError with the best available location.
        """
        line = getattr(error, 'line', None)
        column = getattr(error, 'column', None)

        error_context = ErrorContext(
            filename=filename,
            line_num=line - 1 if isinstance(line, int) and line > 0 else None,
            column_num=column - 1 if isinstance(column, int) and column > 0 else None,
            error=error,
        )

        return cls('Invalid HCL', context=error_context)


class UnsupportedExpression(TfCasesError):  # noqa: N818
    """Error raised for expressions outside the supported subset."""


class ExpressionError(TfCasesError):
    """Error raised when an expression fails to parse or evaluate."""


class ConfigError(TfCasesError):
    """Error raised when a suite configuration document is invalid."""

    @classmethod
    def from_yaml_error(cls, error: MarkedYAMLError) -> 'Self':
        """Create a configuration error from a YAML parsing failure.

        Args:
            error: Exception raised by the YAML parser.

        Returns:
            ConfigError representing the YAML parsing failure.
        """
        mark = error.problem_mark
        error_context = ErrorContext(
            filename=mark.name if mark else None,
            line_num=mark.line if mark else None,
            column_num=mark.column if mark else None,
            error=error,
        )

        message = 'Invalid YAML'
        if error.problem:
            message += f'{linesep}{' ' * FORMAT_INDENT}{error.problem}'

        return cls(message, context=error_context)

    @classmethod
    def from_pydantic_error(cls, error: 'ValidationError', *,
                            data: Any = None,  # noqa: ANN401
                            filename: str | None = None) -> 'Self':
        """Create a configuration error from a Pydantic validation failure.

        The most specific failing fragment of `data` is attached as the
        element so that the formatted message shows a focused snippet.

        Args:
            error: ValidationError raised by Pydantic.
            data: Validated document data.
            filename: Name of the source file.

        Returns:
            ConfigError representing the validation failure.
        """
        error_context = ErrorContext(
            filename=filename,
            error=error,
            element=data,
        )

        if not data or not isinstance(data, dict):
            return cls('Type validation error', context=error_context)

        for item in error.errors(include_url=False, include_input=False):
            if located := cls._locate_pydantic_context(data, item):
                message, value = located
                return cls(message, context=ErrorContext({**error_context, 'element': value}))

        return cls('Validation error', context=error_context)

    @classmethod
    def _locate_pydantic_context(cls, value: Any,  # noqa: ANN401
                                 error: 'ErrorDetails') -> tuple[str, Any] | None:
        """Locate the most specific failing element in validated data.

        Args:
            value: Root data structure being validated.
            error: Pydantic error details including location path.

        Returns:
            A tuple of (error message, extracted element) if a relevant
            context can be located, otherwise None.
        """
        container = last_item = value
        last_key: int | str | None = None

        for key in error['loc']:
            if isinstance(last_item, (list, tuple)):
                if isinstance(key, int) and 0 <= key < len(last_item):
                    container, last_item, last_key = last_item, last_item[key], key
            elif isinstance(last_item, dict):
                if key in last_item:
                    container, last_item, last_key = last_item, last_item[key], key
            else:
                return None

        if last_key is None:
            return None

        message = next((
            line.strip()
            for line in (error.get('msg') or '').splitlines()
            if line.strip()
        ), None)

        if not message:
            return None

        if isinstance(container, (list, tuple)):
            return message, [last_item]

        return message, {last_key: last_item}


class EvaluationError(TfCasesError):
    """Error raised by the external evaluation collaborator.

    Covers a missing Terraform binary, timeouts, failed initialization,
    unparseable output and attempts to evaluate a mutating command.
    """


class CoverageGapError(TfCasesError):
    """Error raised in strict mode when unacknowledged gaps remain."""

    def __init__(self, gaps: 'Iterable[CoverageGap]') -> None:
        """Initialize the error from the offending gaps.

        Args:
            gaps: Unacknowledged coverage gaps.
        """
        self.gaps = tuple(gaps)

        lines = [f'{len(self.gaps)} unacknowledged coverage gap(s)']
        lines.extend(
            f'{' ' * FORMAT_INDENT}{gap.target}: {gap.reason}'
            for gap in self.gaps
        )

        super().__init__(linesep.join(lines))
