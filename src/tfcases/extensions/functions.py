"""Declarative function definitions for the expression evaluator.

A function definition binds a Terraform function name to a Python
callable, together with its accepted arity and its behavior with
respect to values known only after apply.
"""

from collections.abc import Callable
from typing import Self

from pydantic import Field, model_validator

from tfcases.errors import ExpressionError
from tfcases.models import SchemaModel
from tfcases.names import Identifier  # noqa: TC001
from tfcases.values import UNKNOWN, RuntimeValue, is_unknown

#: Function implementation receiving already evaluated arguments.
type FunctionRunner = Callable[..., RuntimeValue]


class Function(SchemaModel):
    """Declarative Terraform function definition."""

    name: Identifier = Field(
        title='Function name',
        description='Name of the function as written in expressions.',
    )

    function: FunctionRunner = Field(
        title='Function implementation',
        description=(
            'Callable receiving evaluated positional arguments and '
            'returning the function result.'
        ),
    )

    min_args: int = Field(
        default=0,
        ge=0,
        title='Minimum arguments',
    )

    max_args: int | None = Field(
        default=None,
        ge=0,
        title='Maximum arguments',
        description='Maximum number of arguments, or `None` for variadic functions.',
    )

    allow_unknown: bool = Field(
        default=False,
        title='Unknown-aware flag',
        description=(
            'Whether the implementation handles arguments containing '
            'values known only after apply. Otherwise such calls '
            'evaluate to an unknown value without invoking the function.'
        ),
    )

    @model_validator(mode='after')
    def check_arity(self) -> Self:
        """Check that the arity bounds are consistent.

        Raises:
            ValueError: If `max_args` is lower than `min_args`.
        """
        if self.max_args is not None and self.max_args < self.min_args:
            raise ValueError('Maximum arguments lower than minimum arguments')

        return self

    def __call__(self, *args: RuntimeValue) -> RuntimeValue:
        """Invoke the function with evaluated arguments.

        Raises:
            ExpressionError: On arity mismatch or invalid arguments.
        """
        if len(args) < self.min_args or (self.max_args is not None and len(args) > self.max_args):
            raise ExpressionError(
                f'Function {self.name!r} takes {self._arity()} argument(s), got {len(args)}',
            )

        if not self.allow_unknown and any(is_unknown(arg) for arg in args):
            return UNKNOWN

        try:
            return self.function(*args)

        except ExpressionError:
            raise

        except (TypeError, ValueError, KeyError, IndexError, ZeroDivisionError) as base:
            raise ExpressionError(f'Invalid call to {self.name!r}: {base}') from base

    def _arity(self) -> str:
        """Describe the accepted number of arguments."""
        if self.max_args is None:
            return f'at least {self.min_args}'
        if self.max_args == self.min_args:
            return f'{self.min_args}'
        return f'{self.min_args} to {self.max_args}'
