"""Declarative plugin definition.

A plugin contributes additional Terraform functions to the expression
evaluator, for modules that use functions outside the built-in set.
Plugins are exposed through the `tfcases_plugins` entry point group.
"""

from pydantic import Field

from tfcases.models import SchemaModel
from tfcases.names import Identifier  # noqa: TC001

from .functions import Function, FunctionRunner

__all__ = (
    'Function',
    'FunctionRunner',
    'Plugin',
)


class Plugin(SchemaModel):
    """Declarative container for evaluator extensions."""

    name: Identifier = Field(
        title='Plugin namespace',
        description=(
            'Logical namespace of the plugin. '
            'Used for identification, diagnostics, and conflict detection.'
        ),
    )

    version: int = Field(
        default=1,
        title='Extension contract version',
        description=(
            'Version of the extension contract. '
            'This is not a semantic version of the plugin implementation.'
        ),
    )

    functions: list[Function] = Field(
        default_factory=list,
        title='Functions',
        description='Terraform function definitions provided by the plugin.',
    )
