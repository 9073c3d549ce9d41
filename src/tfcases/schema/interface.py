"""Module interface records produced by the interface extractor.

A module interface is the flat, immutable summary of a Terraform module
that the later workflow stages consume: its input variables, outputs,
locals, resources, and the conditional branches driven by its inputs.
"""

from typing import TYPE_CHECKING, Literal

from pydantic import Field

from tfcases.expressions import parse_expression
from tfcases.models import SchemaModel
from tfcases.names import Identifier  # noqa: TC001
from tfcases.values import Value  # noqa: TC001

from .gaps import CoverageGap  # noqa: TC001
from .types import TypeSpec  # noqa: TC001

if TYPE_CHECKING:
    from tfcases.expressions import Node

type BranchKind = Literal['conditional', 'boolean', 'count']
type ResourceMode = Literal['managed', 'data']


class Validation(SchemaModel):
    """Custom validation rule of an input variable."""

    condition: str = Field(
        title='Validation condition',
        description='Expression that must evaluate to true for valid values.',
    )

    error_message: str | None = Field(
        default=None,
        title='Error message',
    )


class InputDeclaration(SchemaModel):
    """Declared input variable of a module."""

    name: Identifier

    type_source: str | None = Field(
        default=None,
        title='Declared type',
        description='Source text of the type constraint, if declared.',
    )

    type: TypeSpec = Field(
        title='Resolved type',
    )

    has_default: bool = Field(
        default=False,
        title='Default flag',
        description='Whether the input declares a default value (possibly null).',
    )

    default: Value = Field(
        default=None,
        title='Default value',
    )

    nullable: bool = Field(
        default=True,
        title='Nullable flag',
    )

    sensitive: bool = Field(
        default=False,
        title='Sensitive flag',
    )

    description: str | None = None

    validations: tuple[Validation, ...] = ()

    @property
    def type_unknown(self) -> bool:
        """Whether the declared type could not be resolved."""
        return self.type.kind == 'unknown'

    @property
    def required(self) -> bool:
        """Whether callers must provide a value."""
        return not self.has_default


class Dependent(SchemaModel):
    """Expression together with the objects it depends on."""

    expression: str = Field(
        title='Expression',
        description='Canonical source text of the expression.',
    )

    inputs: tuple[str, ...] = Field(
        default=(),
        title='Governing inputs',
        description='Input variables the expression depends on, through locals.',
    )

    unknowns: tuple[str, ...] = Field(
        default=(),
        title='Plan-unknown references',
        description='Resource, data source and module references known only after apply.',
    )

    @property
    def node(self) -> 'Node':
        """Parsed expression."""
        return parse_expression(self.expression)

    @property
    def known_at_plan(self) -> bool:
        """Whether the expression can be evaluated without apply."""
        return not self.unknowns


class LocalDeclaration(Dependent):
    """Local value of a module."""

    name: Identifier


class OutputDeclaration(Dependent):
    """Declared output of a module."""

    name: Identifier

    sensitive: bool = False

    description: str | None = None

    @property
    def address(self) -> str:
        """Reference to the output inside a test file."""
        return f'output.{self.name}'


class ResourceDeclaration(SchemaModel):
    """Resource or data source, with its instance-count gates."""

    address: str = Field(
        title='Resource address',
        description='`type.name` for managed resources, `data.type.name` for data sources.',
    )

    mode: ResourceMode = 'managed'

    count: Dependent | None = Field(
        default=None,
        title='Count expression',
    )

    for_each: Dependent | None = Field(
        default=None,
        title='For-each expression',
    )


class Branch(Dependent):
    """Condition of the module driven by its inputs."""

    id: str = Field(
        title='Branch origin',
        description='Address of the expression containing the condition.',
    )

    name: str = Field(
        title='Branch name',
        description='Identifier used to name the scenarios driving this branch.',
    )

    kind: BranchKind


class ModuleInterface(SchemaModel):
    """Immutable summary of a module's declared interface."""

    path: str = '.'

    inputs: tuple[InputDeclaration, ...] = ()
    outputs: tuple[OutputDeclaration, ...] = ()
    locals: tuple[LocalDeclaration, ...] = ()
    resources: tuple[ResourceDeclaration, ...] = ()
    branches: tuple[Branch, ...] = ()

    gaps: tuple[CoverageGap, ...] = Field(
        default=(),
        title='Extraction gaps',
        description='Branches and inputs that can not be exercised at plan time.',
    )

    def input(self, name: str) -> InputDeclaration:
        """Return an input by name.

        Raises:
            KeyError: If the module declares no such input.
        """
        for item in self.inputs:
            if item.name == name:
                return item
        raise KeyError(name)

    def output(self, name: str) -> OutputDeclaration:
        """Return an output by name.

        Raises:
            KeyError: If the module declares no such output.
        """
        for item in self.outputs:
            if item.name == name:
                return item
        raise KeyError(name)

    def local_nodes(self) -> dict[str, 'Node']:
        """Parsed local value expressions by name."""
        return {item.name: item.node for item in self.locals}

    def referenced_inputs(self) -> list[str]:
        """Inputs referenced by any output, local or resource gate."""
        referenced: set[str] = set()
        for item in (*self.outputs, *self.locals, *self.branches):
            referenced.update(item.inputs)
        for resource in self.resources:
            for gate in (resource.count, resource.for_each):
                if gate is not None:
                    referenced.update(gate.inputs)

        return [item.name for item in self.inputs if item.name in referenced]
