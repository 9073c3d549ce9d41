"""Terraform type constraints.

This module resolves the `type` argument of a `variable` block into a
structured `TypeSpec`, infers types from default values when no
constraint is declared, and produces sample values of a type for the
scenario enumerator.
"""

from typing import Literal

from pydantic import Field

from tfcases.errors import TfCasesError
from tfcases.expressions import parse_expression
from tfcases.expressions.nodes import Call, Literal as LiteralNode, Node, ObjectExpr, TupleExpr, Variable
from tfcases.models import SchemaModel
from tfcases.values import Value, is_number

type TypeKind = Literal[
    'string', 'number', 'bool', 'any',
    'list', 'set', 'map', 'tuple', 'object',
    'unknown',
]

PRIMITIVES = ('string', 'number', 'bool', 'any')
COLLECTIONS = ('list', 'set', 'map')


class TypeSpec(SchemaModel):
    """Resolved Terraform type constraint."""

    kind: TypeKind = Field(
        title='Type kind',
        description='Kind of the type. `unknown` marks an unresolvable constraint.',
    )

    element: 'TypeSpec | None' = Field(
        default=None,
        title='Element type',
        description='Element type of list, set and map types.',
    )

    elements: tuple['TypeSpec', ...] = Field(
        default=(),
        title='Tuple element types',
    )

    attributes: dict[str, 'TypeSpec'] = Field(
        default_factory=dict,
        title='Object attribute types',
    )

    optional: tuple[str, ...] = Field(
        default=(),
        title='Optional object attributes',
    )

    @property
    def is_collection(self) -> bool:
        """Whether values of this type have a length."""
        return self.kind in ('list', 'set', 'map', 'tuple', 'object')

    @property
    def is_variable_length(self) -> bool:
        """Whether values of this type may be empty or populated."""
        return self.kind in COLLECTIONS

    def __str__(self) -> str:
        """Canonical type constraint text."""
        if self.kind in COLLECTIONS:
            return f'{self.kind}({self.element or "any"})'

        if self.kind == 'tuple':
            return f'tuple([{", ".join(str(item) for item in self.elements)}])'

        if self.kind == 'object':
            attributes = ', '.join(
                f'{name} = optional({spec})' if name in self.optional else f'{name} = {spec}'
                for name, spec in self.attributes.items()
            )
            return f'object({{{attributes}}})'

        return self.kind

    def sample(self, seed: int = 1) -> Value:
        """Build a representative non-null value of this type.

        Args:
            seed: Variation index; different seeds give different values.

        Returns:
            A sample value.

        Raises:
            ValueError: If the type is unknown.
        """
        match self.kind:
            case 'string' | 'any':
                return 'example' if seed == 1 else f'example-{seed}'
            case 'number':
                return seed
            case 'bool':
                return seed % 2 == 1
            case 'list' | 'set':
                return [self._element.sample(seed)]
            case 'map':
                return {f'key{seed}': self._element.sample(seed)}
            case 'tuple':
                return [item.sample(seed) for item in self.elements]
            case 'object':
                return {
                    name: spec.sample(seed)
                    for name, spec in self.attributes.items()
                    if name not in self.optional
                }

        raise ValueError('Can not sample a value of unknown type')

    def empty(self) -> Value:
        """Empty value of a variable-length collection type."""
        if self.kind == 'map':
            return {}
        if self.kind in ('list', 'set'):
            return []
        raise ValueError(f'Type {self} has no empty value')

    def populated(self, size: int = 2) -> Value:
        """Value of a variable-length collection type with `size` entries."""
        if self.kind == 'map':
            return {f'key{seed}': self._element.sample(seed) for seed in range(1, size + 1)}
        if self.kind in ('list', 'set'):
            return [self._element.sample(seed) for seed in range(1, size + 1)]
        raise ValueError(f'Type {self} can not be populated')

    @property
    def _element(self) -> 'TypeSpec':
        return self.element or ANY


ANY = TypeSpec(kind='any')
UNKNOWN_TYPE = TypeSpec(kind='unknown')


def _from_node(node: Node) -> TypeSpec:  # noqa: PLR0911
    """Convert a type expression node into a type specification."""
    match node:
        case Variable(name=name) if name in PRIMITIVES:
            return TypeSpec(kind=name)
        case Call(name=name, args=(element,)) if name in COLLECTIONS:
            return TypeSpec(kind=name, element=_from_node(element))
        case Call(name='tuple', args=(TupleExpr(items=items),)):
            return TypeSpec(kind='tuple', elements=tuple(_from_node(item) for item in items))
        case Call(name='object', args=(ObjectExpr(items=items),)):
            attributes, optional = {}, []
            for key, value in items:
                if not isinstance(key, LiteralNode) or not isinstance(key.value, str):
                    raise ValueError('Object attribute names must be literals')
                if isinstance(value, Call) and value.name == 'optional' and value.args:
                    optional.append(key.value)
                    value = value.args[0]
                attributes[key.value] = _from_node(value)
            return TypeSpec(kind='object', attributes=attributes, optional=tuple(optional))

    raise ValueError(f'Unsupported type constraint {node}')


def parse_type(source: str | None) -> TypeSpec:
    """Resolve a type constraint from its source text.

    Args:
        source: Type constraint text, or `None` when not declared.

    Returns:
        The resolved type, `any` when not declared, or `unknown`
        when the constraint can not be resolved.
    """
    if source is None:
        return ANY

    try:
        return _from_node(parse_expression(source))

    except (TfCasesError, ValueError):
        return UNKNOWN_TYPE


def infer_type(value: Value) -> TypeSpec:
    """Infer a type from a default value, as Terraform does."""
    if isinstance(value, bool):
        return TypeSpec(kind='bool')

    if is_number(value):
        return TypeSpec(kind='number')

    if isinstance(value, str):
        return TypeSpec(kind='string')

    if isinstance(value, list):
        element = infer_type(value[0]) if value else ANY
        return TypeSpec(kind='list', element=element)

    if isinstance(value, dict):
        kinds: list[TypeSpec] = []
        for item in value.values():
            if (kind := infer_type(item)) not in kinds:
                kinds.append(kind)
        if len(kinds) == 1:
            return TypeSpec(kind='map', element=kinds[0])
        if not value:
            return TypeSpec(kind='map', element=ANY)
        return TypeSpec(
            kind='object',
            attributes={key: infer_type(item) for key, item in value.items()},
        )

    return ANY
