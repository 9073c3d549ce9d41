"""Syntax tree of the Terraform expression subset.

Nodes are immutable and hashable, so identical expressions compare
equal and can be used as dictionary keys during analysis.
"""

from dataclasses import dataclass

from tfcases.values import Value, render_key, to_hcl


@dataclass(frozen=True, slots=True)
class Node:
    """Base class of all expression nodes."""

    def unparse(self) -> str:
        """Render the node back to canonical expression text."""
        raise NotImplementedError  # pragma: no cover

    def __str__(self) -> str:
        """String representation."""
        return self.unparse()


@dataclass(frozen=True, slots=True)
class Literal(Node):
    """Literal `null`, boolean, number or string."""

    value: Value

    def unparse(self) -> str:
        return to_hcl(self.value)


@dataclass(frozen=True, slots=True)
class Template(Node):
    """String template with interpolations."""

    parts: tuple[Node, ...]

    def unparse(self) -> str:
        text = ''
        for part in self.parts:
            if isinstance(part, Literal) and isinstance(part.value, str):
                text += to_hcl(part.value)[1:-1]
            else:
                text += f'${{{part.unparse()}}}'
        return f'"{text}"'


@dataclass(frozen=True, slots=True)
class TupleExpr(Node):
    """Tuple constructor `[a, b]`."""

    items: tuple[Node, ...]

    def unparse(self) -> str:
        return '[' + ', '.join(item.unparse() for item in self.items) + ']'


@dataclass(frozen=True, slots=True)
class ObjectExpr(Node):
    """Object constructor `{key = value}`."""

    items: tuple[tuple[Node, Node], ...]

    def unparse(self) -> str:
        if not self.items:
            return '{}'
        return '{' + ', '.join(
            f'{_object_key(key)} = {value.unparse()}'
            for key, value in self.items
        ) + '}'


@dataclass(frozen=True, slots=True)
class Variable(Node):
    """Root identifier of a traversal (`var`, `local`, resource types...)."""

    name: str

    def unparse(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class GetAttr(Node):
    """Attribute access `target.name`."""

    target: Node
    name: str

    def unparse(self) -> str:
        return f'{self.target.unparse()}.{self.name}'


@dataclass(frozen=True, slots=True)
class Index(Node):
    """Index access `target[key]`."""

    target: Node
    key: Node

    def unparse(self) -> str:
        return f'{self.target.unparse()}[{self.key.unparse()}]'


@dataclass(frozen=True, slots=True)
class Splat(Node):
    """Splat `target[*].tail` applying the tail to every element."""

    target: Node
    tail: tuple[str | Node, ...] = ()

    def unparse(self) -> str:
        text = f'{self.target.unparse()}[*]'
        for step in self.tail:
            text += f'[{step.unparse()}]' if isinstance(step, Node) else f'.{step}'
        return text


@dataclass(frozen=True, slots=True)
class Call(Node):
    """Function call, optionally expanding its final argument."""

    name: str
    args: tuple[Node, ...]
    expand: bool = False

    def unparse(self) -> str:
        args = ', '.join(arg.unparse() for arg in self.args)
        return f'{self.name}({args}{'...' if self.expand else ''})'


@dataclass(frozen=True, slots=True)
class Unary(Node):
    """Unary `!` or `-` operation."""

    op: str
    operand: Node

    def unparse(self) -> str:
        return f'{self.op}{_wrap(self.operand)}'


@dataclass(frozen=True, slots=True)
class Binary(Node):
    """Binary arithmetic, comparison or logical operation."""

    op: str
    left: Node
    right: Node

    def unparse(self) -> str:
        return f'{_wrap(self.left)} {self.op} {_wrap(self.right)}'


@dataclass(frozen=True, slots=True)
class Conditional(Node):
    """Conditional `condition ? true : false`."""

    condition: Node
    true: Node
    false: Node

    def unparse(self) -> str:
        return f'{_wrap(self.condition)} ? {_wrap(self.true)} : {_wrap(self.false)}'


@dataclass(frozen=True, slots=True)
class ForExpr(Node):
    """List or object `for` expression."""

    key_var: str | None
    value_var: str
    collection: Node
    value: Node
    key: Node | None = None
    condition: Node | None = None
    group: bool = False

    def unparse(self) -> str:
        names = f'{self.key_var}, {self.value_var}' if self.key_var else self.value_var
        head = f'for {names} in {self.collection.unparse()} : '
        tail = f' if {self.condition.unparse()}' if self.condition else ''
        if self.key is None:
            return f'[{head}{self.value.unparse()}{tail}]'
        group = '...' if self.group else ''
        return f'{{{head}{self.key.unparse()} => {self.value.unparse()}{group}{tail}}}'


#: Nodes rendered without parentheses when nested.
_ATOMIC = (Literal, Template, TupleExpr, ObjectExpr, Variable, GetAttr, Index, Splat, Call, ForExpr)


def _wrap(node: Node) -> str:
    """Render a nested operand, parenthesized unless atomic."""
    if isinstance(node, _ATOMIC):
        return node.unparse()
    return f'({node.unparse()})'


def _object_key(node: Node) -> str:
    """Render an object key."""
    if isinstance(node, Literal) and isinstance(node.value, str):
        return render_key(node.value)
    return f'({node.unparse()})'
