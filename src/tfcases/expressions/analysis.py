"""Static analysis helpers over expression syntax trees.

These helpers answer the questions the workflow asks about a module
without evaluating it: which objects an expression references, which
conditions it branches on, and which literal values its inputs are
compared against.
"""

from typing import TYPE_CHECKING

from tfcases.values import is_number

from .nodes import (
    Binary,
    Call,
    Conditional,
    ForExpr,
    GetAttr,
    Index,
    Literal,
    Node,
    ObjectExpr,
    Splat,
    Template,
    TupleExpr,
    Unary,
    Variable,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tfcases.values import Value

#: Operators producing booleans.
BOOLEAN_OPERATORS = ('==', '!=', '<', '>', '<=', '>=', '&&', '||')

#: Functions returning booleans.
BOOLEAN_FUNCTIONS = ('contains', 'startswith', 'endswith', 'can', 'alltrue', 'anytrue', 'tobool')

#: Comparison operators mirrored when operands swap sides.
MIRRORED = {
    '==': '==',
    '!=': '!=',
    '<': '>',
    '>': '<',
    '<=': '>=',
    '>=': '<=',
}

type Traversal = tuple[str, ...]


def children(node: Node) -> 'Iterator[Node]':
    """Yield the direct sub-expressions of a node."""
    match node:
        case Template(parts=parts):
            yield from parts
        case TupleExpr(items=items):
            yield from items
        case ObjectExpr(items=items):
            for key, value in items:
                yield key
                yield value
        case GetAttr(target=target):
            yield target
        case Index(target=target, key=key):
            yield target
            yield key
        case Splat(target=target, tail=tail):
            yield target
            yield from (step for step in tail if isinstance(step, Node))
        case Call(args=args):
            yield from args
        case Unary(operand=operand):
            yield operand
        case Binary(left=left, right=right):
            yield left
            yield right
        case Conditional(condition=condition, true=true, false=false):
            yield condition
            yield true
            yield false
        case ForExpr():
            yield node.collection
            if node.key is not None:
                yield node.key
            yield node.value
            if node.condition is not None:
                yield node.condition


def walk(node: Node) -> 'Iterator[Node]':
    """Yield a node and all of its descendants in pre-order."""
    yield node
    for child in children(node):
        yield from walk(child)


def traversal(node: Node) -> Traversal | None:
    """Return the names of a pure `root.attr.attr` chain, if any."""
    names: list[str] = []
    while isinstance(node, GetAttr):
        names.append(node.name)
        node = node.target

    if not isinstance(node, Variable):
        return None

    names.append(node.name)

    return tuple(reversed(names))


def references(node: Node, bound: frozenset[str] = frozenset()) -> list[Traversal]:
    """Collect the object references made by an expression.

    Iterator variables introduced by `for` expressions are excluded.
    Each reference is returned once, in order of first appearance.

    Args:
        node: Expression to inspect.
        bound: Names bound by enclosing `for` expressions.

    Returns:
        Reference traversals such as `('var', 'environment')`.
    """
    found: list[Traversal] = []

    def collect(current: Node, names: frozenset[str]) -> None:
        if (path := traversal(current)) is not None:
            if path[0] not in names and path not in found:
                found.append(path)
            return

        if isinstance(current, ForExpr):
            collect(current.collection, names)
            inner = names | {current.value_var} | ({current.key_var} if current.key_var else set())
            for child in (current.key, current.value, current.condition):
                if child is not None:
                    collect(child, frozenset(inner))
            return

        for child in children(current):
            collect(child, names)

    collect(node, bound)

    return found


def conditions(node: Node) -> list[Node]:
    """Collect the conditions of every conditional expression, in order."""
    return [
        item.condition
        for item in walk(node)
        if isinstance(item, Conditional)
    ]


def is_boolean(node: Node) -> bool:
    """Check whether an expression evidently produces a boolean."""
    match node:
        case Literal(value=value):
            return isinstance(value, bool)
        case Binary(op=op):
            return op in BOOLEAN_OPERATORS
        case Unary(op='!'):
            return True
        case Call(name=name):
            return name in BOOLEAN_FUNCTIONS
        case Conditional(true=true, false=false):
            return is_boolean(true) and is_boolean(false)

    return False


def _is_input(node: Node, name: str) -> bool:
    """Check whether a node is exactly `var.<name>`."""
    return traversal(node) == ('var', name)


def _literal_values(node: Node) -> list['Value'] | None:
    """Return the values of a tuple of literals, if it is one."""
    if not isinstance(node, TupleExpr):
        return None

    values = []
    for item in node.items:
        if not isinstance(item, Literal):
            return None
        values.append(item.value)

    return values


def comparands(node: Node, name: str) -> list[tuple[str, 'Value']]:
    """Collect literal values an input is compared against.

    Recognized forms are `var.x <op> literal` (either side),
    `contains([literals], var.x)`, and literal-object lookups keyed by
    the input (`{...}[var.x]`, `lookup({...}, var.x, ...)`).

    Args:
        node: Expression to inspect.
        name: Input variable name.

    Returns:
        `(operator, value)` pairs, with the input on the left-hand side.
    """
    found: list[tuple[str, Value]] = []

    def add(op: str, value: 'Value') -> None:
        if (op, value) not in found:
            found.append((op, value))

    for item in walk(node):
        match item:
            case Binary(op=op, left=left, right=Literal(value=value)) if op in MIRRORED and _is_input(left, name):
                add(op, value)
            case Binary(op=op, left=Literal(value=value), right=right) if op in MIRRORED and _is_input(right, name):
                add(MIRRORED[op], value)
            case Call(name='contains', args=(collection, target)) if _is_input(target, name):
                for value in _literal_values(collection) or ():
                    add('==', value)
            case Index(target=ObjectExpr(items=items), key=key) if _is_input(key, name):
                for key_node, _ in items:
                    if isinstance(key_node, Literal):
                        add('==', key_node.value)
            case Call(name='lookup', args=(ObjectExpr(items=items), key, *_)) if _is_input(key, name):
                for key_node, _ in items:
                    if isinstance(key_node, Literal):
                        add('==', key_node.value)

    return found


def bounds(node: Node, name: str) -> tuple[int | float | None, int | float | None]:
    """Derive documented numeric bounds for an input from a condition.

    Strict comparisons against integers are turned into inclusive
    bounds (`var.x > 0` gives a minimum of 1).

    Args:
        node: Validation condition.
        name: Input variable name.

    Returns:
        `(minimum, maximum)`, either of which may be `None`.
    """
    minimum: int | float | None = None
    maximum: int | float | None = None

    for op, value in comparands(node, name):
        if not is_number(value):
            continue
        step = 1 if isinstance(value, int) else 0
        if op in ('>=', '>'):
            candidate = value + step if op == '>' else value
            minimum = candidate if minimum is None else max(minimum, candidate)
        elif op in ('<=', '<'):
            candidate = value - step if op == '<' else value
            maximum = candidate if maximum is None else min(maximum, candidate)

    return minimum, maximum
