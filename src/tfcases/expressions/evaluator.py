"""Evaluator for the Terraform expression subset.

The evaluator computes the value an expression takes during a plan,
given concrete input variable values. References to resources, data
sources, modules and iteration objects evaluate to `UNKNOWN`, which
propagates through every operation that depends on it.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING

from tfcases.builtins.functions import to_number, to_string
from tfcases.errors import ExpressionError, TfCasesError, UnsupportedExpression
from tfcases.values import UNKNOWN, RuntimeValue, is_number, is_unknown

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
    from tfcases.extensions import Function

#: Root objects whose attributes are known during a plan.
PATH_ATTRIBUTES = ('module', 'root', 'cwd')


class Evaluator:
    """Expression evaluator bound to input values and locals.

    Locals are evaluated lazily and memoized; a local referencing
    itself, directly or transitively, is reported as an error.
    """

    def __init__(self, functions: Mapping[str, 'Function'],
                 variables: Mapping[str, RuntimeValue] | None = None,
                 locals_: Mapping[str, Node] | None = None, *,
                 module_path: str = '.',
                 workspace: str = 'default') -> None:
        """Initialize the evaluator.

        Args:
            functions: Available function definitions by name.
            variables: Input variable values by name.
            locals_: Local value expressions by name.
            module_path: Value of `path.module` and `path.root`.
            workspace: Value of `terraform.workspace`.
        """
        self.functions = functions
        self.variables = dict(variables or {})
        self.locals = dict(locals_ or {})
        self.module_path = module_path
        self.workspace = workspace

        self._resolved: dict[str, RuntimeValue] = {}
        self._resolving: list[str] = []

    def evaluate(self, node: Node,
                 scope: Mapping[str, RuntimeValue] | None = None) -> RuntimeValue:
        """Evaluate an expression.

        Args:
            node: Expression syntax tree.
            scope: Iterator variables of enclosing `for` expressions.

        Returns:
            The value of the expression, possibly `UNKNOWN`.

        Raises:
            ExpressionError: If evaluation fails like Terraform would.
            UnsupportedExpression: If the expression leaves the subset.
        """
        scope = scope or {}
        method = getattr(self, f'_eval_{type(node).__name__.lower()}', None)
        if method is None:  # pragma: no cover
            raise UnsupportedExpression(f'Unsupported expression {node}')

        return method(node, scope)

    def local(self, name: str) -> RuntimeValue:
        """Evaluate a local value by name."""
        if name in self._resolved:
            return self._resolved[name]

        if name not in self.locals:
            raise ExpressionError(f'Reference to undeclared local value {name!r}')

        if name in self._resolving:
            chain = ' -> '.join([*self._resolving, name])
            raise ExpressionError(f'Local values form a cycle: {chain}')

        self._resolving.append(name)
        try:
            value = self.evaluate(self.locals[name])
        finally:
            self._resolving.pop()

        self._resolved[name] = value

        return value

    def _eval_literal(self, node: Literal, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:  # noqa: ARG002
        return node.value

    def _eval_template(self, node: Template, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        parts = [self.evaluate(part, scope) for part in node.parts]
        if any(part is UNKNOWN for part in parts):
            return UNKNOWN
        if any(part is None for part in parts):
            raise ExpressionError('Template interpolation of a null value')

        return ''.join(to_string(part) for part in parts)

    def _eval_tupleexpr(self, node: TupleExpr, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        return [self.evaluate(item, scope) for item in node.items]

    def _eval_objectexpr(self, node: ObjectExpr, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        result = {}
        for key_node, value_node in node.items:
            key = self.evaluate(key_node, scope)
            if key is UNKNOWN:
                return UNKNOWN
            result[to_string(key)] = self.evaluate(value_node, scope)

        return result

    def _eval_variable(self, node: Variable, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        if node.name in scope:
            return scope[node.name]

        if node.name in ('var', 'local', 'path', 'terraform'):
            raise ExpressionError(f'Reference to {node.name!r} requires an attribute')

        return UNKNOWN

    def _eval_getattr(self, node: GetAttr, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        root = node.target
        if isinstance(root, Variable) and root.name not in scope:
            if root.name == 'var':
                if node.name not in self.variables:
                    raise ExpressionError(f'Reference to undeclared input variable {node.name!r}')
                return self.variables[node.name]
            if root.name == 'local':
                return self.local(node.name)
            if root.name == 'path':
                if node.name not in PATH_ATTRIBUTES:
                    raise ExpressionError(f'Unsupported path attribute {node.name!r}')
                return self.module_path
            if root.name == 'terraform':
                if node.name != 'workspace':
                    raise UnsupportedExpression(f'Unsupported terraform attribute {node.name!r}')
                return self.workspace

        target = self.evaluate(root, scope)

        return self._attribute(target, node.name)

    def _eval_index(self, node: Index, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        target = self.evaluate(node.target, scope)
        key = self.evaluate(node.key, scope)

        if target is UNKNOWN or key is UNKNOWN:
            return UNKNOWN

        if isinstance(target, dict):
            return self._attribute(target, to_string(key))

        if isinstance(target, list):
            index = to_number(key)
            if not isinstance(index, int) or not 0 <= index < len(target):
                raise ExpressionError(f'Invalid index {key!r} for a list of {len(target)} elements')
            return target[index]

        raise ExpressionError(f'Can not index a value of type {type(target).__name__}')

    def _eval_splat(self, node: Splat, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        target = self.evaluate(node.target, scope)
        if target is UNKNOWN:
            return UNKNOWN

        if target is None:
            items: list[RuntimeValue] = []
        elif isinstance(target, list):
            items = list(target)
        else:
            items = [target]

        result = []
        for item in items:
            value = item
            for step in node.tail:
                if isinstance(step, Node):
                    value = self._eval_index(Index(Literal(value), step), scope)  # type: ignore[arg-type]
                else:
                    value = self._attribute(value, step)
            result.append(value)

        return result

    def _eval_call(self, node: Call, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        if node.name == 'try':
            return self._try(node, scope)
        if node.name == 'can':
            return self._can(node, scope)

        function = self.functions.get(node.name)
        if function is None:
            raise UnsupportedExpression(f'Function {node.name!r} is not supported')

        args = [self.evaluate(arg, scope) for arg in node.args]
        if node.expand and args:
            expanded = args.pop()
            if expanded is UNKNOWN:
                return UNKNOWN
            if not isinstance(expanded, list):
                raise ExpressionError('Expanded function argument must be a list')
            args.extend(expanded)

        return function(*args)

    def _eval_unary(self, node: Unary, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        operand = self.evaluate(node.operand, scope)
        if operand is UNKNOWN:
            return UNKNOWN

        if node.op == '!':
            return not self._bool(operand)

        return -to_number(operand)

    def _eval_binary(self, node: Binary, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:  # noqa: PLR0911
        left = self.evaluate(node.left, scope)

        if node.op in ('&&', '||'):
            if left is not UNKNOWN:
                left = self._bool(left)
                if node.op == '&&' and not left:
                    return False
                if node.op == '||' and left:
                    return True
            right = self.evaluate(node.right, scope)
            if left is UNKNOWN or right is UNKNOWN:
                return UNKNOWN
            return self._bool(right)

        right = self.evaluate(node.right, scope)

        if node.op in ('==', '!='):
            if is_unknown(left) or is_unknown(right):
                return UNKNOWN
            equal = _equals(left, right)
            return equal if node.op == '==' else not equal

        if left is UNKNOWN or right is UNKNOWN:
            return UNKNOWN

        left, right = to_number(left), to_number(right)

        match node.op:
            case '<':
                return left < right
            case '>':
                return left > right
            case '<=':
                return left <= right
            case '>=':
                return left >= right
            case '+':
                return _number(left + right)
            case '-':
                return _number(left - right)
            case '*':
                return _number(left * right)
            case '/':
                if right == 0:
                    raise ExpressionError('Division by zero')
                return _number(left / right)
            case '%':
                if right == 0:
                    raise ExpressionError('Division by zero')
                return _number(left % right)

        raise UnsupportedExpression(f'Unsupported operator {node.op!r}')  # pragma: no cover

    def _eval_conditional(self, node: Conditional, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        condition = self.evaluate(node.condition, scope)
        if condition is UNKNOWN:
            return UNKNOWN

        if self._bool(condition):
            return self.evaluate(node.true, scope)

        return self.evaluate(node.false, scope)

    def _eval_forexpr(self, node: ForExpr, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        collection = self.evaluate(node.collection, scope)
        if collection is UNKNOWN:
            return UNKNOWN

        if isinstance(collection, dict):
            pairs = list(collection.items())
        elif isinstance(collection, list):
            pairs = list(enumerate(collection))
        else:
            raise ExpressionError('A for expression requires a collection')

        list_result: list[RuntimeValue] = []
        map_result: dict[str, RuntimeValue] = {}

        for key, value in pairs:
            inner = {**scope, node.value_var: value}
            if node.key_var:
                inner[node.key_var] = key

            if node.condition is not None:
                keep = self.evaluate(node.condition, inner)
                if keep is UNKNOWN:
                    return UNKNOWN
                if not self._bool(keep):
                    continue

            item = self.evaluate(node.value, inner)
            if node.key is None:
                list_result.append(item)
                continue

            item_key = self.evaluate(node.key, inner)
            if item_key is UNKNOWN:
                return UNKNOWN
            item_key = to_string(item_key)

            if node.group:
                map_result.setdefault(item_key, []).append(item)
            elif item_key in map_result:
                raise ExpressionError(f'Duplicate object key {item_key!r} in for expression')
            else:
                map_result[item_key] = item

        return list_result if node.key is None else map_result

    def _try(self, node: Call, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        """Evaluate the `try` special form."""
        for arg in node.args:
            try:
                return self.evaluate(arg, scope)
            except UnsupportedExpression:
                raise
            except TfCasesError:
                continue

        raise ExpressionError('try: no expression succeeded')

    def _can(self, node: Call, scope: Mapping[str, RuntimeValue]) -> RuntimeValue:
        """Evaluate the `can` special form."""
        if len(node.args) != 1:
            raise ExpressionError('can: takes exactly one argument')

        try:
            value = self.evaluate(node.args[0], scope)
        except UnsupportedExpression:
            raise
        except TfCasesError:
            return False

        return UNKNOWN if value is UNKNOWN else True

    @staticmethod
    def _attribute(target: RuntimeValue, name: str) -> RuntimeValue:
        """Read an attribute of an object or map."""
        if target is UNKNOWN:
            return UNKNOWN

        if isinstance(target, dict):
            if name not in target:
                raise ExpressionError(f'Unsupported attribute {name!r}')
            return target[name]

        if target is None:
            raise ExpressionError(f'Attempt to get attribute {name!r} from a null value')

        raise ExpressionError(f'Can not get attribute {name!r} of {type(target).__name__}')

    @staticmethod
    def _bool(value: RuntimeValue) -> bool:
        """Require a boolean operand."""
        if isinstance(value, bool):
            return value
        if value in ('true', 'false'):
            return value == 'true'
        raise ExpressionError(f'A boolean value is required, got {value!r}')


def _number(value: int | float) -> int | float:
    """Collapse whole floats to integers."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _equals(left: RuntimeValue, right: RuntimeValue) -> bool:
    """Terraform equality: values of different kinds are never equal."""
    if isinstance(left, bool) != isinstance(right, bool):
        return False

    if is_number(left) and is_number(right):
        return left == right

    if type(left) is not type(right) and not (left is None or right is None):
        return False

    if isinstance(left, list):
        return len(left) == len(right) and all(
            _equals(a, b) for a, b in zip(left, right, strict=True)
        )

    if isinstance(left, dict):
        return left.keys() == right.keys() and all(
            _equals(left[key], right[key]) for key in left
        )

    return left == right
