"""Pratt parser for the Terraform expression subset.

Operator precedence follows the Terraform language, from lowest to
highest: conditional, `||`, `&&`, equality, comparison, additive,
multiplicative, unary, then attribute/index/splat postfixes.
"""

from functools import cache

from tfcases.errors import ExpressionError, TfCasesError

from .lexer import Lexer, Token
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

#: Binary operator precedence.
PRECEDENCE = {
    '||': 1,
    '&&': 2,
    '==': 3,
    '!=': 3,
    '<': 4,
    '>': 4,
    '<=': 4,
    '>=': 4,
    '+': 5,
    '-': 5,
    '*': 6,
    '/': 6,
    '%': 6,
}

KEYWORDS = {
    'true': True,
    'false': False,
    'null': None,
}


class Parser:
    """Recursive descent parser with precedence climbing."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = Lexer(source).tokenize()
        self.index = 0

    @property
    def current(self) -> Token:
        """Token under the cursor."""
        return self.tokens[self.index]

    def peek(self, offset: int = 1) -> Token:
        """Token `offset` positions after the cursor."""
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        """Consume and return the current token."""
        token = self.current
        if token.kind != 'eof':
            self.index += 1
        return token

    def accept(self, text: str) -> bool:
        """Consume the current token if it is the operator `text`."""
        if self.current.kind == 'op' and self.current.text == text:
            self.index += 1
            return True
        return False

    def expect(self, text: str) -> Token:
        """Consume the operator `text` or fail."""
        if self.current.kind != 'op' or self.current.text != text:
            raise self.error(f'Expected {text!r}')
        return self.advance()

    def error(self, message: str) -> ExpressionError:
        """Build a parse error pointing at the current token."""
        found = self.current.text or 'end of expression'
        return ExpressionError(
            f'{message} but found {found!r} at position {self.current.position} '
            f'in expression {self.source!r}',
        )

    def parse(self) -> Node:
        """Parse the whole source as a single expression."""
        node = self.expression()
        if self.current.kind != 'eof':
            raise self.error('Expected end of expression')
        return node

    def expression(self) -> Node:
        """Parse a conditional expression."""
        condition = self.binary(1)
        if not self.accept('?'):
            return condition

        true = self.expression()
        self.expect(':')
        false = self.expression()

        return Conditional(condition, true, false)

    def binary(self, min_precedence: int) -> Node:
        """Parse binary operations at or above `min_precedence`."""
        left = self.unary()

        while True:
            token = self.current
            precedence = PRECEDENCE.get(token.text) if token.kind == 'op' else None
            if precedence is None or precedence < min_precedence:
                return left
            self.advance()
            right = self.binary(precedence + 1)
            left = Binary(token.text, left, right)

    def unary(self) -> Node:
        """Parse `!` and unary minus."""
        if self.current.kind == 'op' and self.current.text in ('!', '-'):
            op = self.advance().text
            operand = self.unary()
            if op == '-' and isinstance(operand, Literal) and isinstance(operand.value, (int, float)) \
                    and not isinstance(operand.value, bool):
                return Literal(-operand.value)
            return Unary(op, operand)

        return self.postfix()

    def postfix(self) -> Node:
        """Parse attribute, index and splat postfixes."""
        node = self.primary()

        while True:
            if self.current.kind == 'op' and self.current.text == '.':
                following = self.peek()
                if following.kind == 'ident':
                    self.index += 2
                    node = GetAttr(node, following.text)
                elif following.kind == 'number' and following.text.isdigit():
                    self.index += 2
                    node = Index(node, Literal(int(following.text)))
                elif following.kind == 'op' and following.text == '*':
                    self.index += 2
                    node = self.splat(node)
                else:
                    raise self.error('Expected attribute name')
            elif self.current.kind == 'op' and self.current.text == '[':
                if self.peek().text == '*' and self.peek(2).text == ']':
                    self.index += 3
                    node = self.splat(node)
                else:
                    self.advance()
                    key = self.expression()
                    self.expect(']')
                    node = Index(node, key)
            else:
                return node

    def splat(self, target: Node) -> Splat:
        """Parse the attribute and index tail applied by a splat."""
        tail: list[str | Node] = []

        while True:
            if self.current.kind == 'op' and self.current.text == '.' and self.peek().kind == 'ident':
                tail.append(self.peek().text)
                self.index += 2
            elif self.current.kind == 'op' and self.current.text == '[' and self.peek().text != '*':
                self.advance()
                tail.append(self.expression())
                self.expect(']')
            else:
                return Splat(target, tuple(tail))

    def primary(self) -> Node:  # noqa: PLR0911
        """Parse literals, references, calls and constructors."""
        token = self.current

        if token.kind == 'number':
            self.advance()
            if any(char in token.text for char in '.eE'):
                return Literal(float(token.text))
            return Literal(int(token.text))

        if token.kind == 'template':
            self.advance()
            return self.template(token)

        if token.kind == 'ident':
            self.advance()
            if token.text in KEYWORDS:
                return Literal(KEYWORDS[token.text])
            if self.current.kind == 'op' and self.current.text == '(':
                return self.call(token.text)
            return Variable(token.text)

        if self.accept('('):
            node = self.expression()
            self.expect(')')
            return node

        if self.accept('['):
            if self._at_for():
                return self.for_expression('[', ']')
            return self.tuple_items()

        if self.accept('{'):
            if self._at_for():
                return self.for_expression('{', '}')
            return self.object_items()

        raise self.error('Expected expression')

    def template(self, token: Token) -> Node:
        """Build a template node, collapsing trivial templates."""
        parts: list[Node] = []
        for part in token.parts:
            if isinstance(part, str):
                parts.append(Literal(part))
            else:
                inner, _ = part
                parts.append(parse_expression(inner))

        if len(parts) == 1:
            only = parts[0]
            if isinstance(only, Literal) and isinstance(only.value, str):
                return only
            if isinstance(token.parts[0], tuple):
                return only

        return Template(tuple(parts))

    def call(self, name: str) -> Call:
        """Parse function call arguments."""
        self.expect('(')
        args: list[Node] = []
        expand = False

        while not self.accept(')'):
            args.append(self.expression())
            if self.accept('...'):
                expand = True
                self.expect(')')
                break
            if not self.accept(','):
                self.expect(')')
                break

        return Call(name, tuple(args), expand)

    def tuple_items(self) -> TupleExpr:
        """Parse tuple items after `[`."""
        items: list[Node] = []
        while not self.accept(']'):
            items.append(self.expression())
            if not self.accept(','):
                self.expect(']')
                break
        return TupleExpr(tuple(items))

    def object_items(self) -> ObjectExpr:
        """Parse object items after `{`."""
        items: list[tuple[Node, Node]] = []
        while not self.accept('}'):
            token = self.current
            if token.kind == 'ident' and self.peek().kind == 'op' and self.peek().text in ('=', ':'):
                self.index += 2
                key: Node = Literal(token.text)
            else:
                key = self.expression()
                if not (self.accept('=') or self.accept(':')):
                    raise self.error("Expected '=' or ':'")
            items.append((key, self.expression()))
            self.accept(',')
        return ObjectExpr(tuple(items))

    def for_expression(self, opening: str, closing: str) -> ForExpr:
        """Parse a `for` expression after its opening bracket."""
        self.advance()

        first = self.advance()
        if first.kind != 'ident':
            raise self.error('Expected iterator name')

        key_var, value_var = None, first.text
        if self.accept(','):
            second = self.advance()
            if second.kind != 'ident':
                raise self.error('Expected iterator name')
            key_var, value_var = first.text, second.text

        if self.current.kind != 'ident' or self.current.text != 'in':
            raise self.error("Expected 'in'")
        self.advance()

        collection = self.expression()
        self.expect(':')

        key = None
        value = self.expression()
        group = False
        if opening == '{':
            self.expect('=>')
            key, value = value, self.expression()
            group = self.accept('...')

        condition = None
        if self.current.kind == 'ident' and self.current.text == 'if':
            self.advance()
            condition = self.expression()

        self.expect(closing)

        return ForExpr(key_var, value_var, collection, value, key, condition, group)

    def _at_for(self) -> bool:
        """Check whether the cursor is at a `for` keyword."""
        return (
            self.current.kind == 'ident'
            and self.current.text == 'for'
            and self.peek().kind == 'ident'
        )


@cache
def parse_expression(source: str) -> Node:
    """Parse expression source text into a syntax tree.

    Args:
        source: Terraform expression text.

    Returns:
        Root node of the expression.

    Raises:
        ExpressionError: If the source is not a valid expression.
        UnsupportedExpression: If the source uses unsupported syntax.
    """
    try:
        return Parser(source).parse()

    except TfCasesError:
        raise

    except (ValueError, IndexError) as base:
        raise ExpressionError(f'Invalid expression {source!r}') from base
