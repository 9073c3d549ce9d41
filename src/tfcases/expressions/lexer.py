"""Tokenizer for the Terraform expression subset.

The lexer turns expression source text into a flat token list. Quoted
strings are tokenized as templates: a template token carries its literal
fragments and the raw source of each `${ ... }` interpolation, which the
parser parses recursively.
"""

from dataclasses import dataclass, field
from typing import Literal

from tfcases.errors import ExpressionError, UnsupportedExpression

type TokenKind = Literal['ident', 'number', 'template', 'op', 'eof']

#: Operators and punctuation, longest first.
OPERATORS = (
    '...', '==', '!=', '<=', '>=', '&&', '||', '=>',
    '(', ')', '[', ']', '{', '}', ',', '.', ':', '?',
    '=', '<', '>', '!', '+', '-', '*', '/', '%',
)

_ESCAPES = {
    'n': '\n',
    'r': '\r',
    't': '\t',
    '"': '"',
    '\\': '\\',
}


@dataclass(frozen=True, slots=True)
class Token:
    """Single lexical token."""

    kind: TokenKind
    text: str
    position: int
    parts: tuple[str | tuple[str, int], ...] = field(default=())


class Lexer:
    """Expression tokenizer.

    Template parts are either literal strings or `(source, offset)`
    pairs holding the raw text of an interpolation.
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self.position = 0

    def tokenize(self) -> list[Token]:
        """Tokenize the whole source.

        Returns:
            Tokens terminated with an `eof` token.

        Raises:
            ExpressionError: On malformed input.
            UnsupportedExpression: On heredocs and template directives.
        """
        tokens = []
        while (token := self.next_token()).kind != 'eof':
            tokens.append(token)
        tokens.append(token)

        return tokens

    def next_token(self) -> Token:
        """Read the next token from the source."""
        self._skip_blank()

        start = self.position
        if start >= len(self.source):
            return Token('eof', '', start)

        char = self.source[start]

        if char.isalpha() or char == '_':
            end = start + 1
            while end < len(self.source) and (self.source[end].isalnum() or self.source[end] in '_-'):
                end += 1
            self.position = end
            return Token('ident', self.source[start:end], start)

        if char.isdigit():
            return self._read_number()

        if char == '"':
            return self._read_template()

        if self.source.startswith('<<', start):
            raise UnsupportedExpression('Heredoc strings are not supported')

        for operator in OPERATORS:
            if self.source.startswith(operator, start):
                self.position = start + len(operator)
                return Token('op', operator, start)

        raise ExpressionError(f'Unexpected character {char!r} at position {start}')

    def _skip_blank(self) -> None:
        """Skip whitespace and comments."""
        while self.position < len(self.source):
            char = self.source[self.position]
            if char.isspace():
                self.position += 1
            elif char == '#' or self.source.startswith('//', self.position):
                end = self.source.find('\n', self.position)
                self.position = len(self.source) if end < 0 else end
            elif self.source.startswith('/*', self.position):
                end = self.source.find('*/', self.position + 2)
                if end < 0:
                    raise ExpressionError('Unterminated comment')
                self.position = end + 2
            else:
                break

    def _read_number(self) -> Token:
        """Read an integer or decimal number, with optional exponent."""
        start = end = self.position
        while end < len(self.source) and self.source[end].isdigit():
            end += 1

        if end + 1 < len(self.source) and self.source[end] == '.' and self.source[end + 1].isdigit():
            end += 1
            while end < len(self.source) and self.source[end].isdigit():
                end += 1

        if end < len(self.source) and self.source[end] in 'eE':
            exponent = end + 1
            if exponent < len(self.source) and self.source[exponent] in '+-':
                exponent += 1
            if exponent < len(self.source) and self.source[exponent].isdigit():
                end = exponent
                while end < len(self.source) and self.source[end].isdigit():
                    end += 1

        self.position = end
        return Token('number', self.source[start:end], start)

    def _read_template(self) -> Token:
        """Read a quoted template string with interpolations."""
        start = self.position
        index = start + 1
        parts: list[str | tuple[str, int]] = []
        chunk: list[str] = []

        while True:
            if index >= len(self.source):
                raise ExpressionError(f'Unterminated string at position {start}')

            char = self.source[index]

            if char == '"':
                index += 1
                break

            if char == '\\':
                escaped = self.source[index + 1:index + 2]
                if escaped in _ESCAPES:
                    chunk.append(_ESCAPES[escaped])
                    index += 2
                    continue
                if escaped == 'u':
                    chunk.append(chr(int(self.source[index + 2:index + 6], 16)))
                    index += 6
                    continue
                raise ExpressionError(f'Invalid escape sequence at position {index}')

            if self.source.startswith('$${', index) or self.source.startswith('%%{', index):
                chunk.append(self.source[index + 1:index + 3])
                index += 3
                continue

            if self.source.startswith('%{', index):
                raise UnsupportedExpression('Template directives are not supported')

            if self.source.startswith('${', index):
                if chunk:
                    parts.append(''.join(chunk))
                    chunk = []
                end = self._match_brace(index + 2)
                inner = self.source[index + 2:end].strip('~')
                parts.append((inner, index + 2))
                index = end + 1
                continue

            chunk.append(char)
            index += 1

        if chunk or not parts:
            parts.append(''.join(chunk))

        self.position = index
        return Token('template', self.source[start:index], start, tuple(parts))

    def _match_brace(self, index: int) -> int:
        """Find the brace closing an interpolation opened before `index`.

        Nested braces and quoted strings inside the interpolation are
        skipped.
        """
        depth = 1
        while index < len(self.source):
            char = self.source[index]
            if char == '"':
                nested = Lexer(self.source)
                nested.position = index
                nested._read_template()
                index = nested.position
                continue
            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    return index
            index += 1

        raise ExpressionError('Unterminated template interpolation')
