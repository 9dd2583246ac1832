"""
Filter expression tokenizer and parser.

Turns compact expressions typed in the CLI or sent over HTTP into field
predicates, e.g.:

    method == GET and status >= 500
    plate ~ "ABC" and exceeds_by in (25, 30, 35)
"""

import re
from dataclasses import dataclass
from typing import Any, List, Optional

from .models import FieldPredicate

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_\.]*$')
_INTEGER = re.compile(r"^-?\d+$")
_DECIMAL = re.compile(r"^-?\d+\.\d+$")

_OPERATORS = {
    'EQ': 'eq',
    'NEQ': 'ne',
    'GT': 'gt',
    'GTE': 'gte',
    'LT': 'lt',
    'LTE': 'lte',
    'CONTAINS': 'contains',
}


@dataclass
class Token:
    """Represents a lexical token."""
    type: str
    value: str
    position: int


class Tokenizer:
    """Tokenizes filter expressions."""

    TOKEN_PATTERNS = [
        (r'(?i)\band\b', 'AND'),
        (r'(?i)\bin\b', 'IN'),
        (r'==', 'EQ'),
        (r'!=', 'NEQ'),
        (r'>=', 'GTE'),
        (r'<=', 'LTE'),
        (r'>', 'GT'),
        (r'<', 'LT'),
        (r'=', 'EQ'),
        (r'~', 'CONTAINS'),
        (r'\(', 'LPAREN'),
        (r'\)', 'RPAREN'),
        (r',', 'COMMA'),
        (r'"[^"]*"', 'STRING'),
        (r"'[^']*'", 'STRING'),
        (r'[^\s(),"\'=!<>~]+', 'WORD'),
        (r'\s+', 'WHITESPACE'),
    ]

    _COMPILED = [(re.compile(pattern), token_type) for pattern, token_type in TOKEN_PATTERNS]

    def __init__(self, expression: str):
        """Initialize tokenizer with an expression string."""
        self.expression = expression
        self.position = 0
        self.tokens: List[Token] = []
        self._tokenize()

    def _tokenize(self) -> None:
        while self.position < len(self.expression):
            for regex, token_type in self._COMPILED:
                match = regex.match(self.expression, self.position)
                if match:
                    if token_type != 'WHITESPACE':
                        self.tokens.append(
                            Token(token_type, match.group(0), self.position)
                        )
                    self.position = match.end()
                    break
            else:
                raise SyntaxError(
                    f"Invalid character at position {self.position}: "
                    f"'{self.expression[self.position]}'"
                )

    def get_tokens(self) -> List[Token]:
        """Return the list of tokens."""
        return self.tokens


class Parser:
    """Parses filter expression tokens into field predicates."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.position = 0

    def _current_token(self) -> Optional[Token]:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _consume(self, expected_type: Optional[str] = None) -> Token:
        token = self._current_token()
        if token is None:
            raise SyntaxError("Unexpected end of input")
        if expected_type and token.type != expected_type:
            raise SyntaxError(
                f"Expected {expected_type} at position {token.position}, "
                f"got {token.type}: {token.value}"
            )
        self.position += 1
        return token

    def parse(self) -> List[FieldPredicate]:
        """Parse predicates joined with AND until the end of input."""
        if self._current_token() is None:
            return []

        predicates = [self._parse_predicate()]
        while self._current_token() and self._current_token().type == 'AND':
            self._consume('AND')
            predicates.append(self._parse_predicate())

        leftover = self._current_token()
        if leftover is not None:
            raise SyntaxError(
                f"Unexpected {leftover.type} at position {leftover.position}: "
                f"{leftover.value}"
            )
        return predicates

    def _parse_predicate(self) -> FieldPredicate:
        field_token = self._consume('WORD')
        if not _IDENTIFIER.match(field_token.value):
            raise SyntaxError(
                f"Invalid field name at position {field_token.position}: "
                f"{field_token.value}"
            )

        current = self._current_token()
        if current is not None and current.type == 'IN':
            self._consume('IN')
            return FieldPredicate(
                field_name=field_token.value,
                operator='in',
                value=tuple(self._parse_list()),
            )

        if current is None or current.type not in _OPERATORS:
            found = current.type if current else 'EOF'
            raise SyntaxError(f"Expected comparison operator, got {found}")
        self._consume()

        return FieldPredicate(
            field_name=field_token.value,
            operator=_OPERATORS[current.type],
            value=self._parse_value(),
        )

    def _parse_list(self) -> List[Any]:
        self._consume('LPAREN')
        values = [self._parse_value()]
        while self._current_token() and self._current_token().type == 'COMMA':
            self._consume('COMMA')
            values.append(self._parse_value())
        self._consume('RPAREN')
        return values

    def _parse_value(self) -> Any:
        token = self._current_token()
        if token is None:
            raise SyntaxError("Expected value after operator")
        if token.type == 'STRING':
            self._consume('STRING')
            return token.value[1:-1]
        if token.type == 'WORD':
            self._consume('WORD')
            return _literal(token.value)
        if token.type in ('AND', 'IN'):
            # Keywords in value position are plain text
            self._consume(token.type)
            return token.value
        raise SyntaxError(f"Expected value at position {token.position}, got {token.type}")


def _literal(text: str) -> Any:
    """Bare words become ints or floats when they look numeric."""
    if _INTEGER.match(text):
        return int(text)
    if _DECIMAL.match(text):
        return float(text)
    return text


def parse_filters(expression: Optional[str]) -> List[FieldPredicate]:
    """Parse a filter expression string.

    Args:
        expression: Expression such as 'method == GET and status >= 500'

    Returns:
        List of predicates to combine with AND; empty for a blank expression

    Raises:
        SyntaxError: If the expression is malformed
    """
    if not expression or not expression.strip():
        return []
    tokens = Tokenizer(expression).get_tokens()
    return Parser(tokens).parse()
