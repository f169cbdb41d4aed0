"""
Defines the core data types for the smath evaluator.

This module provides the token variants the evaluator consumes, the
peekable stream it reads them from, and the closed set of errors an
evaluation can end with.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Iterator, Optional


# =================================================================
# Tokens
# =================================================================

class TokenKind(Enum):
    """The closed set of token shapes. The value is the source spelling."""
    NUM = "number"
    XOR = "^"
    OR = "|"
    AND = "&"
    SHIFT_LEFT = "<<"
    SHIFT_RIGHT = ">>"
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    FACTORIAL = "!"
    NOT = "~"
    PAREN_OPEN = "("
    PAREN_CLOSE = ")"
    SEPARATOR = ","
    BLOCK_NAME = "block-name"
    VAR_ASSIGN = "var-assign"
    VAR_GET = "var-get"


# Kinds whose token carries a payload (a number or a name).
_PAYLOAD_KINDS = frozenset({
    TokenKind.NUM, TokenKind.BLOCK_NAME, TokenKind.VAR_ASSIGN, TokenKind.VAR_GET,
})


@dataclass(frozen=True)
class Token:
    """A single lexical unit. Equality is structural."""
    kind: TokenKind
    value: Any = None

    def __post_init__(self):
        if (self.kind in _PAYLOAD_KINDS) != (self.value is not None):
            raise ValueError(f"Token {self.kind.name} has an invalid payload: {self.value!r}")
        if self.kind is TokenKind.NUM:
            if isinstance(self.value, (int, str)) and not isinstance(self.value, bool):
                object.__setattr__(self, 'value', Decimal(self.value))
            elif not isinstance(self.value, Decimal):
                raise ValueError(f"Token NUM needs a Decimal, int or str payload, got {self.value!r}")
        elif self.value is not None and not isinstance(self.value, str):
            raise ValueError(f"Token {self.kind.name} needs a name payload, got {self.value!r}")

    @classmethod
    def num(cls, value) -> 'Token':
        return cls(TokenKind.NUM, value)

    @classmethod
    def block_name(cls, name: str) -> 'Token':
        return cls(TokenKind.BLOCK_NAME, name)

    @classmethod
    def var_assign(cls, name: str) -> 'Token':
        return cls(TokenKind.VAR_ASSIGN, name)

    @classmethod
    def var_get(cls, name: str) -> 'Token':
        return cls(TokenKind.VAR_GET, name)

    def __str__(self) -> str:
        from smath.smath_printer import Printer
        return Printer().pformat(self)

    def __repr__(self) -> str:
        if self.value is None:
            return f"Token<{self.kind.name}>"
        return f"Token<{self.kind.name} {self.value!r}>"


# Payload-free tokens are interchangeable, so share one instance of each.
XOR = Token(TokenKind.XOR)
OR = Token(TokenKind.OR)
AND = Token(TokenKind.AND)
SHIFT_LEFT = Token(TokenKind.SHIFT_LEFT)
SHIFT_RIGHT = Token(TokenKind.SHIFT_RIGHT)
ADD = Token(TokenKind.ADD)
SUB = Token(TokenKind.SUB)
MUL = Token(TokenKind.MUL)
DIV = Token(TokenKind.DIV)
FACTORIAL = Token(TokenKind.FACTORIAL)
NOT = Token(TokenKind.NOT)
PAREN_OPEN = Token(TokenKind.PAREN_OPEN)
PAREN_CLOSE = Token(TokenKind.PAREN_CLOSE)
SEPARATOR = Token(TokenKind.SEPARATOR)

OPERATORS = {
    tok.kind.value: tok for tok in (
        XOR, OR, AND, SHIFT_LEFT, SHIFT_RIGHT, ADD, SUB, MUL, DIV,
        FACTORIAL, NOT, PAREN_OPEN, PAREN_CLOSE, SEPARATOR,
    )
}


class TokenStream:
    """A one-token-lookahead cursor over an iterable of tokens.

    End of input is the absence of a token: `peek` and `next` both
    return None once the underlying iterator is exhausted.
    """
    def __init__(self, tokens: Iterable[Token]):
        self._it: Iterator[Token] = iter(tokens)
        self._lookahead: Optional[Token] = None
        self._filled = False

    def peek(self) -> Optional[Token]:
        if not self._filled:
            self._lookahead = next(self._it, None)
            self._filled = True
        return self._lookahead

    def peek_kind(self) -> Optional[TokenKind]:
        tok = self.peek()
        return tok.kind if tok is not None else None

    def next(self) -> Optional[Token]:
        tok = self.peek()
        self._filled = False
        self._lookahead = None
        return tok

    def __iter__(self):
        return self

    def __next__(self) -> Token:
        tok = self.next()
        if tok is None:
            raise StopIteration
        return tok


# =================================================================
# Errors
# =================================================================

class CalcError(Exception):
    """Base class for every error an evaluation can end with."""
    description = "Calculation error"

    def __str__(self) -> str:
        return self.description


class DivideByZero(CalcError):
    description = "Cannot divide by zero"


class ExpectedEOF(CalcError):
    description = "Expected EOF"

    def __init__(self, token: Token):
        super().__init__(token)
        self.token = token

    def __str__(self) -> str:
        return f"Expected EOF, found {self.token}"


class IncorrectArguments(CalcError):
    description = "Incorrect amount of arguments"

    def __init__(self, expected: int, got: int):
        super().__init__(expected, got)
        self.expected = expected
        self.got = got

    def __str__(self) -> str:
        return f"Incorrect amount of arguments (Expected {self.expected}, got {self.got})"


class InvalidSyntax(CalcError):
    description = "Invalid syntax"


class NotAPositive(CalcError):
    description = "You may only do this on positive numbers"


class NotAPrimitive(CalcError):
    description = "You may only do this on a specific primitive types"

    def __init__(self, primitive: str):
        super().__init__(primitive)
        self.primitive = primitive

    def __str__(self) -> str:
        return f"Must fit in the range of an {self.primitive} primitive"


class NotAWhole(CalcError):
    description = "You may only do this on whole numbers"


class ParseError(CalcError):
    """Raised by the tokenizer; carries the underlying parser message."""
    description = "Parse error"

    def __init__(self, inner: Any, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(inner)
        self.inner = inner
        self.line = line
        self.col = col

    def __str__(self) -> str:
        if self.line is not None and self.col is not None:
            return f"{self.inner} (line {self.line}, col {self.col})"
        return str(self.inner)


class SeparatorInDef(CalcError):
    description = "A function definition cannot have multiple arguments"


class TooDeep(CalcError):
    description = "Too many levels deep. This could be an issue with endless recursion."


class UnclosedParen(CalcError):
    description = "Unclosed parenthesis"


class UnknownFunction(CalcError):
    description = "Unknown function"

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return (f"Unknown function \"{self.name}\"\n"
                "Hint: Cannot assume multiplication of variables because of ambiguity")


class UnknownVariable(CalcError):
    description = "Unknown variable"

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown variable \"{self.name}\""
