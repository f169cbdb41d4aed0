"""
The core smath interpreter, containing the evaluation Context and the Evaluator.
"""
import os
import sys
from contextlib import contextmanager
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from smath import smath_numeric as num
from smath.smath_datatypes import (
    Token, TokenKind, TokenStream,
    ExpectedEOF, IncorrectArguments, InvalidSyntax, SeparatorInDef, TooDeep,
    UnclosedParen, UnknownFunction, UnknownVariable,
)

# Bound of the shared depth counter (an unsigned 8-bit value).
MAX_DEPTH = 255

# Python frames one level of nesting may use, with room to spare.
# Assignment chains (`a = b = c = ...`) recurse without moving the depth
# counter, so roughly 450 of them at the top level exhaust this headroom
# and are reported as TooDeep as well.
FRAMES_PER_LEVEL = 24

Variables = Dict[str, Decimal]
Functions = Dict[str, List[Token]]


@contextmanager
def _recursion_headroom(frames: int):
    """Temporarily raise the interpreter recursion limit by `frames`."""
    previous = sys.getrecursionlimit()
    wanted = previous + frames
    sys.setrecursionlimit(wanted)
    try:
        yield
    finally:
        sys.setrecursionlimit(previous)


def _expect_args(args: List[Decimal], expected: int):
    if len(args) != expected:
        raise IncorrectArguments(expected, len(args))


def positional_name(index: int) -> str:
    """Name under which the `index`-th (1-based) call argument is bound."""
    return f"${index}"


class Context:
    """State threaded through every recursive evaluation call.

    The token cursor belongs to this context alone. The variable and
    function maps are borrowed from the caller and shared with every
    nested context, so writes made inside a function body stay visible
    after the call returns.
    """
    def __init__(self, tokens: Union[TokenStream, Iterable[Token]],
                 variables: Variables, functions: Functions, depth: int = 0):
        self.depth = depth
        self.tokens = tokens if isinstance(tokens, TokenStream) else TokenStream(tokens)
        self.variables = variables
        self.functions = functions

    def nested(self, tokens: Iterable[Token]) -> 'Context':
        """A context one level deeper over its own `tokens`, sharing the maps."""
        return Context(tokens, self.variables, self.functions, self.depth + 1)

    def accept(self, kind: TokenKind) -> Optional[Token]:
        """Consumes and returns the next token if it is of `kind`."""
        if self.tokens.peek_kind() is kind:
            return self.tokens.next()
        return None

    def __repr__(self) -> str:
        return f"<Context depth={self.depth} variables={len(self.variables)} functions={len(self.functions)}>"


class Evaluator:
    """The smath execution engine.

    Operator precedence is a cascade of nine levels, lowest first:
    xor, or, and, shifts, add/sub, mul/div, postfix factorial, prefix
    not, primaries. Every binary operator is right-associative.
    """
    def __init__(self, division_precision: int = num.DIVISION_PRECISION, max_depth: int = MAX_DEPTH):
        if not 0 < max_depth <= MAX_DEPTH:
            raise ValueError(f"max_depth must be between 1 and {MAX_DEPTH}, got {max_depth}")
        if division_precision < 1:
            raise ValueError(f"division_precision must be positive, got {division_precision}")
        self.division_precision = division_precision
        self.max_depth = max_depth

    def _dbg(self, *parts):
        if os.environ.get("SMATH_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def evaluate(self, tokens: Union[TokenStream, Iterable[Token]],
                 variables: Variables, functions: Functions) -> Decimal:
        """Public entry point. Evaluates one whole expression against the given maps."""
        ctx = Context(tokens, variables, functions)
        with _recursion_headroom(self.max_depth * FRAMES_PER_LEVEL):
            try:
                return self.calculate(ctx)
            except RecursionError:
                raise TooDeep() from None

    # -----------------------------------------------------------------
    # Precedence cascade
    # -----------------------------------------------------------------

    def calculate(self, ctx: Context) -> Decimal:
        """Evaluates a full expression at the current depth (level 1: xor).

        A closing paren or separator left over inside a group or function
        body belongs to the enclosing construct and is left for it.
        """
        if ctx.depth >= self.max_depth:
            raise TooDeep()

        value = self._chain(ctx, (TokenKind.XOR,), self._or, self._apply_bitwise)

        tok = ctx.tokens.peek()
        if tok is None:
            return value
        if ctx.depth != 0 and tok.kind in (TokenKind.PAREN_CLOSE, TokenKind.SEPARATOR):
            return value
        raise ExpectedEOF(ctx.tokens.next())

    def _chain(self, ctx: Context, operators: Tuple[TokenKind, ...],
               operand: Callable[[Context], Decimal],
               apply: Callable[[TokenKind, Decimal, Decimal], Decimal]) -> Decimal:
        """Evaluates `a op b op c ...` as `a op (b op (c ...))`.

        Operands are evaluated left to right and folded from the right, so
        a long chain costs no extra stack.
        """
        values = [operand(ctx)]
        ops = []
        while ctx.tokens.peek_kind() in operators:
            ops.append(ctx.tokens.next().kind)
            values.append(operand(ctx))

        result = values.pop()
        while ops:
            result = apply(ops.pop(), values.pop(), result)
        return result

    def _or(self, ctx: Context) -> Decimal:
        return self._chain(ctx, (TokenKind.OR,), self._and, self._apply_bitwise)

    def _and(self, ctx: Context) -> Decimal:
        return self._chain(ctx, (TokenKind.AND,), self._shift, self._apply_bitwise)

    def _shift(self, ctx: Context) -> Decimal:
        return self._chain(ctx, (TokenKind.SHIFT_LEFT, TokenKind.SHIFT_RIGHT), self._additive, self._apply_shift)

    def _additive(self, ctx: Context) -> Decimal:
        return self._chain(ctx, (TokenKind.ADD, TokenKind.SUB), self._multiplicative, self._apply_arithmetic)

    def _multiplicative(self, ctx: Context) -> Decimal:
        return self._chain(ctx, (TokenKind.MUL, TokenKind.DIV), self._factorial, self._apply_arithmetic)

    def _factorial(self, ctx: Context) -> Decimal:
        value = self._not(ctx)
        if ctx.accept(TokenKind.FACTORIAL):
            return num.factorial(value)
        return value

    def _not(self, ctx: Context) -> Decimal:
        count = 0
        while ctx.accept(TokenKind.NOT):
            count += 1
        value = self._primary(ctx)
        for _ in range(count):
            value = Decimal(~num.to_i64(value))
        return value

    def _apply_bitwise(self, op: TokenKind, a: Decimal, b: Decimal) -> Decimal:
        left = num.to_i64(a)
        right = num.to_i64(b)
        match op:
            case TokenKind.XOR:
                return Decimal(left ^ right)
            case TokenKind.OR:
                return Decimal(left | right)
            case TokenKind.AND:
                return Decimal(left & right)
        raise AssertionError(f"not a bitwise operator: {op}")

    def _apply_shift(self, op: TokenKind, a: Decimal, b: Decimal) -> Decimal:
        amount = num.to_usize(b)
        value = num.to_bigint(a)
        match op:
            case TokenKind.SHIFT_LEFT:
                return Decimal(value << amount)
            case TokenKind.SHIFT_RIGHT:
                return Decimal(value >> amount)
        raise AssertionError(f"not a shift operator: {op}")

    def _apply_arithmetic(self, op: TokenKind, a: Decimal, b: Decimal) -> Decimal:
        match op:
            case TokenKind.ADD:
                return num.add(a, b)
            case TokenKind.SUB:
                return num.sub(a, b)
            case TokenKind.MUL:
                return num.mul(a, b)
            case TokenKind.DIV:
                return num.div(a, b, self.division_precision)
        raise AssertionError(f"not an arithmetic operator: {op}")

    # -----------------------------------------------------------------
    # Primaries
    # -----------------------------------------------------------------

    def _primary(self, ctx: Context) -> Decimal:
        negate = False
        while ctx.accept(TokenKind.SUB):
            negate = not negate
        value = self._atom(ctx)
        return value.copy_negate() if negate else value

    def _atom(self, ctx: Context) -> Decimal:
        tok = ctx.tokens.next()
        if tok is None:
            raise InvalidSyntax()

        match tok.kind:
            case TokenKind.PAREN_OPEN:
                args = self._arguments(ctx)
                _expect_args(args, 1)
                return args[0]
            case TokenKind.BLOCK_NAME:
                if not ctx.accept(TokenKind.PAREN_OPEN):
                    raise InvalidSyntax()
                return self._call(ctx, tok.value, self._arguments(ctx))
            case TokenKind.NUM:
                return tok.value
            case TokenKind.VAR_ASSIGN:
                if ctx.accept(TokenKind.PAREN_OPEN):
                    self._define(ctx, tok.value)
                else:
                    ctx.variables[tok.value] = self.calculate(ctx)
                return num.ZERO
            case TokenKind.VAR_GET:
                try:
                    return ctx.variables[tok.value]
                except KeyError:
                    raise UnknownVariable(tok.value) from None
            case _:
                raise InvalidSyntax()

    def _arguments(self, ctx: Context) -> List[Decimal]:
        """Evaluates the arguments after an opening paren, through the closing one."""
        args = []
        if ctx.tokens.peek_kind() is not TokenKind.PAREN_CLOSE:
            ctx.depth += 1
            self._dbg("enter group depth", ctx.depth)
            try:
                args.append(self.calculate(ctx))
                while ctx.accept(TokenKind.SEPARATOR):
                    args.append(self.calculate(ctx))
            finally:
                ctx.depth -= 1
                self._dbg("leave group depth", ctx.depth)

        if not ctx.accept(TokenKind.PAREN_CLOSE):
            raise UnclosedParen()
        return args

    # -----------------------------------------------------------------
    # Functions
    # -----------------------------------------------------------------

    def _call(self, ctx: Context, name: str, args: List[Decimal]) -> Decimal:
        """Resolves a call: built-ins first, then user-defined functions.

        A name followed by a paren is never read as an implicit multiplication.
        """
        match name:
            case "abs":
                _expect_args(args, 1)
                return args[0].copy_abs()
            case "pow":
                _expect_args(args, 2)
                return num.power(args[0], args[1], self.division_precision)

        body = ctx.functions.get(name)
        if body is None:
            raise UnknownFunction(name)

        params = [positional_name(i) for i in range(1, len(args) + 1)]
        for param, arg in zip(params, args):
            ctx.variables[param] = arg
        self._dbg("call", name, [str(a) for a in args], "depth", ctx.depth + 1)
        try:
            return self.calculate(ctx.nested(list(body)))
        finally:
            # Positional bindings never outlive the call, even when it fails.
            for param in params:
                ctx.variables.pop(param, None)

    def _define(self, ctx: Context, name: str):
        """Captures the raw tokens of `name = ( ... )` up to the matching paren."""
        body: List[Token] = []
        depth = 1
        while True:
            tok = ctx.tokens.next()
            if tok is None:
                raise UnclosedParen()
            match tok.kind:
                case TokenKind.SEPARATOR if depth == 1:
                    raise SeparatorInDef()
                case TokenKind.PAREN_OPEN:
                    depth += 1
                case TokenKind.PAREN_CLOSE:
                    depth -= 1
            if depth == 0:
                break
            body.append(tok)
            if depth >= self.max_depth:
                raise TooDeep()

        ctx.functions[name] = body
        self._dbg("define", name, "tokens", len(body))


_default_evaluator = Evaluator()


def evaluate(tokens: Union[TokenStream, Iterable[Token]], variables: Variables, functions: Functions) -> Decimal:
    """Evaluates one expression with the default Evaluator settings."""
    return _default_evaluator.evaluate(tokens, variables, functions)
