"""
A pretty-printer for smath values and token sequences.
"""
from decimal import Decimal

from smath.smath_datatypes import Token, TokenKind


class Printer:
    """Formats numbers and tokens back into readable smath source."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, (list, tuple)):
            return self._pformat_tokens
        return repr

    def _create_handlers(self):
        return {
            Decimal: self._pformat_decimal,
            int: self._pformat_primitive,
            type(None): self._pformat_none,
            Token: self._pformat_token,
        }

    def _pformat_primitive(self, obj):
        return str(obj)

    def _pformat_none(self, obj):
        return 'none'

    def _pformat_decimal(self, obj):
        if obj.is_zero():
            obj = obj.copy_abs()
        # Plain notation; '1E+3' style is never shown to users.
        return format(obj, 'f')

    def _pformat_token(self, obj):
        match obj.kind:
            case TokenKind.NUM:
                return self._pformat_decimal(obj.value)
            case TokenKind.BLOCK_NAME | TokenKind.VAR_GET:
                return obj.value
            case TokenKind.VAR_ASSIGN:
                return f"{obj.value} ="
            case _:
                return obj.kind.value

    def _pformat_tokens(self, tokens):
        """Formats a token sequence, e.g. a captured function body."""
        out = []
        prev = None
        for tok in tokens:
            text = self._pformat_token(tok)
            if out and self._needs_space(prev, tok):
                out.append(" ")
            out.append(text)
            prev = tok
        return "".join(out)

    def _needs_space(self, prev: Token, tok: Token) -> bool:
        if prev.kind in (TokenKind.PAREN_OPEN, TokenKind.BLOCK_NAME, TokenKind.NOT):
            return False
        if tok.kind in (TokenKind.PAREN_CLOSE, TokenKind.SEPARATOR, TokenKind.FACTORIAL):
            return False
        return True
