"""
Turns smath source text into the token sequence the evaluator consumes.

The koine grammar in grammar/smath_tokens.yaml splits the text into raw
leaves; `Lexer.transform` then classifies each name by the leaf that
follows it.
"""
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from koine import Parser

from smath.smath_datatypes import Token, OPERATORS, ParseError

GRAMMAR_PATH = Path(__file__).parent / "grammar" / "smath_tokens.yaml"

LEAF_TAGS = ('number', 'name', 'op')


class Lexer:
    """Parses source text with the token grammar and builds Token values."""

    _parser: Optional[Parser] = None

    def __init__(self):
        if Lexer._parser is None:
            Lexer._parser = Parser.from_file(str(GRAMMAR_PATH))
        self.parser = Lexer._parser

    def tokenize(self, source: str) -> List[Token]:
        try:
            parse_out = self.parser.parse(source)
        except Exception as e:
            raise ParseError(f"parse failed: {e}") from e

        if isinstance(parse_out, dict) and 'status' in parse_out:
            if parse_out.get('status') != 'success':
                node = parse_out.get('error_node') or {}
                raise ParseError(
                    parse_out.get('error_message') or "parse failed",
                    node.get('line'), node.get('col'),
                )
            ast_node = parse_out.get('ast')
        else:
            ast_node = parse_out

        return self.transform(list(self._leaves(ast_node)))

    def _leaves(self, node: Any) -> Iterator[Dict[str, Any]]:
        """Yields the number/name/op leaves of a raw AST in source order."""
        if isinstance(node, list):
            for child in node:
                yield from self._leaves(child)
            return
        if not isinstance(node, dict):
            return
        if node.get('tag') in LEAF_TAGS:
            yield node
            return
        if 'tag' not in node:
            # Named-children dicts
            for child in node.values():
                yield from self._leaves(child)
            return
        yield from self._leaves(node.get('children', []))

    def transform(self, leaves: List[Dict[str, Any]]) -> List[Token]:
        tokens: List[Token] = []
        i = 0
        while i < len(leaves):
            leaf = leaves[i]
            text = leaf['text']
            following = leaves[i + 1] if i + 1 < len(leaves) else None
            next_op = following['text'] if following and following.get('tag') == 'op' else None

            match leaf['tag']:
                case 'number':
                    tokens.append(Token.num(text))
                case 'name' if next_op == '=':
                    tokens.append(Token.var_assign(text))
                    i += 1
                case 'name' if next_op == '(':
                    tokens.append(Token.block_name(text))
                case 'name':
                    tokens.append(Token.var_get(text))
                case 'op' if text == '=':
                    raise ParseError("Unexpected '=' without a name to assign", leaf.get('line'), leaf.get('col'))
                case 'op':
                    tokens.append(OPERATORS[text])
            i += 1
        return tokens
