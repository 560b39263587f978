"""Expression AST and recursive-descent parser

Grammar, lowest precedence first:

    ternary     := or ('?' ternary ':' ternary)?
    or          := and ('||' and)*
    and         := equality ('&&' equality)*
    equality    := comparison (('==' | '!=' | '===' | '!==' | '=') comparison)*
    comparison  := additive (('<' | '>' | '<=' | '>=') additive)*
    additive    := term (('+' | '-') term)*
    term        := unary (('*' | '/' | '%') unary)*
    unary       := ('!' | '-') unary | primary
    primary     := literal | list | call | path | '(' ternary ')'
    list        := '[' (ternary (',' ternary)*)? ']'
    call        := IDENT '(' (ternary (',' ternary)*)? ')'
    path        := IDENT ('.' (IDENT | NUMBER) | '[' (NUMBER | STRING) ']')*
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Union

from legalmd.core.errors import ExpressionSyntaxError
from legalmd.core.expressions.lexer import Kind, Token, tokenize


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class ListLiteral:
    items: tuple["Node", ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Path:
    segments: tuple[Union[str, int], ...]
    raw: str


@dataclass(frozen=True)
class Unary:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class Binary:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Ternary:
    condition: "Node"
    then: "Node"
    otherwise: "Node"


@dataclass(frozen=True)
class HelperCall:
    name: str
    args: tuple["Node", ...] = field(default_factory=tuple)


Node = Union[Literal, ListLiteral, Path, Unary, Binary, Ternary, HelperCall]

_KEYWORDS = {'true': True, 'false': False, 'null': None, 'undefined': None}

_EQUALITY = ('==', '!=', '===', '!==', '=')
_COMPARISON = ('<', '>', '<=', '>=')


class _Parser:

    def __init__(self, source: str):
        self.source = source
        self.tokens: list[Token] = tokenize(source)
        self.pos = 0

    # --- token helpers ---

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind is not Kind.EOF:
            self.pos += 1
        return tok

    def at_op(self, *ops: str) -> bool:
        tok = self.peek()
        return tok.kind is Kind.OP and tok.value in ops

    def expect(self, kind: Kind) -> Token:
        tok = self.advance()
        if tok.kind is not kind:
            self.fail(f"expected {kind.value}, got {tok.value or tok.kind.value!r}", tok)
        return tok

    def fail(self, message: str, tok: Token):
        raise ExpressionSyntaxError(
            f"{message} at position {tok.pos} in {self.source!r}",
            context={"source": self.source, "pos": tok.pos},
        )

    # --- grammar ---

    def parse(self) -> Node:
        if self.peek().kind is Kind.EOF:
            self.fail("empty expression", self.peek())
        node = self.ternary()
        if self.peek().kind is not Kind.EOF:
            self.fail(f"unexpected {self.peek().value!r}", self.peek())
        return node

    def ternary(self) -> Node:
        cond = self.logical_or()
        if self.peek().kind is Kind.QUESTION:
            self.advance()
            then = self.ternary()
            self.expect(Kind.COLON)
            otherwise = self.ternary()
            return Ternary(cond, then, otherwise)
        return cond

    def _binary(self, operand, ops: tuple[str, ...]) -> Node:
        left = operand()
        while self.at_op(*ops):
            op = self.advance().value
            left = Binary(op, left, operand())
        return left

    def logical_or(self) -> Node:
        return self._binary(self.logical_and, ('||',))

    def logical_and(self) -> Node:
        return self._binary(self.equality, ('&&',))

    def equality(self) -> Node:
        return self._binary(self.comparison, _EQUALITY)

    def comparison(self) -> Node:
        return self._binary(self.additive, _COMPARISON)

    def additive(self) -> Node:
        return self._binary(self.term, ('+', '-'))

    def term(self) -> Node:
        return self._binary(self.unary, ('*', '/', '%'))

    def unary(self) -> Node:
        if self.at_op('!', '-'):
            op = self.advance().value
            return Unary(op, self.unary())
        return self.primary()

    def primary(self) -> Node:
        tok = self.peek()
        if tok.kind is Kind.NUMBER:
            self.advance()
            return Literal(float(tok.value) if '.' in tok.value else int(tok.value))
        if tok.kind is Kind.STRING:
            self.advance()
            return Literal(tok.value)
        if tok.kind is Kind.LPAREN:
            self.advance()
            node = self.ternary()
            self.expect(Kind.RPAREN)
            return node
        if tok.kind is Kind.LBRACKET:
            self.advance()
            return ListLiteral(tuple(self.arguments(Kind.RBRACKET)))
        if tok.kind is Kind.IDENT:
            if tok.value in _KEYWORDS:
                self.advance()
                return Literal(_KEYWORDS[tok.value])
            if self.tokens[self.pos + 1].kind is Kind.LPAREN:
                return self.call()
            return self.path()
        self.fail(f"unexpected {tok.value or tok.kind.value!r}", tok)

    def call(self) -> Node:
        name = self.advance().value
        self.expect(Kind.LPAREN)
        return HelperCall(name, tuple(self.arguments(Kind.RPAREN)))

    def arguments(self, closing: Kind) -> list[Node]:
        items: list[Node] = []
        if self.peek().kind is not closing:
            items.append(self.ternary())
            while self.peek().kind is Kind.COMMA:
                self.advance()
                items.append(self.ternary())
        self.expect(closing)
        return items

    def path(self) -> Node:
        start = self.peek().pos
        segments: list[Union[str, int]] = [self.advance().value]
        while True:
            tok = self.peek()
            if tok.kind is Kind.DOT:
                self.advance()
                seg = self.advance()
                if seg.kind is Kind.IDENT:
                    segments.append(seg.value)
                elif seg.kind is Kind.NUMBER and seg.value.isdigit():
                    segments.append(int(seg.value))
                else:
                    self.fail("expected a name after '.'", seg)
            elif tok.kind is Kind.LBRACKET:
                self.advance()
                seg = self.advance()
                if seg.kind is Kind.NUMBER and seg.value.isdigit():
                    segments.append(int(seg.value))
                elif seg.kind is Kind.STRING:
                    segments.append(seg.value)
                else:
                    self.fail("expected an index or quoted key", seg)
                self.expect(Kind.RBRACKET)
            else:
                break
        end = self.peek().pos
        return Path(tuple(segments), self.source[start:end].strip())


@lru_cache(maxsize=1024)
def parse_expression(source: str) -> Node:
    """Parse one expression into an immutable AST (raises ExpressionSyntaxError)."""
    return _Parser(source.strip()).parse()


def iter_nodes(node: Node):
    """Yield node and all of its descendants, depth-first."""
    yield node
    if isinstance(node, Unary):
        yield from iter_nodes(node.operand)
    elif isinstance(node, Binary):
        yield from iter_nodes(node.left)
        yield from iter_nodes(node.right)
    elif isinstance(node, Ternary):
        yield from iter_nodes(node.condition)
        yield from iter_nodes(node.then)
        yield from iter_nodes(node.otherwise)
    elif isinstance(node, HelperCall):
        for arg in node.args:
            yield from iter_nodes(arg)
    elif isinstance(node, ListLiteral):
        for item in node.items:
            yield from iter_nodes(item)


def helper_names(node: Node) -> list[str]:
    """Names of every helper called anywhere in the expression, in order."""
    return [n.name for n in iter_nodes(node) if isinstance(n, HelperCall)]
