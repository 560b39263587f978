"""Tokenizer for template and clause expressions"""

import re
from dataclasses import dataclass
from enum import Enum

from legalmd.core.errors import ExpressionSyntaxError


class Kind(str, Enum):
    NUMBER = "NUMBER"
    STRING = "STRING"
    IDENT = "IDENT"
    OP = "OP"
    DOT = "DOT"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    COMMA = "COMMA"
    QUESTION = "QUESTION"
    COLON = "COLON"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    kind: Kind
    value: str
    pos: int


# Identifiers may carry inner hyphens (client-name); subtraction needs spaces.
_IDENT_RE = re.compile(r'[A-Za-z_@$][\w$]*(?:-[A-Za-z_][\w$]*)*')
_NUMBER_RE = re.compile(r'\d+(?:\.\d+)?')
_INT_RE = re.compile(r'\d+')

# Longest operators first.
_OPERATORS = ('===', '!==', '==', '!=', '<=', '>=', '&&', '||', '<', '>', '=', '!', '+', '-', '*', '/', '%')

_PUNCT = {
    '.': Kind.DOT, '[': Kind.LBRACKET, ']': Kind.RBRACKET,
    '(': Kind.LPAREN, ')': Kind.RPAREN, ',': Kind.COMMA,
    '?': Kind.QUESTION, ':': Kind.COLON,
}

# Word forms of boolean operators, accepted in clause conditions and templates.
_WORD_OPS = {'AND': '&&', 'and': '&&', 'OR': '||', 'or': '||', 'NOT': '!', 'not': '!'}

_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '"': '"', "'": "'"}


def _read_string(source: str, start: int) -> tuple[str, int]:
    quote = source[start]
    out = []
    i = start + 1
    while i < len(source):
        ch = source[i]
        if ch == '\\' and i + 1 < len(source):
            out.append(_ESCAPES.get(source[i + 1], source[i + 1]))
            i += 2
            continue
        if ch == quote:
            return ''.join(out), i + 1
        out.append(ch)
        i += 1
    raise ExpressionSyntaxError(f"Unterminated string starting at {start}", context={"source": source})


def tokenize(source: str) -> list[Token]:
    """Split an expression into tokens; the list always ends with an EOF token."""
    tokens: list[Token] = []
    i = 0
    while i < len(source):
        ch = source[i]
        if ch.isspace():
            i += 1
            continue
        if ch in '"\'':
            value, end = _read_string(source, i)
            tokens.append(Token(Kind.STRING, value, i))
            i = end
            continue
        if ch.isdigit():
            # after a dot, digits are a path index: items.0.1 is [items, 0, 1]
            after_dot = bool(tokens) and tokens[-1].kind is Kind.DOT
            m = (_INT_RE if after_dot else _NUMBER_RE).match(source, i)
            tokens.append(Token(Kind.NUMBER, m.group(), i))
            i = m.end()
            continue
        m = _IDENT_RE.match(source, i)
        if m:
            word = m.group()
            if word in _WORD_OPS:
                tokens.append(Token(Kind.OP, _WORD_OPS[word], i))
            else:
                tokens.append(Token(Kind.IDENT, word, i))
            i = m.end()
            continue
        if ch in _PUNCT:
            tokens.append(Token(_PUNCT[ch], ch, i))
            i += 1
            continue
        for op in _OPERATORS:
            if source.startswith(op, i):
                tokens.append(Token(Kind.OP, op, i))
                i += len(op)
                break
        else:
            raise ExpressionSyntaxError(f"Unexpected character {ch!r} at {i}", context={"source": source})
    tokens.append(Token(Kind.EOF, '', len(source)))
    return tokens
