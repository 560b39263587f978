"""Expression evaluation against layered metadata scopes"""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional, Sequence

from legalmd.core.errors import UnknownHelperError, UnresolvedExpressionError
from legalmd.core.expressions.helpers import HelperRegistry, registry as default_registry
from legalmd.core.expressions.parser import (
    Binary, HelperCall, ListLiteral, Literal, Node, Path, Ternary, Unary, parse_expression,
)
from legalmd.core.values import MISSING, Segment, is_truthy, kind_of, lookup, to_text


class Scope:
    """Root metadata plus a stack of loop frames; inner frames are searched first.

    A frame is a mapping such as {"this": item, "@index": 0, ...item fields}.
    Parent frames and the root stay visible, so `{{client.name}}` still resolves
    inside `{{#each parties}}`.
    """

    def __init__(self, metadata: Mapping[str, Any], frames: Sequence[Mapping[str, Any]] = (), today: Optional[date] = None):
        self.metadata = metadata
        self.frames = tuple(frames)
        self.today = today

    def child(self, frame: Mapping[str, Any]) -> "Scope":
        return Scope(self.metadata, self.frames + (frame,), self.today)

    def resolve(self, segments: Sequence[Segment]) -> Any:
        if not segments:
            return MISSING
        head = segments[0]
        for frame in reversed(self.frames):
            if head in frame:
                return lookup(frame, list(segments))
        value = lookup(self.metadata, list(segments))
        if value is MISSING and head == '@today' and len(segments) == 1:
            return self.today or date.today()
        return value


_NUMERIC = (int, float)


def _as_number(value: Any, op: str) -> float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, _NUMERIC):
        return value
    if isinstance(value, str):
        try:
            return float(value) if any(c in value for c in '.eE') else int(value)
        except ValueError:
            pass
    raise UnresolvedExpressionError(f"Operator {op!r} needs numbers, got {to_text(value)!r}")


def _tidy(value: float) -> float:
    return int(value) if isinstance(value, float) and value.is_integer() else value


def loose_equal(left: Any, right: Any) -> bool:
    """Equality with numeric-string and boolean-string coercion."""
    left = None if left is MISSING else left
    right = None if right is MISSING else right
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) or isinstance(right, bool):
        if isinstance(left, bool) and isinstance(right, bool):
            return left == right
        return to_text(left) == to_text(right)
    if isinstance(left, _NUMERIC) and isinstance(right, str) or isinstance(right, _NUMERIC) and isinstance(left, str):
        try:
            return float(left) == float(right)
        except ValueError:
            return False
    if isinstance(left, date) or isinstance(right, date):
        return to_text(left) == to_text(right)
    return left == right


def strict_equal(left: Any, right: Any) -> bool:
    left = None if left is MISSING else left
    right = None if right is MISSING else right
    return kind_of(left) == kind_of(right) and left == right


class Evaluator:
    """Evaluates one parsed expression; records every path that did not resolve."""

    def __init__(self, scope: Scope, helpers: HelperRegistry = default_registry):
        self.scope = scope
        self.helpers = helpers
        self.missing: list[str] = []

    def evaluate(self, node: Node) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, ListLiteral):
            return [self.evaluate(item) for item in node.items]
        if isinstance(node, Path):
            value = self.scope.resolve(node.segments)
            if value is MISSING:
                self.missing.append(node.raw)
            return value
        if isinstance(node, Unary):
            return self._unary(node)
        if isinstance(node, Binary):
            return self._binary(node)
        if isinstance(node, Ternary):
            branch = node.then if is_truthy(self.evaluate(node.condition)) else node.otherwise
            return self.evaluate(branch)
        if isinstance(node, HelperCall):
            return self._call(node)
        raise UnresolvedExpressionError(f"Unsupported expression node: {type(node).__name__}")

    def _unary(self, node: Unary) -> Any:
        value = self.evaluate(node.operand)
        if node.op == '!':
            return not is_truthy(value)
        return _tidy(-_as_number(value, '-'))

    def _binary(self, node: Binary) -> Any:
        op = node.op
        left = self.evaluate(node.left)
        # short-circuit: JS value semantics
        if op == '&&':
            return self.evaluate(node.right) if is_truthy(left) else left
        if op == '||':
            return left if is_truthy(left) else self.evaluate(node.right)
        right = self.evaluate(node.right)
        if op in ('==', '='):
            return loose_equal(left, right)
        if op == '!=':
            return not loose_equal(left, right)
        if op == '===':
            return strict_equal(left, right)
        if op == '!==':
            return not strict_equal(left, right)
        if op in ('<', '>', '<=', '>='):
            return self._compare(op, left, right)
        if op == '+' and (isinstance(left, str) or isinstance(right, str)):
            return to_text(left) + to_text(right)
        a, b = _as_number(left, op), _as_number(right, op)
        if op == '+':
            return _tidy(a + b)
        if op == '-':
            return _tidy(a - b)
        if op == '*':
            return _tidy(a * b)
        if b == 0:
            raise UnresolvedExpressionError("Division by zero")
        if op == '/':
            return _tidy(a / b)
        return _tidy(a % b)

    @staticmethod
    def _compare(op: str, left: Any, right: Any) -> bool:
        if isinstance(left, str) and isinstance(right, str):
            a, b = left, right
        else:
            a, b = _as_number(left, op), _as_number(right, op)
        if op == '<':
            return a < b
        if op == '>':
            return a > b
        if op == '<=':
            return a <= b
        return a >= b

    def _call(self, node: HelperCall) -> Any:
        func = self.helpers.get(node.name)
        if func is None:
            raise UnknownHelperError(f"Unknown helper: {node.name}", context={"helper": node.name})
        args = [self.evaluate(arg) for arg in node.args]
        args = [None if a is MISSING else a for a in args]
        try:
            return func(*args)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise UnresolvedExpressionError(
                f"Helper {node.name} failed: {e}", context={"helper": node.name}
            ) from e


def evaluate_source(source: str, scope: Scope, helpers: HelperRegistry = default_registry) -> Any:
    """Parse and evaluate one expression string."""
    return Evaluator(scope, helpers).evaluate(parse_expression(source))
