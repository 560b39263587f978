"""Optional clause processor for [content]{condition} spans"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from legalmd.core.diagnostics import DiagnosticLog
from legalmd.core.errors import ExpressionSyntaxError, UnresolvedExpressionError
from legalmd.core.expressions.evaluator import Evaluator, Scope
from legalmd.core.expressions.parser import parse_expression
from legalmd.core.models import ClauseNode, DiagnosticCode
from legalmd.core.tracking import FieldLedger
from legalmd.core.values import is_truthy

logger = logging.getLogger(__name__)

STEP = "clauses"


def _matching_bracket(text: str, start: int) -> int:
    """Index of the ']' closing the '[' at start, or -1."""
    depth = 0
    for i in range(start, len(text)):
        if text[i] == '[':
            depth += 1
        elif text[i] == ']':
            depth -= 1
            if depth == 0:
                return i
    return -1


def _condition_span(text: str, close: int) -> Optional[tuple[int, int]]:
    """Span of the {condition} right after a ']' (excluding {{ and {# forms)."""
    brace = close + 1
    if not text.startswith('{', brace) or text.startswith('{{', brace) or text.startswith('{#', brace):
        return None
    end = text.find('}', brace)
    if end == -1 or '\n' in text[brace:end]:
        return None
    return brace, end


class ClauseProcessor:
    """Keeps or removes clause spans; nested spans are resolved innermost first."""

    def __init__(
        self,
        metadata: Mapping[str, Any],
        diagnostics: Optional[DiagnosticLog] = None,
        ledger: Optional[FieldLedger] = None,
    ):
        self.scope = Scope(metadata)
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.ledger = ledger
        self.clauses: list[ClauseNode] = []

    def evaluate(self, condition: str) -> bool:
        """Truthiness of a condition; absent paths make the whole condition false."""
        node = parse_expression(condition)
        evaluator = Evaluator(self.scope)
        try:
            value = evaluator.evaluate(node)
        except UnresolvedExpressionError as e:
            self.diagnostics.warning(
                DiagnosticCode.unresolved_condition,
                f"Cannot evaluate clause condition {condition!r}: {e}",
                STEP,
                condition=condition,
            )
            return False
        if evaluator.missing:
            self.diagnostics.warning(
                DiagnosticCode.unresolved_condition,
                f"Clause condition {condition!r} refers to missing {', '.join(evaluator.missing)}",
                STEP,
                condition=condition,
                missing=list(evaluator.missing),
            )
            return False
        return is_truthy(value)

    def process(self, text: str) -> str:
        out: list[str] = []
        i = 0
        while i < len(text):
            start = text.find('[', i)
            if start == -1:
                out.append(text[i:])
                break
            out.append(text[i:start])
            close = _matching_bracket(text, start)
            span = _condition_span(text, close) if close != -1 else None
            if span is None:
                # not a clause; inner brackets may still hold one
                out.append('[')
                i = start + 1
                continue
            brace, end = span
            condition = text[brace + 1:end].strip()
            content = self.process(text[start + 1:close])
            try:
                result = self.evaluate(condition)
            except ExpressionSyntaxError as e:
                self.diagnostics.from_exception(e, STEP)
                out.append(f"[{content}]{text[brace:end + 1]}")
                i = end + 1
                continue
            self.clauses.append(ClauseNode(condition, content, start, end + 1, result))
            if self.ledger is not None:
                self.ledger.record(f"clause:{condition}", result, has_logic=True, helper='conditional')
            if result:
                out.append(content)
            i = end + 1
        return ''.join(out)


def process_clauses(
    body: str,
    metadata: Mapping[str, Any],
    diagnostics: Optional[DiagnosticLog] = None,
    ledger: Optional[FieldLedger] = None,
) -> str:
    processor = ClauseProcessor(metadata, diagnostics, ledger)
    result = processor.process(body)
    logger.debug("Processed %d clauses", len(processor.clauses))
    return result
