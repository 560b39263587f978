"""Template engine: {{expression}} substitution plus block helpers

Supported forms:
- {{path}}, {{helper(arg, ...)}}, {{cond ? a : b}} - substitutions
- {{#if cond}}...{{else}}...{{/if}} - conditionals
- {{#unless cond}}...{{else}}...{{/unless}} - negated conditionals
- {{#each path}}...{{else}}...{{/each}} - loops over sequences (or mapping values)
- {{#path}}...{{/path}} - section shorthand over a sequence, mapping or flag
- {{this}}, {{this.prop}}, {{@index}}, {{@first}}, {{@last}}, {{@key}} - loop bindings

Block tags standing alone on a line consume that line, so blocks can be
written one tag per line without leaving blank lines behind.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterator, Mapping, Optional, Union

from legalmd.core.diagnostics import DiagnosticLog
from legalmd.core.errors import ExpressionSyntaxError, LegalMarkdownError, UnresolvedExpressionError
from legalmd.core.expressions.evaluator import Evaluator, Scope
from legalmd.core.expressions.helpers import HelperRegistry, registry as default_registry
from legalmd.core.expressions.parser import Binary, HelperCall, Path, Ternary, Unary, helper_names, iter_nodes, parse_expression
from legalmd.core.models import DiagnosticCode, Severity
from legalmd.core.tracking import FieldLedger
from legalmd.core.values import MISSING, is_truthy, to_text

logger = logging.getLogger(__name__)

STEP = "template"

TAG_RE = re.compile(r'\{\{(.*?)\}\}', re.DOTALL)

_OPEN_RE = re.compile(r'^#(if|unless|each)\s+(.+)$', re.DOTALL)
_SECTION_RE = re.compile(r'^#([A-Za-z_@$][\w.$-]*)$')
_CLOSE_RE = re.compile(r'^/([A-Za-z_@$][\w.$-]*)$')


# --- template AST ---

@dataclass
class Text:
    value: str


@dataclass
class Substitution:
    source: str
    raw: str


@dataclass
class Conditional:
    source: str
    raw: str
    negate: bool = False
    then: list["Block"] = field(default_factory=list)
    otherwise: list["Block"] = field(default_factory=list)
    has_else: bool = False


@dataclass
class Loop:
    source: str
    raw: str
    shorthand: bool = False
    body: list["Block"] = field(default_factory=list)
    otherwise: list["Block"] = field(default_factory=list)
    has_else: bool = False


Block = Union[Text, Substitution, Conditional, Loop]


def _is_block_tag(inner: str) -> bool:
    return inner == 'else' or inner[:1] in '#/'


def _segments(text: str) -> Iterator[tuple[str, str, str]]:
    """Yield ('text', value, value) and ('tag', inner, raw) pieces in order."""
    pos = 0
    for m in TAG_RE.finditer(text):
        if m.start() < pos:
            continue
        start, end = m.span()
        inner = m.group(1).strip()
        if _is_block_tag(inner):
            line_start = text.rfind('\n', 0, start) + 1
            line_end = text.find('\n', end)
            line_end = len(text) if line_end == -1 else line_end
            if line_start >= pos and not text[line_start:start].strip() and not text[end:line_end].strip():
                start = line_start
                end = min(line_end + 1, len(text))
        if start > pos:
            yield 'text', text[pos:start], text[pos:start]
        yield 'tag', inner, m.group(0)
        pos = end
    if pos < len(text):
        yield 'text', text[pos:], text[pos:]


@dataclass
class _Open:
    node: Union[Conditional, Loop]
    name: str
    in_else: bool = False

    @property
    def target(self) -> list:
        if self.in_else:
            return self.node.otherwise
        return self.node.body if isinstance(self.node, Loop) else self.node.then


def parse_template(text: str, diagnostics: Optional[DiagnosticLog] = None) -> list[Block]:
    """Build the block tree. Unbalanced block tags are kept as literal text."""
    root: list[Block] = []
    stack: list[_Open] = []

    def current() -> list:
        return stack[-1].target if stack else root

    def warn(message: str, raw: str) -> None:
        if diagnostics is not None:
            diagnostics.warning(DiagnosticCode.expression_syntax, message, STEP, tag=raw)

    for kind, value, raw in _segments(text):
        if kind == 'text':
            current().append(Text(value))
            continue
        if m := _OPEN_RE.match(value):
            name, source = m.group(1), m.group(2).strip()
            if name == 'each':
                node = Loop(source, raw)
            else:
                node = Conditional(source, raw, negate=(name == 'unless'))
            current().append(node)
            stack.append(_Open(node, name))
        elif value == 'else':
            if stack and not stack[-1].in_else:
                stack[-1].in_else = True
                stack[-1].node.has_else = True
            else:
                warn("Stray {{else}} outside a block", raw)
                current().append(Text(raw))
        elif m := _SECTION_RE.match(value):
            node = Loop(m.group(1), raw, shorthand=True)
            current().append(node)
            stack.append(_Open(node, m.group(1)))
        elif m := _CLOSE_RE.match(value):
            if stack and stack[-1].name == m.group(1):
                stack.pop()
            else:
                warn(f"Unmatched closing tag {raw}", raw)
                current().append(Text(raw))
        elif value.startswith('#') or value.startswith('/'):
            warn(f"Malformed block tag {raw}", raw)
            current().append(Text(raw))
        else:
            current().append(Substitution(value, raw))

    # Unclosed blocks fall back to literal open tags with their parsed content.
    while stack:
        frame = stack.pop()
        warn(f"Unclosed block {frame.node.raw}", frame.node.raw)
        parent = stack[-1].target if stack else root
        idx = next(i for i, n in enumerate(parent) if n is frame.node)
        node = frame.node
        first = node.body if isinstance(node, Loop) else node.then
        flattened: list[Block] = [Text(node.raw), *first]
        if node.has_else:
            flattened += [Text('{{else}}'), *node.otherwise]
        parent[idx:idx + 1] = flattened
    return root


def _is_logic(node) -> bool:
    return any(isinstance(n, (HelperCall, Ternary, Binary, Unary)) for n in iter_nodes(node))


class TemplateEngine:
    """Renders one body against metadata, recording each leaf field in the ledger."""

    def __init__(
        self,
        metadata: Mapping[str, Any],
        ledger: Optional[FieldLedger] = None,
        diagnostics: Optional[DiagnosticLog] = None,
        missing_mode: str = "keep",
        today: Optional[date] = None,
        helpers: HelperRegistry = default_registry,
    ):
        self.metadata = metadata
        self.ledger = ledger if ledger is not None else FieldLedger()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.missing_mode = missing_mode
        self.helpers = helpers
        self.scope = Scope(metadata, today=today)

    def render(self, text: str) -> str:
        if '{{' not in text:
            return text
        blocks = parse_template(text, self.diagnostics)
        logger.debug("Rendering %d template blocks", len(blocks))
        return self._render_blocks(blocks, self.scope)

    # --- rendering ---

    def _render_blocks(self, blocks: list[Block], scope: Scope) -> str:
        out = []
        for block in blocks:
            if isinstance(block, Text):
                out.append(block.value)
            elif isinstance(block, Substitution):
                out.append(self._substitute(block, scope))
            elif isinstance(block, Conditional):
                out.append(self._conditional(block, scope))
            else:
                out.append(self._loop(block, scope))
        return ''.join(out)

    def _record_failure(self, exc: LegalMarkdownError, raw: str) -> None:
        self.diagnostics.add(exc.code, str(exc), STEP, Severity.warning, expression=raw)

    def _substitute(self, block: Substitution, scope: Scope) -> str:
        try:
            node = parse_expression(block.source)
        except ExpressionSyntaxError as e:
            self._record_failure(e, block.raw)
            return block.raw

        helpers = helper_names(node)
        in_loop = bool(scope.frames)
        has_logic = _is_logic(node) or in_loop
        helper = helpers[0] if helpers else ('loop' if in_loop else None)
        name = node.raw if isinstance(node, Path) else block.source

        evaluator = Evaluator(scope, self.helpers)
        try:
            value = evaluator.evaluate(node)
        except UnresolvedExpressionError as e:
            self._record_failure(e, block.raw)
            self.ledger.record(name, None, has_logic=True, helper=helper)
            return block.raw

        if value is MISSING:
            self.ledger.record(name, None, has_logic=has_logic, helper=helper)
            self.diagnostics.info(
                DiagnosticCode.unresolved_expression,
                f"No value for {name}",
                STEP,
                expression=block.raw,
            )
            return block.raw if self.missing_mode == "keep" else ""

        self.ledger.record(name, value, has_logic=has_logic, helper=helper)
        return to_text(value)

    def _evaluate_condition(self, source: str, raw: str, scope: Scope) -> Any:
        try:
            node = parse_expression(source)
            return Evaluator(scope, self.helpers).evaluate(node)
        except (ExpressionSyntaxError, UnresolvedExpressionError) as e:
            self._record_failure(e, raw)
            return False

    def _conditional(self, block: Conditional, scope: Scope) -> str:
        value = self._evaluate_condition(block.source, block.raw, scope)
        self.ledger.record(block.source, None if value is MISSING else value, has_logic=True, helper='conditional')
        passed = is_truthy(value) != block.negate
        return self._render_blocks(block.then if passed else block.otherwise, scope)

    def _loop(self, block: Loop, scope: Scope) -> str:
        value = self._evaluate_condition(block.source, block.raw, scope)
        self.ledger.record(block.source, None if value is MISSING else value, has_logic=True, helper='loop')

        if isinstance(value, Mapping) and not block.shorthand:
            items = [(key, item) for key, item in value.items()]
        elif isinstance(value, (list, tuple)):
            items = [(None, item) for item in value]
        elif block.shorthand and is_truthy(value):
            # Non-sequence section: render once with the value in scope
            items = [(None, value)]
        else:
            items = []

        if not items:
            return self._render_blocks(block.otherwise, scope)

        out = []
        last = len(items) - 1
        for i, (key, item) in enumerate(items):
            frame: dict[str, Any] = dict(item) if isinstance(item, Mapping) else {}
            frame.update({'this': item, '@index': i, '@first': i == 0, '@last': i == last})
            if key is not None:
                frame['@key'] = key
            out.append(self._render_blocks(block.body, scope.child(frame)))
        return ''.join(out)


def render_template(
    text: str,
    metadata: Mapping[str, Any],
    ledger: Optional[FieldLedger] = None,
    diagnostics: Optional[DiagnosticLog] = None,
    missing_mode: str = "keep",
    today: Optional[date] = None,
) -> str:
    """Render text against metadata with a throwaway engine."""
    engine = TemplateEngine(metadata, ledger, diagnostics, missing_mode=missing_mode, today=today)
    return engine.render(text)
