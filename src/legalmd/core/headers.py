"""Header numbering engine for legal header markers (l., ll., l3., ...)"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from legalmd.core.diagnostics import DiagnosticLog
from legalmd.core.errors import HeaderLevelError
from legalmd.core.models import DiagnosticCode, HeaderNode
from legalmd.core.utils.numbering import to_alpha, to_roman

logger = logging.getLogger(__name__)

STEP = "headers"

MAX_LEVEL = 9

LEVEL_KEYS = {
    1: 'level-one', 2: 'level-two', 3: 'level-three',
    4: 'level-four', 5: 'level-five', 6: 'level-six',
    7: 'level-seven', 8: 'level-eight', 9: 'level-nine',
}

DEFAULT_PATTERNS = {
    1: 'Article %n.',
    2: 'Section %n.',
    3: '(%n)',
    4: '(%a)',
    5: '(%r)',
    6: '%n.', 7: '%n.', 8: '%n.', 9: '%n.',
}

FALLBACK_PATTERN = '%n.'

# l1. Title | lll. Title  (explicit depth first so 'l1.' is not read as a run of one)
HEADER_RE = re.compile(r'^(?:l(?P<num>\d+)|(?P<run>l+))\.[ \t]+(?P<text>.*?)[ \t]*$')
ANCHOR_RE = re.compile(r'[ \t]*(?:\|(?P<pipe>[\w.-]+)\||(?<!\{)\{#(?P<brace>[\w.-]+)\}(?!\}))$')
FENCE_RE = re.compile(r'^[ \t]*(```|~~~)')

PLACEHOLDER_RE = re.compile(r'%(?:0(?P<width>\d+))?(?P<kind>[nAaRrcs])')
_NUMERIC_KINDS = 'nAaRr'


@dataclass
class HeaderOptions:
    """Document-level numbering configuration read from metadata."""
    patterns: dict[int, Any] = field(default_factory=lambda: dict(DEFAULT_PATTERNS))
    no_reset: bool = False
    no_indent: bool = False
    indent: Optional[float] = None

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any]) -> "HeaderOptions":
        patterns = dict(DEFAULT_PATTERNS)
        for level, key in LEVEL_KEYS.items():
            if key in metadata and metadata[key] is not None:
                patterns[level] = metadata[key]
        indent = metadata.get('level-indent')
        try:
            indent = float(indent) if indent is not None else None
        except (TypeError, ValueError):
            indent = None
        return cls(
            patterns=patterns,
            no_reset=bool(metadata.get('no-reset', False)),
            no_indent=bool(metadata.get('no-indent', False)),
            indent=indent,
        )


def pattern_is_valid(pattern: Any, level: int) -> bool:
    """A pattern is valid when every % starts a known placeholder and it has no
    more numeric placeholders than there are levels above and including it."""
    if not isinstance(pattern, str) or not pattern.strip():
        return False
    if '%' in PLACEHOLDER_RE.sub('', pattern):
        return False
    numeric = [m for m in PLACEHOLDER_RE.finditer(pattern) if m.group('kind') in _NUMERIC_KINDS]
    return len(numeric) <= level


def _label(kind: str, value: int, width: Optional[str]) -> str:
    if kind == 'n':
        return str(value).zfill(int(width)) if width else str(value)
    if kind == 'A':
        return to_alpha(value, upper=True)
    if kind == 'a':
        return to_alpha(value)
    if kind == 'R':
        return to_roman(value)
    return to_roman(value, upper=False)


def render_pattern(pattern: str, level: int, counters: list[int], text: str = '') -> str:
    """Substitute placeholders for a header at `level`.

    With k numeric placeholders, the i-th (1-based) shows the counter of level
    level - k + i, so '%n.%n' at level 2 renders '<parent>.<current>'.
    """
    numeric = [m for m in PLACEHOLDER_RE.finditer(pattern) if m.group('kind') in _NUMERIC_KINDS]
    first_level = level - len(numeric) + 1
    position = iter(range(first_level, level + 1))

    def substitute(m: re.Match) -> str:
        kind = m.group('kind')
        if kind == 's':
            return text
        if kind == 'c':
            return str(counters[level])
        return _label(kind, counters[next(position)], m.group('width'))

    return PLACEHOLDER_RE.sub(substitute, pattern)


def parse_marker(line: str) -> Optional[tuple[int, str, str]]:
    """Return (level, marker, text) for a header line, else None."""
    m = HEADER_RE.match(line)
    if not m:
        return None
    if m.group('num') is not None:
        level = int(m.group('num'))
        marker = f"l{m.group('num')}."
    else:
        level = len(m.group('run'))
        marker = f"{m.group('run')}."
    return level, marker, m.group('text')


def split_anchor(text: str) -> tuple[str, Optional[str]]:
    """Strip a trailing |key| or {#key} anchor from header text."""
    m = ANCHOR_RE.search(text)
    if not m:
        return text, None
    return text[:m.start()].rstrip(), m.group('pipe') or m.group('brace')


class HeaderNumberer:
    """Owns the level counters for one document pass."""

    def __init__(self, options: HeaderOptions, diagnostics: Optional[DiagnosticLog] = None):
        self.options = options
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.counters = [0] * (MAX_LEVEL + 1)
        self._fallback_warned: set[int] = set()

    def current(self, level: int) -> int:
        """Current counter value for a level."""
        return self.counters[level]

    def advance(self, level: int) -> None:
        if not 1 <= level <= MAX_LEVEL:
            raise HeaderLevelError(
                f"Header level {level} is outside 1..{MAX_LEVEL}", context={"level": level}
            )
        self.counters[level] += 1
        if not self.options.no_reset:
            for deeper in range(level + 1, MAX_LEVEL + 1):
                self.counters[deeper] = 0

    def pattern_for(self, level: int) -> str:
        pattern = self.options.patterns.get(level, FALLBACK_PATTERN)
        if pattern_is_valid(pattern, level):
            return pattern
        if level not in self._fallback_warned:
            self._fallback_warned.add(level)
            self.diagnostics.warning(
                DiagnosticCode.header_pattern,
                f"Invalid header pattern {pattern!r} for level {level}; using {FALLBACK_PATTERN!r}",
                STEP,
                level=level,
                pattern=str(pattern),
            )
        return FALLBACK_PATTERN

    def number(self, level: int, marker: str, raw_text: str) -> HeaderNode:
        """Advance the counters and build the immutable header node."""
        self.advance(level)
        text, anchor = split_anchor(raw_text)
        pattern = self.pattern_for(level)
        if '%s' in pattern:
            line = render_pattern(pattern, level, self.counters, text)
            number = render_pattern(pattern.replace('%s', ''), level, self.counters).strip()
        else:
            number = render_pattern(pattern, level, self.counters)
            line = f"{number} {text}" if text else number
        if self.options.indent is not None and not self.options.no_indent:
            line = ' ' * math.floor((level - 1) * self.options.indent * 2) + line
        return HeaderNode(
            level=level,
            marker=marker,
            text=text,
            number=number,
            line=line,
            pattern=pattern,
            anchor=anchor,
        )


def number_headers(
    body: str,
    metadata: Mapping[str, Any],
    diagnostics: Optional[DiagnosticLog] = None,
) -> tuple[str, list[HeaderNode]]:
    """Number every header line in document order; returns (body, headers).

    Lines inside fenced code blocks are left alone. A header deeper than the
    supported levels is left as written and reported.
    """
    diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
    numberer = HeaderNumberer(HeaderOptions.from_metadata(metadata), diagnostics)
    headers: list[HeaderNode] = []
    out: list[str] = []
    in_fence = False

    for line in body.split('\n'):
        if FENCE_RE.match(line):
            in_fence = not in_fence
            out.append(line)
            continue
        parsed = None if in_fence else parse_marker(line)
        if parsed is None:
            out.append(line)
            continue
        level, marker, raw_text = parsed
        try:
            node = numberer.number(level, marker, raw_text)
        except HeaderLevelError as e:
            diagnostics.from_exception(e, STEP)
            out.append(line)
            continue
        headers.append(node)
        out.append(node.line)

    logger.debug("Numbered %d headers", len(headers))
    return '\n'.join(out), headers
