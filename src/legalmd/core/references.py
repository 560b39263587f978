"""Cross-reference resolver: |key| tokens become the anchored header's number"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from legalmd.core.diagnostics import DiagnosticLog
from legalmd.core.errors import UnresolvedReferenceError
from legalmd.core.headers import FENCE_RE
from legalmd.core.models import DiagnosticCode, HeaderNode
from legalmd.core.tracking import FieldLedger
from legalmd.core.values import MISSING, lookup, to_text

logger = logging.getLogger(__name__)

STEP = "references"

REFERENCE_RE = re.compile(r'\|([\w.-]+)\|')
INLINE_ANCHOR_RE = re.compile(r'[ \t]*(?<!\{)\{#([\w.-]+)\}(?!\})')


@dataclass(frozen=True)
class Anchor:
    key: str
    number: str
    text: str

    def as_dict(self) -> dict[str, str]:
        return {"key": self.key, "number": self.number, "text": self.text}


class ReferenceResolver:
    """Two passes over an already-numbered body: collect anchors, then substitute."""

    def __init__(
        self,
        headers: Sequence[HeaderNode],
        metadata: Mapping[str, Any],
        diagnostics: Optional[DiagnosticLog] = None,
        ledger: Optional[FieldLedger] = None,
    ):
        self.headers = list(headers)
        self.metadata = metadata
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.ledger = ledger
        self.anchors: dict[str, Anchor] = {}

    def _declare(self, key: str, header: Optional[HeaderNode]) -> None:
        if header is None:
            self.diagnostics.warning(
                DiagnosticCode.unresolved_reference,
                f"Anchor {{#{key}}} has no preceding header",
                STEP,
                key=key,
            )
            return
        if key in self.anchors:
            self.diagnostics.warning(
                DiagnosticCode.duplicate_anchor,
                f"Duplicate anchor {key!r} ignored; first declared on {self.anchors[key].number}",
                STEP,
                key=key,
            )
            return
        self.anchors[key] = Anchor(key, header.number, header.text)

    def collect(self, body: str) -> str:
        """Pass 1: register header and inline anchors; inline markers are removed."""
        out = []
        seen = 0
        current: Optional[HeaderNode] = None
        in_fence = False
        for line in body.split('\n'):
            if FENCE_RE.match(line):
                in_fence = not in_fence
            if in_fence:
                out.append(line)
                continue
            # Forward search: headers dropped by an earlier step are skipped
            # but their anchors still count, in document order.
            match = next((j for j in range(seen, len(self.headers)) if self.headers[j].line == line), None)
            if match is not None:
                for header in self.headers[seen:match + 1]:
                    if header.anchor:
                        self._declare(header.anchor, header)
                current, seen = self.headers[match], match + 1
            if INLINE_ANCHOR_RE.search(line):
                for m in INLINE_ANCHOR_RE.finditer(line):
                    self._declare(m.group(1), current)
                line = INLINE_ANCHOR_RE.sub('', line)
            out.append(line)
        for header in self.headers[seen:]:
            if header.anchor:
                self._declare(header.anchor, header)
        return '\n'.join(out)

    def _replace(self, m: re.Match) -> str:
        key = m.group(1)
        anchor = self.anchors.get(key)
        if anchor is not None:
            if self.ledger is not None:
                self.ledger.record(f"crossref.{key}", anchor.number, has_logic=True, helper='crossref')
            return anchor.number
        value = lookup(self.metadata, key)
        if value is not MISSING:
            if self.ledger is not None:
                self.ledger.record(f"crossref.{key}", value, helper='crossref')
            return to_text(value)
        self.diagnostics.from_exception(
            UnresolvedReferenceError(f"Unresolved cross-reference {m.group(0)}", context={"key": key}),
            STEP,
        )
        return m.group(0)

    def substitute(self, body: str) -> str:
        """Pass 2: replace |key| tokens. Table rows (lines starting with '|') are skipped."""
        out = []
        in_fence = False
        for line in body.split('\n'):
            if FENCE_RE.match(line):
                in_fence = not in_fence
            if in_fence or line.lstrip().startswith('|'):
                out.append(line)
                continue
            out.append(REFERENCE_RE.sub(self._replace, line))
        return '\n'.join(out)

    def resolve(self, body: str) -> str:
        return self.substitute(self.collect(body))


def resolve_references(
    body: str,
    headers: Sequence[HeaderNode],
    metadata: Mapping[str, Any],
    diagnostics: Optional[DiagnosticLog] = None,
    ledger: Optional[FieldLedger] = None,
) -> tuple[str, list[Anchor]]:
    resolver = ReferenceResolver(headers, metadata, diagnostics, ledger)
    result = resolver.resolve(body)
    logger.debug("Resolved cross-references against %d anchors", len(resolver.anchors))
    return result, list(resolver.anchors.values())
