"""Import resolver: expands '@import path[#section]' lines and merges metadata

Expansion is depth-first and pre-order. Each imported body has its own
imports expanded before it is spliced into the parent, and its metadata
(already merged with its own imports) is merged under the caller's
accumulated metadata, so the caller's values always win.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from legalmd.core.diagnostics import DiagnosticLog
from legalmd.core.errors import CircularImportError, FrontmatterParseError, ImportNotFoundError
from legalmd.core.headers import FENCE_RE
from legalmd.core.merge import MergeStats, merge_metadata
from legalmd.core.models import DiagnosticCode, ImportNode, Severity
from legalmd.core.parse import read_text, split_frontmatter
from legalmd.core.sections import extract_section

logger = logging.getLogger(__name__)

STEP = "imports"

IMPORT_RE = re.compile(r'^[ \t]*@import[ \t]+(?P<target>\S.*?)[ \t]*$')


@dataclass(frozen=True)
class ImportContext:
    """Where a body sits in the inclusion tree; passed down, never mutated."""
    base_dir: Path
    chain: tuple[Path, ...] = ()
    depth: int = 0

    def enter(self, path: Path) -> "ImportContext":
        return ImportContext(path.parent, self.chain + (path,), self.depth + 1)


@dataclass
class ImportSettings:
    max_depth: int = 10
    merge: bool = True
    validate_types: bool = True
    tracing: bool = False


def parse_directive(line: str) -> Optional[tuple[str, Optional[str]]]:
    """Return (path, section) for an import line, else None."""
    m = IMPORT_RE.match(line)
    if not m:
        return None
    target = m.group('target').strip().strip('"\'')
    path, sep, section = target.partition('#')
    if sep and section.strip() and path:
        return path.strip(), section.strip()
    return target, None


def error_marker(message: str) -> str:
    return f"<!-- ERROR: {message} -->"


class ImportResolver:
    """Expands imports for one document run; owns a per-run file content cache."""

    def __init__(
        self,
        settings: Optional[ImportSettings] = None,
        diagnostics: Optional[DiagnosticLog] = None,
        reader: Callable[[Path], str] = read_text,
    ):
        self.settings = settings or ImportSettings()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.reader = reader
        self.cache: dict[Path, str] = {}
        self.imported_files: list[str] = []
        self.stats = MergeStats()

    def _read(self, path: Path) -> str:
        if path not in self.cache:
            self.cache[path] = self.reader(path)
        return self.cache[path]

    def _load(self, source: str, section: Optional[str], ctx: ImportContext) -> ImportNode:
        """Resolve, cycle-check, read and split one import target."""
        path = Path(source)
        path = (path if path.is_absolute() else ctx.base_dir / path).resolve()
        if path in ctx.chain:
            cycle = ' -> '.join(p.name for p in ctx.chain + (path,))
            raise CircularImportError(f"Circular import: {source} ({cycle})", context={"path": str(path)})
        raw = self._read(path)
        try:
            metadata, body = split_frontmatter(raw, strict=True)
        except FrontmatterParseError as e:
            self.diagnostics.from_exception(e, STEP)
            metadata, body = split_frontmatter(raw)
        if section is not None:
            extracted = extract_section(body, section)
            if extracted is None:
                self.diagnostics.warning(
                    DiagnosticCode.section_not_found,
                    f"Section {section!r} not found in {source}; importing the whole file",
                    STEP,
                    path=str(path),
                    section=section,
                )
            else:
                body = extracted
        return ImportNode(source=source, path=path, chain=ctx.chain, section=section, metadata=metadata, body=body)

    def expand(self, body: str, metadata: dict[str, Any], ctx: ImportContext) -> tuple[str, dict[str, Any]]:
        """Expand every directive in body; returns (new body, accumulated metadata)."""
        out: list[str] = []
        in_fence = False
        for line in body.split('\n'):
            if FENCE_RE.match(line):
                in_fence = not in_fence
            directive = None if in_fence else parse_directive(line)
            if directive is None:
                out.append(line)
                continue
            source, section = directive
            if ctx.depth >= self.settings.max_depth:
                self.diagnostics.warning(
                    DiagnosticCode.import_depth_exceeded,
                    f"Import depth {self.settings.max_depth} exceeded at {source}",
                    STEP,
                    path=source,
                )
                out.append(line)
                continue
            try:
                node = self._load(source, section, ctx)
            except CircularImportError as e:
                self.diagnostics.from_exception(e, STEP, Severity.error)
                out.append(error_marker(f"Circular import: {source}"))
                continue
            except ImportNotFoundError as e:
                self.diagnostics.from_exception(e, STEP, Severity.error)
                out.append(error_marker(f"Import not found: {source}"))
                continue

            logger.debug("Importing %s (depth %d)", node.path, ctx.depth + 1)
            self.imported_files.append(str(node.path))
            child_body, child_metadata = self.expand(node.body, node.metadata, ctx.enter(node.path))
            if child_body.endswith('\n'):
                child_body = child_body[:-1]
            if self.settings.merge:
                metadata, stats = merge_metadata(
                    metadata,
                    child_metadata,
                    validate_types=self.settings.validate_types,
                    diagnostics=self.diagnostics,
                    source=source,
                )
                self.stats.extend(stats)
            if self.settings.tracing:
                child_body = f"<!-- start import: {source} -->\n{child_body}\n<!-- end import: {source} -->"
            out.append(child_body)
        return '\n'.join(out), metadata


def base_context(base_path: Optional[Path]) -> ImportContext:
    """Context for a root document: a file path joins the chain, a directory does not."""
    if base_path is None:
        return ImportContext(Path.cwd())
    base_path = Path(base_path).resolve()
    if base_path.is_dir():
        return ImportContext(base_path)
    return ImportContext(base_path.parent, (base_path,))


def resolve_imports(
    body: str,
    metadata: dict[str, Any],
    base_path: Optional[Path] = None,
    settings: Optional[ImportSettings] = None,
    diagnostics: Optional[DiagnosticLog] = None,
) -> tuple[str, dict[str, Any], ImportResolver]:
    resolver = ImportResolver(settings, diagnostics)
    new_body, new_metadata = resolver.expand(body, dict(metadata), base_context(base_path))
    return new_body, new_metadata, resolver
