"""Pipeline orchestration: imports, commands, headers, clauses, references, dates, templates"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, TypeVar

from legalmd.core.clauses import process_clauses
from legalmd.core.commands import interpret
from legalmd.core.dates import process_dates
from legalmd.core.diagnostics import DiagnosticLog
from legalmd.core.errors import FrontmatterParseError, LegalMarkdownError, ResolutionError
from legalmd.core.headers import number_headers
from legalmd.core.imports import ImportSettings, resolve_imports
from legalmd.core.models import ParsedDoc, ResolveOptions, ResolveResult, Severity
from legalmd.core.parse import parse_text, read_text
from legalmd.core.references import resolve_references
from legalmd.core.template import TemplateEngine
from legalmd.core.tracking import FieldLedger

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _step(name: str, diagnostics: DiagnosticLog, fallback: T, func: Callable[[], T]) -> T:
    """Run one step; a core error escaping it becomes a diagnostic and the input passes through."""
    logger.debug("Step %s", name)
    try:
        return func()
    except LegalMarkdownError as e:
        diagnostics.from_exception(e, name, Severity.error)
        return fallback


def _split_root(raw_text: str, base_path: Optional[Path], strict: bool, diagnostics: DiagnosticLog) -> ParsedDoc:
    try:
        return parse_text(raw_text, base_path, strict=True)
    except FrontmatterParseError as e:
        if strict:
            raise
        diagnostics.from_exception(e, "frontmatter")
        return parse_text(raw_text, base_path)


def resolve(
    raw_text: str,
    base_path: Optional[Path] = None,
    root_metadata: Optional[Mapping[str, Any]] = None,
    options: Optional[ResolveOptions] = None,
) -> ResolveResult:
    """Resolve one document into final text, metadata, a field report and diagnostics.

    base_path is the document's own path (or the directory imports are
    relative to). root_metadata supplies defaults; the document's own
    frontmatter wins over it. Each call builds its own ledger and counters.
    """
    options = options or ResolveOptions()
    diagnostics = DiagnosticLog()
    ledger = FieldLedger(enabled=options.enable_field_tracking)

    doc = _split_root(raw_text, base_path, options.strict, diagnostics)
    body = doc.body
    metadata: dict[str, Any] = {**dict(root_metadata or {}), **doc.metadata}

    # imports
    settings = ImportSettings(
        max_depth=options.max_import_depth,
        merge=options.merge_metadata and not metadata.get('disable-frontmatter-merge', False),
        validate_types=options.validate_types,
        tracing=options.import_tracing or bool(metadata.get('import-tracing', False)),
    )
    imported_files: list[str] = []
    merge_stats: dict[str, list[str]] = {}

    def run_imports() -> tuple[str, dict[str, Any]]:
        new_body, new_metadata, resolver = resolve_imports(body, metadata, base_path, settings, diagnostics)
        imported_files.extend(resolver.imported_files)
        merge_stats.update(dataclasses.asdict(resolver.stats))
        return new_body, new_metadata

    body, metadata = _step("imports", diagnostics, (body, metadata), run_imports)

    # embedded commands, rendered against the merged metadata
    def render_command(text: str) -> str:
        engine = TemplateEngine(metadata, FieldLedger(enabled=False), diagnostics, today=options.today)
        return engine.render(text)

    config, _ = _step(
        "commands", diagnostics, (options.base_config, None),
        lambda: interpret(metadata, options.base_config, render_command, diagnostics),
    )

    headers: list = []

    def run_headers() -> str:
        new_body, nodes = number_headers(body, metadata, diagnostics)
        headers.extend(nodes)
        return new_body

    body = _step("headers", diagnostics, body, run_headers)
    body = _step("clauses", diagnostics, body, lambda: process_clauses(body, metadata, diagnostics, ledger))

    anchors: list = []

    def run_references() -> str:
        new_body, found = resolve_references(body, headers, metadata, diagnostics, ledger)
        anchors.extend(found)
        return new_body

    body = _step("references", diagnostics, body, run_references)
    body = _step("dates", diagnostics, body, lambda: process_dates(body, metadata, options.today, diagnostics, ledger))

    engine = TemplateEngine(metadata, ledger, diagnostics, missing_mode=options.missing_mode, today=options.today)
    body = _step("template", diagnostics, body, lambda: engine.render(body))

    result_metadata = dict(metadata)
    if anchors:
        result_metadata['_cross_references'] = [a.as_dict() for a in anchors]

    if options.strict and diagnostics.has_errors:
        errors = [d for d in diagnostics if d.severity == Severity.error]
        raise ResolutionError(
            f"Resolution finished with {len(errors)} error(s): {errors[0].message}",
            diagnostics=diagnostics.items,
        )

    logger.info(
        "Resolved document: %d headers, %d imports, %d diagnostics",
        len(headers), len(imported_files), len(diagnostics),
    )
    return ResolveResult(
        content=body,
        metadata=result_metadata,
        field_report=ledger.report(),
        diagnostics=diagnostics.items,
        headers=[dataclasses.asdict(h) for h in headers],
        imported_files=imported_files,
        merge_stats=merge_stats,
        config=config,
    )


def resolve_file(
    path: Path,
    root_metadata: Optional[Mapping[str, Any]] = None,
    options: Optional[ResolveOptions] = None,
) -> ResolveResult:
    """Read and resolve a document file; an unreadable root raises ImportNotFoundError."""
    path = Path(path)
    return resolve(read_text(path), path, root_metadata, options)
