"""CLI command implementations"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from legalmd.config import Settings, load_config
from legalmd.core.errors import LegalMarkdownError, ResolutionError
from legalmd.core.export import write_result
from legalmd.core.models import ResolveResult, Severity
from legalmd.core.pipeline import resolve_file


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))


def _logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _run(path: str, settings: Settings, today: Optional[str]) -> ResolveResult:
    try:
        return resolve_file(Path(path), options=settings.resolve_options(today=today))
    except ResolutionError as e:
        for d in e.diagnostics:
            if d.severity == Severity.error:
                typer.echo(f"  [{d.step}] {d.code.value}: {d.message}", err=True)
        _fail("Resolution failed", e)
    except (LegalMarkdownError, OSError, ValueError) as e:
        _fail(f"Cannot resolve {path}", e)


def _echo_diagnostics(result: ResolveResult) -> None:
    for d in result.diagnostics:
        if d.severity != Severity.info:
            typer.echo(f"  {d.severity.value}: [{d.step}] {d.code.value}: {d.message}", err=True)


def resolve_cmd(
    path: Annotated[str, typer.Argument(help="Legal markdown document to resolve")],
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    strict: Annotated[Optional[bool], typer.Option("--strict/--no-strict", help="Fail on frontmatter or error diagnostics")] = None,
    missing: Annotated[Optional[str], typer.Option("--missing-mode", help="keep or empty for unresolved fields")] = None,
    tracing: Annotated[Optional[bool], typer.Option("--import-tracing/--no-import-tracing", help="Mark imported content")] = None,
    export: Annotated[Optional[str], typer.Option("--export", help="Also write a yaml or json metadata sidecar")] = None,
    today: Annotated[Optional[str], typer.Option("--today", help="ISO date used for @today")] = None,
    stdout: Annotated[bool, typer.Option("--stdout", help="Print the resolved document instead of writing it")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    ):
    """Resolve imports, headers, clauses, references and templates in one document."""
    _logging(verbose)
    settings = _settings(overrides={
        "output_dir": out, "strict": strict, "missing_mode": missing,
        "import_tracing": tracing, "export_format": export,
    })
    result = _run(path, settings, today)
    _echo_diagnostics(result)

    if stdout:
        typer.echo(result.content)
        return

    try:
        doc_path, sidecar_path = write_result(result, Path(path), Path(settings.output_dir), export)
    except (LegalMarkdownError, OSError) as e:
        _fail("Write failed", e)
    typer.echo(f"  {path} -> {doc_path}")
    if sidecar_path:
        typer.echo(f"  metadata -> {sidecar_path}")


def fields_cmd(
    path: Annotated[str, typer.Argument(help="Legal markdown document to inspect")],
    today: Annotated[Optional[str], typer.Option("--today", help="ISO date used for @today")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    ):
    """Print the field tracking report for a document."""
    _logging(verbose)
    settings = _settings(overrides={"field_tracking": True})
    report = _run(path, settings, today).field_report
    for record in report.fields:
        typer.echo(f"  {record.status.value:<6} {record.name}")
    typer.echo(
        f"Fields: {report.total} total - "
        f"{report.filled} filled, "
        f"{report.empty} empty, "
        f"{report.logic} logic"
    )
