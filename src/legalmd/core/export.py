"""Export: write resolved documents and their metadata/field-report sidecars"""

import json
from pathlib import Path
from typing import Any, Optional

import yaml

from legalmd.core.errors import UnsafePathError
from legalmd.core.models import ResolveResult


def build_sidecar(result: ResolveResult, source: Optional[str] = None) -> dict[str, Any]:
    """Sidecar dict: source path, metadata, field report and diagnostics."""
    return {
        "source": source,
        "metadata": result.metadata,
        "field_report": result.field_report.model_dump(mode="json"),
        "diagnostics": [d.model_dump(mode="json") for d in result.diagnostics],
        "imported_files": result.imported_files,
    }


def dump_sidecar(sidecar: dict[str, Any], fmt: str = "json") -> str:
    if fmt == "yaml":
        return yaml.dump(sidecar, default_flow_style=False, allow_unicode=True, sort_keys=False)
    return json.dumps(sidecar, indent=2, ensure_ascii=False, default=str)


def output_dir_for(result: ResolveResult, output_dir: Path) -> Path:
    """output_dir, or the relative output path requested by the document's commands."""
    sub = result.config.output_path
    if not sub:
        return output_dir
    if '..' in sub or Path(sub).is_absolute():
        raise UnsafePathError(f"Unsafe output path: {sub!r}", context={"value": sub})
    return output_dir / sub


def write_result(
    result: ResolveResult,
    source: Path,
    output_dir: Path,
    fmt: Optional[str] = None,
    ) -> tuple[Path, Optional[Path]]:
    """Write <name>.md and, when metadata export is requested, a sidecar.

    The name is the commands' output name if given, else the source stem.
    fmt forces a sidecar in that format even when the document did not ask for one.
    Returns (document_path, sidecar_path_or_None).
    """
    dest_dir = output_dir_for(result, output_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    name = Path(result.config.output).stem if result.config.output else source.stem
    doc_path = dest_dir / f"{name}.md"
    doc_path.write_text(result.content, encoding='utf-8')

    sidecar_fmt = fmt or (result.config.export_format if result.config.export_metadata else None)
    if not sidecar_fmt:
        return doc_path, None
    sidecar_path = dest_dir / f"{name}.metadata.{sidecar_fmt}"
    sidecar_path.write_text(dump_sidecar(build_sidecar(result, str(source)), sidecar_fmt), encoding='utf-8')
    return doc_path, sidecar_path
