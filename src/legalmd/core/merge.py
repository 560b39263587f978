"""Metadata merge for imports: reserved-key filter and current-wins deep merge"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from legalmd.core.diagnostics import DiagnosticLog
from legalmd.core.errors import TypeConflictError
from legalmd.core.models import DiagnosticCode
from legalmd.core.values import ValueKind, kind_of

logger = logging.getLogger(__name__)

STEP = "imports"

# Keys an imported document may never introduce (compared case-insensitively).
RESERVED_FIELDS = frozenset({
    # header numbering
    'level-one', 'level-two', 'level-three', 'level-four', 'level-five',
    'level-six', 'level-seven', 'level-eight', 'level-nine',
    'level-indent', 'no-reset', 'no-indent',
    # output
    'meta-yaml-output', 'meta-json-output', 'meta-output-path', 'meta-include-original',
    # locale
    'date-format', 'dateformat', 'timezone', 'tz', 'locale', 'lang',
    # embedded commands
    'force_commands', 'force-commands', 'forcecommands', 'commands',
    # processing
    'import-tracing', 'import-tracing-format', 'disable-frontmatter-merge',
    'pipeline-config', 'pipeline-steps', 'processing-options',
    'enable-field-tracking', 'field-tracking-mode',
    # computed by the pipeline
    '_cross_references',
})

_STRING_PAIRS = (
    {ValueKind.string, ValueKind.number},
    {ValueKind.string, ValueKind.boolean},
)


@dataclass
class MergeStats:
    """What one import merge did, by dotted key path."""
    added: list[str] = field(default_factory=list)
    conflicted: list[str] = field(default_factory=list)
    filtered: list[str] = field(default_factory=list)
    type_conflicts: list[str] = field(default_factory=list)

    def extend(self, other: "MergeStats") -> None:
        self.added += other.added
        self.conflicted += other.conflicted
        self.filtered += other.filtered
        self.type_conflicts += other.type_conflicts


def is_reserved(key: str) -> bool:
    return str(key).lower() in RESERVED_FIELDS


def filter_reserved(metadata: Mapping[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Return (metadata without reserved top-level keys, removed keys)."""
    kept, removed = {}, []
    for key, value in metadata.items():
        if is_reserved(key):
            removed.append(key)
        else:
            kept[key] = value
    return kept, removed


def compatible(current: Any, incoming: Any) -> bool:
    """Null fits anything and strings pair with numbers or booleans; otherwise kinds must match."""
    a, b = kind_of(current), kind_of(incoming)
    if ValueKind.null in (a, b) or a == b:
        return True
    return {a, b} in _STRING_PAIRS


def _merge(current: dict[str, Any], incoming: Mapping[str, Any], prefix: str, validate_types: bool, stats: MergeStats) -> dict[str, Any]:
    merged = dict(current)
    for key, value in incoming.items():
        path = f"{prefix}{key}"
        if key not in merged:
            merged[key] = copy.deepcopy(value)
            stats.added.append(path)
            continue
        existing = merged[key]
        if isinstance(existing, dict) and isinstance(value, Mapping):
            merged[key] = _merge(existing, value, f"{path}.", validate_types, stats)
            continue
        if validate_types and not compatible(existing, value):
            stats.type_conflicts.append(path)
        elif existing != value:
            stats.conflicted.append(path)
    return merged


def merge_metadata(
    current: Mapping[str, Any],
    imported: Mapping[str, Any],
    validate_types: bool = True,
    diagnostics: Optional[DiagnosticLog] = None,
    source: Optional[str] = None,
) -> tuple[dict[str, Any], MergeStats]:
    """Merge imported metadata under current metadata; never mutates either input.

    Current values always win on collision. Reserved keys are dropped from the
    imported side before merging. With validate_types, a structurally
    incompatible imported value is reported as a type conflict.
    """
    stats = MergeStats()
    incoming, removed = filter_reserved(imported)
    stats.filtered.extend(removed)
    merged = _merge(dict(current), incoming, "", validate_types, stats)

    if diagnostics is not None:
        for key in removed:
            diagnostics.info(
                DiagnosticCode.reserved_key_filtered,
                f"Reserved key {key!r} from {source or 'import'} ignored",
                STEP,
                key=key,
                source=source,
            )
        for path in stats.type_conflicts:
            conflict = TypeConflictError(
                f"Imported value for {path!r} from {source or 'import'} has an incompatible type; kept current value",
                context={"key": path, "source": source},
            )
            diagnostics.from_exception(conflict, STEP)
    logger.debug(
        "Merged %s: %d added, %d conflicted, %d filtered, %d type conflicts",
        source or 'metadata', len(stats.added), len(stats.conflicted),
        len(stats.filtered), len(stats.type_conflicts),
    )
    return merged, stats
