"""Data models shared by the resolution pipeline steps"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class Severity(str, Enum):
    error = "error"
    warning = "warning"
    info = "info"


class DiagnosticCode(str, Enum):
    """Closed set of diagnostic kinds a run can report."""
    parse_error = "ParseError"
    import_not_found = "ImportNotFound"
    circular_import = "CircularImport"
    import_depth_exceeded = "ImportDepthExceeded"
    section_not_found = "SectionNotFound"
    reserved_key_filtered = "ReservedKeyFiltered"
    type_conflict = "TypeConflict"
    header_level = "HeaderLevel"
    header_pattern = "HeaderPattern"
    unresolved_condition = "UnresolvedCondition"
    duplicate_anchor = "DuplicateAnchor"
    unresolved_reference = "UnresolvedReference"
    expression_syntax = "ExpressionSyntax"
    unresolved_expression = "UnresolvedExpression"
    unknown_helper = "UnknownHelper"
    protected_command_rejected = "ProtectedCommandRejected"
    unsafe_path_rejected = "UnsafePathRejected"
    invalid_command_value = "InvalidCommandValue"
    internal = "Internal"


class Diagnostic(BaseModel):
    """One recoverable (or, in strict mode, fatal) finding from a pipeline step."""
    code: DiagnosticCode
    message: str
    step: str
    severity: Severity = Severity.warning
    recoverable: bool = True
    context: dict[str, Any] = {}


class FieldStatus(str, Enum):
    filled = "filled"
    empty = "empty"
    logic = "logic"


class FieldRecord(BaseModel):
    """Tracked outcome of one template field or expression."""
    name: str
    value: Any = None
    status: FieldStatus
    has_logic: bool = False
    helper: Optional[str] = None     # helper or construct name (e.g. formatDate, crossref)


class FieldReport(BaseModel):
    total: int = 0
    filled: int = 0
    empty: int = 0
    logic: int = 0
    fields: list[FieldRecord] = []


@dataclass(frozen=True)
class HeaderNode:
    """A numbered legal header; its rendered number never changes after creation."""
    level: int
    marker: str                 # raw marker, e.g. 'lll.' or 'l3.'
    text: str                   # header text with any anchor marker removed
    number: str                 # rendered number/label, e.g. 'Article 1.' or '1.1'
    line: str                   # full rendered line written back into the body
    pattern: str
    anchor: Optional[str] = None


@dataclass
class ClauseNode:
    """A bracketed optional clause; exists only while clauses are evaluated."""
    condition: str
    content: str
    start: int
    end: int
    result: bool = False


@dataclass
class ImportNode:
    """One @import occurrence on its way to being spliced into its parent."""
    source: str                         # path as written in the directive
    path: Path                          # resolved absolute path
    chain: tuple[Path, ...]             # ancestors, root first
    section: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    body: str = ""


@dataclass
class ParsedDoc:
    """Raw text split into frontmatter metadata and body; not persisted."""
    path:     Optional[Path]
    raw:      str              # full text (includes frontmatter)
    body:     str              # body only (frontmatter stripped)
    metadata: dict[str, Any]


class ProcessingConfig(BaseModel):
    """Base processing configuration consumed by renderers outside the core."""
    css_path:        Optional[str] = None
    output:          Optional[str] = None
    output_path:     Optional[str] = None
    pdf:             bool = False
    html:            bool = False
    highlight:       bool = False
    export_yaml:     bool = False
    export_json:     bool = False
    export_metadata: bool = False
    export_format:   Optional[Literal["yaml", "json"]] = None
    format:          Literal["A4", "letter", "legal"] = "A4"
    landscape:       bool = False
    debug:           bool = False
    title:           Optional[str] = None


class CommandDelta(BaseModel):
    """Validated overrides parsed from an embedded command string; None = not given."""
    css:         Optional[str] = None
    output:      Optional[str] = None
    output_path: Optional[str] = None
    pdf:         Optional[bool] = None
    html:        Optional[bool] = None
    highlight:   Optional[bool] = None
    export_yaml: Optional[bool] = None
    export_json: Optional[bool] = None
    format:      Optional[Literal["A4", "letter", "legal"]] = None
    landscape:   Optional[bool] = None
    debug:       Optional[bool] = None
    title:       Optional[str] = None


class ResolveOptions(BaseModel):
    """Per-call switches for resolve(); built from Settings or passed directly."""
    strict:                bool = False
    missing_mode:          Literal["keep", "empty"] = "keep"
    import_tracing:        bool = False
    merge_metadata:        bool = True
    validate_types:        bool = True
    max_import_depth:      int = Field(default=10, ge=1)
    enable_field_tracking: bool = True
    today:                 Optional[date] = None
    base_config:           ProcessingConfig = Field(default_factory=ProcessingConfig)


class ResolveResult(BaseModel):
    """Everything one document run produces."""
    content: str
    metadata: dict[str, Any]
    field_report: FieldReport
    diagnostics: list[Diagnostic] = []
    headers: list[dict[str, Any]] = []
    imported_files: list[str] = []
    merge_stats: dict[str, list[str]] = {}
    config: ProcessingConfig = Field(default_factory=ProcessingConfig)
