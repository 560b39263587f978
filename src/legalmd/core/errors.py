"""Exception taxonomy for the resolution pipeline"""

from __future__ import annotations

from typing import Any, Mapping

from legalmd.core.models import DiagnosticCode


class LegalMarkdownError(Exception):
    """Base exception for every failure raised inside the core."""

    code: DiagnosticCode = DiagnosticCode.internal
    context: dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = dict(context) if context is not None else {}

    def to_json_error(self) -> dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {"message": str(self), "code": self.code.value, "context": self.context}


class FrontmatterParseError(LegalMarkdownError, ValueError):
    """Raised when a metadata block is not valid YAML or not a mapping."""
    code = DiagnosticCode.parse_error


class ImportNotFoundError(LegalMarkdownError, FileNotFoundError):
    """Raised when an imported (or root) document cannot be read."""
    code = DiagnosticCode.import_not_found


class CircularImportError(LegalMarkdownError):
    """Raised when an import names a file already in its ancestor chain."""
    code = DiagnosticCode.circular_import


class ExpressionSyntaxError(LegalMarkdownError, ValueError):
    """Raised by the expression lexer/parser on malformed input."""
    code = DiagnosticCode.expression_syntax


class UnresolvedExpressionError(LegalMarkdownError):
    """Raised when an expression cannot produce a value (bad operands, helper failure)."""
    code = DiagnosticCode.unresolved_expression


class UnknownHelperError(UnresolvedExpressionError):
    code = DiagnosticCode.unknown_helper


class UnresolvedReferenceError(LegalMarkdownError):
    code = DiagnosticCode.unresolved_reference


class TypeConflictError(LegalMarkdownError, TypeError):
    """Raised when an imported value is structurally incompatible with the current one."""
    code = DiagnosticCode.type_conflict


class ProtectedCommandError(LegalMarkdownError):
    code = DiagnosticCode.protected_command_rejected


class UnsafePathError(LegalMarkdownError):
    code = DiagnosticCode.unsafe_path_rejected


class HeaderLevelError(LegalMarkdownError, ValueError):
    code = DiagnosticCode.header_level


class ResolutionError(LegalMarkdownError):
    """Raised in strict mode when a run finished with error diagnostics."""

    def __init__(self, message: str = "", *, diagnostics: list | None = None) -> None:
        super().__init__(message, context={"count": len(diagnostics or [])})
        self.diagnostics = list(diagnostics or [])
