"""Per-run diagnostic collector"""

import logging
from typing import Any, Iterator

from legalmd.core.errors import LegalMarkdownError
from legalmd.core.models import Diagnostic, DiagnosticCode, Severity

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.error: logging.ERROR,
    Severity.warning: logging.WARNING,
    Severity.info: logging.INFO,
}


class DiagnosticLog:
    """Accumulates diagnostics for one document run, in the order they were raised.

    Every entry is also emitted through the module logger at the level matching
    its severity, so callers that only watch logs still see problems.
    """

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def add(
        self,
        code: DiagnosticCode,
        message: str,
        step: str,
        severity: Severity = Severity.warning,
        recoverable: bool = True,
        **context: Any,
    ) -> Diagnostic:
        diagnostic = Diagnostic(
            code=code,
            message=message,
            step=step,
            severity=severity,
            recoverable=recoverable,
            context=context,
        )
        self._items.append(diagnostic)
        logger.log(_LOG_LEVELS[severity], "[%s] %s: %s", step, code.value, message)
        return diagnostic

    def warning(self, code: DiagnosticCode, message: str, step: str, **context: Any) -> Diagnostic:
        return self.add(code, message, step, Severity.warning, **context)

    def error(self, code: DiagnosticCode, message: str, step: str, **context: Any) -> Diagnostic:
        return self.add(code, message, step, Severity.error, **context)

    def info(self, code: DiagnosticCode, message: str, step: str, **context: Any) -> Diagnostic:
        return self.add(code, message, step, Severity.info, **context)

    def from_exception(
        self,
        exc: LegalMarkdownError,
        step: str,
        severity: Severity = Severity.warning,
    ) -> Diagnostic:
        """Record a caught core exception at a step boundary."""
        return self.add(exc.code, str(exc), step, severity, **exc.context)

    def by_code(self, code: DiagnosticCode) -> list[Diagnostic]:
        return [d for d in self._items if d.code == code]

    @property
    def has_errors(self) -> bool:
        return any(d.severity == Severity.error for d in self._items)

    @property
    def items(self) -> list[Diagnostic]:
        return list(self._items)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)
