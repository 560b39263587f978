"""Unit tests for core/tracking.py and core/diagnostics.py"""

import pytest

from legalmd.core.diagnostics import DiagnosticLog
from legalmd.core.errors import CircularImportError
from legalmd.core.models import DiagnosticCode, FieldStatus, Severity
from legalmd.core.tracking import FieldLedger, classify
from legalmd.core.values import MISSING


@pytest.mark.parametrize("value,has_logic,helper,status", [
    ("Acme", False, None, FieldStatus.filled),
    (0, False, None, FieldStatus.filled),
    ("", False, None, FieldStatus.empty),
    (None, False, None, FieldStatus.empty),
    ([], False, None, FieldStatus.empty),
    ("", True, None, FieldStatus.logic),
    ("x", False, "loop", FieldStatus.logic),
    ("x", False, "crossref", FieldStatus.filled),
])
def test_classify(value, has_logic, helper, status):
    assert classify(value, has_logic, helper) == status


def test_ledger_one_record_per_name():
    """A later record for the same field replaces the earlier one."""
    ledger = FieldLedger()
    ledger.record("name", None)
    ledger.record("name", "Acme")
    assert len(ledger) == 1
    assert ledger.get("name").status == FieldStatus.filled


def test_ledger_report_counts():
    ledger = FieldLedger()
    ledger.record("a", "x")
    ledger.record("b", MISSING)
    ledger.record("c", 5, has_logic=True, helper="formatNumber")
    report = ledger.report()
    assert (report.total, report.filled, report.empty, report.logic) == (3, 1, 1, 1)
    assert ledger.get("b").value is None
    assert [r.name for r in ledger.by_status(FieldStatus.logic)] == ["c"]


def test_ledger_disabled_records_nothing():
    ledger = FieldLedger(enabled=False)
    assert ledger.record("a", "x") is None
    assert "a" not in ledger
    assert ledger.report().total == 0


def test_ledger_reset():
    ledger = FieldLedger()
    ledger.record("a", "x")
    ledger.reset()
    assert len(ledger) == 0


# --- diagnostics ---

def test_diagnostic_log_collects_in_order(caplog):
    log = DiagnosticLog()
    log.warning(DiagnosticCode.unresolved_reference, "first", "references", key="a")
    log.info(DiagnosticCode.reserved_key_filtered, "second", "imports")
    assert [d.message for d in log] == ["first", "second"]
    assert log.items[0].context == {"key": "a"}
    assert not log.has_errors
    assert "first" in caplog.text


def test_diagnostic_log_from_exception():
    log = DiagnosticLog()
    exc = CircularImportError("Circular import: a.md", context={"path": "/x/a.md"})
    diagnostic = log.from_exception(exc, "imports", Severity.error)
    assert diagnostic.code == DiagnosticCode.circular_import
    assert diagnostic.context == {"path": "/x/a.md"}
    assert log.has_errors
    assert exc.to_json_error() == {
        "message": "Circular import: a.md",
        "code": "CircularImport",
        "context": {"path": "/x/a.md"},
    }
