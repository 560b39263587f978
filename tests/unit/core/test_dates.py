"""Unit tests for core/dates.py"""

from datetime import date

import pytest

from legalmd.core.dates import current_date, default_format, process_dates
from legalmd.core.models import DiagnosticCode, FieldStatus


TODAY = date(2024, 3, 1)


def test_bare_today_uses_default_format():
    assert process_dates("Dated @today.", {}, TODAY) == "Dated 2024-03-01."


@pytest.mark.parametrize("fmt,expected", [
    ("legal", "1st day of March, 2024"),
    ("long", "March 1, 2024"),
    ("US", "03/01/2024"),
    ("DD.MM.YYYY", "01.03.2024"),
])
def test_today_with_format(fmt, expected):
    assert process_dates(f"@today[{fmt}]", {}, TODAY) == expected


def test_date_format_metadata_key():
    """date-format (or dateFormat) sets the format for bare @today."""
    assert process_dates("@today", {"date-format": "long"}, TODAY) == "March 1, 2024"
    assert process_dates("@today", {"dateFormat": "US"}, TODAY) == "03/01/2024"
    assert process_dates("@today[ISO]", {"date-format": "long"}, TODAY) == "2024-03-01"


def test_metadata_today_wins():
    assert current_date({"@today": "2023-12-31"}, TODAY) == "2023-12-31"
    assert process_dates("@today", {"@today": "2023-12-31"}, TODAY) == "2023-12-31"
    assert current_date({}, TODAY) == TODAY


def test_default_format():
    assert default_format({}) == "YYYY-MM-DD"
    assert default_format({"date-format": "legal"}) == "legal"


def test_template_tags_and_fences_untouched():
    text = "{{formatDate(@today, 'legal')}}\n```\n@today\n```\n@today"
    assert process_dates(text, {}, TODAY) == "{{formatDate(@today, 'legal')}}\n```\n@today\n```\n2024-03-01"


def test_embedded_tokens_untouched():
    """Emails and longer words that contain @today are not date references."""
    text = "mail me@today.com or @todays"
    assert process_dates(text, {}, TODAY) == text


def test_invalid_date_kept_with_diagnostic(diagnostics):
    out = process_dates("Signed @today", {"@today": "not a date"}, TODAY, diagnostics)
    assert out == "Signed @today"
    assert diagnostics.by_code(DiagnosticCode.unresolved_expression)


def test_dates_recorded_as_logic(ledger):
    process_dates("@today and @today[legal]", {}, TODAY, ledger=ledger)
    assert ledger.get("@today").status == FieldStatus.logic
    assert ledger.get("@today[legal]").status == FieldStatus.logic
