"""Unit tests for core/sections.py"""

from legalmd.core.sections import extract_section, list_headings


DOC = """\
# Terms

Intro text.

## Payment Terms

Pay on time.

### Late Fees

Two percent.

## Termination

Either party may terminate.
"""


def test_list_headings():
    assert list_headings(DOC) == [
        (1, "Terms", 0),
        (2, "Payment Terms", 4),
        (3, "Late Fees", 8),
        (2, "Termination", 12),
    ]


def test_extract_section_includes_subsections():
    section = extract_section(DOC, "Payment Terms")
    assert section.startswith("## Payment Terms")
    assert "Two percent." in section
    assert "Termination" not in section


def test_extract_section_by_slug_case_insensitive():
    assert extract_section(DOC, "payment-terms") == extract_section(DOC, "PAYMENT TERMS")


def test_extract_last_section_runs_to_end():
    assert extract_section(DOC, "Termination") == "## Termination\n\nEither party may terminate."


def test_extract_missing_section():
    assert extract_section(DOC, "Warranty") is None
