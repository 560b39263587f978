"""Unit tests for core/headers.py"""

import pytest

from legalmd.core.errors import HeaderLevelError
from legalmd.core.headers import (
    HeaderNumberer, HeaderOptions, number_headers, parse_marker, pattern_is_valid, render_pattern, split_anchor,
)
from legalmd.core.models import DiagnosticCode


# --- markers ---

@pytest.mark.parametrize("line,expected", [
    ("l. Intro", (1, "l.", "Intro")),
    ("lll. Deep", (3, "lll.", "Deep")),
    ("l4. Explicit", (4, "l4.", "Explicit")),
    ("l12. Too deep", (12, "l12.", "Too deep")),
])
def test_parse_marker(line, expected):
    assert parse_marker(line) == expected


@pytest.mark.parametrize("line", ["l.Intro", "lawful. text", " l. Indented", "Intro"])
def test_parse_marker_rejects(line):
    assert parse_marker(line) is None


def test_split_anchor_forms():
    assert split_anchor("Definitions |defs|") == ("Definitions", "defs")
    assert split_anchor("Definitions {#defs}") == ("Definitions", "defs")
    assert split_anchor("Definitions") == ("Definitions", None)
    assert split_anchor("Parties {{#parties}}") == ("Parties {{#parties}}", None)


# --- patterns ---

@pytest.mark.parametrize("pattern,level,valid", [
    ("%n.", 1, True),
    ("%n.%n", 2, True),
    ("%n.%n", 1, False),
    ("Article %R -", 1, True),
    ("%x.", 1, False),
    ("", 1, False),
    (5, 1, False),
])
def test_pattern_is_valid(pattern, level, valid):
    assert pattern_is_valid(pattern, level) is valid


def test_render_pattern_maps_trailing_levels():
    """With k numeric placeholders the last one is the current level."""
    counters = [0, 2, 3, 4, 0, 0, 0, 0, 0, 0]
    assert render_pattern("%n.%n", 2, counters) == "2.3"
    assert render_pattern("%n.%n.%n", 3, counters) == "2.3.4"
    assert render_pattern("(%a)", 3, counters) == "(d)"
    assert render_pattern("%R.%c", 3, counters) == "IV.4"
    assert render_pattern("%02n", 1, counters) == "02"


def test_render_pattern_inline_text():
    assert render_pattern("Article %n - %s", 1, [0, 1] + [0] * 8, "Scope") == "Article 1 - Scope"


# --- numbering ---

def test_number_headers_basic():
    """Custom level patterns number sibling and nested headers."""
    body = "l. Intro\nll. Scope\nl. Terms"
    meta = {"level-one": "%n.", "level-two": "%n.%n"}
    out, headers = number_headers(body, meta)
    assert out == "1. Intro\n1.1 Scope\n2. Terms"
    assert [h.number for h in headers] == ["1.", "1.1", "2."]


def test_number_headers_default_patterns():
    body = "l. A\nll. B\nlll. C\nllll. D\nlllll. E"
    out, _ = number_headers(body, {})
    assert out.split("\n") == ["Article 1. A", "Section 1. B", "(1) C", "(a) D", "(i) E"]


def test_number_headers_reset_and_no_reset():
    body = "l. A\nll. B\nl. C\nll. D"
    out, _ = number_headers(body, {"level-two": "%n.%n"})
    assert out.split("\n")[3] == "2.1 D"
    out, _ = number_headers(body, {"level-two": "%n.%n", "no-reset": True})
    assert out.split("\n")[3] == "2.2 D"


def test_number_headers_explicit_depth_marker():
    out, headers = number_headers("l. A\nl2. B", {"level-two": "%n.%n"})
    assert out == "Article 1. A\n1.1 B"
    assert headers[1].marker == "l2."


def test_number_headers_anchor_recorded():
    out, headers = number_headers("l. Definitions |defs|", {"level-one": "%n."})
    assert out == "1. Definitions"
    assert headers[0].anchor == "defs"
    assert headers[0].text == "Definitions"


def test_number_headers_skips_code_fences():
    body = "```\nl. not a header\n```\nl. Real"
    out, headers = number_headers(body, {"level-one": "%n."})
    assert out == "```\nl. not a header\n```\n1. Real"
    assert len(headers) == 1


def test_number_headers_level_out_of_range(diagnostics):
    """A header deeper than nine levels stays as written and is reported."""
    out, headers = number_headers("l10. Deep", {}, diagnostics)
    assert out == "l10. Deep"
    assert headers == []
    assert diagnostics.by_code(DiagnosticCode.header_level)


def test_number_headers_invalid_pattern_falls_back(diagnostics):
    out, _ = number_headers("l. A\nl. B", {"level-one": "%q"}, diagnostics)
    assert out == "1. A\n2. B"
    assert len(diagnostics.by_code(DiagnosticCode.header_pattern)) == 1


def test_number_headers_inline_text_pattern():
    out, headers = number_headers("l. Scope", {"level-one": "Article %n: %s"})
    assert out == "Article 1: Scope"
    assert headers[0].number == "Article 1:"


def test_number_headers_indent():
    out, _ = number_headers("l. A\nll. B", {"level-one": "%n.", "level-two": "%n.%n", "level-indent": 1})
    assert out == "1. A\n  1.1 B"
    out, _ = number_headers("l. A\nll. B", {"level-two": "%n.%n", "level-indent": 1, "no-indent": True})
    assert out.split("\n")[1] == "1.1 B"


def test_numberer_advance_rejects_zero():
    numberer = HeaderNumberer(HeaderOptions())
    with pytest.raises(HeaderLevelError):
        numberer.advance(0)


def test_numberer_current():
    numberer = HeaderNumberer(HeaderOptions())
    numberer.advance(1)
    numberer.advance(2)
    numberer.advance(2)
    assert numberer.current(1) == 1
    assert numberer.current(2) == 2
