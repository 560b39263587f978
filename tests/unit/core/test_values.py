"""Unit tests for core/values.py"""

from datetime import date

import pytest

from legalmd.core.values import MISSING, ValueKind, is_empty, is_truthy, kind_of, lookup, normalize, split_path, to_text


DATA = {
    "client": {"name": "Acme", "contacts": [{"email": "a@acme.test"}]},
    "parties": ["Acme", "Widget"],
    "x-y": 3,
}


# --- kinds ---

@pytest.mark.parametrize("value,kind", [
    (None, ValueKind.null),
    (True, ValueKind.boolean),
    (3, ValueKind.number),
    (2.5, ValueKind.number),
    ("a", ValueKind.string),
    ([1], ValueKind.sequence),
    ({"a": 1}, ValueKind.mapping),
])
def test_kind_of(value, kind):
    """Every metadata value falls in the closed kind set."""
    assert kind_of(value) == kind


def test_kind_of_rejects_objects():
    """Values outside the closed set raise TypeError."""
    with pytest.raises(TypeError):
        kind_of(object())


def test_normalize_nested_dates():
    """Dates nested in sequences and mappings become ISO strings."""
    assert normalize({"d": [date(2024, 1, 2)]}) == {"d": ["2024-01-02"]}


# --- truthiness ---

@pytest.mark.parametrize("value,expected", [
    (None, False), (MISSING, False), (False, False), (0, False), ("", False), ([], False), ({}, False),
    (True, True), (1, True), ("no", True), ([0], True), ({"a": None}, True),
])
def test_is_truthy(value, expected):
    assert is_truthy(value) is expected


def test_is_empty_blank_string():
    """Whitespace-only strings count as empty; zero does not."""
    assert is_empty("  ")
    assert not is_empty(0)
    assert not is_empty(False)


# --- paths ---

def test_split_path_forms():
    """Dotted, indexed and quoted segments are split in order."""
    assert split_path('a.b[0].c') == ["a", "b", 0, "c"]
    assert split_path('a.0.c') == ["a", 0, "c"]
    assert split_path('a["x-y"]') == ["a", "x-y"]


def test_lookup_nested():
    assert lookup(DATA, "client.name") == "Acme"
    assert lookup(DATA, "client.contacts[0].email") == "a@acme.test"
    assert lookup(DATA, "parties.1") == "Widget"


def test_lookup_sequence_length():
    assert lookup(DATA, "parties.length") == 2


def test_lookup_missing_is_sentinel():
    """Unresolvable paths return MISSING, never None."""
    assert lookup(DATA, "client.phone") is MISSING
    assert lookup(DATA, "parties.9") is MISSING
    assert lookup(DATA, "client.name.first") is MISSING


def test_lookup_hyphenated_key():
    assert lookup(DATA, "x-y") == 3


# --- text ---

@pytest.mark.parametrize("value,text", [
    (None, ""),
    (True, "true"),
    (False, "false"),
    (2.0, "2"),
    (2.5, "2.5"),
    (["a", "b"], "a, b"),
    ({"a": 1}, '{"a": 1}'),
])
def test_to_text(value, text):
    assert to_text(value) == text
