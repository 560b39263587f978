"""Unit tests for core/commands.py"""

import pytest

from legalmd.core.commands import (
    apply_delta, check_path, extract_command_string, interpret, parse_commands, tokenize, validate_commands,
)
from legalmd.core.errors import UnsafePathError
from legalmd.core.models import CommandDelta, DiagnosticCode, ProcessingConfig


def test_extract_command_string_key_order():
    meta = {"commands": "--pdf", "force-commands": "--html"}
    assert extract_command_string(meta) == ("force-commands", "--html")
    assert extract_command_string({"force_commands": ""}) is None
    assert extract_command_string({"title": "x"}) is None


def test_tokenize_quotes():
    args = tokenize('--title "Master Services Agreement" --css \'a b.css\' --pdf')
    assert args == ["--title", "Master Services Agreement", "--css", "a b.css", "--pdf"]


def test_parse_commands_flags_and_values():
    parsed = parse_commands(["--pdf", "--css", "styles/a.css", "-o", "out", "--format", "letter", "-d"])
    assert parsed == {"pdf": True, "css": "styles/a.css", "output_path": "out", "format": "letter", "debug": True}


def test_parse_commands_protected_rejected(diagnostics):
    parsed = parse_commands(["--stdout", "--no-headers", "--pdf"], diagnostics)
    assert parsed == {"pdf": True}
    assert len(diagnostics.by_code(DiagnosticCode.protected_command_rejected)) == 2


def test_parse_commands_unknown_ignored(diagnostics):
    assert parse_commands(["--frobnicate", "stray", "--html"], diagnostics) == {"html": True}
    assert len(diagnostics) == 0


def test_parse_commands_missing_value(diagnostics):
    assert parse_commands(["--css"], diagnostics) == {}
    assert diagnostics.by_code(DiagnosticCode.invalid_command_value)


@pytest.mark.parametrize("value", ["../secret.css", "/etc/passwd", "\\\\server\\share", "a/../../b", "C:\\styles\\x.css", "c:/styles/x.css"])
def test_check_path_rejects_unsafe(value):
    with pytest.raises(UnsafePathError):
        check_path("css", value)


def test_validate_commands_drops_unsafe_and_invalid(diagnostics):
    delta = validate_commands({"css": "../x.css", "format": "A3", "title": "T"}, diagnostics)
    assert delta == CommandDelta(title="T")
    assert diagnostics.by_code(DiagnosticCode.unsafe_path_rejected)
    assert diagnostics.by_code(DiagnosticCode.invalid_command_value)


def test_apply_delta_overrides_base():
    base = ProcessingConfig(title="Base", landscape=True)
    config = apply_delta(base, CommandDelta(css="a.css", export_yaml=True, title="New"))
    assert config.css_path == "a.css"
    assert config.export_metadata is True
    assert config.export_format == "yaml"
    assert config.title == "New"
    assert config.landscape is True
    assert base.title == "Base"


def test_interpret_renders_before_parsing(diagnostics):
    meta = {"client": "acme", "force_commands": "--css styles/{{client}}.css --pdf --landscape"}
    config, delta = interpret(meta, ProcessingConfig(), lambda s: s.replace("{{client}}", "acme"), diagnostics)
    assert config.css_path == "styles/acme.css"
    assert config.pdf is True
    assert config.landscape is True
    assert delta.css == "styles/acme.css"


def test_interpret_without_commands_returns_base():
    base = ProcessingConfig(pdf=True)
    config, delta = interpret({}, base)
    assert config is base
    assert delta == CommandDelta()
