"""Unit tests for core/template.py"""

from datetime import date

import pytest

from legalmd.core.models import DiagnosticCode, FieldStatus
from legalmd.core.template import Conditional, Loop, Substitution, Text, TemplateEngine, parse_template, render_template


METADATA = {
    "name": "Acme",
    "client": {"name": "Acme Corp", "country": "France"},
    "fee": 1500,
    "is_nda": False,
    "notes": "",
    "effective": "2024-01-15",
    "parties": [{"name": "Acme", "role": "Client"}, {"name": "Widget", "role": "Provider"}],
    "addresses": {"billing": "Paris", "shipping": "Lyon"},
    "signatory": {"name": "Jane Doe"},
}


@pytest.fixture(name="engine")
def engine_fixture(ledger, diagnostics):
    return TemplateEngine(METADATA, ledger, diagnostics, today=date(2024, 3, 1))


# --- parse_template ---

def test_parse_template_builds_blocks():
    blocks = parse_template("A {{x}} {{#if y}}B{{else}}C{{/if}}")
    assert isinstance(blocks[0], Text)
    assert isinstance(blocks[1], Substitution)
    cond = blocks[3]
    assert isinstance(cond, Conditional)
    assert cond.has_else
    assert [b.value for b in cond.then] == ["B"]
    assert [b.value for b in cond.otherwise] == ["C"]


def test_parse_template_section_shorthand():
    blocks = parse_template("{{#parties}}x{{/parties}}")
    assert isinstance(blocks[0], Loop)
    assert blocks[0].shorthand


def test_parse_template_unclosed_block_is_literal(diagnostics):
    """An unclosed block keeps its open tag as text and is reported."""
    blocks = parse_template("{{#if a}}body", diagnostics)
    assert [b.value for b in blocks] == ["{{#if a}}", "body"]
    assert diagnostics.by_code(DiagnosticCode.expression_syntax)


def test_parse_template_stray_close_is_literal(diagnostics):
    blocks = parse_template("x{{/if}}", diagnostics)
    assert [b.value for b in blocks] == ["x", "{{/if}}"]
    assert len(diagnostics.by_code(DiagnosticCode.expression_syntax)) == 1


# --- substitution ---

def test_render_substitution_keeps_missing(engine, ledger):
    """Unresolved fields stay literal in keep mode and are recorded as empty."""
    assert engine.render("Hello {{name}}, {{missing}}") == "Hello Acme, {{missing}}"
    assert ledger.get("name").status == FieldStatus.filled
    assert ledger.get("missing").status == FieldStatus.empty


def test_render_substitution_empty_mode(ledger, diagnostics):
    engine = TemplateEngine(METADATA, ledger, diagnostics, missing_mode="empty")
    assert engine.render("[{{missing}}]") == "[]"


def test_render_missing_field_reports_info(engine, diagnostics):
    engine.render("{{missing}}")
    found = diagnostics.by_code(DiagnosticCode.unresolved_expression)
    assert len(found) == 1
    assert found[0].severity.value == "info"


def test_render_nested_path_and_blank_value(engine, ledger):
    assert engine.render("{{client.name}} / {{notes}}") == "Acme Corp / "
    assert ledger.get("client.name").status == FieldStatus.filled
    assert ledger.get("notes").status == FieldStatus.empty


def test_render_helper_is_logic(engine, ledger):
    assert engine.render('{{formatDate(effective, "long")}}') == "January 15, 2024"
    record = ledger.get('formatDate(effective, "long")')
    assert record.status == FieldStatus.logic
    assert record.helper == "formatDate"


def test_render_ternary_and_arithmetic(engine):
    assert engine.render("{{fee > 1000 ? 'large' : 'small'}} {{fee * 2}}") == "large 3000"


def test_render_today(engine):
    assert engine.render("{{formatDate(@today, 'ISO')}}") == "2024-03-01"


def test_render_syntax_error_keeps_tag(engine, diagnostics):
    assert engine.render("{{fee +}}") == "{{fee +}}"
    assert diagnostics.by_code(DiagnosticCode.expression_syntax)


def test_render_unknown_helper_keeps_tag(engine, diagnostics, ledger):
    assert engine.render("{{shout(name)}}") == "{{shout(name)}}"
    assert diagnostics.by_code(DiagnosticCode.unknown_helper)
    assert ledger.get("shout(name)").status == FieldStatus.logic


def test_render_without_tags_is_identity(engine):
    text = "Plain text with {single} braces"
    assert engine.render(text) == text


# --- conditionals ---

def test_render_if_else():
    assert render_template("{{#if false}}A{{else}}B{{/if}}", {}) == "B"
    assert render_template("{{#if fee}}A{{else}}B{{/if}}", METADATA) == "A"


def test_render_unless(engine):
    assert engine.render("{{#unless is_nda}}public{{/unless}}") == "public"


def test_render_if_expression(engine):
    text = "{{#if client.country == 'France' && fee > 1000}}FR{{/if}}"
    assert engine.render(text) == "FR"


def test_render_if_missing_is_false(engine):
    assert engine.render("{{#if nothing}}A{{else}}B{{/if}}") == "B"


def test_render_conditional_recorded_as_logic(engine, ledger):
    engine.render("{{#if is_nda}}x{{/if}}")
    record = ledger.get("is_nda")
    assert record.status == FieldStatus.logic
    assert record.helper == "conditional"


def test_render_block_lines_consumed(engine):
    """Block tags alone on their lines leave no blank lines behind."""
    text = "Start\n{{#if fee}}\nPaid\n{{/if}}\nEnd"
    assert engine.render(text) == "Start\nPaid\nEnd"


def test_render_nested_conditionals(engine):
    text = "{{#if fee}}{{#unless is_nda}}open{{/unless}}{{/if}}"
    assert engine.render(text) == "open"


# --- loops ---

def test_render_each_list(engine):
    text = "{{#each parties}}{{@index}}:{{name}}({{role}}){{#unless @last}}, {{/unless}}{{/each}}"
    assert engine.render(text) == "0:Acme(Client), 1:Widget(Provider)"


def test_render_each_empty_list(ledger):
    """An empty list renders nothing and records no empty fields."""
    assert render_template("{{#each []}}X{{/each}}", {}, ledger) == ""
    assert ledger.report().empty == 0


def test_render_each_else(engine):
    assert engine.render("{{#each nobody}}X{{else}}none{{/each}}") == "none"


def test_render_each_mapping_with_key(engine):
    text = "{{#each addresses}}{{@key}}={{this}};{{/each}}"
    assert engine.render(text) == "billing=Paris;shipping=Lyon;"


def test_render_each_parent_scope_visible(engine):
    text = "{{#each parties}}{{name}}/{{client.country}} {{/each}}"
    assert engine.render(text) == "Acme/France Widget/France "


def test_render_loop_fields_are_logic(engine, ledger):
    engine.render("{{#each parties}}{{role}}{{/each}}")
    assert ledger.get("role").status == FieldStatus.logic
    assert ledger.get("parties").helper == "loop"


def test_render_section_shorthand_mapping(engine):
    assert engine.render("{{#signatory}}Signed: {{name}}{{/signatory}}") == "Signed: Jane Doe"


def test_render_section_shorthand_falsy(engine):
    assert engine.render("{{#is_nda}}secret{{/is_nda}}") == ""


def test_render_each_first_flag(engine):
    text = "{{#each parties}}{{#if @first}}*{{/if}}{{name}} {{/each}}"
    assert engine.render(text) == "*Acme Widget "
