"""Force-commands interpreter: embedded command strings -> validated config delta

A document may carry processing overrides in its metadata:

    force_commands: --css styles/{{client}}.css --pdf --title "Master Services Agreement"

The string is rendered through the template engine first, tokenized with
quote handling, parsed into a fixed set of options, validated, and applied
over the base ProcessingConfig.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from legalmd.core.diagnostics import DiagnosticLog
from legalmd.core.errors import LegalMarkdownError, ProtectedCommandError, UnsafePathError
from legalmd.core.models import CommandDelta, DiagnosticCode, ProcessingConfig

logger = logging.getLogger(__name__)

STEP = "commands"

COMMAND_KEYS = ('force_commands', 'force-commands', 'forceCommands', 'commands')

DRIVE_RE = re.compile(r'^[A-Za-z]:[\\/]')

PROTECTED_COMMANDS = frozenset({
    'stdin', 'stdout', 'yaml', 'headers', 'no-headers', 'no-clauses',
    'no-references', 'no-imports', 'no-mixins', 'throwOnYamlError',
})

# option spelling -> (delta field, takes a value)
OPTIONS: dict[str, tuple[str, bool]] = {
    'css': ('css', True),
    'output-name': ('output', True),
    'outputname': ('output', True),
    'pdf': ('pdf', False),
    'html': ('html', False),
    'highlight': ('highlight', False),
    'export-yaml': ('export_yaml', False),
    'export-json': ('export_json', False),
    'output-path': ('output_path', True),
    'o': ('output_path', True),
    'format': ('format', True),
    'landscape': ('landscape', False),
    'debug': ('debug', False),
    'd': ('debug', False),
    'title': ('title', True),
}

PATH_FIELDS = ('css', 'output_path')


def extract_command_string(metadata: Mapping[str, Any]) -> Optional[tuple[str, str]]:
    """Return (key, command string) from the first accepted key holding a string."""
    for key in COMMAND_KEYS:
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return key, value
    return None


def tokenize(command: str) -> list[str]:
    """Split on whitespace; quoted runs keep inner spaces and lose their quotes."""
    args: list[str] = []
    current: list[str] = []
    quote = ''
    for ch in command:
        if quote:
            if ch == quote:
                quote = ''
            else:
                current.append(ch)
        elif ch in '"\'':
            quote = ch
        elif ch.isspace():
            if ''.join(current).strip():
                args.append(''.join(current).strip())
            current = []
        else:
            current.append(ch)
    if ''.join(current).strip():
        args.append(''.join(current).strip())
    return args


def check_path(field: str, value: str) -> None:
    if '..' in value or value.startswith(('/', '\\')) or DRIVE_RE.match(value):
        raise UnsafePathError(
            f"Unsafe path for --{field}: {value!r}", context={"option": field, "value": value}
        )


def parse_commands(args: list[str], diagnostics: Optional[DiagnosticLog] = None) -> dict[str, Any]:
    """Map argument tokens onto delta fields; protected and unknown options are dropped."""
    diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
    parsed: dict[str, Any] = {}
    i = 0
    while i < len(args):
        arg = args[i]
        i += 1
        if not arg.startswith('-'):
            continue
        option = arg.lstrip('-')
        if option in PROTECTED_COMMANDS:
            diagnostics.from_exception(
                ProtectedCommandError(f"Protected option --{option} ignored", context={"option": option}),
                STEP,
            )
            continue
        if option not in OPTIONS:
            logger.debug("Ignoring unknown command option %s", arg)
            continue
        field, takes_value = OPTIONS[option]
        if not takes_value:
            parsed[field] = True
            continue
        if i >= len(args):
            diagnostics.warning(
                DiagnosticCode.invalid_command_value,
                f"Option --{option} needs a value",
                STEP,
                option=option,
            )
            continue
        parsed[field] = args[i]
        i += 1
    return parsed


def validate_commands(parsed: Mapping[str, Any], diagnostics: Optional[DiagnosticLog] = None) -> CommandDelta:
    """Drop unsafe paths and invalid values; returns the delta of what survived."""
    diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
    safe: dict[str, Any] = {}
    for field, value in parsed.items():
        try:
            if field in PATH_FIELDS:
                check_path(field, str(value))
        except LegalMarkdownError as e:
            diagnostics.from_exception(e, STEP)
            continue
        if field == 'format' and value not in ('A4', 'letter', 'legal'):
            diagnostics.warning(
                DiagnosticCode.invalid_command_value,
                f"Unsupported page format {value!r}",
                STEP,
                option='format',
                value=value,
            )
            continue
        safe[field] = value
    try:
        return CommandDelta(**safe)
    except ValidationError as e:
        diagnostics.warning(DiagnosticCode.invalid_command_value, f"Invalid commands: {e}", STEP)
        return CommandDelta()


def apply_delta(base: ProcessingConfig, delta: CommandDelta) -> ProcessingConfig:
    """Overwrite base fields with every option the delta sets."""
    updates: dict[str, Any] = {}
    given = delta.model_dump(exclude_none=True)
    if 'css' in given:
        updates['css_path'] = given.pop('css')
    if given.get('export_yaml'):
        updates.update(export_metadata=True, export_format='yaml')
    if given.get('export_json'):
        updates.update(export_metadata=True, export_format='json')
    updates.update(given)
    return base.model_copy(update=updates)


def interpret(
    metadata: Mapping[str, Any],
    base: ProcessingConfig,
    render=None,
    diagnostics: Optional[DiagnosticLog] = None,
) -> tuple[ProcessingConfig, CommandDelta]:
    """Find, render, parse, validate and apply embedded commands.

    `render` is a callable turning the raw command string into its
    template-rendered form; without it the string is used as written.
    """
    diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
    found = extract_command_string(metadata)
    if found is None:
        return base, CommandDelta()
    key, command = found
    resolved = render(command) if render is not None else command
    logger.debug("Commands from %s: %r -> %r", key, command, resolved)
    delta = validate_commands(parse_commands(tokenize(resolved), diagnostics), diagnostics)
    return apply_delta(base, delta), delta
