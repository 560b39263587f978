"""Bare @today and @today[format] references in body text"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Mapping, Optional

from legalmd.core.diagnostics import DiagnosticLog
from legalmd.core.expressions.helpers import format_date
from legalmd.core.headers import FENCE_RE
from legalmd.core.models import DiagnosticCode
from legalmd.core.tracking import FieldLedger

logger = logging.getLogger(__name__)

STEP = "dates"

DEFAULT_DATE_FORMAT = 'YYYY-MM-DD'

# {{...}} spans are left to the template engine, which has its own @today.
TODAY_RE = re.compile(r'(\{\{.*?\}\})|(?<![\w@])@today(?:\[([^\]\n]+)\])?(?![\w-])')


def default_format(metadata: Mapping[str, Any]) -> str:
    fmt = metadata.get('date-format') or metadata.get('dateFormat')
    return str(fmt) if fmt else DEFAULT_DATE_FORMAT


def current_date(metadata: Mapping[str, Any], today: Optional[date] = None) -> Any:
    """Metadata @today, then the run's fixed date, then the system date."""
    value = metadata.get('@today')
    return value if value is not None else (today or date.today())


def process_dates(
    text: str,
    metadata: Mapping[str, Any],
    today: Optional[date] = None,
    diagnostics: Optional[DiagnosticLog] = None,
    ledger: Optional[FieldLedger] = None,
) -> str:
    """Replace @today tokens outside code fences and template tags."""
    diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
    fallback = default_format(metadata)
    d = current_date(metadata, today)

    def replace(m: re.Match) -> str:
        if m.group(1):
            return m.group(1)
        fmt = m.group(2) or fallback
        try:
            value = format_date(d, fmt)
        except (ValueError, KeyError) as e:
            diagnostics.warning(
                DiagnosticCode.unresolved_expression,
                f"Cannot format {m.group(0)}: {e}",
                STEP,
                format=fmt,
            )
            return m.group(0)
        if ledger is not None:
            ledger.record(m.group(0), value, has_logic=True, helper='formatDate')
        return value

    out, in_fence = [], False
    for line in text.split('\n'):
        if FENCE_RE.match(line):
            in_fence = not in_fence
            out.append(line)
            continue
        out.append(line if in_fence else TODAY_RE.sub(replace, line))
    logger.debug("Expanded date references with format %s", fallback)
    return '\n'.join(out)
