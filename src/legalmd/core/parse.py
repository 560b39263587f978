"""Frontmatter extraction and document reading"""

import logging
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from legalmd.core.errors import FrontmatterParseError, ImportNotFoundError
from legalmd.core.models import ParsedDoc
from legalmd.core.values import normalize

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r'^---[ \t]*\r?\n(.*?)(?:\r?\n)?^---[ \t]*(?:\r?\n|\Z)', re.DOTALL | re.MULTILINE)


def split_frontmatter(text: str, strict: bool = False) -> tuple[dict[str, Any], str]:
    """Return (metadata, body) with the YAML header removed.

    Malformed YAML, or YAML that is not a mapping, yields empty metadata unless
    strict is set, in which case FrontmatterParseError is raised.
    """
    m = FRONTMATTER_RE.match(text)
    if not m:
        return {}, text
    body = text[m.end():]
    try:
        fm = yaml.safe_load(m.group(1)) or {}
    except yaml.YAMLError as e:
        if strict:
            raise FrontmatterParseError(f"Invalid YAML frontmatter: {e}") from e
        logger.warning("Ignoring invalid YAML frontmatter: %s", e)
        return {}, body
    if not isinstance(fm, dict):
        message = f"Invalid YAML frontmatter: expected a mapping, got {type(fm).__name__}"
        if strict:
            raise FrontmatterParseError(message, context={"type": type(fm).__name__})
        logger.warning(message)
        return {}, body
    try:
        return normalize(fm), body
    except TypeError as e:
        if strict:
            raise FrontmatterParseError(f"Invalid YAML frontmatter: {e}") from e
        logger.warning("Ignoring YAML frontmatter with unsupported values: %s", e)
        return {}, body


def read_text(path: Path) -> str:
    """Read a document as UTF-8; a missing or unreadable file is ImportNotFoundError."""
    if not path.is_file():
        raise ImportNotFoundError(f"File not found: {path}", context={"path": str(path)})
    try:
        return path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise ImportNotFoundError(f"Cannot read {path}: {e}", context={"path": str(path)}) from e


def parse_text(raw: str, path: Optional[Path] = None, strict: bool = False) -> ParsedDoc:
    """Split raw document text into a ParsedDoc."""
    metadata, body = split_frontmatter(raw, strict=strict)
    return ParsedDoc(path=path, raw=raw, body=body, metadata=metadata)


def parse_file(path: Path, strict: bool = False) -> ParsedDoc:
    """Read and split a single document file."""
    return parse_text(read_text(path), path=path, strict=strict)
