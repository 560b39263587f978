"""Markdown heading sections, used by '@import file#section'"""

import re
from typing import Optional

from markdown_it import MarkdownIt


def _heading_level(token) -> int | None:
    """Return heading level (1-6) for heading_open tokens else None."""
    if token.type == 'heading_open' and len(token.tag) == 2 and token.tag[0] == 'h':
        return int(token.tag[1])
    return None


def _slug(text: str) -> str:
    text = re.sub(r'[^\w\s-]', '', text.lower())
    return re.sub(r'[\s_-]+', '-', text).strip('-')


def list_headings(markdown: str) -> list[tuple[int, str, int]]:
    """(level, title, first line) for every markdown heading, in order."""
    tokens = MarkdownIt("commonmark").parse(markdown)
    headings = []
    for i, tok in enumerate(tokens):
        level = _heading_level(tok)
        if level is None or tok.map is None:
            continue
        title = tokens[i + 1].content.strip() if i + 1 < len(tokens) else ''
        headings.append((level, title, tok.map[0]))
    return headings


def extract_section(markdown: str, name: str) -> Optional[str]:
    """Text of the heading titled `name` (case-insensitive, or by slug) up to
    the next heading of the same or higher level; None when absent."""
    wanted = name.strip().lower()
    headings = list_headings(markdown)
    for idx, (level, title, start) in enumerate(headings):
        if title.lower() != wanted and _slug(title) != _slug(name):
            continue
        end = next((line for lvl, _, line in headings[idx + 1:] if lvl <= level), None)
        lines = markdown.split('\n')
        return '\n'.join(lines[start:end]).rstrip('\n')
    return None
