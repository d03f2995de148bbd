"""Frontmatter parsing for handbook markdown files.

A frontmatter block is a run of ``key: value`` lines fenced by ``---`` lines
at the very start of a file::

    ---
    title: Privacy
    order: 2
    final: true
    ---
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Union

FRONTMATTER_PATTERN = re.compile(r'\A---\r?\n(.*?)\r?\n---(?:\r?\n|\Z)', re.DOTALL)
NUMERIC_PATTERN = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$')


@dataclass
class ParsedDocument:
    content: str
    frontmatter: Dict[str, Any] = field(default_factory=dict)


def coerce_value(value: str) -> Union[str, bool, int, float]:
    """Coerce a raw frontmatter value to bool, number or trimmed string."""
    value = value.strip()
    if value == "true":
        return True
    if value == "false":
        return False
    if NUMERIC_PATTERN.match(value):
        if re.match(r'^[+-]?\d+$', value):
            return int(value)
        return float(value)
    return value


def parse_frontmatter(text: str) -> ParsedDocument:
    """Split leading frontmatter from a markdown document.

    Args:
        text: Raw file contents

    Returns:
        ParsedDocument with the block removed from ``content``. When no block
        is present the text is returned unchanged with empty metadata.
    """
    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return ParsedDocument(content=text)

    frontmatter: Dict[str, Any] = {}
    for line in match.group(1).splitlines():
        if not line.strip() or ':' not in line:
            continue
        key, value = line.split(':', 1)
        key = key.strip()
        if not key:
            continue
        frontmatter[key] = coerce_value(value)

    return ParsedDocument(content=text[match.end():], frontmatter=frontmatter)
