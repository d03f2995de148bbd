"""Markdown to plaintext normalization for search matching and snippets."""

import re
from typing import List, Tuple, Union, Callable

# Applied in order; each pass never lengthens the text
_RULES: List[Tuple[re.Pattern, Union[str, Callable[[re.Match], str]]]] = [
    # Frontmatter-shaped block at the start of the text
    (re.compile(r'\A---[\s\S]*?---\s*'), ''),
    # Images
    (re.compile(r'!\[[^\]]*\]\([^\)]*\)'), ''),
    # Drawer references {some-term} -> some term
    (re.compile(r'\{([A-Za-z0-9-]+)\}'), lambda m: m.group(1).replace('-', ' ')),
    # Links [text](url) -> text
    (re.compile(r'\[([^\]]+)\]\([^\)]+\)'), r'\1'),
    # Bold, italic, inline code
    (re.compile(r'(\*\*|__)(.*?)\1'), r'\2'),
    (re.compile(r'(\*|_)(.*?)\1'), r'\2'),
    (re.compile(r'`([^`]+)`'), r'\1'),
    # Heading markers
    (re.compile(r'^#{1,6}\s*(.*)$', re.MULTILINE), r'\1'),
    # Footnote markers
    (re.compile(r'\[\^([^\]]+)\]'), ''),
    # Horizontal whitespace runs, then paragraph breaks
    (re.compile(r'[ \t]{2,}'), ' '),
    (re.compile(r'\n{2,}'), '\n\n'),
]


def _normalize_once(text: str) -> str:
    for pattern, replacement in _RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def markdown_to_plaintext(text: str) -> str:
    """Strip markdown syntax, keeping visible text and paragraph breaks.

    Rules are re-applied until the text stops changing, so nested constructs
    such as ``**[link](url)**`` or ``{{term}}`` are fully reduced and the
    function is idempotent.
    """
    if not text:
        return ""

    current = text.replace('\r', '')
    while True:
        normalized = _normalize_once(current)
        if normalized == current:
            return normalized
        current = normalized


def split_paragraphs(text: str) -> List[str]:
    """Split normalized text into non-empty blank-line delimited paragraphs."""
    return [p for p in re.split(r'\n[ \t]*\n', text) if p.strip()]
