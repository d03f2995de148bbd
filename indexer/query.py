"""Query helpers: FTS5 match expressions, highlighting and snippets."""

import re
from typing import List, Optional

from pipelines.plaintext import split_paragraphs

DEFAULT_OPEN = "<mark>"
DEFAULT_CLOSE = "</mark>"


def compile_query_pattern(query: str) -> re.Pattern:
    """Case-insensitive literal pattern for ``query``; metacharacters are escaped."""
    return re.compile(re.escape(query), re.IGNORECASE)


def query_tokens(query: str) -> List[str]:
    return [token.lower() for token in re.findall(r'\w+', query)]


def fts_match_expression(query: str, column: str) -> Optional[str]:
    """Build an FTS5 expression matching every query token as a prefix in ``column``.

    Tokens are quoted, so operators and punctuation in the query never reach
    the FTS5 parser. Returns None when the query has no word tokens.
    """
    tokens = query_tokens(query)
    if not tokens:
        return None
    return " AND ".join(f'{column} : "{token}"*' for token in tokens)


def highlight(text: str, pattern: re.Pattern, open_tag: str = DEFAULT_OPEN,
              close_tag: str = DEFAULT_CLOSE) -> str:
    """Wrap every match of ``pattern`` in the highlight markers, keeping original casing."""
    return pattern.sub(lambda m: f"{open_tag}{m.group(0)}{close_tag}", text)


def content_snippets(plaintext: str, pattern: re.Pattern, open_tag: str = DEFAULT_OPEN,
                     close_tag: str = DEFAULT_CLOSE) -> List[str]:
    """Highlighted paragraphs of ``plaintext`` that contain the query.

    Falls back to the whole text highlighted when no single paragraph matches.
    """
    snippets = [
        highlight(paragraph, pattern, open_tag, close_tag)
        for paragraph in split_paragraphs(plaintext)
        if pattern.search(paragraph)
    ]
    if not snippets:
        return [highlight(plaintext, pattern, open_tag, close_tag)]
    return snippets
