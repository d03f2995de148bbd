"""Pipelines package for handbook search.

Provides frontmatter parsing, corpus loading, heading block extraction and
plaintext normalization.
"""

from .frontmatter import ParsedDocument, parse_frontmatter
from .plaintext import markdown_to_plaintext, split_paragraphs
from .heading_blocks import HeadingBlockExtractor, extract_heading_blocks, slugify
from .corpus import CorpusLoader, load_corpus

__all__ = [
    # Frontmatter
    'ParsedDocument',
    'parse_frontmatter',

    # Plaintext
    'markdown_to_plaintext',
    'split_paragraphs',

    # Heading blocks
    'HeadingBlockExtractor',
    'extract_heading_blocks',
    'slugify',

    # Corpus
    'CorpusLoader',
    'load_corpus'
]
