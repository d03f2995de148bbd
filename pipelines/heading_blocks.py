"""Split markdown bodies into indexable heading, intro and drawer blocks.

Every ``## `` heading starts a block. Text before the first heading becomes
an intro block. A heading titled with a drawer sentinel (by default
``All Sidebar Content Below``) holds sidebar entries instead of prose::

    ## All Sidebar Content Below

    term-one:
    Heading: Term One
    Body text for the drawer.

Each ``identifier:`` line there starts a separate drawer block anchored at
the identifier.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Dict, Iterable, List, Optional

from indexer.models import Block, BlockKind
from .plaintext import markdown_to_plaintext

logger = logging.getLogger(__name__)

HEADING_PREFIX = "## "
DRAWER_KEY_PATTERN = re.compile(r'^([A-Za-z0-9_-]+):\s*$')
DRAWER_HEADING_PATTERN = re.compile(r'^Heading:\s*')

DEFAULT_DRAWER_SENTINELS = ("All Sidebar Content Below", "Sidebar")


class ExtractorState(Enum):
    NO_BLOCK = "no_block"
    IN_HEADING_BLOCK = "in_heading_block"
    IN_DRAWER_SENTINEL_BLOCK = "in_drawer_sentinel_block"


def slugify(text: Optional[str]) -> str:
    """Build an anchor from heading text.

    Lowercases, drops everything except word characters, whitespace and
    hyphens, then turns whitespace runs into single hyphens.
    """
    if not text:
        return ""
    slug = str(text).lower()
    slug = re.sub(r'[^\w\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    return slug


def block_id(section_id: str, subsection_id: Optional[str], anchor: str) -> str:
    scope = f"{section_id}/{subsection_id}" if subsection_id else section_id
    return f"{scope}#{anchor}"


class HeadingBlockExtractor:
    """Scans one markdown body and emits its blocks."""

    def __init__(
        self,
        drawer_sentinels: Iterable[str] = DEFAULT_DRAWER_SENTINELS,
        intro_skip_lines: int = 2,
        intro_anchor: str = "intro",
        intro_title: str = "Introduction",
        drawer_title_words: int = 5,
    ):
        self.drawer_sentinels = frozenset(drawer_sentinels)
        self.intro_skip_lines = intro_skip_lines
        self.intro_anchor = intro_anchor
        self.intro_title = intro_title
        self.drawer_title_words = drawer_title_words

    @classmethod
    def from_config(cls, config) -> "HeadingBlockExtractor":
        return cls(
            drawer_sentinels=config.get_drawer_sentinels(),
            intro_skip_lines=config.get('extraction.intro_skip_lines', 2),
            intro_anchor=config.get('extraction.intro_anchor', 'intro'),
            intro_title=config.get('extraction.intro_title', 'Introduction'),
            drawer_title_words=config.get('extraction.drawer_title_words', 5),
        )

    def extract(
        self,
        body: str,
        section_id: str,
        section_title: Optional[str] = None,
        subsection_id: Optional[str] = None,
        subsection_title: Optional[str] = None,
    ) -> List[Block]:
        """Extract blocks from a document body.

        Args:
            body: Markdown with frontmatter already removed
            section_id: Slug of the owning section
            section_title: Display title of the section
            subsection_id: Slug of the owning subsection, if any
            subsection_title: Display title of the subsection

        Returns:
            Blocks in source order. Ids are unique: when two regions share an
            id the later one replaces the earlier one.
        """
        scope = {
            "section": section_id,
            "section_title": section_title,
            "subsection": subsection_id,
            "subsection_title": subsection_title,
        }
        blocks: Dict[str, Block] = {}

        state = ExtractorState.NO_BLOCK
        current_title: Optional[str] = None
        current_lines: List[str] = []

        def flush() -> None:
            if state is ExtractorState.NO_BLOCK:
                self._emit_intro(current_lines, scope, blocks)
            elif state is ExtractorState.IN_DRAWER_SENTINEL_BLOCK:
                self._emit_drawers(current_lines, scope, blocks)
            else:
                self._emit_heading(current_title, current_lines, scope, blocks)

        for line in (body or "").replace('\r', '').split('\n'):
            if line.startswith(HEADING_PREFIX):
                flush()
                current_title = line[len(HEADING_PREFIX):].strip()
                current_lines = []
                if current_title in self.drawer_sentinels:
                    state = ExtractorState.IN_DRAWER_SENTINEL_BLOCK
                else:
                    state = ExtractorState.IN_HEADING_BLOCK
            else:
                current_lines.append(line)

        flush()
        return list(blocks.values())

    def _add(self, blocks: Dict[str, Block], block: Block) -> None:
        if block.id in blocks:
            logger.debug("Block id %s repeated; keeping the later region", block.id)
            del blocks[block.id]
        blocks[block.id] = block

    def _emit_intro(self, lines: List[str], scope: dict, blocks: Dict[str, Block]) -> None:
        # The leading title line and the blank line after it are shown elsewhere
        content = '\n'.join(lines[self.intro_skip_lines:]).strip()
        if not content:
            return
        self._add(blocks, Block(
            id=block_id(scope["section"], scope["subsection"], self.intro_anchor),
            kind=BlockKind.INTRO,
            anchor=self.intro_anchor,
            title=self.intro_title,
            content=content,
            **scope,
        ))

    def _emit_heading(self, title: str, lines: List[str], scope: dict, blocks: Dict[str, Block]) -> None:
        anchor = slugify(title) or "unknown"
        self._add(blocks, Block(
            id=block_id(scope["section"], scope["subsection"], anchor),
            kind=BlockKind.HEADING,
            anchor=anchor,
            title=title,
            content='\n'.join(lines).strip(),
            **scope,
        ))

    def _emit_drawers(self, lines: List[str], scope: dict, blocks: Dict[str, Block]) -> None:
        key: Optional[str] = None
        entry_lines: List[str] = []

        for line in lines:
            match = DRAWER_KEY_PATTERN.match(line)
            if match:
                if key is not None:
                    self._emit_drawer(key, entry_lines, scope, blocks)
                key = match.group(1)
                entry_lines = []
            elif key is not None:
                entry_lines.append(line)

        if key is not None:
            self._emit_drawer(key, entry_lines, scope, blocks)

    def _emit_drawer(self, key: str, lines: List[str], scope: dict, blocks: Dict[str, Block]) -> None:
        anchor = key.lower()
        title, body_lines = self._drawer_title(key, lines)
        self._add(blocks, Block(
            id=block_id(scope["section"], scope["subsection"], anchor),
            kind=BlockKind.DRAWER,
            anchor=anchor,
            title=title,
            content='\n'.join(body_lines).strip(),
            **scope,
        ))

    def _drawer_title(self, key: str, lines: List[str]):
        first = next((i for i, line in enumerate(lines) if line.strip()), None)
        if first is None:
            return key.replace('-', ' '), lines

        first_line = lines[first].strip()
        if DRAWER_HEADING_PATTERN.match(first_line):
            heading = DRAWER_HEADING_PATTERN.sub('', first_line, count=1).strip()
            return heading or key.replace('-', ' '), lines[:first] + lines[first + 1:]

        words = first_line.split()
        label = ' '.join(words[:self.drawer_title_words])
        # Ellipsis only marks a truncated line; short lines are used whole
        if len(words) > self.drawer_title_words:
            label += "..."
        return markdown_to_plaintext(label) or key.replace('-', ' '), lines


def extract_heading_blocks(
    body: str,
    section_id: str,
    section_title: Optional[str] = None,
    subsection_id: Optional[str] = None,
    subsection_title: Optional[str] = None,
    extractor: Optional[HeadingBlockExtractor] = None,
) -> List[Block]:
    """Convenience wrapper around :class:`HeadingBlockExtractor` with default settings."""
    extractor = extractor or HeadingBlockExtractor()
    return extractor.extract(body, section_id, section_title, subsection_id, subsection_title)
