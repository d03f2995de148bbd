"""In-memory SQLite FTS5 search index over handbook blocks.

The index is built once from a loaded corpus (or hydrated from an exported
JSON payload) and is read-only afterwards. Build a new instance to pick up
corpus changes.
"""

import json
import logging
import re
import sqlite3
import threading
import time
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from config.search_config import SearchConfig
from observability.logging import log_performance
from observability.prometheus_metrics import (
    record_document_failure,
    record_indexing_metrics,
    record_search_metrics,
)
from pipelines.heading_blocks import HeadingBlockExtractor, slugify
from pipelines.plaintext import markdown_to_plaintext
from .errors import IndexExportError, IndexFormatError, IndexNotReadyError, SearchIndexError
from .models import Block, BlockKind, Section, SearchHit
from .query import compile_query_pattern, content_snippets, fts_match_expression, highlight

logger = logging.getLogger(__name__)

EXPORT_FORMAT = "handbook-search-index"
EXPORT_VERSION = 1
INDEXED_FIELDS = ["title", "content"]
STORED_FIELDS = [
    "title", "sectionTitle", "section", "subsectionTitle",
    "subsection", "content", "anchor", "isDrawer",
]
_TOKENIZER_PATTERN = re.compile(r'^[A-Za-z0-9_ ]+$')


class SearchIndex:
    """Full-text index with per-field matching and highlighted snippets."""

    def __init__(self, config: Optional[SearchConfig] = None):
        self.config = config or SearchConfig()
        self.extractor = HeadingBlockExtractor.from_config(self.config)
        self._conn: Optional[sqlite3.Connection] = None
        self._blocks: List[Block] = []
        self._plaintext: List[str] = []
        self._by_id: Dict[str, Block] = {}
        self._lock = threading.Lock()
        self._ready = False
        self.stats = {"documents_indexed": 0, "documents_failed": 0, "blocks": 0}

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def blocks(self) -> List[Block]:
        return list(self._blocks)

    def __len__(self) -> int:
        return len(self._blocks)

    def get(self, block_id: str) -> Optional[Block]:
        """Return the stored block with ``block_id``, without searching."""
        return self._by_id.get(block_id)

    # ------------------------------------------------------------------ build

    def collect_blocks(self, sections: Iterable[Section]) -> List[Block]:
        """Run extraction over every section, subsection and drawer file.

        A document that fails extraction is logged and skipped.
        """
        blocks: List[Block] = []

        for section in sections:
            blocks.extend(self._extract_document(
                section.content, section.id, section.title, source=section.source_path or section.id
            ))
            for subsection in section.subsections:
                blocks.extend(self._extract_document(
                    subsection.content, section.id, section.title, subsection.id, subsection.title,
                    source=subsection.source_path or f"{section.id}/{subsection.id}"
                ))
                if self.config.should_index_drawer_files():
                    for drawer in subsection.drawers:
                        blocks.append(Block(
                            id=f"{section.id}/{subsection.id}/{self.config.get_drawer_dir()}/{drawer.id}",
                            kind=BlockKind.DRAWER,
                            section=section.id,
                            section_title=section.title,
                            subsection=subsection.id,
                            subsection_title=subsection.title,
                            anchor=slugify(drawer.id) or "unknown",
                            title=drawer.title,
                            content=drawer.content.strip(),
                        ))

        return [self._apply_about_label(block) for block in blocks]

    def _extract_document(self, body: str, section_id: str, section_title: Optional[str],
                          subsection_id: Optional[str] = None, subsection_title: Optional[str] = None,
                          source: str = "") -> List[Block]:
        try:
            blocks = self.extractor.extract(body, section_id, section_title, subsection_id, subsection_title)
        except Exception as e:
            logger.error("Failed to extract blocks from %s: %s", source, e, exc_info=True)
            self.stats["documents_failed"] += 1
            record_document_failure("extract")
            return []
        self.stats["documents_indexed"] += 1
        return blocks

    def _apply_about_label(self, block: Block) -> Block:
        if block.section != self.config.get('index.about_section_id', 'about'):
            return block
        label = self.config.get('index.about_label', 'About')
        return block.model_copy(update={"section_title": label, "subsection_title": label})

    @log_performance(threshold_ms=5000.0)
    def build(self, sections: Iterable[Section]) -> "SearchIndex":
        """Build the index from a loaded corpus.

        Building is idempotent: calling ``build`` on a ready index logs and
        returns without touching it.

        Args:
            sections: Sections with their subsections and drawer files

        Returns:
            This index, now ready for queries
        """
        if self._ready:
            logger.info("Search index already built with %d blocks; skipping rebuild", len(self))
            return self

        start = time.perf_counter()
        blocks = self.collect_blocks(sections)
        self._load(blocks)

        duration = time.perf_counter() - start
        by_kind = Counter(block.kind.value for block in self._blocks)
        record_indexing_metrics(duration, dict(by_kind))
        logger.info(
            "Built search index: %d blocks from %d documents (%d failed) in %.3fs",
            len(self), self.stats["documents_indexed"], self.stats["documents_failed"], duration,
            extra={
                "blocks": len(self),
                "blocks_by_kind": dict(by_kind),
                "documents_indexed": self.stats["documents_indexed"],
                "documents_failed": self.stats["documents_failed"],
                "duration_ms": duration * 1000
            }
        )
        return self

    def _create_connection(self) -> sqlite3.Connection:
        tokenizer = self.config.get('index.tokenizer', 'unicode61')
        if not _TOKENIZER_PATTERN.match(tokenizer):
            raise SearchIndexError(f"Invalid FTS5 tokenizer setting: {tokenizer!r}")

        conn = sqlite3.connect(":memory:", check_same_thread=False)
        try:
            conn.execute(
                f"CREATE VIRTUAL TABLE blocks_fts USING fts5(title, content, tokenize='{tokenizer}')"
            )
        except sqlite3.OperationalError as e:
            conn.close()
            raise SearchIndexError(f"SQLite FTS5 is unavailable: {e}") from e
        return conn

    def _load(self, blocks: Iterable[Block]) -> None:
        unique: Dict[str, Block] = {}
        for block in blocks:
            if block.id in unique:
                logger.debug("Duplicate block id %s; last write wins", block.id)
                del unique[block.id]
            unique[block.id] = block

        conn = self._create_connection()
        self._blocks = list(unique.values())
        self._by_id = unique
        self._plaintext = [markdown_to_plaintext(block.content) for block in self._blocks]
        conn.executemany(
            "INSERT INTO blocks_fts(rowid, title, content) VALUES (?, ?, ?)",
            [(rowid, block.title, block.content) for rowid, block in enumerate(self._blocks, start=1)]
        )
        conn.commit()

        self._conn = conn
        self.stats["blocks"] = len(self._blocks)
        self._ready = True

    # ----------------------------------------------------------------- search

    def _match_field(self, column: str, query: str) -> List[int]:
        expression = fts_match_expression(query, column)
        if expression is None:
            return []
        with self._lock:
            if self._conn is None:
                raise IndexNotReadyError("Search index was closed")
            rows = self._conn.execute(
                "SELECT rowid FROM blocks_fts WHERE blocks_fts MATCH ? ORDER BY bm25(blocks_fts), rowid",
                (expression,)
            ).fetchall()
        return [row[0] for row in rows]

    def search(self, query: str) -> List[SearchHit]:
        """Search titles and content for ``query``.

        Args:
            query: Raw search text; matched literally and case-insensitively

        Returns:
            Hits keyed ``<block id>-title`` and ``<block id>-content``. Empty
            for empty or too-short queries and for queries with no matches.

        Raises:
            IndexNotReadyError: If the index has not been built or hydrated.
        """
        min_length = self.config.get('search.min_query_length', 1)
        if not query or not query.strip() or len(query.strip()) < min_length:
            return []
        if not self._ready:
            raise IndexNotReadyError("Search index has not been built")

        start = time.perf_counter()
        markers = self.config.get_highlight_markers()
        open_tag, close_tag = markers['open'], markers['close']
        pattern = compile_query_pattern(query)
        seen_rows = set()

        # Both fields' matches merged in order, each block once
        candidates: List[int] = []
        for column in INDEXED_FIELDS:
            for rowid in self._match_field(column, query):
                if rowid not in seen_rows:
                    seen_rows.add(rowid)
                    candidates.append(rowid)

        title_hits: List[SearchHit] = []
        content_hits: List[SearchHit] = []
        seen = set()

        for rowid in candidates:
            block = self._blocks[rowid - 1]

            title_key = f"{block.id}-title"
            if title_key not in seen and pattern.search(block.title):
                seen.add(title_key)
                snippet = highlight(block.title, pattern, open_tag, close_tag)
                title_hits.append(SearchHit(
                    id=title_key, doc=block, snippet=snippet,
                    all_snippets=[snippet], matched_field="title"
                ))

            content_key = f"{block.id}-content"
            plaintext = self._plaintext[rowid - 1]
            if content_key not in seen and pattern.search(plaintext):
                snippets = content_snippets(plaintext, pattern, open_tag, close_tag)
                snippet = "\n\n".join(snippets)
                if open_tag and open_tag not in snippet:
                    continue
                seen.add(content_key)
                content_hits.append(SearchHit(
                    id=content_key, doc=block, snippet=snippet,
                    all_snippets=snippets, matched_field="content"
                ))

        if self.config.get('search.title_matches_first', True):
            results = title_hits + content_hits
        else:
            by_key = {hit.id: hit for hit in title_hits + content_hits}
            results = [
                by_key[key]
                for rowid in candidates
                for key in (f"{self._blocks[rowid - 1].id}-title", f"{self._blocks[rowid - 1].id}-content")
                if key in by_key
            ]

        max_results = self.config.get('search.max_results', 0) or 0
        if max_results > 0:
            results = results[:max_results]

        duration = time.perf_counter() - start
        record_search_metrics(duration, len(results))
        logger.debug(
            "Search %r returned %d results", query, len(results),
            extra={"query": query, "result_count": len(results), "duration_ms": duration * 1000}
        )
        return results

    # ---------------------------------------------------------------- persist

    def export(self) -> Dict[str, Any]:
        """Serialize the index to a JSON-ready dictionary.

        Raises:
            IndexExportError: If the index was never built or holds no documents.
        """
        if not self._ready:
            raise IndexExportError("Index export returned no data; the index was never built")
        if not self._blocks:
            raise IndexExportError("Index export returned no data; the index holds no documents")

        return {
            "format": EXPORT_FORMAT,
            "version": EXPORT_VERSION,
            "fields": {"index": list(INDEXED_FIELDS), "store": list(STORED_FIELDS)},
            "documents": [block.to_record() for block in self._blocks],
        }

    @classmethod
    def from_export(cls, data: Dict[str, Any], config: Optional[SearchConfig] = None) -> "SearchIndex":
        """Hydrate a ready index from :meth:`export` output.

        Raises:
            IndexFormatError: If the payload is not a supported export.
        """
        if not isinstance(data, dict) or data.get("format") != EXPORT_FORMAT:
            raise IndexFormatError("Payload is not a handbook search index export")
        if data.get("version") != EXPORT_VERSION:
            raise IndexFormatError(f"Unsupported index export version: {data.get('version')!r}")

        documents = data.get("documents")
        if not isinstance(documents, list):
            raise IndexFormatError("Index export has no document list")

        try:
            blocks = [Block.model_validate(_with_kind(record)) for record in documents]
        except (ValidationError, TypeError) as e:
            raise IndexFormatError(f"Invalid document in index export: {e}") from e

        index = cls(config)
        index._load(blocks)
        logger.info("Hydrated search index with %d blocks", len(index))
        return index

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Write :meth:`export` output to ``path`` (default from config)."""
        payload = self.export()
        target = Path(path or self.config.get_export_path())
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        logger.info("Index exported to %s (%d documents)", target, len(payload["documents"]))
        return target

    @classmethod
    def load(cls, path: Union[str, Path], config: Optional[SearchConfig] = None) -> "SearchIndex":
        """Hydrate an index from a file written by :meth:`save`."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise IndexFormatError(f"Index file {path} is not valid JSON: {e}") from e
        return cls.from_export(data, config)

    def close(self) -> None:
        """Release the SQLite connection; waits for any in-flight query."""
        with self._lock:
            self._ready = False
            if self._conn is not None:
                self._conn.close()
                self._conn = None


def _with_kind(record: Any) -> Any:
    # Exports written by other tools may carry only the isDrawer flag
    if not isinstance(record, dict) or "kind" in record:
        return record
    if record.get("isDrawer"):
        kind = BlockKind.DRAWER
    elif record.get("anchor") == "intro":
        kind = BlockKind.INTRO
    else:
        kind = BlockKind.HEADING
    return {**record, "kind": kind.value}


def build_search_index(sections: Iterable[Section], config: Optional[SearchConfig] = None) -> SearchIndex:
    """Convenience function: construct and build an index in one call."""
    return SearchIndex(config).build(sections)
