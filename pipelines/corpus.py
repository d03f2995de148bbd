"""Corpus loader for the handbook markdown tree.

Expected layout::

    <root>/<section>/<section>.md
    <root>/<section>/<subsection>/<subsection>.md
    <root>/<section>/<subsection>/drawer/<term>.md

Unreadable files and directories are logged and skipped so a partial corpus
still loads.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from indexer.models import Document, Section, Subsection
from observability.prometheus_metrics import record_document_failure
from .frontmatter import parse_frontmatter

logger = logging.getLogger(__name__)

DEFAULT_ORDER = 999
UNNAMED_DRAWER_TITLE = "unnamed drawer content"


def _order_of(frontmatter: Dict[str, Any]) -> float:
    order = frontmatter.get("order")
    if isinstance(order, bool) or not isinstance(order, (int, float)):
        return DEFAULT_ORDER
    return order


def _sort_key(doc: Document):
    return (doc.order, doc.id)


class CorpusLoader:
    """Loads sections, subsections and drawer files from a markdown tree."""

    def __init__(
        self,
        root: Union[str, Path],
        excluded_sections: Optional[Iterable[str]] = None,
        drawer_dir: str = "drawer",
        load_drawer_files: bool = True,
    ):
        """Initialize corpus loader.

        Args:
            root: Directory holding one folder per section
            excluded_sections: Section folder names to skip entirely
            drawer_dir: Name of the per-subsection folder holding drawer files
            load_drawer_files: Whether to read drawer files at all
        """
        self.root = Path(root)
        self.excluded_sections = set(excluded_sections or [])
        self.drawer_dir = drawer_dir
        self.load_drawer_files = load_drawer_files
        self.stats = {"documents_loaded": 0, "documents_failed": 0}

    @classmethod
    def from_config(cls, config, root: Optional[Union[str, Path]] = None) -> "CorpusLoader":
        return cls(
            root=root or config.get_corpus_root(),
            excluded_sections=config.get_excluded_sections(),
            drawer_dir=config.get_drawer_dir(),
            load_drawer_files=config.should_index_drawer_files(),
        )

    def _read(self, path: Path) -> Optional[str]:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping unreadable document %s: %s", path, e)
            self.stats["documents_failed"] += 1
            record_document_failure("load")
            return None
        self.stats["documents_loaded"] += 1
        return text

    def _skip_directory(self, path: Path, error: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", path, error)
        self.stats["documents_failed"] += 1
        record_document_failure("load")

    def _list_dirs(self, path: Path) -> List[Path]:
        try:
            return sorted(p for p in path.iterdir() if p.is_dir())
        except OSError as e:
            self._skip_directory(path, e)
            return []

    def _main_file(self, directory: Path) -> Optional[Path]:
        """``<dir>/<dir>.md`` if it exists and can be inspected."""
        path = directory / f"{directory.name}.md"
        try:
            return path if path.is_file() else None
        except OSError as e:
            self._skip_directory(directory, e)
            return None

    def _load_document(self, path: Path, doc_id: str) -> Optional[Dict[str, Any]]:
        raw = self._read(path)
        if raw is None:
            return None

        parsed = parse_frontmatter(raw)
        fm = parsed.frontmatter
        title = fm.get("title")
        if title is None or title == "":
            title = parsed.content.split("\n")[0].replace("# ", "", 1).strip()

        final = fm.get("final")
        return {
            "id": doc_id,
            "title": str(title),
            "order": _order_of(fm),
            "content": parsed.content,
            "final": final if isinstance(final, bool) else None,
            "frontmatter": fm,
            "source_path": str(path),
        }

    def load_drawers(self, subsection_dir: Path) -> List[Document]:
        """Load standalone drawer files of one subsection, sorted by name."""
        if not self.load_drawer_files:
            return []
        drawer_root = subsection_dir / self.drawer_dir
        try:
            paths = sorted(drawer_root.glob("*.md")) if drawer_root.is_dir() else []
        except OSError as e:
            self._skip_directory(drawer_root, e)
            return []

        drawers = []
        for path in paths:
            raw = self._read(path)
            if raw is None:
                continue
            parsed = parse_frontmatter(raw)
            title = parsed.frontmatter.get("title")
            if not title:
                first_line = parsed.content.split("\n")[0].strip()
                header = re.match(r'^#+\s*(.*)', first_line)
                title = header.group(1).strip() if header else UNNAMED_DRAWER_TITLE
            drawers.append(Document(
                id=path.stem,
                title=str(title),
                order=_order_of(parsed.frontmatter),
                content=parsed.content,
                frontmatter=parsed.frontmatter,
                source_path=str(path),
            ))
        return drawers

    def load_subsections(self, section_dir: Path) -> List[Subsection]:
        """Load every ``<sub>/<sub>.md`` under a section folder."""
        subsections = []
        for sub_dir in self._list_dirs(section_dir):
            if sub_dir.name == self.drawer_dir:
                continue
            path = self._main_file(sub_dir)
            if path is None:
                continue
            data = self._load_document(path, sub_dir.name)
            if data is None:
                continue
            subsections.append(Subsection(drawers=self.load_drawers(sub_dir), **data))
        return sorted(subsections, key=_sort_key)

    def load_sections(self) -> List[Section]:
        """Load the whole corpus as sections ordered by ``(order, id)``.

        Returns:
            List of sections; empty when the root directory is missing
        """
        if not self.root.is_dir():
            logger.warning("Corpus directory not found: %s", self.root)
            return []

        sections = []
        for section_dir in self._list_dirs(self.root):
            if section_dir.name in self.excluded_sections:
                logger.debug("Skipping excluded section %s", section_dir.name)
                continue
            path = self._main_file(section_dir)
            if path is None:
                continue
            data = self._load_document(path, section_dir.name)
            if data is None:
                continue
            sections.append(Section(subsections=self.load_subsections(section_dir), **data))

        sections.sort(key=_sort_key)
        logger.info(
            "Loaded %d sections from %s (%d files read, %d failed)",
            len(sections), self.root, self.stats["documents_loaded"], self.stats["documents_failed"],
            extra={"corpus_root": str(self.root), "sections": len(sections), **self.stats}
        )
        return sections


def load_corpus(root: Union[str, Path], config=None) -> List[Section]:
    """Convenience function to load a corpus tree.

    Args:
        root: Corpus root directory
        config: Optional SearchConfig supplying exclusions and drawer settings
    """
    if config is not None:
        loader = CorpusLoader.from_config(config, root=root)
    else:
        loader = CorpusLoader(root)
    return loader.load_sections()
