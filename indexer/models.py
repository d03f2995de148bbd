"""Data models shared by the extraction pipeline and the search index."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class BlockKind(str, Enum):
    """Kinds of indexable blocks."""
    INTRO = "intro"
    HEADING = "heading"
    DRAWER = "drawer"


class Document(BaseModel):
    """A markdown document (section, subsection or drawer file) after frontmatter removal."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    order: float = 999
    content: str = ""
    final: Optional[bool] = None
    frontmatter: Dict[str, Any] = Field(default_factory=dict)
    source_path: Optional[str] = None


class Subsection(Document):
    drawers: List[Document] = Field(default_factory=list)


class Section(Document):
    subsections: List[Subsection] = Field(default_factory=list)


class Block(BaseModel):
    """The atomic record fed to the search index.

    Field aliases are the camelCase names used in exported indexes and API
    responses; both spellings are accepted on input.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    kind: BlockKind
    section: str
    section_title: Optional[str] = Field(default=None, alias="sectionTitle")
    subsection: Optional[str] = None
    subsection_title: Optional[str] = Field(default=None, alias="subsectionTitle")
    anchor: str
    title: str
    content: str = ""

    @computed_field(alias="isDrawer")
    @property
    def is_drawer(self) -> bool:
        return self.kind is BlockKind.DRAWER

    def to_record(self) -> Dict[str, Any]:
        """Serialize with camelCase keys for export."""
        return self.model_dump(mode="json", by_alias=True)


class SearchHit(BaseModel):
    """One search result: a block plus the snippet that matched."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    doc: Block
    snippet: str
    all_snippets: List[str] = Field(default_factory=list, alias="allSnippets")
    matched_field: Literal["title", "content"] = Field(alias="matchedField")
