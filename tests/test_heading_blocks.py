import pytest

from indexer.models import BlockKind
from pipelines.heading_blocks import (
    ExtractorState,
    HeadingBlockExtractor,
    block_id,
    extract_heading_blocks,
    slugify,
)


class TestSlugify:

    @pytest.mark.parametrize("text,expected", [
        ("Data Retention", "data-retention"),
        ("What's New?", "whats-new"),
        ("  Spaced   Out  ", "-spaced-out-"),
        ("C++ (intro)", "c-intro"),
        ("already-a-slug", "already-a-slug"),
        ("snake_case_heading", "snake_case_heading"),
    ])
    def test_slugify(self, text, expected):
        assert slugify(text) == expected

    @pytest.mark.parametrize("text", [
        "Data Retention", "What's New?", "  Spaced \t Out  ", "Ünïcode Tïtle", "a -- b",
    ])
    def test_idempotent_lowercase_no_whitespace(self, text):
        slug = slugify(text)
        assert slugify(slug) == slug
        assert slug == slug.lower()
        assert not any(ch.isspace() for ch in slug)

    def test_empty(self):
        assert slugify("") == ""
        assert slugify(None) == ""


class TestHeadingBlockExtractor:
    """Test splitting a markdown body into blocks."""

    def test_alpha_beta_headings(self):
        blocks = extract_heading_blocks("## Alpha\ntext one\n\n## Beta\ntext two", "guide")

        assert [b.anchor for b in blocks] == ["alpha", "beta"]
        assert [b.id for b in blocks] == ["guide#alpha", "guide#beta"]
        assert all(not b.is_drawer for b in blocks)
        assert blocks[0].content == "text one"
        assert blocks[1].content == "text two"

    def test_drawer_sentinel(self):
        body = "## All Sidebar Content Below\n\nterm-one:\nHeading: Term One\nBody text"
        blocks = extract_heading_blocks(body, "guide", "Guide", "terms", "Terms")

        assert len(blocks) == 1
        drawer = blocks[0]
        assert drawer.anchor == "term-one"
        assert drawer.title == "Term One"
        assert drawer.is_drawer
        assert drawer.kind is BlockKind.DRAWER
        assert drawer.id == "guide/terms#term-one"
        assert drawer.content == "Body text"

    def test_sidebar_alias_is_a_sentinel(self):
        blocks = extract_heading_blocks("## Sidebar\nfaq:\nHeading: FAQ\nAnswers", "guide")
        assert [(b.anchor, b.kind) for b in blocks] == [("faq", BlockKind.DRAWER)]

    def test_multiple_drawers_and_lowercased_anchor(self):
        body = (
            "## All Sidebar Content Below\n"
            "Term-A:\nHeading: First\nAlpha text\n\n"
            "term_b:\nSecond entry with a rather long opening line here\n"
            "empty-one:\n"
        )
        blocks = extract_heading_blocks(body, "guide")

        assert [b.anchor for b in blocks] == ["term-a", "term_b", "empty-one"]
        assert blocks[0].title == "First"
        assert blocks[1].title == "Second entry with a rather..."
        assert blocks[1].content == "Second entry with a rather long opening line here"
        assert blocks[2].title == "empty one"

    def test_derived_drawer_title_is_normalized(self):
        blocks = extract_heading_blocks("## Sidebar\nlink:\nSee **the** [guide](x)", "guide")
        assert blocks[0].title == "See the guide"

    def test_intro_skips_title_lines(self):
        body = "# Guide\n\nWelcome to the guide.\n\n## Setup\nInstall it."
        blocks = extract_heading_blocks(body, "guide", "Guide")

        intro = blocks[0]
        assert intro.kind is BlockKind.INTRO
        assert intro.id == "guide#intro"
        assert intro.title == "Introduction"
        assert intro.content == "Welcome to the guide."
        assert blocks[1].id == "guide#setup"

    def test_empty_intro_is_skipped(self):
        blocks = extract_heading_blocks("# Guide\n\n## Setup\nInstall it.", "guide")
        assert [b.anchor for b in blocks] == ["setup"]

    def test_repeated_heading_last_write_wins(self):
        body = "## Notes\nfirst\n\n## Other\nmiddle\n\n## Notes\nsecond"
        blocks = extract_heading_blocks(body, "guide")

        ids = [b.id for b in blocks]
        assert len(ids) == len(set(ids))
        notes = [b for b in blocks if b.anchor == "notes"]
        assert len(notes) == 1
        assert notes[0].content == "second"

    def test_unsluggable_heading_falls_back(self):
        blocks = extract_heading_blocks("## ???\ntext", "guide")
        assert blocks[0].anchor == "unknown"

    def test_carriage_returns_removed(self):
        blocks = extract_heading_blocks("## Alpha\r\ntext one\r\n", "guide")
        assert blocks[0].content == "text one"

    def test_scope_fields(self):
        blocks = extract_heading_blocks("## Alpha\nx", "privacy", "Privacy", "storage", "Storage")
        block = blocks[0]

        assert block.section == "privacy"
        assert block.section_title == "Privacy"
        assert block.subsection == "storage"
        assert block.subsection_title == "Storage"

    def test_custom_sentinels(self):
        extractor = HeadingBlockExtractor(drawer_sentinels=["Glossary"])
        blocks = extractor.extract("## Glossary\nterm:\nMeaning\n\n## Sidebar\nplain", "guide")

        assert blocks[0].kind is BlockKind.DRAWER
        assert blocks[1].kind is BlockKind.HEADING
        assert blocks[1].anchor == "sidebar"

    def test_from_config(self, search_config):
        extractor = HeadingBlockExtractor.from_config(search_config)
        assert "All Sidebar Content Below" in extractor.drawer_sentinels
        assert extractor.intro_title == "Introduction"


def test_block_id():
    assert block_id("privacy", None, "intro") == "privacy#intro"
    assert block_id("privacy", "storage", "retention") == "privacy/storage#retention"


def test_extractor_states():
    assert {state.name for state in ExtractorState} == {
        "NO_BLOCK", "IN_HEADING_BLOCK", "IN_DRAWER_SENTINEL_BLOCK"
    }
