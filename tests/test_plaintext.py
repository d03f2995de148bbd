import pytest

from pipelines.plaintext import markdown_to_plaintext, split_paragraphs


class TestMarkdownToPlaintext:
    """Test markdown stripping used for matching and snippets."""

    def test_links_keep_text(self):
        assert markdown_to_plaintext("See [the guide](https://example.com).") == "See the guide."

    def test_images_removed(self):
        assert markdown_to_plaintext("Before ![diagram](img.png) after") == "Before after"

    def test_drawer_references(self):
        assert markdown_to_plaintext("Read about {data-retention} here") == "Read about data retention here"

    def test_emphasis_and_code(self):
        text = "**bold** and *italic* and __strong__ and `code`"
        assert markdown_to_plaintext(text) == "bold and italic and strong and code"

    def test_heading_markers(self):
        assert markdown_to_plaintext("### Deep heading\nText") == "Deep heading\nText"

    def test_footnotes_removed(self):
        assert markdown_to_plaintext("A claim[^1] stands.") == "A claim stands."

    def test_leading_frontmatter_removed(self):
        assert markdown_to_plaintext("---\ntitle: X\n---\nBody") == "Body"

    def test_whitespace_collapsed(self):
        text = "one   two\t\tthree\n\n\n\nfour"
        assert markdown_to_plaintext(text) == "one two three\n\nfour"

    def test_nested_constructs_fully_reduced(self):
        assert markdown_to_plaintext("**[link](https://x.org)**") == "link"

    def test_empty(self):
        assert markdown_to_plaintext("") == ""

    @pytest.mark.parametrize("text", [
        "**[link](https://x.org)** and {term-one}",
        "# Title\n\n\n\nPara   one\n\n*nested **bold***",
        "![a](b) [^x] `code` __u__",
        "---\na: b\n---\n---\nc: d\n---\nBody",
        "plain text",
    ])
    def test_idempotent(self, text):
        once = markdown_to_plaintext(text)
        assert markdown_to_plaintext(once) == once


class TestSplitParagraphs:

    def test_splits_on_blank_lines(self):
        assert split_paragraphs("one\n\ntwo\n  \nthree") == ["one", "two", "three"]

    def test_drops_empty_paragraphs(self):
        assert split_paragraphs("\n\n") == []
