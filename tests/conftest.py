import os
import sys
from pathlib import Path

import pytest

# Add the parent directory to the path so we can import the project packages
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from config.search_config import SearchConfig
from indexer.search_index import SearchIndex
from pipelines.corpus import CorpusLoader

CORPUS_FILES = {
    "privacy/privacy.md": """---
title: Privacy
order: 1
final: true
---
# Privacy

Privacy matters a lot.

## Apple Policy
No fruit.

## Data
We like apple pie.
""",
    "privacy/storage/storage.md": """---
title: Storage
order: 2
---
# Storage

Where data lives.

## Retention
Keep logs for C++ (intro) reasons.

## All Sidebar Content Below

log-rotation:
Heading: Log Rotation
Rotate logs weekly.
""",
    "privacy/storage/drawer/encryption.md": """---
title: Encryption at rest
---
All disks are encrypted.
""",
    "privacy/cookies/cookies.md": """---
title: Cookies
order: 1
---
# Cookies

Cookie banner details.
""",
    "about/about.md": """---
title: About Us
order: 5
---
# About Us

We build handbooks.

## Team
The team page.
""",
    "primers/primers.md": """# Primers

Secret apple primer.
""",
}


def write_corpus(root: Path, files=None) -> Path:
    for relative, text in (files or CORPUS_FILES).items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def corpus_dir(tmp_path):
    """A small handbook tree with sections, subsections, drawers and an excluded section."""
    return write_corpus(tmp_path / "markdown")


@pytest.fixture
def search_config(tmp_path, corpus_dir):
    """Default settings pointed at the temporary corpus, ignoring any config file on disk."""
    return SearchConfig(
        config_path=str(tmp_path / "missing.yaml"),
        overrides={
            "corpus": {"root": str(corpus_dir)},
            "export": {"path": str(tmp_path / "search-index.json")},
        },
    )


@pytest.fixture
def sections(search_config):
    return CorpusLoader.from_config(search_config).load_sections()


@pytest.fixture
def built_index(search_config, sections):
    index = SearchIndex(search_config).build(sections)
    yield index
    index.close()
