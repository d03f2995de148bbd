"""Configuration loader for search settings."""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'HANDBOOK_SEARCH_CONFIG'

# Default configuration
DEFAULT_CONFIG = {
    'corpus': {
        'root': 'src/markdown',
        'excluded_sections': ['primers'],
        'drawer_dir': 'drawer',
        'index_drawer_files': True
    },
    'extraction': {
        'drawer_sentinels': ['All Sidebar Content Below', 'Sidebar'],
        'intro_skip_lines': 2,
        'intro_anchor': 'intro',
        'intro_title': 'Introduction',
        'drawer_title_words': 5
    },
    'index': {
        'tokenizer': 'unicode61 remove_diacritics 2',
        'about_section_id': 'about',
        'about_label': 'About',
        'prebuilt_path': None
    },
    'search': {
        'min_query_length': 1,
        'highlight_open': '<mark>',
        'highlight_close': '</mark>',
        'title_matches_first': True,
        'max_results': 0
    },
    'export': {
        'path': 'search-index.json'
    },
    'logging': {
        'level': 'INFO',
        'use_json': False,
        'log_file': None
    }
}


class SearchConfig:
    """Search configuration manager."""

    def __init__(self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        self.config_path = config_path or self._get_default_config_path()
        self._overrides = overrides or {}
        self._config = self._load_config()

    def _get_default_config_path(self) -> str:
        """Get the default configuration file path."""
        # Look for config file in multiple locations
        possible_paths = [
            os.environ.get(CONFIG_ENV_VAR),
            os.path.join(os.getcwd(), 'config', 'search_config.yaml'),
            os.path.join(Path(__file__).parent, 'search_config.yaml'),
            os.path.join(os.path.expanduser('~'), '.handbook-search', 'search_config.yaml')
        ]

        for path in possible_paths:
            if path and os.path.exists(path):
                return path

        # Return the expected path even if it doesn't exist
        return os.path.join(Path(__file__).parent, 'search_config.yaml')

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file or use defaults."""
        config = copy.deepcopy(DEFAULT_CONFIG)

        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    file_config = yaml.safe_load(f) or {}

                if not isinstance(file_config, dict):
                    raise ValueError("top-level YAML value must be a mapping")

                config = self._deep_merge(config, file_config)

            except (OSError, yaml.YAMLError, ValueError) as e:
                logger.warning("Failed to load search config from %s: %s; using defaults",
                               self.config_path, e)
        else:
            logger.debug("Search config file not found at %s, using defaults", self.config_path)

        if self._overrides:
            config = self._deep_merge(config, self._overrides)

        return config

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key, e.g. ``search.highlight_open``."""
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def as_dict(self) -> Dict[str, Any]:
        """Return a copy of the merged configuration."""
        return copy.deepcopy(self._config)

    def get_corpus_root(self) -> str:
        return self.get('corpus.root', 'src/markdown')

    def get_excluded_sections(self) -> List[str]:
        return list(self.get('corpus.excluded_sections', []) or [])

    def get_drawer_dir(self) -> str:
        return self.get('corpus.drawer_dir', 'drawer')

    def should_index_drawer_files(self) -> bool:
        return bool(self.get('corpus.index_drawer_files', True))

    def get_drawer_sentinels(self) -> List[str]:
        return list(self.get('extraction.drawer_sentinels', []) or [])

    def get_highlight_markers(self) -> Dict[str, str]:
        """Get the opening and closing highlight markup."""
        return {
            'open': self.get('search.highlight_open', '<mark>'),
            'close': self.get('search.highlight_close', '</mark>')
        }

    def get_export_path(self) -> str:
        return self.get('export.path', 'search-index.json')

    def get_prebuilt_index_path(self) -> Optional[str]:
        return self.get('index.prebuilt_path')

    def get_logging_settings(self) -> Dict[str, Any]:
        return {
            'level': self.get('logging.level', 'INFO'),
            'use_json': self.get('logging.use_json', False),
            'log_file': self.get('logging.log_file')
        }

    def reload(self):
        """Reload configuration from file."""
        self._config = self._load_config()


def load_search_config(config_path: Optional[str] = None, **overrides: Any) -> SearchConfig:
    """Load the search configuration, optionally overriding sections.

    Args:
        config_path: Explicit YAML file path. Falls back to the default lookup.
        **overrides: Top-level sections to deep-merge over the loaded values,
            e.g. ``search={'max_results': 10}``.
    """
    return SearchConfig(config_path=config_path, overrides=overrides or None)
