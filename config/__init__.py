"""Configuration module for handbook search.

Provides YAML-backed configuration for corpus loading, extraction, indexing and search.
"""

from .search_config import (
    DEFAULT_CONFIG,
    SearchConfig,
    load_search_config
)

__all__ = [
    'DEFAULT_CONFIG',
    'SearchConfig',
    'load_search_config'
]
