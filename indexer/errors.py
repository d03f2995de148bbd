"""Exceptions raised by the search index."""


class SearchIndexError(Exception):
    """Base class for search index failures."""
    pass


class IndexNotReadyError(SearchIndexError):
    """Raised when an index is queried or exported before it was built."""
    pass


class IndexExportError(SearchIndexError):
    """Raised when serializing the index yields no data."""
    pass


class IndexFormatError(SearchIndexError):
    """Raised when an exported index payload cannot be hydrated."""
    pass
