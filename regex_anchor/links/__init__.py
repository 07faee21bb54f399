"""Link index engine: file scanning, destination indexing and source resolution."""

from .indexer import LinkIndexer
from .resolver import LinkResolver
from .scanner import FileScanner

__all__ = ["FileScanner", "LinkIndexer", "LinkResolver"]
