"""
Core Package

Exception taxonomy and logging setup shared by every component.
"""

from .errors import (
    ServiceSearchError,
    ConfigurationError,
    CorpusError,
    EmbeddingError,
    VectorIndexError,
    IndexPersistenceError,
    SchemaMismatchError,
    report_fatal,
)
from .logging import configure_logging

__all__ = [
    "ServiceSearchError",
    "ConfigurationError",
    "CorpusError",
    "EmbeddingError",
    "VectorIndexError",
    "IndexPersistenceError",
    "SchemaMismatchError",
    "report_fatal",
    "configure_logging",
]
