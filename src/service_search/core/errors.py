"""
Error Taxonomy and Fatal Reporting

This module defines every exception the search tool raises on purpose, plus
the single top-level reporter used by the CLI.

Design Goals
------------
- One base class so the entry point can catch all expected failures
- Wrap library exceptions (httpx, json, pydantic, FAISS) with context
- Never retry; every failure ends the current run
- Log the full stack trace, show the user one line
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO, Optional

logger = logging.getLogger("svc.errors")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class ServiceSearchError(RuntimeError):
    """Base error for all expected failures."""


class ConfigurationError(ServiceSearchError):
    """Raised when required settings are missing or invalid."""


class CorpusError(ServiceSearchError):
    """Raised when the corpus file is missing or cannot be decoded."""


class EmbeddingError(ServiceSearchError):
    """Raised when embedding generation fails."""


class VectorIndexError(ServiceSearchError):
    """Raised when a schema, upsert or query operation fails."""


class IndexPersistenceError(VectorIndexError):
    """Raised when index persistence fails."""


class SchemaMismatchError(VectorIndexError):
    """Raised when vector dimensionality disagrees with the index schema."""


# ---------------------------------------------------------------------
# Fatal Reporting
# ---------------------------------------------------------------------

def report_fatal(exc: BaseException, stream: Optional[TextIO] = None) -> None:
    """
    Report an error that ends the current run.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Writes a single diagnostic line to ``stream`` (stderr by default).

    Parameters
    ----------
    exc : BaseException
        The exception that terminated the run.

    stream : Optional[TextIO]
        Where to write the user-facing diagnostic.
    """
    logger.exception(
        "Run aborted by %s",
        type(exc).__name__,
        exc_info=exc,
    )

    out = stream if stream is not None else sys.stderr
    print(f"error: {type(exc).__name__}: {exc}", file=out)
