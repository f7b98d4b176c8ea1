# -*- coding: utf-8 -*-
"""content-store is an HTTP service that keeps uploaded files under the digest
of their bytes. Clients ``POST`` files and get back one digest per file, then
fetch or delete the content by that digest alone.

What the service guarantees:

- An uploaded file becomes visible under its digest only once it is complete.
- The same bytes uploaded twice, under any filename, are stored once.
- Nothing but the bytes is kept; names and other metadata belong to the caller.
"""

from .__meta__ import (
    __title__,
    __summary__,
    __version__,
    __author__,
    __license__,
)

from .config import Config
from .digest import DigestStream, HashlibStrategy, HashStrategy, hash_factory
from .errors import (
    ConfigurationError,
    ConflictError,
    ContentStoreError,
    NotFoundError,
    StorageError,
    StreamError,
)
from .ingest import IngestionCoordinator, IngestResult, Part, UploadTask
from .repository import ContentRepository
from .staging import StagingArea, StagingFile


__all__ = (
    "Config",
    "ConfigurationError",
    "ConflictError",
    "ContentRepository",
    "ContentStoreError",
    "DigestStream",
    "HashStrategy",
    "HashlibStrategy",
    "IngestResult",
    "IngestionCoordinator",
    "NotFoundError",
    "Part",
    "StagingArea",
    "StagingFile",
    "StorageError",
    "StreamError",
    "UploadTask",
    "hash_factory",
)
