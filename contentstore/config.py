# -*- coding: utf-8 -*-
"""Configuration for the content store service."""

import os
import tempfile
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .digest import ENCODINGS, hash_factory
from .errors import ConfigurationError

ENV_PREFIX = "CONTENT_STORE_"


@dataclass(frozen=True)
class Config:
    """Immutable settings handed to the core at construction.

    Attributes:
        name: Service name, reported on the root route.
        storage_root: Directory holding one file per digest.
        tmp_root: Directory for staging files. Defaults to the process temp
            directory.
        algorithm: Hash algorithm name, see :func:`contentstore.digest.hash_factory`.
        encoding: Digest string encoding (``hex`` or ``base32``).
        fmode: File mode applied to stored objects. Defaults to ``0o664``
            which allows owner/group to read/write and everyone else to read.
        host: Bind address for the HTTP server.
        port: Bind port for the HTTP server.
    """

    name: str = "content-store"
    storage_root: str = "data"
    tmp_root: Optional[str] = None
    algorithm: str = "sha256"
    encoding: str = "hex"
    fmode: int = 0o664
    host: str = "127.0.0.1"
    port: int = 8001

    def __post_init__(self):
        if self.encoding not in ENCODINGS:
            raise ConfigurationError(
                f"Unsupported digest encoding: {self.encoding!r}")

        # Fail at startup rather than on the first upload.
        hash_factory(self.algorithm)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides):
        """Build a config from ``CONTENT_STORE_*`` environment variables.
        Keyword `overrides` that are not ``None`` win over the environment.
        """
        if environ is None:
            environ = os.environ

        values = {}
        for field, cast in (("name", str),
                            ("storage_root", str),
                            ("tmp_root", str),
                            ("algorithm", str),
                            ("encoding", str),
                            ("host", str),
                            ("port", int)):
            key = ENV_PREFIX + _env_name(field)
            if key not in environ:
                continue
            try:
                values[field] = cast(environ[key])
            except ValueError:
                raise ConfigurationError(
                    f"Invalid value for {key}: {environ[key]!r}")

        values.update((k, v) for k, v in overrides.items() if v is not None)

        return cls(**values)

    def resolved(self, cwd: Optional[str] = None) -> "Config":
        """Return a copy with absolute `storage_root` and `tmp_root`."""
        cwd = cwd or os.getcwd()
        storage_root = os.path.abspath(os.path.join(cwd, self.storage_root))
        tmp_root = os.path.abspath(
            os.path.join(cwd, self.tmp_root or tempfile.gettempdir()))

        return replace(self, storage_root=storage_root, tmp_root=tmp_root)


def _env_name(field):
    # storage_root -> STORAGE_DIR, tmp_root -> TMP_DIR
    if field.endswith("_root"):
        field = field[:-len("_root")] + "_dir"
    return field.upper()
