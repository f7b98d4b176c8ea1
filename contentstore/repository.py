# -*- coding: utf-8 -*-
"""Module for the ContentRepository class."""

import io
import logging
from typing import Iterable

import fs as pyfs
from fs.osfs import OSFS

from .errors import ConflictError, NotFoundError, StorageError

logger = logging.getLogger(__name__)

# Characters that would let a digest leave the storage root.
UNSAFE_CHARS = ("/", "\\", "\0")


def is_digest(value: str) -> bool:
    """Return whether `value` can name an object in the repository: a single
    path segment that is not hidden.
    """
    return (bool(value)
            and not value.startswith(".")
            and not any(char in value for char in UNSAFE_CHARS))


class ContentRepository(object):
    """Directory-backed mapping from digest to stored bytes.

    Every object lives at ``root/<digest>``; there is no sharding, no
    extension and no index besides the directory itself. Names starting with
    a dot are staging leftovers and are never reported as objects.

    Attributes:
        root: Absolute directory path used as root of storage space.
        fs: The :class:`fs.osfs.OSFS` instance rooted at :attr:`root`.
    """

    def __init__(self, root: str):
        try:
            self.fs = OSFS(root, create=True)
        except pyfs.errors.CreateFailed as exc:
            raise StorageError(f"Cannot open storage root {root!r}: {exc}")

        self.root = self.fs.getsyspath("/").rstrip("/\\") or "/"

    def path(self, digest: str) -> str:
        """Return the absolute path where `digest` is (or would be) stored.

        Raises:
            NotFoundError: If `digest` is not a valid digest token.
        """
        self._check(digest)
        return self.fs.getsyspath(digest)

    def exists(self, digest: str) -> bool:
        """Check whether an object for `digest` exists on disk."""
        return is_digest(digest) and self.fs.isfile(digest)

    def open(self, digest: str) -> io.IOBase:
        """Return a binary read handle for `digest`.

        Raises:
            NotFoundError: If no object is stored for `digest`.
        """
        self._check(digest)
        try:
            return self.fs.openbin(digest, "r")
        except (pyfs.errors.ResourceNotFound, pyfs.errors.FileExpected):
            raise NotFoundError(f"Could not locate object: {digest}")

    def delete(self, digest: str) -> None:
        """Delete the object stored for `digest`.

        Raises:
            NotFoundError: If no object is stored for `digest`.
            ConflictError: If the object exists but could not be removed.
        """
        if not self.exists(digest):
            raise NotFoundError(f"Could not locate object: {digest}")

        try:
            self.fs.remove(digest)
        except pyfs.errors.ResourceNotFound:
            # Lost a race with another delete.
            raise NotFoundError(f"Could not locate object: {digest}")
        except pyfs.errors.FSError as exc:
            logger.error("Failed to remove %s: %s", digest, exc)
            raise ConflictError(f"Could not remove object {digest}: {exc}")

        logger.debug("Deleted %s", digest)

    def files(self) -> Iterable[str]:
        """Return generator that yields the digest of every stored object."""
        for info in self.fs.scandir("/"):
            if info.is_file and is_digest(info.name):
                yield info.name

    def count(self) -> int:
        """Return count of the number of objects in :attr:`root`."""
        return sum(1 for _ in self.files())

    def size(self) -> int:
        """Return the total size in bytes of all objects in :attr:`root`."""
        return sum(info.size
                   for info in self.fs.scandir("/", namespaces=["details"])
                   if info.is_file and is_digest(info.name))

    def close(self) -> None:
        self.fs.close()

    def __contains__(self, digest: str) -> bool:
        return self.exists(digest)

    def __iter__(self) -> Iterable[str]:
        return self.files()

    def __len__(self) -> int:
        return self.count()

    def _check(self, digest):
        if not is_digest(digest):
            raise NotFoundError(f"Not a valid digest: {digest!r}")
