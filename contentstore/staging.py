# -*- coding: utf-8 -*-
"""Staging files and the atomic commit into the repository."""

import errno
import logging
import os
import secrets
import shutil
from collections import namedtuple
from typing import AsyncIterable

import anyio
import anyio.to_thread

from .digest import DigestStream, HashStrategy
from .errors import StorageError, StreamError
from .repository import ContentRepository, is_digest

logger = logging.getLogger(__name__)


class StagingFile(namedtuple("StagingFile", ["path", "sink"])):
    """Temporary file receiving one part: its path and the open async sink."""
    pass


def tmp_name(prefix: str = "tmp_") -> str:
    """Return a random staging file name."""
    return f"{prefix}{secrets.token_hex(16)}"


class StagingArea(object):
    """Write uploads to unique temporary files and commit them by digest.

    Args:
        repository: Repository the committed objects land in.
        tmp_root: Directory for staging files. It should live on the same
            device as the repository root, otherwise commits fall back to a
            copy inside the repository followed by a rename.
        encoding: Digest encoding passed to every :class:`DigestStream`.
        fmode (int, optional): File mode permission to set on committed
            objects. Defaults to ``0o664``.
    """

    def __init__(self,
                 repository: ContentRepository,
                 tmp_root: str,
                 encoding: str = "hex",
                 fmode: int = 0o664):
        self.repository = repository
        self.tmp_root = tmp_root
        self.encoding = encoding
        self.fmode = fmode

        os.makedirs(self.tmp_root, exist_ok=True)

    async def begin_staging(self) -> StagingFile:
        """Create a new uniquely named staging file opened for exclusive
        writing.
        """
        path = os.path.join(self.tmp_root, tmp_name())
        try:
            sink = await anyio.open_file(path, "xb")
        except OSError as exc:
            raise StorageError(f"Cannot create staging file: {exc}") from exc

        return StagingFile(path, sink)

    async def write_all(self,
                        staging: StagingFile,
                        source: AsyncIterable[bytes],
                        strategy: HashStrategy) -> str:
        """Pipe `source` through a :class:`DigestStream` into the staging
        sink and return the digest once the bytes are on stable storage.

        The sink is closed in every case.
        """
        stream = DigestStream(source, strategy, self.encoding)

        try:
            async for chunk in stream:
                await staging.sink.write(chunk)

            await staging.sink.flush()
            await anyio.to_thread.run_sync(os.fsync,
                                           staging.sink.wrapped.fileno())
        except StreamError:
            raise
        except OSError as exc:
            raise StorageError(f"Cannot write staging file: {exc}") from exc
        finally:
            await staging.sink.aclose()

        return stream.digest()

    async def commit(self, tmp_path: str, digest: str) -> str:
        """Atomically move `tmp_path` to the object path for `digest`,
        replacing any object already stored there. Returns the final path.
        """
        if not is_digest(digest):
            raise StorageError(
                f"Hash strategy produced an unusable digest: {digest!r}")

        dest = self.repository.path(digest)
        await anyio.to_thread.run_sync(self._replace, tmp_path, dest)
        return dest

    def discard(self, tmp_path: str) -> None:
        """Best-effort removal of a staging file."""
        try:
            os.remove(tmp_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove staging file %s: %s",
                           tmp_path, exc)

    async def stage(self,
                    source: AsyncIterable[bytes],
                    strategy: HashStrategy) -> str:
        """Store `source` in the repository and return its digest.

        On any failure the staging file is discarded and the error is
        re-raised; nothing is ever left under a digest name.
        """
        staging = await self.begin_staging()
        try:
            digest = await self.write_all(staging, source, strategy)
            await self.commit(staging.path, digest)
        except BaseException:
            self.discard(staging.path)
            raise

        return digest

    def _replace(self, tmp_path, dest):
        try:
            os.chmod(tmp_path, self.fmode)
            os.replace(tmp_path, dest)
        except OSError as exc:
            if exc.errno != errno.EXDEV:
                raise StorageError(f"Cannot commit object: {exc}") from exc
            self._replace_across_devices(tmp_path, dest)

    def _replace_across_devices(self, tmp_path, dest):
        # Copy next to the destination first so the final rename stays atomic.
        local = os.path.join(os.path.dirname(dest), "." + tmp_name())
        try:
            shutil.copyfile(tmp_path, local)
            os.chmod(local, self.fmode)
            with open(local, "rb") as fileobj:
                os.fsync(fileobj.fileno())
            os.replace(local, dest)
        except OSError as exc:
            self.discard(local)
            raise StorageError(f"Cannot commit object: {exc}") from exc

        self.discard(tmp_path)
