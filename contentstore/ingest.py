# -*- coding: utf-8 -*-
"""Coordinate the parts of one upload request.

Every request owns an :class:`UploadTask`. Its outstanding-work counter
starts at one for the parse task, goes up by one per discovered file part and
down by one whenever the parse task or a part task finishes. The request is
settled exactly once: with the collected ``(filename, digest)`` pairs when
the counter reaches zero, or with the first error reported by any task.
Part tasks keep running after an early error; their outcome is logged only.
"""

import asyncio
import logging
import threading
from collections import namedtuple
from typing import AsyncIterable, List, Optional, Tuple

from .digest import HashFactory, check_factory
from .errors import ContentStoreError, StorageError, StreamError
from .staging import StagingArea

logger = logging.getLogger(__name__)

UPLOAD_OK = "upload OK"
NO_FILES = "no files to upload"


class Part(namedtuple("Part", ["name", "filename", "stream"])):
    """One decoded multipart part.

    ``name`` is the form field name, ``filename`` the client supplied file
    name (``None`` for plain form fields) and ``stream`` an async iterable of
    ``bytes`` chunks.
    """
    pass


class IngestResult(namedtuple("IngestResult", ["files"])):
    """Aggregate outcome of a settled upload: ``(filename, digest)`` pairs in
    commit completion order.
    """

    @property
    def stored(self) -> bool:
        return bool(self.files)

    @property
    def status(self) -> str:
        return UPLOAD_OK if self.files else NO_FILES


class UploadTask(object):
    """Per-request state: completed files plus the outstanding-work counter.

    Must be created inside a running event loop.
    """

    def __init__(self):
        self.files: List[Tuple[str, str]] = []
        self.outstanding = 0
        self._lock = threading.Lock()
        self._settled = asyncio.get_running_loop().create_future()
        self._tasks = set()

    @property
    def settled(self) -> bool:
        return self._settled.done()

    def task_plus(self) -> None:
        """Register a subtask. Call before the subtask starts."""
        with self._lock:
            self.outstanding += 1

    def task_minus(self) -> None:
        """Mark a subtask finished; settles the request at zero."""
        with self._lock:
            self.outstanding -= 1
            if self.outstanding > 0:
                return
            result = IngestResult(list(self.files))

        self._settle(result=result)

    def track(self, task: asyncio.Future) -> None:
        self._tasks.add(task)

    def add(self, filename: str, digest: str) -> None:
        with self._lock:
            self.files.append((filename, digest))

    def fail(self, exc: BaseException) -> None:
        """Settle the request with `exc` unless it is already settled."""
        if not self._settle(exc=exc):
            logger.warning("Upload already settled, ignoring error: %s", exc)

    async def result(self) -> IngestResult:
        """Wait for the request to settle and return its result.

        Raises:
            ContentStoreError: The first error reported by any subtask.
        """
        return await asyncio.shield(self._settled)

    async def join(self) -> None:
        """Wait until every subtask of the request has finished, including
        part tasks still running after the request settled with an error.
        """
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.wait(pending)

    def _settle(self, result=None, exc=None):
        if self._settled.done():
            return False

        if exc is not None:
            self._settled.set_exception(exc)
        else:
            self._settled.set_result(result)

        return True


class IngestionCoordinator(object):
    """Turn a stream of decoded parts into stored objects.

    Args:
        staging: Staging area that writes and commits each part.
        hash_factory: Callable returning a fresh hash strategy per part.

    Raises:
        ConfigurationError: If `hash_factory` is missing or unusable.
    """

    def __init__(self,
                 staging: StagingArea,
                 hash_factory: Optional[HashFactory]):
        self.staging = staging
        self.hash_factory = check_factory(hash_factory)
        self._inflight = set()

    def begin(self, parts: AsyncIterable[Part]) -> UploadTask:
        """Register a new upload and start consuming `parts`."""
        upload = UploadTask()
        upload.task_plus()  # parsing
        self._spawn(upload, self._parse(upload, parts))
        return upload

    async def ingest(self, parts: AsyncIterable[Part]) -> IngestResult:
        """Store every file part of `parts` and return the settled result."""
        return await self.begin(parts).result()

    async def drain(self) -> None:
        """Wait for every in-flight task of every request."""
        while self._inflight:
            await asyncio.wait(set(self._inflight))

    def _spawn(self, upload, coro):
        task = asyncio.ensure_future(coro)
        upload.track(task)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _parse(self, upload, parts):
        try:
            async for part in parts:
                if not part.filename:
                    continue

                upload.task_plus()
                self._spawn(upload, self._store(upload, part))
        except ContentStoreError as exc:
            logger.error("Upload parsing failed: %s", exc)
            upload.fail(exc)
        except Exception as exc:
            logger.error("Upload parsing failed: %s", exc)
            upload.fail(StreamError(f"Cannot parse upload: {exc}"))
        finally:
            upload.task_minus()

    async def _store(self, upload, part):
        try:
            digest = await self.staging.stage(part.stream, self.hash_factory())
        except ContentStoreError as exc:
            logger.warning("Failed to store %r: %s", part.filename, exc)
            upload.fail(exc)
        except Exception as exc:
            logger.exception("Unexpected error storing %r", part.filename)
            upload.fail(StorageError(f"Cannot store {part.filename!r}: {exc}"))
        else:
            upload.add(part.filename, digest)
            logger.debug("Stored %r as %s", part.filename, digest)
        finally:
            upload.task_minus()
