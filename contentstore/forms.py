# -*- coding: utf-8 -*-
"""Streaming multipart decoding for upload requests.

The request body is fed chunk by chunk to :class:`python_multipart.MultipartParser`.
A :class:`~contentstore.ingest.Part` is yielded as soon as a part's headers
have been parsed; its bytes follow through a per-part queue while the rest of
the body is still arriving, so nothing is buffered to disk before staging.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from python_multipart.multipart import MultipartParser, parse_options_header

from .errors import StreamError
from .ingest import Part

logger = logging.getLogger(__name__)

MULTIPART_FORM = b"multipart/form-data"


async def read_queue(queue: asyncio.Queue) -> AsyncIterator[bytes]:
    """Yield chunks put on `queue` until ``None``; re-raise queued errors."""
    while True:
        item = await queue.get()
        if item is None:
            return
        if isinstance(item, BaseException):
            raise item
        yield item


def _decode(value: Optional[bytes]) -> Optional[str]:
    if value is None:
        return None
    return value.decode("utf-8", "replace")


class MultipartParts(object):
    """Async iterable of :class:`Part` decoded from a streaming request.

    Bodies that are not ``multipart/form-data`` yield nothing. If the body
    fails or ends before the closing boundary, the part being received gets a
    :class:`StreamError` and the error is re-raised to the iterating task.

    Args:
        request: Object with ``headers`` and an async ``stream()`` of body
            chunks, e.g. a Starlette request.
    """

    def __init__(self, request):
        self.request = request
        self._events = []
        self._headers = {}
        self._field = b""
        self._value = b""
        self._queue = None

    async def __aiter__(self) -> AsyncIterator[Part]:
        content_type, options = parse_options_header(
            self.request.headers.get("content-type", ""))

        if content_type.lower() != MULTIPART_FORM:
            return

        boundary = options.get(b"boundary")
        if not boundary:
            raise StreamError("Multipart body without boundary")

        parser = MultipartParser(boundary, self._callbacks())

        try:
            async for chunk in self.request.stream():
                parser.write(chunk)
                for part in self._drain_events():
                    yield part

            parser.finalize()
            for part in self._drain_events():
                yield part

            if self._queue is not None:
                raise StreamError("Multipart body ended inside a part")
        except BaseException as exc:
            self._abort(exc)
            raise

    def _callbacks(self):
        def event(kind):
            def callback():
                self._events.append((kind, None))
            return callback

        def data_event(kind):
            def callback(data, start, end):
                self._events.append((kind, bytes(data[start:end])))
            return callback

        return {
            "on_part_begin": event("part_begin"),
            "on_header_field": data_event("header_field"),
            "on_header_value": data_event("header_value"),
            "on_header_end": event("header_end"),
            "on_headers_finished": event("headers_finished"),
            "on_part_data": data_event("part_data"),
            "on_part_end": event("part_end"),
        }

    def _drain_events(self):
        events, self._events = self._events, []

        for kind, data in events:
            if kind == "part_begin":
                self._headers = {}
            elif kind == "header_field":
                self._field += data
            elif kind == "header_value":
                self._value += data
            elif kind == "header_end":
                self._headers[self._field.lower()] = self._value
                self._field = b""
                self._value = b""
            elif kind == "headers_finished":
                yield self._open_part()
            elif kind == "part_data":
                if self._queue is not None:
                    self._queue.put_nowait(data)
            elif kind == "part_end":
                if self._queue is not None:
                    self._queue.put_nowait(None)
                    self._queue = None

    def _open_part(self):
        _, options = parse_options_header(
            self._headers.get(b"content-disposition", b""))
        name = _decode(options.get(b"name"))
        filename = _decode(options.get(b"filename"))

        if not filename:
            return Part(name, filename, None)

        self._queue = asyncio.Queue()
        return Part(name, filename, read_queue(self._queue))

    def _abort(self, exc):
        if self._queue is None:
            return

        logger.debug("Aborting part in progress: %s", exc)
        if not isinstance(exc, StreamError):
            exc = StreamError(f"Upload body failed: {exc!r}")
        self._queue.put_nowait(exc)
        self._queue = None
