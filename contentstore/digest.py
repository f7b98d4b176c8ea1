# -*- coding: utf-8 -*-
"""Hash strategies and the digest stream that feeds them.

A hash strategy is anything offering ``update(chunk)`` and
``finalize(encoding) -> str``. Strategies are produced by a factory, one fresh
strategy per uploaded part, so the factory (not a strategy instance) is what
gets configured at startup.
"""

import base64
import hashlib
from typing import AsyncIterable, AsyncIterator, Callable, Optional, Protocol

import blake3

from .errors import ConfigurationError, StreamError


class HashStrategy(Protocol):
    def update(self, chunk: bytes) -> None:
        ...

    def finalize(self, encoding: str = "hex") -> str:
        ...


HashFactory = Callable[[], HashStrategy]


def _hex(raw):
    return raw.hex()


def _base32(raw):
    # Lowercase and unpadded so the digest is a plain filename token.
    return base64.b32encode(raw).decode("ascii").rstrip("=").lower()


ENCODINGS = {
    "hex": _hex,
    "base32": _base32,
}


def encode_digest(raw: bytes, encoding: str = "hex") -> str:
    """Encode raw digest bytes as a filename-safe string."""
    try:
        encoder = ENCODINGS[encoding]
    except KeyError:
        raise ConfigurationError(f"Unsupported digest encoding: {encoding!r}")
    return encoder(raw)


class HashlibStrategy(object):
    """Adapt a ``hashlib``-style object (``update``/``digest``) to the
    :class:`HashStrategy` interface.

    Args:
        hasher: Object with ``update(bytes)`` and ``digest() -> bytes``, e.g.
            ``hashlib.sha256()`` or ``blake3.blake3()``.
    """

    def __init__(self, hasher):
        self._hasher = hasher

    @property
    def name(self) -> str:
        return getattr(self._hasher, "name", type(self._hasher).__name__)

    def update(self, chunk: bytes) -> None:
        self._hasher.update(chunk)

    def finalize(self, encoding: str = "hex") -> str:
        return encode_digest(self._hasher.digest(), encoding)


def _hashlib_factory(algorithm):
    def factory():
        return HashlibStrategy(hashlib.new(algorithm))

    return factory


def _blake3_factory():
    return HashlibStrategy(blake3.blake3())


def hash_factory(algorithm: str = "sha256") -> HashFactory:
    """Return a factory producing fresh strategies for `algorithm`.

    `algorithm` is ``"blake3"`` or any name in
    ``hashlib.algorithms_available`` that yields a fixed-length digest.
    """
    algorithm = (algorithm or "").lower()

    if algorithm == "blake3":
        return _blake3_factory

    if algorithm not in hashlib.algorithms_available:
        raise ConfigurationError(f"Unknown hash algorithm: {algorithm!r}")

    if algorithm.startswith("shake_"):
        # Variable-length digests need a length argument.
        raise ConfigurationError(f"Unsupported hash algorithm: {algorithm!r}")

    return _hashlib_factory(algorithm)


def check_factory(factory: Optional[HashFactory]) -> HashFactory:
    """Validate a caller-supplied hash factory by building one strategy."""
    if factory is None or not callable(factory):
        raise ConfigurationError("hash factory should be a callable")

    strategy = factory()
    for attr in ("update", "finalize"):
        if not callable(getattr(strategy, attr, None)):
            raise ConfigurationError(
                f"hash factory produced an object without {attr}()"
            )

    return factory


class DigestStream(object):
    """Async pass-through stream that hashes every chunk it forwards.

    Iterate over the instance to consume `source`; each chunk is fed to
    `strategy` and yielded unchanged. Once the source is exhausted,
    :meth:`digest` returns the finalized digest. If the source raises, the
    error is re-raised as :class:`StreamError` and no digest is ever produced.

    Args:
        source: Async iterable of ``bytes`` chunks.
        strategy: Fresh :class:`HashStrategy` for this stream.
        encoding: Digest encoding, one of :data:`ENCODINGS`.
    """

    def __init__(self,
                 source: AsyncIterable[bytes],
                 strategy: HashStrategy,
                 encoding: str = "hex"):
        if encoding not in ENCODINGS:
            raise ConfigurationError(
                f"Unsupported digest encoding: {encoding!r}")

        self._source = source
        self._strategy = strategy
        self._encoding = encoding
        self._done = False
        self._failed = False
        self._digest = None
        self.size = 0

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._done or self._failed:
            raise StreamError("Digest stream can only be consumed once")

        try:
            async for chunk in self._source:
                if not chunk:
                    continue
                self._strategy.update(chunk)
                self.size += len(chunk)
                yield chunk
        except StreamError:
            self._failed = True
            raise
        except Exception as exc:
            self._failed = True
            raise StreamError(f"Source stream failed: {exc}") from exc

        self._done = True

    @property
    def done(self) -> bool:
        return self._done

    def digest(self) -> str:
        """Return the digest of everything forwarded. The strategy is
        finalized on the first call only.
        """
        if self._failed:
            raise StreamError("Digest of a failed stream is not valid")

        if not self._done:
            raise StreamError("Digest requested before the stream ended")

        if self._digest is None:
            self._digest = self._strategy.finalize(self._encoding)

        return self._digest
