# -*- coding: utf-8 -*-

import random

import pytest

from contentstore import (
    ContentRepository,
    IngestionCoordinator,
    Part,
    StagingArea,
    hash_factory,
)


def prnd_bytes(size, seed=123):
    """Reproducible pseudo-random content of `size` bytes."""
    rng = random.Random(seed)
    return bytes(rng.getrandbits(8) for _ in range(size))


async def achunks(data, size=64):
    for i in range(0, len(data), size):
        yield data[i:i + size]


async def aparts(*parts):
    for part in parts:
        yield part


def file_part(filename, data, name="file", size=64):
    return Part(name, filename, achunks(data, size))


@pytest.fixture
def prnd():
    return prnd_bytes


@pytest.fixture
def storage_root(tmpdir):
    return str(tmpdir.mkdir("store"))


@pytest.fixture
def tmp_root(tmpdir):
    return str(tmpdir.mkdir("tmp"))


@pytest.fixture
def repository(storage_root):
    repository = ContentRepository(storage_root)
    yield repository
    repository.close()


@pytest.fixture
def staging(repository, tmp_root):
    return StagingArea(repository, tmp_root)


@pytest.fixture
def coordinator(staging):
    return IngestionCoordinator(staging, hash_factory("sha256"))


BOUNDARY = "contentstore-boundary"


def multipart_body(*fields, boundary=BOUNDARY):
    """Encode `fields` as a ``multipart/form-data`` body. Each field is
    ``(name, filename, data)``; a ``None`` filename makes a plain form field.
    """
    body = b""
    for name, filename, data in fields:
        disposition = f'form-data; name="{name}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        body += (f"--{boundary}\r\n"
                 f"Content-Disposition: {disposition}\r\n"
                 "Content-Type: application/octet-stream\r\n"
                 "\r\n").encode()
        body += data + b"\r\n"
    return body + f"--{boundary}--\r\n".encode()


def multipart_headers(boundary=BOUNDARY):
    return {"content-type": f"multipart/form-data; boundary={boundary}"}
