# -*- coding: utf-8 -*-

import errno
import hashlib
import os
import stat

import pytest

from contentstore import StagingArea, StorageError, StreamError, hash_factory

from conftest import achunks


async def broken_source():
    yield b"foo" * 100
    raise IOError("connection reset")


def sha256():
    return hash_factory("sha256")()


@pytest.mark.asyncio
async def test_staging_stage(staging, repository, tmp_root, prnd):
    data = prnd(10000)
    digest = await staging.stage(achunks(data, 1024), sha256())

    assert digest == hashlib.sha256(data).hexdigest()
    assert os.listdir(repository.root) == [digest]
    assert os.listdir(tmp_root) == []

    with open(repository.path(digest), "rb") as fileobj:
        assert fileobj.read() == data


@pytest.mark.asyncio
async def test_staging_stage_empty(staging, repository):
    digest = await staging.stage(achunks(b""), sha256())

    assert digest == hashlib.sha256(b"").hexdigest()
    assert os.path.getsize(repository.path(digest)) == 0


@pytest.mark.asyncio
async def test_staging_begin_unique(staging, tmp_root):
    a = await staging.begin_staging()
    b = await staging.begin_staging()

    try:
        assert a.path != b.path
        assert os.path.dirname(a.path) == tmp_root
        assert os.path.basename(a.path).startswith("tmp_")
        assert sorted(os.listdir(tmp_root)) == sorted(
            [os.path.basename(a.path), os.path.basename(b.path)])
    finally:
        await a.sink.aclose()
        await b.sink.aclose()


@pytest.mark.asyncio
async def test_staging_write_all_then_commit(staging, repository):
    staged = await staging.begin_staging()
    digest = await staging.write_all(staged, achunks(b"foo"), sha256())

    # Nothing is visible under the digest name before the commit.
    assert not repository.exists(digest)

    dest = await staging.commit(staged.path, digest)

    assert dest == repository.path(digest)
    assert repository.exists(digest)
    assert not os.path.exists(staged.path)


@pytest.mark.asyncio
async def test_staging_commit_overwrites(staging, repository):
    first = await staging.stage(achunks(b"foo"), sha256())
    second = await staging.stage(achunks(b"foo"), sha256())

    assert first == second
    assert repository.count() == 1

    with repository.open(first) as fileobj:
        assert fileobj.read() == b"foo"


@pytest.mark.asyncio
@pytest.mark.parametrize("digest", ["", "../escape", ".hidden", "a\\b"])
async def test_staging_commit_invalid_digest(staging, storage_root, digest):
    staged = await staging.begin_staging()
    await staged.sink.aclose()

    with pytest.raises(StorageError):
        await staging.commit(staged.path, digest)

    assert os.listdir(storage_root) == []
    assert os.path.isfile(staged.path)


@pytest.mark.asyncio
async def test_staging_stream_error_discards(staging, repository, tmp_root):
    with pytest.raises(StreamError):
        await staging.stage(broken_source(), sha256())

    assert os.listdir(tmp_root) == []
    assert repository.count() == 0


@pytest.mark.asyncio
async def test_staging_fmode(repository, tmp_root):
    staging = StagingArea(repository, tmp_root, fmode=0o640)
    digest = await staging.stage(achunks(b"foo"), sha256())

    mode = stat.S_IMODE(os.stat(repository.path(digest)).st_mode)
    assert mode == 0o640


@pytest.mark.asyncio
async def test_staging_base32(repository, tmp_root):
    staging = StagingArea(repository, tmp_root, encoding="base32")
    digest = await staging.stage(achunks(b"foo"), sha256())

    assert digest.isalnum() and digest.lower() == digest
    assert repository.exists(digest)


@pytest.mark.asyncio
async def test_staging_commit_across_devices(staging, repository, tmp_root,
                                             monkeypatch):
    real_replace = os.replace

    def replace(src, dst):
        if os.path.dirname(src) == tmp_root:
            raise OSError(errno.EXDEV, "Invalid cross-device link")
        return real_replace(src, dst)

    monkeypatch.setattr(os, "replace", replace)

    digest = await staging.stage(achunks(b"foo"), sha256())

    assert os.listdir(repository.root) == [digest]
    assert os.listdir(tmp_root) == []

    with repository.open(digest) as fileobj:
        assert fileobj.read() == b"foo"


@pytest.mark.asyncio
async def test_delete_then_commit_restores(staging, repository):
    # Commit and delete of one digest are ordered by the filesystem: the
    # last operation wins.
    digest = await staging.stage(achunks(b"foo"), sha256())
    repository.delete(digest)
    assert not repository.exists(digest)

    assert await staging.stage(achunks(b"foo"), sha256()) == digest
    assert repository.exists(digest)

    repository.delete(digest)
    assert not repository.exists(digest)
