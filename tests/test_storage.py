"""Local blob store: naming, durability, idempotent delete, path safety."""

import os
import time

import pytest

from codedrop.exceptions import BlobMissing, InvalidFileReference, StorageFailure
from codedrop.utils.storage import LocalStorage, iter_file, make_storage_name, sanitize_filename


@pytest.mark.parametrize(
    "original, expected",
    [
        ("report.pdf", "report.pdf"),
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\me\\doc.pdf", "doc.pdf"),
        ("héllo wörld.txt", "h_llo_w_rld.txt"),
        ("", "file"),
        ("...", "file"),
    ],
)
def test_sanitize_filename(original, expected):
    assert sanitize_filename(original) == expected


def test_sanitize_filename_truncates_but_keeps_extension():
    name = sanitize_filename("x" * 300 + ".tar")
    assert len(name) <= 80
    assert name.endswith(".tar")


def test_storage_name_is_a_pure_function():
    a = make_storage_name("a.txt", "abc123", 1700000000.5)
    assert a == make_storage_name("a.txt", "abc123", 1700000000.5)
    assert a == "1700000000500-abc123-a.txt"


async def test_put_writes_blob_under_storage_name(storage: LocalStorage):
    stored = await storage.put(b"hello world", "a.txt", "text/plain")

    assert stored.original_name == "a.txt"
    assert stored.size_bytes == 11
    assert stored.mime_type == "text/plain"
    assert stored.storage_name.endswith("-a.txt")
    assert (storage.base / stored.storage_name).read_bytes() == b"hello world"
    assert not [p for p in storage.base.iterdir() if p.name.startswith(".upload-")]


async def test_identical_names_get_distinct_storage_names(storage: LocalStorage):
    first = await storage.put(b"1", "same.txt")
    second = await storage.put(b"2", "same.txt")
    assert first.storage_name != second.storage_name
    assert storage.exists(first.storage_name) and storage.exists(second.storage_name)


async def test_open_reads_back_content(storage: LocalStorage):
    stored = await storage.put(b"x" * 200_000, "big.bin")
    handle = await storage.open(stored.content_path)
    assert b"".join(iter_file(handle, chunk_size=4096)) == b"x" * 200_000
    assert handle.closed


async def test_delete_is_idempotent(storage: LocalStorage):
    stored = await storage.put(b"data", "d.bin")
    await storage.delete(stored.storage_name)
    await storage.delete(stored.storage_name)
    assert not storage.exists(stored.storage_name)


async def test_open_missing_blob_raises_blob_missing(storage: LocalStorage):
    with pytest.raises(BlobMissing) as exc:
        await storage.open("1700000000000-deadbeef-gone.txt")
    assert str(storage.base) not in exc.value.message


@pytest.mark.parametrize("key", ["../registry.db", "sub/dir.txt", "/etc/passwd", "", ".."])
async def test_handles_cannot_escape_blob_directory(storage: LocalStorage, key):
    with pytest.raises(InvalidFileReference):
        await storage.open(key)
    with pytest.raises(InvalidFileReference):
        await storage.delete(key)


async def test_failed_write_surfaces_as_storage_failure(storage: LocalStorage, monkeypatch):
    def boom(data, dest):
        raise OSError("disk full")

    monkeypatch.setattr(storage, "_write_durable", boom)
    with pytest.raises(StorageFailure):
        await storage.put(b"data", "a.txt")


async def test_list_stale_reports_old_blobs_and_temp_files(storage: LocalStorage):
    old = await storage.put(b"old", "old.txt")
    fresh = await storage.put(b"fresh", "fresh.txt")
    (storage.base / ".upload-k3j2h1").write_bytes(b"partial")
    an_hour_ago = time.time() - 3600
    for name in (old.storage_name, ".upload-k3j2h1"):
        os.utime(storage.base / name, (an_hour_ago, an_hour_ago))

    assert sorted(storage.list_stale(600)) == sorted([old.storage_name, ".upload-k3j2h1"])
    assert fresh.storage_name not in storage.list_stale(600)
