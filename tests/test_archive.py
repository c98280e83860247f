from __future__ import annotations

import io
import zipfile
from pathlib import Path

import pytest

from catalog_core.archive import ArchiveBuilder, entry_names
from catalog_core.blob_store import BlobStore
from catalog_core.models import DocumentRecord
from tests.helpers import byte_stream, collect, make_record


def test_entry_names_strip_directories_and_dedupe() -> None:
    names = entry_names(["report.pdf", "dir/report.pdf", "C:\\x\\report.pdf", "notes", ""])
    assert names == ["report.pdf", "report (1).pdf", "report (2).pdf", "notes", "document"]


async def _stored(blobs: BlobStore, doc_id: str, title: str, data: bytes) -> DocumentRecord:
    handle, size = await blobs.put(byte_stream(data), Path(title).suffix)
    return DocumentRecord(
        id=doc_id,
        title=title,
        storage_key=handle,
        size=size,
        mimetype="application/octet-stream",
        upload_date=make_record(doc_id).upload_date,
    )


@pytest.mark.asyncio
async def test_stream_produces_valid_zip(tmp_path: Path) -> None:
    blobs = BlobStore(tmp_path, chunk_size=1024)
    big = bytes(range(256)) * 400
    records = [
        await _stored(blobs, "a", "big.bin", big),
        await _stored(blobs, "b", "empty.txt", b""),
        await _stored(blobs, "c", "big.bin", b"second"),
    ]

    data = await collect(ArchiveBuilder(blobs).stream(records))

    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert archive.namelist() == ["big.bin", "empty.txt", "big (1).bin"]
        assert archive.read("big.bin") == big
        assert archive.read("empty.txt") == b""
        assert archive.read("big (1).bin") == b"second"
        assert archive.testzip() is None


@pytest.mark.asyncio
async def test_stream_skips_blob_removed_after_resolution(tmp_path: Path) -> None:
    blobs = BlobStore(tmp_path)
    kept = await _stored(blobs, "a", "kept.txt", b"kept")
    gone = await _stored(blobs, "b", "gone.txt", b"gone")
    await blobs.remove(gone.storage_key)

    data = await collect(ArchiveBuilder(blobs).stream([kept, gone]))

    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert archive.namelist() == ["kept.txt"]


@pytest.mark.asyncio
async def test_stream_yields_before_all_files_are_read(tmp_path: Path) -> None:
    blobs = BlobStore(tmp_path, chunk_size=1024)
    payload = b"x" * 1024 * 8
    records = [await _stored(blobs, str(i), f"{i}.txt", payload) for i in range(3)]

    stream = ArchiveBuilder(blobs).stream(records)
    first = await stream.__anext__()
    await stream.aclose()

    assert first.startswith(b"PK\x03\x04")
