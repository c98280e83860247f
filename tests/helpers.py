from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator, Iterable

from catalog_core.models import DocumentRecord, UploadSource


async def byte_stream(data: bytes, chunk_size: int = 4) -> AsyncIterator[bytes]:
    for start in range(0, len(data), chunk_size):
        yield data[start:start + chunk_size]


async def failing_stream(data: bytes, exc: BaseException) -> AsyncIterator[bytes]:
    yield data
    raise exc


def make_upload(filename: str, data: bytes, mimetype: str = "text/plain") -> UploadSource:
    return UploadSource(filename=filename, mimetype=mimetype, stream=byte_stream(data))


def make_record(
    doc_id: str,
    *,
    title: str | None = None,
    size: int = 1,
    minutes: int = 0,
    mimetype: str = "text/plain",
) -> DocumentRecord:
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return DocumentRecord(
        id=doc_id,
        title=title or f"{doc_id}.txt",
        storage_key=f"{doc_id}.txt",
        size=size,
        mimetype=mimetype,
        upload_date=base + timedelta(minutes=minutes),
    )


async def collect(chunks: AsyncIterator[bytes]) -> bytes:
    return b"".join([chunk async for chunk in chunks])


def blob_files(root: Path) -> list[str]:
    return sorted(p.name for p in root.iterdir())


def titles(records: Iterable[DocumentRecord]) -> list[str]:
    return [r.title for r in records]
