import asyncio
import logging
import zipfile
from pathlib import PurePath, PurePosixPath
from typing import AsyncIterator, List, Sequence

from .blob_store import BlobStore
from .config import ZIP_COMPRESSLEVEL
from .errors import NotFound
from .models import DocumentRecord

logger = logging.getLogger(__name__)


class _ChunkSink:
    """
    Write-only file object that collects whatever zipfile emits until the
    next drain(). It has no tell()/seek(), so zipfile switches to data
    descriptors and never rewinds to patch local headers.
    """

    def __init__(self) -> None:
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def entry_names(titles: Sequence[str]) -> List[str]:
    """
    In-archive names for the given titles: directory parts are stripped and
    repeated names get a ' (n)' suffix, e.g. 'report (1).pdf'.
    """
    names: List[str] = []
    used = set()
    for title in titles:
        base = PurePosixPath(title.replace("\\", "/")).name or "document"
        name = base
        counter = 1
        while name in used:
            path = PurePath(base)
            name = f"{path.stem} ({counter}){path.suffix}"
            counter += 1
        used.add(name)
        names.append(name)
    return names


class ArchiveBuilder:
    """
    Streams a zip archive built from blobs, one blob open at a time.

    Memory use is bounded by a single read chunk plus the compressor's
    window, whatever the number or size of the documents. Compression runs
    in a worker thread so large archives do not stall the event loop.
    """

    def __init__(self, blob_store: BlobStore, compresslevel: int = ZIP_COMPRESSLEVEL) -> None:
        self.blob_store = blob_store
        self.compresslevel = compresslevel

    async def stream(self, records: Sequence[DocumentRecord]) -> AsyncIterator[bytes]:
        sink = _ChunkSink()
        written = 0

        with zipfile.ZipFile(
            sink,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=self.compresslevel,
        ) as archive:
            for name, record in zip(entry_names([r.title for r in records]), records):
                try:
                    blob = await self.blob_store.open_read(record.storage_key)
                except NotFound:
                    logger.warning("[ARCHIVE] Blob for %s vanished, skipping", record.id)
                    continue

                try:
                    force_zip64 = blob.size * 1.05 > zipfile.ZIP64_LIMIT
                    with archive.open(name, mode="w", force_zip64=force_zip64) as entry:
                        async for chunk in blob:
                            await asyncio.to_thread(entry.write, chunk)
                            data = sink.drain()
                            if data:
                                yield data
                finally:
                    await blob.aclose()

                written += 1
                data = sink.drain()
                if data:
                    yield data

        # central directory
        data = sink.drain()
        if data:
            yield data
        logger.info("[ARCHIVE] Streamed %d of %d document(s)", written, len(records))
