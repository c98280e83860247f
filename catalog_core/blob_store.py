import asyncio
import logging
import os
import re
import time
import uuid
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Iterable, List, Optional, Tuple

from .aio import run_to_completion
from .config import READ_CHUNK_SIZE
from .errors import IOFailure, NotFound

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".part"

# <epoch-millis>-<uuid4 hex>[.ext][.part]
_NAME_RE = re.compile(r"^[0-9]+-[0-9a-f]{32}(\.[A-Za-z0-9]{1,16})?(\.part)?$")
_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,16}$")


def _sync_and_close(handle: BinaryIO) -> None:
    try:
        handle.flush()
        os.fsync(handle.fileno())
    finally:
        handle.close()


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("[BLOB] Could not discard %s: %s", path.name, exc)


class BlobStream:
    """
    Forward-only async iterator over one blob's bytes.

    The file is opened before the stream is handed out, so a missing blob
    fails at open time rather than halfway through a response. The handle
    is released at EOF, on a read error, or when aclose() is called.
    """

    def __init__(self, handle: str, fh: BinaryIO, size: int, chunk_size: int) -> None:
        self.handle = handle
        self.size = size
        self.chunk_size = chunk_size
        self._fh: Optional[BinaryIO] = fh

    @property
    def closed(self) -> bool:
        return self._fh is None

    def __aiter__(self) -> "BlobStream":
        return self

    async def __anext__(self) -> bytes:
        fh = self._fh
        if fh is None:
            raise StopAsyncIteration
        try:
            chunk = await asyncio.to_thread(fh.read, self.chunk_size)
        except (OSError, ValueError) as exc:
            await self.aclose()
            raise IOFailure(f"Failed reading blob {self.handle}: {exc}") from exc
        if not chunk:
            await self.aclose()
            raise StopAsyncIteration
        return chunk

    async def aclose(self) -> None:
        fh, self._fh = self._fh, None
        if fh is not None:
            fh.close()


class BlobStore:
    """
    Flat directory of immutable blobs, one file per handle.

    Writes land in '<handle>.part' and are renamed into place only once
    every byte is flushed, so a handle never names a partially written file.
    """

    def __init__(self, root: Path, chunk_size: int = READ_CHUNK_SIZE) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size

    @staticmethod
    def new_handle(extension: str = "") -> str:
        extension = extension.lower() if _EXTENSION_RE.match(extension or "") else ""
        return f"{int(time.time() * 1000)}-{uuid.uuid4().hex}{extension}"

    def _path(self, handle: str) -> Optional[Path]:
        if not _NAME_RE.match(handle) or handle.endswith(PARTIAL_SUFFIX):
            return None
        return self.root / handle

    async def put(self, stream: AsyncIterator[bytes], extension: str = "") -> Tuple[str, int]:
        handle = self.new_handle(extension)
        final_path = self.root / handle
        partial_path = self.root / f"{handle}{PARTIAL_SUFFIX}"
        size = 0
        try:
            fh = await asyncio.to_thread(partial_path.open, "xb")
            try:
                async for chunk in stream:
                    if not chunk:
                        continue
                    await asyncio.to_thread(fh.write, chunk)
                    size += len(chunk)
            finally:
                await asyncio.to_thread(_sync_and_close, fh)
            await run_to_completion(os.replace, partial_path, final_path)
        except OSError as exc:
            _discard(partial_path)
            raise IOFailure(f"Failed to write blob {handle}: {exc}") from exc
        except BaseException:
            # the rename may already have landed; the handle is never returned
            _discard(partial_path)
            _discard(final_path)
            raise

        logger.debug("[BLOB] Stored %s (%d bytes)", handle, size)
        return handle, size

    async def open_read(self, handle: str) -> BlobStream:
        path = self._path(handle)
        if path is None:
            raise NotFound(f"Blob {handle!r} not found")
        try:
            fh = await asyncio.to_thread(path.open, "rb")
        except FileNotFoundError as exc:
            raise NotFound(f"Blob {handle!r} not found") from exc
        except OSError as exc:
            raise IOFailure(f"Failed to open blob {handle}: {exc}") from exc
        size = os.fstat(fh.fileno()).st_size
        return BlobStream(handle, fh, size, self.chunk_size)

    async def remove(self, handle: str) -> None:
        path = self._path(handle)
        if path is None:
            return
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            raise IOFailure(f"Failed to remove blob {handle}: {exc}") from exc
        logger.debug("[BLOB] Removed %s", handle)

    def exists(self, handle: str) -> bool:
        path = self._path(handle)
        return path is not None and path.is_file()

    def sweep(self, keep: Iterable[str], older_than: float) -> List[str]:
        """
        Delete blobs (and abandoned partial writes) not listed in keep whose
        modification time is before the older_than epoch timestamp.
        Returns the removed file names.
        """
        keep = set(keep)
        removed: List[str] = []
        for path in sorted(self.root.iterdir()):
            name = path.name
            if not _NAME_RE.match(name) or name in keep:
                continue
            try:
                if path.stat().st_mtime >= older_than:
                    continue
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("[BLOB] Could not reclaim %s: %s", name, exc)
                continue
            removed.append(name)
        return removed
