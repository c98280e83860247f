"""
Document store: keeps the metadata index and the blob area consistent.

Ordering rules:
  - ingest writes every blob of a batch first and commits the index once,
    so a visible record always has its bytes on disk;
  - deletes commit the index first and then remove blobs, so a crash in
    between leaves an orphan blob (reclaimable) instead of a dangling record.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePath
from typing import AsyncIterator, List, Literal, Sequence

from .aio import run_to_completion
from .archive import ArchiveBuilder
from .blob_store import BlobStore, BlobStream
from .config import ALLOWED_EXTENSIONS, ORPHAN_GRACE_SECONDS, TABLE_NAME
from .content_types import attachment_content_type, inline_content_type, is_image_mimetype
from .errors import IOFailure, InvalidInput, NotFound
from .listing import ListingPage, list_documents
from .metadata_index import MetadataIndex
from .models import DocumentRecord, UploadSource

logger = logging.getLogger(__name__)

StreamMode = Literal["inline", "attachment"]


@dataclass
class DocumentStream:
    stream: BlobStream
    content_type: str
    title: str
    size: int
    disposition: StreamMode


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_batch(files: Sequence[UploadSource]) -> None:
    """
    Reject the whole batch before anything is written.
    Images are refused by policy, whatever their extension.
    """
    if not files:
        raise InvalidInput("No files uploaded")

    for upload in files:
        if is_image_mimetype(upload.mimetype):
            raise InvalidInput("Images are not allowed")

    for upload in files:
        if upload.extension not in ALLOWED_EXTENSIONS:
            raise InvalidInput(f"File type not allowed: {upload.filename}")


class DocumentStore:
    def __init__(self, blob_dir: Path, db_dir: Path, table_name: str = TABLE_NAME) -> None:
        self.blobs = BlobStore(blob_dir)
        self.index = MetadataIndex(db_dir, table_name=table_name)
        self.archives = ArchiveBuilder(self.blobs)

    # ---- write paths ----

    async def ingest(self, files: Sequence[UploadSource]) -> List[DocumentRecord]:
        """
        Store a batch of uploads and return the created records.

        If any blob write or the index commit fails, every blob already
        written for this batch is removed before the error propagates.
        Once the index commit has started it always runs to the end; a
        cancellation arriving meanwhile is re-raised after a successful
        commit and the batch is kept.
        """
        validate_batch(files)

        batch: List[DocumentRecord] = []
        try:
            for upload in files:
                handle, size = await self.blobs.put(upload.stream, upload.extension)
                batch.append(
                    DocumentRecord(
                        id=PurePath(handle).stem,
                        title=upload.filename,
                        storage_key=handle,
                        size=size,
                        mimetype=upload.mimetype or "application/octet-stream",
                        upload_date=_utcnow(),
                    )
                )
        except BaseException:
            await self._rollback(batch)
            raise

        try:
            await run_to_completion(self.index.insert_many, batch)
        except asyncio.CancelledError:
            logger.info("[STORE] Ingest cancelled after its index commit; kept %d document(s)", len(batch))
            raise
        except Exception as exc:
            await self._rollback(batch)
            raise IOFailure(f"Failed to commit {len(batch)} record(s) to the index: {exc}") from exc

        logger.info("[STORE] Ingested %d document(s)", len(batch))
        return batch

    async def _rollback(self, batch: Sequence[DocumentRecord]) -> None:
        for record in batch:
            try:
                await asyncio.shield(self.blobs.remove(record.storage_key))
            except IOFailure as exc:
                logger.error("[STORE] Rollback could not remove blob %s: %s", record.storage_key, exc)
        if batch:
            logger.warning("[STORE] Rolled back %d blob(s) from a failed ingest", len(batch))

    async def delete_one(self, doc_id: str) -> str:
        removed = await asyncio.to_thread(self.index.remove_many, [doc_id])
        if not removed:
            raise NotFound(f"Document {doc_id!r} not found")
        await self._remove_blobs(removed)
        return doc_id

    async def delete_many(self, doc_ids: Sequence[str]) -> List[str]:
        """
        Best-effort bulk delete. Unknown ids are skipped and blob removal
        failures are logged; the ids that had a record are returned.
        """
        if not doc_ids:
            raise InvalidInput("No document IDs provided")
        removed = await asyncio.to_thread(self.index.remove_many, doc_ids)
        await self._remove_blobs(removed)
        return [record.id for record in removed]

    async def _remove_blobs(self, records: Sequence[DocumentRecord]) -> None:
        for record in records:
            try:
                await self.blobs.remove(record.storage_key)
            except IOFailure as exc:
                logger.warning("[STORE] Record %s deleted but blob kept: %s", record.id, exc)

    async def reclaim_orphans(self, grace_seconds: float = ORPHAN_GRACE_SECONDS) -> List[str]:
        """
        Remove blobs no live record points at. Files newer than the grace
        period are left alone; they may belong to an ingest in flight.
        """
        records = await asyncio.to_thread(self.index.all)
        cutoff = time.time() - grace_seconds
        removed = await asyncio.to_thread(
            self.blobs.sweep, [r.storage_key for r in records], cutoff
        )
        if removed:
            logger.info("[STORE] Reclaimed %d orphan blob(s)", len(removed))
        return removed

    # ---- read paths ----

    async def list(
        self,
        q: str = "",
        sort_by: str = "date",
        sort_order: str = "desc",
        page: int = 1,
        page_size: int = 10,
    ) -> ListingPage:
        records = await asyncio.to_thread(self.index.all)
        return list_documents(
            records,
            q=q,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=page_size,
        )

    async def get(self, doc_id: str) -> DocumentRecord:
        record = await asyncio.to_thread(self.index.find_by_id, doc_id)
        if record is None:
            raise NotFound(f"Document {doc_id!r} not found")
        return record

    async def open_for_stream(self, doc_id: str, mode: StreamMode = "attachment") -> DocumentStream:
        if mode not in ("inline", "attachment"):
            raise InvalidInput(f"Unknown stream mode: {mode}")

        record = await self.get(doc_id)
        try:
            stream = await self.blobs.open_read(record.storage_key)
        except NotFound as exc:
            raise NotFound(f"File for document {doc_id!r} not found on disk") from exc

        if mode == "inline":
            content_type = inline_content_type(record.title, record.mimetype)
        else:
            content_type = attachment_content_type(record.mimetype)

        return DocumentStream(
            stream=stream,
            content_type=content_type,
            title=record.title,
            size=stream.size,
            disposition=mode,
        )

    async def build_archive(self, doc_ids: Sequence[str]) -> AsyncIterator[bytes]:
        """
        Resolve ids to records with blobs present and return a zip byte
        stream over them. Missing ids and blobs are skipped; if nothing is
        left, NotFound is raised before any byte is produced.
        """
        if not doc_ids:
            raise InvalidInput("No document IDs provided")

        records = await asyncio.to_thread(self.index.find_many, doc_ids)
        present = [r for r in records if self.blobs.exists(r.storage_key)]
        if not present:
            raise NotFound("No valid documents found for IDs")

        logger.info("[STORE] Archiving %d of %d requested document(s)", len(present), len(doc_ids))
        return self.archives.stream(present)
