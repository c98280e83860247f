import argparse
import asyncio
import mimetypes
from pathlib import Path
from typing import AsyncIterator, List

from catalog_core.config import BLOB_DIR, DB_DIR, READ_CHUNK_SIZE
from catalog_core.document_store import DocumentStore
from catalog_core.errors import CatalogError
from catalog_core.models import UploadSource


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import local document files into the catalog as one batch."
    )
    parser.add_argument(
        "paths",
        nargs="+",
        help="Paths to document files (pdf, docx, txt, md, csv, json, ...).",
    )
    return parser.parse_args()


async def iter_file(path: Path) -> AsyncIterator[bytes]:
    with path.open("rb") as fh:
        while True:
            chunk = await asyncio.to_thread(fh.read, READ_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


def build_upload(path: Path) -> UploadSource:
    mimetype, _ = mimetypes.guess_type(path.name)
    return UploadSource(
        filename=path.name,
        mimetype=mimetype or "application/octet-stream",
        stream=iter_file(path),
    )


async def run(paths: List[Path]) -> int:
    missing = [p for p in paths if not p.is_file()]
    if missing:
        for p in missing:
            print(f"[IMPORT_DOCS] Not a file: {p}")
        return 1

    store = DocumentStore(blob_dir=BLOB_DIR, db_dir=DB_DIR)
    try:
        records = await store.ingest([build_upload(p) for p in paths])
    except CatalogError as exc:
        print(f"[IMPORT_DOCS] Import failed: {exc.message}")
        return 1

    print("\n[Import Summary]")
    for r in records:
        print(f"- id={r.id} title={r.title} size={r.size} mimetype={r.mimetype}")
    return 0


def main():
    args = parse_args()
    paths = [Path(p).resolve() for p in args.paths]
    raise SystemExit(asyncio.run(run(paths)))


if __name__ == "__main__":
    main()
