import argparse
import asyncio

from catalog_core.config import BLOB_DIR, DB_DIR, ORPHAN_GRACE_SECONDS
from catalog_core.document_store import DocumentStore


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Delete blobs that no catalog record references."
    )
    parser.add_argument(
        "--grace-seconds",
        type=int,
        default=ORPHAN_GRACE_SECONDS,
        help="Leave blobs younger than this alone (default: %(default)s).",
    )
    return parser.parse_args()


def main():
    args = parse_args()
    store = DocumentStore(blob_dir=BLOB_DIR, db_dir=DB_DIR)

    print(f"[RECLAIM] Index holds {store.index.count()} record(s)")
    removed = asyncio.run(store.reclaim_orphans(grace_seconds=args.grace_seconds))

    print(f"[RECLAIM] Removed {len(removed)} orphan blob(s)")
    for name in removed:
        print(f"- {name}")


if __name__ == "__main__":
    main()
