import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import lancedb
import pandas as pd
from lancedb.pydantic import LanceModel

from .config import TABLE_NAME
from .db import connect_lancedb
from .models import DocumentRecord

logger = logging.getLogger(__name__)


class DocumentRow(LanceModel):
    id: str
    title: str
    storage_key: str
    size: int
    mimetype: str
    upload_date: str     # ISO-8601, UTC


def _sql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def open_or_create_table(db: lancedb.DBConnection, table_name: str = TABLE_NAME):
    """
    Open the documents table if it exists, otherwise create it empty.
    """
    logger.info("[INDEX] Opening table '%s' (created empty if missing)", table_name)
    return db.create_table(table_name, schema=DocumentRow, exist_ok=True)


class MetadataIndex:
    """
    Durable, insertion-ordered collection of document records.

    Every mutation is a single LanceDB commit: readers observe the table as
    it was before or after the commit, never a half-applied batch, and
    concurrent appends from different requests do not clobber each other.
    """

    def __init__(self, db_dir: Path, table_name: str = TABLE_NAME) -> None:
        self.db = connect_lancedb(db_dir)
        self.table = open_or_create_table(self.db, table_name)

    def _frame(self) -> pd.DataFrame:
        return self.table.to_pandas()

    def insert_many(self, records: Sequence[DocumentRecord]) -> None:
        if not records:
            return
        self.table.add([record.to_row() for record in records])
        logger.info("[INDEX] Committed %d record(s)", len(records))

    def find_by_id(self, doc_id: str) -> Optional[DocumentRecord]:
        rows = self.table.search().where(f"id = {_sql_literal(doc_id)}").limit(1).to_pandas()
        if rows.empty:
            return None
        return DocumentRecord.from_row(rows.iloc[0].to_dict())

    def find_many(self, doc_ids: Iterable[str]) -> List[DocumentRecord]:
        """
        Records for the given ids, in request order; unknown and repeated
        ids are dropped.
        """
        by_id = {record.id: record for record in self.all()}
        found: List[DocumentRecord] = []
        seen = set()
        for doc_id in doc_ids:
            if doc_id in seen or doc_id not in by_id:
                continue
            seen.add(doc_id)
            found.append(by_id[doc_id])
        return found

    def remove_many(self, doc_ids: Iterable[str]) -> List[DocumentRecord]:
        """
        Remove the given ids in one commit. Unknown ids are ignored; the
        records that were actually removed are returned.
        """
        removed = self.find_many(doc_ids)
        if not removed:
            return []
        predicate = "id IN (" + ", ".join(_sql_literal(r.id) for r in removed) + ")"
        self.table.delete(predicate)
        logger.info("[INDEX] Removed %d record(s)", len(removed))
        return removed

    def all(self) -> List[DocumentRecord]:
        df = self._frame()
        if df.empty:
            return []
        return [DocumentRecord.from_row(row) for row in df.to_dict("records")]

    def count(self) -> int:
        return self.table.count_rows()
