import math
from dataclasses import dataclass
from typing import List, Sequence

import pandas as pd

from .errors import InvalidInput
from .models import DocumentRecord

SORT_COLUMNS = {
    "date": "upload_date",
    "size": "size",
}
SORT_ORDERS = ("asc", "desc")


@dataclass
class ListingPage:
    documents: List[DocumentRecord]
    total: int


def page_count(total: int, page_size: int) -> int:
    return max(1, math.ceil(total / page_size))


def list_documents(
    records: Sequence[DocumentRecord],
    q: str = "",
    sort_by: str = "date",
    sort_order: str = "desc",
    page: int = 1,
    page_size: int = 10,
) -> ListingPage:
    """
    Filter -> sort -> paginate over a snapshot of records.

    - Filter: case-insensitive substring match of q against the title.
    - Sort: by upload date or size; stable, so equal keys keep the
      snapshot order in both directions.
    - Paginate: a page past the end is empty, not an error.
    """
    if sort_by not in SORT_COLUMNS:
        raise InvalidInput(f"sortBy must be one of {sorted(SORT_COLUMNS)}")
    if sort_order not in SORT_ORDERS:
        raise InvalidInput(f"sortOrder must be one of {list(SORT_ORDERS)}")
    if page < 1:
        raise InvalidInput("page must be >= 1")
    if page_size < 1:
        raise InvalidInput("pageSize must be > 0")

    if not records:
        return ListingPage(documents=[], total=0)

    df = pd.DataFrame(
        {
            "position": range(len(records)),
            "title": [r.title for r in records],
            "size": [r.size for r in records],
            "upload_date": pd.to_datetime([r.upload_date for r in records], utc=True),
        }
    )

    if q:
        mask = df["title"].str.lower().str.contains(q.lower(), regex=False)
        df = df[mask]

    df = df.sort_values(
        SORT_COLUMNS[sort_by],
        ascending=(sort_order == "asc"),
        kind="stable",
    )

    total = len(df)
    start = (page - 1) * page_size
    end = min(start + page_size, total)
    positions = df["position"].iloc[start:end].tolist()

    return ListingPage(documents=[records[i] for i in positions], total=total)
