from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePath
from typing import Any, AsyncIterator, Dict


@dataclass(frozen=True)
class DocumentRecord:
    id: str               # opaque id, stem of the storage key
    title: str            # original client filename
    storage_key: str      # blob handle, never sent to clients
    size: int
    mimetype: str
    upload_date: datetime

    @property
    def extension(self) -> str:
        return PurePath(self.title).suffix.lower()

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "storage_key": self.storage_key,
            "size": self.size,
            "mimetype": self.mimetype,
            "upload_date": self.upload_date.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DocumentRecord":
        return cls(
            id=str(row["id"]),
            title=str(row["title"]),
            storage_key=str(row["storage_key"]),
            size=int(row["size"]),
            mimetype=str(row["mimetype"] or ""),
            upload_date=datetime.fromisoformat(str(row["upload_date"])),
        )


@dataclass
class UploadSource:
    """One file of an ingest batch, before it touches the blob area."""

    filename: str
    mimetype: str
    stream: AsyncIterator[bytes]

    @property
    def extension(self) -> str:
        return PurePath(self.filename).suffix.lower()
