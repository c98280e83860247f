from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from catalog_core.content_types import describe_file_type
from catalog_core.models import DocumentRecord


class DocumentOut(BaseModel):
    id: str = Field(..., description="Opaque document id")
    title: str = Field(..., description="Original filename supplied at upload")
    size: int = Field(..., description="Size in bytes at upload time")
    mimetype: str
    uploadDate: datetime
    fileType: str = Field(..., description="Human-readable document type, e.g. 'PDF Document'")

    @classmethod
    def from_record(cls, record: DocumentRecord) -> "DocumentOut":
        return cls(
            id=record.id,
            title=record.title,
            size=record.size,
            mimetype=record.mimetype,
            uploadDate=record.upload_date,
            fileType=describe_file_type(record.mimetype, record.title),
        )


class DocumentListResponse(BaseModel):
    documents: List[DocumentOut]
    total: int
    page: int
    pageSize: int
    totalPages: int


class UploadResponse(BaseModel):
    message: str
    documents: List[DocumentOut]


class DocIdsRequest(BaseModel):
    docIds: List[str] = Field(default_factory=list, description="Document ids to act on")


class DeleteResponse(BaseModel):
    message: str
    id: str


class BulkDeleteResponse(BaseModel):
    message: str
    deletedIds: List[str]
