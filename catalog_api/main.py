import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, List, Literal, Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from catalog_api.schemas import (
    BulkDeleteResponse,
    DeleteResponse,
    DocIdsRequest,
    DocumentListResponse,
    DocumentOut,
    UploadResponse,
)
from catalog_core.config import (
    ARCHIVE_FILENAME,
    BLOB_DIR,
    CORS_ALLOW_ORIGINS,
    DB_DIR,
    DEFAULT_PAGE_SIZE,
    HOST,
    LOG_LEVEL,
    MAX_PAGE_SIZE,
    PORT,
    READ_CHUNK_SIZE,
)
from catalog_core.document_store import DocumentStore, DocumentStream
from catalog_core.errors import CatalogError, IOFailure
from catalog_core.listing import page_count
from catalog_core.models import UploadSource

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def content_disposition(disposition: str, filename: str) -> str:
    quoted = quote(filename, safe="")
    if quoted != filename:
        return f"{disposition}; filename*=utf-8''{quoted}"
    return f'{disposition}; filename="{filename}"'


async def _iter_upload(upload: UploadFile) -> AsyncIterator[bytes]:
    while True:
        chunk = await upload.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        yield chunk


def _document_response(doc: DocumentStream) -> StreamingResponse:
    headers = {
        "Content-Disposition": content_disposition(doc.disposition, doc.title),
        "Content-Length": str(doc.size),
    }
    # closing in a background task releases the file even if the client
    # goes away mid-transfer
    return StreamingResponse(
        doc.stream,
        media_type=doc.content_type,
        headers=headers,
        background=BackgroundTask(doc.stream.aclose),
    )


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def create_app(blob_dir: Path = BLOB_DIR, db_dir: Path = DB_DIR) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("[API] Opening document store (blobs=%s, index=%s)", blob_dir, db_dir)
        app.state.store = DocumentStore(blob_dir=blob_dir, db_dir=db_dir)
        yield
        logger.info("[API] Shutting down document store")

    app = FastAPI(
        title="Document Catalog API",
        version="1.0.0",
        description="Upload, search, stream, archive and delete office/text documents",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    @app.exception_handler(CatalogError)
    async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
        if isinstance(exc, IOFailure):
            logger.error("[API] %s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    @app.get("/healthz")
    def healthcheck() -> Dict[str, str]:
        """
        Simple health check endpoint.
        """
        return {"status": "ok"}

    @app.get("/documents", response_model=DocumentListResponse)
    async def list_documents_endpoint(
        q: str = "",
        sortBy: Literal["date", "size"] = "date",
        sortOrder: Literal["asc", "desc"] = "desc",
        page: int = Query(1, ge=1),
        pageSize: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
        store: DocumentStore = Depends(get_store),
    ) -> DocumentListResponse:
        """
        Search by title, sort by upload date or size, and return one page.
        """
        result = await store.list(
            q=q,
            sort_by=sortBy,
            sort_order=sortOrder,
            page=page,
            page_size=pageSize,
        )
        return DocumentListResponse(
            documents=[DocumentOut.from_record(r) for r in result.documents],
            total=result.total,
            page=page,
            pageSize=pageSize,
            totalPages=page_count(result.total, pageSize),
        )

    @app.post("/documents", response_model=UploadResponse, status_code=201)
    async def upload_documents(
        files: Optional[List[UploadFile]] = File(None),
        store: DocumentStore = Depends(get_store),
    ) -> UploadResponse:
        """
        Upload one or more documents in a single all-or-nothing batch.

        - Images are rejected, as is any extension outside the allow-list.
        - Either every file is stored and indexed, or none is.
        """
        uploads = [
            UploadSource(
                filename=upload.filename or "",
                mimetype=upload.content_type or "application/octet-stream",
                stream=_iter_upload(upload),
            )
            for upload in files or []
        ]
        records = await store.ingest(uploads)
        logger.info("[API] Upload stored %d document(s)", len(records))
        return UploadResponse(
            message="Upload successful",
            documents=[DocumentOut.from_record(r) for r in records],
        )

    @app.get("/documents/{doc_id}/view")
    async def view_document(doc_id: str, store: DocumentStore = Depends(get_store)) -> StreamingResponse:
        """
        Inline view with a content type the browser will render.
        """
        doc = await store.open_for_stream(doc_id, mode="inline")
        return _document_response(doc)

    @app.get("/documents/{doc_id}/download")
    async def download_document(doc_id: str, store: DocumentStore = Depends(get_store)) -> StreamingResponse:
        doc = await store.open_for_stream(doc_id, mode="attachment")
        return _document_response(doc)

    @app.post("/documents/download-zip")
    async def download_zip(request: DocIdsRequest, store: DocumentStore = Depends(get_store)) -> StreamingResponse:
        """
        Stream a zip of the requested documents. Unknown ids are skipped.
        """
        archive = await store.build_archive(request.docIds)
        return StreamingResponse(
            archive,
            media_type="application/zip",
            headers={"Content-Disposition": content_disposition("attachment", ARCHIVE_FILENAME)},
            background=BackgroundTask(archive.aclose),
        )

    @app.delete("/documents/{doc_id}", response_model=DeleteResponse)
    async def delete_document(doc_id: str, store: DocumentStore = Depends(get_store)) -> DeleteResponse:
        deleted_id = await store.delete_one(doc_id)
        return DeleteResponse(message="Document deleted successfully", id=deleted_id)

    @app.post("/documents/delete-bulk", response_model=BulkDeleteResponse)
    async def delete_documents_bulk(
        request: DocIdsRequest,
        store: DocumentStore = Depends(get_store),
    ) -> BulkDeleteResponse:
        deleted_ids = await store.delete_many(request.docIds)
        return BulkDeleteResponse(message=f"Deleted {len(deleted_ids)} documents", deletedIds=deleted_ids)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=HOST, port=PORT)
