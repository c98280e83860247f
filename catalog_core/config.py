from pathlib import Path
import os

BASE_DIR = Path(__file__).resolve().parents[1]

# Paths
BLOB_DIR = Path(os.getenv("CATALOG_BLOB_DIR", str(BASE_DIR / "uploads")))
DB_DIR = Path(os.getenv("CATALOG_DB_DIR", str(BASE_DIR / "lancedb_data")))

# LanceDB
TABLE_NAME = os.getenv("CATALOG_TABLE_NAME", "documents")

# Upload policy
ALLOWED_EXTENSIONS = (
    ".pdf", ".doc", ".docx", ".txt", ".html", ".htm", ".xls", ".xlsx",
    ".ppt", ".pptx", ".rtf", ".csv", ".md", ".json",
)

# Streaming
READ_CHUNK_SIZE = int(os.getenv("CATALOG_READ_CHUNK_SIZE", str(64 * 1024)))
ZIP_COMPRESSLEVEL = int(os.getenv("CATALOG_ZIP_COMPRESSLEVEL", "9"))
ARCHIVE_FILENAME = "documents.zip"

# Listing
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = int(os.getenv("CATALOG_MAX_PAGE_SIZE", "500"))

# Blobs younger than this are never treated as orphans (an ingest may still
# be between its blob write and its index commit).
ORPHAN_GRACE_SECONDS = int(os.getenv("CATALOG_ORPHAN_GRACE_SECONDS", "3600"))

# API
CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CATALOG_CORS_ALLOW_ORIGINS", "*").split(",")
    if origin.strip()
]
LOG_LEVEL = os.getenv("CATALOG_LOG_LEVEL", "INFO").upper()
HOST = os.getenv("CATALOG_HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "3001"))
