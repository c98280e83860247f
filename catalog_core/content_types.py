from pathlib import PurePath
from typing import Optional

FALLBACK_MIMETYPE = "application/octet-stream"

# Types browsers render in place. Upload mimetypes for text-like formats are
# often missing or wrong, so inline views go by the title's extension.
INLINE_MIMETYPES = {
    ".md": "text/plain; charset=utf-8",
    ".txt": "text/plain; charset=utf-8",
    ".json": "application/json; charset=utf-8",
    ".csv": "text/plain; charset=utf-8",
    ".html": "text/html; charset=utf-8",
    ".htm": "text/html; charset=utf-8",
    ".xml": "text/xml; charset=utf-8",
    ".pdf": "application/pdf",
    ".rtf": "text/plain; charset=utf-8",
}

_TYPE_NAMES_BY_EXTENSION = {
    ".txt": "Text File",
    ".md": "Markdown File",
    ".html": "HTML File",
    ".htm": "HTML File",
    ".json": "JSON File",
    ".csv": "CSV File",
    ".rtf": "Rich Text",
}


def is_image_mimetype(mimetype: Optional[str]) -> bool:
    return (mimetype or "").strip().lower().startswith("image/")


def inline_content_type(title: str, stored_mimetype: Optional[str]) -> str:
    ext = PurePath(title).suffix.lower()
    return INLINE_MIMETYPES.get(ext) or stored_mimetype or FALLBACK_MIMETYPE


def attachment_content_type(stored_mimetype: Optional[str]) -> str:
    return stored_mimetype or FALLBACK_MIMETYPE


def describe_file_type(mimetype: Optional[str], title: str) -> str:
    """Human-readable label shown next to a document, e.g. 'PDF Document'."""
    mimetype = (mimetype or "").lower()
    ext = PurePath(title).suffix.lower()

    if "pdf" in mimetype or ext == ".pdf":
        return "PDF Document"
    if "word" in mimetype or ext in (".doc", ".docx"):
        return "Word Document"
    if "excel" in mimetype or "spreadsheet" in mimetype or ext in (".xls", ".xlsx"):
        return "Excel Spreadsheet"
    if "presentation" in mimetype or ext in (".ppt", ".pptx"):
        return "PowerPoint"
    if ext in _TYPE_NAMES_BY_EXTENSION:
        return _TYPE_NAMES_BY_EXTENSION[ext]

    return ext.lstrip(".").upper() or "Document"
