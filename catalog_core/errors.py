"""Typed failures surfaced by the document store.

Each error carries the HTTP status the API layer answers with, so route
handlers never translate exceptions one by one.
"""


class CatalogError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(CatalogError):
    """Disallowed file type, image upload, or missing ids."""

    status_code = 400


class NotFound(CatalogError):
    """Unknown document id or a blob missing from the blob area."""

    status_code = 404


class IOFailure(CatalogError):
    """The storage medium rejected a read or write."""

    status_code = 500
