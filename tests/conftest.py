from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from catalog_api.main import create_app
from catalog_core.document_store import DocumentStore


@pytest.fixture
def blob_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def db_dir(tmp_path: Path) -> Path:
    return tmp_path / "lancedb_data"


@pytest.fixture
def store(blob_dir: Path, db_dir: Path) -> DocumentStore:
    return DocumentStore(blob_dir=blob_dir, db_dir=db_dir)


@pytest.fixture
def client(blob_dir: Path, db_dir: Path):
    with TestClient(create_app(blob_dir=blob_dir, db_dir=db_dir)) as test_client:
        yield test_client
