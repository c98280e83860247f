from __future__ import annotations

import io
import zipfile
from pathlib import Path

from fastapi.testclient import TestClient


def _upload(client: TestClient, *files):
    return client.post(
        "/documents",
        files=[("files", (name, data, mimetype)) for name, data, mimetype in files],
    )


def test_healthcheck(client: TestClient) -> None:
    assert client.get("/healthz").json() == {"status": "ok"}


def test_upload_and_list(client: TestClient) -> None:
    response = _upload(
        client,
        ("Budget.xlsx", b"x" * 30, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
        ("minutes.txt", b"y" * 12, "text/plain"),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Upload successful"
    assert [d["title"] for d in body["documents"]] == ["Budget.xlsx", "minutes.txt"]
    assert body["documents"][0]["fileType"] == "Excel Spreadsheet"
    assert "storage_key" not in body["documents"][0]

    listing = client.get("/documents", params={"q": "budget"}).json()
    assert listing["total"] == 1
    assert listing["page"] == 1
    assert listing["pageSize"] == 10
    assert listing["totalPages"] == 1
    assert listing["documents"][0]["size"] == 30

    by_size = client.get("/documents", params={"sortBy": "size", "sortOrder": "asc"}).json()
    assert [d["size"] for d in by_size["documents"]] == [12, 30]


def test_listing_page_beyond_end(client: TestClient) -> None:
    _upload(client, ("a.txt", b"a", "text/plain"))
    listing = client.get("/documents", params={"page": 4, "pageSize": 2}).json()
    assert listing["documents"] == []
    assert listing["total"] == 1


def test_listing_rejects_bad_params(client: TestClient) -> None:
    response = client.get("/documents", params={"sortBy": "title"})
    assert response.status_code == 400
    assert "error" in response.json()
    assert client.get("/documents", params={"page": 0}).status_code == 400


def test_upload_rejects_images(client: TestClient, blob_dir: Path) -> None:
    response = _upload(
        client,
        ("ok.pdf", b"%PDF", "application/pdf"),
        ("cat.png", b"\x89PNG", "image/png"),
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Images are not allowed"}
    assert list(blob_dir.iterdir()) == []


def test_upload_rejects_unknown_extension(client: TestClient) -> None:
    response = _upload(client, ("tool.exe", b"MZ", "application/octet-stream"))
    assert response.status_code == 400
    assert response.json()["error"].startswith("File type not allowed")


def test_upload_without_files(client: TestClient) -> None:
    response = client.post("/documents")
    assert response.status_code == 400
    assert response.json() == {"error": "No files uploaded"}


def test_view_uses_browser_friendly_type(client: TestClient) -> None:
    doc = _upload(client, ("notes.md", b"# hi", "application/octet-stream")).json()["documents"][0]

    response = client.get(f"/documents/{doc['id']}/view")

    assert response.status_code == 200
    assert response.content == b"# hi"
    assert response.headers["content-type"] == "text/plain; charset=utf-8"
    assert response.headers["content-disposition"] == 'inline; filename="notes.md"'


def test_download_uses_stored_type(client: TestClient) -> None:
    doc = _upload(client, ("résumé.json", b"{}", "application/x-custom")).json()["documents"][0]

    response = client.get(f"/documents/{doc['id']}/download")

    assert response.status_code == 200
    assert response.content == b"{}"
    assert response.headers["content-type"] == "application/x-custom"
    assert response.headers["content-disposition"] == "attachment; filename*=utf-8''r%C3%A9sum%C3%A9.json"
    assert response.headers["content-length"] == "2"


def test_stream_missing_document_or_blob(client: TestClient, blob_dir: Path) -> None:
    assert client.get("/documents/nope/view").status_code == 404
    assert client.get("/documents/nope/download").json() == {"error": "Document 'nope' not found"}

    doc = _upload(client, ("a.txt", b"a", "text/plain")).json()["documents"][0]
    for path in blob_dir.iterdir():
        path.unlink()
    assert client.get(f"/documents/{doc['id']}/download").status_code == 404


def test_download_zip(client: TestClient) -> None:
    docs = _upload(
        client,
        ("one.txt", b"first", "text/plain"),
        ("two.txt", b"second", "text/plain"),
    ).json()["documents"]

    response = client.post("/documents/download-zip", json={"docIds": [d["id"] for d in docs] + ["ghost"]})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"
    assert response.headers["content-disposition"] == 'attachment; filename="documents.zip"'
    with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
        assert {name: archive.read(name) for name in archive.namelist()} == {
            "one.txt": b"first",
            "two.txt": b"second",
        }


def test_download_zip_errors(client: TestClient) -> None:
    assert client.post("/documents/download-zip", json={"docIds": []}).status_code == 400
    assert client.post("/documents/download-zip", json={}).status_code == 400
    response = client.post("/documents/download-zip", json={"docIds": ["ghost"]})
    assert response.status_code == 404
    assert response.json() == {"error": "No valid documents found for IDs"}


def test_delete_single(client: TestClient) -> None:
    doc = _upload(client, ("a.txt", b"a", "text/plain")).json()["documents"][0]

    response = client.delete(f"/documents/{doc['id']}")
    assert response.json() == {"message": "Document deleted successfully", "id": doc["id"]}
    assert client.delete(f"/documents/{doc['id']}").status_code == 404
    assert client.get("/documents").json()["total"] == 0


def test_delete_bulk(client: TestClient) -> None:
    docs = _upload(
        client,
        ("a.txt", b"a", "text/plain"),
        ("b.txt", b"b", "text/plain"),
    ).json()["documents"]

    response = client.post("/documents/delete-bulk", json={"docIds": [docs[0]["id"], "ghost"]})

    assert response.status_code == 200
    assert response.json() == {"message": "Deleted 1 documents", "deletedIds": [docs[0]["id"]]}
    remaining = client.get("/documents").json()["documents"]
    assert [d["id"] for d in remaining] == [docs[1]["id"]]
    assert client.post("/documents/delete-bulk", json={"docIds": []}).status_code == 400
