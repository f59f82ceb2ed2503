from app.core.settings import settings
from app.main import app
from app.services.shares.storage import get_blob_store

PDF = ("My Book.pdf", b"%PDF-1.4 upload", "application/pdf")


def test_upload_stores_file_locally(client, uploads):
    r = client.post("/api/admin/upload-file", files={"file": PDF}, data={"userEmail": "admin@example.com"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["originalName"] == "My Book.pdf"
    assert body["size"] == len(PDF[1])
    assert body["mimetype"] == "application/pdf"
    assert body["filePath"].startswith("/uploads/file-")
    assert body["filePath"].endswith("-My_Book.pdf")
    assert (uploads / body["filePath"].rsplit("/", 1)[1]).read_bytes() == PDF[1]


def test_upload_rejections(client, uploads):
    r = client.post("/api/admin/upload-file", data={"userEmail": "admin@example.com"})
    assert r.status_code == 400
    assert r.json()["error"] == "No file uploaded"

    r = client.post(
        "/api/admin/upload-file",
        files={"file": ("run.sh", b"#!/bin/sh", "application/x-sh")},
        data={"userEmail": "admin@example.com"},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid file type"

    r = client.post("/api/admin/upload-file", files={"file": PDF})
    assert r.status_code == 401
    assert r.json()["error"] == "User not authenticated"
    assert list(uploads.iterdir()) == []


def test_upload_too_large_leaves_nothing_behind(client, uploads, monkeypatch):
    monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 1)
    big = ("big.pdf", b"0" * (2 * 1024 * 1024), "application/pdf")
    r = client.post("/api/admin/upload-file", files={"file": big}, data={"userEmail": "admin@example.com"})
    assert r.status_code == 413
    assert r.json()["maxSize"] == "1MB"
    assert list(uploads.iterdir()) == []


def test_upload_relays_to_s3(client, s3_store, s3_client, uploads):
    app.dependency_overrides[get_blob_store] = lambda: s3_store
    r = client.post("/api/admin/upload-file", files={"file": PDF}, data={"userEmail": "admin@example.com"})
    assert r.status_code == 200
    path = r.json()["filePath"]
    assert path.startswith("s3://library-bucket/books/")

    bucket, key, content, extra = s3_client.uploaded[0]
    assert bucket == "library-bucket"
    assert path.endswith(key)
    assert content == PDF[1]
    assert extra == {"ContentType": "application/pdf"}
    assert list(uploads.iterdir()) == []
