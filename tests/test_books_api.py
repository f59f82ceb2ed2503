from decimal import Decimal

from tests.conftest import ADMIN, READER, b64, jpeg_bytes


def test_create_link_book_has_no_file_path(client, seed, get_book):
    r = client.post(
        "/api/admin/books",
        headers=ADMIN,
        json={
            "title": "Public Domain Classic",
            "author": "Anon",
            "category_id": seed.category_id,
            "book_type": "link",
            "external_link": "https://example.com/a.pdf",
        },
    )
    assert r.status_code == 201
    body = r.json()
    assert body["book_type"] == "link"
    assert body["file_path"] is None
    assert body["external_link"] == "https://example.com/a.pdf"
    assert body["category_name"] == "Programming"
    assert "file_content" not in body
    assert "thumbnail_content" not in body

    stored = get_book(body["id"])
    assert stored.file_path is None
    assert stored.purchase_link is None


def test_oversized_file_book_is_rejected_before_variant_checks(client, seed):
    r = client.post(
        "/api/admin/books",
        headers=ADMIN,
        json={
            "title": "Huge",
            "author": "Someone",
            "category_id": seed.category_id,
            "book_type": "file",
            "file_size": 150_000_000,
        },
    )
    assert r.status_code == 413
    body = r.json()
    assert body["error"] == "File too large"
    assert "100MB" in body["message"]
    assert body["maxSize"] == "100MB"


def test_oversized_inline_content_is_rejected(client, seed, monkeypatch):
    from app.core.settings import settings

    monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 1)
    r = client.post(
        "/api/admin/books",
        headers=ADMIN,
        json={
            "title": "Inline",
            "author": "Someone",
            "category_id": seed.category_id,
            "file_content": "A" * (2 * 1024 * 1024),
        },
    )
    assert r.status_code == 413
    assert r.json()["error"] == "File content too large"


def test_file_book_requires_a_location(client, seed):
    r = client.post(
        "/api/admin/books",
        headers=ADMIN,
        json={"title": "T", "author": "A", "category_id": seed.category_id, "book_type": "file"},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "file_path is required for file type books"


def test_purchase_book_requires_purchase_link(client, seed):
    r = client.post(
        "/api/admin/books",
        headers=ADMIN,
        json={"title": "T", "author": "A", "category_id": seed.category_id, "book_type": "purchase"},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "purchase_link is required for purchase type books"


def test_unknown_book_type_is_rejected(client, seed):
    r = client.post(
        "/api/admin/books",
        headers=ADMIN,
        json={"title": "T", "author": "A", "category_id": seed.category_id, "book_type": "scroll"},
    )
    assert r.status_code == 400
    assert "book_type" in r.json()["error"]


def test_create_with_unknown_category(client):
    r = client.post(
        "/api/admin/books",
        headers=ADMIN,
        json={"title": "T", "author": "A", "category_id": 999, "book_type": "link", "external_link": "https://x"},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "Category not found"


def test_create_purchase_book_defaults_currency(client, seed, get_book):
    r = client.post(
        "/api/admin/books",
        headers=ADMIN,
        json={
            "title": "Paid",
            "author": "Vendor",
            "category_id": str(seed.category_id),
            "book_type": "purchase",
            "purchase_link": "https://shop.example.com/paid",
            "price": "19.99",
        },
    )
    assert r.status_code == 201
    stored = get_book(r.json()["id"])
    assert stored.currency == "USD"
    assert stored.price == Decimal("19.99")
    assert stored.file_path is None and stored.external_link is None


def test_create_with_cover_stores_cover_and_thumbnail(client, seed, get_book, uploads):
    r = client.post(
        "/api/admin/books",
        headers=ADMIN,
        json={
            "title": "Covered",
            "author": "A",
            "category_id": seed.category_id,
            "book_type": "link",
            "external_link": "https://example.com/c",
            "cover_image_base64": b64(jpeg_bytes()),
            "cover_image_type": "image/jpeg",
        },
    )
    assert r.status_code == 201
    stored = get_book(r.json()["id"])
    assert stored.cover_image_path.startswith("/uploads/cover_")
    assert stored.cover_image_path.endswith(".jpg")
    assert (uploads / stored.cover_image_path.rsplit("/", 1)[1]).is_file()
    assert stored.thumbnail_mime == "image/png"
    assert stored.thumbnail_source == stored.cover_image_path


def test_undecodable_cover_does_not_fail_create(client, seed, get_book):
    r = client.post(
        "/api/admin/books",
        headers=ADMIN,
        json={
            "title": "Broken cover",
            "author": "A",
            "category_id": seed.category_id,
            "book_type": "link",
            "external_link": "https://example.com/c",
            "cover_image_base64": b64(b"definitely not an image"),
            "cover_image_type": "image/png",
        },
    )
    assert r.status_code == 201
    stored = get_book(r.json()["id"])
    # cover bytes are still persisted; only the thumbnail half failed
    assert stored.cover_image_path is not None
    assert stored.thumbnail_content is None


def test_admin_routes_require_header(client, seed):
    payload = {"title": "T", "author": "A", "category_id": seed.category_id}
    r = client.post("/api/admin/books", json=payload)
    assert r.status_code == 401
    assert r.json()["error"] == "Missing x-user-email header"

    r = client.post("/api/admin/books", headers=READER, json=payload)
    assert r.status_code == 403
    assert r.json()["error"] == "Admin privileges required"

    r = client.post("/api/admin/books", headers={"x-user-email": "ghost@example.com"}, json=payload)
    assert r.status_code == 403


def test_update_switches_variant_and_clears_old_fields(client, make_book, get_book):
    book_id = make_book(book_type="file", file_path="/uploads/a.pdf", file_type="application/pdf")
    r = client.put(
        f"/api/admin/books/{book_id}",
        headers=ADMIN,
        json={"book_type": "link", "external_link": "https://example.com/moved"},
    )
    assert r.status_code == 200
    stored = get_book(book_id)
    assert stored.book_type == "link"
    assert stored.file_path is None
    assert stored.file_type is None
    assert stored.external_link == "https://example.com/moved"


def test_update_keeps_variant_when_only_base_fields_change(client, make_book, get_book):
    book_id = make_book(book_type="link", external_link="https://example.com/x")
    r = client.put(f"/api/admin/books/{book_id}", headers=ADMIN, json={"title": "Renamed"})
    assert r.status_code == 200
    assert r.json()["title"] == "Renamed"
    assert get_book(book_id).external_link == "https://example.com/x"


def test_update_errors(client, make_book, seed):
    book_id = make_book(book_type="link", external_link="https://example.com/x")

    r = client.put(f"/api/admin/books/{book_id}", headers=ADMIN, json={})
    assert r.status_code == 400
    assert r.json()["error"] == "No fields to update"

    r = client.put("/api/admin/books/9999", headers=ADMIN, json={"title": "x"})
    assert r.status_code == 404
    assert r.json()["error"] == "Book not found"

    r = client.put(f"/api/admin/books/{book_id}", headers=ADMIN, json={"category_id": 4242})
    assert r.status_code == 400
    assert r.json()["error"] == "Category not found"

    r = client.put(f"/api/admin/books/{book_id}", headers=ADMIN, json={"file_size": 150_000_000})
    assert r.status_code == 413


def test_delete_book(client, make_book, get_book):
    book_id = make_book(book_type="link", external_link="https://example.com/x")
    r = client.delete(f"/api/admin/books/{book_id}", headers=ADMIN)
    assert r.status_code == 200
    assert r.json() == {"message": "Book deleted successfully"}
    assert get_book(book_id) is None

    assert client.delete(f"/api/admin/books/{book_id}", headers=ADMIN).status_code == 404


def test_list_and_get_books_with_aggregates(client, make_book, seed, SessionLocal):
    from app.db.models.database import DownloadLogs, Ratings

    book_id = make_book(book_type="link", external_link="https://example.com/x", thumbnail_content=b"blob")
    make_book(title="Other", category_id=seed.other_category_id, book_type="link", external_link="https://y")
    with SessionLocal() as s:
        s.add_all(
            [
                DownloadLogs(content_id=book_id, content_type="book"),
                DownloadLogs(content_id=book_id, content_type="book"),
                Ratings(user_id=seed.reader_id, content_id=book_id, content_type="book", vote=1),
                Ratings(user_id=seed.admin_id, content_id=book_id, content_type="book", vote=-1),
            ]
        )
        s.commit()

    r = client.get("/api/books", headers=READER)
    assert r.status_code == 200
    books = {b["id"]: b for b in r.json()}
    assert len(books) == 2
    row = books[book_id]
    assert row["download_count"] == 2
    assert row["up_votes"] == 1
    assert row["down_votes"] == 1
    assert row["user_vote"] == 1
    assert row["thumbnail"] == f"/api/books/{book_id}/thumbnail"
    assert "thumbnail_content" not in row

    r = client.get(f"/api/books?category_id={seed.other_category_id}")
    assert [b["title"] for b in r.json()] == ["Other"]

    r = client.get(f"/api/books/{book_id}")
    assert r.status_code == 200
    assert r.json()["user_vote"] is None
    assert r.json()["category_name"] == "Programming"

    assert client.get("/api/books/9999").status_code == 404
