import base64
import os
import tempfile
import time
from io import BytesIO

from PIL import Image

from app.core.exceptions import ConversionFailedError
from app.core.settings import settings
from tests.conftest import ADMIN, READER, b64, jpeg_bytes, png_bytes

PDF_MIME = "application/pdf"


def _image(content: bytes) -> Image.Image:
    return Image.open(BytesIO(content))


def test_cover_patch_then_thumbnail_is_normalized_png(client, make_book, get_book):
    book_id = make_book(book_type="link", external_link="https://example.com/x")

    r = client.patch(
        f"/api/books/{book_id}",
        headers=ADMIN,
        json={"cover_image_base64": b64(jpeg_bytes((800, 1200))), "cover_image_type": "image/jpeg"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Cover image and thumbnail updated"
    assert body["cover_image_path"].startswith("/uploads/cover_")
    assert get_book(book_id).cover_image_path == body["cover_image_path"]

    r = client.get(f"/api/books/{book_id}/thumbnail")
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    assert _image(r.content).size == (300, 400)
    assert r.headers["cache-control"] == "public, max-age=86400"
    assert r.headers["etag"].startswith('"')


def test_thumbnail_etag_revalidation(client, make_book):
    book_id = make_book(book_type="link", external_link="https://x", thumbnail_content=png_bytes((300, 400)))

    first = client.get(f"/api/books/{book_id}/thumbnail")
    etag = first.headers["etag"]

    again = client.get(f"/api/books/{book_id}/thumbnail", headers={"If-None-Match": etag})
    assert again.status_code == 304
    assert again.content == b""

    weak = client.get(f"/api/books/{book_id}/thumbnail", headers={"If-None-Match": f"W/{etag}"})
    assert weak.status_code == 304

    stale = client.get(f"/api/books/{book_id}/thumbnail", headers={"If-None-Match": '"other"'})
    assert stale.status_code == 200


def test_local_cover_is_served_as_is(client, make_book, uploads):
    original = jpeg_bytes((120, 80))
    (uploads / "cover_1.jpg").write_bytes(original)
    book_id = make_book(book_type="link", external_link="https://x", cover_image_path="/uploads/cover_1.jpg")

    r = client.get(f"/api/books/{book_id}/thumbnail")
    assert r.status_code == 200
    assert r.content == original
    assert r.headers["content-type"] == "image/jpeg"


def test_local_cover_wins_over_unrelated_cached_blob(client, make_book, uploads):
    original = jpeg_bytes((120, 80))
    (uploads / "cover_2.jpg").write_bytes(original)
    book_id = make_book(
        book_type="link",
        external_link="https://x",
        cover_image_path="/uploads/cover_2.jpg",
        thumbnail_content=png_bytes((300, 400)),
        thumbnail_source=None,
    )
    r = client.get(f"/api/books/{book_id}/thumbnail")
    assert r.content == original


def test_missing_local_cover_falls_through(client, make_book):
    blob = png_bytes((300, 400), "green")
    book_id = make_book(
        book_type="link",
        external_link="https://x",
        cover_image_path="/uploads/vanished.jpg",
        thumbnail_content=blob,
    )
    r = client.get(f"/api/books/{book_id}/thumbnail")
    assert r.status_code == 200
    assert r.content == blob


def test_remote_cover_redirects(client, make_book):
    book_id = make_book(book_type="link", external_link="https://x", cover_image_path="https://covers.example.com/a.jpg")
    r = client.get(f"/api/books/{book_id}/thumbnail", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "https://covers.example.com/a.jpg"


def test_cached_blob_beats_pdf_rendering(client, make_book, uploads, rasterizer):
    (uploads / "a.pdf").write_bytes(b"%PDF-1.4")
    blob = png_bytes((300, 400), "purple")
    book_id = make_book(file_path="/uploads/a.pdf", file_type=PDF_MIME, thumbnail_content=blob)

    r = client.get(f"/api/books/{book_id}/thumbnail")
    assert r.content == blob
    assert rasterizer.calls == []


def test_disk_pdf_is_rendered_and_cached(client, make_book, uploads, rasterizer, get_book):
    (uploads / "a.pdf").write_bytes(b"%PDF-1.4 tiny")
    book_id = make_book(file_path="/uploads/a.pdf", file_type=PDF_MIME)

    r = client.get(f"/api/books/{book_id}/thumbnail")
    assert r.status_code == 200
    assert _image(r.content).size == (300, 400)
    assert len(rasterizer.calls) == 1

    stored = get_book(book_id)
    assert stored.thumbnail_content == r.content
    assert stored.thumbnail_mime == "image/png"
    assert stored.thumbnail_source is None

    client.get(f"/api/books/{book_id}/thumbnail")
    assert len(rasterizer.calls) == 1


def test_disk_pdf_missing_on_disk(client, make_book):
    book_id = make_book(file_path="/uploads/nowhere.pdf", file_type=PDF_MIME)
    r = client.get(f"/api/books/{book_id}/thumbnail")
    assert r.status_code == 404
    assert r.json()["error"] == "PDF file not found on disk"


def test_inline_pdf_is_rendered(client, make_book, rasterizer):
    book_id = make_book(
        file_path="inline.pdf",
        file_type=PDF_MIME,
        file_content=base64.b64encode(b"%PDF-1.4 inline").decode(),
    )
    r = client.get(f"/api/books/{book_id}/thumbnail")
    assert r.status_code == 200
    assert _image(r.content).size == (300, 400)
    assert rasterizer.calls[0].name.startswith(f"book_{book_id}_")


def test_oversized_pdf_is_rejected_before_rasterizing(client, make_book, uploads, rasterizer, monkeypatch):
    monkeypatch.setattr(settings, "THUMBNAIL_MAX_SOURCE_MB", 1)
    (uploads / "big.pdf").write_bytes(b"0" * (2 * 1024 * 1024))
    book_id = make_book(file_path="/uploads/big.pdf", file_type=PDF_MIME)

    r = client.get(f"/api/books/{book_id}/thumbnail")
    assert r.status_code == 413
    body = r.json()
    assert body["error"] == "PDF file too large for thumbnail generation"
    assert body["currentSize"] == 2 * 1024 * 1024
    assert rasterizer.calls == []


def test_no_source_and_unknown_book(client, make_book):
    book_id = make_book(book_type="link", external_link="https://x")
    r = client.get(f"/api/books/{book_id}/thumbnail")
    assert r.status_code == 404
    assert r.json()["error"] == "PDF file not found"

    r = client.get("/api/books/9999/thumbnail")
    assert r.status_code == 404
    assert r.json()["error"] == "Book not found"


def test_failed_render_cleans_temp_files(client, make_book, uploads, rasterizer, tmp_path, monkeypatch):
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))

    async def broken(pdf_path, out_path):
        out_path.write_bytes(b"half written")
        raise ConversionFailedError(details="boom")

    monkeypatch.setattr(rasterizer, "rasterize", broken)
    book_id = make_book(
        file_path="inline.pdf",
        file_type=PDF_MIME,
        file_content=base64.b64encode(b"%PDF-1.4").decode(),
    )
    leftover = scratch / f"thumb_{book_id}_1.png"
    leftover.write_bytes(b"leftover")
    long_ago = time.time() - 3600
    os.utime(leftover, (long_ago, long_ago))

    r = client.get(f"/api/books/{book_id}/thumbnail")
    assert r.status_code == 500
    assert r.json()["error"] == "Failed to generate thumbnail"
    assert list(scratch.iterdir()) == []


def test_cover_patch_variants(client, make_book, get_book):
    book_id = make_book(book_type="link", external_link="https://x")

    r = client.patch(f"/api/books/{book_id}", headers=ADMIN, json={})
    assert r.status_code == 400
    assert r.json()["error"] == "Cover image path is required"

    r = client.patch(
        f"/api/books/{book_id}", headers=ADMIN, json={"cover_image_path": "https://covers.example.com/b.jpg"}
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Book thumbnail updated successfully"
    assert get_book(book_id).cover_image_path == "https://covers.example.com/b.jpg"

    r = client.patch(f"/api/books/{book_id}", headers=READER, json={"cover_image_path": "/x.jpg"})
    assert r.status_code == 403

    r = client.patch("/api/books/9999", headers=ADMIN, json={"cover_image_path": "/x.jpg"})
    assert r.status_code == 404


def test_generate_thumbnail_from_uploaded_image(client, uploads):
    (uploads / "photo.png").write_bytes(png_bytes((900, 300), "orange"))

    r = client.post("/api/generate-thumbnail", json={"filePath": "/uploads/photo.png", "type": "image/png"})
    assert r.status_code == 200
    path = r.json()["thumbnailPath"]
    assert path.startswith("/uploads/thumbnail_") and path.endswith(".png")
    generated = Image.open(uploads / path.rsplit("/", 1)[1])
    assert generated.size == (300, 400)


def test_generate_thumbnail_from_pdf(client, uploads, rasterizer):
    (uploads / "doc.pdf").write_bytes(b"%PDF-1.4")
    r = client.post("/api/admin/generate-thumbnail", headers=ADMIN, json={"filePath": "/uploads/doc.pdf", "type": "pdf"})
    assert r.status_code == 200
    assert len(rasterizer.calls) == 1


def test_generate_thumbnail_errors(client, uploads):
    (uploads / "notes.txt").write_text("hello")

    r = client.post("/api/generate-thumbnail", json={"type": "image/png"})
    assert r.status_code == 400
    assert r.json()["error"] == "File path is required"

    r = client.post("/api/generate-thumbnail", json={"filePath": "/uploads/none.png", "type": "image/png"})
    assert r.status_code == 404

    r = client.post("/api/generate-thumbnail", json={"filePath": "/uploads/notes.txt", "type": "text/plain"})
    assert r.status_code == 400
    assert r.json()["error"] == "Unsupported file type for thumbnail generation"

    r = client.post("/api/admin/generate-thumbnail", json={"filePath": "/uploads/notes.txt", "type": "text/plain"})
    assert r.status_code == 401


def test_changing_the_file_drops_the_rendered_thumbnail(client, make_book, uploads, rasterizer, get_book):
    (uploads / "a.pdf").write_bytes(b"%PDF-1.4 first")
    (uploads / "b.pdf").write_bytes(b"%PDF-1.4 second")
    book_id = make_book(file_path="/uploads/a.pdf", file_type=PDF_MIME)

    client.get(f"/api/books/{book_id}/thumbnail")
    assert get_book(book_id).thumbnail_content is not None

    r = client.put(
        f"/api/admin/books/{book_id}",
        headers=ADMIN,
        json={"file_path": "/uploads/b.pdf", "file_type": PDF_MIME},
    )
    assert r.status_code == 200
    assert get_book(book_id).thumbnail_content is None

    client.get(f"/api/books/{book_id}/thumbnail")
    assert [p.name for p in rasterizer.calls] == ["a.pdf", "b.pdf"]


def test_changing_the_file_keeps_a_cover_thumbnail(client, make_book, get_book):
    book_id = make_book(book_type="link", external_link="https://x")
    client.patch(
        f"/api/books/{book_id}",
        headers=ADMIN,
        json={"cover_image_base64": b64(jpeg_bytes()), "cover_image_type": "image/jpeg"},
    )
    blob = get_book(book_id).thumbnail_content

    r = client.put(f"/api/admin/books/{book_id}", headers=ADMIN, json={"external_link": "https://y"})
    assert r.status_code == 200
    assert get_book(book_id).thumbnail_content == blob
