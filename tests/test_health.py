from tests.conftest import ADMIN


def test_root(client):
    assert client.get("/").json() == {"message": "Hello world"}


def test_thumbnail_probe(client, uploads):
    body = client.get("/api/test-thumbnail").json()
    assert body["message"] == "Thumbnail endpoint is working"
    assert body["exists"] is True
    assert body["s3Enabled"] is False


def test_validation_errors_use_library_error_shape(client, seed):
    r = client.post("/api/admin/categories", headers=ADMIN, json=[1, 2])
    assert r.status_code == 400
    assert r.json()["error"] == "Validation failed"
