import base64
from io import BytesIO
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from app.core.settings import S3Config
from app.db.models.database import Base, Books, Categories, Role, User, UserRoles
from app.db.session import get_session
from app.main import app
from app.services.shares.storage import BlobStore, get_blob_store
from app.services.shares.thumbnail import get_rasterizer

ADMIN = {"x-user-email": "admin@example.com"}
READER = {"x-user-email": "reader@example.com"}


def png_bytes(size=(600, 900), color="navy", mode="RGB") -> bytes:
    buf = BytesIO()
    Image.new(mode, size, color).save(buf, format="PNG")
    return buf.getvalue()


def jpeg_bytes(size=(800, 1200), color="darkred") -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


class FakeRasterizer:
    """Writes a fixed page image instead of spawning the worker."""

    def __init__(self):
        self.calls = []

    async def rasterize(self, pdf_path, out_path):
        self.calls.append(pdf_path)
        Image.new("RGB", (1240, 1754), "white").save(out_path, format="PNG")
        return out_path


class FakeS3Client:
    def __init__(self):
        self.uploaded = []
        self.presigned = []

    def upload_fileobj(self, fh, bucket, key, ExtraArgs=None):
        self.uploaded.append((bucket, key, fh.read(), ExtraArgs))

    def generate_presigned_url(self, operation, Params=None, ExpiresIn=None):
        self.presigned.append((operation, Params, ExpiresIn))
        return f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "library.db"


@pytest.fixture
def SessionLocal(db_path):
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def seed(SessionLocal):
    with SessionLocal() as s:
        roles = {name: Role(name=name) for name in ("user", "moderator", "admin")}
        s.add_all(roles.values())
        programming = Categories(name="Programming", slug="programming", description="Code")
        database = Categories(name="Database", slug="database")
        admin = User(username="admin", email="admin@example.com", password_hash="x")
        reader = User(username="reader", email="reader@example.com", password_hash="x")
        s.add_all([programming, database, admin, reader])
        s.flush()
        s.add_all(
            [
                UserRoles(user_id=admin.id, role_id=roles["admin"].id),
                UserRoles(user_id=reader.id, role_id=roles["user"].id),
            ]
        )
        s.commit()
        return SimpleNamespace(
            admin_id=admin.id,
            reader_id=reader.id,
            category_id=programming.id,
            other_category_id=database.id,
        )


@pytest.fixture
def make_book(SessionLocal, seed):
    def _make(**fields):
        fields.setdefault("title", "Fluent Python")
        fields.setdefault("author", "Luciano Ramalho")
        fields.setdefault("category_id", seed.category_id)
        with SessionLocal() as s:
            book = Books(**fields)
            s.add(book)
            s.commit()
            return book.id

    return _make


@pytest.fixture
def get_book(SessionLocal):
    def _get(book_id):
        with SessionLocal() as s:
            return s.get(Books, book_id)

    return _get


@pytest.fixture
def uploads(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def store(uploads):
    return BlobStore(uploads)


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def s3_store(uploads, s3_client):
    return BlobStore(uploads, S3Config("library-bucket", "us-east-1", "key", "secret"), s3_client)


@pytest.fixture
def rasterizer():
    return FakeRasterizer()


@pytest.fixture
def client(db_path, seed, store, rasterizer):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    async def _session():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_blob_store] = lambda: store
    app.dependency_overrides[get_rasterizer] = lambda: rasterizer
    yield TestClient(app)
    app.dependency_overrides.clear()
