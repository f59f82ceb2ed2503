import pytest

from app.core.settings import S3Config, Settings

S3_ENV = (
    "S3_BUCKET",
    "AWS_S3_BUCKET",
    "S3_REGION",
    "AWS_REGION",
    "S3_ACCESS_KEY_ID",
    "AWS_ACCESS_KEY_ID",
    "S3_SECRET_ACCESS_KEY",
    "AWS_SECRET_ACCESS_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in S3_ENV:
        monkeypatch.delenv(name, raising=False)


def test_env_file_ignores_unknown_keys(tmp_path):
    env = tmp_path / ".env"
    env.write_text("PORT=8080\nSOME_OTHER_SERVICE_KEY=abc\nMAX_FILE_SIZE_MB=5\n")

    loaded = Settings(_env_file=env)
    assert loaded.PORT == 8080
    assert loaded.max_file_size == 5 * 1024 * 1024
    assert not hasattr(loaded, "SOME_OTHER_SERVICE_KEY")


def test_s3_config_requires_every_value(monkeypatch):
    monkeypatch.setenv("S3_BUCKET", "library-bucket")
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "key")
    assert Settings(_env_file=None).s3 is None

    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
    assert Settings(_env_file=None).s3 == S3Config("library-bucket", "us-east-1", "key", "secret")
