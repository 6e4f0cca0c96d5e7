import importlib
import os

import app.core.config as config


def _restore_env(env_snapshot):
    """Put back a snapshot of env vars and reload settings."""
    for key, value in env_snapshot.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
    importlib.reload(config)


def test_s3_bucket_and_region_aliases(monkeypatch):
    """S3_BUCKET_NAME and AWS_REGION populate the storage settings."""
    keys = ["S3_BUCKET", "S3_BUCKET_NAME", "S3_REGION", "AWS_REGION"]
    snapshot = {k: os.environ.get(k) for k in keys}

    try:
        monkeypatch.delenv("S3_BUCKET", raising=False)
        monkeypatch.setenv("S3_BUCKET_NAME", "izzo-images")

        monkeypatch.delenv("S3_REGION", raising=False)
        monkeypatch.setenv("AWS_REGION", "us-east-2")

        importlib.reload(config)

        assert config.settings.S3_BUCKET == "izzo-images"
        assert config.settings.S3_REGION == "us-east-2"
    finally:
        _restore_env(snapshot)


def test_plain_postgres_url_uses_asyncpg(monkeypatch):
    snapshot = {"DATABASE_URL": os.environ.get("DATABASE_URL")}
    try:
        monkeypatch.setenv("DATABASE_URL", "postgres://izzo:pw@db.internal:5432/izzo")
        importlib.reload(config)
        assert config.settings.DATABASE_URL == "postgresql+asyncpg://izzo:pw@db.internal:5432/izzo"
    finally:
        _restore_env(snapshot)


def test_cors_origins_accept_comma_separated(monkeypatch):
    snapshot = {"CORS_ORIGINS": os.environ.get("CORS_ORIGINS")}
    try:
        monkeypatch.setenv("CORS_ORIGINS", "https://izzo.example.com, https://admin.izzo.example.com")
        importlib.reload(config)
        assert config.settings.CORS_ORIGINS == [
            "https://izzo.example.com",
            "https://admin.izzo.example.com",
        ]
    finally:
        _restore_env(snapshot)
