"""
Tests for settings and S3 client construction.
"""
import pytest
from pydantic import ValidationError

from app.config import Settings
from app.storage.s3_client import build_client_config, create_s3_client


class TestSettings:
    """Tests for Settings."""

    def test_bucket_from_environment(self):
        settings = Settings()
        assert settings.s3_bucket_name == "test-bucket"
        assert settings.storage_read_concurrency == 4

    def test_bucket_is_required(self, monkeypatch):
        monkeypatch.delenv("S3_BUCKET_NAME", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestS3Client:
    """Tests for boto3 client construction (no network calls)."""

    def test_client_uses_region_and_endpoint(self):
        settings = Settings(
            s3_bucket_name="bucket",
            s3_region="eu-west-1",
            s3_endpoint="http://localhost:9000",
            s3_access_key="key",
            s3_secret_key="secret",
        )

        client = create_s3_client(settings)

        assert client.meta.region_name == "eu-west-1"
        assert client.meta.endpoint_url == "http://localhost:9000"

    def test_retry_budget_only_when_configured(self):
        default = build_client_config(Settings(s3_bucket_name="bucket"))
        tuned = build_client_config(Settings(s3_bucket_name="bucket", s3_max_attempts=7))

        assert default.retries is None
        assert tuned.retries == {"max_attempts": 7, "mode": "standard"}
        assert tuned.s3 == {"addressing_style": "auto"}
