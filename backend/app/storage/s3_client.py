"""
S3 / S3-compatible storage client.

Uses boto3 to build a single client shared by the whole process.
Works with AWS S3 and any S3-compatible store (MinIO, Cloudflare R2, ...)
when S3_ENDPOINT is set.

Credentials are only passed explicitly when both S3_ACCESS_KEY and
S3_SECRET_KEY are configured. Otherwise boto3 resolves them through its
default chain (environment, shared profile files, instance metadata).
"""
import logging
import boto3
from botocore.config import Config

from app.config import Settings, settings

logger = logging.getLogger(__name__)


def build_client_config(config: Settings) -> Config:
    """
    Build the botocore Config for the S3 client.

    Retries are left to botocore; only the attempt budget is tunable.
    """
    options = {
        "signature_version": "s3v4",
        "s3": {"addressing_style": config.s3_addressing_style},
        "connect_timeout": config.s3_connect_timeout,
        "read_timeout": config.s3_read_timeout,
    }
    if config.s3_max_attempts is not None:
        options["retries"] = {"max_attempts": config.s3_max_attempts, "mode": "standard"}
    return Config(**options)


def create_s3_client(config: Settings = settings):
    """
    Create a boto3 S3 client from settings.

    Args:
        config: Application settings

    Returns:
        boto3 S3 client (thread-safe, safe to share)
    """
    kwargs = {
        "config": build_client_config(config),
    }
    if config.s3_endpoint:
        kwargs["endpoint_url"] = config.s3_endpoint
    if config.s3_region:
        kwargs["region_name"] = config.s3_region
    if config.s3_access_key and config.s3_secret_key:
        kwargs["aws_access_key_id"] = config.s3_access_key
        kwargs["aws_secret_access_key"] = config.s3_secret_key
    else:
        logger.info("S3 credentials not set explicitly, using boto3 default credential chain")

    client = boto3.client("s3", **kwargs)
    logger.info(f"S3 client initialized for bucket: {config.s3_bucket_name}")
    return client


# Singleton instance
_s3_client = None


def get_s3_client():
    """
    Get the singleton S3 client instance.

    Returns:
        boto3 S3 client, created on first use
    """
    global _s3_client
    if _s3_client is None:
        _s3_client = create_s3_client(settings)
    return _s3_client

