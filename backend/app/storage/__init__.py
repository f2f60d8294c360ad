"""
Storage module for S3 / S3-compatible object storage.

The gateway is the only place that talks to the bucket; the API layer
only sees booleans and (stream, content_type) results.
"""
from app.storage.s3_client import get_s3_client, create_s3_client
from app.storage.errors import StorageFault, classify_error
from app.storage.gateway import (
    DirectoryEntry,
    FileReadResult,
    StorageGateway,
    get_storage_gateway,
)

__all__ = [
    "get_s3_client",
    "create_s3_client",
    "StorageFault",
    "classify_error",
    "DirectoryEntry",
    "FileReadResult",
    "StorageGateway",
    "get_storage_gateway",
]
