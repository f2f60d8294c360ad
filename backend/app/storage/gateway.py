"""
Storage gateway for file operations against a single S3 bucket.

Maps file-level requests (file name, optional directory, content type)
onto boto3 calls and turns backend errors into boolean / empty results.

Addressing:
    bucket is always the configured bucket
    key    = "{directory}/{file_name}", or just "{file_name}" without a directory

Fault handling (same for every operation):
    credentials / backend errors -> logged, operation returns False (or empty result)
    anything else                -> logged with traceback, re-raised

boto3 is synchronous, so every call runs in a worker thread via
asyncio.to_thread. The boto3 client itself is thread-safe.
"""
import asyncio
import logging
import mimetypes
import os
import threading
import time
from typing import Any, BinaryIO, List, NamedTuple, Optional

from app.config import settings
from app.storage.errors import BACKEND_ERRORS, StorageFault, classify_error, error_message
from app.storage.s3_client import get_s3_client
from app.utils.logging import log_storage_failure, log_storage_success
from app.utils.metrics import storage_operation_duration_seconds, storage_operations_total

logger = logging.getLogger(__name__)

PUBLIC_READ_ACL = "public-read"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class FileReadResult(NamedTuple):
    """Body stream and content type of a read object; both None on failure."""
    stream: Optional[Any]
    content_type: Optional[str]


class DirectoryEntry(NamedTuple):
    """One object loaded from a directory listing."""
    stream: Optional[Any]
    file_name: str
    content_type: Optional[str]


def guess_content_type(file_name: str) -> str:
    """Guess a MIME type from the file extension."""
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or DEFAULT_CONTENT_TYPE


def _status_code(response: dict) -> Optional[int]:
    return response.get("ResponseMetadata", {}).get("HTTPStatusCode")


class _UploadProgress:
    """boto3 transfer callback that logs cumulative bytes sent."""

    def __init__(self, file_name: str):
        self._file_name = file_name
        self._sent = 0
        self._lock = threading.Lock()

    def __call__(self, bytes_amount: int):
        # s3transfer calls back from several threads during multipart uploads
        with self._lock:
            self._sent += bytes_amount
            sent = self._sent
        logger.debug(f"{self._file_name} upload progress: {sent} bytes sent")


class StorageGateway:
    """
    File operations on top of a boto3 S3 client.

    Responsibilities:
    - Build object keys from file name + directory
    - Upload from stream, local path or text content (public-read)
    - Read single files and whole directories
    - Move (copy then delete) and remove files
    - Classify and log backend errors
    """

    def __init__(self, client, bucket_name: str, read_concurrency: int = 4):
        """
        Args:
            client: boto3 S3 client
            bucket_name: The bucket every operation targets
            read_concurrency: Max concurrent object reads in read_directory
        """
        self._client = client
        self._bucket = bucket_name
        self._read_concurrency = max(1, read_concurrency)

    @property
    def bucket(self) -> str:
        """Get configured bucket name."""
        return self._bucket

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    @staticmethod
    def _clean_directory(directory: Optional[str]) -> str:
        if directory is None:
            return ""
        return directory.strip().strip("/")

    def object_key(self, file_name: str, directory: Optional[str] = None) -> str:
        """
        Build the object key for a file.

        Args:
            file_name: Name of the file (last key segment)
            directory: Optional directory, used as key prefix

        Returns:
            "directory/file_name" or "file_name"
        """
        directory = self._clean_directory(directory)
        return f"{directory}/{file_name}" if directory else file_name

    def directory_prefix(self, directory: Optional[str]) -> str:
        """Listing prefix for a directory ("" for the bucket root)."""
        directory = self._clean_directory(directory)
        return f"{directory}/" if directory else ""

    # ------------------------------------------------------------------
    # Fault handling
    # ------------------------------------------------------------------

    def _backend_failure(self, exc: Exception, operation: str, action: str,
                         file_name: Optional[str], key: Optional[str], started: float) -> None:
        """Log a credentials/backend error. The caller turns it into a failure result."""
        self._observe_duration(operation, started)
        fault = classify_error(exc)
        storage_operations_total.labels(operation=operation, outcome=fault.value).inc()

        if fault is StorageFault.CREDENTIALS:
            message = "Please check the provided AWS credentials."
        else:
            message = f"An error occurred with the message '{error_message(exc)}' when {action} {file_name or key or ''}".rstrip()

        log_storage_failure(
            logger,
            operation=operation,
            message=message,
            fault=fault.value,
            file_name=file_name,
            bucket=self._bucket,
            key=key,
        )

    def _system_failure(self, exc: Exception, operation: str, action: str,
                        file_name: Optional[str], key: Optional[str], started: float) -> None:
        """Log an unclassified error. The caller re-raises it."""
        self._observe_duration(operation, started)
        storage_operations_total.labels(operation=operation, outcome=StorageFault.SYSTEM.value).inc()
        log_storage_failure(
            logger,
            operation=operation,
            message=f"Unknown error encountered on server. Message: '{exc}' when {action} {file_name or key or ''}".rstrip(),
            fault=StorageFault.SYSTEM.value,
            file_name=file_name,
            bucket=self._bucket,
            key=key,
            include_traceback=True,
        )

    @staticmethod
    def _observe_duration(operation: str, started: float) -> None:
        storage_operation_duration_seconds.labels(operation=operation).observe(time.monotonic() - started)

    def _success(self, operation: str, file_name: str, key: str, started: float) -> None:
        storage_operations_total.labels(operation=operation, outcome="success").inc()
        self._observe_duration(operation, started)
        log_storage_success(logger, operation=operation, file_name=file_name, bucket=self._bucket, key=key)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def upload_stream(
        self,
        stream: BinaryIO,
        file_name: str,
        directory: Optional[str] = None,
        content_type: Optional[str] = None
    ) -> bool:
        """
        Upload a file-like object.

        Args:
            stream: Readable binary stream
            file_name: Object name
            directory: Optional directory
            content_type: MIME type, guessed from file_name when missing

        Returns:
            True if the upload succeeded, False otherwise
        """
        key = self.object_key(file_name, directory)
        started = time.monotonic()
        try:
            await asyncio.to_thread(
                self._client.upload_fileobj,
                stream,
                self._bucket,
                key,
                ExtraArgs={
                    "ACL": PUBLIC_READ_ACL,
                    "ContentType": content_type or guess_content_type(file_name),
                },
                Callback=_UploadProgress(file_name),
            )
        except BACKEND_ERRORS as e:
            self._backend_failure(e, "upload", "uploading", file_name, key, started)
            return False
        except Exception as e:
            self._system_failure(e, "upload", "uploading", file_name, key, started)
            raise

        self._success("upload", file_name, key, started)
        return True

    async def upload_path(self, file_path: str, directory: Optional[str] = None) -> bool:
        """
        Upload a local file. The object name is the file's base name.

        Args:
            file_path: Path on the local filesystem
            directory: Optional directory

        Returns:
            True if the upload succeeded, False otherwise

        Raises:
            OSError: The local file cannot be read
        """
        file_name = os.path.basename(file_path)
        key = self.object_key(file_name, directory)
        started = time.monotonic()
        try:
            await asyncio.to_thread(
                self._client.upload_file,
                file_path,
                self._bucket,
                key,
                ExtraArgs={
                    "ACL": PUBLIC_READ_ACL,
                    "ContentType": guess_content_type(file_name),
                },
                Callback=_UploadProgress(file_name),
            )
        except BACKEND_ERRORS as e:
            self._backend_failure(e, "upload", "uploading", file_path, key, started)
            return False
        except Exception as e:
            self._system_failure(e, "upload", "uploading", file_path, key, started)
            raise

        self._success("upload", file_path, key, started)
        return True

    async def upload_content(
        self,
        contents: str,
        content_type: str,
        file_name: str,
        directory: Optional[str] = None
    ) -> bool:
        """
        Write text content as an object body.

        Success is decided by the HTTP status of the put, which must be 200.

        Returns:
            True if the backend answered 200, False otherwise
        """
        key = self.object_key(file_name, directory)
        started = time.monotonic()
        try:
            response = await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=contents,
                ContentType=content_type,
                ACL=PUBLIC_READ_ACL,
            )
        except BACKEND_ERRORS as e:
            self._backend_failure(e, "write", "writing", file_name, key, started)
            return False
        except Exception as e:
            self._system_failure(e, "write", "writing", file_name, key, started)
            raise

        status_code = _status_code(response)
        if status_code != 200:
            storage_operations_total.labels(operation="write", outcome="failure").inc()
            self._observe_duration("write", started)
            log_storage_failure(
                logger,
                operation="write",
                message=f"failed to upload {file_name} to {self._bucket}/{key}, status {status_code}",
                fault=StorageFault.BACKEND.value,
                file_name=file_name,
                bucket=self._bucket,
                key=key,
                status_code=status_code,
            )
            return False

        self._success("write", file_name, key, started)
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _read_key(self, key: str, file_name: str) -> FileReadResult:
        started = time.monotonic()
        try:
            response = await asyncio.to_thread(self._client.get_object, Bucket=self._bucket, Key=key)
        except BACKEND_ERRORS as e:
            self._backend_failure(e, "read", "reading", file_name, key, started)
            return FileReadResult(None, None)
        except Exception as e:
            self._system_failure(e, "read", "reading", file_name, key, started)
            raise

        storage_operations_total.labels(operation="read", outcome="success").inc()
        self._observe_duration("read", started)
        logger.debug(f"Read {key} from {self._bucket}")
        return FileReadResult(response["Body"], response.get("ContentType"))

    async def read_file(self, file_name: str, directory: Optional[str] = None) -> FileReadResult:
        """
        Fetch a file.

        A missing object and a rejected request look the same to the
        caller: both return (None, None).

        Returns:
            FileReadResult(stream, content_type)
        """
        return await self._read_key(self.object_key(file_name, directory), file_name)

    def _list_keys(self, prefix: str) -> List[str]:
        # Runs in a worker thread; follows every page of the listing
        paginator = self._client.get_paginator("list_objects_v2")
        keys = []
        for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
            keys.extend(entry["Key"] for entry in page.get("Contents", []))
        return keys

    async def read_directory(self, directory: str) -> List[DirectoryEntry]:
        """
        Load every file stored under a directory.

        Keys whose last segment is empty (directory markers such as "dir/")
        are skipped. Each remaining key costs one extra get_object call;
        those calls run with bounded concurrency and the result keeps the
        listing order. Entries whose read fails are returned with
        stream=None and content_type=None.

        Args:
            directory: Directory to list

        Returns:
            List of DirectoryEntry, empty if the listing itself fails
        """
        prefix = self.directory_prefix(directory)
        started = time.monotonic()
        try:
            keys = await asyncio.to_thread(self._list_keys, prefix)
        except BACKEND_ERRORS as e:
            self._backend_failure(e, "list", "listing", None, prefix, started)
            return []
        except Exception as e:
            self._system_failure(e, "list", "listing", None, prefix, started)
            raise

        named_keys = [(key, key.split("/")[-1]) for key in keys]
        named_keys = [(key, name) for key, name in named_keys if name]

        semaphore = asyncio.Semaphore(self._read_concurrency)

        async def fetch(key: str, name: str) -> DirectoryEntry:
            async with semaphore:
                result = await self._read_key(key, name)
            return DirectoryEntry(result.stream, name, result.content_type)

        entries = await asyncio.gather(*(fetch(key, name) for key, name in named_keys))

        storage_operations_total.labels(operation="list", outcome="success").inc()
        self._observe_duration("list", started)
        logger.info(f"Loaded {len(entries)} files from {self._bucket}/{prefix}")
        return list(entries)

    # ------------------------------------------------------------------
    # Move / delete
    # ------------------------------------------------------------------

    async def move_file(self, file_name: str, source_directory: str, dest_directory: str) -> bool:
        """
        Move a file between directories.

        Copies the object, then deletes the source only when the copy
        answered 200. This is not atomic: if the delete fails the object
        exists in both directories and nothing is rolled back.

        Returns:
            True if the copy succeeded and the delete raised no error
        """
        source_key = self.object_key(file_name, source_directory)
        dest_key = self.object_key(file_name, dest_directory)
        started = time.monotonic()
        try:
            response = await asyncio.to_thread(
                self._client.copy_object,
                Bucket=self._bucket,
                Key=dest_key,
                CopySource={"Bucket": self._bucket, "Key": source_key},
                ACL=PUBLIC_READ_ACL,
            )
            if _status_code(response) != 200:
                storage_operations_total.labels(operation="move", outcome="failure").inc()
                self._observe_duration("move", started)
                log_storage_failure(
                    logger,
                    operation="move",
                    message=f"failed to copy {source_key} to {dest_key}",
                    fault=StorageFault.BACKEND.value,
                    file_name=file_name,
                    bucket=self._bucket,
                    key=source_key,
                )
                return False

            await asyncio.to_thread(self._client.delete_object, Bucket=self._bucket, Key=source_key)
        except BACKEND_ERRORS as e:
            self._backend_failure(e, "move", "moving", file_name, source_key, started)
            return False
        except Exception as e:
            self._system_failure(e, "move", "moving", file_name, source_key, started)
            raise

        self._success("move", file_name, dest_key, started)
        return True

    async def remove_file(self, file_name: str, directory: Optional[str] = None) -> bool:
        """
        Delete a file.

        Returns:
            True if the backend accepted the delete, False otherwise
        """
        key = self.object_key(file_name, directory)
        started = time.monotonic()
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self._bucket, Key=key)
        except BACKEND_ERRORS as e:
            self._backend_failure(e, "delete", "deleting", file_name, key, started)
            return False
        except Exception as e:
            self._system_failure(e, "delete", "deleting", file_name, key, started)
            raise

        self._success("delete", file_name, key, started)
        return True

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def check_bucket(self) -> bool:
        """Check that the bucket exists and is reachable with current credentials."""
        started = time.monotonic()
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=self._bucket)
            return True
        except BACKEND_ERRORS as e:
            self._backend_failure(e, "health", "checking bucket", None, None, started)
            return False
        except Exception as e:
            self._system_failure(e, "health", "checking bucket", None, None, started)
            raise


# Singleton instance
_gateway: Optional[StorageGateway] = None


def get_storage_gateway() -> StorageGateway:
    """
    Get the singleton storage gateway.

    Also used as a FastAPI dependency so tests can override it.
    """
    global _gateway
    if _gateway is None:
        _gateway = StorageGateway(
            client=get_s3_client(),
            bucket_name=settings.s3_bucket_name,
            read_concurrency=settings.storage_read_concurrency,
        )
    return _gateway
