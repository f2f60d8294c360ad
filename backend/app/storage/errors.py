"""
Classification of storage backend errors.

Every gateway operation sorts exceptions into three kinds:
- credentials: the backend rejected the access key or security token
- backend: any other error reported by botocore/S3 (not found, denied, throttled, ...)
- system: anything that is not a botocore error (local I/O, programming errors)

boto3's managed file upload (client.upload_file) re-raises every ClientError
as S3UploadFailedError; the original ClientError stays chained on it and is
what gets classified.
"""
import enum
from typing import Optional

from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

# Error codes S3 returns for bad credentials
CREDENTIALS_ERROR_CODES = frozenset({"InvalidAccessKeyId", "InvalidSecurity"})

# Exceptions raised by boto3/botocore for backend-side failures
BACKEND_ERRORS = (ClientError, BotoCoreError, S3UploadFailedError)


class StorageFault(str, enum.Enum):
    """Kind of failure a storage operation ran into."""
    CREDENTIALS = "credentials"
    BACKEND = "backend"
    SYSTEM = "system"


def unwrap_error(exc: BaseException) -> BaseException:
    """Return the ClientError chained on an S3UploadFailedError, else exc itself."""
    if isinstance(exc, S3UploadFailedError):
        cause = exc.__cause__ or exc.__context__
        if cause is not None:
            return cause
    return exc


def error_code(exc: BaseException) -> Optional[str]:
    """Return the S3 error code carried by a ClientError, if any."""
    exc = unwrap_error(exc)
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


def error_message(exc: BaseException) -> str:
    """Return the backend message for an error, falling back to str(exc)."""
    inner = unwrap_error(exc)
    if isinstance(inner, ClientError):
        message = inner.response.get("Error", {}).get("Message")
        if message:
            return message
    return str(exc)


def classify_error(exc: BaseException) -> StorageFault:
    """
    Classify an exception raised by a storage call.

    Args:
        exc: The exception

    Returns:
        StorageFault kind
    """
    inner = unwrap_error(exc)
    if isinstance(inner, (NoCredentialsError, PartialCredentialsError)):
        return StorageFault.CREDENTIALS
    if error_code(inner) in CREDENTIALS_ERROR_CODES:
        return StorageFault.CREDENTIALS
    if isinstance(exc, BACKEND_ERRORS):
        return StorageFault.BACKEND
    return StorageFault.SYSTEM
