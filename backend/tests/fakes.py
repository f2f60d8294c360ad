"""
In-memory fakes for the boto3 S3 client.
"""
import io
from typing import Dict, Optional

from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError
from botocore.response import StreamingBody


TEST_BUCKET = "test-bucket"


def client_error(code: str, message: str = "error", operation: str = "Operation") -> ClientError:
    """Build a ClientError the way botocore raises it."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def streaming_body(data: bytes) -> StreamingBody:
    """Wrap bytes in the body type get_object returns."""
    return StreamingBody(io.BytesIO(data), len(data))


class StoredObject:
    def __init__(self, data: bytes, content_type: Optional[str], acl: Optional[str]):
        self.data = data
        self.content_type = content_type
        self.acl = acl


class FakePaginator:
    """Mimics the list_objects_v2 paginator, page_size keys per page."""

    def __init__(self, s3: "FakeS3Client"):
        self._s3 = s3

    def paginate(self, Bucket: str, Prefix: str = ""):
        self._s3._maybe_fail("list_objects_v2")
        self._s3._check_bucket(Bucket)
        keys = sorted(key for key in self._s3.objects if key.startswith(Prefix))
        size = self._s3.page_size
        if not keys:
            yield {"KeyCount": 0, "IsTruncated": False}
            return
        for start in range(0, len(keys), size):
            page = keys[start:start + size]
            yield {
                "Contents": [{"Key": key, "Size": len(self._s3.objects[key].data)} for key in page],
                "KeyCount": len(page),
                "IsTruncated": start + size < len(keys),
            }


class FakeS3Client:
    """
    In-memory stand-in for the boto3 S3 client.

    Only implements the calls the gateway makes. Errors can be injected
    per client method with fail().
    """

    def __init__(self, bucket: str = TEST_BUCKET, page_size: int = 1000):
        self.bucket = bucket
        self.page_size = page_size
        self.objects: Dict[str, StoredObject] = {}
        self.put_status = 200
        self.copy_status = 200
        self.calls = []
        self._failures: Dict[str, Exception] = {}

    # -- test helpers --------------------------------------------------

    def fail(self, method: str, exc: Exception):
        self._failures[method] = exc

    def _maybe_fail(self, method: str):
        self.calls.append(method)
        if method in self._failures:
            raise self._failures[method]

    def _check_bucket(self, bucket: str):
        if bucket != self.bucket:
            raise client_error("NoSuchBucket", "The specified bucket does not exist")

    def add(self, key: str, data: bytes, content_type: str = "application/octet-stream"):
        self.objects[key] = StoredObject(data, content_type, "public-read")

    @staticmethod
    def _response(status: int) -> dict:
        return {"ResponseMetadata": {"HTTPStatusCode": status}}

    # -- boto3 surface ---------------------------------------------------

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None, Callback=None):
        self._maybe_fail("upload_fileobj")
        self._check_bucket(Bucket)
        data = Fileobj.read()
        extra = ExtraArgs or {}
        self.objects[Key] = StoredObject(data, extra.get("ContentType"), extra.get("ACL"))
        if Callback:
            Callback(len(data))

    def upload_file(self, Filename, Bucket, Key, ExtraArgs=None, Callback=None):
        # boto3 re-raises ClientError from managed file uploads as S3UploadFailedError
        try:
            self._maybe_fail("upload_file")
            with open(Filename, "rb") as f:
                self.upload_fileobj(f, Bucket, Key, ExtraArgs=ExtraArgs, Callback=Callback)
        except ClientError as e:
            raise S3UploadFailedError(f"Failed to upload {Filename} to {Bucket}/{Key}: {e}") from e

    def put_object(self, Bucket, Key, Body, ContentType=None, ACL=None):
        self._maybe_fail("put_object")
        self._check_bucket(Bucket)
        data = Body.encode("utf-8") if isinstance(Body, str) else Body
        if self.put_status == 200:
            self.objects[Key] = StoredObject(data, ContentType, ACL)
        return self._response(self.put_status)

    def get_object(self, Bucket, Key):
        self._maybe_fail("get_object")
        self._check_bucket(Bucket)
        if Key not in self.objects:
            raise client_error("NoSuchKey", "The specified key does not exist.", "GetObject")
        stored = self.objects[Key]
        response = self._response(200)
        response.update({
            "Body": streaming_body(stored.data),
            "ContentType": stored.content_type,
            "ContentLength": len(stored.data),
        })
        return response

    def get_paginator(self, operation_name):
        assert operation_name == "list_objects_v2"
        return FakePaginator(self)

    def copy_object(self, Bucket, Key, CopySource, ACL=None):
        self._maybe_fail("copy_object")
        self._check_bucket(Bucket)
        source = self.objects.get(CopySource["Key"])
        if source is None:
            raise client_error("NoSuchKey", "The specified key does not exist.", "CopyObject")
        if self.copy_status == 200:
            self.objects[Key] = StoredObject(source.data, source.content_type, ACL)
        return self._response(self.copy_status)

    def delete_object(self, Bucket, Key):
        self._maybe_fail("delete_object")
        self._check_bucket(Bucket)
        self.objects.pop(Key, None)
        return self._response(204)

    def head_bucket(self, Bucket):
        self._maybe_fail("head_bucket")
        if Bucket != self.bucket:
            raise client_error("404", "Not Found", "HeadBucket")
        return self._response(200)

