"""Shared fixtures for dropsync tests."""

import hashlib
import io
from datetime import datetime, timedelta, timezone

import pytest
from botocore.exceptions import ClientError

from dropsync.sync import LocalBackend, S3Backend


class FakeS3Client:
    """In-memory stand-in for the subset of the boto3 S3 client we call."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, datetime]] = {}
        self.calls: list[str] = []
        self.now = datetime.now(timezone.utc)

    def _tick(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now

    def _missing(self, operation: str) -> ClientError:
        return ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, operation)

    def _etag(self, key: str) -> str:
        return '"' + hashlib.md5(self.objects[key][0]).hexdigest() + '"'

    def add(self, key: str, data: bytes, modified: datetime = None) -> None:
        """Seed an object directly, bypassing call tracking."""
        self.objects[key] = (data, modified or self._tick())

    def get_paginator(self, operation: str):
        assert operation == "list_objects_v2"
        client = self

        class _Paginator:
            def paginate(self, Bucket, Prefix=""):
                contents = [
                    {
                        "Key": key,
                        "ETag": client._etag(key),
                        "LastModified": client.objects[key][1],
                        "Size": len(client.objects[key][0]),
                    }
                    for key in sorted(client.objects)
                    if key.startswith(Prefix)
                ]
                yield {"Contents": contents} if contents else {}

        return _Paginator()

    def head_object(self, Bucket, Key):
        self.calls.append(f"head {Key}")
        if Key not in self.objects:
            raise self._missing("HeadObject")
        return {"ETag": self._etag(Key), "LastModified": self.objects[Key][1]}

    def get_object(self, Bucket, Key):
        self.calls.append(f"get {Key}")
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[Key][0])}

    def put_object(self, Bucket, Key, Body):
        self.calls.append(f"put {Key}")
        data = Body if isinstance(Body, bytes) else Body.read()
        self.objects[Key] = (data, self._tick())
        return {}

    def copy_object(self, Bucket, Key, CopySource):
        self.calls.append(f"copy {CopySource['Key']} {Key}")
        if CopySource["Key"] not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey"}}, "CopyObject")
        self.objects[Key] = (self.objects[CopySource["Key"]][0], self._tick())
        return {}

    def delete_object(self, Bucket, Key):
        self.calls.append(f"delete {Key}")
        self.objects.pop(Key, None)
        return {}

    def read(self, key: str) -> bytes:
        return self.objects[key][0]


@pytest.fixture
def s3_client():
    """Provide an empty in-memory S3 client."""
    return FakeS3Client()


@pytest.fixture
def local_root(tmp_path):
    """Provide an empty local sync directory."""
    root = tmp_path / "sync"
    root.mkdir()
    return root


@pytest.fixture
def local_backend(local_root):
    """Local backend that deletes permanently."""
    return LocalBackend(local_root, use_trash=False)


@pytest.fixture
def remote_backend(s3_client):
    """S3 backend over the in-memory client."""
    return S3Backend(s3_client, "test-bucket")
