"""S3 side of the sync."""

import logging
from contextlib import contextmanager
from typing import Any, BinaryIO, Iterator, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..config import SyncConfig
from ..exceptions import SnapshotError, StorageError, TransferError
from ..utils import normalize_etag, staging_name, to_timestamp
from .backend import StorageBackend, WriteResult
from .models import FileRecord

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def create_s3_client(config: SyncConfig) -> Any:
    """Create a boto3 S3 client from the sync configuration.

    Args:
        config: Sync configuration holding the credential pair

    Returns:
        boto3 S3 client
    """
    boto_config = BotoConfig(retries={"max_attempts": 3, "mode": "standard"})
    kwargs: dict[str, Any] = {
        "aws_access_key_id": config.access_key_id,
        "aws_secret_access_key": config.secret_access_key,
        "config": boto_config,
    }
    if config.region_name:
        kwargs["region_name"] = config.region_name
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    return boto3.client("s3", **kwargs)


def _is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    return code in NOT_FOUND_CODES


class S3Backend(StorageBackend):
    """Storage backend over an S3-compatible bucket.

    Object keys are ``prefix/name``; record names never include the prefix.
    S3 has no rename, so renames and the final step of a staged upload are
    a server-side copy followed by a delete. Uploads are single-part so the
    ETag stays the MD5 of the content and can be compared with local
    fingerprints.
    """

    label = "remote"

    def __init__(self, client: Any, bucket: str, prefix: str = ""):
        """Initialize S3 backend.

        Args:
            client: boto3 S3 client
            bucket: Bucket name
            prefix: Key prefix all synced objects live under
        """
        super().__init__()
        self.client = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")

    @classmethod
    def from_config(cls, config: SyncConfig) -> "S3Backend":
        return cls(create_s3_client(config), config.bucket, config.prefix)

    def key_for(self, name: str) -> str:
        return f"{self.prefix}/{name}" if self.prefix else name

    def name_for(self, key: str) -> Optional[str]:
        """Strip the prefix from a key; None if the key is outside it."""
        if not self.prefix:
            return key
        head = self.prefix + "/"
        if not key.startswith(head):
            return None
        return key[len(head) :]

    def list_objects(self) -> Iterator[dict[str, Any]]:
        """Yield every object summary under the prefix.

        Raises:
            SnapshotError: If the listing fails
        """
        kwargs: dict[str, Any] = {"Bucket": self.bucket}
        if self.prefix:
            kwargs["Prefix"] = self.prefix + "/"
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**kwargs):
                yield from page.get("Contents", [])
        except (BotoCoreError, ClientError) as e:
            raise SnapshotError(f"Cannot list bucket {self.bucket}: {e}") from e

    def _list(self) -> list[FileRecord]:
        records: list[FileRecord] = []
        for obj in self.list_objects():
            key = obj["Key"]
            name = self.name_for(key)
            # Folder placeholders
            if not name or key.endswith("/"):
                continue
            records.append(
                FileRecord(
                    name=name,
                    fingerprint=normalize_etag(obj.get("ETag")),
                    modified_at=to_timestamp(obj.get("LastModified")),
                )
            )
        return records

    def _stat(self, name: str) -> Optional[FileRecord]:
        try:
            head = self.client.head_object(Bucket=self.bucket, Key=self.key_for(name))
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise StorageError(f"Cannot stat {name}: {e}", name=name) from e
        except BotoCoreError as e:
            raise StorageError(f"Cannot stat {name}: {e}", name=name) from e
        return FileRecord(
            name=name,
            fingerprint=normalize_etag(head.get("ETag")),
            modified_at=to_timestamp(head.get("LastModified")),
        )

    @contextmanager
    def open_reader(self, name: str) -> Iterator[BinaryIO]:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self.key_for(name))
        except (BotoCoreError, ClientError) as e:
            raise TransferError(f"Cannot download {name}: {e}", name=name) from e
        body = response["Body"]
        try:
            yield body
        finally:
            body.close()

    def _copy(self, source_key: str, target_key: str) -> None:
        self.client.copy_object(
            Bucket=self.bucket,
            Key=target_key,
            CopySource={"Bucket": self.bucket, "Key": source_key},
        )

    def _write_staged(self, name: str, reader: BinaryIO) -> None:
        staged_key = self.key_for(staging_name(name))
        try:
            self.client.put_object(Bucket=self.bucket, Key=staged_key, Body=reader)
            self._copy(staged_key, self.key_for(name))
            self.client.delete_object(Bucket=self.bucket, Key=staged_key)
        except (BotoCoreError, ClientError) as e:
            self._discard(staged_key)
            raise TransferError(f"Staged upload of {name} failed: {e}", name=name) from e

    def _discard(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"[{self.label}] Could not clean up {key}: {e}")

    def put(self, record: FileRecord, source: StorageBackend) -> WriteResult:
        """Upload ``record`` from ``source`` into the bucket.

        Returns:
            WriteResult of the upload, falsy on failure
        """
        return self.receive(record, source)

    def _rename(self, old: str, new: str) -> None:
        try:
            self._copy(self.key_for(old), self.key_for(new))
            self.client.delete_object(Bucket=self.bucket, Key=self.key_for(old))
        except (BotoCoreError, ClientError) as e:
            raise TransferError(f"Cannot rename {old}: {e}", name=old) from e

    def _remove(self, name: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=self.key_for(name))
        except (BotoCoreError, ClientError) as e:
            raise TransferError(f"Cannot delete {name}: {e}", name=name) from e
