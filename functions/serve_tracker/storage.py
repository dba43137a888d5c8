"""
Object storage for document payloads: S3-compatible (Tencent COS, AWS) and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from serve_tracker.errors import BackendError


class StorageClient(Protocol):
    """Defines the operations the backend needs from object storage."""

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        ...

    def get_bytes(self, path: str) -> bytes:
        ...

    def delete_object(self, path: str) -> None:
        ...

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = None
    fail: Optional[Exception] = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def _check(self) -> None:
        if self.fail is not None:
            raise self.fail

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        self._check()
        self.stored_objects[path] = bytes(data)

    def get_bytes(self, path: str) -> bytes:
        self._check()
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored

    def delete_object(self, path: str) -> None:
        self._check()
        self.stored_objects.pop(path, None)

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?op=get&expires={expires_in}"


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client (Tencent COS or AWS S3).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise BackendError(f"Failed to upload {path}: {e}") from e

    def get_bytes(self, path: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=path)
        except (BotoCoreError, ClientError) as e:
            raise BackendError(f"Failed to read {path}: {e}") from e
        return response["Body"].read()

    def delete_object(self, path: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=path)
        except (BotoCoreError, ClientError) as e:
            raise BackendError(f"Failed to delete {path}: {e}") from e

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=expires_in,
        )
