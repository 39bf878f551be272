"""File storage gateway for generated report artifacts.

Provides a ``ReportStorage`` Protocol and two implementations: a
``LocalFileStorage`` writing under a base directory with async I/O, and an
``S3FileStorage`` for S3-compatible object stores (AWS S3, Cloudflare R2,
MinIO). The core only depends on the Protocol.
"""

import asyncio
import contextlib
import os
import uuid
from pathlib import Path
from typing import Any, Protocol

import aiofiles
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from wastecollect_api.lib.reports.errors import ArtifactNotFoundError, StorageError


class ReportStorage(Protocol):
    """Abstract storage interface for report artifacts."""

    async def save_file(self, content: bytes, name: str) -> str:
        """Persist artifact bytes under a logical name.

        Saving the same bytes under an existing name is idempotent.

        Args:
            content: Raw artifact bytes.
            name: Logical artifact name (e.g., "report-<id>-performance.pdf").

        Returns:
            The storage path to hand back to ``download_file``.

        Raises:
            StorageError: If the backend write fails.
        """
        ...

    async def download_file(self, path: str) -> bytes:
        """Read artifact bytes previously saved.

        Args:
            path: The path returned by ``save_file``.

        Returns:
            The raw artifact bytes.

        Raises:
            ArtifactNotFoundError: If the path does not exist or is unreadable.
            StorageError: On any other backend failure.
        """
        ...


class LocalFileStorage:
    """Local filesystem implementation of ReportStorage.

    Artifacts are stored flat under ``base_dir`` using their logical name;
    the returned path is the name relative to ``base_dir``. Writes go to a
    temporary sibling file that is then atomically renamed into place, so a
    reader never observes a partially written artifact.

    Args:
        base_dir: Root directory for artifact storage.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir).resolve()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    async def save_file(self, content: bytes, name: str) -> str:
        try:
            target = self._resolve(name)
        except ArtifactNotFoundError as exc:
            raise StorageError(str(exc)) from exc
        tmp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(content)
            os.replace(tmp_path, target)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            msg = f"Could not write artifact {name}: {exc}"
            raise StorageError(msg) from exc

        logger.info("Saved report artifact to {}", target)
        return name

    async def download_file(self, path: str) -> bytes:
        full_path = self._resolve(path)
        if not full_path.is_file() or not os.access(full_path, os.R_OK):
            msg = f"File not found or is not readable: {path}"
            raise ArtifactNotFoundError(msg)

        try:
            async with aiofiles.open(full_path, "rb") as f:
                return await f.read()
        except OSError as exc:
            msg = f"Could not read artifact {path}: {exc}"
            raise StorageError(msg) from exc

    def _resolve(self, path: str) -> Path:
        """Resolve a storage path under the base directory.

        Raises:
            ArtifactNotFoundError: If the path escapes the base directory.
        """
        full_path = (self._base_dir / path).resolve()
        if not full_path.is_relative_to(self._base_dir):
            msg = f"Path is outside the storage root: {path}"
            raise ArtifactNotFoundError(msg)
        return full_path


def create_s3_client(
    *,
    endpoint_url: str | None = None,
    region_name: str | None = None,
    access_key_id: str | None = None,
    secret_access_key: str | None = None,
) -> Any:
    """Create a boto3 S3 client.

    Applies the checksum settings required by R2 and other S3-compatible
    stores with boto3 v1.36.0+. Credentials fall back to the standard boto3
    chain when not given.

    Returns:
        Configured boto3 S3 client.
    """
    config = Config(
        request_checksum_calculation="when_required",
        response_checksum_validation="when_required",
    )
    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        region_name=region_name,
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        config=config,
    )


class S3FileStorage:
    """S3-compatible object store implementation of ReportStorage.

    boto3 is synchronous, so every call runs in a worker thread. The
    returned path is the object key.

    Args:
        client: boto3 S3 client.
        bucket: Bucket name.
        prefix: Optional key prefix (e.g., "reports/").
    """

    def __init__(self, client: Any, bucket: str, prefix: str = "") -> None:
        self._client = client
        self._bucket = bucket
        self._prefix = prefix.strip("/")

    def _key(self, name: str) -> str:
        return f"{self._prefix}/{name}" if self._prefix else name

    async def save_file(self, content: bytes, name: str) -> str:
        key = self._key(name)
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=content,
            )
        except (ClientError, BotoCoreError) as exc:
            msg = f"Could not upload artifact {key} to bucket {self._bucket}: {exc}"
            raise StorageError(msg) from exc

        logger.info("Uploaded report artifact to s3://{}/{}", self._bucket, key)
        return key

    async def download_file(self, path: str) -> bytes:
        try:
            response = await asyncio.to_thread(self._client.get_object, Bucket=self._bucket, Key=path)
            return await asyncio.to_thread(response["Body"].read)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in ("NoSuchKey", "404", "NotFound"):
                msg = f"File not found: s3://{self._bucket}/{path}"
                raise ArtifactNotFoundError(msg) from exc
            msg = f"Could not download artifact {path}: {exc}"
            raise StorageError(msg) from exc
        except BotoCoreError as exc:
            msg = f"Could not download artifact {path}: {exc}"
            raise StorageError(msg) from exc
