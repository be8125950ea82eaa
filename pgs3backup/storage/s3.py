# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
S3 storage operations for backup artifacts.

All functions take an aiobotocore S3 client created by open_s3_client()
with the operator's credentials passed explicitly. Works against AWS and
S3-compatible endpoints.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, List

import aiofiles
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from pgs3backup.config import CloudCredentials
from pgs3backup.exceptions import NotFoundError, StorageError

logger = structlog.get_logger()

# Files above this size are sent with a multipart upload
MULTIPART_THRESHOLD = 64 * 1024 * 1024
PART_SIZE = 64 * 1024 * 1024
DOWNLOAD_CHUNK = 1024 * 1024


@dataclass(frozen=True)
class RemoteObject:
    """One object returned by a listing."""

    key: str
    size: int
    last_modified: datetime | None


def _client_kwargs(credentials: CloudCredentials) -> dict:
    kwargs = {
        "region_name": credentials.region,
        "aws_access_key_id": credentials.access_key_id,
        "aws_secret_access_key": credentials.secret_access_key,
    }
    if credentials.endpoint_url:
        kwargs["endpoint_url"] = credentials.endpoint_url
    return kwargs


def get_session() -> Any:
    from aiobotocore.session import get_session as _get_session

    return _get_session()


@asynccontextmanager
async def open_s3_client(session: Any, credentials: CloudCredentials) -> AsyncIterator[Any]:
    """Create an S3 client for the duration of one operation."""
    async with session.create_client("s3", **_client_kwargs(credentials)) as client:
        yield client


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


async def upload_file(s3_client: Any, bucket: str, key: str, path: Path) -> int:
    """
    Upload a local artifact.

    Args:
        s3_client: aiobotocore S3 client
        bucket: Target bucket
        key: Object key
        path: Local file

    Returns:
        Number of bytes uploaded

    Raises:
        StorageError: If the upload fails
    """
    size = path.stat().st_size
    try:
        if size > MULTIPART_THRESHOLD:
            await _multipart_upload(s3_client, bucket, key, path)
        else:
            async with aiofiles.open(path, "rb") as f:
                body = await f.read()
            await s3_client.put_object(Bucket=bucket, Key=key, Body=body)
    except (ClientError, BotoCoreError, OSError) as e:
        raise StorageError(
            f"Upload failed: {e}",
            details={"bucket": bucket, "key": key},
        ) from e

    logger.info("object_uploaded", bucket=bucket, key=key, size=size)
    return size


async def _multipart_upload(s3_client: Any, bucket: str, key: str, path: Path) -> None:
    response = await s3_client.create_multipart_upload(Bucket=bucket, Key=key)
    upload_id = response["UploadId"]
    parts: List[dict] = []
    try:
        async with aiofiles.open(path, "rb") as f:
            part_number = 1
            while True:
                chunk = await f.read(PART_SIZE)
                if not chunk:
                    break
                part = await s3_client.upload_part(
                    Bucket=bucket,
                    Key=key,
                    UploadId=upload_id,
                    PartNumber=part_number,
                    Body=chunk,
                )
                parts.append({"ETag": part["ETag"], "PartNumber": part_number})
                logger.debug("multipart_part_uploaded", key=key, part=part_number)
                part_number += 1

        await s3_client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts},
        )
    except BaseException:
        await s3_client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
        raise


async def download_file(s3_client: Any, bucket: str, key: str, destination: Path) -> int:
    """
    Download an object to a local path.

    Data is streamed into <destination>.part and renamed on completion,
    so an interrupted download never looks like a finished artifact.

    Raises:
        NotFoundError: If the object does not exist
        StorageError: On any other failure
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    temp_path = destination.with_name(destination.name + ".part")
    size = 0
    try:
        response = await s3_client.get_object(Bucket=bucket, Key=key)
        async with response["Body"] as stream:
            async with aiofiles.open(temp_path, "wb") as f:
                while True:
                    chunk = await stream.read(DOWNLOAD_CHUNK)
                    if not chunk:
                        break
                    await f.write(chunk)
                    size += len(chunk)
        temp_path.replace(destination)
    except ClientError as e:
        temp_path.unlink(missing_ok=True)
        if _error_code(e) in ("NoSuchKey", "404", "NotFound"):
            raise NotFoundError(
                f"Backup not found: s3://{bucket}/{key}",
                details={"bucket": bucket, "key": key},
            ) from e
        raise StorageError(
            f"Download failed: {e}", details={"bucket": bucket, "key": key}
        ) from e
    except (BotoCoreError, OSError) as e:
        temp_path.unlink(missing_ok=True)
        raise StorageError(
            f"Download failed: {e}", details={"bucket": bucket, "key": key}
        ) from e

    logger.info("object_downloaded", bucket=bucket, key=key, size=size)
    return size


async def object_exists(s3_client: Any, bucket: str, key: str) -> bool:
    """Check for an exact key; errors other than 404 propagate as StorageError."""
    try:
        await s3_client.head_object(Bucket=bucket, Key=key)
        return True
    except ClientError as e:
        if _error_code(e) in ("404", "NoSuchKey", "NotFound"):
            return False
        raise StorageError(
            f"Could not check object: {e}", details={"bucket": bucket, "key": key}
        ) from e
    except BotoCoreError as e:
        raise StorageError(
            f"Could not check object: {e}", details={"bucket": bucket, "key": key}
        ) from e


async def iter_objects(s3_client: Any, bucket: str, prefix: str) -> AsyncIterator[RemoteObject]:
    """
    Yield every object under prefix/ in listing order.

    Each call issues a fresh paginated listing; the iterator itself
    cannot be restarted.
    """
    list_prefix = prefix.strip("/") + "/" if prefix.strip("/") else ""
    paginator = s3_client.get_paginator("list_objects_v2")
    try:
        async for page in paginator.paginate(Bucket=bucket, Prefix=list_prefix):
            for obj in page.get("Contents", []):
                yield RemoteObject(
                    key=obj["Key"],
                    size=int(obj.get("Size", 0)),
                    last_modified=obj.get("LastModified"),
                )
    except (ClientError, BotoCoreError) as e:
        raise StorageError(
            f"Listing failed: {e}", details={"bucket": bucket, "prefix": list_prefix}
        ) from e


async def check_bucket_access(s3_client: Any, bucket: str) -> None:
    """Raise StorageError unless the bucket is reachable with these credentials."""
    try:
        await s3_client.head_bucket(Bucket=bucket)
    except (ClientError, BotoCoreError) as e:
        raise StorageError(
            f"Cannot access S3 bucket {bucket!r}: {e}", details={"bucket": bucket}
        ) from e


async def caller_identity(session: Any, credentials: CloudCredentials) -> str:
    """Return the AWS account id the credentials belong to."""
    kwargs = _client_kwargs(credentials)
    kwargs.pop("endpoint_url", None)
    try:
        async with session.create_client("sts", **kwargs) as sts:
            response = await sts.get_caller_identity()
    except (ClientError, BotoCoreError) as e:
        raise StorageError(f"AWS credentials invalid: {e}") from e
    return str(response.get("Account", ""))
