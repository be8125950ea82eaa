# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Storage - S3 upload, download, verification and listing.
"""

from pgs3backup.storage.s3 import (
    RemoteObject,
    check_bucket_access,
    download_file,
    iter_objects,
    object_exists,
    open_s3_client,
    upload_file,
)

__all__ = [
    "RemoteObject",
    "check_bucket_access",
    "download_file",
    "iter_objects",
    "object_exists",
    "open_s3_client",
    "upload_file",
]
