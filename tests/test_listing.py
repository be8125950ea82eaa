# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for remote listing and backup selection.
"""

from datetime import datetime, timezone

import pytest

from pgs3backup.backup.restore import list_remote
from pgs3backup.config import BucketTarget
from pgs3backup.exceptions import InvalidSelectionError, NoBackupsFoundError, StorageError
from pgs3backup.listing import (
    format_size,
    list_backups,
    newest_first,
    parse_selection,
    select_backup,
)
from pgs3backup.storage.s3 import RemoteObject


def _obj(key, size=1024):
    return RemoteObject(key=key, size=size, last_modified=datetime(2024, 1, 4, tzinfo=timezone.utc))


# ============================================================================
# Test 1: LISTING
# ============================================================================

@pytest.mark.asyncio
async def test_empty_prefix_lists_nothing(configured, state):
    assert await list_remote(configured, state) == []
    assert "No backups found" in state["prompter"].output


@pytest.mark.asyncio
async def test_listing_follows_every_page(fake_s3):
    for day in range(1, 6):
        fake_s3.put("test-bucket", f"postgres-backups/2024-01-0{day}/db_backup_2024010{day}_000000.dump", b"x")
    fake_s3.put("test-bucket", "elsewhere/file.dump", b"x")

    async with fake_s3.create_client("s3") as s3_client:
        objects = await list_backups(s3_client, BucketTarget(bucket="test-bucket"))

    assert len(objects) == 5
    assert all(obj.key.startswith("postgres-backups/") for obj in objects)


@pytest.mark.asyncio
async def test_listing_missing_bucket_is_storage_error(fake_s3):
    async with fake_s3.create_client("s3") as s3_client:
        with pytest.raises(StorageError):
            await list_backups(s3_client, BucketTarget(bucket="no-such-bucket"))


# ============================================================================
# Test 2: SELECTION
# ============================================================================

def test_newest_first_orders_by_key_descending():
    objects = [_obj("p/2024-01-02/a"), _obj("p/2024-01-04/a"), _obj("p/2024-01-03/a")]
    assert [o.key for o in newest_first(objects)] == [
        "p/2024-01-04/a",
        "p/2024-01-03/a",
        "p/2024-01-02/a",
    ]


@pytest.mark.parametrize("index", [1, 2, 3])
def test_selecting_index_returns_ith_newest(make_prompter, index):
    objects = [_obj("p/2024-01-01/a"), _obj("p/2024-01-02/a"), _obj("p/2024-01-03/a")]
    prompter = make_prompter(prompts=[str(index)])

    selected = select_backup(objects, prompter)

    assert selected == newest_first(objects)[index - 1]


def test_out_of_range_selection_does_not_mutate_listing(make_prompter):
    objects = [_obj("p/2024-01-01/a"), _obj("p/2024-01-02/a")]
    snapshot = list(objects)

    with pytest.raises(InvalidSelectionError):
        select_backup(objects, make_prompter(prompts=["3"]))

    assert objects == snapshot


def test_empty_selection_raises_no_backups(make_prompter):
    with pytest.raises(NoBackupsFoundError):
        select_backup([], make_prompter())


@pytest.mark.parametrize("raw", ["", "abc", "-1", "0", "1.5"])
def test_parse_selection_rejects(raw):
    with pytest.raises(InvalidSelectionError):
        parse_selection(raw, 3)


def test_parse_selection_is_one_based():
    assert parse_selection(" 3 ", 3) == 2


def test_format_size():
    assert format_size(512) == "512B"
    assert format_size(2048) == "2.0K"
    assert format_size(5 * 1024 * 1024) == "5.0M"
