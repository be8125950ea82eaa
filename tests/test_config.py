# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for configuration values, environment helpers and the operation lock.
"""

from pathlib import Path

import pytest

from pgs3backup.config import AppPaths, BucketTarget, CloudCredentials, ConnectionProfile
from pgs3backup.env import (
    bucket_from_env,
    credentials_from_env,
    parse_port,
    paths_from_env,
    schedule_from_env,
    source_profile_from_env,
)
from pgs3backup.exceptions import ConfigurationError, OperationLockedError
from pgs3backup.locking import operation_lock


# ============================================================================
# Test 1: VALUE VALIDATION
# ============================================================================

def test_connection_profile_collects_all_errors():
    with pytest.raises(ConfigurationError) as exc:
        ConnectionProfile(database="", password="", port=70000)

    errors = exc.value.details["errors"]
    assert len(errors) == 3


def test_password_never_appears_in_repr(source_profile, credentials):
    assert "s3cret" not in repr(source_profile)
    assert "secret-access-key" not in repr(credentials)


def test_bucket_target_normalizes_prefix():
    assert BucketTarget(bucket="my-bucket", prefix="/a/b/").prefix == "a/b"


@pytest.mark.parametrize("bucket", ["ab", "Upper-Case", "bad_underscore", "-leading"])
def test_invalid_bucket_names_rejected(bucket):
    with pytest.raises(ConfigurationError):
        BucketTarget(bucket=bucket)


def test_masked_access_key():
    creds = CloudCredentials(access_key_id="AKIAABCDEFGHIJ", secret_access_key="x")
    assert creds.masked_access_key == "AKIAABCD..."
    assert "x" not in creds.summary().values()


def test_app_paths_layout(temp_dir: Path):
    paths = AppPaths(root=temp_dir).ensure()
    assert paths.config_dir.is_dir()
    assert paths.backup_dir == temp_dir / "backups"
    assert paths.log_dir == temp_dir / "logs"


# ============================================================================
# Test 2: ENVIRONMENT
# ============================================================================

def test_source_profile_requires_pghost():
    assert source_profile_from_env({"PGDATABASE": "db", "PGUSER": "u", "PGPASSWORD": "p"}) is None


def test_partial_pg_environment_is_an_error():
    with pytest.raises(ConfigurationError) as exc:
        source_profile_from_env({"PGHOST": "h", "PGDATABASE": "db"})
    assert exc.value.details["missing"] == ["PGUSER", "PGPASSWORD"]


def test_full_pg_environment():
    profile = source_profile_from_env(
        {"PGHOST": "h", "PGPORT": "6432", "PGDATABASE": "db", "PGUSER": "u", "PGPASSWORD": "p"}
    )
    assert profile == ConnectionProfile(host="h", port=6432, database="db", user="u", password="p")


@pytest.mark.parametrize("value", ["abc", "0", "65536"])
def test_invalid_ports(value):
    with pytest.raises(ConfigurationError):
        parse_port(value)


def test_port_defaults_to_5432():
    assert parse_port(None) == 5432
    assert parse_port("") == 5432


def test_credentials_from_env_defaults_region():
    creds = credentials_from_env(
        {"AWS_ACCESS_KEY_ID": "AKIA1234", "AWS_SECRET_ACCESS_KEY": "s", "S3_ENDPOINT_URL": "http://minio:9000"}
    )
    assert creds.region == "us-east-1"
    assert creds.endpoint_url == "http://minio:9000"


def test_endpoint_alone_does_not_configure_credentials():
    assert credentials_from_env({"S3_ENDPOINT_URL": "http://minio:9000"}) is None
    assert bucket_from_env({"S3_ENDPOINT_URL": "http://minio:9000"}) is None


def test_credentials_without_secret_rejected():
    with pytest.raises(ConfigurationError):
        credentials_from_env({"AWS_ACCESS_KEY_ID": "AKIA1234"})


def test_bucket_from_env_defaults_prefix():
    assert bucket_from_env({"S3_BUCKET": "my-bucket"}) == BucketTarget(
        bucket="my-bucket", prefix="postgres-backups"
    )
    assert bucket_from_env({}) is None


def test_paths_from_env(temp_dir: Path):
    assert paths_from_env({"PGS3BACKUP_HOME": str(temp_dir)}).root == temp_dir


def test_schedule_from_env_strips_carriage_returns():
    assert schedule_from_env(None, {"CRON_SCHEDULE": "0 2 * * *\r"}) == "0 2 * * *"
    assert schedule_from_env("*/5 * * * *", {}) == "*/5 * * * *"


def test_schedule_is_required():
    with pytest.raises(ConfigurationError):
        schedule_from_env(None, {})


# ============================================================================
# Test 3: OPERATION LOCK
# ============================================================================

def test_second_operation_is_rejected(paths):
    with operation_lock(paths, "backup"):
        with pytest.raises(OperationLockedError):
            with operation_lock(paths, "restore"):
                pass


def test_lock_is_released_after_operation(paths):
    with operation_lock(paths, "backup"):
        pass
    with operation_lock(paths, "restore"):
        assert "restore" in paths.lock_path.read_text()
