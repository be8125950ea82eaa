# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for pgs3backup tests.

Provides a scripted prompter, a fake tool runner that records argument
vectors, an in-memory aiobotocore-style S3 session and saved profiles.
"""

import tempfile
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Generator, List, Tuple

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError

from pgs3backup.tools.postgres import ToolCommand
from pgs3backup.tools.runner import ToolResult

FIXED_NOW = datetime(2024, 1, 4, 2, 0, 0)
FIXED_TS = "20240104_020000"


# ============================================================================
# Scripted prompter
# ============================================================================

class ScriptedPrompter:
    """
    Answers prompts from queues.

    confirm() falls back to the offered default when its queue is empty;
    prompt() and secret() fail loudly so a test never loops forever.
    """

    def __init__(self, confirms=(), prompts=(), secrets=()):
        self.confirms = deque(confirms)
        self.prompts = deque(prompts)
        self.secrets = deque(secrets)
        self.questions: List[str] = []
        self.messages: List[str] = []

    def confirm(self, message: str, default: bool) -> bool:
        self.questions.append(message)
        if self.confirms:
            return self.confirms.popleft()
        return default

    def prompt(self, message: str, default: str | None = None) -> str:
        self.questions.append(message)
        if self.prompts:
            answer = self.prompts.popleft()
            return answer if answer or default is None else default
        if default is not None:
            return default
        raise AssertionError(f"Unexpected prompt: {message}")

    def secret(self, message: str) -> str:
        self.questions.append(message)
        if self.secrets:
            return self.secrets.popleft()
        raise AssertionError(f"Unexpected secret prompt: {message}")

    def echo(self, message: str = "") -> None:
        self.messages.append(message)

    @property
    def output(self) -> str:
        return "\n".join(self.messages)


# ============================================================================
# Fake tool runner
# ============================================================================

def classify(command: ToolCommand) -> str:
    """Label a command so tests can script and assert on it."""
    if command.tool != "psql":
        return command.tool
    joined = " ".join(command.args)
    if "CREATE DATABASE" in joined:
        return "psql_create"
    if "DROP SCHEMA" in joined:
        return "psql_clean"
    if "SELECT version();" in joined:
        return "psql_version"
    if "SELECT 1;" in joined:
        return "psql_check"
    return "psql_file"


class FakeRunner:
    """
    Records every ToolCommand and returns scripted exit codes.

    `results` maps a label from classify() to an exit code or a list of
    exit codes consumed in order (the last one repeats). A successful
    pg_dump writes the file named by -f.
    """

    def __init__(self, missing=(), results=None, outputs=None):
        self.missing = set(missing)
        self.results: Dict[str, object] = dict(results or {})
        self.outputs: Dict[str, str] = dict(outputs or {})
        self.commands: List[ToolCommand] = []
        self.log_paths: List[Path | None] = []

    def which(self, name: str) -> str | None:
        return None if name in self.missing else f"/usr/bin/{name}"

    def _returncode(self, label: str) -> int:
        scripted = self.results.get(label, 0)
        if isinstance(scripted, list):
            return scripted.pop(0) if len(scripted) > 1 else scripted[0]
        return scripted

    async def run(self, command: ToolCommand, log_path=None, timeout=None) -> ToolResult:
        label = classify(command)
        self.commands.append(command)
        self.log_paths.append(log_path)
        returncode = self._returncode(label)

        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(log_path, "a") as f:
                f.write(f"{command.display()} -> {returncode}\n")

        if command.tool == "pg_dump":
            output = Path(command.args[command.args.index("-f") + 1])
            if returncode == 0:
                output.write_bytes(b"PGDMP fake dump contents\n" * 64)
            else:
                output.write_bytes(b"partial")

        return ToolResult(returncode=returncode, output=self.outputs.get(label, ""))

    def labels(self) -> List[str]:
        return [classify(command) for command in self.commands]

    def calls(self, label: str) -> List[ToolCommand]:
        return [command for command in self.commands if classify(command) == label]


# ============================================================================
# In-memory S3
# ============================================================================

def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeBody:
    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def read(self, amount: int = -1) -> bytes:
        if amount is None or amount < 0:
            amount = len(self._data) - self._pos
        chunk = self._data[self._pos:self._pos + amount]
        self._pos += len(chunk)
        return chunk


class FakePaginator:
    def __init__(self, store: "FakeS3Session", page_size: int = 2):
        self.store = store
        self.page_size = page_size

    def paginate(self, Bucket: str, Prefix: str = ""):
        return self._pages(Bucket, Prefix)

    async def _pages(self, bucket: str, prefix: str):
        if bucket not in self.store.buckets:
            raise client_error("NoSuchBucket", "ListObjectsV2")
        keys = sorted(key for (b, key) in self.store.objects if b == bucket and key.startswith(prefix))
        if not keys:
            yield {"KeyCount": 0}
            return
        for start in range(0, len(keys), self.page_size):
            contents = []
            for key in keys[start:start + self.page_size]:
                data, modified = self.store.objects[(bucket, key)]
                contents.append({"Key": key, "Size": len(data), "LastModified": modified})
            yield {"Contents": contents, "KeyCount": len(contents)}


class FakeS3Client:
    def __init__(self, store: "FakeS3Session"):
        self.store = store

    async def put_object(self, Bucket: str, Key: str, Body: bytes, **kwargs):
        self.store.calls.append("put_object")
        if self.store.fail_put:
            raise client_error("AccessDenied", "PutObject")
        if Bucket not in self.store.buckets:
            raise client_error("NoSuchBucket", "PutObject")
        self.store.objects[(Bucket, Key)] = (bytes(Body), datetime.now(timezone.utc))
        return {"ETag": '"fake"'}

    async def get_object(self, Bucket: str, Key: str):
        self.store.calls.append("get_object")
        if (Bucket, Key) not in self.store.objects:
            raise client_error("NoSuchKey", "GetObject")
        data, _ = self.store.objects[(Bucket, Key)]
        return {"Body": FakeBody(data), "ContentLength": len(data)}

    async def head_object(self, Bucket: str, Key: str):
        self.store.calls.append("head_object")
        if (Bucket, Key) not in self.store.objects:
            raise client_error("404", "HeadObject")
        data, modified = self.store.objects[(Bucket, Key)]
        return {"ContentLength": len(data), "LastModified": modified}

    async def head_bucket(self, Bucket: str):
        self.store.calls.append("head_bucket")
        if Bucket not in self.store.buckets:
            raise client_error("404", "HeadBucket")
        return {}

    def get_paginator(self, name: str):
        self.store.calls.append(f"paginate:{name}")
        return FakePaginator(self.store)

    async def get_caller_identity(self):
        self.store.calls.append("get_caller_identity")
        return {"Account": self.store.account, "Arn": "arn:aws:iam::123456789012:user/test"}


class _ClientContext:
    def __init__(self, client):
        self.client = client

    async def __aenter__(self):
        return self.client

    async def __aexit__(self, *exc):
        return False


class FakeS3Session:
    """Stands in for an aiobotocore session; objects live in a dict."""

    def __init__(self, buckets=("test-bucket",)):
        self.buckets = set(buckets)
        self.objects: Dict[Tuple[str, str], Tuple[bytes, datetime]] = {}
        self.calls: List[str] = []
        self.client_kwargs: List[dict] = []
        self.fail_put = False
        self.account = "123456789012"

    def create_client(self, service: str, **kwargs):
        self.calls.append(f"create_client:{service}")
        self.client_kwargs.append(kwargs)
        return _ClientContext(FakeS3Client(self))

    def put(self, bucket: str, key: str, data: bytes, modified: datetime | None = None) -> None:
        self.objects[(bucket, key)] = (data, modified or datetime.now(timezone.utc))


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def paths(temp_dir: Path):
    from pgs3backup.config import AppPaths

    return AppPaths(root=temp_dir).ensure()


@pytest.fixture
def prompter() -> ScriptedPrompter:
    return ScriptedPrompter()


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_s3() -> FakeS3Session:
    return FakeS3Session()


@pytest.fixture
def state(prompter, runner, fake_s3):
    """Runtime state wired to the fakes with an empty environment and fixed clock."""
    from pgs3backup.core import initialize_state

    return initialize_state(
        prompter,
        runner=runner,
        s3_session=fake_s3,
        environ={},
        now=lambda: FIXED_NOW,
    )


@pytest.fixture
def source_profile():
    from pgs3backup.config import ConnectionProfile

    return ConnectionProfile(
        host="db.internal",
        port=5432,
        database="appdb",
        user="backup",
        password="s3cret",
    )


@pytest.fixture
def credentials():
    from pgs3backup.config import CloudCredentials

    return CloudCredentials(
        access_key_id="AKIAEXAMPLEKEY123",
        secret_access_key="secret-access-key",
        region="us-east-1",
    )


@pytest.fixture
def bucket_target():
    from pgs3backup.config import BucketTarget

    return BucketTarget(bucket="test-bucket", prefix="prefix")


@pytest_asyncio.fixture
async def configured(paths, source_profile, credentials, bucket_target):
    """Save source, AWS and S3 profiles to the working directory."""
    from pgs3backup.config import ProfileKind
    from pgs3backup.store import save_profile

    await save_profile(paths, ProfileKind.SOURCE, source_profile)
    await save_profile(paths, ProfileKind.AWS, credentials)
    await save_profile(paths, ProfileKind.S3, bucket_target)
    return paths


@pytest.fixture
def make_prompter():
    """Factory for prompters with their own scripted answers."""
    return ScriptedPrompter
