"""Shared test fixtures and utilities."""

import io
from pathlib import Path

import pytest

from resourcestore.backends.factory import ConnectionFactory
from resourcestore.repository import InMemoryResourceRepository
from resourcestore.storage import WritableStorage
from resourcestore.target import Target

HELLO_SHA1 = "aaf4c61ddcc5e8a2dabede0f3b482cd9aea9434d"
HELLO_MD5 = "5d41402abc4b2a76b9719d911017c592"


@pytest.fixture
def factory():
    """Connection factory torn down after each test."""
    f = ConnectionFactory()
    yield f
    f.close()


@pytest.fixture
def repository():
    return InMemoryResourceRepository()


@pytest.fixture
def storage_root(tmp_path):
    return tmp_path / "persistent"


@pytest.fixture
def public_root(tmp_path):
    return tmp_path / "public"


@pytest.fixture
def storage(tmp_path, storage_root, factory, repository):
    """Local storage with its own staging directory."""
    return WritableStorage(
        "defaultPersistentResourcesStorage",
        {"driver": "local", "driver_options": {"path": str(storage_root)}},
        factory,
        repository=repository,
        staging_dir=tmp_path / "staging",
    )


@pytest.fixture
def make_target(public_root, factory, repository):
    """Factory fixture for local targets with custom options."""
    def _make(**options):
        opts = {
            "driver": "local",
            "driver_options": {"path": str(public_root)},
            "path": "_Resources/Persistent",
            "base_uri": "https://example.com/_Resources/Persistent/",
        }
        opts.update(options)
        return Target("localWebDirectoryPersistentResourcesTarget", opts, factory, repository=repository)
    return _make


@pytest.fixture
def target(make_target):
    return make_target()


@pytest.fixture
def stream():
    """Factory fixture for in-memory binary streams."""
    def _stream(content: bytes = b"hello"):
        return io.BytesIO(content)
    return _stream


def blob_files(root: Path) -> list:
    """All regular files below root, ignoring temp files."""
    return sorted(p for p in root.rglob("*") if p.is_file() and not p.name.startswith(".rs-tmp-"))
