"""Hashing utilities for content addressing.

Resources are addressed by the SHA-1 of their bytes. An MD5 is kept next to it
as an integrity aid for clients that expect one (e.g. Content-MD5 headers).
"""

import hashlib
import re
from pathlib import Path
from typing import NamedTuple

from .errors import InvalidHashError

_HEX40 = re.compile(r"^[0-9a-f]{40}$")

CHUNK_SIZE = 64 * 1024


class FileDigests(NamedTuple):
    """Digests and size of a staged file."""
    sha1: str
    md5: str
    size: int


def compute_file_digests(path: Path) -> FileDigests:
    """Compute SHA-1, MD5 and size of a file in a single pass.

    Args:
        path: Path to the (staged) file to hash

    Returns:
        FileDigests with lowercase hex digests and the size in bytes
    """
    sha1 = hashlib.sha1()
    md5 = hashlib.md5()
    size = 0
    with Path(path).open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            sha1.update(chunk)
            md5.update(chunk)
            size += len(chunk)
    return FileDigests(sha1.hexdigest(), md5.hexdigest(), size)


def is_content_hash(value: str) -> bool:
    """Return True if value looks like a SHA-1 content hash."""
    return bool(_HEX40.fullmatch(value or ""))


def validate_content_hash(value: str) -> str:
    """Validate a content hash before it is used to build paths.

    Raises:
        InvalidHashError: If value is not 40 lowercase hex characters
    """
    if not is_content_hash(value):
        raise InvalidHashError(value)
    return value


__all__ = [
    "FileDigests",
    "compute_file_digests",
    "is_content_hash",
    "validate_content_hash",
]
