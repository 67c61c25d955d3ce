"""Tests for hashing module."""

import pytest

from resourcestore.errors import InvalidHashError
from resourcestore.hashing import (
    compute_file_digests,
    is_content_hash,
    validate_content_hash,
)

from tests.conftest import HELLO_MD5, HELLO_SHA1


class TestFileDigests:
    """Test file-based hashing."""

    def test_known_digests(self, tmp_path):
        """SHA-1, MD5 and size of a known file."""
        f = tmp_path / "hello.txt"
        f.write_bytes(b"hello")

        digests = compute_file_digests(f)

        assert digests.sha1 == HELLO_SHA1
        assert digests.md5 == HELLO_MD5
        assert digests.size == 5

    def test_empty_file(self, tmp_path):
        f = tmp_path / "empty"
        f.write_bytes(b"")

        digests = compute_file_digests(f)

        assert digests.sha1 == "da39a3ee5e6b4b0d3255bfef95601890afd80709"
        assert digests.size == 0

    def test_large_file_spans_chunks(self, tmp_path):
        """Content larger than one read chunk is hashed completely."""
        f = tmp_path / "big.bin"
        f.write_bytes(b"x" * (200 * 1024 + 7))

        digests = compute_file_digests(f)

        assert digests.size == 200 * 1024 + 7

    def test_name_does_not_matter(self, tmp_path):
        """Hash depends on bytes only, not the filename."""
        a = tmp_path / "a.txt"
        b = tmp_path / "b.png"
        a.write_bytes(b"same")
        b.write_bytes(b"same")

        assert compute_file_digests(a).sha1 == compute_file_digests(b).sha1


class TestHashValidation:
    """Test content hash validation for path safety."""

    def test_valid(self):
        assert validate_content_hash(HELLO_SHA1) == HELLO_SHA1
        assert is_content_hash(HELLO_SHA1)

    @pytest.mark.parametrize("bad", ["", "abcd", "A" * 40, "z" * 40, HELLO_SHA1 + "0", None])
    def test_invalid(self, bad):
        assert not is_content_hash(bad)

    def test_invalid_raises(self):
        with pytest.raises(InvalidHashError, match="must be 40 hex chars"):
            validate_content_hash("../etc/passwd")
