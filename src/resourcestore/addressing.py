"""Content address scheme for storage and publication paths.

Hashes are split into 5 character groups so that no directory level holds more
than 16^5 entries, e.g.::

    c828d0f88ce197be1aff7cc2e5e86b1244241ac6
    -> c828d/0f88c/e197b/e1aff/7cc2e/5e86b/12442/41ac6/c828d0f88ce197be1aff7cc2e5e86b1244241ac6
"""

from typing import List

from .errors import InvalidPathError
from .hashing import validate_content_hash

SEGMENT_LENGTH = 5


def split_hash(content_hash: str, length: int = SEGMENT_LENGTH) -> List[str]:
    """Split a hash into consecutive groups, keeping a shorter remainder."""
    return [content_hash[i:i + length] for i in range(0, len(content_hash), length)]


def hash_prefix(content_hash: str, subdivide: bool) -> str:
    """Directory part addressed by a hash, without the leaf."""
    validate_content_hash(content_hash)
    if subdivide:
        return "/".join(split_hash(content_hash))
    return content_hash


def derive_path(content_hash: str, subdivide: bool = True) -> str:
    """Storage path for a content hash.

    With subdivide the leaf is the full hash again, so both directory traversal
    and direct lookup end at a file named by the complete hash.

    Raises:
        InvalidHashError: If content_hash is not a SHA-1 hex digest
    """
    if subdivide:
        return f"{hash_prefix(content_hash, True)}/{content_hash}"
    return validate_content_hash(content_hash)


def check_relative_path(path: str) -> str:
    """Refuse relative paths with "." or ".." segments or backslashes.

    Raises:
        InvalidPathError: If the path could leave the directory it is joined to
    """
    if "\\" in path:
        raise InvalidPathError(path, "backslashes are not allowed")
    if any(segment in (".", "..") for segment in path.split("/")):
        raise InvalidPathError(path, '"." and ".." segments are not allowed')
    return path


def check_display_name(name: str) -> str:
    """A display name is a single path segment.

    Raises:
        InvalidPathError: If name contains a separator or is "." or ".."
    """
    if "/" in name or "\\" in name:
        raise InvalidPathError(name, "display names cannot contain path separators")
    if name in (".", ".."):
        raise InvalidPathError(name, '"." and ".." are not valid display names')
    return name


def publication_path(obj, subdivide: bool = True) -> str:
    """Relative public path and filename for a stored object.

    An explicit relative publication path is used verbatim (it carries its own
    trailing slash); otherwise the hash prefix keeps parent directories unique
    and the display name stays readable as the leaf. Nameless objects use the
    full hash as leaf, like the storage path.

    Raises:
        InvalidPathError: If the display name or explicit path could escape
            the publication root
    """
    name = check_display_name(obj.display_name) or obj.content_hash
    if obj.relative_publication_path:
        check_relative_path(obj.relative_publication_path)
        return f"{obj.relative_publication_path}{name}"
    return f"{hash_prefix(obj.content_hash, subdivide)}/{name}"


def join_path(*parts: str) -> str:
    """Join backend path parts with single slashes, dropping empty parts."""
    cleaned = [p.strip("/") for p in parts if p and p.strip("/")]
    return "/".join(cleaned)


def parent_path(path: str) -> str:
    """Parent directory of a backend path ("" for top level entries)."""
    return path.rsplit("/", 1)[0] if "/" in path else ""
