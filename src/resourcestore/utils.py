"""Utility functions for resourcestore."""


def humanize_size(size: float) -> str:
    """Convert bytes to human-readable format."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def short_hash(content_hash: str, length: int = 12) -> str:
    """Shorten a content hash for display."""
    return content_hash[:length] + "..." if len(content_hash) > length else content_hash
