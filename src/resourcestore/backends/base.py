"""Base protocol for backend connections."""

from typing import BinaryIO, List, Optional, Protocol, runtime_checkable

from ..models import BackendEntry


@runtime_checkable
class BackendConnection(Protocol):
    """
    Protocol for backend connection implementations.

    All paths are relative to the connection's root (directory, FTP root or
    bucket prefix) and use "/" as separator. Writes must be atomic: a failed
    write never leaves a truncated object at the requested path.
    Connection-level failures are raised as BackendUnavailable.
    """

    def exists(self, path: str) -> bool:
        """
        Check whether a file exists at path.

        Args:
            path: Relative path to check

        Returns:
            True if a file exists
        """
        ...

    def write_stream(self, path: str, reader: BinaryIO) -> bool:
        """
        Write the full content of reader to path.

        Args:
            path: Relative destination path
            reader: Readable binary stream

        Returns:
            True if the write succeeded
        """
        ...

    def read_stream(self, path: str) -> Optional[BinaryIO]:
        """
        Open path for reading.

        Returns:
            Readable binary stream, or None if nothing exists at path
        """
        ...

    def delete(self, path: str) -> bool:
        """
        Delete the file at path.

        Returns:
            True if a file was removed
        """
        ...

    def create_dir(self, path: str) -> None:
        """Create path and missing parents. No-op where directories are implicit."""
        ...

    def list(self, path: str = "", recursive: bool = False) -> List[BackendEntry]:
        """
        List entries below path.

        Args:
            path: Relative directory to list ("" for the root)
            recursive: Descend into subdirectories

        Returns:
            Entries with paths relative to the connection root
        """
        ...
