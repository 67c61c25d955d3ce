"""Local filesystem backend connection."""

import contextlib
import logging
import mimetypes
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, List, Optional

from ..errors import BackendUnavailable, MissingOptionError
from ..models import BackendEntry

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".rs-tmp-"


def _fsync_dir(path: Path) -> None:
    """Fsync a directory so a rename is durable. Best effort."""
    try:
        flags = os.O_RDONLY
        if hasattr(os, "O_DIRECTORY"):
            flags |= os.O_DIRECTORY
        fd = os.open(str(path), flags)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        logger.debug("Directory fsync not supported for %s", path)


class LocalConnection:
    """
    Files below a root directory on the local filesystem.

    Writes go to a temp file in the destination directory and are promoted
    with os.replace, so readers never see a partially written file.
    """

    def __init__(self, root: Path):
        """
        Initialize local connection.

        Args:
            root: Root directory; created if missing
        """
        self.root = Path(root).resolve()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackendUnavailable(f"Cannot create local root {self.root}: {e}") from e

    @classmethod
    def from_options(cls, options: dict) -> "LocalConnection":
        """Build from driver options. Only option is "path"."""
        if not options.get("path"):
            raise MissingOptionError("local", "path")
        return cls(Path(options["path"]))

    def _resolve(self, path: str) -> Path:
        """
        Map a relative path below root.

        Raises:
            ValueError: If the path escapes the root
        """
        target = (self.root / path.lstrip("/")).resolve()
        try:
            target.relative_to(self.root)
        except ValueError:
            raise ValueError(f"Path escapes backend root: {path!r}")
        return target

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except ValueError:
            return False

    def write_stream(self, path: str, reader: BinaryIO) -> bool:
        dest = self._resolve(path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            prefix=TEMP_PREFIX,
            dir=str(dest.parent),
            delete=False
        ) as tmp:
            tmppath = Path(tmp.name)
            try:
                shutil.copyfileobj(reader, tmp)
                tmp.flush()
                os.fsync(tmp.fileno())
            except Exception:
                tmp.close()
                with contextlib.suppress(OSError):
                    tmppath.unlink()
                raise
        try:
            os.chmod(tmppath, 0o644)
            os.replace(str(tmppath), str(dest))
        except Exception:
            with contextlib.suppress(OSError):
                tmppath.unlink()
            raise
        _fsync_dir(dest.parent)
        logger.debug("Local write: %s", dest)
        return True

    def read_stream(self, path: str) -> Optional[BinaryIO]:
        try:
            src = self._resolve(path)
        except ValueError:
            return None
        if not src.is_file():
            return None
        return src.open("rb")

    def delete(self, path: str) -> bool:
        try:
            self._resolve(path).unlink()
        except (ValueError, FileNotFoundError, IsADirectoryError):
            return False
        return True

    def create_dir(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def list(self, path: str = "", recursive: bool = False) -> List[BackendEntry]:
        base = self._resolve(path)
        if not base.is_dir():
            return []
        candidates = base.rglob("*") if recursive else base.iterdir()
        entries = []
        for item in sorted(candidates):
            if item.name.startswith(TEMP_PREFIX) or item.name.endswith(".lock"):
                continue
            rel = item.relative_to(self.root).as_posix()
            if item.is_dir():
                entries.append(BackendEntry(path=rel, type="dir"))
                continue
            st = item.stat()
            entries.append(BackendEntry(
                path=rel,
                type="file",
                size_bytes=st.st_size,
                mime_type=mimetypes.guess_type(item.name)[0],
                timestamp=st.st_mtime,
            ))
        return entries
