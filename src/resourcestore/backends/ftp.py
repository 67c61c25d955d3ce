"""FTP backend connection."""

import contextlib
import ftplib
import logging
import mimetypes
import tempfile
import uuid
from datetime import datetime, timezone
from typing import BinaryIO, List, Optional

from ..addressing import join_path, parent_path
from ..errors import BackendUnavailable, MissingOptionError
from ..models import BackendEntry

logger = logging.getLogger(__name__)

# Errors that mean the server or connection is gone, not that a file is missing
_CONNECTION_ERRORS = (OSError, EOFError, ftplib.error_temp, ftplib.error_proto)


def _parse_modify(value: Optional[str]) -> Optional[float]:
    """Parse an MLSD "modify" fact (YYYYMMDDHHMMSS[.sss]) to a timestamp."""
    if not value:
        return None
    try:
        dt = datetime.strptime(value[:14], "%Y%m%d%H%M%S")
    except ValueError:
        return None
    return dt.replace(tzinfo=timezone.utc).timestamp()


class FtpConnection:
    """
    Files below a root directory on an FTP server.

    Uploads go to a temporary name next to the destination and are renamed
    into place, so a failed transfer never leaves a truncated file behind.
    The control connection is opened lazily and reopened after a failure.
    """

    def __init__(
        self,
        host: str,
        username: str = "",
        password: str = "",
        port: int = 21,
        root: str = "",
        passive: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.username = username
        self.password = password
        self.port = int(port)
        self.root = root.strip("/")
        self.passive = passive
        self.timeout = timeout
        self._ftp: Optional[ftplib.FTP] = None

    @classmethod
    def from_options(cls, options: dict) -> "FtpConnection":
        """Build from driver options; "host" is required."""
        if not options.get("host"):
            raise MissingOptionError("ftp", "host")
        return cls(
            host=options["host"],
            username=options.get("username", ""),
            password=options.get("password", ""),
            port=options.get("port", 21),
            root=options.get("root", ""),
            passive=options.get("passive", True),
            timeout=options.get("timeout", 30.0),
        )

    def _client(self) -> ftplib.FTP:
        if self._ftp is not None:
            return self._ftp
        ftp = ftplib.FTP(timeout=self.timeout)
        try:
            ftp.connect(self.host, self.port)
            if self.username:
                ftp.login(self.username, self.password)
            else:
                ftp.login()
            ftp.set_pasv(self.passive)
        except _CONNECTION_ERRORS + (ftplib.error_perm,) as e:
            raise BackendUnavailable(f"Cannot connect to ftp://{self.host}:{self.port}: {e}") from e
        logger.debug("Connected to ftp://%s:%s", self.host, self.port)
        self._ftp = ftp
        return ftp

    def _full(self, path: str) -> str:
        return "/" + join_path(self.root, path)

    def _fail(self, action: str, path: str, error: Exception) -> BackendUnavailable:
        # Drop the connection so the next call reconnects
        self._ftp = None
        return BackendUnavailable(f"FTP {action} failed for {path}: {error}")

    def exists(self, path: str) -> bool:
        ftp = self._client()
        try:
            ftp.voidcmd("TYPE I")
            return ftp.size(self._full(path)) is not None
        except ftplib.error_perm:
            return False
        except _CONNECTION_ERRORS as e:
            raise self._fail("exists", path, e) from e

    def write_stream(self, path: str, reader: BinaryIO) -> bool:
        ftp = self._client()
        full = self._full(path)
        tmp = f"{full}.{uuid.uuid4().hex}.part"
        try:
            self.create_dir(parent_path(path))
            ftp.storbinary(f"STOR {tmp}", reader)
            ftp.rename(tmp, full)
        except ftplib.error_perm as e:
            logger.warning("FTP write refused for %s: %s", full, e)
            with contextlib.suppress(*ftplib.all_errors):
                ftp.delete(tmp)
            return False
        except _CONNECTION_ERRORS as e:
            raise self._fail("write", path, e) from e
        logger.debug("FTP write: %s", full)
        return True

    def read_stream(self, path: str) -> Optional[BinaryIO]:
        ftp = self._client()
        buf = tempfile.SpooledTemporaryFile(max_size=8 * 1024 * 1024)
        try:
            ftp.retrbinary(f"RETR {self._full(path)}", buf.write)
        except ftplib.error_perm:
            buf.close()
            return None
        except _CONNECTION_ERRORS as e:
            buf.close()
            raise self._fail("read", path, e) from e
        buf.seek(0)
        return buf

    def delete(self, path: str) -> bool:
        ftp = self._client()
        try:
            ftp.delete(self._full(path))
        except ftplib.error_perm:
            return False
        except _CONNECTION_ERRORS as e:
            raise self._fail("delete", path, e) from e
        return True

    def create_dir(self, path: str) -> None:
        ftp = self._client()
        current = ""
        for part in join_path(self.root, path).split("/"):
            if not part:
                continue
            current = f"{current}/{part}"
            try:
                ftp.mkd(current)
            except ftplib.error_perm:
                # Already exists
                pass
            except _CONNECTION_ERRORS as e:
                raise self._fail("mkdir", path, e) from e

    def list(self, path: str = "", recursive: bool = False) -> List[BackendEntry]:
        ftp = self._client()
        entries = []
        try:
            facts = list(ftp.mlsd(self._full(path), facts=["type", "size", "modify"]))
        except ftplib.error_perm:
            return []
        except _CONNECTION_ERRORS as e:
            raise self._fail("list", path, e) from e
        for name, fact in sorted(facts, key=lambda item: item[0]):
            kind = fact.get("type")
            if kind in ("cdir", "pdir") or name in (".", ".."):
                continue
            if name.endswith(".part"):
                continue
            rel = join_path(path, name)
            if kind == "dir":
                entries.append(BackendEntry(path=rel, type="dir"))
                if recursive:
                    entries.extend(self.list(rel, recursive=True))
                continue
            entries.append(BackendEntry(
                path=rel,
                type="file",
                size_bytes=int(fact.get("size", 0)),
                mime_type=mimetypes.guess_type(name)[0],
                timestamp=_parse_modify(fact.get("modify")),
            ))
        return entries

    def close(self) -> None:
        """Close the control connection if open."""
        if self._ftp is None:
            return
        try:
            self._ftp.quit()
        except ftplib.all_errors:
            self._ftp.close()
        self._ftp = None
