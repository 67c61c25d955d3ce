"""Tests for the FTP backend connection with a mocked ftplib client."""

import ftplib
import io
from unittest.mock import patch

import pytest

from resourcestore.backends.ftp import FtpConnection, _parse_modify
from resourcestore.errors import BackendUnavailable, MissingOptionError


@pytest.fixture
def ftp():
    with patch("resourcestore.backends.ftp.ftplib.FTP") as FTP:
        yield FTP.return_value


@pytest.fixture
def conn(ftp):
    return FtpConnection.from_options({
        "host": "ftp.example.com",
        "username": "deploy",
        "password": "secret",
        "root": "/srv/resources/",
    })


class TestConnect:
    """Test lazy connection handling."""

    def test_host_required(self):
        with pytest.raises(MissingOptionError, match='"host"'):
            FtpConnection.from_options({})

    def test_connects_on_first_use(self, conn, ftp):
        ftp.connect.assert_not_called()

        conn.exists("a")

        ftp.connect.assert_called_once_with("ftp.example.com", 21)
        ftp.login.assert_called_once_with("deploy", "secret")
        ftp.set_pasv.assert_called_once_with(True)

    def test_anonymous_login(self, ftp):
        FtpConnection("ftp.example.com").exists("a")
        ftp.login.assert_called_once_with()

    def test_connect_failure(self, conn, ftp):
        ftp.connect.side_effect = OSError("connection refused")
        with pytest.raises(BackendUnavailable, match="Cannot connect"):
            conn.exists("a")

    def test_reconnects_after_failure(self, conn, ftp):
        ftp.size.side_effect = EOFError()
        with pytest.raises(BackendUnavailable):
            conn.exists("a")

        ftp.size.side_effect = None
        ftp.size.return_value = 5
        assert conn.exists("a") is True
        assert ftp.connect.call_count == 2

    def test_close(self, conn, ftp):
        conn.exists("a")
        conn.close()
        ftp.quit.assert_called_once()


class TestFiles:
    """Test file operations below the root."""

    def test_exists(self, conn, ftp):
        ftp.size.return_value = 5
        assert conn.exists("ab/cd") is True
        ftp.size.assert_called_with("/srv/resources/ab/cd")

    def test_exists_missing(self, conn, ftp):
        ftp.size.side_effect = ftplib.error_perm("550 No such file")
        assert conn.exists("ab/cd") is False

    def test_write_stream_uploads_then_renames(self, conn, ftp):
        reader = io.BytesIO(b"hello")

        assert conn.write_stream("ab/cd", reader) is True

        command, sent = ftp.storbinary.call_args.args
        tmp = command[len("STOR "):]
        assert tmp.startswith("/srv/resources/ab/cd.") and tmp.endswith(".part")
        assert sent is reader
        ftp.rename.assert_called_once_with(tmp, "/srv/resources/ab/cd")

    def test_write_stream_creates_parents(self, conn, ftp):
        conn.write_stream("ab/cd/ef", io.BytesIO(b"x"))

        made = [c.args[0] for c in ftp.mkd.call_args_list]
        assert made == ["/srv", "/srv/resources", "/srv/resources/ab", "/srv/resources/ab/cd"]

    def test_write_stream_refused_cleans_up(self, conn, ftp):
        ftp.storbinary.side_effect = ftplib.error_perm("553 Not allowed")

        assert conn.write_stream("ab/cd", io.BytesIO(b"x")) is False
        ftp.delete.assert_called_once()
        ftp.rename.assert_not_called()

    def test_write_stream_connection_lost(self, conn, ftp):
        ftp.storbinary.side_effect = EOFError()
        with pytest.raises(BackendUnavailable, match="write"):
            conn.write_stream("ab/cd", io.BytesIO(b"x"))

    def test_read_stream(self, conn, ftp):
        ftp.retrbinary.side_effect = lambda cmd, callback: callback(b"hello")

        stream = conn.read_stream("ab/cd")

        assert stream.read() == b"hello"
        ftp.retrbinary.assert_called_once()
        assert ftp.retrbinary.call_args.args[0] == "RETR /srv/resources/ab/cd"

    def test_read_stream_missing(self, conn, ftp):
        ftp.retrbinary.side_effect = ftplib.error_perm("550 No such file")
        assert conn.read_stream("ab/cd") is None

    def test_delete(self, conn, ftp):
        assert conn.delete("ab/cd") is True
        ftp.delete.assert_called_once_with("/srv/resources/ab/cd")

    def test_delete_missing(self, conn, ftp):
        ftp.delete.side_effect = ftplib.error_perm("550 No such file")
        assert conn.delete("ab/cd") is False


class TestListing:
    """Test MLSD based listing."""

    def test_list_recursive(self, conn, ftp):
        listings = {
            "/srv/resources": [
                (".", {"type": "cdir"}),
                ("ab", {"type": "dir"}),
                ("stray.part", {"type": "file", "size": "1"}),
            ],
            "/srv/resources/ab": [
                ("one.css", {"type": "file", "size": "3", "modify": "20240101120000"}),
            ],
        }
        ftp.mlsd.side_effect = lambda path, facts=None: iter(listings[path])

        entries = conn.list(recursive=True)

        assert [(e.path, e.type) for e in entries] == [("ab", "dir"), ("ab/one.css", "file")]
        assert entries[1].size_bytes == 3
        assert entries[1].mime_type == "text/css"
        assert entries[1].timestamp == _parse_modify("20240101120000")

    def test_list_missing_directory(self, conn, ftp):
        ftp.mlsd.side_effect = ftplib.error_perm("550 No such directory")
        assert conn.list("nope") == []


def test_parse_modify():
    assert _parse_modify("19700101000010") == 10.0
    assert _parse_modify("19700101000010.123") == 10.0
    assert _parse_modify("garbage") is None
    assert _parse_modify(None) is None
