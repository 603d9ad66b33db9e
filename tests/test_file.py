import gzip
import hashlib
import io
import os
import tarfile
import zipfile
from unittest import mock

import pytest
from requests.structures import CaseInsensitiveDict

from lure.dl.common import (
    ChecksumMismatchError,
    DownloadType,
    NoSuchHashAlgorithmError,
    Options,
)
from lure.dl.file import FileDownloader, extract_archive, get_filename

DATA = b"hello, world\n"


@pytest.fixture
def dirs(tmp_path):
    src = tmp_path / "src"
    dst = tmp_path / "dst"
    src.mkdir()
    dst.mkdir()
    (src / "hello.txt").write_bytes(DATA)
    return src, dst


def _opts(src, dst, url, **kwargs):
    return Options(url=url, destination=str(dst), local_dir=str(src), **kwargs)


def _make_tar_gz(path, members):
    with tarfile.open(path, "w:gz") as tar:
        for name, data, mode in members:
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = mode
            tar.addfile(info, io.BytesIO(data))


class _FakeResponse:
    def __init__(self, body, url, headers):
        self.body = body
        self.url = url
        self.headers = CaseInsensitiveDict(headers)
        self.closed = False

    def iter_content(self, chunk_size):
        yield self.body

    def close(self):
        self.closed = True


def test_matches_any_url():
    d = FileDownloader()
    assert d.match_url("https://example.com/x") is True
    assert d.match_url("whatever") is True
    assert d.name == "file"


def test_local_plain_file(dirs):
    src, dst = dirs
    kind, name = FileDownloader().download(_opts(src, dst, "local:///hello.txt"))
    assert (kind, name) == (DownloadType.FILE, "hello.txt")
    assert (dst / "hello.txt").read_bytes() == DATA


def test_name_option_renames(dirs):
    src, dst = dirs
    kind, name = FileDownloader().download(
        _opts(src, dst, "local:///hello.txt?~name=renamed.txt")
    )
    assert (kind, name) == (DownloadType.FILE, "renamed.txt")
    assert (dst / "renamed.txt").read_bytes() == DATA


def test_hash_match(dirs):
    src, dst = dirs
    opts = _opts(src, dst, "local:///hello.txt", hash=hashlib.sha256(DATA).digest())
    assert FileDownloader().download(opts) == (DownloadType.FILE, "hello.txt")


def test_hash_mismatch(dirs):
    src, dst = dirs
    opts = _opts(src, dst, "local:///hello.txt", hash=hashlib.sha256(b"other").digest())
    with pytest.raises(ChecksumMismatchError):
        FileDownloader().download(opts)


def test_other_hash_algorithm(dirs):
    src, dst = dirs
    opts = _opts(
        src, dst, "local:///hello.txt", hash=hashlib.md5(DATA).digest(), hash_algorithm="md5"
    )
    assert FileDownloader().download(opts)[1] == "hello.txt"


def test_invalid_hash_algorithm(dirs):
    src, dst = dirs
    opts = _opts(src, dst, "local:///hello.txt", hash_algorithm="crc32")
    with pytest.raises(NoSuchHashAlgorithmError):
        FileDownloader().download(opts)


def test_tar_gz_is_extracted(dirs):
    src, dst = dirs
    _make_tar_gz(src / "pkg.tar.gz", [("pkg/a.txt", b"a", 0o644), ("b.txt", b"b", 0o644)])
    kind, name = FileDownloader().download(_opts(src, dst, "local:///pkg.tar.gz"))
    assert (kind, name) == (DownloadType.DIR, "")
    assert (dst / "pkg" / "a.txt").read_bytes() == b"a"
    assert (dst / "b.txt").read_bytes() == b"b"
    assert not (dst / "pkg.tar.gz").exists()


def test_archive_false_keeps_archive(dirs):
    src, dst = dirs
    _make_tar_gz(src / "pkg.tar.gz", [("pkg/a.txt", b"a", 0o644)])
    kind, name = FileDownloader().download(
        _opts(src, dst, "local:///pkg.tar.gz?~archive=false")
    )
    assert (kind, name) == (DownloadType.FILE, "pkg.tar.gz")
    assert (dst / "pkg.tar.gz").exists()
    assert not (dst / "pkg").exists()


def test_gz_file_is_decompressed(dirs):
    src, dst = dirs
    (src / "data.txt.gz").write_bytes(gzip.compress(DATA))
    kind, name = FileDownloader().download(_opts(src, dst, "local:///data.txt.gz"))
    assert (kind, name) == (DownloadType.DIR, "")
    assert (dst / "data.txt").read_bytes() == DATA
    assert not (dst / "data.txt.gz").exists()


def test_zip_is_extracted(dirs):
    src, dst = dirs
    with zipfile.ZipFile(src / "pkg.zip", "w") as zf:
        zf.writestr("inner/file.txt", DATA)
    kind, _ = FileDownloader().download(_opts(src, dst, "local:///pkg.zip"))
    assert kind == DownloadType.DIR
    assert (dst / "inner" / "file.txt").read_bytes() == DATA


def test_extract_archive_plain_file(tmp_path):
    path = tmp_path / "plain.txt"
    path.write_bytes(DATA * 100)
    out = tmp_path / "out"
    out.mkdir()
    assert extract_archive(str(path), "plain.txt", str(out)) is False
    assert list(out.iterdir()) == []


def test_extract_archive_keeps_mode(tmp_path):
    path = tmp_path / "tool.tar.gz"
    _make_tar_gz(path, [("bin/tool", b"#!/bin/sh\n", 0o755)])
    out = tmp_path / "out"
    out.mkdir()
    assert extract_archive(str(path), "tool.tar.gz", str(out)) is True
    assert os.stat(out / "bin" / "tool").st_mode & 0o777 == 0o755


def test_extract_archive_rejects_escaping_member(tmp_path):
    path = tmp_path / "evil.tar.gz"
    _make_tar_gz(path, [("../evil.txt", b"x", 0o644)])
    out = tmp_path / "out"
    out.mkdir()
    with pytest.raises(ValueError):
        extract_archive(str(path), "evil.tar.gz", str(out))
    assert not (tmp_path / "evil.txt").exists()


def test_get_filename_from_header():
    resp = _FakeResponse(
        b"", "https://example.com/dl/123", {"Content-Disposition": 'attachment; filename="tool.bin"'}
    )
    assert get_filename(resp) == "tool.bin"


def test_get_filename_falls_back_to_path():
    resp = _FakeResponse(b"", "https://example.com/dl/archive.tar.gz?x=1", {})
    assert get_filename(resp) == "archive.tar.gz"


def test_get_filename_without_filename_param():
    resp = _FakeResponse(
        b"", "https://example.com/dl/thing.zip", {"Content-Disposition": "attachment"}
    )
    assert get_filename(resp) == "thing.zip"


def test_http_download(tmp_path):
    fake = _FakeResponse(
        DATA,
        "https://example.com/files/tool.bin",
        {"Content-Length": str(len(DATA))},
    )
    opts = Options(
        url="https://example.com/files/tool.bin?b=2&~name=named.bin&a=1",
        destination=str(tmp_path),
    )
    with mock.patch("lure.dl.file.requests.get", return_value=fake) as get:
        kind, name = FileDownloader().download(opts)
    get.assert_called_once_with("https://example.com/files/tool.bin?a=1&b=2", stream=True)
    assert (kind, name) == (DownloadType.FILE, "named.bin")
    assert (tmp_path / "named.bin").read_bytes() == DATA
    assert fake.closed is True


def test_progress_is_reported(dirs):
    src, dst = dirs
    progress = io.StringIO()
    FileDownloader().download(_opts(src, dst, "local:///hello.txt", progress=progress))
    assert "hello.txt" in progress.getvalue()