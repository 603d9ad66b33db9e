import os
import subprocess
from unittest.mock import patch

import pytest

from lure.dl.common import DownloadType, Options
from lure.dl.torrent import (
    Aria2NotFoundError,
    DestinationEmptyError,
    TorrentDownloader,
    determine_type,
    remove_torrent_files,
)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("magnet:?xt=urn:btih:abc", True),
        ("torrent+https://example.com/file.torrent", True),
        ("torrent+http://example.com/file.torrent", True),
        ("https://example.com/file.torrent", False),
        ("git+https://example.com/repo.git", False),
    ],
)
def test_match_url(url, expected):
    assert TorrentDownloader().match_url(url) is expected


def test_determine_type_single_file(tmp_path):
    (tmp_path / "movie.mkv").write_bytes(b"data")
    assert determine_type(str(tmp_path)) == (DownloadType.FILE, "movie.mkv")


def test_determine_type_single_dir(tmp_path):
    (tmp_path / "album").mkdir()
    assert determine_type(str(tmp_path)) == (DownloadType.DIR, "album")


def test_determine_type_many(tmp_path):
    (tmp_path / "a").write_bytes(b"")
    (tmp_path / "b").write_bytes(b"")
    assert determine_type(str(tmp_path)) == (DownloadType.DIR, "")


def test_determine_type_empty(tmp_path):
    with pytest.raises(DestinationEmptyError):
        determine_type(str(tmp_path))


def test_remove_torrent_files(tmp_path):
    (tmp_path / "one.torrent").write_bytes(b"")
    (tmp_path / "two.torrent").write_bytes(b"")
    (tmp_path / "keep.txt").write_bytes(b"")
    remove_torrent_files(str(tmp_path))
    assert sorted(os.listdir(tmp_path)) == ["keep.txt"]


def test_download_without_aria2(tmp_path):
    with patch("shutil.which", return_value=None), pytest.raises(Aria2NotFoundError):
        TorrentDownloader().download(
            Options(url="magnet:?xt=urn:btih:abc", destination=str(tmp_path))
        )


def test_download_runs_aria2(tmp_path):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(list(cmd))
        (tmp_path / "payload.iso").write_bytes(b"iso")
        (tmp_path / "payload.torrent").write_bytes(b"meta")
        return subprocess.CompletedProcess(cmd, 0)

    url = "torrent+https://example.com/payload.torrent"
    with patch("shutil.which", return_value="/usr/bin/aria2c"), patch("subprocess.run", fake_run):
        result = TorrentDownloader().download(Options(url=url, destination=str(tmp_path)))

    assert result == (DownloadType.FILE, "payload.iso")
    assert not (tmp_path / "payload.torrent").exists()
    cmd = calls[0]
    assert cmd[0] == "/usr/bin/aria2c"
    assert cmd[-1] == "https://example.com/payload.torrent"
    assert f"--dir={tmp_path}" in cmd
    assert "--seed-time=0" in cmd


def test_download_aria2_failure(tmp_path):
    def fake_run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 3)

    with patch("shutil.which", return_value="/usr/bin/aria2c"), patch("subprocess.run", fake_run):
        with pytest.raises(RuntimeError, match="aria2c returned an error"):
            TorrentDownloader().download(
                Options(url="magnet:?xt=urn:btih:abc", destination=str(tmp_path))
            )